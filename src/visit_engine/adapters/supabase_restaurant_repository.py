"""Supabase repositories for reference and confirmed restaurants."""

from dataclasses import dataclass

from supabase import Client

from visit_engine.adapters.supabase_errors import execute, select_all
from visit_engine.adapters.supabase_rows import (
    REFERENCE_COLUMNS,
    confirmed_from_row,
    confirmed_to_row,
    reference_from_row,
    reference_to_row,
)
from visit_engine.domain.models import ConfirmedRestaurant, ReferenceRestaurant
from visit_engine.services.batching import chunked
from visit_engine.services.spatial_index import ReferenceRestaurantRepository
from visit_engine.services.visits import ConfirmedRestaurantRepository

_UPSERT_CHUNK = 500


@dataclass
class SupabaseReferenceRestaurantRepository(ReferenceRestaurantRepository):
    """Supabase implementation for the reference restaurant set."""

    client: Client

    def list_all(self) -> list[ReferenceRestaurant]:
        """Return every reference restaurant."""
        rows = select_all(
            lambda: self.client.table("reference_restaurants")
            .select(REFERENCE_COLUMNS)
            .order("id")
        )
        return [reference_from_row(row) for row in rows]

    def get_many(self, restaurant_ids: list[str]) -> list[ReferenceRestaurant]:
        """Return the reference restaurants with the given ids."""
        if not restaurant_ids:
            return []
        response = execute(
            self.client.table("reference_restaurants")
            .select(REFERENCE_COLUMNS)
            .in_("id", restaurant_ids)
        )
        return [reference_from_row(row) for row in response.data or []]

    def upsert_many(self, restaurants: list[ReferenceRestaurant]) -> None:
        """Insert or update reference restaurants in bulk."""
        for chunk in chunked(restaurants, _UPSERT_CHUNK):
            execute(
                self.client.table("reference_restaurants").upsert(
                    [reference_to_row(restaurant) for restaurant in chunk]
                )
            )

    def count(self) -> int:
        """Return the number of reference restaurants."""
        response = execute(
            self.client.table("reference_restaurants").select("id", count="exact")
        )
        return int(response.count or 0)


@dataclass
class SupabaseConfirmedRestaurantRepository(ConfirmedRestaurantRepository):
    """Supabase implementation for user confirmed restaurants."""

    client: Client

    def get_many(self, restaurant_ids: list[str]) -> list[ConfirmedRestaurant]:
        """Return confirmed restaurants with the given ids."""
        if not restaurant_ids:
            return []
        response = execute(
            self.client.table("restaurants")
            .select("id, name, latitude, longitude")
            .in_("id", restaurant_ids)
        )
        return [confirmed_from_row(row) for row in response.data or []]

    def upsert(self, restaurant: ConfirmedRestaurant) -> None:
        """Create the restaurant unless it already exists."""
        execute(
            self.client.table("restaurants").upsert(
                confirmed_to_row(restaurant), ignore_duplicates=True
            )
        )
