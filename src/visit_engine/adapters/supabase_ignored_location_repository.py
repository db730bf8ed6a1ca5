"""Supabase repository for ignored locations."""

from dataclasses import dataclass

from supabase import Client

from visit_engine.adapters.supabase_errors import execute
from visit_engine.domain.models import IgnoredLocation
from visit_engine.services.visits import IgnoredLocationRepository


@dataclass
class SupabaseIgnoredLocationRepository(IgnoredLocationRepository):
    """Supabase implementation for ignored locations."""

    client: Client

    def list_all(self) -> list[IgnoredLocation]:
        """Return every ignored location."""
        response = execute(
            self.client.table("ignored_locations").select(
                "id, name, latitude, longitude, radius_meters"
            )
        )
        return [
            IgnoredLocation(
                id=str(row["id"]),
                name=str(row.get("name") or ""),
                latitude=float(row["latitude"]),
                longitude=float(row["longitude"]),
                radius_meters=float(row["radius_meters"]),
            )
            for row in response.data or []
        ]
