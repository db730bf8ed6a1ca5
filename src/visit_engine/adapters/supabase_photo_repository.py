"""Supabase-backed photo repository."""

from dataclasses import dataclass

from supabase import Client

from visit_engine.adapters.supabase_errors import execute, select_all
from visit_engine.adapters.supabase_rows import (
    PHOTO_COLUMNS,
    labels_payload,
    photo_from_row,
)
from visit_engine.domain.models import Photo
from visit_engine.services.visits import PhotoRepository


@dataclass
class SupabasePhotoRepository(PhotoRepository):
    """Supabase implementation for photo metadata persistence."""

    client: Client

    def list_unassigned_geotagged(self) -> list[Photo]:
        """Return photos with coordinates that belong to no visit."""
        rows = select_all(
            lambda: self.client.table("photos")
            .select(PHOTO_COLUMNS)
            .is_("visit_id", "null")
            .not_.is_("latitude", "null")
            .not_.is_("longitude", "null")
            .order("capture_time")
        )
        return [photo_from_row(row) for row in rows]

    def list_for_visits(self, visit_ids: list[str]) -> list[Photo]:
        """Return photos owned by the given visits."""
        if not visit_ids:
            return []
        rows = select_all(
            lambda: self.client.table("photos")
            .select(PHOTO_COLUMNS)
            .in_("visit_id", visit_ids)
            .order("capture_time")
        )
        return [photo_from_row(row) for row in rows]

    def get_many(self, photo_ids: list[str]) -> list[Photo]:
        """Return the photos with the given ids."""
        if not photo_ids:
            return []
        response = execute(
            self.client.table("photos").select(PHOTO_COLUMNS).in_("id", photo_ids)
        )
        return [photo_from_row(row) for row in response.data or []]

    def set_visit(self, photo_ids: list[str], visit_id: str | None) -> None:
        """Assign photos to a visit, or detach them when visit_id is None."""
        if not photo_ids:
            return
        execute(
            self.client.table("photos")
            .update({"visit_id": visit_id})
            .in_("id", photo_ids)
        )

    def list_with_all_labels(self) -> list[Photo]:
        """Return photos that carry raw classifier labels."""
        rows = select_all(
            lambda: self.client.table("photos")
            .select(PHOTO_COLUMNS)
            .not_.is_("all_labels", "null")
            .order("id")
        )
        return [photo_from_row(row) for row in rows]

    def update_classification(self, photos: list[Photo]) -> None:
        """Persist food detection fields of the given photos."""
        for photo in photos:
            execute(
                self.client.table("photos")
                .update(
                    {
                        "food_detected": photo.food_detected.to_optional_bool(),
                        "food_labels": labels_payload(photo.food_labels),
                        "food_confidence": photo.food_confidence,
                    }
                )
                .eq("id", photo.id)
            )

    def food_positive_visit_ids(self) -> set[str]:
        """Return ids of visits owning at least one food-positive photo."""
        rows = select_all(
            lambda: self.client.table("photos")
            .select("visit_id")
            .eq("food_detected", True)
            .not_.is_("visit_id", "null")
            .order("id")
        )
        return {str(row["visit_id"]) for row in rows}
