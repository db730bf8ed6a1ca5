"""Supabase repository for visits."""

from dataclasses import dataclass

from supabase import Client

from visit_engine.adapters.supabase_errors import execute, select_all
from visit_engine.adapters.supabase_rows import (
    VISIT_COLUMNS,
    confirmed_to_row,
    suggestion_to_row,
    visit_from_row,
    visit_to_row,
)
from visit_engine.domain.merge import MergePlan
from visit_engine.domain.models import Visit, VisitStatus
from visit_engine.domain.visits import (
    DiscoveredVisit,
    PhotoReassignment,
    VisitConfirmation,
)
from visit_engine.services.visits import VisitRepository

_UPDATABLE_FIELDS = (
    "status",
    "start_time",
    "end_time",
    "center_lat",
    "center_lon",
    "photo_count",
    "food_probable",
    "restaurant_id",
    "suggested_restaurant_id",
    "award_at_visit",
    "calendar_event_id",
    "calendar_event_title",
    "calendar_event_location",
    "notes",
    "updated_at",
)


@dataclass
class SupabaseVisitRepository(VisitRepository):
    """Supabase implementation for visit persistence.

    Multi-row writes that must be all-or-nothing go through database
    functions so that each one runs in a single transaction.
    """

    client: Client

    def get(self, visit_id: str) -> Visit | None:
        """Return a visit by id."""
        response = execute(
            self.client.table("visits")
            .select(VISIT_COLUMNS)
            .eq("id", visit_id)
            .limit(1)
        )
        if not response.data:
            return None
        return visit_from_row(response.data[0])

    def get_many(self, visit_ids: list[str]) -> list[Visit]:
        """Return the visits with the given ids."""
        if not visit_ids:
            return []
        response = execute(
            self.client.table("visits").select(VISIT_COLUMNS).in_("id", visit_ids)
        )
        return [visit_from_row(row) for row in response.data or []]

    def list_all(self) -> list[Visit]:
        """Return every visit."""
        rows = select_all(
            lambda: self.client.table("visits").select(VISIT_COLUMNS).order("id")
        )
        return [visit_from_row(row) for row in rows]

    def list_by_status(self, status: VisitStatus) -> list[Visit]:
        """Return visits with the given status."""
        rows = select_all(
            lambda: self.client.table("visits")
            .select(VISIT_COLUMNS)
            .eq("status", status.value)
            .order("id")
        )
        return [visit_from_row(row) for row in rows]

    def insert(self, visit: Visit) -> None:
        """Insert a single visit."""
        response = execute(self.client.table("visits").insert(visit_to_row(visit)))
        if not response.data:
            raise RuntimeError("Failed to create visit")

    def update(self, visit: Visit) -> None:
        """Overwrite the mutable fields of a visit."""
        row = visit_to_row(visit)
        execute(
            self.client.table("visits")
            .update({name: row[name] for name in _UPDATABLE_FIELDS})
            .eq("id", visit.id)
        )

    def set_status(self, visit_ids: list[str], status: VisitStatus) -> None:
        """Set the status of the given visits."""
        if not visit_ids:
            return
        execute(
            self.client.table("visits")
            .update({"status": status.value})
            .in_("id", visit_ids)
        )

    def set_food_probable(self, visit_ids: list[str], value: bool) -> None:
        """Set the food flag of the given visits."""
        if not visit_ids:
            return
        execute(
            self.client.table("visits")
            .update({"food_probable": value})
            .in_("id", visit_ids)
        )

    def save_discovered(self, visits: list[DiscoveredVisit]) -> None:
        """Insert visits, claim their photos and store suggestions as one unit."""
        if not visits:
            return
        payload = [
            {
                "visit": visit_to_row(item.visit),
                "photo_ids": item.photo_ids,
                "suggestions": [suggestion_to_row(s) for s in item.suggestions],
            }
            for item in visits
        ]
        execute(self.client.rpc("save_discovered_visits", {"p_visits": payload}))

    def apply_merge(self, plan: MergePlan) -> None:
        """Apply a merge plan as one unit."""
        execute(
            self.client.rpc(
                "apply_visit_merge",
                {
                    "p_target": visit_to_row(plan.target),
                    "p_source_id": plan.source_id,
                    "p_photo_ids": plan.photo_ids_to_move,
                    "p_suggestions": [
                        suggestion_to_row(s) for s in plan.suggestions_to_add
                    ],
                },
            )
        )

    def confirm_many(self, confirmations: list[VisitConfirmation]) -> None:
        """Create missing restaurants and confirm visits as one unit."""
        if not confirmations:
            return
        payload = [
            {
                "visit_id": item.visit_id,
                "restaurant": confirmed_to_row(item.restaurant),
                "award_at_visit": item.award_at_visit,
            }
            for item in confirmations
        ]
        execute(self.client.rpc("confirm_visits", {"p_confirmations": payload}))

    def reassign_photos(self, reassignment: PhotoReassignment) -> None:
        """Move photos and write the re-derived visits as one unit."""
        execute(
            self.client.rpc(
                "reassign_visit_photos",
                {
                    "p_photo_ids": reassignment.photo_ids,
                    "p_visit_id": reassignment.visit_id,
                    "p_visits": [visit_to_row(v) for v in reassignment.visits],
                },
            )
        )
