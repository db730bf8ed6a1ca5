"""Supabase repository for visit suggestions."""

from dataclasses import dataclass

from supabase import Client

from visit_engine.adapters.supabase_errors import execute, select_all
from visit_engine.adapters.supabase_rows import suggestion_from_row, suggestion_to_row
from visit_engine.domain.models import RestaurantSuggestion
from visit_engine.services.suggestions import SuggestionRepository


@dataclass
class SupabaseSuggestionRepository(SuggestionRepository):
    """Supabase implementation for suggestion rows."""

    client: Client

    def list_for_visits(self, visit_ids: list[str]) -> list[RestaurantSuggestion]:
        """Return stored suggestions for the given visits."""
        if not visit_ids:
            return []
        rows = select_all(
            lambda: self.client.table("visit_suggestions")
            .select("visit_id, restaurant_id, distance_meters")
            .in_("visit_id", visit_ids)
            .order("distance_meters")
        )
        return [suggestion_from_row(row) for row in rows]

    def replace_suggestions(
        self,
        visit_ids: list[str],
        suggestions: list[RestaurantSuggestion],
        primaries: dict[str, str | None],
    ) -> None:
        """Swap the suggestion rows and primary matches of visits as one unit."""
        if not visit_ids:
            return
        execute(
            self.client.rpc(
                "replace_visit_suggestions",
                {
                    "p_visit_ids": visit_ids,
                    "p_suggestions": [suggestion_to_row(s) for s in suggestions],
                    "p_primaries": [
                        {
                            "visit_id": visit_id,
                            "restaurant_id": primaries.get(visit_id),
                        }
                        for visit_id in visit_ids
                    ],
                },
            )
        )
