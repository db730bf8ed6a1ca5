"""Nearby restaurant suggestions for visits."""

import logging
from dataclasses import dataclass, field
from functools import partial
from typing import Protocol

from visit_engine.domain.errors import NotFoundError, StoreError
from visit_engine.domain.geo import distance_meters
from visit_engine.domain.models import RestaurantSuggestion, VisitStatus
from visit_engine.domain.review import SuggestedRestaurant
from visit_engine.services.batching import (
    BatchProgress,
    CancelCheck,
    ProgressCallback,
    chunked,
    report,
    should_cancel,
)
from visit_engine.services.retry import RetryPolicy
from visit_engine.services.spatial_index import (
    IndexHandle,
    ReferenceRestaurantRepository,
    SpatialIndexService,
)
from visit_engine.services.visits import VisitRepository

_logger = logging.getLogger(__name__)


class SuggestionRepository(Protocol):
    """Persistence interface for visit suggestions."""

    def list_for_visits(self, visit_ids: list[str]) -> list[RestaurantSuggestion]:
        """Return stored suggestions for the given visits."""

    def replace_suggestions(
        self,
        visit_ids: list[str],
        suggestions: list[RestaurantSuggestion],
        primaries: dict[str, str | None],
    ) -> None:
        """Swap the suggestion rows and primary matches of visits as one unit."""


@dataclass(frozen=True)
class SuggestionPolicy:
    """Search radius, primary match threshold and result cap."""

    radius_meters: float = 200.0
    primary_meters: float = 100.0
    limit: int = 5


@dataclass(frozen=True)
class SuggestionResult:
    """Suggestions for one visit in ascending distance order."""

    visit_id: str
    suggestions: list[RestaurantSuggestion]
    primary: str | None = None


@dataclass
class SuggestionService:
    """Computes and stores nearest reference restaurants for visits."""

    spatial_index: SpatialIndexService
    visit_repository: VisitRepository
    suggestion_repository: SuggestionRepository
    reference_repository: ReferenceRestaurantRepository
    policy: SuggestionPolicy = field(default_factory=SuggestionPolicy)
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    batch_size: int = 500

    def compute_suggestions(
        self, visit_id: str, lat: float, lon: float
    ) -> SuggestionResult:
        """Suggest restaurants around a point using the current index."""
        return self.compute_with_handle(self.spatial_index.get(), visit_id, lat, lon)

    def compute_with_handle(
        self, handle: IndexHandle | None, visit_id: str, lat: float, lon: float
    ) -> SuggestionResult:
        """Suggest restaurants around a point using a pinned index handle."""
        positions = self.spatial_index.query(
            handle, lat, lon, self.policy.limit, self.policy.radius_meters
        )
        if handle is None or not positions:
            return SuggestionResult(visit_id=visit_id, suggestions=[])
        suggestions = []
        for position in positions:
            restaurant = handle.restaurant(position)
            suggestions.append(
                RestaurantSuggestion(
                    visit_id=visit_id,
                    restaurant_id=restaurant.id,
                    distance_meters=distance_meters(
                        lat, lon, restaurant.latitude, restaurant.longitude
                    ),
                )
            )
        primary = next(
            (
                suggestion.restaurant_id
                for suggestion in suggestions
                if suggestion.distance_meters <= self.policy.primary_meters
            ),
            None,
        )
        return SuggestionResult(
            visit_id=visit_id, suggestions=suggestions, primary=primary
        )

    def suggestions_for_visit(self, visit_id: str) -> list[SuggestedRestaurant]:
        """Return stored suggestions joined with their restaurants, nearest first."""
        if self.visit_repository.get(visit_id) is None:
            raise NotFoundError("visit", visit_id)
        stored = self.suggestion_repository.list_for_visits([visit_id])
        restaurants = {
            restaurant.id: restaurant
            for restaurant in self.reference_repository.get_many(
                [suggestion.restaurant_id for suggestion in stored]
            )
        }
        joined = [
            SuggestedRestaurant(
                restaurant=restaurants[suggestion.restaurant_id],
                distance_meters=suggestion.distance_meters,
            )
            for suggestion in stored
            if suggestion.restaurant_id in restaurants
        ]
        return sorted(joined, key=lambda item: item.distance_meters)

    async def recompute_pending(
        self,
        cancel: CancelCheck | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> BatchProgress:
        """Replace the suggestions of every pending visit, chunk by chunk.

        Each chunk is swapped as one unit. A failing chunk is counted and
        logged; later chunks still run.
        """
        visits = self.visit_repository.list_by_status(VisitStatus.PENDING)
        progress = BatchProgress(total=len(visits))
        handle = self.spatial_index.get()
        for chunk in chunked(visits, self.batch_size):
            if should_cancel(cancel):
                progress.cancelled = True
                break
            results = [
                self.compute_with_handle(
                    handle, visit.id, visit.center_lat, visit.center_lon
                )
                for visit in chunk
            ]
            replace = partial(
                self.suggestion_repository.replace_suggestions,
                [visit.id for visit in chunk],
                [suggestion for result in results for suggestion in result.suggestions],
                {result.visit_id: result.primary for result in results},
            )
            try:
                await self.retry.run(replace, action="replace_visit_suggestions")
            except (StoreError, RuntimeError):
                _logger.exception(
                    "Suggestion recompute failed for chunk: visits=%s", len(chunk)
                )
                progress.failed += len(chunk)
            else:
                progress.succeeded += len(chunk)
            progress.processed += len(chunk)
            report(progress, on_progress)

        progress.is_complete = not progress.cancelled
        report(progress, on_progress)
        _logger.info(
            "Suggestion recompute finished: total=%s succeeded=%s failed=%s "
            "cancelled=%s",
            progress.total,
            progress.succeeded,
            progress.failed,
            progress.cancelled,
        )
        return progress
