"""Pure merge planning and duplicate-visit grouping."""

from collections.abc import Sequence
from dataclasses import dataclass, replace
from datetime import datetime, timedelta

from visit_engine.domain.geo import centroid
from visit_engine.domain.models import (
    FoodDetection,
    Photo,
    RestaurantSuggestion,
    Visit,
)


@dataclass(frozen=True)
class MergePlan:
    """Complete set of writes that folds ``source_id`` into ``target``."""

    target: Visit
    source_id: str
    photo_ids_to_move: list[str]
    suggestions_to_add: list[RestaurantSuggestion]


@dataclass(frozen=True)
class MergeGroupVisit:
    """A visit member of a merge group."""

    id: str
    start_time: datetime
    end_time: datetime
    photo_count: int


@dataclass(frozen=True)
class MergeGroup:
    """Confirmed visits to one restaurant that are close in time."""

    restaurant_id: str
    restaurant_name: str
    visits: list[MergeGroupVisit]

    @property
    def total_photos(self) -> int:
        return sum(visit.photo_count for visit in self.visits)


def plan_merge(  # noqa: PLR0913
    target: Visit,
    source: Visit,
    target_photos: Sequence[Photo],
    source_photos: Sequence[Photo],
    target_suggestions: Sequence[RestaurantSuggestion],
    source_suggestions: Sequence[RestaurantSuggestion],
    now: datetime,
) -> MergePlan:
    """Compute the merged target visit and the rows that move with it.

    The centroid is the unweighted mean over every photo of the merged visit,
    not the mean of the two old centroids.
    """
    merged_photos = [*target_photos, *source_photos]
    center = centroid(
        (photo.latitude, photo.longitude)
        for photo in merged_photos
        if photo.has_location
    )
    center_lat, center_lon = center or (target.center_lat, target.center_lon)
    food_probable = (
        any(
            photo.food_detected is FoodDetection.FOOD_POSITIVE
            for photo in merged_photos
        )
        or target.food_probable
        or source.food_probable
    )
    merged = replace(
        target,
        start_time=min(target.start_time, source.start_time),
        end_time=max(target.end_time, source.end_time),
        center_lat=center_lat,
        center_lon=center_lon,
        photo_count=len(merged_photos),
        food_probable=food_probable,
        updated_at=now,
    )
    existing = {suggestion.restaurant_id for suggestion in target_suggestions}
    moved_suggestions = [
        RestaurantSuggestion(
            visit_id=target.id,
            restaurant_id=suggestion.restaurant_id,
            distance_meters=suggestion.distance_meters,
        )
        for suggestion in source_suggestions
        if suggestion.restaurant_id not in existing
    ]
    return MergePlan(
        target=merged,
        source_id=source.id,
        photo_ids_to_move=[photo.id for photo in source_photos],
        suggestions_to_add=moved_suggestions,
    )


def find_time_proximity_groups(
    visits: Sequence[Visit], max_gap: timedelta
) -> list[list[Visit]]:
    """Chain start-ordered visits while each starts within ``max_gap`` of the
    previous visit's end; a larger gap starts a new sub-group.
    """
    groups: list[list[Visit]] = []
    current: list[Visit] = []
    for visit in visits:
        if current and visit.start_time - current[-1].end_time > max_gap:
            groups.append(current)
            current = []
        current.append(visit)
    if current:
        groups.append(current)
    return groups


def build_merge_groups(
    visits: Sequence[Visit],
    restaurant_names: dict[str, str],
    max_gap: timedelta,
) -> list[MergeGroup]:
    """Group confirmed visits by restaurant and emit sub-groups of two or more."""
    by_restaurant: dict[str, list[Visit]] = {}
    for visit in visits:
        if visit.restaurant_id is None:
            continue
        by_restaurant.setdefault(visit.restaurant_id, []).append(visit)

    groups: list[MergeGroup] = []
    for restaurant_id in sorted(by_restaurant):
        ordered = sorted(
            by_restaurant[restaurant_id], key=lambda visit: (visit.start_time, visit.id)
        )
        for sub_group in find_time_proximity_groups(ordered, max_gap):
            if len(sub_group) < 2:
                continue
            groups.append(
                MergeGroup(
                    restaurant_id=restaurant_id,
                    restaurant_name=restaurant_names.get(restaurant_id, ""),
                    visits=[
                        MergeGroupVisit(
                            id=visit.id,
                            start_time=visit.start_time,
                            end_time=visit.end_time,
                            photo_count=visit.photo_count,
                        )
                        for visit in sub_group
                    ],
                )
            )
    return groups
