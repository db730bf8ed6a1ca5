"""Domain models and ordering rules for the review queue."""

from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from visit_engine.domain.calendar import calendar_title_matches
from visit_engine.domain.models import FoodDetection, Photo, ReferenceRestaurant, Visit

TIER_FOOD_AND_SUGGESTION = 1
TIER_SUGGESTION = 2
TIER_FOOD = 3
TIER_OTHER = 4

_TOP_FOOD_LABELS = 5
_PREVIEW_PHOTOS = 3


@dataclass(frozen=True)
class SuggestedRestaurant:
    """A reference restaurant with its distance from a visit."""

    restaurant: ReferenceRestaurant
    distance_meters: float


@dataclass
class AggregatedFoodLabel:
    """A food label merged across the photos of a visit."""

    label: str
    max_confidence: float
    photo_count: int


@dataclass(frozen=True)
class ReviewItem:
    """A pending visit prepared for human review."""

    visit: Visit
    tier: int
    calendar_matched: bool
    suggestions: list[SuggestedRestaurant]
    food_labels: list[AggregatedFoodLabel]
    preview_photos: list[str]
    has_unanalyzed_photos: bool


def priority_tier(visit: Visit, suggestion_count: int) -> int:
    """Coarse review bucket; lower is reviewed first."""
    has_suggestion = visit.suggested_restaurant_id is not None or suggestion_count > 0
    if visit.food_probable and has_suggestion:
        return TIER_FOOD_AND_SUGGESTION
    if has_suggestion:
        return TIER_SUGGESTION
    if visit.food_probable:
        return TIER_FOOD
    return TIER_OTHER


def is_calendar_matched(
    visit: Visit, suggestions: Sequence[SuggestedRestaurant]
) -> bool:
    """True when the linked calendar title names one of the suggestions."""
    if not visit.calendar_event_title or not suggestions:
        return False
    return any(
        calendar_title_matches(visit.calendar_event_title, suggestion.restaurant.name)
        for suggestion in suggestions
    )


def aggregate_food_labels(
    photos: Iterable[Photo], food_probable: bool
) -> list[AggregatedFoodLabel]:
    """Merge labels of food-positive photos into a top five by confidence.

    Visits not flagged as food-probable get no labels.
    """
    if not food_probable:
        return []
    merged: dict[str, AggregatedFoodLabel] = {}
    for photo in photos:
        if photo.food_detected is not FoodDetection.FOOD_POSITIVE:
            continue
        for label in photo.food_labels:
            existing = merged.get(label.label)
            if existing is None:
                merged[label.label] = AggregatedFoodLabel(
                    label=label.label,
                    max_confidence=label.confidence,
                    photo_count=1,
                )
            else:
                existing.max_confidence = max(existing.max_confidence, label.confidence)
                existing.photo_count += 1
    ranked = sorted(merged.values(), key=lambda item: item.max_confidence, reverse=True)
    return ranked[:_TOP_FOOD_LABELS]


_PREVIEW_ORDER = {
    FoodDetection.FOOD_POSITIVE: 0,
    FoodDetection.FOOD_NEGATIVE: 1,
    FoodDetection.UNKNOWN: 2,
}


def preview_photos(photos: Iterable[Photo]) -> list[str]:
    """Pick preview uris, food photos first, then by capture time."""
    ordered = sorted(
        photos,
        key=lambda photo: (_PREVIEW_ORDER[photo.food_detected], photo.capture_time),
    )
    return [photo.uri for photo in ordered[:_PREVIEW_PHOTOS]]


def order_for_review(items: Sequence[ReviewItem]) -> list[ReviewItem]:
    """Sort by tier then most recent first, then move calendar matches ahead.

    Both passes are stable, so the calendar partition never reorders items
    that share the same match status.
    """
    by_tier = sorted(
        items,
        key=lambda item: (item.tier, -item.visit.start_time.timestamp()),
    )
    matched = [item for item in by_tier if item.calendar_matched]
    unmatched = [item for item in by_tier if not item.calendar_matched]
    return matched + unmatched
