"""Write payloads and derived state for visit lifecycle operations."""

from collections.abc import Sequence
from dataclasses import dataclass, replace
from datetime import datetime

from visit_engine.domain.geo import centroid
from visit_engine.domain.models import (
    ConfirmedRestaurant,
    FoodDetection,
    Photo,
    RestaurantSuggestion,
    Visit,
)


@dataclass(frozen=True)
class VisitConfirmation:
    """Links a visit to a restaurant, creating the restaurant on first use."""

    visit_id: str
    restaurant: ConfirmedRestaurant
    award_at_visit: str | None = None


@dataclass(frozen=True)
class DiscoveredVisit:
    """A new pending visit with the photos it claims and its suggestions."""

    visit: Visit
    photo_ids: list[str]
    suggestions: list[RestaurantSuggestion]


@dataclass(frozen=True)
class PhotoReassignment:
    """Photos moving to a visit, or detached when visit_id is None.

    ``visits`` holds the re-derived state of every visit the move touches.
    """

    photo_ids: list[str]
    visit_id: str | None
    visits: list[Visit]


def rederive_from_photos(visit: Visit, photos: Sequence[Photo], now: datetime) -> Visit:
    """Recompute count, time range, centroid and food flag from owned photos.

    A visit left without photos keeps its time range and centroid.
    """
    if not photos:
        return replace(visit, photo_count=0, food_probable=False, updated_at=now)
    times = [photo.capture_time for photo in photos]
    center = centroid(
        (photo.latitude, photo.longitude) for photo in photos if photo.has_location
    )
    center_lat, center_lon = center or (visit.center_lat, visit.center_lon)
    return replace(
        visit,
        start_time=min(times),
        end_time=max(times),
        center_lat=center_lat,
        center_lon=center_lon,
        photo_count=len(photos),
        food_probable=any(
            photo.food_detected is FoodDetection.FOOD_POSITIVE for photo in photos
        ),
        updated_at=now,
    )


def plan_photo_reassignment(
    visits: Sequence[Visit],
    photos: Sequence[Photo],
    photo_ids: Sequence[str],
    visit_id: str | None,
    now: datetime,
) -> PhotoReassignment:
    """Re-derive each visit as if the photos already had their new owner."""
    moving = set(photo_ids)
    after = [
        replace(photo, visit_id=visit_id) if photo.id in moving else photo
        for photo in photos
    ]
    return PhotoReassignment(
        photo_ids=list(photo_ids),
        visit_id=visit_id,
        visits=[
            rederive_from_photos(
                visit, [photo for photo in after if photo.visit_id == visit.id], now
            )
            for visit in visits
        ],
    )
