"""Review queue assembly."""

from dataclasses import dataclass

from visit_engine.domain.models import (
    FoodDetection,
    Photo,
    RestaurantSuggestion,
    VisitStatus,
)
from visit_engine.domain.review import (
    ReviewItem,
    SuggestedRestaurant,
    aggregate_food_labels,
    is_calendar_matched,
    order_for_review,
    preview_photos,
    priority_tier,
)
from visit_engine.services.spatial_index import ReferenceRestaurantRepository
from visit_engine.services.suggestions import SuggestionRepository
from visit_engine.services.visits import PhotoRepository, VisitRepository


@dataclass
class ReviewService:
    """Orders pending visits so the likeliest restaurant meals come first."""

    visit_repository: VisitRepository
    photo_repository: PhotoRepository
    suggestion_repository: SuggestionRepository
    reference_repository: ReferenceRestaurantRepository

    def pending_for_review(self) -> list[ReviewItem]:
        """Return pending visits with suggestions, labels and previews."""
        visits = self.visit_repository.list_by_status(VisitStatus.PENDING)
        if not visits:
            return []
        visit_ids = [visit.id for visit in visits]
        suggestions_by_visit = _group_suggestions(
            self.suggestion_repository.list_for_visits(visit_ids)
        )
        restaurant_ids = sorted(
            {
                suggestion.restaurant_id
                for suggestions in suggestions_by_visit.values()
                for suggestion in suggestions
            }
        )
        restaurants = {
            restaurant.id: restaurant
            for restaurant in self.reference_repository.get_many(restaurant_ids)
        }
        photos_by_visit = _group_photos(
            self.photo_repository.list_for_visits(visit_ids)
        )

        items = []
        for visit in visits:
            suggested = sorted(
                (
                    SuggestedRestaurant(
                        restaurant=restaurants[suggestion.restaurant_id],
                        distance_meters=suggestion.distance_meters,
                    )
                    for suggestion in suggestions_by_visit.get(visit.id, [])
                    if suggestion.restaurant_id in restaurants
                ),
                key=lambda item: item.distance_meters,
            )
            photos = photos_by_visit.get(visit.id, [])
            items.append(
                ReviewItem(
                    visit=visit,
                    tier=priority_tier(visit, len(suggested)),
                    calendar_matched=is_calendar_matched(visit, suggested),
                    suggestions=suggested,
                    food_labels=aggregate_food_labels(photos, visit.food_probable),
                    preview_photos=preview_photos(photos),
                    has_unanalyzed_photos=any(
                        photo.food_detected is FoodDetection.UNKNOWN
                        for photo in photos
                    ),
                )
            )
        return order_for_review(items)


def _group_suggestions(
    suggestions: list[RestaurantSuggestion],
) -> dict[str, list[RestaurantSuggestion]]:
    grouped: dict[str, list[RestaurantSuggestion]] = {}
    for suggestion in suggestions:
        grouped.setdefault(suggestion.visit_id, []).append(suggestion)
    return grouped


def _group_photos(photos: list[Photo]) -> dict[str, list[Photo]]:
    grouped: dict[str, list[Photo]] = {}
    for photo in photos:
        if photo.visit_id is not None:
            grouped.setdefault(photo.visit_id, []).append(photo)
    return grouped
