"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from supabase import create_client

from visit_engine.adapters.supabase_ignored_location_repository import (
    SupabaseIgnoredLocationRepository,
)
from visit_engine.adapters.supabase_photo_repository import SupabasePhotoRepository
from visit_engine.adapters.supabase_restaurant_repository import (
    SupabaseConfirmedRestaurantRepository,
    SupabaseReferenceRestaurantRepository,
)
from visit_engine.adapters.supabase_suggestion_repository import (
    SupabaseSuggestionRepository,
)
from visit_engine.adapters.supabase_visit_repository import SupabaseVisitRepository
from visit_engine.config import Settings
from visit_engine.services.calendar import CalendarService
from visit_engine.services.discovery import VisitDiscoveryService
from visit_engine.services.food import FoodService
from visit_engine.services.merge import MergeService
from visit_engine.services.review import ReviewService
from visit_engine.services.spatial_index import (
    ReferenceRestaurantService,
    SpatialIndexService,
)
from visit_engine.services.suggestions import SuggestionService
from visit_engine.services.visits import VisitService


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    spatial_index: SpatialIndexService
    reference_restaurant_service: ReferenceRestaurantService
    suggestion_service: SuggestionService
    discovery_service: VisitDiscoveryService
    review_service: ReviewService
    merge_service: MergeService
    visit_service: VisitService
    food_service: FoodService
    calendar_service: CalendarService
    close_resources: Callable[[], Awaitable[None]]


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    policy = resolved_settings.policy()
    supabase_client = create_client(
        resolved_settings.supabase_url, resolved_settings.supabase_service_key
    )
    visit_repository = SupabaseVisitRepository(supabase_client)
    photo_repository = SupabasePhotoRepository(supabase_client)
    suggestion_repository = SupabaseSuggestionRepository(supabase_client)
    reference_repository = SupabaseReferenceRestaurantRepository(supabase_client)
    confirmed_repository = SupabaseConfirmedRestaurantRepository(supabase_client)
    ignored_location_repository = SupabaseIgnoredLocationRepository(supabase_client)

    spatial_index = SpatialIndexService(reference_repository.list_all)
    suggestion_service = SuggestionService(
        spatial_index=spatial_index,
        visit_repository=visit_repository,
        suggestion_repository=suggestion_repository,
        reference_repository=reference_repository,
        policy=policy.suggestion,
        retry=policy.retry,
        batch_size=policy.batch_size,
    )

    async def close_resources() -> None:
        spatial_index.invalidate()

    return AppContainer(
        settings=resolved_settings,
        spatial_index=spatial_index,
        reference_restaurant_service=ReferenceRestaurantService(
            repository=reference_repository, spatial_index=spatial_index
        ),
        suggestion_service=suggestion_service,
        discovery_service=VisitDiscoveryService(
            photo_repository=photo_repository,
            visit_repository=visit_repository,
            suggestion_service=suggestion_service,
            cluster_policy=policy.cluster,
            retry=policy.retry,
            batch_size=policy.batch_size,
        ),
        review_service=ReviewService(
            visit_repository=visit_repository,
            photo_repository=photo_repository,
            suggestion_repository=suggestion_repository,
            reference_repository=reference_repository,
        ),
        merge_service=MergeService(
            visit_repository=visit_repository,
            photo_repository=photo_repository,
            suggestion_repository=suggestion_repository,
            restaurant_repository=confirmed_repository,
            merge_gap=policy.merge_gap,
            retry=policy.retry,
        ),
        visit_service=VisitService(
            visit_repository=visit_repository,
            photo_repository=photo_repository,
            restaurant_repository=confirmed_repository,
            ignored_location_repository=ignored_location_repository,
            retry=policy.retry,
            batch_size=policy.batch_size,
        ),
        food_service=FoodService(
            photo_repository=photo_repository,
            visit_repository=visit_repository,
            keywords=policy.food_keywords,
            batch_size=policy.batch_size,
        ),
        calendar_service=CalendarService(
            visit_repository=visit_repository, buffer=policy.calendar_buffer
        ),
        close_resources=close_resources,
    )
