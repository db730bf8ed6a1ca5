"""Shared test fixtures."""

from dataclasses import dataclass, field, replace
from datetime import UTC, datetime, timedelta

import pytest

from visit_engine.config import Settings
from visit_engine.containers import AppContainer
from visit_engine.domain.errors import StoreBusyError, StoreError
from visit_engine.domain.merge import MergePlan
from visit_engine.domain.models import (
    ConfirmedRestaurant,
    FoodDetection,
    IgnoredLocation,
    Photo,
    ReferenceRestaurant,
    RestaurantSuggestion,
    Visit,
    VisitStatus,
)
from visit_engine.domain.visits import (
    DiscoveredVisit,
    PhotoReassignment,
    VisitConfirmation,
)
from visit_engine.services.calendar import CalendarService
from visit_engine.services.discovery import VisitDiscoveryService
from visit_engine.services.food import FoodService
from visit_engine.services.merge import MergeService
from visit_engine.services.retry import RetryPolicy
from visit_engine.services.review import ReviewService
from visit_engine.services.spatial_index import (
    ReferenceRestaurantRepository,
    ReferenceRestaurantService,
    SpatialIndexService,
)
from visit_engine.services.suggestions import SuggestionRepository, SuggestionService
from visit_engine.services.visits import (
    ConfirmedRestaurantRepository,
    IgnoredLocationRepository,
    PhotoRepository,
    VisitRepository,
    VisitService,
)

BASE_TIME = datetime(2024, 5, 17, 19, 0, tzinfo=UTC)
NO_WAIT = RetryPolicy(attempts=5, base_delay_seconds=0)


def at(minutes: float) -> datetime:
    """Timestamp relative to a fixed evening."""
    return BASE_TIME + timedelta(minutes=minutes)


def make_photo(  # noqa: PLR0913
    photo_id: str,
    minutes: float,
    lat: float | None = 48.8566,
    lon: float | None = 2.3522,
    visit_id: str | None = None,
    food: FoodDetection = FoodDetection.UNKNOWN,
    **kwargs: object,
) -> Photo:
    return Photo(
        id=photo_id,
        uri=f"file:///{photo_id}.jpg",
        capture_time=at(minutes),
        latitude=lat,
        longitude=lon,
        visit_id=visit_id,
        food_detected=food,
        **kwargs,
    )


def make_visit(
    visit_id: str,
    start_minutes: float,
    end_minutes: float | None = None,
    status: VisitStatus = VisitStatus.PENDING,
    **kwargs: object,
) -> Visit:
    fields: dict[str, object] = {"center_lat": 48.8566, "center_lon": 2.3522}
    fields.update(kwargs)
    return Visit(
        id=visit_id,
        status=status,
        start_time=at(start_minutes),
        end_time=at(end_minutes if end_minutes is not None else start_minutes),
        **fields,
    )


@dataclass
class Busy:
    """Raises StoreBusyError for the first ``times`` calls of an action."""

    times: int = 0
    calls: int = 0

    def hit(self) -> None:
        self.calls += 1
        if self.calls <= self.times:
            raise StoreBusyError("database is locked")


@dataclass
class InMemoryReferenceRestaurantRepository(ReferenceRestaurantRepository):
    """In-memory reference restaurant set."""

    restaurants: dict[str, ReferenceRestaurant] = field(default_factory=dict)
    list_calls: int = 0

    def list_all(self) -> list[ReferenceRestaurant]:
        self.list_calls += 1
        return list(self.restaurants.values())

    def get_many(self, restaurant_ids: list[str]) -> list[ReferenceRestaurant]:
        return [
            self.restaurants[restaurant_id]
            for restaurant_id in restaurant_ids
            if restaurant_id in self.restaurants
        ]

    def upsert_many(self, restaurants: list[ReferenceRestaurant]) -> None:
        for restaurant in restaurants:
            self.restaurants[restaurant.id] = restaurant

    def count(self) -> int:
        return len(self.restaurants)


@dataclass
class InMemoryConfirmedRestaurantRepository(ConfirmedRestaurantRepository):
    """In-memory confirmed restaurants."""

    restaurants: dict[str, ConfirmedRestaurant] = field(default_factory=dict)

    def get_many(self, restaurant_ids: list[str]) -> list[ConfirmedRestaurant]:
        return [
            self.restaurants[restaurant_id]
            for restaurant_id in restaurant_ids
            if restaurant_id in self.restaurants
        ]

    def upsert(self, restaurant: ConfirmedRestaurant) -> None:
        self.restaurants.setdefault(restaurant.id, restaurant)


@dataclass
class InMemoryIgnoredLocationRepository(IgnoredLocationRepository):
    """In-memory ignored locations."""

    locations: list[IgnoredLocation] = field(default_factory=list)

    def list_all(self) -> list[IgnoredLocation]:
        return list(self.locations)


@dataclass
class InMemoryPhotoRepository(PhotoRepository):
    """In-memory photo store."""

    photos: dict[str, Photo] = field(default_factory=dict)
    fail_classification_ids: set[str] = field(default_factory=set)

    def add(self, *photos: Photo) -> None:
        for photo in photos:
            self.photos[photo.id] = photo

    def list_unassigned_geotagged(self) -> list[Photo]:
        return [
            photo
            for photo in self.photos.values()
            if photo.visit_id is None and photo.has_location
        ]

    def list_for_visits(self, visit_ids: list[str]) -> list[Photo]:
        wanted = set(visit_ids)
        return [photo for photo in self.photos.values() if photo.visit_id in wanted]

    def get_many(self, photo_ids: list[str]) -> list[Photo]:
        return [self.photos[pid] for pid in photo_ids if pid in self.photos]

    def set_visit(self, photo_ids: list[str], visit_id: str | None) -> None:
        for photo_id in photo_ids:
            self.photos[photo_id] = replace(self.photos[photo_id], visit_id=visit_id)

    def list_with_all_labels(self) -> list[Photo]:
        return [p for p in self.photos.values() if p.all_labels is not None]

    def update_classification(self, photos: list[Photo]) -> None:
        if any(photo.id in self.fail_classification_ids for photo in photos):
            raise StoreError("classification write rejected")
        for photo in photos:
            self.photos[photo.id] = photo

    def food_positive_visit_ids(self) -> set[str]:
        return {
            photo.visit_id
            for photo in self.photos.values()
            if photo.visit_id is not None
            and photo.food_detected is FoodDetection.FOOD_POSITIVE
        }


@dataclass
class InMemorySuggestionRepository(SuggestionRepository):
    """In-memory suggestion rows; primaries are written onto the visits."""

    visits: "InMemoryVisitRepository"
    rows: list[RestaurantSuggestion] = field(default_factory=list)
    busy: Busy = field(default_factory=Busy)
    fail_visit_ids: set[str] = field(default_factory=set)
    replace_calls: int = 0

    def list_for_visits(self, visit_ids: list[str]) -> list[RestaurantSuggestion]:
        wanted = set(visit_ids)
        return [row for row in self.rows if row.visit_id in wanted]

    def replace_suggestions(
        self,
        visit_ids: list[str],
        suggestions: list[RestaurantSuggestion],
        primaries: dict[str, str | None],
    ) -> None:
        self.replace_calls += 1
        self.busy.hit()
        if self.fail_visit_ids.intersection(visit_ids):
            raise StoreError("suggestion write rejected")
        affected = set(visit_ids)
        self.rows = [row for row in self.rows if row.visit_id not in affected]
        self.rows.extend(suggestions)
        for visit_id in visit_ids:
            visit = self.visits.visits.get(visit_id)
            if visit is not None:
                self.visits.visits[visit_id] = replace(
                    visit, suggested_restaurant_id=primaries.get(visit_id)
                )


@dataclass
class InMemoryVisitRepository(VisitRepository):
    """In-memory visit store whose multi-row writes apply all or nothing."""

    photos: InMemoryPhotoRepository
    restaurants: InMemoryConfirmedRestaurantRepository
    visits: dict[str, Visit] = field(default_factory=dict)
    suggestions: InMemorySuggestionRepository | None = None
    busy: Busy = field(default_factory=Busy)
    fail_merge_sources: set[str] = field(default_factory=set)
    fail_save_photo_ids: set[str] = field(default_factory=set)
    fail_reassign: bool = False

    def add(self, *visits: Visit) -> None:
        for visit in visits:
            self.visits[visit.id] = visit

    def get(self, visit_id: str) -> Visit | None:
        return self.visits.get(visit_id)

    def get_many(self, visit_ids: list[str]) -> list[Visit]:
        return [self.visits[vid] for vid in visit_ids if vid in self.visits]

    def list_all(self) -> list[Visit]:
        return list(self.visits.values())

    def list_by_status(self, status: VisitStatus) -> list[Visit]:
        return [visit for visit in self.visits.values() if visit.status is status]

    def insert(self, visit: Visit) -> None:
        self.visits[visit.id] = visit

    def update(self, visit: Visit) -> None:
        self.visits[visit.id] = visit

    def set_status(self, visit_ids: list[str], status: VisitStatus) -> None:
        for visit_id in visit_ids:
            self.visits[visit_id] = replace(self.visits[visit_id], status=status)

    def set_food_probable(self, visit_ids: list[str], value: bool) -> None:
        for visit_id in visit_ids:
            self.visits[visit_id] = replace(
                self.visits[visit_id], food_probable=value
            )

    def save_discovered(self, visits: list[DiscoveredVisit]) -> None:
        self.busy.hit()
        if any(not self.fail_save_photo_ids.isdisjoint(i.photo_ids) for i in visits):
            raise StoreError("visit insert rejected")
        duplicates = [item.visit.id for item in visits if item.visit.id in self.visits]
        if duplicates:
            raise StoreError(f"duplicate visit id: {duplicates[0]}")
        for item in visits:
            self.visits[item.visit.id] = item.visit
            self.photos.set_visit(item.photo_ids, item.visit.id)
            if self.suggestions is not None:
                self.suggestions.rows.extend(item.suggestions)

    def apply_merge(self, plan: MergePlan) -> None:
        self.busy.hit()
        if plan.source_id in self.fail_merge_sources:
            raise StoreError(f"merge of {plan.source_id} rejected")
        self.visits[plan.target.id] = plan.target
        self.photos.set_visit(plan.photo_ids_to_move, plan.target.id)
        if self.suggestions is not None:
            self.suggestions.rows = [
                row for row in self.suggestions.rows if row.visit_id != plan.source_id
            ]
            self.suggestions.rows.extend(plan.suggestions_to_add)
        del self.visits[plan.source_id]

    def reassign_photos(self, reassignment: PhotoReassignment) -> None:
        self.busy.hit()
        if self.fail_reassign:
            raise StoreError("photo reassignment rejected")
        self.photos.set_visit(reassignment.photo_ids, reassignment.visit_id)
        for visit in reassignment.visits:
            self.visits[visit.id] = visit

    def confirm_many(self, confirmations: list[VisitConfirmation]) -> None:
        self.busy.hit()
        for confirmation in confirmations:
            self.restaurants.upsert(confirmation.restaurant)
            self.visits[confirmation.visit_id] = replace(
                self.visits[confirmation.visit_id],
                status=VisitStatus.CONFIRMED,
                restaurant_id=confirmation.restaurant.id,
                award_at_visit=confirmation.award_at_visit,
            )


@dataclass
class Store:
    """All in-memory repositories wired together."""

    photos: InMemoryPhotoRepository
    visits: InMemoryVisitRepository
    suggestions: InMemorySuggestionRepository
    references: InMemoryReferenceRestaurantRepository
    restaurants: InMemoryConfirmedRestaurantRepository
    ignored: InMemoryIgnoredLocationRepository


def build_store() -> Store:
    photos = InMemoryPhotoRepository()
    restaurants = InMemoryConfirmedRestaurantRepository()
    visits = InMemoryVisitRepository(photos=photos, restaurants=restaurants)
    suggestions = InMemorySuggestionRepository(visits=visits)
    visits.suggestions = suggestions
    return Store(
        photos=photos,
        visits=visits,
        suggestions=suggestions,
        references=InMemoryReferenceRestaurantRepository(),
        restaurants=restaurants,
        ignored=InMemoryIgnoredLocationRepository(),
    )


def build_services(store: Store, settings: Settings) -> AppContainer:
    policy = settings.policy()
    retry = NO_WAIT
    spatial_index = SpatialIndexService(store.references.list_all)
    suggestion_service = SuggestionService(
        spatial_index=spatial_index,
        visit_repository=store.visits,
        suggestion_repository=store.suggestions,
        reference_repository=store.references,
        policy=policy.suggestion,
        retry=retry,
        batch_size=policy.batch_size,
    )

    async def close_resources() -> None:
        return None

    return AppContainer(
        settings=settings,
        spatial_index=spatial_index,
        reference_restaurant_service=ReferenceRestaurantService(
            repository=store.references, spatial_index=spatial_index
        ),
        suggestion_service=suggestion_service,
        discovery_service=VisitDiscoveryService(
            photo_repository=store.photos,
            visit_repository=store.visits,
            suggestion_service=suggestion_service,
            cluster_policy=policy.cluster,
            retry=retry,
            batch_size=policy.batch_size,
        ),
        review_service=ReviewService(
            visit_repository=store.visits,
            photo_repository=store.photos,
            suggestion_repository=store.suggestions,
            reference_repository=store.references,
        ),
        merge_service=MergeService(
            visit_repository=store.visits,
            photo_repository=store.photos,
            suggestion_repository=store.suggestions,
            restaurant_repository=store.restaurants,
            merge_gap=policy.merge_gap,
            retry=retry,
        ),
        visit_service=VisitService(
            visit_repository=store.visits,
            photo_repository=store.photos,
            restaurant_repository=store.restaurants,
            ignored_location_repository=store.ignored,
            retry=retry,
            batch_size=policy.batch_size,
        ),
        food_service=FoodService(
            photo_repository=store.photos,
            visit_repository=store.visits,
            keywords=policy.food_keywords,
            batch_size=policy.batch_size,
        ),
        calendar_service=CalendarService(
            visit_repository=store.visits, buffer=policy.calendar_buffer
        ),
        close_resources=close_resources,
    )


@pytest.fixture
def settings() -> Settings:
    return Settings(
        supabase_url="https://example.supabase.co",
        supabase_service_key="service-key",
        admin_token="admin-token",
    )


@pytest.fixture
def store() -> Store:
    return build_store()


@pytest.fixture
def container(settings: Settings, store: Store) -> AppContainer:
    return build_services(store, settings)
