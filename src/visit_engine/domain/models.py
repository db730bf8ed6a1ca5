"""Domain models for restaurant visit discovery."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class FoodDetection(str, Enum):
    """Classification state of a single photo."""

    UNKNOWN = "unknown"
    FOOD_POSITIVE = "food"
    FOOD_NEGATIVE = "not_food"

    @classmethod
    def from_optional_bool(cls, value: bool | None) -> "FoodDetection":
        """Map the stored nullable flag onto the enum."""
        if value is None:
            return cls.UNKNOWN
        return cls.FOOD_POSITIVE if value else cls.FOOD_NEGATIVE

    def to_optional_bool(self) -> bool | None:
        """Map the enum back onto the stored nullable flag."""
        if self is FoodDetection.UNKNOWN:
            return None
        return self is FoodDetection.FOOD_POSITIVE


class VisitStatus(str, Enum):
    """Review status of a visit."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    REJECTED = "rejected"


@dataclass(frozen=True)
class FoodLabel:
    """A classifier label attached to a photo."""

    label: str
    confidence: float


@dataclass(frozen=True)
class Photo:
    """A geotagged photo record owned by at most one visit."""

    id: str
    uri: str
    capture_time: datetime
    latitude: float | None = None
    longitude: float | None = None
    visit_id: str | None = None
    media_type: str = "photo"
    food_detected: FoodDetection = FoodDetection.UNKNOWN
    food_labels: list[FoodLabel] = field(default_factory=list)
    all_labels: list[FoodLabel] | None = None
    food_confidence: float | None = None

    @property
    def has_location(self) -> bool:
        return self.latitude is not None and self.longitude is not None


@dataclass(frozen=True)
class Visit:
    """A time and space bounded cluster of photos representing one meal."""

    id: str
    status: VisitStatus
    start_time: datetime
    end_time: datetime
    center_lat: float
    center_lon: float
    photo_count: int = 0
    food_probable: bool = False
    restaurant_id: str | None = None
    suggested_restaurant_id: str | None = None
    award_at_visit: str | None = None
    calendar_event_id: str | None = None
    calendar_event_title: str | None = None
    calendar_event_location: str | None = None
    notes: str | None = None
    updated_at: datetime | None = None


@dataclass(frozen=True)
class ReferenceRestaurant:
    """Immutable entry of the curated award restaurant dataset."""

    id: str
    name: str
    latitude: float
    longitude: float
    address: str = ""
    location: str = ""
    cuisine: str = ""
    award: str = ""


@dataclass(frozen=True)
class ConfirmedRestaurant:
    """User-owned restaurant created the first time a visit is confirmed."""

    id: str
    name: str
    latitude: float
    longitude: float


@dataclass(frozen=True)
class RestaurantSuggestion:
    """A nearby reference restaurant proposed for a visit."""

    visit_id: str
    restaurant_id: str
    distance_meters: float


@dataclass(frozen=True)
class IgnoredLocation:
    """A place (home, office) whose visits are rejected automatically."""

    id: str
    name: str
    latitude: float
    longitude: float
    radius_meters: float
