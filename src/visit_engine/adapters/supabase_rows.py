"""Row mapping between Supabase tables and domain models."""

from datetime import datetime
from typing import Any

from visit_engine.domain.models import (
    ConfirmedRestaurant,
    FoodDetection,
    FoodLabel,
    Photo,
    ReferenceRestaurant,
    RestaurantSuggestion,
    Visit,
    VisitStatus,
)

VISIT_COLUMNS = (
    "id, status, start_time, end_time, center_lat, center_lon, photo_count, "
    "food_probable, restaurant_id, suggested_restaurant_id, award_at_visit, "
    "calendar_event_id, calendar_event_title, calendar_event_location, notes, "
    "updated_at"
)
PHOTO_COLUMNS = (
    "id, uri, capture_time, latitude, longitude, visit_id, media_type, "
    "food_detected, food_labels, all_labels, food_confidence"
)
REFERENCE_COLUMNS = "id, name, latitude, longitude, address, location, cuisine, award"


def _parse_time(value: Any) -> datetime | None:
    if value is None:
        return None
    return datetime.fromisoformat(str(value))


def _optional_float(value: Any) -> float | None:
    return None if value is None else float(value)


def _labels(raw: Any) -> list[FoodLabel]:
    return [
        FoodLabel(label=str(item["label"]), confidence=float(item["confidence"]))
        for item in raw or []
    ]


def labels_payload(labels: list[FoodLabel] | None) -> list[dict[str, Any]] | None:
    if not labels:
        return None
    return [{"label": label.label, "confidence": label.confidence} for label in labels]


def visit_from_row(row: dict[str, Any]) -> Visit:
    return Visit(
        id=str(row["id"]),
        status=VisitStatus(row["status"]),
        start_time=datetime.fromisoformat(str(row["start_time"])),
        end_time=datetime.fromisoformat(str(row["end_time"])),
        center_lat=float(row["center_lat"]),
        center_lon=float(row["center_lon"]),
        photo_count=int(row.get("photo_count") or 0),
        food_probable=bool(row.get("food_probable")),
        restaurant_id=row.get("restaurant_id"),
        suggested_restaurant_id=row.get("suggested_restaurant_id"),
        award_at_visit=row.get("award_at_visit"),
        calendar_event_id=row.get("calendar_event_id"),
        calendar_event_title=row.get("calendar_event_title"),
        calendar_event_location=row.get("calendar_event_location"),
        notes=row.get("notes"),
        updated_at=_parse_time(row.get("updated_at")),
    )


def visit_to_row(visit: Visit) -> dict[str, Any]:
    return {
        "id": visit.id,
        "status": visit.status.value,
        "start_time": visit.start_time.isoformat(),
        "end_time": visit.end_time.isoformat(),
        "center_lat": visit.center_lat,
        "center_lon": visit.center_lon,
        "photo_count": visit.photo_count,
        "food_probable": visit.food_probable,
        "restaurant_id": visit.restaurant_id,
        "suggested_restaurant_id": visit.suggested_restaurant_id,
        "award_at_visit": visit.award_at_visit,
        "calendar_event_id": visit.calendar_event_id,
        "calendar_event_title": visit.calendar_event_title,
        "calendar_event_location": visit.calendar_event_location,
        "notes": visit.notes,
        "updated_at": visit.updated_at.isoformat() if visit.updated_at else None,
    }


def photo_from_row(row: dict[str, Any]) -> Photo:
    all_labels = row.get("all_labels")
    return Photo(
        id=str(row["id"]),
        uri=str(row.get("uri") or ""),
        capture_time=datetime.fromisoformat(str(row["capture_time"])),
        latitude=_optional_float(row.get("latitude")),
        longitude=_optional_float(row.get("longitude")),
        visit_id=row.get("visit_id"),
        media_type=str(row.get("media_type") or "photo"),
        food_detected=FoodDetection.from_optional_bool(row.get("food_detected")),
        food_labels=_labels(row.get("food_labels")),
        all_labels=None if all_labels is None else _labels(all_labels),
        food_confidence=_optional_float(row.get("food_confidence")),
    )


def suggestion_from_row(row: dict[str, Any]) -> RestaurantSuggestion:
    return RestaurantSuggestion(
        visit_id=str(row["visit_id"]),
        restaurant_id=str(row["restaurant_id"]),
        distance_meters=float(row["distance_meters"]),
    )


def suggestion_to_row(suggestion: RestaurantSuggestion) -> dict[str, Any]:
    return {
        "visit_id": suggestion.visit_id,
        "restaurant_id": suggestion.restaurant_id,
        "distance_meters": suggestion.distance_meters,
    }


def reference_from_row(row: dict[str, Any]) -> ReferenceRestaurant:
    return ReferenceRestaurant(
        id=str(row["id"]),
        name=str(row["name"]),
        latitude=float(row["latitude"]),
        longitude=float(row["longitude"]),
        address=str(row.get("address") or ""),
        location=str(row.get("location") or ""),
        cuisine=str(row.get("cuisine") or ""),
        award=str(row.get("award") or ""),
    )


def reference_to_row(restaurant: ReferenceRestaurant) -> dict[str, Any]:
    return {
        "id": restaurant.id,
        "name": restaurant.name,
        "latitude": restaurant.latitude,
        "longitude": restaurant.longitude,
        "address": restaurant.address,
        "location": restaurant.location,
        "cuisine": restaurant.cuisine,
        "award": restaurant.award,
    }


def confirmed_from_row(row: dict[str, Any]) -> ConfirmedRestaurant:
    return ConfirmedRestaurant(
        id=str(row["id"]),
        name=str(row["name"]),
        latitude=float(row["latitude"]),
        longitude=float(row["longitude"]),
    )


def confirmed_to_row(restaurant: ConfirmedRestaurant) -> dict[str, Any]:
    return {
        "id": restaurant.id,
        "name": restaurant.name,
        "latitude": restaurant.latitude,
        "longitude": restaurant.longitude,
    }
