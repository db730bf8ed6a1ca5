import asyncio
from datetime import datetime

import pytest

from tests.conftest import at, make_photo, make_visit
from visit_engine.domain.errors import (
    NotFoundError,
    RetryExhaustedError,
    StoreError,
    ValidationError,
)
from visit_engine.domain.models import (
    ConfirmedRestaurant,
    FoodDetection,
    IgnoredLocation,
    VisitStatus,
)
from visit_engine.domain.visits import VisitConfirmation

SEPTIME = ConfirmedRestaurant("r1", "Septime", 48.8531, 2.3808)


def test_confirm_creates_restaurant_and_links_visit(container, store) -> None:
    store.visits.add(make_visit("v1", 0))

    visit = asyncio.run(
        container.visit_service.confirm("v1", SEPTIME, award_at_visit="1 star")
    )

    assert visit.status is VisitStatus.CONFIRMED
    assert visit.restaurant_id == "r1"
    assert visit.award_at_visit == "1 star"
    assert store.restaurants.restaurants["r1"] == SEPTIME


def test_batch_confirm_reuses_existing_restaurant(container, store) -> None:
    store.restaurants.upsert(SEPTIME)
    store.visits.add(make_visit("a", 0), make_visit("b", 300))
    renamed = ConfirmedRestaurant("r1", "Septime (renamed)", 0.0, 0.0)

    count = asyncio.run(
        container.visit_service.batch_confirm(
            [VisitConfirmation("a", renamed), VisitConfirmation("b", renamed)]
        )
    )

    assert count == 2
    assert store.restaurants.restaurants["r1"].name == "Septime"
    assert {v.status for v in store.visits.visits.values()} == {VisitStatus.CONFIRMED}


def test_batch_confirm_is_all_or_nothing_on_missing_visit(container, store) -> None:
    store.visits.add(make_visit("a", 0))

    with pytest.raises(NotFoundError):
        asyncio.run(
            container.visit_service.batch_confirm(
                [VisitConfirmation("a", SEPTIME), VisitConfirmation("ghost", SEPTIME)]
            )
        )

    assert store.visits.get("a").status is VisitStatus.PENDING
    assert store.restaurants.restaurants == {}


def test_batch_confirm_rejects_empty_list(container) -> None:
    with pytest.raises(ValidationError):
        asyncio.run(container.visit_service.batch_confirm([]))


def test_batch_confirm_retries_then_gives_up(container, store) -> None:
    store.visits.add(make_visit("a", 0))
    store.visits.busy.times = 10

    with pytest.raises(RetryExhaustedError) as exc_info:
        asyncio.run(container.visit_service.confirm("a", SEPTIME))

    assert exc_info.value.attempts == 5
    assert store.visits.busy.calls == 5
    assert store.visits.get("a").status is VisitStatus.PENDING


def test_reject_and_notes(container, store) -> None:
    store.visits.add(make_visit("v1", 0))

    container.visit_service.reject("v1")
    updated = container.visit_service.update_notes("v1", "great wine list")

    assert updated.status is VisitStatus.REJECTED
    assert store.visits.get("v1").notes == "great wine list"
    with pytest.raises(NotFoundError):
        container.visit_service.reject("missing")


def test_list_by_status_most_recent_first(container, store) -> None:
    store.visits.add(
        make_visit("old", 0),
        make_visit("new", 500),
        make_visit("done", 900, status=VisitStatus.CONFIRMED),
    )

    pending = container.visit_service.list_by_status(VisitStatus.PENDING)

    assert [visit.id for visit in pending] == ["new", "old"]


def test_manual_visit_is_confirmed_without_photos(container, store) -> None:
    visit = container.visit_service.create_manual_visit(
        SEPTIME, at(0), notes="birthday"
    )

    assert visit.status is VisitStatus.CONFIRMED
    assert visit.photo_count == 0
    assert (visit.center_lat, visit.center_lon) == (SEPTIME.latitude, SEPTIME.longitude)
    assert visit.end_time == at(60)
    assert store.visits.get(visit.id) == visit
    assert "r1" in store.restaurants.restaurants


def test_manual_visit_requires_aware_time(container) -> None:
    with pytest.raises(ValidationError):
        container.visit_service.create_manual_visit(
            SEPTIME, datetime(2024, 5, 17, 19, 0)
        )


def test_move_photos_refreshes_both_visits(container, store) -> None:
    store.visits.add(make_visit("a", 0, 10, photo_count=2), make_visit("b", 300))
    store.photos.add(
        make_photo("p1", 0, visit_id="a", food=FoodDetection.FOOD_POSITIVE),
        make_photo("p2", 10, visit_id="a"),
        make_photo("p3", 300, lat=48.86, lon=2.36, visit_id="b"),
    )

    target, source = asyncio.run(container.visit_service.move_photos(["p1"], "b"))

    assert target.id == "b"
    assert target.photo_count == 2
    assert target.start_time == at(0)
    assert target.end_time == at(300)
    assert target.food_probable is True
    assert source.id == "a"
    assert source.photo_count == 1
    assert source.food_probable is False
    assert source.start_time == at(10)


def test_remove_photos_detaches_and_keeps_empty_visit(container, store) -> None:
    store.visits.add(make_visit("a", 0, 10, photo_count=1, food_probable=True))
    store.photos.add(
        make_photo("p1", 5, visit_id="a", food=FoodDetection.FOOD_POSITIVE),
        make_photo("other", 5, visit_id="b"),
    )

    with pytest.raises(ValidationError):
        asyncio.run(container.visit_service.remove_photos("a", ["p1", "other"]))
    visit = asyncio.run(container.visit_service.remove_photos("a", ["p1"]))

    assert store.photos.photos["p1"].visit_id is None
    assert visit.photo_count == 0
    assert visit.food_probable is False
    assert (visit.start_time, visit.end_time) == (at(0), at(10))


def test_move_unknown_photo(container, store) -> None:
    store.visits.add(make_visit("a", 0))
    with pytest.raises(NotFoundError):
        asyncio.run(container.visit_service.move_photos(["ghost"], "a"))


def test_failed_photo_move_changes_nothing(container, store) -> None:
    before_a = make_visit("a", 0, 10, photo_count=2)
    before_b = make_visit("b", 300, photo_count=1)
    store.visits.add(before_a, before_b)
    store.photos.add(
        make_photo("p1", 0, visit_id="a"),
        make_photo("p2", 10, visit_id="a"),
        make_photo("p3", 300, visit_id="b"),
    )
    store.visits.fail_reassign = True

    with pytest.raises(StoreError):
        asyncio.run(container.visit_service.move_photos(["p1"], "b"))

    assert store.photos.photos["p1"].visit_id == "a"
    assert store.visits.get("a") == before_a
    assert store.visits.get("b") == before_b


def test_photo_move_retries_busy_store(container, store) -> None:
    store.visits.add(make_visit("a", 0, 10, photo_count=2), make_visit("b", 300))
    store.photos.add(
        make_photo("p1", 0, visit_id="a"),
        make_photo("p2", 10, visit_id="a"),
    )
    store.visits.busy.times = 2

    visit = asyncio.run(container.visit_service.remove_photos("a", ["p2"]))

    assert store.visits.busy.calls == 3
    assert store.photos.photos["p2"].visit_id is None
    assert visit.photo_count == 1
    assert store.visits.get("a") == visit


def test_move_detached_photo_into_visit(container, store) -> None:
    store.visits.add(make_visit("a", 0, 10, photo_count=1))
    store.photos.add(
        make_photo("p1", 0, visit_id="a"),
        make_photo("loose", 30, food=FoodDetection.FOOD_POSITIVE),
    )

    (visit,) = asyncio.run(container.visit_service.move_photos(["loose"], "a"))

    assert visit.photo_count == 2
    assert visit.end_time == at(30)
    assert visit.food_probable is True
    assert store.photos.photos["loose"].visit_id == "a"


def test_reject_pending_visits_in_ignored_locations(container, store) -> None:
    store.ignored.locations.append(
        IgnoredLocation("home", "Home", 48.8566, 2.3522, radius_meters=150)
    )
    store.visits.add(
        make_visit("at-home", 0),
        make_visit("next-door", 10, center_lat=48.8570),
        make_visit("across-town", 20, center_lat=48.88, center_lon=2.30),
        make_visit("confirmed-home", 30, status=VisitStatus.CONFIRMED),
    )

    rejected = container.visit_service.reject_in_ignored_locations()

    assert rejected == 2
    statuses = {vid: v.status for vid, v in store.visits.visits.items()}
    assert statuses == {
        "at-home": VisitStatus.REJECTED,
        "next-door": VisitStatus.REJECTED,
        "across-town": VisitStatus.PENDING,
        "confirmed-home": VisitStatus.CONFIRMED,
    }


def test_no_ignored_locations_rejects_nothing(container, store) -> None:
    store.visits.add(make_visit("a", 0))
    assert container.visit_service.reject_in_ignored_locations() == 0
