from tests.conftest import make_photo, make_visit
from visit_engine.domain.food import DEFAULT_FOOD_KEYWORDS, classify_labels
from visit_engine.domain.models import FoodDetection, FoodLabel


def _labels(*pairs: tuple[str, float]) -> list[FoodLabel]:
    return [FoodLabel(label, confidence) for label, confidence in pairs]


def test_classify_keeps_matching_labels() -> None:
    result = classify_labels(
        _labels(("Pizza", 0.7), ("person", 0.99), ("wine", 0.8)),
        DEFAULT_FOOD_KEYWORDS,
    )

    assert result.food_detected is FoodDetection.FOOD_POSITIVE
    assert [label.label for label in result.food_labels] == ["Pizza", "wine"]
    assert result.food_confidence == 0.8


def test_classify_without_match_is_negative() -> None:
    result = classify_labels(_labels(("car", 0.9)), DEFAULT_FOOD_KEYWORDS)
    assert result.food_detected is FoodDetection.FOOD_NEGATIVE
    assert result.food_labels == []
    assert result.food_confidence is None


def test_reclassify_with_custom_keywords_resyncs_visits(container, store) -> None:
    store.visits.add(make_visit("a", 0, food_probable=True), make_visit("b", 300))
    store.photos.add(
        make_photo(
            "p1",
            0,
            visit_id="a",
            food=FoodDetection.FOOD_POSITIVE,
            all_labels=_labels(("pizza", 0.9)),
        ),
        make_photo("p2", 300, visit_id="b", all_labels=_labels(("Latte", 0.6))),
        make_photo("p3", 301, visit_id="b"),
    )
    reports = []

    progress = container.food_service.reclassify(
        keywords=[" latte ", ""], on_progress=reports.append
    )

    assert progress.total == 2
    assert progress.succeeded == 2
    assert progress.is_complete is True
    assert store.photos.photos["p1"].food_detected is FoodDetection.FOOD_NEGATIVE
    assert store.photos.photos["p2"].food_detected is FoodDetection.FOOD_POSITIVE
    assert store.photos.photos["p3"].food_detected is FoodDetection.UNKNOWN
    assert store.visits.get("a").food_probable is False
    assert store.visits.get("b").food_probable is True
    assert reports[0].processed == 0
    assert reports[-1].is_complete is True


def test_reclassify_counts_failed_chunk(container, store) -> None:
    service = container.food_service
    service.batch_size = 1
    store.photos.add(
        make_photo("p1", 0, all_labels=_labels(("soup", 0.5))),
        make_photo("p2", 1, all_labels=_labels(("soup", 0.5))),
    )
    store.photos.fail_classification_ids = {"p1"}

    progress = service.reclassify()

    assert progress.failed == 1
    assert progress.succeeded == 1
    assert store.photos.photos["p1"].food_detected is FoodDetection.UNKNOWN
    assert store.photos.photos["p2"].food_detected is FoodDetection.FOOD_POSITIVE


def test_reclassify_cancelled_before_first_chunk(container, store) -> None:
    store.photos.add(make_photo("p1", 0, all_labels=_labels(("soup", 0.5))))

    progress = container.food_service.reclassify(cancel=lambda: True)

    assert progress.cancelled is True
    assert progress.processed == 0
    assert store.photos.photos["p1"].food_detected is FoodDetection.UNKNOWN


def test_sync_food_probable_reports_changes(container, store) -> None:
    store.visits.add(
        make_visit("stale", 0, food_probable=True),
        make_visit("missing", 100),
        make_visit("fine", 200, food_probable=True),
    )
    store.photos.add(
        make_photo("p1", 100, visit_id="missing", food=FoodDetection.FOOD_POSITIVE),
        make_photo("p2", 200, visit_id="fine", food=FoodDetection.FOOD_POSITIVE),
    )

    assert container.food_service.sync_food_probable() == 2
    assert store.visits.get("stale").food_probable is False
    assert store.visits.get("missing").food_probable is True
    assert container.food_service.sync_food_probable() == 0
