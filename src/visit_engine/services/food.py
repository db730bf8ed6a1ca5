"""Food reclassification of stored photo labels."""

import logging
from dataclasses import dataclass, replace

from visit_engine.domain.errors import StoreError
from visit_engine.domain.food import (
    DEFAULT_FOOD_KEYWORDS,
    classify_labels,
    normalize_keywords,
)
from visit_engine.services.batching import (
    BatchProgress,
    CancelCheck,
    ProgressCallback,
    chunked,
    report,
    should_cancel,
)
from visit_engine.services.visits import PhotoRepository, VisitRepository

_logger = logging.getLogger(__name__)


@dataclass
class FoodService:
    """Re-derives food flags when the keyword set changes."""

    photo_repository: PhotoRepository
    visit_repository: VisitRepository
    keywords: frozenset[str] = DEFAULT_FOOD_KEYWORDS
    batch_size: int = 500

    def reclassify(
        self,
        keywords: list[str] | None = None,
        cancel: CancelCheck | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> BatchProgress:
        """Reclassify every photo with raw labels, then resync visit flags."""
        enabled = (
            normalize_keywords(keywords) if keywords is not None else self.keywords
        )
        photos = self.photo_repository.list_with_all_labels()
        progress = BatchProgress(total=len(photos))
        report(progress, on_progress)

        for chunk in chunked(photos, self.batch_size):
            if should_cancel(cancel):
                progress.cancelled = True
                break
            updated = []
            for photo in chunk:
                classification = classify_labels(photo.all_labels or [], enabled)
                updated.append(
                    replace(
                        photo,
                        food_detected=classification.food_detected,
                        food_labels=classification.food_labels,
                        food_confidence=classification.food_confidence,
                    )
                )
            try:
                self.photo_repository.update_classification(updated)
            except (StoreError, RuntimeError):
                _logger.exception(
                    "Photo reclassification failed for chunk: photos=%s", len(chunk)
                )
                progress.failed += len(chunk)
            else:
                progress.succeeded += len(chunk)
            progress.processed += len(chunk)
            report(progress, on_progress)

        self.sync_food_probable()
        progress.is_complete = not progress.cancelled
        report(progress, on_progress)
        _logger.info(
            "Photo reclassification finished: total=%s updated=%s failed=%s",
            progress.total,
            progress.succeeded,
            progress.failed,
        )
        return progress

    def sync_food_probable(self) -> int:
        """Set each visit's food flag from its photos; return visits changed."""
        food_visit_ids = self.photo_repository.food_positive_visit_ids()
        to_set: list[str] = []
        to_clear: list[str] = []
        for visit in self.visit_repository.list_all():
            should_be_food = visit.id in food_visit_ids
            if should_be_food and not visit.food_probable:
                to_set.append(visit.id)
            elif not should_be_food and visit.food_probable:
                to_clear.append(visit.id)
        for chunk in chunked(to_set, self.batch_size):
            self.visit_repository.set_food_probable(list(chunk), True)
        for chunk in chunked(to_clear, self.batch_size):
            self.visit_repository.set_food_probable(list(chunk), False)
        changed = len(to_set) + len(to_clear)
        if changed:
            _logger.info(
                "Synced visit food flags: set=%s cleared=%s", len(to_set), len(to_clear)
            )
        return changed
