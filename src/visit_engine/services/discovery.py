"""Turns unassigned photos into pending visits."""

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from functools import partial
from uuid import uuid4

from visit_engine.domain.clustering import ClusterPolicy, DraftVisit, cluster_photos
from visit_engine.domain.errors import StoreError
from visit_engine.domain.models import Visit, VisitStatus
from visit_engine.domain.visits import DiscoveredVisit
from visit_engine.services.batching import (
    BatchProgress,
    CancelCheck,
    ProgressCallback,
    chunked,
    report,
    should_cancel,
)
from visit_engine.services.retry import RetryPolicy
from visit_engine.services.spatial_index import IndexHandle
from visit_engine.services.suggestions import SuggestionService
from visit_engine.services.visits import PhotoRepository, VisitRepository

_logger = logging.getLogger(__name__)


@dataclass
class VisitDiscoveryService:
    """Clusters unassigned photos and persists the resulting visits."""

    photo_repository: PhotoRepository
    visit_repository: VisitRepository
    suggestion_service: SuggestionService
    cluster_policy: ClusterPolicy = field(default_factory=ClusterPolicy)
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    batch_size: int = 500

    async def discover(
        self,
        cancel: CancelCheck | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> BatchProgress:
        """Cluster every unassigned geotagged photo and save visits in chunks."""
        photos = self.photo_repository.list_unassigned_geotagged()
        drafts = cluster_photos(photos, self.cluster_policy)
        progress = BatchProgress(total=len(drafts))
        handle = self.suggestion_service.spatial_index.get()
        now = datetime.now(tz=UTC)

        for chunk in chunked(drafts, self.batch_size):
            if should_cancel(cancel):
                progress.cancelled = True
                break
            discovered = [
                self._discovered(handle, draft, str(uuid4()), now) for draft in chunk
            ]
            save = partial(self.visit_repository.save_discovered, discovered)
            try:
                await self.retry.run(save, action="save_discovered_visits")
            except (StoreError, RuntimeError):
                _logger.exception(
                    "Saving discovered visits failed for chunk: visits=%s", len(chunk)
                )
                progress.failed += len(chunk)
            else:
                progress.succeeded += len(chunk)
            progress.processed += len(chunk)
            report(progress, on_progress)

        progress.is_complete = not progress.cancelled
        report(progress, on_progress)
        _logger.info(
            "Visit discovery finished: photos=%s visits=%s failed=%s cancelled=%s",
            len(photos),
            progress.succeeded,
            progress.failed,
            progress.cancelled,
        )
        return progress

    def _discovered(
        self,
        handle: IndexHandle | None,
        draft: DraftVisit,
        visit_id: str,
        now: datetime,
    ) -> DiscoveredVisit:
        result = self.suggestion_service.compute_with_handle(
            handle, visit_id, draft.center_lat, draft.center_lon
        )
        visit = Visit(
            id=visit_id,
            status=VisitStatus.PENDING,
            start_time=draft.start_time,
            end_time=draft.end_time,
            center_lat=draft.center_lat,
            center_lon=draft.center_lon,
            photo_count=draft.photo_count,
            food_probable=draft.food_probable,
            suggested_restaurant_id=result.primary,
            updated_at=now,
        )
        return DiscoveredVisit(
            visit=visit,
            photo_ids=[photo.id for photo in draft.photos],
            suggestions=result.suggestions,
        )
