"""Pairwise and bulk visit merging."""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from functools import partial

from visit_engine.domain.errors import (
    NotFoundError,
    ValidationError,
    VisitEngineError,
)
from visit_engine.domain.merge import MergeGroup, build_merge_groups, plan_merge
from visit_engine.domain.models import Visit, VisitStatus
from visit_engine.services.retry import RetryPolicy
from visit_engine.services.suggestions import SuggestionRepository
from visit_engine.services.visits import (
    ConfirmedRestaurantRepository,
    PhotoRepository,
    VisitRepository,
)

_MERGEABLE_LIMIT = 50

_logger = logging.getLogger(__name__)


@dataclass
class BulkMergeResult:
    """Outcome of a bulk merge run."""

    groups: int = 0
    merged: int = 0
    failed_groups: int = 0
    errors: list[str] = field(default_factory=list)


@dataclass
class MergeService:
    """Folds duplicate visits into one."""

    visit_repository: VisitRepository
    photo_repository: PhotoRepository
    suggestion_repository: SuggestionRepository
    restaurant_repository: ConfirmedRestaurantRepository
    merge_gap: timedelta = timedelta(hours=12)
    retry: RetryPolicy = field(default_factory=RetryPolicy)

    async def merge(self, target_id: str, source_id: str) -> Visit:
        """Merge ``source_id`` into ``target_id`` and delete the source."""
        if target_id == source_id:
            raise ValidationError("Cannot merge a visit into itself")
        target = self._require(target_id)
        source = self._require(source_id)

        photos = self.photo_repository.list_for_visits([target_id, source_id])
        suggestions = self.suggestion_repository.list_for_visits(
            [target_id, source_id]
        )
        plan = plan_merge(
            target=target,
            source=source,
            target_photos=[p for p in photos if p.visit_id == target_id],
            source_photos=[p for p in photos if p.visit_id == source_id],
            target_suggestions=[s for s in suggestions if s.visit_id == target_id],
            source_suggestions=[s for s in suggestions if s.visit_id == source_id],
            now=datetime.now(tz=UTC),
        )
        await self.retry.run(
            partial(self.visit_repository.apply_merge, plan),
            action="apply_visit_merge",
        )
        _logger.info(
            "Merged visits: target=%s source=%s photos_moved=%s",
            target_id,
            source_id,
            len(plan.photo_ids_to_move),
        )
        return plan.target

    def mergeable_candidates(
        self, visit_id: str, limit: int = _MERGEABLE_LIMIT
    ) -> list[Visit]:
        """Return other visits ordered by how close they start in time."""
        visit = self._require(visit_id)
        others = [
            candidate
            for candidate in self.visit_repository.list_all()
            if candidate.id != visit_id
        ]
        others.sort(key=lambda candidate: abs(candidate.start_time - visit.start_time))
        return others[:limit]

    def find_merge_groups(self) -> list[MergeGroup]:
        """Find confirmed visits to the same restaurant that chain within the gap."""
        visits = [
            visit
            for visit in self.visit_repository.list_by_status(VisitStatus.CONFIRMED)
            if visit.restaurant_id is not None
        ]
        restaurant_ids = sorted({visit.restaurant_id for visit in visits})
        names = {
            restaurant.id: restaurant.name
            for restaurant in self.restaurant_repository.get_many(restaurant_ids)
        }
        return build_merge_groups(visits, names, self.merge_gap)

    async def bulk_merge(
        self, groups: list[MergeGroup] | None = None, concurrency: int = 4
    ) -> BulkMergeResult:
        """Merge every group into its earliest visit.

        Groups run concurrently and independently; a failed group is logged
        and counted without affecting the others.
        """
        if concurrency <= 0:
            raise ValidationError("concurrency must be positive")
        resolved = self.find_merge_groups() if groups is None else groups
        result = BulkMergeResult(groups=len(resolved))
        if not resolved:
            return result

        semaphore = asyncio.Semaphore(concurrency)

        async def run(group: MergeGroup) -> tuple[int, Exception | None]:
            async with semaphore:
                return await self._merge_group(group)

        outcomes = await asyncio.gather(
            *(run(group) for group in resolved), return_exceptions=True
        )
        for group, outcome in zip(resolved, outcomes, strict=True):
            if isinstance(outcome, Exception):
                merged, error = 0, outcome
            elif isinstance(outcome, BaseException):
                raise outcome
            else:
                merged, error = outcome
            result.merged += merged
            if error is not None:
                _logger.warning(
                    "Bulk merge failed for restaurant %s after %s merges: %s",
                    group.restaurant_id,
                    merged,
                    error,
                )
                result.failed_groups += 1
                result.errors.append(
                    f"{group.restaurant_name or group.restaurant_id}: {error}"
                )
        _logger.info(
            "Bulk merge finished: groups=%s merged=%s failed_groups=%s",
            result.groups,
            result.merged,
            result.failed_groups,
        )
        return result

    async def _merge_group(self, group: MergeGroup) -> tuple[int, Exception | None]:
        """Merge sources one by one; stop at the first failure.

        Returns the number of merges that committed and the error, if any.
        """
        ordered = sorted(group.visits, key=lambda visit: (visit.start_time, visit.id))
        target, *sources = ordered
        merged = 0
        for source in sources:
            try:
                await self.merge(target.id, source.id)
            except (VisitEngineError, RuntimeError) as exc:
                return merged, exc
            merged += 1
        return merged, None

    def _require(self, visit_id: str) -> Visit:
        visit = self.visit_repository.get(visit_id)
        if visit is None:
            raise NotFoundError("visit", visit_id)
        return visit
