"""Visit lifecycle service and the visit and photo persistence interfaces."""

import logging
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime, timedelta
from functools import partial
from typing import Protocol
from uuid import uuid4

from visit_engine.domain.errors import NotFoundError, ValidationError
from visit_engine.domain.geo import distance_meters
from visit_engine.domain.merge import MergePlan
from visit_engine.domain.models import (
    ConfirmedRestaurant,
    IgnoredLocation,
    Photo,
    Visit,
    VisitStatus,
)
from visit_engine.domain.visits import (
    DiscoveredVisit,
    PhotoReassignment,
    VisitConfirmation,
    plan_photo_reassignment,
)
from visit_engine.services.batching import chunked
from visit_engine.services.retry import RetryPolicy

_MANUAL_VISIT_LENGTH = timedelta(hours=1)

_logger = logging.getLogger(__name__)


class VisitRepository(Protocol):
    """Persistence interface for visits."""

    def get(self, visit_id: str) -> Visit | None:
        """Return a visit by id."""

    def get_many(self, visit_ids: list[str]) -> list[Visit]:
        """Return the visits with the given ids."""

    def list_all(self) -> list[Visit]:
        """Return every visit."""

    def list_by_status(self, status: VisitStatus) -> list[Visit]:
        """Return visits with the given status."""

    def insert(self, visit: Visit) -> None:
        """Insert a single visit."""

    def update(self, visit: Visit) -> None:
        """Overwrite the mutable fields of a visit."""

    def set_status(self, visit_ids: list[str], status: VisitStatus) -> None:
        """Set the status of the given visits."""

    def set_food_probable(self, visit_ids: list[str], value: bool) -> None:
        """Set the food flag of the given visits."""

    def save_discovered(self, visits: list[DiscoveredVisit]) -> None:
        """Insert visits, claim their photos and store suggestions as one unit."""

    def apply_merge(self, plan: MergePlan) -> None:
        """Apply a merge plan as one unit."""

    def confirm_many(self, confirmations: list[VisitConfirmation]) -> None:
        """Create missing restaurants and confirm visits as one unit."""

    def reassign_photos(self, reassignment: PhotoReassignment) -> None:
        """Move photos and write the re-derived visits as one unit."""


class PhotoRepository(Protocol):
    """Persistence interface for photos."""

    def list_unassigned_geotagged(self) -> list[Photo]:
        """Return photos with coordinates that belong to no visit."""

    def list_for_visits(self, visit_ids: list[str]) -> list[Photo]:
        """Return photos owned by the given visits."""

    def get_many(self, photo_ids: list[str]) -> list[Photo]:
        """Return the photos with the given ids."""

    def set_visit(self, photo_ids: list[str], visit_id: str | None) -> None:
        """Assign photos to a visit, or detach them when visit_id is None."""

    def list_with_all_labels(self) -> list[Photo]:
        """Return photos that carry raw classifier labels."""

    def update_classification(self, photos: list[Photo]) -> None:
        """Persist food detection fields of the given photos."""

    def food_positive_visit_ids(self) -> set[str]:
        """Return ids of visits owning at least one food-positive photo."""


class ConfirmedRestaurantRepository(Protocol):
    """Persistence interface for user confirmed restaurants."""

    def get_many(self, restaurant_ids: list[str]) -> list[ConfirmedRestaurant]:
        """Return confirmed restaurants with the given ids."""

    def upsert(self, restaurant: ConfirmedRestaurant) -> None:
        """Create the restaurant unless it already exists."""


class IgnoredLocationRepository(Protocol):
    """Persistence interface for ignored locations."""

    def list_all(self) -> list[IgnoredLocation]:
        """Return every ignored location."""


@dataclass
class VisitService:
    """Review actions and photo bookkeeping for visits."""

    visit_repository: VisitRepository
    photo_repository: PhotoRepository
    restaurant_repository: ConfirmedRestaurantRepository
    ignored_location_repository: IgnoredLocationRepository
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    batch_size: int = 500

    def get(self, visit_id: str) -> Visit:
        """Return a visit or raise NotFoundError."""
        visit = self.visit_repository.get(visit_id)
        if visit is None:
            raise NotFoundError("visit", visit_id)
        return visit

    def list_by_status(self, status: VisitStatus) -> list[Visit]:
        """Return visits with a status, most recent first."""
        visits = self.visit_repository.list_by_status(status)
        return sorted(visits, key=lambda visit: visit.start_time, reverse=True)

    async def confirm(
        self,
        visit_id: str,
        restaurant: ConfirmedRestaurant,
        award_at_visit: str | None = None,
    ) -> Visit:
        """Confirm a single visit against a restaurant."""
        await self.batch_confirm(
            [VisitConfirmation(visit_id, restaurant, award_at_visit)]
        )
        return self.get(visit_id)

    async def batch_confirm(self, confirmations: list[VisitConfirmation]) -> int:
        """Confirm many visits in one transactional call."""
        if not confirmations:
            raise ValidationError("No visits to confirm")
        visit_ids = [confirmation.visit_id for confirmation in confirmations]
        found = {visit.id for visit in self.visit_repository.get_many(visit_ids)}
        for visit_id in visit_ids:
            if visit_id not in found:
                raise NotFoundError("visit", visit_id)
        await self.retry.run(
            partial(self.visit_repository.confirm_many, confirmations),
            action="confirm_visits",
        )
        _logger.info("Confirmed visits: count=%s", len(confirmations))
        return len(confirmations)

    def reject(self, visit_id: str) -> None:
        """Mark a visit as rejected."""
        self.get(visit_id)
        self.visit_repository.set_status([visit_id], VisitStatus.REJECTED)

    def update_notes(self, visit_id: str, notes: str | None) -> Visit:
        """Replace the free-text notes of a visit."""
        visit = self.get(visit_id)
        updated = replace(visit, notes=notes, updated_at=datetime.now(tz=UTC))
        self.visit_repository.update(updated)
        return updated

    def create_manual_visit(
        self,
        restaurant: ConfirmedRestaurant,
        visit_time: datetime,
        notes: str | None = None,
        award_at_visit: str | None = None,
    ) -> Visit:
        """Record a confirmed visit that has no photos."""
        if visit_time.tzinfo is None:
            raise ValidationError("visit_time must be timezone aware")
        self.restaurant_repository.upsert(restaurant)
        visit = Visit(
            id=str(uuid4()),
            status=VisitStatus.CONFIRMED,
            start_time=visit_time,
            end_time=visit_time + _MANUAL_VISIT_LENGTH,
            center_lat=restaurant.latitude,
            center_lon=restaurant.longitude,
            photo_count=0,
            food_probable=False,
            restaurant_id=restaurant.id,
            award_at_visit=award_at_visit,
            notes=notes,
            updated_at=datetime.now(tz=UTC),
        )
        self.visit_repository.insert(visit)
        _logger.info(
            "Created manual visit: visit_id=%s restaurant_id=%s",
            visit.id,
            restaurant.id,
        )
        return visit

    async def move_photos(
        self, photo_ids: list[str], target_visit_id: str
    ) -> list[Visit]:
        """Move photos into a visit and refresh every visit they touched."""
        if not photo_ids:
            raise ValidationError("No photos to move")
        target = self.get(target_visit_id)
        photos = self._require_photos(photo_ids)
        affected = [target.id]
        for photo in photos:
            if photo.visit_id and photo.visit_id not in affected:
                affected.append(photo.visit_id)
        return await self._reassign(photos, target.id, affected)

    async def remove_photos(self, visit_id: str, photo_ids: list[str]) -> Visit:
        """Detach photos from a visit and refresh it."""
        self.get(visit_id)
        photos = self._require_photos(photo_ids)
        if any(photo.visit_id != visit_id for photo in photos):
            raise ValidationError(f"Some photos do not belong to visit {visit_id}")
        (visit,) = await self._reassign(photos, None, [visit_id])
        return visit

    def reject_in_ignored_locations(self) -> int:
        """Reject pending visits centered inside any ignored location."""
        locations = self.ignored_location_repository.list_all()
        if not locations:
            return 0
        to_reject = [
            visit.id
            for visit in self.visit_repository.list_by_status(VisitStatus.PENDING)
            if _inside_any(visit, locations)
        ]
        for chunk in chunked(to_reject, self.batch_size):
            self.visit_repository.set_status(list(chunk), VisitStatus.REJECTED)
        if to_reject:
            _logger.info(
                "Rejected visits in ignored locations: count=%s", len(to_reject)
            )
        return len(to_reject)

    def _require_photos(self, photo_ids: list[str]) -> list[Photo]:
        photos = self.photo_repository.get_many(photo_ids)
        found = {photo.id for photo in photos}
        for photo_id in photo_ids:
            if photo_id not in found:
                raise NotFoundError("photo", photo_id)
        return photos

    async def _reassign(
        self, moving: list[Photo], visit_id: str | None, affected: list[str]
    ) -> list[Visit]:
        photos = {photo.id: photo for photo in moving}
        for photo in self.photo_repository.list_for_visits(affected):
            photos.setdefault(photo.id, photo)
        order = {item: position for position, item in enumerate(affected)}
        visits = sorted(
            self.visit_repository.get_many(affected), key=lambda v: order[v.id]
        )
        reassignment = plan_photo_reassignment(
            visits,
            list(photos.values()),
            [photo.id for photo in moving],
            visit_id,
            datetime.now(tz=UTC),
        )
        await self.retry.run(
            partial(self.visit_repository.reassign_photos, reassignment),
            action="reassign_visit_photos",
        )
        _logger.info(
            "Reassigned photos: photos=%s visit_id=%s visits=%s",
            len(reassignment.photo_ids),
            visit_id,
            len(reassignment.visits),
        )
        return reassignment.visits


def _inside_any(visit: Visit, locations: list[IgnoredLocation]) -> bool:
    return any(
        distance_meters(
            visit.center_lat, visit.center_lon, location.latitude, location.longitude
        )
        <= location.radius_meters
        for location in locations
    )
