"""Greedy time/space clustering of photos into draft visits."""

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timedelta
from functools import reduce

from visit_engine.domain.geo import distance_meters
from visit_engine.domain.models import FoodDetection, Photo


@dataclass(frozen=True)
class ClusterPolicy:
    """Thresholds bounding a single dining occasion.

    A photo joins the open cluster only when it is strictly closer than both
    thresholds; a gap of exactly ``time_gap`` or a distance of exactly
    ``distance_meters`` starts a new visit.
    """

    time_gap: timedelta = timedelta(hours=2)
    distance_meters: float = 200.0


@dataclass(frozen=True)
class DraftVisit:
    """A cluster of photos that has not been persisted yet."""

    photos: tuple[Photo, ...]
    start_time: datetime
    end_time: datetime
    center_lat: float
    center_lon: float

    @property
    def photo_count(self) -> int:
        return len(self.photos)

    @property
    def food_probable(self) -> bool:
        return any(
            photo.food_detected is FoodDetection.FOOD_POSITIVE for photo in self.photos
        )


@dataclass(frozen=True)
class _OpenCluster:
    photos: tuple[Photo, ...]
    sum_lat: float
    sum_lon: float
    last_time: datetime

    @property
    def center(self) -> tuple[float, float]:
        count = len(self.photos)
        return self.sum_lat / count, self.sum_lon / count

    def add(self, photo: Photo) -> "_OpenCluster":
        return _OpenCluster(
            photos=(*self.photos, photo),
            sum_lat=self.sum_lat + photo.latitude,
            sum_lon=self.sum_lon + photo.longitude,
            last_time=max(self.last_time, photo.capture_time),
        )

    def close(self) -> DraftVisit:
        center_lat, center_lon = self.center
        times = [photo.capture_time for photo in self.photos]
        return DraftVisit(
            photos=self.photos,
            start_time=min(times),
            end_time=max(times),
            center_lat=center_lat,
            center_lon=center_lon,
        )


_Accumulator = tuple[_OpenCluster | None, list[DraftVisit]]


def _open(photo: Photo) -> _OpenCluster:
    return _OpenCluster(
        photos=(photo,),
        sum_lat=photo.latitude,
        sum_lon=photo.longitude,
        last_time=photo.capture_time,
    )


def _belongs(cluster: _OpenCluster, photo: Photo, policy: ClusterPolicy) -> bool:
    if photo.capture_time - cluster.last_time >= policy.time_gap:
        return False
    center_lat, center_lon = cluster.center
    distance = distance_meters(center_lat, center_lon, photo.latitude, photo.longitude)
    return distance < policy.distance_meters


def cluster_photos(
    photos: Iterable[Photo], policy: ClusterPolicy | None = None
) -> list[DraftVisit]:
    """Group photos into disjoint draft visits in one greedy pass.

    Photos are stable-sorted by capture time, so equal timestamps keep their
    input order. Photos without coordinates are skipped.
    """
    resolved = policy or ClusterPolicy()
    ordered = sorted(
        (photo for photo in photos if photo.has_location),
        key=lambda photo: photo.capture_time,
    )

    def step(acc: _Accumulator, photo: Photo) -> _Accumulator:
        open_cluster, closed = acc
        if open_cluster is None:
            return _open(photo), closed
        if _belongs(open_cluster, photo, resolved):
            return open_cluster.add(photo), closed
        closed.append(open_cluster.close())
        return _open(photo), closed

    open_cluster, closed = reduce(step, ordered, (None, []))
    if open_cluster is not None:
        closed.append(open_cluster.close())
    return closed
