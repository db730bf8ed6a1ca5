"""Nearest-neighbor index over the reference restaurant set."""

import logging
import math
import threading
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Protocol

import numpy as np
from sklearn.neighbors import BallTree

from visit_engine.domain.geo import EARTH_RADIUS_METERS
from visit_engine.domain.models import ReferenceRestaurant

_LEAF_SIZE = 64

_logger = logging.getLogger(__name__)


class ReferenceRestaurantRepository(Protocol):
    """Persistence interface for the reference restaurant set."""

    def list_all(self) -> list[ReferenceRestaurant]:
        """Return every reference restaurant."""

    def get_many(self, restaurant_ids: list[str]) -> list[ReferenceRestaurant]:
        """Return the reference restaurants with the given ids."""

    def upsert_many(self, restaurants: list[ReferenceRestaurant]) -> None:
        """Insert or update reference restaurants in bulk."""

    def count(self) -> int:
        """Return the number of reference restaurants."""


@dataclass(frozen=True)
class IndexHandle:
    """An immutable built index together with its backing restaurants."""

    tree: BallTree
    restaurants: tuple[ReferenceRestaurant, ...]
    built_at: datetime

    def restaurant(self, position: int) -> ReferenceRestaurant:
        """Return the restaurant stored at an index position."""
        return self.restaurants[position]


@dataclass
class SpatialIndexService:
    """Single owner of the cached reference restaurant index."""

    loader: Callable[[], list[ReferenceRestaurant]]
    _handle: IndexHandle | None = field(default=None, init=False, repr=False)
    _loaded: bool = field(default=False, init=False, repr=False)
    _lock: threading.Lock = field(
        default_factory=threading.Lock, init=False, repr=False
    )

    @staticmethod
    def build(restaurants: Sequence[ReferenceRestaurant]) -> IndexHandle | None:
        """Build an index handle, or None when there is nothing to index."""
        if not restaurants:
            return None
        started = time.perf_counter()
        coordinates = np.radians([[r.latitude, r.longitude] for r in restaurants])
        tree = BallTree(coordinates, leaf_size=_LEAF_SIZE, metric="haversine")
        _logger.info(
            "Built restaurant spatial index: restaurants=%s elapsed_ms=%.1f",
            len(restaurants),
            (time.perf_counter() - started) * 1000,
        )
        return IndexHandle(
            tree=tree,
            restaurants=tuple(restaurants),
            built_at=datetime.now(tz=UTC),
        )

    def get(self) -> IndexHandle | None:
        """Return the cached handle, loading and building it on first use."""
        if self._loaded:
            return self._handle
        with self._lock:
            if not self._loaded:
                self._handle = self.build(self.loader())
                self._loaded = True
            return self._handle

    @staticmethod
    def query(
        handle: IndexHandle | None,
        lat: float,
        lon: float,
        k: int,
        radius_meters: float,
    ) -> list[int]:
        """Return restaurant positions within radius, nearest first, at most k."""
        if handle is None or k <= 0 or radius_meters < 0:
            return []
        if not (math.isfinite(lat) and math.isfinite(lon)):
            return []
        indices, distances = handle.tree.query_radius(
            np.radians([[lat, lon]]),
            r=radius_meters / EARTH_RADIUS_METERS,
            return_distance=True,
            sort_results=True,
        )
        # Equal distances keep insertion order.
        order = np.lexsort((indices[0], distances[0]))[:k]
        return [int(position) for position in indices[0][order]]

    def invalidate(self) -> None:
        """Drop the cached index; the next get() reloads the reference set."""
        with self._lock:
            self._handle = None
            self._loaded = False
        _logger.info("Restaurant spatial index invalidated")


@dataclass
class ReferenceRestaurantService:
    """Application service for the reference restaurant collaborator."""

    repository: ReferenceRestaurantRepository
    spatial_index: SpatialIndexService

    def load(self, restaurants: list[ReferenceRestaurant]) -> int:
        """Bulk upsert reference restaurants and invalidate the index."""
        if not restaurants:
            return 0
        self.repository.upsert_many(restaurants)
        self.spatial_index.invalidate()
        return len(restaurants)

    def count(self) -> int:
        """Return the size of the reference set."""
        return self.repository.count()
