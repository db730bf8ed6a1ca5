"""Great-circle distance helpers."""

import math
from collections.abc import Iterable

EARTH_RADIUS_METERS = 6_371_000.0


def distance_meters(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Return the haversine distance between two coordinates in meters."""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)
    a = (
        math.sin(d_phi / 2) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    )
    return 2 * EARTH_RADIUS_METERS * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def centroid(points: Iterable[tuple[float, float]]) -> tuple[float, float] | None:
    """Return the unweighted mean of (lat, lon) points, or None when empty."""
    count = 0
    sum_lat = 0.0
    sum_lon = 0.0
    for lat, lon in points:
        sum_lat += lat
        sum_lon += lon
        count += 1
    if count == 0:
        return None
    return sum_lat / count, sum_lon / count
