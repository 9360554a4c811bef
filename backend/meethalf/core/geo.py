"""Geo Helpers — great-circle distance, centroid, and human-readable durations.

Invariants:
    - Distances are meters on a sphere of radius EARTH_RADIUS_METERS
    - centroid() of an empty sequence raises ValueError (callers guard with >= 2 points)
    - format_duration() never returns an empty string
"""

import math
from collections.abc import Sequence

EARTH_RADIUS_METERS = 6_371_000


def haversine_distance(
    lat1: float, lng1: float, lat2: float, lng2: float,
) -> float:
    """Great-circle distance between two coordinates, in meters."""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lng2 - lng1)

    a = (
        math.sin(d_phi / 2) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_METERS * c


def centroid(points: Sequence[tuple[float, float]]) -> tuple[float, float]:
    """Arithmetic mean of (lat, lng) pairs."""
    if not points:
        raise ValueError("centroid requires at least one point")
    lat = sum(p[0] for p in points) / len(points)
    lng = sum(p[1] for p in points) / len(points)
    return lat, lng


def format_duration(seconds: float) -> str:
    """Render an ETA in seconds as "Arriving soon", "12 min" or "1 h 5 min"."""
    if seconds <= 0:
        return "Arriving soon"
    hours = int(seconds // 3600)
    minutes = int(seconds // 60) % 60
    if hours > 0:
        return f"{hours} h {minutes} min"
    return f"{minutes} min"


def format_latlng(lat: float, lng: float) -> str:
    """Google Maps "lat,lng" parameter."""
    return f"{lat},{lng}"
