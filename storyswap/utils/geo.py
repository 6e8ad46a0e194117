"""Great-circle distance helpers used to merge nearby locations."""

from __future__ import annotations

import math

EARTH_RADIUS_M = 6_371_000.0

# Roughly 111 km per degree of latitude; used for a cheap bounding-box prefilter.
_METERS_PER_DEGREE = 111_320.0


def haversine_m(lon1: float, lat1: float, lon2: float, lat2: float) -> float:
    """Distance in meters between two (longitude, latitude) points."""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = (
        math.sin(d_phi / 2) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    )
    return 2 * EARTH_RADIUS_M * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def bounding_boxes(lon: float, lat: float, radius_m: float) -> list[tuple[float, float, float, float]]:
    """Boxes ``(min_lon, max_lon, min_lat, max_lat)`` enclosing a radius around a point.

    A box that crosses the antimeridian is split at +/-180 into two, so
    points just either side of it are still candidates.
    """
    d_lat = radius_m / _METERS_PER_DEGREE
    # Longitude degrees shrink towards the poles; clamp cos to avoid blowing up.
    d_lon = radius_m / (_METERS_PER_DEGREE * max(math.cos(math.radians(lat)), 0.01))
    min_lat, max_lat = max(lat - d_lat, -90.0), min(lat + d_lat, 90.0)

    if d_lon >= 180.0:
        return [(-180.0, 180.0, min_lat, max_lat)]
    west, east = lon - d_lon, lon + d_lon
    if west < -180.0:
        return [(west + 360.0, 180.0, min_lat, max_lat), (-180.0, east, min_lat, max_lat)]
    if east > 180.0:
        return [(west, 180.0, min_lat, max_lat), (-180.0, east - 360.0, min_lat, max_lat)]
    return [(west, east, min_lat, max_lat)]
