"""Geographic utility functions for fingerprint comparison."""

import math
from typing import Optional

EARTH_RADIUS_KM = 6371.0


def is_valid_coordinates(lat: float, lon: float) -> bool:
    """Check if latitude and longitude are valid.

    Args:
        lat: Latitude in degrees
        lon: Longitude in degrees

    Returns:
        True if coordinates are valid, False otherwise
    """
    return -90 <= lat <= 90 and -180 <= lon <= 180


def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Calculate the great-circle distance between two points in kilometers.

    Uses the Haversine formula for accuracy on the Earth's surface.

    Args:
        lat1, lon1: First point coordinates in degrees
        lat2, lon2: Second point coordinates in degrees

    Returns:
        Distance in kilometers
    """
    lat1_rad = math.radians(lat1)
    lat2_rad = math.radians(lat2)
    delta_lat = math.radians(lat2 - lat1)
    delta_lon = math.radians(lon2 - lon1)

    a = math.sin(delta_lat / 2) ** 2 + \
        math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(delta_lon / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return EARTH_RADIUS_KM * c


def geo_distance(a, b) -> Optional[float]:
    """Distance in km between two objects with latitude/longitude attributes.

    Returns None when either side is missing a coordinate or holds a
    non-numeric or non-finite one.
    """
    if a is None or b is None:
        return None
    coords = (a.latitude, a.longitude, b.latitude, b.longitude)
    if any(c is None for c in coords):
        return None
    try:
        lat1, lon1, lat2, lon2 = (float(c) for c in coords)
    except (TypeError, ValueError):
        return None
    if not all(math.isfinite(c) for c in (lat1, lon1, lat2, lon2)):
        return None
    return haversine_distance(lat1, lon1, lat2, lon2)


def distance_score(distance_km: Optional[float]) -> float:
    """Map a distance onto the fixed proximity buckets.

    Anything under one whole kilometre counts as the same spot.
    """
    if distance_km is None or math.isnan(distance_km):
        return 0.0
    if int(distance_km) == 0:
        return 1.0
    if distance_km < 20:
        return 0.9
    if distance_km < 50:
        return 0.7
    if distance_km < 200:
        return 0.4
    return 0.1
