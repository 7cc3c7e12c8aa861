"""Utility modules for the fingerprint core."""

from fingerprint.utils.geo import (
    distance_score,
    geo_distance,
    haversine_distance,
    is_valid_coordinates,
)

__all__ = [
    # Geographic utilities
    "distance_score",
    "geo_distance",
    "haversine_distance",
    "is_valid_coordinates",
]
