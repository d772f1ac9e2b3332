"""Common utility functions."""

from .geo import GeoPoint, calculate_distance, distance_between, haversine_km

__all__ = [
    "GeoPoint",
    "calculate_distance",
    "distance_between",
    "haversine_km",
]
