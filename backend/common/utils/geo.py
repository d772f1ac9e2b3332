"""
Geographic utility functions.

This module provides the great-circle calculations used throughout the
application. All distances are straight-line (haversine) approximations of
travel distance; no routing is involved.
"""

from dataclasses import dataclass
from math import asin, cos, pi, radians, sin, sqrt
from typing import Any, Dict, Mapping, Optional

EARTH_RADIUS_KM = 6371.0


@dataclass(frozen=True)
class GeoPoint:
    """A latitude/longitude pair with an optional human-readable address."""
    latitude: float
    longitude: float
    address: Optional[str] = None

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]]) -> "GeoPoint":
        """
        Build a point from a ``{"latitude", "longitude", "address"}`` mapping.

        Raises:
            ValueError: If the mapping is missing or coordinates are not numeric
                or out of range.
        """
        if not data:
            raise ValueError("location is required")
        lat = data.get("latitude")
        lon = data.get("longitude")
        if lat is None or lon is None:
            raise ValueError("latitude and longitude are required")
        lat, lon = float(lat), float(lon)
        if not -90 <= lat <= 90 or not -180 <= lon <= 180:
            raise ValueError("coordinates out of range")
        return cls(latitude=lat, longitude=lon, address=data.get("address") or None)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "latitude": self.latitude,
            "longitude": self.longitude,
            "address": self.address,
        }


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Great-circle distance between two points in kilometres.

    Returns 0 for identical points and ``pi * R`` for antipodal points; the
    haversine term is clamped to [0, 1] so floating-point overshoot can never
    push ``asin`` out of its domain.
    """
    lat1, lon1, lat2, lon2 = map(radians, [float(lat1), float(lon1), float(lat2), float(lon2)])
    dlat = lat2 - lat1
    dlon = lon2 - lon1
    a = sin(dlat / 2) ** 2 + cos(lat1) * cos(lat2) * sin(dlon / 2) ** 2
    root = min(1.0, max(0.0, sqrt(a)))
    if root >= 1.0:
        return pi * EARTH_RADIUS_KM
    return 2 * asin(root) * EARTH_RADIUS_KM


def calculate_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Distance between two points in meters (haversine)."""
    return haversine_km(lat1, lon1, lat2, lon2) * 1000


def distance_between(a: GeoPoint, b: GeoPoint) -> float:
    """Convenience wrapper: kilometres between two GeoPoints."""
    return haversine_km(a.latitude, a.longitude, b.latitude, b.longitude)
