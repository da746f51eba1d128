"""
Geographic utility functions.

This module provides the geospatial primitives used by both the realtime
server and the tracking client:
- GeoPoint / VenueLocation value types
- Haversine great-circle distance
- Nearest-venue proximity matching
"""

from __future__ import annotations

from dataclasses import dataclass
from math import atan2, cos, radians, sin, sqrt
from typing import Iterable, Optional

EARTH_RADIUS_METERS = 6371000.0

# "Is the user physically at the venue" radius
DEFAULT_PROXIMITY_RADIUS_METERS = 100.0


@dataclass(frozen=True)
class GeoPoint:
    """A latitude/longitude pair in degrees."""
    latitude: float
    longitude: float

    def __post_init__(self):
        try:
            lat = float(self.latitude)
            lon = float(self.longitude)
        except (TypeError, ValueError):
            raise ValueError(f"Invalid coordinates: {self.latitude!r}, {self.longitude!r}")

        # NaN fails both comparisons
        if not -90.0 <= lat <= 90.0:
            raise ValueError(f"Latitude out of range: {self.latitude!r}")
        if not -180.0 <= lon <= 180.0:
            raise ValueError(f"Longitude out of range: {self.longitude!r}")

        object.__setattr__(self, "latitude", lat)
        object.__setattr__(self, "longitude", lon)

    @classmethod
    def from_dict(cls, data) -> "GeoPoint":
        """Build from a {"latitude": .., "longitude": ..} mapping."""
        if not isinstance(data, dict):
            raise ValueError("Position must be an object with latitude and longitude")
        if data.get("latitude") is None or data.get("longitude") is None:
            raise ValueError("Position requires latitude and longitude")
        # bool is an int subclass and float() would accept numeric strings
        if isinstance(data["latitude"], (bool, str)) or isinstance(data["longitude"], (bool, str)):
            raise ValueError("Position coordinates must be numbers")
        return cls(data["latitude"], data["longitude"])

    def to_dict(self) -> dict:
        return {"latitude": self.latitude, "longitude": self.longitude}


@dataclass(frozen=True)
class VenueLocation:
    """A venue id with its coordinates, or None when the location is unknown."""
    venue_id: str
    coordinates: Optional[GeoPoint] = None

    @classmethod
    def from_dict(cls, data) -> "VenueLocation":
        coords = data.get("coordinates")
        return cls(
            venue_id=str(data["venue_id"]),
            coordinates=GeoPoint.from_dict(coords) if coords else None,
        )

    def to_dict(self) -> dict:
        return {
            "venue_id": self.venue_id,
            "coordinates": self.coordinates.to_dict() if self.coordinates else None,
        }


def distance_meters(a: GeoPoint, b: GeoPoint) -> float:
    """
    Great-circle distance between two points in meters (haversine).

    Args:
        a: First point
        b: Second point

    Returns:
        Distance in meters, 0.0 for identical points
    """
    phi1 = radians(a.latitude)
    phi2 = radians(b.latitude)
    dphi = radians(b.latitude - a.latitude)
    dlambda = radians(b.longitude - a.longitude)

    h = sin(dphi / 2) ** 2 + cos(phi1) * cos(phi2) * sin(dlambda / 2) ** 2
    # Rounding can push h a hair outside [0, 1] near antipodes
    h = min(1.0, max(0.0, h))
    return 2 * EARTH_RADIUS_METERS * atan2(sqrt(h), sqrt(1 - h))


def calculate_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Calculate distance between two points in meters using Haversine formula.

    Args:
        lat1: Latitude of first point
        lon1: Longitude of first point
        lat2: Latitude of second point
        lon2: Longitude of second point

    Returns:
        Distance in meters
    """
    return distance_meters(GeoPoint(lat1, lon1), GeoPoint(lat2, lon2))


def find_nearest_venue(
    position: GeoPoint,
    venues: Iterable[VenueLocation],
    max_radius_meters: float = DEFAULT_PROXIMITY_RADIUS_METERS,
) -> Optional[str]:
    """
    Find the single closest venue strictly within max_radius_meters.

    Venues without coordinates are skipped. On equal distances the venue
    seen first wins.

    Returns:
        The venue id, or None if no venue qualifies
    """
    closest_id = None
    min_distance = float("inf")

    for venue in venues:
        if venue.coordinates is None:
            continue

        distance = distance_meters(position, venue.coordinates)
        if distance < max_radius_meters and distance < min_distance:
            min_distance = distance
            closest_id = venue.venue_id

    return closest_id
