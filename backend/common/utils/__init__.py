"""Common utility functions."""

from .geo import (
    DEFAULT_PROXIMITY_RADIUS_METERS,
    GeoPoint,
    VenueLocation,
    calculate_distance,
    distance_meters,
    find_nearest_venue,
)

__all__ = [
    "DEFAULT_PROXIMITY_RADIUS_METERS",
    "GeoPoint",
    "VenueLocation",
    "calculate_distance",
    "distance_meters",
    "find_nearest_venue",
]
