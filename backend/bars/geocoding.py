"""
Address geocoding for bars.

Resolution order:
1. Address that is literally "lat, lng" -> parsed directly
2. Google Geocoding API (when GOOGLE_MAPS_API_KEY is configured)
3. Otherwise unknown (None); bars without coordinates are ignored by
   proximity matching
"""

from __future__ import annotations

import logging
from typing import Optional

import requests
from django.conf import settings

from common.utils.geo import GeoPoint

from .exceptions import GeocodingError

logger = logging.getLogger(__name__)

GOOGLE_GEOCODE_URL = "https://maps.googleapis.com/maps/api/geocode/json"


def parse_coordinates(text: str) -> Optional[GeoPoint]:
    """Parse a "lat, lng" string; None if it is anything else."""
    if not text or not isinstance(text, str):
        return None

    parts = [part.strip() for part in text.split(",")]
    if len(parts) != 2:
        return None

    try:
        return GeoPoint(float(parts[0]), float(parts[1]))
    except ValueError:
        return None


def geocode_address(address: str, session: Optional[requests.Session] = None) -> Optional[GeoPoint]:
    """
    Resolve an address to coordinates.

    Returns:
        GeoPoint, or None when the address cannot be resolved

    Raises:
        GeocodingError: transport or API failure
    """
    parsed = parse_coordinates(address)
    if parsed:
        return parsed

    api_key = getattr(settings, "GOOGLE_MAPS_API_KEY", "")
    if not api_key:
        logger.info("No GOOGLE_MAPS_API_KEY configured; cannot geocode %r", address)
        return None

    http = session or requests
    try:
        response = http.get(
            GOOGLE_GEOCODE_URL,
            params={"address": address, "key": api_key},
            timeout=getattr(settings, "GEOCODING_TIMEOUT_SECONDS", 10),
        )
        response.raise_for_status()
        data = response.json()
    except (requests.RequestException, ValueError) as e:
        raise GeocodingError(f"Geocoding request failed: {e}") from e

    status = data.get("status")
    if status == "ZERO_RESULTS":
        return None
    if status != "OK" or not data.get("results"):
        raise GeocodingError(f"Geocoding API returned {status}: {data.get('error_message', '')}")

    location = data["results"][0]["geometry"]["location"]
    return GeoPoint(location["lat"], location["lng"])
