"""
Inbound event parsing for the popularity websocket.

Every frame is validated here before it reaches the presence state machine.
Anything that fails validation raises MalformedEventError and is dropped by
the consumer without touching the occupancy registry.

Accepted frames:
    {"type": "location-update", "userId": "...", "position": {...}, "venueId": "..." | null}
    {"type": "leave", "userId": "...", "venueId": "..."}      (alias: "explicit-leave")
    {"type": "request-snapshot", "venueId": "..."?}
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

from common.utils.geo import GeoPoint

from .exceptions import MalformedEventError

LOCATION_UPDATE = "location-update"
LEAVE = "leave"
REQUEST_SNAPSHOT = "request-snapshot"

EVENT_ALIASES = {
    "explicit-leave": LEAVE,
}


@dataclass(frozen=True)
class LocationUpdate:
    user_id: Optional[str]
    position: GeoPoint
    venue_id: Optional[str]


@dataclass(frozen=True)
class Leave:
    user_id: Optional[str]
    venue_id: str


@dataclass(frozen=True)
class SnapshotRequest:
    venue_id: Optional[str] = None


Event = Union[LocationUpdate, Leave, SnapshotRequest]


def _optional_id(data: Dict[str, Any], key: str) -> Optional[str]:
    value = data.get(key)
    if value is None:
        return None
    # Ids are opaque strings; integers from clients are accepted as-is
    if isinstance(value, bool) or not isinstance(value, (str, int)):
        raise MalformedEventError(f"{key} must be a string")
    value = str(value).strip()
    if not value:
        raise MalformedEventError(f"{key} must not be empty")
    return value


def _required_id(data: Dict[str, Any], key: str) -> str:
    value = _optional_id(data, key)
    if value is None:
        raise MalformedEventError(f"{key} is required")
    return value


def parse_event(data: Any) -> Event:
    """
    Validate a decoded JSON frame and return the matching event object.

    Raises:
        MalformedEventError: missing/invalid fields or unknown type
    """
    if not isinstance(data, dict):
        raise MalformedEventError("Event must be a JSON object")

    msg_type = data.get("type")
    if not msg_type or not isinstance(msg_type, str):
        raise MalformedEventError("Message type is required")
    msg_type = EVENT_ALIASES.get(msg_type, msg_type)

    if msg_type == LOCATION_UPDATE:
        try:
            position = GeoPoint.from_dict(data.get("position"))
        except ValueError as e:
            raise MalformedEventError(str(e)) from e

        venue_key = "venueId" if "venueId" in data else "candidateVenueId"
        return LocationUpdate(
            user_id=_optional_id(data, "userId"),
            position=position,
            venue_id=_optional_id(data, venue_key),
        )

    if msg_type == LEAVE:
        return Leave(
            user_id=_optional_id(data, "userId"),
            venue_id=_required_id(data, "venueId"),
        )

    if msg_type == REQUEST_SNAPSHOT:
        return SnapshotRequest(venue_id=_optional_id(data, "venueId"))

    raise MalformedEventError(f"Unknown message type: {msg_type}")
