"""
Client tracking loop.

Consumes position samples, matches each one to the nearest venue and emits a
location-update only when the matched venue changes. The first sample always
produces an event so the server learns the initial state.
"""

import logging
import threading
from enum import Enum
from typing import Iterable, Optional

from common.utils.geo import (
    DEFAULT_PROXIMITY_RADIUS_METERS,
    GeoPoint,
    VenueLocation,
    find_nearest_venue,
)

from .channel import EventChannel
from .exceptions import GeolocationUnavailable
from .sources import LocationSource

logger = logging.getLogger(__name__)


class TrackingStatus(str, Enum):
    IDLE = "idle"
    TRACKING = "tracking"
    STOPPED = "stopped"
    UNAVAILABLE = "unavailable"


# No samples are processed or emitted in these states
TERMINAL_STATUSES = (TrackingStatus.STOPPED, TrackingStatus.UNAVAILABLE)


class TrackingLoop:
    def __init__(
        self,
        source: LocationSource,
        channel: EventChannel,
        user_id,
        venues: Iterable[VenueLocation] = (),
        max_radius_meters: float = DEFAULT_PROXIMITY_RADIUS_METERS,
    ):
        self.source = source
        self.channel = channel
        self.user_id = str(user_id)
        self.max_radius_meters = max_radius_meters

        self._venues = tuple(venues)
        self._status = TrackingStatus.IDLE
        self._lock = threading.Lock()
        self._stop_requested = threading.Event()

        self._has_emitted = False
        self._last_venue_id: Optional[str] = None
        self._last_position: Optional[GeoPoint] = None

    @property
    def status(self) -> TrackingStatus:
        return self._status

    @property
    def current_venue_id(self) -> Optional[str]:
        return self._last_venue_id

    def update_venues(self, venues: Iterable[VenueLocation]):
        """Replace the venue list; takes effect from the next sample."""
        with self._lock:
            self._venues = tuple(venues)

    def run(self) -> TrackingStatus:
        """
        Consume the source until it is exhausted, stop() is called or
        geolocation turns out to be unavailable. Returns the final status.
        """
        with self._lock:
            if self._stop_requested.is_set():
                return self._status
            self._status = TrackingStatus.TRACKING

        try:
            for position in self.source:
                if self._stop_requested.is_set():
                    break
                self.handle_sample(position)
        except GeolocationUnavailable as e:
            logger.warning("Geolocation unavailable for user %s: %s", self.user_id, e)
            with self._lock:
                if self._status != TrackingStatus.STOPPED:
                    try:
                        self._release_locked()
                    finally:
                        self._status = TrackingStatus.UNAVAILABLE
        finally:
            self.source.close()

        return self._status

    def handle_sample(self, position: GeoPoint) -> Optional[dict]:
        """Match one sample; returns the emitted event, or None if suppressed."""
        with self._lock:
            if self._stop_requested.is_set() or self._status in TERMINAL_STATUSES:
                return None

            venue_id = find_nearest_venue(position, self._venues, self.max_radius_meters)
            self._last_position = position

            if self._has_emitted and venue_id == self._last_venue_id:
                return None

            event = self._build_event(position, venue_id)
            self.channel.send_event(event)

            logger.debug("User %s: %s -> %s", self.user_id, self._last_venue_id, venue_id)
            self._has_emitted = True
            self._last_venue_id = venue_id
            return event

    def stop(self) -> Optional[dict]:
        """
        Stop tracking. If currently matched to a venue, a final event with a
        null venue is emitted first. No event is sent after this returns.
        """
        self._stop_requested.set()

        with self._lock:
            if self._status == TrackingStatus.STOPPED:
                return None
            try:
                final_event = self._release_locked()
            finally:
                self._status = TrackingStatus.STOPPED

        self.source.close()
        logger.info("Tracking stopped for user %s", self.user_id)
        return final_event

    def _release_locked(self) -> Optional[dict]:
        # Caller holds the lock
        if self._last_venue_id is None:
            return None
        event = self._build_event(self._last_position, None)
        self.channel.send_event(event)
        self._last_venue_id = None
        return event

    def _build_event(self, position: GeoPoint, venue_id: Optional[str]) -> dict:
        return {
            "type": "location-update",
            "userId": self.user_id,
            "position": position.to_dict(),
            "venueId": venue_id,
        }
