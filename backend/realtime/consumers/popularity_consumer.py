"""Popularity WebSocket consumer: live location ingest and occupancy snapshots."""

import logging
from typing import Any, Optional

from channels.db import database_sync_to_async
from django.conf import settings

from common.utils.geo import DEFAULT_PROXIMITY_RADIUS_METERS, GeoPoint, distance_meters
from realtime.apps import get_occupancy_registry
from realtime.broadcast import broadcast_snapshot_async, build_snapshot_message, get_popularity_group
from realtime.events import Leave, LocationUpdate, SnapshotRequest, parse_event
from realtime.exceptions import MalformedEventError
from realtime.occupancy import OccupancyRegistry
from realtime.presence import PresenceSession, Transition

from .base import BaseConsumer

logger = logging.getLogger(__name__)


class PopularityConsumer(BaseConsumer):
    """
    WebSocket consumer for venue popularity.

    Handles:
        - location-update: drives the connection's presence state machine
        - leave / explicit-leave: explicit exit from the current venue
        - request-snapshot: replies with the current registry to this socket only
        - popularity_snapshot (group event): forwards broadcasts to the client

    Anonymous sockets may connect to watch counts; their user id is bound
    from the first event that carries one.
    """

    allow_anonymous = True
    registry: Optional[OccupancyRegistry] = None

    def __init__(self, *args, registry: Optional[OccupancyRegistry] = None, **kwargs):
        super().__init__(*args, **kwargs)
        if registry is not None:
            self.registry = registry

    def get_registry(self) -> OccupancyRegistry:
        if self.registry is None:
            self.registry = get_occupancy_registry()
        return self.registry

    async def on_connect(self):
        """Start a presence session, join the broadcast group and send the current state."""
        self.session = PresenceSession(self.get_registry(), user_id=self.user_id)

        await self._join_group(get_popularity_group())

        await self.send_json({
            "type": "connection_established",
            "user_id": self.user_id,
            "connection_id": self.session.connection_id,
        })
        await self.send_json(build_snapshot_message(self.get_registry().snapshot()))

    async def on_disconnect(self, close_code):
        """Release the user's presence so the venue count drops immediately."""
        session = getattr(self, "session", None)
        if session is None:
            return

        transition = session.close()
        if transition:
            logger.info(
                "User %s disconnected while present at venue %s",
                transition.user_id, transition.previous_venue_id,
            )
            await self._broadcast(transition)

    async def handle_message(self, msg_type: Optional[str], data: Any):
        try:
            event = parse_event(data)
        except MalformedEventError as e:
            logger.warning(
                "Dropping malformed %s event on connection %s: %s",
                msg_type, self.session.connection_id, e,
            )
            return

        if isinstance(event, LocationUpdate):
            await self._handle_location_update(event)
        elif isinstance(event, Leave):
            await self._handle_leave(event)
        elif isinstance(event, SnapshotRequest):
            await self._handle_snapshot_request(event)

    # ---------------------- Message Handlers ----------------------

    async def _handle_location_update(self, event: LocationUpdate):
        try:
            self.session.bind_user(event.user_id)
        except MalformedEventError as e:
            logger.warning("Dropping location-update on connection %s: %s", self.session.connection_id, e)
            return

        venue_id = event.venue_id
        if venue_id is not None and getattr(settings, "PROXIMITY_REVALIDATE", False):
            venue_id = await self._revalidate_candidate(event.position, venue_id)

        transition = self.session.apply(venue_id)
        if transition:
            await self._broadcast(transition)

    async def _handle_leave(self, event: Leave):
        try:
            self.session.bind_user(event.user_id)
        except MalformedEventError as e:
            logger.warning("Dropping leave on connection %s: %s", self.session.connection_id, e)
            return

        transition = self.session.leave(event.venue_id)
        if transition:
            await self._broadcast(transition)

    async def _handle_snapshot_request(self, event: SnapshotRequest):
        snapshot = self.get_registry().snapshot()
        await self.send_json(build_snapshot_message(snapshot, event.venue_id))

    # ---------------------- Event Handlers (from group_send) ----------------------

    async def popularity_snapshot(self, event):
        """Forward a registry snapshot broadcast to the client."""
        await self.send_json({
            "type": "popularity-snapshot",
            "venues": event.get("venues", {}),
        })

    # ---------------------- Helpers ----------------------

    async def _broadcast(self, transition: Transition):
        result = await broadcast_snapshot_async(transition.snapshot, self.channel_layer)
        logger.debug(
            "Presence %s for user %s (%s -> %s), broadcasted=%s",
            transition.kind, transition.user_id,
            transition.previous_venue_id, transition.venue_id,
            result.get("broadcasted"),
        )

    async def _revalidate_candidate(self, position: GeoPoint, venue_id: str) -> Optional[str]:
        """Server-side distance check of a client-reported venue."""
        venue = await self._get_venue_location(venue_id)
        if venue is None or venue.coordinates is None:
            logger.info("Rejecting candidate venue %s: location unknown", venue_id)
            return None

        radius = getattr(settings, "PROXIMITY_RADIUS_METERS", DEFAULT_PROXIMITY_RADIUS_METERS)
        distance = distance_meters(position, venue.coordinates)
        if distance >= radius:
            logger.info(
                "Rejecting candidate venue %s for user %s: %.1fm away",
                venue_id, self.session.user_id, distance,
            )
            return None
        return venue_id

    # ---------------------- Database Helpers ----------------------

    @database_sync_to_async
    def _get_venue_location(self, venue_id: str):
        from bars.services import get_venue_location
        return get_venue_location(venue_id)
