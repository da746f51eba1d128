"""Transport between the tracking loop and the server."""

import json
import logging
from typing import List, Optional
from urllib.parse import urlencode

import requests
import websocket

from common.utils.geo import VenueLocation

from .exceptions import ChannelError

logger = logging.getLogger(__name__)

POPULARITY_WS_PATH = "/ws/popularity/"
VENUE_LOCATIONS_PATH = "/api/bars/locations/"


class EventChannel:
    """Anything the tracking loop can send JSON events through."""

    def send_event(self, event: dict):
        raise NotImplementedError

    def close(self):
        pass


class SocketChannel(EventChannel):
    """
    Blocking websocket connection to the popularity consumer.

    The access token, when given, travels in the query string the same way
    the server's JWT middleware expects it.
    """

    def __init__(self, base_url: str, token: Optional[str] = None, timeout: float = 10):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = timeout
        self._ws = None

    @property
    def url(self) -> str:
        ws_base = self.base_url.replace("http", "ws", 1)
        url = f"{ws_base}{POPULARITY_WS_PATH}"
        if self.token:
            url = f"{url}?{urlencode({'token': self.token})}"
        return url

    @property
    def connected(self) -> bool:
        return self._ws is not None and self._ws.connected

    def connect(self) -> dict:
        """Open the socket and return the server's connection_established greeting."""
        try:
            self._ws = websocket.create_connection(self.url, timeout=self.timeout)
        except (websocket.WebSocketException, OSError) as e:
            raise ChannelError(f"Could not connect to {self.url}: {e}") from e

        greeting = self.receive()
        logger.info("Connected to popularity socket as %s", greeting.get("user_id"))
        return greeting

    def send_event(self, event: dict):
        if not self.connected:
            self.connect()
        try:
            self._ws.send(json.dumps(event))
        except (websocket.WebSocketException, OSError) as e:
            raise ChannelError(f"Failed to send {event.get('type')}: {e}") from e

    def receive(self) -> dict:
        try:
            return json.loads(self._ws.recv())
        except (websocket.WebSocketException, OSError) as e:
            raise ChannelError(f"Failed to receive from popularity socket: {e}") from e

    def request_snapshot(self, venue_id: Optional[str] = None) -> dict:
        """Ask for the current occupancy and wait for the reply."""
        event = {"type": "request-snapshot"}
        if venue_id is not None:
            event["venueId"] = venue_id
        self.send_event(event)

        # Broadcasts may arrive first; they carry the same shape
        while True:
            message = self.receive()
            if message.get("type") == "popularity-snapshot":
                return message.get("venues", {})

    def close(self):
        if self._ws is not None:
            self._ws.close()
            self._ws = None


def fetch_venue_locations(
    base_url: str,
    session: Optional[requests.Session] = None,
    timeout: float = 10,
) -> List[VenueLocation]:
    """Load venue coordinates from the bars API."""
    session = session or requests.Session()
    resp = session.get(f"{base_url.rstrip('/')}{VENUE_LOCATIONS_PATH}", timeout=timeout)
    resp.raise_for_status()

    venues = [VenueLocation.from_dict(item) for item in resp.json()]
    logger.info("Fetched %d venue locations", len(venues))
    return venues
