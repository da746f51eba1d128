"""
Per-connection presence state machine.

States: NOT_PRESENT (current_venue_id is None) and PRESENT(venue_id).

    NOT_PRESENT  --[candidate]-------->  PRESENT(candidate)   enter
    PRESENT(v)   --[v]---------------->  PRESENT(v)           no change (enter if registry moved away)
    PRESENT(v)   --[v2 != v]---------->  PRESENT(v2)          switch
    PRESENT(v)   --[None]------------->  NOT_PRESENT          exit
    any          --[close]------------>  terminal             disconnect

Every transition that touches the registry returns a Transition carrying the
resulting snapshot so the caller can broadcast it. Exits from a venue the
registry no longer lists the user at return None.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import Optional

from .exceptions import IdentityMismatchError, SessionClosedError
from .occupancy import OccupancyRegistry, Snapshot

logger = logging.getLogger(__name__)

ENTER = "enter"
SWITCH = "switch"
EXIT = "exit"
DISCONNECT = "disconnect"


@dataclass(frozen=True)
class Transition:
    """A registry-mutating presence change."""
    kind: str
    user_id: str
    previous_venue_id: Optional[str]
    venue_id: Optional[str]
    snapshot: Snapshot


class PresenceSession:
    """
    Presence tracking for one live connection.

    The session is the only writer to the occupancy registry for its user.
    """

    def __init__(
        self,
        registry: OccupancyRegistry,
        user_id: Optional[str] = None,
        connection_id: Optional[str] = None,
    ):
        self.registry = registry
        self.connection_id = connection_id or uuid.uuid4().hex
        self.user_id = str(user_id) if user_id is not None else None
        self.current_venue_id: Optional[str] = None
        self.closed = False

    @property
    def is_present(self) -> bool:
        return self.current_venue_id is not None

    def bind_user(self, user_id: Optional[str]) -> str:
        """
        Bind the session to a user id, or check an event's id against it.

        Raises:
            IdentityMismatchError: user_id differs from the bound user
            IdentityMismatchError: no user is bound and none was supplied
        """
        if user_id is None:
            if self.user_id is None:
                raise IdentityMismatchError("userId is required")
            return self.user_id

        user_id = str(user_id)
        if self.user_id is None:
            self.user_id = user_id
        elif user_id != self.user_id:
            raise IdentityMismatchError(
                f"userId {user_id} does not match session user {self.user_id}"
            )
        return self.user_id

    def apply(self, candidate_venue_id: Optional[str]) -> Optional[Transition]:
        """Apply a location update's candidate venue (None = not at any venue)."""
        self._ensure_open()
        if self.user_id is None:
            raise IdentityMismatchError("Session has no user bound")

        current = self.current_venue_id
        candidate = str(candidate_venue_id) if candidate_venue_id is not None else None

        if candidate == current:
            # Another connection of the same user may have moved them
            # elsewhere; re-enter in that case
            if candidate is None or self.registry.venue_of(self.user_id) == candidate:
                return None
            current = None

        if candidate is None:
            return self._exit(EXIT)

        if current is None:
            snapshot = self.registry.mark_present(candidate, self.user_id)
            kind = ENTER
        else:
            self.registry.mark_absent(current, self.user_id)
            snapshot = self.registry.mark_present(candidate, self.user_id)
            kind = SWITCH

        self.current_venue_id = candidate
        logger.debug(
            "Presence %s: user=%s %s -> %s (connection %s)",
            kind, self.user_id, current, candidate, self.connection_id,
        )
        return Transition(kind, self.user_id, current, candidate, snapshot)

    def leave(self, venue_id: str) -> Optional[Transition]:
        """Explicit leave; ignored unless venue_id is the current venue."""
        self._ensure_open()
        if self.current_venue_id is None or str(venue_id) != self.current_venue_id:
            return None
        return self._exit(EXIT)

    def close(self) -> Optional[Transition]:
        """Tear down the session, releasing the user's presence if any."""
        if self.closed:
            return None

        transition = None
        if self.current_venue_id is not None and self.user_id is not None:
            transition = self._exit(DISCONNECT)
        self.closed = True
        return transition

    # ---------------------- Internal Helpers ----------------------

    def _exit(self, kind: str) -> Optional[Transition]:
        previous = self.current_venue_id
        self.current_venue_id = None
        if self.registry.venue_of(self.user_id) != previous:
            # Another connection of the same user already moved them
            return None

        snapshot = self.registry.mark_absent(previous, self.user_id)
        logger.debug(
            "Presence %s: user=%s left %s (connection %s)",
            kind, self.user_id, previous, self.connection_id,
        )
        return Transition(kind, self.user_id, previous, None, snapshot)

    def _ensure_open(self) -> None:
        if self.closed:
            raise SessionClosedError(f"Session {self.connection_id} is closed")
