"""
In-memory occupancy registry for live "who's here" counts.

This module provides:
- OccupancyEntry / Snapshot: immutable, point-in-time views of occupancy
- OccupancyRegistry: process-wide mapping of venue id -> set of user ids

Architecture:
- One registry instance is owned by the realtime app config (see apps.py)
- Only the presence state machine writes to it; broadcasters read snapshots
- Counts are always derived from set sizes, never stored separately
- A user id is present at one venue at most; mark_present moves the user
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from types import MappingProxyType
from collections.abc import Mapping
from typing import Dict, FrozenSet, Iterator, Optional, Set

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OccupancyEntry:
    """Users currently present at one venue."""
    venue_id: str
    present_users: FrozenSet[str]

    @property
    def count(self) -> int:
        return len(self.present_users)

    def to_payload(self) -> Dict[str, object]:
        return {
            "count": self.count,
            "presentUserIds": sorted(self.present_users),
        }


class Snapshot(Mapping):
    """Read-only mapping of venue id -> OccupancyEntry."""

    def __init__(self, entries: Mapping[str, OccupancyEntry]):
        self._entries = MappingProxyType(dict(entries))

    def __getitem__(self, venue_id: str) -> OccupancyEntry:
        return self._entries[venue_id]

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        counts = {venue_id: entry.count for venue_id, entry in self._entries.items()}
        return f"Snapshot({counts})"

    def count(self, venue_id: str) -> int:
        """Count for a venue; unknown venues count as zero."""
        entry = self._entries.get(venue_id)
        return entry.count if entry else 0

    def to_payload(self, venue_id: Optional[str] = None) -> Dict[str, Dict[str, object]]:
        """
        Build the popularity-snapshot wire shape.

        With venue_id, only that venue is included (zero entry if unknown).
        """
        if venue_id is not None:
            entry = self._entries.get(venue_id) or OccupancyEntry(venue_id, frozenset())
            return {venue_id: entry.to_payload()}
        return {vid: entry.to_payload() for vid, entry in self._entries.items()}


class OccupancyRegistry:
    """
    Process-wide venue occupancy state.

    Provides:
    - mark_present / mark_absent (return the updated snapshot)
    - snapshot (consistent copy taken under the lock)
    - venue_of / count helpers
    """

    def __init__(self):
        self._venues: Dict[str, Set[str]] = {}
        # user id -> venue id, kept in step with _venues
        self._user_venue: Dict[str, str] = {}
        self._lock = threading.Lock()

    # ---------------------- Mutations ----------------------

    def mark_present(self, venue_id: str, user_id: str) -> Snapshot:
        """Mark user present at venue_id, removing them from any other venue first."""
        venue_id = str(venue_id)
        user_id = str(user_id)

        with self._lock:
            previous = self._user_venue.get(user_id)
            if previous is not None and previous != venue_id:
                self._discard(previous, user_id)
                logger.debug("User %s moved from venue %s to %s", user_id, previous, venue_id)

            self._venues.setdefault(venue_id, set()).add(user_id)
            self._user_venue[user_id] = venue_id
            return self._snapshot()

    def mark_absent(self, venue_id: str, user_id: str) -> Snapshot:
        """Remove user from venue_id if present there; otherwise a no-op."""
        venue_id = str(venue_id)
        user_id = str(user_id)

        with self._lock:
            if user_id in self._venues.get(venue_id, ()):
                self._discard(venue_id, user_id)
            return self._snapshot()

    def clear(self) -> None:
        with self._lock:
            self._venues.clear()
            self._user_venue.clear()

    # ---------------------- Queries ----------------------

    def snapshot(self) -> Snapshot:
        with self._lock:
            return self._snapshot()

    def venue_of(self, user_id: str) -> Optional[str]:
        with self._lock:
            return self._user_venue.get(str(user_id))

    def count(self, venue_id: str) -> int:
        with self._lock:
            return len(self._venues.get(str(venue_id), ()))

    # ---------------------- Internal Helpers ----------------------

    def _discard(self, venue_id: str, user_id: str) -> None:
        users = self._venues.get(venue_id)
        if users is not None:
            users.discard(user_id)
            # Empty entries are equivalent to absent ones
            if not users:
                del self._venues[venue_id]
        if self._user_venue.get(user_id) == venue_id:
            del self._user_venue[user_id]

    def _snapshot(self) -> Snapshot:
        return Snapshot({
            venue_id: OccupancyEntry(venue_id, frozenset(users))
            for venue_id, users in self._venues.items()
        })
