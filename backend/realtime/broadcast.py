"""
Popularity snapshot broadcasting.

Every popularity websocket joins one channel-layer group. A registry-mutating
presence transition pushes the full snapshot to that group, so every
connected client converges on the same view without polling.

Architecture:
1. Presence transition returns the new registry snapshot
2. Snapshot is serialised once into the wire payload
3. group_send fans it out; each consumer forwards it to its socket
"""

from __future__ import annotations

import logging
from typing import Any, Dict

from channels.layers import get_channel_layer
from django.conf import settings

from .occupancy import Snapshot

logger = logging.getLogger(__name__)

SNAPSHOT_EVENT = "popularity-snapshot"


def get_popularity_group() -> str:
    return getattr(settings, "POPULARITY_GROUP", "popularity")


def build_snapshot_message(snapshot: Snapshot, venue_id=None) -> Dict[str, Any]:
    """Client-facing popularity-snapshot frame."""
    return {
        "type": SNAPSHOT_EVENT,
        "venues": snapshot.to_payload(venue_id),
    }


def _group_payload(snapshot: Snapshot) -> Dict[str, Any]:
    # "type" routes to PopularityConsumer.popularity_snapshot
    return {
        "type": "popularity_snapshot",
        "venues": snapshot.to_payload(),
    }


async def broadcast_snapshot_async(snapshot: Snapshot, channel_layer=None) -> Dict[str, Any]:
    """Push a snapshot to every connected popularity client."""
    try:
        channel_layer = channel_layer or get_channel_layer()
        if not channel_layer:
            return {"broadcasted": False, "reason": "no_channel_layer"}

        await channel_layer.group_send(get_popularity_group(), _group_payload(snapshot))
        return {"broadcasted": True, "venues": len(snapshot)}

    except Exception as e:
        logger.exception("broadcast_snapshot_async failed: %s", e)
        return {"broadcasted": False, "error": str(e)}
