"""
Realtime app for live venue popularity over WebSockets.

This app provides:
- In-memory occupancy registry (who is present at which venue)
- Per-connection presence state machine with enter/switch/exit detection
- WebSocket consumer that ingests location events and fans out snapshots
- JWT/Cookie authentication middleware for WebSocket connections

Key Components:
    - occupancy.py: OccupancyRegistry, Snapshot
    - presence.py: PresenceSession state machine
    - events.py: inbound frame validation
    - broadcast.py: channel-layer snapshot fan-out
    - consumers/: WebSocket consumers

Usage:
    from realtime.apps import get_occupancy_registry
    from realtime.broadcast import broadcast_snapshot_async
    from realtime.consumers import PopularityConsumer
"""
