"""WebSocket URL routing for the realtime app."""

from django.urls import re_path

from .consumers.popularity_consumer import PopularityConsumer

websocket_urlpatterns = [
    # Venue popularity: location ingest + live occupancy snapshots
    # URL: ws://localhost:8000/ws/popularity/
    re_path(
        r"ws/popularity/$",
        PopularityConsumer.as_asgi(),
        name="popularity-ws"
    ),
]
