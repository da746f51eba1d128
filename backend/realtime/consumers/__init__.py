"""Realtime consumers for WebSocket communication."""

from .base import BaseConsumer
from .popularity_consumer import PopularityConsumer

__all__ = [
    "BaseConsumer",
    "PopularityConsumer",
]
