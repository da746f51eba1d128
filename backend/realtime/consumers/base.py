"""Base WebSocket consumer shared by realtime endpoints."""

import logging
from typing import Any, Optional, Set

from channels.generic.websocket import AsyncJsonWebsocketConsumer
from django.contrib.auth.models import AnonymousUser

logger = logging.getLogger(__name__)


class BaseConsumer(AsyncJsonWebsocketConsumer):
    """
    JSON consumer with identity resolution, group bookkeeping and a
    drop-don't-crash policy for bad frames.

    Subclasses implement:
        - on_connect(): join groups, greet the client
        - handle_message(msg_type, data): one decoded JSON frame
        - on_disconnect(close_code): release per-connection state
    """

    # Watch-only sockets without a resolved user are refused by default
    allow_anonymous = False

    async def connect(self):
        self.user = self.scope.get("user") or AnonymousUser()
        self.user_id: Optional[str] = None if self.user.is_anonymous else str(self.user.pk)
        self.joined_groups: Set[str] = set()

        if self.user_id is None and not self.allow_anonymous:
            logger.info("Refusing anonymous connection to %s", self.__class__.__name__)
            await self.close()
            return

        await self.accept()
        await self.on_connect()

    async def on_connect(self):
        pass

    async def disconnect(self, close_code):
        try:
            for group in list(getattr(self, "joined_groups", ())):
                await self._leave_group(group)
            await self.on_disconnect(close_code)
        except Exception:
            logger.exception("Error during disconnect for user %s", getattr(self, "user_id", None))

    async def on_disconnect(self, close_code):
        pass

    async def receive(self, text_data=None, bytes_data=None, **kwargs):
        if text_data is None:
            logger.warning("Dropping binary frame from user %s", self.user_id)
            return

        try:
            data = await self.decode_json(text_data)
        except ValueError:
            logger.warning("Dropping non-JSON frame from user %s", self.user_id)
            return

        await self.receive_json(data, **kwargs)

    async def receive_json(self, data: Any, **kwargs):
        msg_type = data.get("type") if isinstance(data, dict) else None

        try:
            await self.handle_message(msg_type, data)
        except Exception:
            # Handler bugs must not take the socket down
            logger.exception("Error handling %s from user %s", msg_type, self.user_id)
            await self.send_json({"type": "error", "message": f"Error processing {msg_type}"})

    async def handle_message(self, msg_type: Optional[str], data: Any):
        raise NotImplementedError

    # ---------------------- Group Management ----------------------

    async def _join_group(self, group_name: str):
        await self.channel_layer.group_add(group_name, self.channel_name)
        self.joined_groups.add(group_name)

    async def _leave_group(self, group_name: str):
        await self.channel_layer.group_discard(group_name, self.channel_name)
        self.joined_groups.discard(group_name)
