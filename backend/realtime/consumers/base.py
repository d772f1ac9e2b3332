"""Base WebSocket consumer with shared functionality for all consumers."""

import logging
from typing import Dict, Any, Set

from channels.generic.websocket import AsyncJsonWebsocketConsumer

from realtime.events import BROADCAST_GROUP, STAFF_GROUP, user_group

logger = logging.getLogger(__name__)

STAFF_ROLES = ("dispatcher", "admin")


class BaseConsumer(AsyncJsonWebsocketConsumer):
    """
    Base consumer with shared connection management and helper methods.

    Subclasses should override:
        - allowed_roles: roles accepted on this endpoint (empty = any)
        - on_connect(): custom connect logic
        - handle_message(msg_type, data): handle incoming messages
    """
    allowed_roles = ()

    async def connect(self):
        self.user = self.scope.get("user")

        if self.user is None or self.user.is_anonymous:
            await self.close()
            return

        # Basic attributes available to all consumers
        self.user_id = getattr(self.user, "id", None)
        self.role = "admin" if self.user.is_superuser else getattr(self.user, "role", None)

        if self.allowed_roles and self.role not in self.allowed_roles:
            logger.info("Rejected %s socket for user %s (%s)", self.__class__.__name__, self.user_id, self.role)
            await self.close()
            return

        # Track joined groups for cleanup
        self.joined_groups: Set[str] = set()

        # Personal group for targeted server->user messages
        await self._join_group(user_group(self.user_id))
        await self._join_group(BROADCAST_GROUP)
        if self.role in STAFF_ROLES:
            await self._join_group(STAFF_GROUP)

        await self.accept()
        await self.on_connect()

    async def on_connect(self):
        """Override in subclass for custom connect logic."""
        await self.send_json({
            "type": "connection_established",
            "user_id": self.user_id,
            "role": self.role,
        })

    async def disconnect(self, close_code):
        """Leave all joined groups on disconnect."""
        if not hasattr(self, "joined_groups"):
            return
        try:
            for group in list(self.joined_groups):
                await self._leave_group(group)
            await self.on_disconnect(close_code)
        except Exception:
            logger.exception("Error during disconnect for user %s", getattr(self, 'user_id', 'unknown'))

    async def on_disconnect(self, close_code):
        """Override in subclass for custom disconnect logic."""
        pass

    async def receive_json(self, data: Dict[str, Any]):
        """Route incoming messages to appropriate handlers."""
        msg_type = data.get("type") if isinstance(data, dict) else None
        if not msg_type:
            await self.send_error("Message type is required")
            return

        try:
            await self.handle_message(msg_type, data)
        except Exception:
            logger.exception("Error handling message type %s", msg_type)
            await self.send_error(f"Error processing {msg_type}")

    async def handle_message(self, msg_type: str, data: Dict[str, Any]):
        """Override in subclass to handle specific message types."""
        await self.send_error(f"Unknown message type: {msg_type}")

    # ---------------------- Group Management Helpers ----------------------

    async def _join_group(self, group_name: str):
        """Join a channel group and track it."""
        await self.channel_layer.group_add(group_name, self.channel_name)
        self.joined_groups.add(group_name)

    async def _leave_group(self, group_name: str):
        """Leave a channel group and untrack it."""
        await self.channel_layer.group_discard(group_name, self.channel_name)
        self.joined_groups.discard(group_name)

    # ---------------------- Response Helpers ----------------------

    async def send_error(self, message: str, code: str = None):
        """Send an error message to the client."""
        body = {"type": "error", "message": message}
        if code:
            body["code"] = code
        await self.send_json(body)

    async def send_success(self, event_type: str, **kwargs):
        """Send a success response to the client."""
        await self.send_json({
            "type": event_type,
            **kwargs,
        })

    # ---------------------- Server Events ----------------------

    async def dispatch_event(self, event):
        """Forward a published dispatch event (booking:update, pricing:update, ...)."""
        await self.send_json({
            "type": event.get("event"),
            "payload": event.get("payload"),
        })
