"""Passenger WebSocket consumer: booking requests over the socket and status events."""

import logging
from typing import Dict, Any

from channels.db import database_sync_to_async

from .base import BaseConsumer
from common.utils import GeoPoint
from services.booking_lifecycle.exceptions import BookingError

logger = logging.getLogger(__name__)


class PassengerConsumer(BaseConsumer):
    """
    WebSocket consumer for passengers.

    Handles:
        - booking_request: create a booking and route booking:new to the
          nearest connected driver (or all drivers)
        - booking:update / booking:assigned / tracking events via the user group
    """
    allowed_roles = ("passenger",)

    async def on_connect(self):
        await self.send_json({
            "type": "connection_established",
            "user_id": self.user_id,
            "role": self.role,
            "message": "Passenger connected successfully",
        })

    async def handle_message(self, msg_type: str, data: Dict[str, Any]):
        if msg_type == "booking_request":
            await self._handle_booking_request(data)
        else:
            await self.send_error(f"Unknown message type: {msg_type}")

    async def _handle_booking_request(self, data: Dict[str, Any]):
        try:
            pickup = GeoPoint.from_mapping(data.get("pickup"))
            dropoff = GeoPoint.from_mapping(data.get("dropoff"))
        except (TypeError, ValueError) as e:
            await self.send_error(f"Invalid booking_request: {e}", "validation_error")
            return

        try:
            result = await self._create_and_route(pickup, dropoff, data.get("vehicleType") or "mini")
        except BookingError as e:
            await self.send_error(e.message, e.code)
            return

        await self.send_success("booking_created", **result)

    @database_sync_to_async
    def _create_and_route(self, pickup, dropoff, vehicle_type) -> Dict[str, Any]:
        from bookings.serializers import serialize_booking
        from services.booking_lifecycle import actor_for, create_booking
        from services.matching import route_booking_notification

        booking = create_booking(actor_for(self.user), pickup, dropoff, vehicle_type=vehicle_type)
        try:
            decision = route_booking_notification(booking)
            routed_to = str(decision.driver_id) if decision.exclusive else None
        except Exception:
            # The booking stands; it is still visible through nearby-pending
            logger.warning("Routing booking %s failed", booking.pk, exc_info=True)
            routed_to = None

        return {"booking": serialize_booking(booking), "routedTo": routed_to}
