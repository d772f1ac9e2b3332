"""Trip tracking WebSocket consumer shared by both parties of a booking."""

import logging
from typing import Dict, Any

from channels.db import database_sync_to_async

from .base import BaseConsumer, STAFF_ROLES
from realtime.events import booking_group
from services.booking_lifecycle.exceptions import BookingError

logger = logging.getLogger(__name__)


class BookingConsumer(BaseConsumer):
    """
    WebSocket consumer for trip tracking.

    Participants (passenger, assigned driver, staff) join ``booking_<id>`` to
    receive booking:update and tracking:* events; the assigned driver can
    push positions into the group.
    """

    async def handle_message(self, msg_type: str, data: Dict[str, Any]):
        if msg_type == "start_tracking":
            await self._handle_start_tracking(data)
        elif msg_type == "stop_tracking":
            await self._handle_stop_tracking(data)
        elif msg_type == "tracking_update":
            await self._handle_tracking_update(data)
        else:
            await self.send_error(f"Unknown message type: {msg_type}")

    # ---------------------- Message Handlers ----------------------

    async def _handle_start_tracking(self, data: Dict[str, Any]):
        booking_id = data.get("bookingId")
        if booking_id is None:
            await self.send_error("start_tracking requires bookingId")
            return

        if not await self._is_participant(booking_id):
            await self.send_error("You are not authorized to track this booking")
            return

        await self._join_group(booking_group(booking_id))
        await self.send_success("tracking_started", bookingId=str(booking_id))

    async def _handle_stop_tracking(self, data: Dict[str, Any]):
        booking_id = data.get("bookingId")
        if booking_id is None:
            return
        await self._leave_group(booking_group(booking_id))
        await self.send_success("tracking_stopped", bookingId=str(booking_id))

    async def _handle_tracking_update(self, data: Dict[str, Any]):
        """Assigned driver pushes a position during an active trip."""
        if self.role != "driver":
            await self.send_error("Only drivers can send tracking updates")
            return

        booking_id = data.get("bookingId")
        lat = data.get("latitude")
        lon = data.get("longitude")
        if booking_id is None or lat is None or lon is None:
            await self.send_error("tracking_update requires bookingId, latitude, and longitude")
            return

        try:
            sent = await self._record_position(booking_id, lat, lon, data.get("bearing"))
        except BookingError as e:
            await self.send_error(e.message, e.code)
            return
        if not sent:
            await self.send_error("You are not the assigned driver of an active booking")

    # ---------------------- Database Helpers ----------------------

    @database_sync_to_async
    def _is_participant(self, booking_id) -> bool:
        from bookings.models import Booking

        booking = Booking.objects.filter(pk=booking_id).only("passenger_id", "driver_id").first()
        if booking is None:
            return False
        if self.role in STAFF_ROLES:
            return True
        return self.user_id in (booking.passenger_id, booking.driver_id)

    @database_sync_to_async
    def _record_position(self, booking_id, lat, lon, bearing) -> bool:
        from drivers import services as registry
        from realtime.tracking import publish_position

        if str(registry.active_booking_id(self.user_id)) != str(booking_id):
            return False
        profile = registry.update_location(self.user_id, lat, lon, bearing)
        publish_position(
            booking_id, self.user_id,
            float(profile.current_latitude), float(profile.current_longitude), profile.bearing,
        )
        return True
