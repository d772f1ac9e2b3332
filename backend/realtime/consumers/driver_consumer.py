"""Driver WebSocket consumer: connection index membership, location and availability."""

import logging
from typing import Dict, Any

from asgiref.sync import sync_to_async
from channels.db import database_sync_to_async

from .base import BaseConsumer
from realtime.connections import get_connection_index
from realtime.events import DRIVERS_GROUP, driver_group
from services.booking_lifecycle.exceptions import BookingError

logger = logging.getLogger(__name__)


class DriverConsumer(BaseConsumer):
    """
    WebSocket consumer for drivers.

    Handles:
        - Registration in the connected-driver index (evicted on disconnect)
        - Location updates (registry + index + trip tracking)
        - Availability toggles
        - Heartbeats that keep the index entry alive between location updates
        - booking:new notifications routed by nearest-claim
    """
    allowed_roles = ("driver",)

    async def on_connect(self):
        # Exclusive (driver_<id>) and broadcast (drivers) notification groups
        await self._join_group(driver_group(self.user_id))
        await self._join_group(DRIVERS_GROUP)

        profile = await self._load_profile()
        self.vehicle_type = profile.get("vehicle_type")
        try:
            await self._register(profile.get("latitude"), profile.get("longitude"))
        except Exception:
            # Routing falls back to broadcast when the index is unavailable
            logger.warning("Could not register driver %s in connection index", self.user_id, exc_info=True)

        await self.send_json({
            "type": "connection_established",
            "user_id": self.user_id,
            "role": self.role,
            "available": profile.get("available", False),
            "message": "Driver connected successfully",
        })

    async def on_disconnect(self, close_code):
        try:
            await sync_to_async(get_connection_index().evict)(self.user_id, self.channel_name)
        except Exception as e:
            logger.warning("Failed to evict driver %s from connection index: %s", self.user_id, e)

    async def handle_message(self, msg_type: str, data: Dict[str, Any]):
        if msg_type == "driver_location_update":
            await self._handle_location_update(data)
        elif msg_type == "driver_availability":
            await self._handle_availability(data)
        elif msg_type == "driver_heartbeat":
            await self._handle_heartbeat()
        else:
            await self.send_error(f"Unknown message type: {msg_type}")

    # ---------------------- Message Handlers ----------------------

    async def _handle_location_update(self, data: Dict[str, Any]):
        lat = data.get("latitude")
        lon = data.get("longitude")
        if lat is None or lon is None:
            await self.send_error("driver_location_update requires latitude and longitude")
            return

        try:
            result = await self._save_location(lat, lon, data.get("bearing"))
        except BookingError as e:
            await self.send_error(e.message, e.code)
            return

        try:
            refreshed = await sync_to_async(get_connection_index().update_position)(
                self.user_id, result["latitude"], result["longitude"],
            )
            if not refreshed:
                # Entry expired while the socket stayed open
                await self._register(result["latitude"], result["longitude"])
        except Exception:
            logger.warning("Could not refresh driver %s in connection index", self.user_id, exc_info=True)

        await self.send_success("location_updated", **result)

    async def _handle_heartbeat(self):
        try:
            alive = await sync_to_async(get_connection_index().touch)(self.user_id)
            if not alive:
                profile = await self._load_profile()
                await self._register(profile.get("latitude"), profile.get("longitude"))
        except Exception:
            logger.warning("Could not refresh driver %s in connection index", self.user_id, exc_info=True)
        await self.send_success("heartbeat_ack")

    async def _handle_availability(self, data: Dict[str, Any]):
        if "available" not in data:
            await self.send_error("driver_availability requires available")
            return
        try:
            available = await self._set_availability(bool(data.get("available")))
        except BookingError as e:
            await self.send_error(e.message, e.code)
            return
        await self.send_success("availability_updated", available=available)

    async def _register(self, latitude, longitude):
        await sync_to_async(get_connection_index().register)(
            self.user_id,
            self.channel_name,
            latitude=latitude,
            longitude=longitude,
            vehicle_type=self.vehicle_type,
        )

    # ---------------------- Database Helpers ----------------------

    @database_sync_to_async
    def _load_profile(self) -> Dict[str, Any]:
        from drivers.models import DriverProfile

        profile = DriverProfile.objects.filter(user_id=self.user_id).first()
        if profile is None:
            return {}
        return {
            "available": profile.available,
            "vehicle_type": profile.vehicle_type,
            "latitude": float(profile.current_latitude) if profile.current_latitude is not None else None,
            "longitude": float(profile.current_longitude) if profile.current_longitude is not None else None,
        }

    @database_sync_to_async
    def _save_location(self, lat, lon, bearing) -> Dict[str, Any]:
        from drivers import services as registry
        from realtime.tracking import publish_position

        profile = registry.update_location(self.user_id, lat, lon, bearing)
        latitude, longitude = float(profile.current_latitude), float(profile.current_longitude)

        active = registry.active_booking_id(self.user_id)
        if active is not None:
            publish_position(active, self.user_id, latitude, longitude, profile.bearing)

        return {"latitude": latitude, "longitude": longitude, "bearing": profile.bearing}

    @database_sync_to_async
    def _set_availability(self, available: bool) -> bool:
        from drivers import services as registry

        return registry.set_availability(self.user_id, available).available
