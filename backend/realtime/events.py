"""
Event publisher for booking and pricing events.

Events are delivered over the channel layer as ``dispatch.event`` messages
carrying ``{"event": <name>, "payload": <data>}``; consumers forward them to
clients unchanged. Publishing is best-effort: failures are logged and never
raised into the caller's transaction.
"""

import logging
from typing import Any, Dict, Iterable

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer

logger = logging.getLogger(__name__)

# Groups
BROADCAST_GROUP = "broadcast"   # every connected client
DRIVERS_GROUP = "drivers"       # every connected driver
STAFF_GROUP = "bookings"        # dispatchers and admins


def user_group(user_id) -> str:
    return f"user_{user_id}"


def driver_group(driver_id) -> str:
    return f"driver_{driver_id}"


def booking_group(booking_id) -> str:
    return f"booking_{booking_id}"


def publish(event_name: str, payload: Dict[str, Any], groups: Iterable[str]) -> bool:
    """Send ``event_name`` to each group. Returns False if any send failed."""
    channel_layer = get_channel_layer()
    if channel_layer is None:
        logger.warning("No channel layer configured, dropping %s", event_name)
        return False

    message = {"type": "dispatch.event", "event": event_name, "payload": payload}
    ok = True
    for group in dict.fromkeys(groups):
        try:
            async_to_sync(channel_layer.group_send)(group, message)
        except Exception:
            ok = False
            logger.warning("Failed to publish %s to %s", event_name, group, exc_info=True)
    logger.debug("Published %s to %s", event_name, list(groups))
    return ok


def publish_booking_event(event_name: str, payload: Dict[str, Any], booking) -> bool:
    """Deliver a booking event to staff, both parties and the booking's tracking group."""
    groups = [STAFF_GROUP, user_group(booking.passenger_id), booking_group(booking.pk)]
    if booking.driver_id:
        groups.append(user_group(booking.driver_id))
    return publish(event_name, payload, groups)


def publish_to_driver(driver_id, event_name: str, payload: Dict[str, Any]) -> bool:
    return publish(event_name, payload, [driver_group(driver_id)])


def broadcast_to_drivers(event_name: str, payload: Dict[str, Any]) -> bool:
    return publish(event_name, payload, [DRIVERS_GROUP])


def broadcast(event_name: str, payload: Dict[str, Any]) -> bool:
    return publish(event_name, payload, [BROADCAST_GROUP])
