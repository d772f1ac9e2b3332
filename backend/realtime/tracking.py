"""Position tracking for started trips, announced over the booking's group."""

import logging

from .events import booking_group, publish, user_group

logger = logging.getLogger(__name__)


def start_tracking(booking_id, driver_id, passenger_id) -> bool:
    logger.info("Tracking started for booking %s", booking_id)
    return publish("tracking:start", {
        "bookingId": str(booking_id),
        "driverId": str(driver_id),
        "passengerId": str(passenger_id),
    }, [user_group(driver_id), user_group(passenger_id)])


def stop_tracking(booking_id) -> bool:
    logger.info("Tracking stopped for booking %s", booking_id)
    return publish("tracking:stop", {"bookingId": str(booking_id)}, [booking_group(booking_id)])


def publish_position(booking_id, driver_id, latitude: float, longitude: float, bearing=None) -> bool:
    """Forward a driver position to everyone tracking the booking."""
    return publish("tracking:position", {
        "bookingId": str(booking_id),
        "driverId": str(driver_id),
        "latitude": latitude,
        "longitude": longitude,
        "bearing": bearing,
    }, [booking_group(booking_id)])
