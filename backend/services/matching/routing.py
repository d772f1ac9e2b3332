"""
Event-driven nearest-claim routing.

When a booking is announced over the realtime channel, the notification goes
exclusively to the closest connected driver if one is within range, and to
every connected driver otherwise. This is a routing decision only; the
driver still has to win ``try_claim`` to get the booking.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from common.conf import dispatch_setting
from common.utils import haversine_km

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConnectedDriver:
    driver_id: int
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    vehicle_type: Optional[str] = None

    @property
    def has_location(self) -> bool:
        return self.latitude is not None and self.longitude is not None


@dataclass(frozen=True)
class RoutingDecision:
    driver_id: Optional[int]
    distance_km: Optional[float]

    @property
    def exclusive(self) -> bool:
        return self.driver_id is not None


def select_nearest_driver(
    pickup_latitude: float,
    pickup_longitude: float,
    connected: Iterable[ConnectedDriver],
    radius_km: Optional[float] = None,
) -> RoutingDecision:
    """
    Pick the connected driver closest to the pickup.

    Drivers without coordinates are skipped. On equal distance the first one
    seen wins. Returns a non-exclusive decision when the closest driver is
    farther than ``radius_km``.
    """
    if radius_km is None:
        radius_km = dispatch_setting("NEAREST_CLAIM_RADIUS_KM")

    best = None
    best_distance = None
    for driver in connected:
        if not driver.has_location:
            continue
        distance = haversine_km(pickup_latitude, pickup_longitude, driver.latitude, driver.longitude)
        if best_distance is None or distance < best_distance:
            best, best_distance = driver, distance

    if best is not None and best_distance <= radius_km:
        return RoutingDecision(best.driver_id, best_distance)
    return RoutingDecision(None, best_distance)


def route_booking_notification(booking, connected: Optional[Iterable[ConnectedDriver]] = None) -> RoutingDecision:
    """
    Announce a new booking with ``booking:new``.

    ``connected`` defaults to the live driver connection index.
    """
    from bookings.serializers import serialize_booking
    from realtime.events import broadcast_to_drivers, publish_to_driver

    if connected is None:
        from realtime.connections import get_connection_index
        connected = get_connection_index().connected_drivers()

    decision = select_nearest_driver(
        float(booking.pickup_latitude), float(booking.pickup_longitude), connected,
    )
    payload = serialize_booking(booking)
    if decision.exclusive:
        logger.info(
            "Booking %s routed to driver %s (%.2f km)",
            booking.pk, decision.driver_id, decision.distance_km,
        )
        publish_to_driver(decision.driver_id, "booking:new", payload)
    else:
        logger.info("Booking %s broadcast to all drivers, no driver within range", booking.pk)
        broadcast_to_drivers("booking:new", payload)
    return decision
