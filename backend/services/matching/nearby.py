"""
Passive proximity searches.

Uses stored driver and pickup locations to list candidates sorted by
great-circle distance (closest first). Neither search reserves anything.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional

from bookings.models import Booking
from common.choices import BookingStatus, VehicleType
from common.conf import dispatch_setting
from common.utils import haversine_km
from drivers.models import DriverProfile
from services.booking_lifecycle.exceptions import ValidationError

logger = logging.getLogger(__name__)


@dataclass
class NearbyDriver:
    profile: DriverProfile
    distance_km: float


@dataclass
class NearbyBooking:
    booking: Booking
    distance_km: float


def available_nearby(
    latitude: float,
    longitude: float,
    radius_km: Optional[float] = None,
    vehicle_type: Optional[str] = None,
) -> List[NearbyDriver]:
    """
    Available drivers with a known location within ``radius_km`` of a point.

    Ties keep database order; no single driver is picked.
    """
    if radius_km is None:
        radius_km = dispatch_setting("AVAILABLE_NEARBY_RADIUS_KM")
    if vehicle_type and vehicle_type not in VehicleType.values:
        raise ValidationError(f"Unknown vehicle type '{vehicle_type}'")

    drivers = (
        DriverProfile.objects.select_related("user")
        .filter(
            available=True,
            current_latitude__isnull=False,
            current_longitude__isnull=False,
        )
        .order_by("id")
    )
    if vehicle_type:
        drivers = drivers.filter(vehicle_type=vehicle_type)

    candidates: List[NearbyDriver] = []
    for profile in drivers:
        distance = haversine_km(latitude, longitude, profile.current_latitude, profile.current_longitude)
        if distance <= radius_km:
            candidates.append(NearbyDriver(profile, distance))

    # Stable sort: equal distances keep first-seen order
    candidates.sort(key=lambda item: item.distance_km)
    logger.debug("%d drivers within %s km of (%s, %s)", len(candidates), radius_km, latitude, longitude)
    return candidates


def nearby_pending(driver_id, radius_km: Optional[float] = None) -> List[NearbyBooking]:
    """
    Requested bookings whose pickup lies within ``radius_km`` of a driver.

    Raises:
        ValidationError: If the driver's location is unknown.
    """
    if radius_km is None:
        radius_km = dispatch_setting("NEARBY_PENDING_RADIUS_KM")

    profile = DriverProfile.objects.filter(user_id=driver_id).first()
    if profile is None or not profile.has_location:
        raise ValidationError("Driver location unknown. Update location first.")

    pending = (
        Booking.objects.select_related("passenger", "driver")
        .filter(status=BookingStatus.REQUESTED)
        .order_by("created_at", "id")
    )

    results: List[NearbyBooking] = []
    for booking in pending:
        distance = haversine_km(
            profile.current_latitude, profile.current_longitude,
            booking.pickup_latitude, booking.pickup_longitude,
        )
        if distance <= radius_km:
            results.append(NearbyBooking(booking, distance))

    results.sort(key=lambda item: item.distance_km)
    return results
