"""
Driver registry.

Sole writer of each driver's availability flag and last-known position.
``try_claim`` and ``release`` are single conditional UPDATE statements so two
concurrent claims on the same driver cannot both succeed.
"""

import logging
from typing import Optional

from django.db.models import Exists, OuterRef
from django.utils import timezone

from bookings.models import Booking
from common.choices import ACTIVE_BOOKING_STATUSES
from drivers.models import DriverProfile
from services.booking_lifecycle.exceptions import (
    DriverNotAvailableError,
    DriverNotFoundError,
    ValidationError,
)

logger = logging.getLogger(__name__)


def _active_bookings(driver_id):
    return Booking.objects.filter(driver_id=driver_id, status__in=ACTIVE_BOOKING_STATUSES)


def get_profile(driver_id) -> DriverProfile:
    try:
        return DriverProfile.objects.select_related('user').get(user_id=driver_id)
    except DriverProfile.DoesNotExist:
        raise DriverNotFoundError("Driver not found")


def has_active_booking(driver_id, exclude_booking_id=None) -> bool:
    qs = _active_bookings(driver_id)
    if exclude_booking_id is not None:
        qs = qs.exclude(pk=exclude_booking_id)
    return qs.exists()


def try_claim(driver_id) -> bool:
    """
    Atomically mark an available driver with no active booking as unavailable.

    Returns False without mutating anything when either condition fails.
    """
    active = Booking.objects.filter(
        driver_id=OuterRef('user_id'),
        status__in=ACTIVE_BOOKING_STATUSES,
    )
    claimed = (
        DriverProfile.objects
        .filter(user_id=driver_id, available=True)
        .filter(~Exists(active))
        .update(available=False)
    )
    if claimed:
        logger.info("Driver %s claimed", driver_id)
    else:
        logger.info("Driver %s could not be claimed", driver_id)
    return claimed == 1


def release(driver_id) -> None:
    """Mark a driver available again. Safe to call repeatedly."""
    DriverProfile.objects.filter(user_id=driver_id).update(available=True)
    logger.info("Driver %s released", driver_id)


def update_location(driver_id, latitude, longitude, bearing: Optional[float] = None) -> DriverProfile:
    """
    Record a driver's position, creating the profile if needed.

    ``bearing`` is only stored when it lies within [0, 360].
    """
    try:
        latitude, longitude = float(latitude), float(longitude)
    except (TypeError, ValueError):
        raise ValidationError("latitude and longitude must be numbers")
    if not -90 <= latitude <= 90 or not -180 <= longitude <= 180:
        raise ValidationError("coordinates out of range")

    values = {
        "current_latitude": round(latitude, 6),
        "current_longitude": round(longitude, 6),
        "last_location_update": timezone.now(),
    }
    if bearing is not None:
        try:
            bearing = float(bearing)
        except (TypeError, ValueError):
            bearing = None
        if bearing is not None and 0 <= bearing <= 360:
            values["bearing"] = bearing

    profile, created = DriverProfile.objects.update_or_create(user_id=driver_id, defaults=values)
    if created:
        logger.info("Created driver profile for %s on first location update", driver_id)
    logger.debug("Driver %s at (%s, %s)", driver_id, latitude, longitude)
    return profile


def set_availability(driver_id, available: bool) -> DriverProfile:
    """
    Driver self-service online/offline toggle.

    Going available is refused while the driver still holds an active booking;
    that flag is restored by ``release`` when the trip ends.
    """
    profile = get_profile(driver_id)
    if available and has_active_booking(driver_id):
        raise DriverNotAvailableError("Finish your current trip before going available")

    DriverProfile.objects.filter(pk=profile.pk).update(available=bool(available))
    profile.available = bool(available)
    logger.info("Driver %s set available=%s", driver_id, profile.available)
    return profile


def active_booking_id(driver_id) -> Optional[int]:
    """Id of the driver's accepted or ongoing booking, if any."""
    return _active_bookings(driver_id).values_list('pk', flat=True).first()
