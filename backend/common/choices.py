"""Enumerations shared between apps."""

from django.db import models


class VehicleType(models.TextChoices):
    MINI = "mini", "Mini"
    SEDAN = "sedan", "Sedan"
    VAN = "van", "Van"


class BookingStatus(models.TextChoices):
    REQUESTED = "requested", "Requested"
    ACCEPTED = "accepted", "Accepted"
    ONGOING = "ongoing", "Ongoing"
    COMPLETED = "completed", "Completed"
    CANCELED = "canceled", "Canceled"


# A driver may hold at most one booking in these states.
ACTIVE_BOOKING_STATUSES = (BookingStatus.ACCEPTED, BookingStatus.ONGOING)

TERMINAL_BOOKING_STATUSES = (BookingStatus.COMPLETED, BookingStatus.CANCELED)
