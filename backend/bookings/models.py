from django.db import models
from django.conf import settings
from django.db.models import Q
from django.utils import timezone

from common.choices import BookingStatus, VehicleType, ACTIVE_BOOKING_STATUSES
from common.utils.geo import GeoPoint

User = settings.AUTH_USER_MODEL


class Booking(models.Model):
    """A ride request and its lifecycle from request to completion"""

    passenger = models.ForeignKey(User, on_delete=models.CASCADE, related_name='bookings')
    # Display snapshot captured at creation, used when identity lookup is unavailable
    passenger_name = models.CharField(max_length=150, blank=True, default='')
    passenger_phone = models.CharField(max_length=32, blank=True, default='')
    driver = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='driver_bookings')

    vehicle_type = models.CharField(max_length=10, choices=VehicleType.choices, default=VehicleType.MINI)

    # Locations (OpenStreetMap compatible)
    pickup_latitude = models.DecimalField(max_digits=9, decimal_places=6)
    pickup_longitude = models.DecimalField(max_digits=9, decimal_places=6)
    pickup_address = models.TextField(blank=True, default='')
    dropoff_latitude = models.DecimalField(max_digits=9, decimal_places=6)
    dropoff_longitude = models.DecimalField(max_digits=9, decimal_places=6)
    dropoff_address = models.TextField(blank=True, default='')

    status = models.CharField(max_length=20, choices=BookingStatus.choices, default=BookingStatus.REQUESTED, db_index=True)

    # Fare
    distance_km = models.FloatField(default=0)
    fare_estimated = models.FloatField(default=0)
    fare_final = models.FloatField(null=True, blank=True)
    fare_breakdown = models.JSONField(default=dict, blank=True)

    # Lifecycle timestamps, each set once on its transition
    accepted_at = models.DateTimeField(null=True, blank=True)
    started_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)

    # Post-completion ratings by the counterparty
    passenger_rating = models.PositiveSmallIntegerField(null=True, blank=True)
    passenger_comment = models.TextField(blank=True, default='')
    driver_rating = models.PositiveSmallIntegerField(null=True, blank=True)
    driver_comment = models.TextField(blank=True, default='')

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'bookings'
        ordering = ['-created_at', '-id']
        constraints = [
            models.UniqueConstraint(
                fields=['passenger'],
                condition=Q(status=BookingStatus.REQUESTED),
                name='one_requested_booking_per_passenger',
            ),
            models.UniqueConstraint(
                fields=['driver'],
                condition=Q(status__in=ACTIVE_BOOKING_STATUSES),
                name='one_active_booking_per_driver',
            ),
        ]

    @property
    def pickup(self):
        return GeoPoint(float(self.pickup_latitude), float(self.pickup_longitude), self.pickup_address or None)

    @property
    def dropoff(self):
        return GeoPoint(float(self.dropoff_latitude), float(self.dropoff_longitude), self.dropoff_address or None)

    def __str__(self):
        return f"Booking {self.id} ({self.status}) for {self.passenger_id}"


class BookingAssignment(models.Model):
    """Dispatcher-driven pairing of a booking with a driver"""

    booking = models.ForeignKey(Booking, on_delete=models.CASCADE, related_name='assignments')
    driver = models.ForeignKey(User, on_delete=models.CASCADE, related_name='+')
    dispatcher = models.ForeignKey(User, on_delete=models.CASCADE, related_name='dispatched_assignments')
    passenger = models.ForeignKey(User, on_delete=models.CASCADE, related_name='+')
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'booking_assignments'
        ordering = ['-created_at']

    def __str__(self):
        return f"Booking {self.booking_id} -> driver {self.driver_id} by {self.dispatcher_id}"


class TripHistory(models.Model):
    """Append-only audit row written for every status a booking passes through"""

    # No FK constraint: audit rows outlive an owner delete of the booking
    booking = models.ForeignKey(
        Booking,
        on_delete=models.DO_NOTHING,
        db_constraint=False,
        related_name='history',
    )
    driver = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='+')
    passenger = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='+')
    status = models.CharField(max_length=20, choices=BookingStatus.choices)
    date_of_travel = models.DateTimeField(default=timezone.now)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'trip_history'
        ordering = ['created_at', 'id']

    def save(self, *args, **kwargs):
        if self.pk is not None:
            raise ValueError("Trip history rows are append-only")
        super().save(*args, **kwargs)

    def __str__(self):
        return f"Booking {self.booking_id}: {self.status}"
