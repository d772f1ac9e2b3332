from django.db import models
from django.conf import settings

from common.choices import VehicleType

User = settings.AUTH_USER_MODEL


class DriverProfile(models.Model):
    """Driver availability and last-known position, owned by the driver registry"""

    user = models.OneToOneField(User, on_delete=models.CASCADE, related_name='driver_profile')

    # Vehicle details
    vehicle_number = models.CharField(max_length=20, blank=True, default='')
    vehicle_type = models.CharField(max_length=10, choices=VehicleType.choices, default=VehicleType.MINI)

    # Availability & location; only drivers.services writes these
    available = models.BooleanField(default=False)
    current_latitude = models.DecimalField(max_digits=10, decimal_places=6, null=True, blank=True)
    current_longitude = models.DecimalField(max_digits=10, decimal_places=6, null=True, blank=True)
    bearing = models.FloatField(null=True, blank=True)
    last_location_update = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = 'driver_profiles'
        indexes = [
            models.Index(fields=['available', 'vehicle_type'], name='driver_available_vtype_idx'),
        ]

    @property
    def has_location(self):
        return self.current_latitude is not None and self.current_longitude is not None

    def __str__(self):
        state = "available" if self.available else "unavailable"
        return f"{self.user} - {self.vehicle_type} ({state})"
