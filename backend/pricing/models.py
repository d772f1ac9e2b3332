from django.db import models

from common.choices import VehicleType


class PricingTier(models.Model):
    """Fare formula parameters for one vehicle type"""

    vehicle_type = models.CharField(max_length=10, choices=VehicleType.choices, default=VehicleType.MINI, db_index=True)
    base_fare = models.FloatField(default=2)
    per_km = models.FloatField(default=1)
    per_minute = models.FloatField(default=0.2)
    waiting_per_minute = models.FloatField(default=0.1)
    surge_multiplier = models.FloatField(default=1)
    is_active = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'pricing_tiers'
        ordering = ['vehicle_type', '-updated_at']
        constraints = [
            models.UniqueConstraint(
                fields=['vehicle_type', 'base_fare', 'per_km', 'per_minute', 'waiting_per_minute', 'surge_multiplier'],
                name='unique_pricing_parameters',
            ),
        ]

    def __str__(self):
        return f"{self.vehicle_type}: {self.base_fare} + {self.per_km}/km x{self.surge_multiplier}"
