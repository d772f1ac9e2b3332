from django.db import models
from django.conf import settings
from django.db.models import Q
from django.utils import timezone

User = settings.AUTH_USER_MODEL


class Commission(models.Model):
    """Platform commission percentage; at most one row is active at a time"""

    percentage = models.DecimalField(max_digits=5, decimal_places=2)
    description = models.CharField(max_length=255, blank=True, default='')
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='commissions_created')
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'commissions'
        ordering = ['-created_at', '-id']
        constraints = [
            models.UniqueConstraint(
                fields=['is_active'],
                condition=Q(is_active=True),
                name='single_active_commission',
            ),
        ]

    def __str__(self):
        return f"{self.percentage}%{' (active)' if self.is_active else ''}"


class DriverEarnings(models.Model):
    """Driver-facing settlement record, written once per completed booking"""

    booking = models.OneToOneField('bookings.Booking', on_delete=models.PROTECT, related_name='driver_earnings')
    driver = models.ForeignKey(User, on_delete=models.PROTECT, related_name='earnings')
    passenger = models.ForeignKey(User, on_delete=models.PROTECT, related_name='+')
    trip_date = models.DateTimeField(default=timezone.now)

    gross_fare = models.DecimalField(max_digits=12, decimal_places=2)
    commission_amount = models.DecimalField(max_digits=12, decimal_places=2)
    net_earnings = models.DecimalField(max_digits=12, decimal_places=2)
    commission_percentage = models.DecimalField(max_digits=5, decimal_places=2)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'driver_earnings'
        ordering = ['-trip_date']

    def __str__(self):
        return f"Booking {self.booking_id}: net {self.net_earnings}"


class AdminEarnings(models.Model):
    """Platform-facing settlement record, written once per completed booking"""

    booking = models.OneToOneField('bookings.Booking', on_delete=models.PROTECT, related_name='admin_earnings')
    driver = models.ForeignKey(User, on_delete=models.PROTECT, related_name='+')
    passenger = models.ForeignKey(User, on_delete=models.PROTECT, related_name='+')
    trip_date = models.DateTimeField(default=timezone.now)

    gross_fare = models.DecimalField(max_digits=12, decimal_places=2)
    commission_earned = models.DecimalField(max_digits=12, decimal_places=2)
    commission_percentage = models.DecimalField(max_digits=5, decimal_places=2)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'admin_earnings'
        ordering = ['-trip_date']

    def __str__(self):
        return f"Booking {self.booking_id}: commission {self.commission_earned}"
