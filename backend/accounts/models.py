from django.db import models
from django.contrib.auth.models import AbstractUser


class User(AbstractUser):
    """Local mirror of the identity store, extended with role selection"""
    ROLE_PASSENGER = 'passenger'
    ROLE_DRIVER = 'driver'
    ROLE_DISPATCHER = 'dispatcher'
    ROLE_ADMIN = 'admin'

    ROLE_CHOICES = [
        (ROLE_PASSENGER, 'Passenger'),
        (ROLE_DRIVER, 'Driver'),
        (ROLE_DISPATCHER, 'Dispatcher'),
        (ROLE_ADMIN, 'Admin'),
    ]

    # Role & basic info
    role = models.CharField(max_length=20, choices=ROLE_CHOICES, default=ROLE_PASSENGER)
    phone_number = models.CharField(max_length=32, blank=True, default='')

    class Meta:
        db_table = 'users'

    @property
    def display_name(self):
        return self.get_full_name() or self.username

    def __str__(self):
        return f"{self.username} ({self.get_role_display()})"
