from django.contrib import admin
from drivers.models import DriverProfile


@admin.register(DriverProfile)
class DriverProfileAdmin(admin.ModelAdmin):
    """Admin panel for driver availability and position"""

    list_display = [
        "user",
        "vehicle_type",
        "vehicle_number",
        "available",
        "current_latitude",
        "current_longitude",
        "last_location_update",
    ]

    list_filter = [
        "available",
        "vehicle_type",
    ]

    search_fields = [
        "user__username",
        "vehicle_number",
    ]

    # Availability flows through the driver registry, not the admin
    readonly_fields = [
        "available",
        "bearing",
        "last_location_update",
    ]

    ordering = ("user__username",)
