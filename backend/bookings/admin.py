from django.contrib import admin
from bookings.models import Booking, BookingAssignment, TripHistory


@admin.register(Booking)
class BookingAdmin(admin.ModelAdmin):
    """Read-mostly view of bookings; status changes go through the lifecycle API"""

    list_display = [
        "id",
        "passenger",
        "driver",
        "vehicle_type",
        "status",
        "fare_estimated",
        "fare_final",
        "created_at",
    ]
    list_filter = ["status", "vehicle_type", "created_at"]
    search_fields = ["passenger__username", "driver__username", "passenger_name", "pickup_address", "dropoff_address"]
    readonly_fields = [
        "status",
        "driver",
        "fare_final",
        "accepted_at",
        "started_at",
        "completed_at",
        "created_at",
        "updated_at",
    ]
    ordering = ("-created_at",)


@admin.register(BookingAssignment)
class BookingAssignmentAdmin(admin.ModelAdmin):
    list_display = ["booking", "driver", "dispatcher", "passenger", "created_at"]
    search_fields = ["driver__username", "dispatcher__username"]


@admin.register(TripHistory)
class TripHistoryAdmin(admin.ModelAdmin):
    list_display = ["booking_id", "status", "driver", "passenger", "date_of_travel"]
    list_filter = ["status"]

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
