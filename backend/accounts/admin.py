from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin
from accounts.models import User
from drivers.models import DriverProfile


class DriverProfileInline(admin.StackedInline):
    """Vehicle details editable from the user page; availability stays with the registry"""
    model = DriverProfile
    can_delete = False
    fk_name = "user"
    fields = ["vehicle_number", "vehicle_type", "available", "last_location_update"]
    readonly_fields = ["available", "last_location_update"]


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    """Admin panel for dispatch users (passengers, drivers, dispatchers, admins)"""

    list_display = ["username", "email", "role", "phone_number", "is_active"]
    list_filter = ["role", "is_active", "is_staff"]
    search_fields = ["username", "email", "phone_number", "first_name", "last_name"]
    ordering = ("username",)

    fieldsets = BaseUserAdmin.fieldsets + (
        ("Dispatch", {"fields": ("role", "phone_number")}),
    )
    add_fieldsets = BaseUserAdmin.add_fieldsets + (
        ("Dispatch", {"fields": ("role", "phone_number")}),
    )

    def get_inlines(self, request, obj):
        if obj is not None and obj.role == User.ROLE_DRIVER:
            return [DriverProfileInline]
        return []
