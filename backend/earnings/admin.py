from django.contrib import admin
from earnings.models import AdminEarnings, Commission, DriverEarnings


@admin.register(Commission)
class CommissionAdmin(admin.ModelAdmin):
    list_display = ["percentage", "description", "is_active", "created_by", "created_at"]
    list_filter = ["is_active"]
    readonly_fields = ["created_at"]


class _ReadOnlyAdmin(admin.ModelAdmin):
    """Settlement rows are write-once"""

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(DriverEarnings)
class DriverEarningsAdmin(_ReadOnlyAdmin):
    list_display = ["booking", "driver", "gross_fare", "commission_amount", "net_earnings", "commission_percentage", "trip_date"]
    search_fields = ["driver__username"]


@admin.register(AdminEarnings)
class AdminEarningsAdmin(_ReadOnlyAdmin):
    list_display = ["booking", "driver", "passenger", "gross_fare", "commission_earned", "commission_percentage", "trip_date"]
