from django.contrib import admin
from pricing.models import PricingTier


@admin.register(PricingTier)
class PricingTierAdmin(admin.ModelAdmin):
    list_display = [
        "vehicle_type",
        "base_fare",
        "per_km",
        "per_minute",
        "waiting_per_minute",
        "surge_multiplier",
        "is_active",
        "updated_at",
    ]
    list_filter = ["vehicle_type", "is_active"]
    ordering = ("vehicle_type", "-updated_at")
