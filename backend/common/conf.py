"""Access to the ``DISPATCH`` settings block with built-in defaults."""

from typing import Any

from django.conf import settings

DEFAULTS = {
    "ACCEPT_RADIUS_KM": 3.0,
    "NEAREST_CLAIM_RADIUS_KM": 3.0,
    "AVAILABLE_NEARBY_RADIUS_KM": 5.0,
    "NEARBY_PENDING_RADIUS_KM": 3.0,
    "DEFAULT_COMMISSION_PERCENTAGE": 15,
    "DEFAULT_PRICING": {
        "base_fare": 2.0,
        "per_km": 1.0,
        "per_minute": 0.2,
        "waiting_per_minute": 0.1,
        "surge_multiplier": 1.0,
    },
    "WALLET_SETTLEMENT_ENABLED": False,
    "CONNECTION_TTL_SECONDS": 120,
}


def dispatch_setting(name: str) -> Any:
    """Read ``settings.DISPATCH[name]``, falling back to the default."""
    overrides = getattr(settings, "DISPATCH", {}) or {}
    if name in overrides:
        return overrides[name]
    return DEFAULTS[name]
