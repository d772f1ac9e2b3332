"""
Pricing catalog and fare estimation.

The active tier for a vehicle type is the most recently updated active row;
when none exists the configured default tier applies. Estimates are pure
reads: nothing is persisted.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict

from django.db import IntegrityError, transaction

from common.conf import dispatch_setting
from common.utils.geo import GeoPoint, distance_between
from pricing.models import PricingTier
from services.booking_lifecycle.exceptions import ConflictError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)

TIER_PARAMETERS = ('base_fare', 'per_km', 'per_minute', 'waiting_per_minute', 'surge_multiplier')


@dataclass
class FareEstimate:
    """Result of a fare estimate."""
    vehicle_type: str
    distance_km: float
    fare_estimated: float
    fare_breakdown: Dict[str, float] = field(default_factory=dict)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "vehicleType": self.vehicle_type,
            "distanceKm": self.distance_km,
            "fareEstimated": self.fare_estimated,
            "fareBreakdown": dict(self.fare_breakdown),
        }


def default_tier(vehicle_type: str) -> PricingTier:
    """Unsaved tier carrying the configured default parameters."""
    params = dispatch_setting("DEFAULT_PRICING")
    return PricingTier(vehicle_type=vehicle_type, is_active=True, **{k: params[k] for k in TIER_PARAMETERS})


def active_tier(vehicle_type: str) -> PricingTier:
    tier = (
        PricingTier.objects
        .filter(vehicle_type=vehicle_type, is_active=True)
        .order_by('-updated_at', '-id')
        .first()
    )
    if tier is None:
        logger.debug("No active pricing for %s, using default tier", vehicle_type)
        return default_tier(vehicle_type)
    return tier


def estimate_fare(vehicle_type: str, pickup: GeoPoint, dropoff: GeoPoint) -> FareEstimate:
    """
    Estimate the fare for a trip.

    Time and waiting costs are reserved fields and are always zero in the
    current formula.
    """
    distance_km = distance_between(pickup, dropoff)
    tier = active_tier(vehicle_type)

    breakdown = {
        "base": tier.base_fare,
        "distanceCost": distance_km * tier.per_km,
        "timeCost": 0,
        "waitingCost": 0,
        "surgeMultiplier": tier.surge_multiplier,
    }
    fare = (
        breakdown["base"] + breakdown["distanceCost"] + breakdown["timeCost"] + breakdown["waitingCost"]
    ) * breakdown["surgeMultiplier"]

    return FareEstimate(
        vehicle_type=vehicle_type,
        distance_km=distance_km,
        fare_estimated=fare,
        fare_breakdown=breakdown,
    )


# ===================== Admin writes =====================

def _ensure_unique(params: Dict[str, Any], exclude_id=None):
    duplicates = PricingTier.objects.filter(**params)
    if exclude_id is not None:
        duplicates = duplicates.exclude(pk=exclude_id)
    if duplicates.exists():
        raise ConflictError("Pricing with identical values already exists", code="duplicate_pricing")


def _publish_pricing_update(tier: PricingTier):
    from pricing.serializers import PricingTierSerializer
    from realtime.events import broadcast

    payload = PricingTierSerializer(tier).data
    transaction.on_commit(lambda: broadcast("pricing:update", payload))


@transaction.atomic
def create_tier(**data) -> PricingTier:
    if not data.get("vehicle_type"):
        raise ValidationError("vehicleType is required")
    lookup = {k: data[k] for k in ('vehicle_type',) + TIER_PARAMETERS if k in data}
    _ensure_unique(lookup)
    try:
        with transaction.atomic():
            tier = PricingTier.objects.create(**data)
    except IntegrityError:
        raise ConflictError("Pricing with identical values already exists", code="duplicate_pricing")
    logger.info("Created pricing tier %s for %s", tier.pk, tier.vehicle_type)
    return tier


@transaction.atomic
def update_tier(tier_id: int, **changes) -> PricingTier:
    """Apply ``changes`` to a tier and broadcast ``pricing:update`` on commit."""
    try:
        tier = PricingTier.objects.select_for_update().get(pk=tier_id)
    except PricingTier.DoesNotExist:
        raise NotFoundError("Pricing tier not found")

    for attr, value in changes.items():
        setattr(tier, attr, value)
    _ensure_unique(
        {k: getattr(tier, k) for k in ('vehicle_type',) + TIER_PARAMETERS},
        exclude_id=tier.pk,
    )
    try:
        with transaction.atomic():
            tier.save()
    except IntegrityError:
        raise ConflictError("Pricing with identical values already exists", code="duplicate_pricing")

    logger.info("Updated pricing tier %s (%s)", tier.pk, ", ".join(sorted(changes)))
    _publish_pricing_update(tier)
    return tier
