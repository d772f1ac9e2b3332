"""
Commission ledger.

Settlement runs once per completed booking: both earnings rows are keyed
one-to-one on the booking, so a repeated call returns the rows written the
first time. The commission percentage is copied into each row at settlement.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP

from django.db import transaction
from django.db.models import Count, Sum
from django.utils import timezone

from common.conf import dispatch_setting
from earnings.models import AdminEarnings, Commission, DriverEarnings
from services.booking_lifecycle.exceptions import ValidationError

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")


@dataclass
class Settlement:
    driver_earnings: DriverEarnings
    admin_earnings: AdminEarnings
    created: bool


def _money(value) -> Decimal:
    return Decimal(str(value)).quantize(CENTS, rounding=ROUND_HALF_UP)


def active_commission():
    return Commission.objects.filter(is_active=True).order_by('-created_at', '-id').first()


def current_percentage() -> Decimal:
    """Active commission percentage, or the configured default when none is set."""
    commission = active_commission()
    if commission is None:
        return _money(dispatch_setting("DEFAULT_COMMISSION_PERCENTAGE"))
    return commission.percentage


def split_fare(gross, percentage):
    """
    Split a gross fare into (gross, commission, net) at two decimal places.

    Net is derived from the rounded commission so the parts always add up to
    the gross amount.
    """
    gross = _money(gross)
    commission = _money(gross * Decimal(str(percentage)) / Decimal(100))
    return gross, commission, gross - commission


@transaction.atomic
def settle(booking) -> Settlement:
    """Create the driver and platform earnings for a completed booking (at most once)."""
    percentage = current_percentage()
    gross, commission, net = split_fare(booking.fare_final, percentage)
    trip_date = booking.completed_at or timezone.now()

    driver_earnings, created = DriverEarnings.objects.get_or_create(
        booking=booking,
        defaults={
            "driver_id": booking.driver_id,
            "passenger_id": booking.passenger_id,
            "trip_date": trip_date,
            "gross_fare": gross,
            "commission_amount": commission,
            "net_earnings": net,
            "commission_percentage": percentage,
        },
    )
    admin_earnings, _ = AdminEarnings.objects.get_or_create(
        booking=booking,
        defaults={
            "driver_id": booking.driver_id,
            "passenger_id": booking.passenger_id,
            "trip_date": trip_date,
            "gross_fare": gross,
            "commission_earned": commission,
            "commission_percentage": percentage,
        },
    )

    if created:
        logger.info(
            "Settled booking %s: gross=%s commission=%s (%s%%) net=%s",
            booking.pk, gross, commission, percentage, net,
        )
        if dispatch_setting("WALLET_SETTLEMENT_ENABLED"):
            from earnings.tasks import credit_driver_wallet
            earnings_id = driver_earnings.pk
            transaction.on_commit(lambda: credit_driver_wallet.delay(earnings_id))
    else:
        logger.warning("Booking %s already settled, skipping", booking.pk)

    return Settlement(driver_earnings=driver_earnings, admin_earnings=admin_earnings, created=created)


@transaction.atomic
def set_commission(percentage, description: str = "", created_by=None) -> Commission:
    """Activate a new commission percentage; previous rows are kept but deactivated."""
    try:
        value = Decimal(str(percentage))
    except (ArithmeticError, ValueError, TypeError):
        raise ValidationError("Commission percentage must be a number between 0 and 100")
    if not value.is_finite() or value < 0 or value > 100:
        raise ValidationError("Commission percentage must be between 0 and 100")

    Commission.objects.filter(is_active=True).update(is_active=False)
    commission = Commission.objects.create(
        percentage=_money(value),
        description=description or "",
        created_by=created_by,
        is_active=True,
    )
    logger.info("Commission set to %s%% by %s", commission.percentage, getattr(created_by, "pk", None))
    return commission


def driver_earnings_summary(driver_id):
    totals = DriverEarnings.objects.filter(driver_id=driver_id).aggregate(
        trips=Count("id"),
        gross=Sum("gross_fare"),
        commission=Sum("commission_amount"),
        net=Sum("net_earnings"),
    )
    zero = Decimal("0.00")
    return {
        "driverId": str(driver_id),
        "trips": totals["trips"] or 0,
        "grossFare": str(totals["gross"] or zero),
        "commission": str(totals["commission"] or zero),
        "netEarnings": str(totals["net"] or zero),
    }
