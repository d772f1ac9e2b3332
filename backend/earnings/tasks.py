"""Celery tasks for earnings settlement."""

import logging

from celery import shared_task

from services.booking_lifecycle.exceptions import DependencyError

logger = logging.getLogger(__name__)


@shared_task(bind=True, max_retries=5, default_retry_delay=30)
def credit_driver_wallet(self, earnings_id: int):
    """
    Credit a driver's wallet with the net earnings of one settled trip.

    The wallet service deduplicates on the idempotency key, so retries
    never double-credit.
    """
    from earnings.models import DriverEarnings
    from services.wallet import credit

    try:
        earnings = DriverEarnings.objects.get(pk=earnings_id)
    except DriverEarnings.DoesNotExist:
        logger.warning("Earnings %s not found for wallet credit", earnings_id)
        return False

    try:
        credit(
            user_id=earnings.driver_id,
            amount=earnings.net_earnings,
            role="driver",
            reason=f"Trip earnings for booking {earnings.booking_id}",
            idempotency_key=f"booking-{earnings.booking_id}-driver-earnings",
        )
    except DependencyError as exc:
        logger.warning("Wallet credit for booking %s failed: %s", earnings.booking_id, exc)
        raise self.retry(exc=exc)

    logger.info("Credited %s to driver %s for booking %s", earnings.net_earnings, earnings.driver_id, earnings.booking_id)
    return True
