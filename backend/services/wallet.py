"""Client for the external wallet service (credit/debit only)."""

import logging
from decimal import Decimal

import requests
from django.conf import settings

from services.booking_lifecycle.exceptions import DependencyError

logger = logging.getLogger(__name__)


def _post(path: str, payload: dict, idempotency_key: str):
    base_url = getattr(settings, "WALLET_SERVICE_URL", "")
    if not base_url:
        raise DependencyError("Wallet service is not configured")

    headers = {"Idempotency-Key": idempotency_key}
    token = getattr(settings, "SERVICE_BEARER_TOKEN", "")
    if token:
        headers["Authorization"] = f"Bearer {token}"

    url = f"{base_url.rstrip('/')}/{path.lstrip('/')}"
    try:
        response = requests.post(url, json=payload, headers=headers, timeout=settings.EXTERNAL_HTTP_TIMEOUT)
        response.raise_for_status()
    except requests.RequestException as exc:
        raise DependencyError(f"Wallet {path} failed: {exc}")

    logger.debug("Wallet %s accepted: %s", path, payload)
    return response.json() if response.content else {}


def credit(user_id, amount: Decimal, role: str, reason: str, idempotency_key: str):
    return _post("credit", {
        "userId": str(user_id),
        "amount": str(amount),
        "role": role,
        "reason": reason,
    }, idempotency_key)


def debit(user_id, amount: Decimal, role: str, reason: str, idempotency_key: str):
    return _post("debit", {
        "userId": str(user_id),
        "amount": str(amount),
        "role": role,
        "reason": reason,
    }, idempotency_key)
