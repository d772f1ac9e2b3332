"""
Identity and profile lookup.

The local user table is consulted first; when a remote identity service is
configured (``IDENTITY_LOOKUP_URL_TEMPLATE``) it fills in what the local
mirror lacks. Enrichment is never essential: callers that only need display
data use ``resolve_passenger_display`` which degrades to generic values.
"""

import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Tuple

import requests
from django.conf import settings
from django.contrib.auth import get_user_model

from services.booking_lifecycle.exceptions import DependencyError

logger = logging.getLogger(__name__)


@dataclass
class Identity:
    id: str
    name: str = ""
    phone: str = ""
    email: str = ""


def _auth_headers():
    headers = {"Accept": "application/json"}
    token = getattr(settings, "SERVICE_BEARER_TOKEN", "")
    if token:
        headers["Authorization"] = f"Bearer {token}"
    return headers


def fetch_remote_identity(user_id, role: str = "passenger") -> Optional[Identity]:
    """
    Fetch a profile from the remote identity service.

    Returns None when the service is not configured or does not know the id.

    Raises:
        DependencyError: On transport failures or unexpected responses.
    """
    template = getattr(settings, "IDENTITY_LOOKUP_URL_TEMPLATE", "")
    if not template:
        return None

    url = template.format(role=role, id=user_id)
    try:
        response = requests.get(url, headers=_auth_headers(), timeout=settings.EXTERNAL_HTTP_TIMEOUT)
    except requests.RequestException as exc:
        raise DependencyError(f"Identity lookup failed: {exc}")

    if response.status_code == 404:
        return None
    if response.status_code >= 400:
        raise DependencyError(f"Identity lookup returned {response.status_code}")

    try:
        data = response.json()
    except ValueError:
        raise DependencyError("Identity lookup returned invalid JSON")

    # Some deployments wrap the profile in {"data": {...}}
    if isinstance(data, Mapping) and isinstance(data.get("data"), Mapping):
        data = data["data"]
    if not isinstance(data, Mapping):
        raise DependencyError("Identity lookup returned an unexpected payload")

    return Identity(
        id=str(user_id),
        name=str(data.get("name") or data.get("fullName") or ""),
        phone=str(data.get("phone") or data.get("phoneNumber") or ""),
        email=str(data.get("email") or ""),
    )


def _local_identity(user) -> Identity:
    return Identity(id=str(user.pk), name=user.get_full_name(), phone=user.phone_number, email=user.email)


def lookup_user(user_id, role: str = "passenger") -> Optional[Identity]:
    """
    Resolve name/phone/email for a user id, or None if nobody knows it.

    A local user with both name and phone wins; otherwise the identity
    service is asked, falling back to whatever the local row holds.
    Raises DependencyError when the identity service cannot be reached.
    """
    User = get_user_model()
    user = User.objects.filter(pk=user_id).first()
    if user is not None and user.get_full_name() and user.phone_number:
        return _local_identity(user)

    remote = fetch_remote_identity(user_id, role)
    if remote is not None:
        return remote
    if user is not None:
        return _local_identity(user)
    return None


def resolve_passenger_display(user, claims: Optional[Any] = None) -> Tuple[str, str]:
    """
    Display name and phone for a passenger.

    Order: token claims, local profile fields, identity lookup, then generic
    ``Passenger <id>`` placeholders. Lookup failures are logged and ignored.
    """
    name = phone = ""
    if claims is not None:
        name = str(claims.get("name", "") or "")
        phone = str(claims.get("phone", "") or "")

    if not name:
        name = user.get_full_name()
    if not phone:
        phone = user.phone_number

    if not name or not phone:
        try:
            identity = lookup_user(user.pk, "passenger")
        except DependencyError as exc:
            logger.warning("Passenger %s enrichment skipped: %s", user.pk, exc)
            identity = None
        if identity is not None:
            name = name or identity.name
            phone = phone or identity.phone

    return name or f"Passenger {user.pk}", phone or f"+123456789{user.pk}"
