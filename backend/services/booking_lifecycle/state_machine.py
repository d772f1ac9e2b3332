"""
Booking lifecycle operations.

Every status change follows the same shape: gather a context snapshot, ask
``guards.evaluate_transition`` for a decision, then write the new status with
a conditional UPDATE keyed on the status that was read. A zero-row update
means another request got there first; the surrounding transaction (including
any driver claim) is rolled back and a ConflictError is raised. History rows
are written in the same transaction and events are published on commit.
"""

import logging
from decimal import Decimal, InvalidOperation
from typing import List, Optional, Tuple

from django.contrib.auth import get_user_model
from django.db import IntegrityError, transaction
from django.db.models import F, Q
from django.utils import timezone

from bookings.models import Booking, BookingAssignment
from common.choices import TERMINAL_BOOKING_STATUSES, BookingStatus, VehicleType
from common.conf import dispatch_setting
from common.utils.geo import GeoPoint, haversine_km
from drivers import services as registry
from drivers.models import DriverProfile
from earnings import services as ledger
from pricing.services import estimate_fare
from services.identity import resolve_passenger_display
from .actors import Actor, ActorKind
from .exceptions import (
    ActiveBookingExistsError,
    BookingNotFoundError,
    ConflictError,
    DriverNotAvailableError,
    DriverNotFoundError,
    ForbiddenActorError,
    InvalidTransitionError,
    ValidationError,
)
from .guards import TransitionContext, evaluate_transition
from .history import record_history

logger = logging.getLogger(__name__)


# ===================== Queries =====================

def _base_queryset():
    return Booking.objects.select_related('passenger', 'driver')


def scoped_bookings(actor: Actor):
    """Bookings visible to ``actor``: everything for staff, own bookings otherwise."""
    qs = _base_queryset()
    if actor.is_staff:
        return qs
    if actor.kind == ActorKind.DRIVER:
        return qs.filter(driver_id=actor.id)
    return qs.filter(passenger_id=actor.id)


def list_bookings(actor: Actor, status: Optional[str] = None) -> List[Booking]:
    qs = scoped_bookings(actor)
    if status:
        if status not in BookingStatus.values:
            raise ValidationError(f"Invalid status '{status}'")
        qs = qs.filter(status=status)
    return list(qs)


def get_booking(actor: Actor, booking_id) -> Booking:
    try:
        return scoped_bookings(actor).get(pk=booking_id)
    except Booking.DoesNotExist:
        raise BookingNotFoundError("Booking not found")


def _load(booking_id) -> Booking:
    try:
        return _base_queryset().get(pk=booking_id)
    except Booking.DoesNotExist:
        raise BookingNotFoundError("Booking not found")


# ===================== Events =====================

def _publish_on_commit(booking: Booking, event_name: str = "booking:update", extra: Optional[dict] = None):
    from bookings.serializers import serialize_booking
    from realtime.events import publish_booking_event

    payload = serialize_booking(booking)
    if extra:
        payload = {**extra, "booking": payload}
    groups_for = booking
    transaction.on_commit(lambda: publish_booking_event(event_name, payload, groups_for))


def _tracking_on_commit(booking: Booking, status: str):
    from realtime import tracking

    if status == BookingStatus.ONGOING:
        booking_id, driver_id, passenger_id = booking.pk, booking.driver_id, booking.passenger_id
        transaction.on_commit(lambda: tracking.start_tracking(booking_id, driver_id, passenger_id))
    elif status in TERMINAL_BOOKING_STATUSES:
        booking_id = booking.pk
        transaction.on_commit(lambda: tracking.stop_tracking(booking_id))


# ===================== Creation =====================

@transaction.atomic
def create_booking(
    actor: Actor,
    pickup: GeoPoint,
    dropoff: GeoPoint,
    vehicle_type: str = VehicleType.MINI,
    claims=None,
) -> Booking:
    """
    Create a booking in ``requested`` for the calling passenger.

    Raises:
        ForbiddenActorError: If the caller is not a passenger.
        ValidationError: If the vehicle type is unknown.
        ActiveBookingExistsError: If the passenger already has a requested booking.
    """
    if actor.kind != ActorKind.PASSENGER:
        raise ForbiddenActorError("Only passengers can create bookings")
    vehicle_type = vehicle_type or VehicleType.MINI
    if vehicle_type not in VehicleType.values:
        raise ValidationError(f"Unknown vehicle type '{vehicle_type}'")

    if Booking.objects.filter(passenger_id=actor.id, status=BookingStatus.REQUESTED).exists():
        raise ActiveBookingExistsError(
            "You already have a requested booking. Cancel it before creating a new one."
        )

    passenger = get_user_model().objects.get(pk=actor.id)
    passenger_name, passenger_phone = resolve_passenger_display(passenger, claims)
    estimate = estimate_fare(vehicle_type, pickup, dropoff)

    try:
        with transaction.atomic():
            booking = Booking.objects.create(
                passenger=passenger,
                passenger_name=passenger_name,
                passenger_phone=passenger_phone,
                vehicle_type=vehicle_type,
                pickup_latitude=round(pickup.latitude, 6),
                pickup_longitude=round(pickup.longitude, 6),
                pickup_address=pickup.address or '',
                dropoff_latitude=round(dropoff.latitude, 6),
                dropoff_longitude=round(dropoff.longitude, 6),
                dropoff_address=dropoff.address or '',
                distance_km=estimate.distance_km,
                fare_estimated=estimate.fare_estimated,
                fare_breakdown=estimate.fare_breakdown,
                status=BookingStatus.REQUESTED,
            )
    except IntegrityError:
        # Lost a race against another create for the same passenger
        raise ActiveBookingExistsError(
            "You already have a requested booking. Cancel it before creating a new one."
        )

    record_history(booking)
    logger.info(
        "Booking %s created by %s: %s %.3f km, fare %.2f",
        booking.pk, actor, vehicle_type, estimate.distance_km, estimate.fare_estimated,
    )
    _publish_on_commit(booking)
    return booking


# ===================== Transitions =====================

def _context_for(booking: Booking, target: str, claiming_driver_id, dispatcher_id=None) -> TransitionContext:
    ctx = {
        "booking_passenger_id": booking.passenger_id,
        "booking_driver_id": booking.driver_id,
        "accept_radius_km": float(dispatch_setting("ACCEPT_RADIUS_KM")),
        "dispatcher_id": dispatcher_id,
    }
    if (
        target != BookingStatus.ACCEPTED
        or booking.status != BookingStatus.REQUESTED
        or claiming_driver_id is None
    ):
        return TransitionContext(**ctx)

    profile = DriverProfile.objects.filter(user_id=claiming_driver_id).first()
    if profile is None:
        return TransitionContext(claiming_driver_id=claiming_driver_id, **ctx)

    distance = None
    if profile.has_location:
        distance = haversine_km(
            profile.current_latitude, profile.current_longitude,
            booking.pickup_latitude, booking.pickup_longitude,
        )
    return TransitionContext(
        claiming_driver_id=claiming_driver_id,
        driver_available=profile.available,
        driver_has_active_booking=registry.has_active_booking(claiming_driver_id),
        driver_distance_km=distance,
        **ctx,
    )


def _apply_transition(
    actor: Actor, booking: Booking, target: str, claiming_driver_id=None, dispatcher_id=None,
) -> Booking:
    current = booking.status
    if target == BookingStatus.ACCEPTED and claiming_driver_id is None and actor.kind == ActorKind.DRIVER:
        claiming_driver_id = actor.id

    if current != BookingStatus.COMPLETED and target in BookingStatus.values:
        ctx = _context_for(booking, target, claiming_driver_id, dispatcher_id)
    else:
        ctx = TransitionContext(booking_passenger_id=booking.passenger_id, booking_driver_id=booking.driver_id)

    decision = evaluate_transition(current, actor, target, ctx)
    if not decision.allowed:
        logger.info("Booking %s: %s -> %s by %s rejected: %s", booking.pk, current, target, actor, decision.reason)
        decision.raise_if_denied()

    now = timezone.now()
    updates = {"status": target, "updated_at": now}
    expected = Q(pk=booking.pk, status=current)

    if target == BookingStatus.ACCEPTED:
        if not registry.try_claim(claiming_driver_id):
            raise DriverNotAvailableError("Driver is no longer available")
        updates.update(driver_id=claiming_driver_id, accepted_at=now)
        expected &= Q(driver__isnull=True)
    else:
        if booking.driver_id is None:
            expected &= Q(driver__isnull=True)
        else:
            expected &= Q(driver_id=booking.driver_id)
        if target == BookingStatus.ONGOING:
            updates["started_at"] = now
        elif target == BookingStatus.COMPLETED:
            updates.update(completed_at=now, fare_final=F("fare_estimated"))

    try:
        with transaction.atomic():
            rows = Booking.objects.filter(expected).update(**updates)
    except IntegrityError:
        raise DriverNotAvailableError("Driver already has an active booking")
    if rows != 1:
        raise ConflictError(
            "Booking was changed by another request. Reload and try again.",
            code="stale_booking",
        )

    booking.refresh_from_db()

    if target == BookingStatus.COMPLETED:
        ledger.settle(booking)
        registry.release(booking.driver_id)
    elif target == BookingStatus.CANCELED and booking.driver_id is not None:
        registry.release(booking.driver_id)

    record_history(booking)
    logger.info("Booking %s: %s -> %s by %s", booking.pk, current, target, actor)

    _publish_on_commit(booking)
    _tracking_on_commit(booking, target)
    return booking


@transaction.atomic
def transition_booking(actor: Actor, booking_id, target: str) -> Booking:
    """
    Move a booking to ``target`` on behalf of ``actor``.

    Drivers accept for themselves. Staff pair a driver through
    ``assign_booking`` so the pairing is recorded.
    """
    booking = _load(booking_id)
    return _apply_transition(actor, booking, target)


def cancel_booking(actor: Actor, booking_id) -> Booking:
    return transition_booking(actor, booking_id, BookingStatus.CANCELED)


@transaction.atomic
def assign_booking(actor: Actor, booking_id, driver_id, dispatcher_id, passenger_id=None) -> Tuple[Booking, BookingAssignment]:
    """
    Dispatcher-driven pairing of a requested booking with a driver.

    Applies the same driver checks as a driver self-accept, then records a
    BookingAssignment and publishes ``booking:assigned`` in addition to
    ``booking:update``.
    """
    if not actor.is_staff:
        raise ForbiddenActorError("Only dispatchers or admins can assign bookings")
    if not driver_id:
        raise ValidationError("Driver ID is required for assignment")
    if not dispatcher_id:
        raise ValidationError("Dispatcher ID is required for assignment")
    try:
        driver_id, dispatcher_id = int(driver_id), int(dispatcher_id)
    except (TypeError, ValueError):
        raise ValidationError("Driver ID and Dispatcher ID must be valid ids")

    if actor.kind == ActorKind.DISPATCHER and dispatcher_id != actor.id:
        raise ForbiddenActorError("Dispatchers can only assign bookings on their own behalf")
    if not get_user_model().objects.filter(pk=dispatcher_id).exists():
        raise ValidationError("Dispatcher not found")
    if not DriverProfile.objects.filter(user_id=driver_id).exists():
        raise DriverNotFoundError("Driver not found")

    booking = _load(booking_id)
    if passenger_id not in (None, "") and str(passenger_id) != str(booking.passenger_id):
        raise ValidationError("passengerId does not match the booking")
    if booking.status != BookingStatus.REQUESTED:
        raise InvalidTransitionError(
            f"Cannot assign booking with status '{booking.status}'. Only 'requested' bookings can be assigned."
        )

    booking = _apply_transition(
        actor, booking, BookingStatus.ACCEPTED, claiming_driver_id=driver_id, dispatcher_id=dispatcher_id,
    )
    assignment = BookingAssignment.objects.create(
        booking=booking,
        driver_id=driver_id,
        dispatcher_id=dispatcher_id,
        passenger_id=booking.passenger_id,
    )
    logger.info("Booking %s assigned to driver %s by dispatcher %s", booking.pk, driver_id, dispatcher_id)

    _publish_on_commit(booking, "booking:assigned", extra={
        "bookingId": str(booking.pk),
        "driverId": str(driver_id),
        "dispatcherId": str(dispatcher_id),
        "assignmentId": str(assignment.pk),
    })
    return booking, assignment


# ===================== Ratings =====================

def _validate_rating(rating) -> int:
    if isinstance(rating, bool):
        raise ValidationError("Rating must be between 1 and 5")
    try:
        value = Decimal(str(rating).strip())
    except InvalidOperation:
        raise ValidationError("Rating must be between 1 and 5")
    # 5.0 from a JSON client is fine, 4.5 is not
    if not value.is_finite() or value != value.to_integral_value() or not 1 <= value <= 5:
        raise ValidationError("Rating must be between 1 and 5")
    return int(value)


def _rate(actor: Actor, booking_id, rating, comment, *, by_driver: bool) -> Booking:
    value = _validate_rating(rating)
    booking = _load(booking_id)

    if by_driver:
        if actor.kind != ActorKind.DRIVER or booking.driver_id != actor.id:
            raise ForbiddenActorError("Only the assigned driver can rate the passenger")
    elif actor.kind != ActorKind.PASSENGER or booking.passenger_id != actor.id:
        raise ForbiddenActorError("Only the passenger can rate the driver")

    if booking.status != BookingStatus.COMPLETED:
        raise ConflictError("Can only rate after trip completion", code="not_completed")

    fields = ["updated_at"]
    if by_driver:
        booking.passenger_rating = value
        fields.append("passenger_rating")
        if comment:
            booking.passenger_comment = comment
            fields.append("passenger_comment")
    else:
        booking.driver_rating = value
        fields.append("driver_rating")
        if comment:
            booking.driver_comment = comment
            fields.append("driver_comment")
    booking.save(update_fields=fields)

    logger.info("Booking %s rated %s by %s", booking.pk, value, actor)
    return booking


def rate_passenger(actor: Actor, booking_id, rating, comment: str = "") -> Booking:
    """Assigned driver rates the passenger of a completed booking."""
    return _rate(actor, booking_id, rating, comment, by_driver=True)


def rate_driver(actor: Actor, booking_id, rating, comment: str = "") -> Booking:
    """Passenger rates the driver of a completed booking."""
    return _rate(actor, booking_id, rating, comment, by_driver=False)


# ===================== Owner delete =====================

@transaction.atomic
def delete_booking(actor: Actor, booking_id) -> None:
    """
    Remove an un-started booking owned by the caller.

    Only ``requested`` bookings qualify; no driver is bound yet so nothing is
    released. The audit trail is kept.
    """
    if actor.kind != ActorKind.PASSENGER:
        raise ForbiddenActorError("Only the owning passenger can delete a booking")
    booking = get_booking(actor, booking_id)
    if booking.status != BookingStatus.REQUESTED:
        raise InvalidTransitionError("Only requested bookings can be deleted")

    deleted, _ = Booking.objects.filter(
        pk=booking.pk,
        passenger_id=actor.id,
        status=BookingStatus.REQUESTED,
        driver__isnull=True,
    ).delete()
    if not deleted:
        raise ConflictError(
            "Booking was changed by another request. Reload and try again.",
            code="stale_booking",
        )
    logger.info("Booking %s deleted by %s", booking_id, actor)
