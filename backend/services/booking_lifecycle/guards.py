"""
Transition guards for the booking state machine.

``evaluate_transition`` is a pure function of the current status, the actor,
the target status and a snapshot of the facts it needs. It never touches the
database; the state machine gathers the context, asks for a decision and then
performs the conditional write.
"""

from dataclasses import dataclass
from typing import Optional, Type

from common.choices import BookingStatus
from .actors import Actor, ActorKind
from .exceptions import (
    BookingCompletedError,
    BookingError,
    DriverNotAvailableError,
    DriverTooFarError,
    ForbiddenActorError,
    InvalidTransitionError,
    ValidationError,
)

ALLOWED_TRANSITIONS = {
    BookingStatus.REQUESTED: {BookingStatus.ACCEPTED, BookingStatus.CANCELED},
    BookingStatus.ACCEPTED: {BookingStatus.ONGOING, BookingStatus.CANCELED},
    BookingStatus.ONGOING: {BookingStatus.COMPLETED},
    BookingStatus.COMPLETED: set(),
    BookingStatus.CANCELED: set(),
}


@dataclass(frozen=True)
class TransitionContext:
    booking_passenger_id: int
    booking_driver_id: Optional[int] = None
    # Driver facts, only relevant for -> accepted
    claiming_driver_id: Optional[int] = None
    # Staff accepts are pairings and must name the dispatcher
    dispatcher_id: Optional[int] = None
    driver_available: bool = False
    driver_has_active_booking: bool = False
    driver_distance_km: Optional[float] = None
    accept_radius_km: float = 3.0


@dataclass(frozen=True)
class Decision:
    allowed: bool
    reason: str = ""
    error: Optional[Type[BookingError]] = None

    @classmethod
    def allow(cls) -> "Decision":
        return cls(True)

    @classmethod
    def deny(cls, error: Type[BookingError], reason: str) -> "Decision":
        return cls(False, reason, error)

    @property
    def code(self) -> Optional[str]:
        return self.error.code if self.error else None

    def raise_if_denied(self):
        if not self.allowed:
            raise self.error(self.reason)


def _accept_decision(actor: Actor, ctx: TransitionContext) -> Decision:
    if actor.kind == ActorKind.PASSENGER:
        return Decision.deny(ForbiddenActorError, "Passengers cannot accept bookings")
    if actor.is_staff and ctx.dispatcher_id is None:
        return Decision.deny(
            ValidationError,
            "Dispatcher ID is required for assignment. Use the assign endpoint to pair a driver.",
        )
    if ctx.claiming_driver_id is None:
        return Decision.deny(ValidationError, "Driver ID is required for assignment")
    if actor.kind == ActorKind.DRIVER and ctx.claiming_driver_id != actor.id:
        return Decision.deny(ForbiddenActorError, "Drivers can only accept bookings for themselves")
    if not ctx.driver_available:
        return Decision.deny(
            DriverNotAvailableError,
            "Driver must be available to accept bookings. Driver is currently unavailable.",
        )
    if ctx.driver_has_active_booking:
        return Decision.deny(DriverNotAvailableError, "Driver already has an active booking")
    if ctx.driver_distance_km is None:
        return Decision.deny(
            DriverNotAvailableError,
            "Driver location unknown. Update location before accepting.",
        )
    if ctx.driver_distance_km > ctx.accept_radius_km:
        return Decision.deny(
            DriverTooFarError,
            f"Driver too far from pickup ({ctx.driver_distance_km:.2f} km). "
            f"Must be within {ctx.accept_radius_km:g} km to accept.",
        )
    return Decision.allow()


def evaluate_transition(current: str, actor: Actor, target: str, ctx: TransitionContext) -> Decision:
    """Decide whether ``actor`` may move a booking from ``current`` to ``target``."""
    if target not in BookingStatus.values:
        return Decision.deny(
            ValidationError,
            f"Invalid status '{target}'. Allowed values: {', '.join(BookingStatus.values)}",
        )

    if current == BookingStatus.COMPLETED:
        return Decision.deny(BookingCompletedError, "Cannot change status of completed booking")

    # Once a driver is bound, no other driver may touch the booking
    if (
        actor.kind == ActorKind.DRIVER
        and ctx.booking_driver_id is not None
        and ctx.booking_driver_id != actor.id
    ):
        return Decision.deny(ForbiddenActorError, "Only the assigned driver can change this booking status")

    if target not in ALLOWED_TRANSITIONS.get(current, set()):
        return Decision.deny(InvalidTransitionError, f"Cannot change booking status from {current} to {target}")

    if target == BookingStatus.ACCEPTED:
        return _accept_decision(actor, ctx)

    if target in (BookingStatus.ONGOING, BookingStatus.COMPLETED):
        if actor.kind != ActorKind.DRIVER or ctx.booking_driver_id != actor.id:
            return Decision.deny(ForbiddenActorError, "Only the assigned driver can change this booking status")
        return Decision.allow()

    # canceled
    if actor.is_staff:
        return Decision.allow()
    if actor.kind == ActorKind.PASSENGER and actor.id == ctx.booking_passenger_id:
        return Decision.allow()
    if actor.kind == ActorKind.DRIVER and actor.id == ctx.booking_driver_id:
        return Decision.allow()
    return Decision.deny(ForbiddenActorError, "You are not allowed to cancel this booking")
