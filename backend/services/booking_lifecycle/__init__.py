"""
Booking lifecycle service - the booking state machine.

This module handles:
    - Creating bookings with a fare estimate
    - Driver self-accept and dispatcher assignment
    - Start, completion (with settlement) and cancellation
    - Post-completion ratings
    - Scoped booking queries
"""

from .actors import Actor, ActorKind, actor_for
from .guards import ALLOWED_TRANSITIONS, Decision, TransitionContext, evaluate_transition
from .state_machine import (
    create_booking,
    transition_booking,
    cancel_booking,
    assign_booking,
    rate_passenger,
    rate_driver,
    delete_booking,
    list_bookings,
    get_booking,
    scoped_bookings,
)
from .exceptions import (
    BookingError,
    ValidationError,
    ConflictError,
    ActiveBookingExistsError,
    DriverNotAvailableError,
    DriverTooFarError,
    BookingCompletedError,
    InvalidTransitionError,
    ForbiddenActorError,
    NotFoundError,
    BookingNotFoundError,
    DriverNotFoundError,
    DependencyError,
)

__all__ = [
    # Actors & guards
    "Actor",
    "ActorKind",
    "actor_for",
    "ALLOWED_TRANSITIONS",
    "Decision",
    "TransitionContext",
    "evaluate_transition",
    # Lifecycle operations
    "create_booking",
    "transition_booking",
    "cancel_booking",
    "assign_booking",
    "rate_passenger",
    "rate_driver",
    "delete_booking",
    "list_bookings",
    "get_booking",
    "scoped_bookings",
    # Exceptions
    "BookingError",
    "ValidationError",
    "ConflictError",
    "ActiveBookingExistsError",
    "DriverNotAvailableError",
    "DriverTooFarError",
    "BookingCompletedError",
    "InvalidTransitionError",
    "ForbiddenActorError",
    "NotFoundError",
    "BookingNotFoundError",
    "DriverNotFoundError",
    "DependencyError",
]
