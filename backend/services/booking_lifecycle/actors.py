"""Explicit caller identity passed into the booking state machine."""

import enum
from dataclasses import dataclass


class ActorKind(str, enum.Enum):
    PASSENGER = "passenger"
    DRIVER = "driver"
    DISPATCHER = "dispatcher"
    ADMIN = "admin"


@dataclass(frozen=True)
class Actor:
    kind: ActorKind
    id: int

    @property
    def is_staff(self) -> bool:
        return self.kind in (ActorKind.DISPATCHER, ActorKind.ADMIN)

    def __str__(self):
        return f"{self.kind.value}:{self.id}"


def actor_for(user) -> Actor:
    """Build the actor for an authenticated user."""
    if user.is_superuser:
        return Actor(ActorKind.ADMIN, user.pk)
    try:
        kind = ActorKind(user.role)
    except ValueError:
        kind = ActorKind.PASSENGER
    return Actor(kind, user.pk)
