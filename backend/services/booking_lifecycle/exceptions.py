"""Custom exceptions for booking lifecycle and dispatch."""


class BookingError(Exception):
    """Base class for all structured booking rejections."""
    code = "booking_error"
    http_status = 400

    def __init__(self, message: str = "", code: str = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code


class ValidationError(BookingError):
    """Raised when required fields are missing or invalid."""
    code = "validation_error"
    http_status = 400


class ConflictError(BookingError):
    """Raised when a transition guard fails."""
    code = "conflict"
    http_status = 409


class ActiveBookingExistsError(ConflictError):
    """Raised when a passenger already has a requested booking."""
    code = "active_booking_exists"


class DriverNotAvailableError(ConflictError):
    """Raised when a driver is unavailable or already holds an active booking."""
    code = "driver_not_available"


class DriverTooFarError(ConflictError):
    """Raised when a driver is outside the accept radius of the pickup."""
    code = "driver_too_far"


class BookingCompletedError(ConflictError):
    """Raised on any status change of a completed booking."""
    code = "booking_completed"


class InvalidTransitionError(ConflictError):
    """Raised when the requested status is not reachable from the current one."""
    code = "invalid_transition"


class ForbiddenActorError(ConflictError):
    """Raised when the actor is not allowed to perform the operation."""
    code = "forbidden"
    http_status = 403


class NotFoundError(BookingError):
    code = "not_found"
    http_status = 404


class BookingNotFoundError(NotFoundError):
    """Raised when a booking cannot be found (or is outside the caller's scope)."""
    code = "booking_not_found"


class DriverNotFoundError(NotFoundError):
    """Raised when a driver profile cannot be found."""
    code = "driver_not_found"


class DependencyError(BookingError):
    """Raised when an external collaborator (identity, wallet) fails."""
    code = "dependency_error"
    http_status = 502
