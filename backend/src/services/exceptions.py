"""
Custom exceptions for service layer.

Provides specific exception types for business logic errors
that can be translated to appropriate HTTP responses.
"""

from typing import Any, Optional


class ServiceError(Exception):
    """Base exception for service layer errors."""

    kind = "service_error"


class NotFoundError(ServiceError):
    """Raised when a requested resource is not found."""

    kind = "not_found"

    def __init__(self, resource: str, identifier: Any):
        self.resource = resource
        self.identifier = identifier
        self.message = f"{resource} {identifier} not found"
        super().__init__(self.message)


class ValidationError(ServiceError):
    """Raised when input validation fails."""

    kind = "validation_error"

    def __init__(self, message: str, field: Optional[str] = None):
        self.message = message
        self.field = field
        super().__init__(message)


class ConflictError(ServiceError):
    """
    Raised when a booking would overlap an existing active booking.

    Always identifies the resource dimension (person or location), the
    shared resource and the booking it collides with.
    """

    kind = "conflict"

    def __init__(
        self,
        message: str,
        dimension: str,
        existing_booking_id: int,
        resource_id: Optional[int] = None,
    ):
        self.message = message
        self.dimension = dimension
        self.existing_booking_id = existing_booking_id
        self.resource_id = resource_id
        super().__init__(message)


class StateError(ServiceError):
    """Raised when an operation is refused because of the current state."""

    kind = "state_error"
    reason = "invalid_state"

    def __init__(self, message: str, reason: Optional[str] = None):
        self.message = message
        if reason is not None:
            self.reason = reason
        super().__init__(message)


class BookingHasAttendanceError(StateError):
    """Raised when deleting a booking that already owns attendance records."""

    reason = "has_attendance"

    def __init__(self, booking_id: int, record_count: int):
        self.booking_id = booking_id
        self.record_count = record_count
        super().__init__(
            f"Booking {booking_id} has {record_count} attendance record(s) and cannot be deleted"
        )


class RosterAlreadyInitializedError(StateError):
    """Raised when the attendance roster of a booking was already generated."""

    reason = "already_initialized"

    def __init__(self, booking_id: int):
        self.booking_id = booking_id
        super().__init__(f"Attendance roster for booking {booking_id} is already initialized")


class NoStudentsError(StateError):
    """Raised when a booking has no active students to build a roster from."""

    reason = "no_students"

    def __init__(self, booking_id: int):
        self.booking_id = booking_id
        super().__init__(
            f"Booking {booking_id} has no active students in its assigned groups"
        )


class BookingNotEditableError(StateError):
    """Raised when scheduling fields change on a booking that is not scheduled."""

    reason = "booking_not_editable"

    def __init__(self, booking_id: int, status: str):
        self.booking_id = booking_id
        self.status = status
        super().__init__(
            f"Booking {booking_id} is {status}; only status and notes can be changed"
        )


class InternalError(ServiceError):
    """Raised when storage fails; details are logged, never exposed."""

    kind = "internal_error"

    def __init__(self, message: str = "An internal error occurred"):
        self.message = message
        super().__init__(message)
