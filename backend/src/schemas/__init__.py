"""
Pydantic schemas for API request/response validation.

This module exports all schema classes for use in API endpoints.
"""

from backend.src.schemas.booking import (
    BookingCreate,
    BookingUpdate,
    BookingFilter,
    BookingResponse,
    BulkBookingCreate,
    BulkBookingResult,
    BulkItemFailure,
    GroupAssignmentRequest,
)
from backend.src.schemas.attendance import (
    AttendanceUpdate,
    AttendanceBulkItem,
    AttendanceBulkFailure,
    AttendanceResponse,
    AttendanceSheet,
    BulkUpdateRequest,
    BulkUpdateResult,
    RosterEntry,
    RosterSummary,
)
from backend.src.schemas.conflict import (
    ConflictDimension,
    ConflictingBooking,
    ConflictEntry,
    ConflictSummary,
    ConflictReport,
)

__all__ = [
    # Booking
    "BookingCreate",
    "BookingUpdate",
    "BookingFilter",
    "BookingResponse",
    "BulkBookingCreate",
    "BulkBookingResult",
    "BulkItemFailure",
    "GroupAssignmentRequest",
    # Attendance
    "AttendanceUpdate",
    "AttendanceBulkItem",
    "AttendanceBulkFailure",
    "AttendanceResponse",
    "AttendanceSheet",
    "BulkUpdateRequest",
    "BulkUpdateResult",
    "RosterEntry",
    "RosterSummary",
    # Conflict scan
    "ConflictDimension",
    "ConflictingBooking",
    "ConflictEntry",
    "ConflictSummary",
    "ConflictReport",
]
