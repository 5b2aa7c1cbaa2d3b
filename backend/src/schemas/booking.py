"""
Pydantic schemas for booking API request/response validation.

Provides data validation and serialization for:
- Booking creation requests (single and bulk)
- Booking partial updates
- Booking listing filters
- Booking API responses

Design:
- Interval ordering and directory references are checked by the service
- max_students is optional, 1-100
- group_ids are de-duplicated by the service, first occurrence wins
- Updates are partial: only fields present in the request body change
"""

from datetime import date, datetime, time
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from backend.src.models.booking import BookingStatus


# ============================================================================
# Request Schemas
# ============================================================================


class BookingCreate(BaseModel):
    """
    Schema for creating a booking.

    Fields:
        course_id: Course the session belongs to
        activity_type_id: Kind of session
        person_id: Responsible person
        location_id: Venue
        booking_date: Calendar date
        start_time: Start of the interval
        end_time: End of the interval (exclusive)
        max_students: Optional enrollment ceiling (1-100)
        notes: Free-text notes
        group_ids: Enrollment groups to assign

    Example:
        >>> BookingCreate(
        ...     course_id=1, activity_type_id=1, person_id=3, location_id=7,
        ...     booking_date=date(2026, 3, 2), start_time=time(9), end_time=time(11),
        ...     group_ids=[4, 5],
        ... )
    """

    course_id: int = Field(..., ge=1)
    activity_type_id: int = Field(..., ge=1)
    person_id: int = Field(..., ge=1)
    location_id: int = Field(..., ge=1)
    booking_date: date
    start_time: time
    end_time: time
    max_students: Optional[int] = Field(default=None, ge=1, le=100)
    notes: Optional[str] = Field(default=None, max_length=2000)
    group_ids: Optional[List[int]] = Field(default=None)

    model_config = ConfigDict(
        extra="forbid",
        json_schema_extra={
            "example": {
                "course_id": 1,
                "activity_type_id": 2,
                "person_id": 3,
                "location_id": 7,
                "booking_date": "2026-03-02",
                "start_time": "09:00",
                "end_time": "11:00",
                "max_students": 24,
                "group_ids": [4, 5],
            }
        },
    )


class BookingUpdate(BaseModel):
    """
    Schema for partially updating a booking.

    Every field is optional; omitted fields are left unchanged. The service
    rejects explicit nulls for required fields. group_ids replaces the
    assignment set when present (an empty list clears it).
    """

    course_id: Optional[int] = Field(default=None, ge=1)
    activity_type_id: Optional[int] = Field(default=None, ge=1)
    person_id: Optional[int] = Field(default=None, ge=1)
    location_id: Optional[int] = Field(default=None, ge=1)
    booking_date: Optional[date] = None
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    max_students: Optional[int] = Field(default=None, ge=1, le=100)
    notes: Optional[str] = Field(default=None, max_length=2000)
    status: Optional[BookingStatus] = None
    group_ids: Optional[List[int]] = None

    model_config = ConfigDict(extra="forbid")


class GroupAssignmentRequest(BaseModel):
    """Schema for replacing the groups assigned to a booking."""

    group_ids: List[int] = Field(..., description="Replacement group set (may be empty)")

    model_config = ConfigDict(extra="forbid")


class BulkBookingCreate(BaseModel):
    """Schema for creating several bookings at once."""

    items: List[BookingCreate] = Field(..., min_length=1, max_length=200)

    model_config = ConfigDict(extra="forbid")


class BookingFilter(BaseModel):
    """
    Allow-listed listing parameters.

    Unknown parameters are rejected rather than silently ignored.
    """

    course_id: Optional[int] = None
    activity_type_id: Optional[int] = None
    person_id: Optional[int] = None
    location_id: Optional[int] = None
    status: Optional[BookingStatus] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    limit: int = Field(default=100, ge=1, le=500)
    offset: int = Field(default=0, ge=0)

    model_config = ConfigDict(extra="forbid")


# ============================================================================
# Response Schemas
# ============================================================================


class BookingResponse(BaseModel):
    """Schema for booking API responses."""

    id: int
    course_id: int
    activity_type_id: int
    person_id: int
    location_id: int
    booking_date: date
    start_time: time
    end_time: time
    max_students: Optional[int] = None
    enrolled_count: int = 0
    status: BookingStatus
    notes: Optional[str] = None
    group_ids: List[int] = Field(default_factory=list)
    created_by_id: Optional[str] = None
    updated_by_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class BulkItemFailure(BaseModel):
    """One rejected item of a bulk booking request."""

    index: int = Field(..., description="Position of the item in the request")
    error: str = Field(..., description="Error kind (validation_error, conflict, ...)")
    message: str
    field: Optional[str] = None
    dimension: Optional[str] = None
    existing_booking_id: Optional[int] = None


class BulkBookingResult(BaseModel):
    """Outcome of a bulk booking request."""

    succeeded: List[BookingResponse] = Field(default_factory=list)
    failed: List[BulkItemFailure] = Field(default_factory=list)
