"""
Pydantic schemas for attendance roster and attendance record API validation.

Provides data validation and serialization for:
- Single and bulk attendance updates
- Roster initialization summaries and roster previews
- Attendance sheets (records plus per-status counts)

Design:
- Updates are partial: only fields present in the request body change
- Explicit null clears check-in, check-out, score and notes; status cannot be null
- Bulk updates are best-effort: each item succeeds or fails on its own
"""

from datetime import datetime, time
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from backend.src.models.attendance import AttendanceStatus


# ============================================================================
# Request Schemas
# ============================================================================


class AttendanceUpdate(BaseModel):
    """
    Schema for partially updating one attendance record.

    Example:
        >>> AttendanceUpdate(status=AttendanceStatus.PRESENT, check_in_time=time(9, 2))
    """

    status: Optional[AttendanceStatus] = None
    check_in_time: Optional[time] = None
    check_out_time: Optional[time] = None
    score: Optional[float] = Field(default=None, description="Score 0-100")
    notes: Optional[str] = Field(default=None, max_length=2000)

    model_config = ConfigDict(extra="forbid")


class AttendanceBulkItem(AttendanceUpdate):
    """One item of a bulk attendance update."""

    attendance_id: int


class BulkUpdateRequest(BaseModel):
    """Schema for updating several attendance records at once."""

    items: List[AttendanceBulkItem] = Field(..., min_length=1, max_length=500)

    model_config = ConfigDict(
        extra="forbid",
        json_schema_extra={
            "example": {
                "items": [
                    {"attendance_id": 11, "status": "present", "check_in_time": "09:01"},
                    {"attendance_id": 12, "status": "late", "score": 80},
                ]
            }
        },
    )


# ============================================================================
# Response Schemas
# ============================================================================


class AttendanceResponse(BaseModel):
    """Schema for attendance record API responses."""

    id: int
    booking_id: int
    student_id: int
    status: AttendanceStatus
    check_in_time: Optional[time] = None
    check_out_time: Optional[time] = None
    score: Optional[float] = None
    notes: Optional[str] = None
    recorded_by_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class AttendanceBulkFailure(BaseModel):
    """One rejected item of a bulk attendance update."""

    attendance_id: int
    error: str = Field(..., description="Error kind (not_found, validation_error, ...)")
    message: str
    field: Optional[str] = None


class BulkUpdateResult(BaseModel):
    """Outcome of a bulk attendance update."""

    succeeded: List[AttendanceResponse] = Field(default_factory=list)
    failed: List[AttendanceBulkFailure] = Field(default_factory=list)


class RosterSummary(BaseModel):
    """Result of initializing the attendance roster of a booking."""

    booking_id: int
    total_students: int
    records: List[AttendanceResponse] = Field(default_factory=list)


class RosterEntry(BaseModel):
    """Expected roster line for one student of a booking."""

    student_id: int
    student_name: str
    group_id: int
    attendance_id: Optional[int] = None
    status: Optional[AttendanceStatus] = None
    has_attendance: bool = False


class AttendanceSheet(BaseModel):
    """Attendance records of a booking with counts per status."""

    booking_id: int
    total: int
    counts: Dict[str, int] = Field(default_factory=dict)
    records: List[AttendanceResponse] = Field(default_factory=list)
