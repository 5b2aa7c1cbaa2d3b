"""
Attendance record model.

One record per (booking, student). Records are generated in bulk when the
roster of a booking is initialized and are never deleted by the scheduling
core; their presence blocks booking deletion.
"""

import enum
from datetime import datetime

from sqlalchemy import (
    Column, Integer, String, Float, Time, DateTime, Text,
    Enum, ForeignKey, Index, CheckConstraint, UniqueConstraint
)

from backend.src.models import Base


class AttendanceStatus(str, enum.Enum):
    """Attendance status of a student for a booking."""
    PRESENT = "present"
    ABSENT = "absent"
    LATE = "late"
    EXCUSED = "excused"


class AttendanceRecord(Base):
    """
    Attendance of one student at one booking.

    Attributes:
        id: Primary key
        booking_id: Booking the record belongs to (RESTRICT on delete)
        student_id: Student the record is for
        status: present / absent / late / excused (initialized to absent)
        check_in_time: Optional arrival time
        check_out_time: Optional departure time
        score: Optional score 0-100
        notes: Free-text notes
        recorded_by_id: Actor who last recorded the attendance
        created_at: Creation timestamp
        updated_at: Last update timestamp

    Constraints:
        - (booking_id, student_id) is unique
        - score between 0 and 100 when provided
    """

    __tablename__ = "attendance_records"

    id = Column(Integer, primary_key=True, autoincrement=True)
    booking_id = Column(
        Integer,
        ForeignKey("bookings.id", ondelete="RESTRICT"),
        nullable=False
    )
    student_id = Column(
        Integer,
        ForeignKey("students.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )
    status = Column(
        Enum(
            AttendanceStatus,
            native_enum=False,
            values_callable=lambda x: [e.value for e in x],
            length=20,
        ),
        default=AttendanceStatus.ABSENT,
        nullable=False
    )
    check_in_time = Column(Time, nullable=True)
    check_out_time = Column(Time, nullable=True)
    score = Column(Float, nullable=True)
    notes = Column(Text, nullable=True)
    recorded_by_id = Column(String(100), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(
        DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False
    )

    __table_args__ = (
        UniqueConstraint("booking_id", "student_id", name="uq_attendance_booking_student"),
        CheckConstraint(
            "score IS NULL OR (score >= 0 AND score <= 100)",
            name="ck_attendance_score_range"
        ),
        Index("idx_attendance_booking", "booking_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<AttendanceRecord(id={self.id}, booking_id={self.booking_id}, "
            f"student_id={self.student_id}, status='{self.status}')>"
        )
