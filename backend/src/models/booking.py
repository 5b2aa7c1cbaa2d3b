"""
Booking model for scheduled practicum sessions.

A booking reserves a responsible person and a location for a time interval on
a calendar date, for a course and activity type.

Design Rationale:
- Intervals are half-open [start_time, end_time): back-to-back bookings do
  not overlap
- Cancelled bookings keep their row but never block other bookings
- enrolled_count is denormalized from group assignments and only ever
  recomputed, never trusted as a source of truth
- created_by_id / updated_by_id are opaque actor ids from the identity layer
"""

import enum
from datetime import datetime

from sqlalchemy import (
    Column, Integer, String, Date, Time, DateTime, Text,
    Enum, ForeignKey, Index, CheckConstraint
)

from backend.src.models import Base


class BookingStatus(str, enum.Enum):
    """
    Booking lifecycle status.

    - SCHEDULED: Active booking, participates in conflict checks
    - COMPLETED: Session took place
    - CANCELLED: Session will not take place, ignored by conflict checks
    """
    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class Booking(Base):
    """
    Scheduled session model.

    Attributes:
        id: Primary key
        course_id: Course the session belongs to
        activity_type_id: Kind of session (lecture, lab, ...)
        person_id: Responsible person (conflict dimension)
        location_id: Venue (conflict dimension)
        booking_date: Calendar date of the session
        start_time: Start of the interval (inclusive)
        end_time: End of the interval (exclusive)
        max_students: Optional enrollment ceiling (1-100)
        enrolled_count: Distinct active students reachable through
            active group assignments
        status: Lifecycle status
        notes: Free-text notes
        created_by_id: Actor who created the booking
        updated_by_id: Actor who last changed the booking
        created_at: Creation timestamp
        updated_at: Last update timestamp

    Constraints:
        - start_time < end_time
        - max_students between 1 and 100 when provided
        - enrolled_count >= 0

    Indexes:
        - person_id, booking_date (person conflict lookups)
        - location_id, booking_date (location conflict lookups)
        - booking_date, start_time (ordered listings)
    """

    __tablename__ = "bookings"

    # Primary key
    id = Column(Integer, primary_key=True, autoincrement=True)

    # References to directory entities
    course_id = Column(
        Integer,
        ForeignKey("courses.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )
    activity_type_id = Column(
        Integer,
        ForeignKey("activity_types.id", ondelete="RESTRICT"),
        nullable=False
    )
    person_id = Column(
        Integer,
        ForeignKey("persons.id", ondelete="RESTRICT"),
        nullable=False
    )
    location_id = Column(
        Integer,
        ForeignKey("locations.id", ondelete="RESTRICT"),
        nullable=False
    )

    # Slot
    booking_date = Column(Date, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)

    # Enrollment
    max_students = Column(Integer, nullable=True)
    enrolled_count = Column(Integer, default=0, nullable=False)

    # Lifecycle
    status = Column(
        Enum(
            BookingStatus,
            native_enum=False,
            values_callable=lambda x: [e.value for e in x],
            length=20,
        ),
        default=BookingStatus.SCHEDULED,
        nullable=False,
        index=True
    )
    notes = Column(Text, nullable=True)

    # Actor stamps
    created_by_id = Column(String(100), nullable=True)
    updated_by_id = Column(String(100), nullable=True)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(
        DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False
    )

    __table_args__ = (
        CheckConstraint("start_time < end_time", name="ck_bookings_time_order"),
        CheckConstraint(
            "max_students IS NULL OR (max_students >= 1 AND max_students <= 100)",
            name="ck_bookings_max_students"
        ),
        CheckConstraint("enrolled_count >= 0", name="ck_bookings_enrolled_count"),
        Index("idx_bookings_person_date", "person_id", "booking_date"),
        Index("idx_bookings_location_date", "location_id", "booking_date"),
        Index("idx_bookings_date_start", "booking_date", "start_time"),
    )

    @property
    def is_active(self) -> bool:
        """Check if the booking participates in conflict detection."""
        return self.status != BookingStatus.CANCELLED

    def resource_id(self, dimension: str) -> int:
        """
        Get the resource id for a conflict dimension.

        Args:
            dimension: "person" or "location"
        """
        if dimension == "person":
            return self.person_id
        if dimension == "location":
            return self.location_id
        raise ValueError(f"Unknown conflict dimension: {dimension}")

    def __repr__(self) -> str:
        return (
            f"<Booking("
            f"id={self.id}, "
            f"date={self.booking_date}, "
            f"start={self.start_time}, "
            f"end={self.end_time}, "
            f"status='{self.status}'"
            f")>"
        )
