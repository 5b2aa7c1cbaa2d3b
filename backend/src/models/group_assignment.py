"""
Group assignment model (booking <-> enrollment group association).

Assignments for a booking are always replaced as a whole: every row for the
booking is deleted and the new set inserted.
"""

import enum
from datetime import datetime

from sqlalchemy import Column, Integer, DateTime, Enum, ForeignKey, UniqueConstraint

from backend.src.models import Base


class AssignmentStatus(str, enum.Enum):
    """Status of a booking/group association."""
    ACTIVE = "active"
    INACTIVE = "inactive"


class GroupAssignment(Base):
    """
    Association of one booking with one enrollment group.

    Attributes:
        id: Primary key
        booking_id: Assigned booking (rows removed with the booking)
        group_id: Assigned group
        status: Only active assignments contribute students
        assigned_at: When the assignment was made

    Constraints:
        - (booking_id, group_id) is unique
    """

    __tablename__ = "booking_groups"

    id = Column(Integer, primary_key=True, autoincrement=True)
    booking_id = Column(
        Integer,
        ForeignKey("bookings.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    group_id = Column(
        Integer,
        ForeignKey("student_groups.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )
    status = Column(
        Enum(
            AssignmentStatus,
            native_enum=False,
            values_callable=lambda x: [e.value for e in x],
            length=20,
        ),
        default=AssignmentStatus.ACTIVE,
        nullable=False
    )
    assigned_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("booking_id", "group_id", name="uq_booking_groups_booking_group"),
    )

    def __repr__(self) -> str:
        return (
            f"<GroupAssignment(booking_id={self.booking_id}, "
            f"group_id={self.group_id}, status='{self.status}')>"
        )
