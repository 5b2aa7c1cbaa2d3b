"""
Student model.
"""

import enum

from sqlalchemy import Column, Integer, String, Enum, ForeignKey

from backend.src.models import Base


class StudentStatus(str, enum.Enum):
    """Enrollment status of a student."""
    ACTIVE = "active"
    INACTIVE = "inactive"


class Student(Base):
    """
    Student directory entry.

    Attributes:
        id: Primary key
        group_id: Enrollment group the student belongs to
        name: Full display name
        status: Only active students appear on rosters
    """

    __tablename__ = "students"

    id = Column(Integer, primary_key=True, autoincrement=True)
    group_id = Column(
        Integer,
        ForeignKey("student_groups.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )
    name = Column(String(255), nullable=False)
    status = Column(
        Enum(
            StudentStatus,
            native_enum=False,
            values_callable=lambda x: [e.value for e in x],
            length=20,
        ),
        default=StudentStatus.ACTIVE,
        nullable=False
    )

    def __repr__(self) -> str:
        return f"<Student(id={self.id}, group_id={self.group_id}, status='{self.status}')>"
