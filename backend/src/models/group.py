"""
Enrollment group model.

Groups collect students; bookings are assigned to groups and the attendance
roster is derived from the active students of active groups.
"""

from sqlalchemy import Column, Integer, String, Boolean, ForeignKey

from backend.src.models import Base


class Group(Base):
    """
    Enrollment group directory entry.

    Attributes:
        id: Primary key
        name: Group name (e.g. "G1")
        course_id: Optional course the group is enrolled in
        is_active: Inactive groups contribute no students
    """

    __tablename__ = "student_groups"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    course_id = Column(
        Integer,
        ForeignKey("courses.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )
    is_active = Column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<Group(id={self.id}, name='{self.name}', is_active={self.is_active})>"
