"""
Course model.

Courses are owned by the course catalog; the scheduling core only checks
that a referenced course exists.
"""

from sqlalchemy import Column, Integer, String

from backend.src.models import Base


class Course(Base):
    """
    Course catalog entry.

    Attributes:
        id: Primary key
        code: Short catalog code (unique)
        name: Display name
    """

    __tablename__ = "courses"

    id = Column(Integer, primary_key=True, autoincrement=True)
    code = Column(String(50), nullable=False, unique=True)
    name = Column(String(255), nullable=False)

    def __repr__(self) -> str:
        return f"<Course(id={self.id}, code='{self.code}')>"
