"""
Activity type model (lecture, lab, clinical rotation, ...).
"""

from sqlalchemy import Column, Integer, String

from backend.src.models import Base


class ActivityType(Base):
    """Activity type catalog entry."""

    __tablename__ = "activity_types"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False, unique=True)

    def __repr__(self) -> str:
        return f"<ActivityType(id={self.id}, name='{self.name}')>"
