"""
Location model for practicum venues.

Locations are physical rooms or sites. Only one active booking per location
may occupy any instant of a date.
"""

from sqlalchemy import Column, Integer, String

from backend.src.models import Base


class Location(Base):
    """
    Location directory entry.

    Attributes:
        id: Primary key
        name: Location display name
        capacity: Seating capacity (informational)
    """

    __tablename__ = "locations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    capacity = Column(Integer, nullable=True)

    def __repr__(self) -> str:
        return f"<Location(id={self.id}, name='{self.name}')>"
