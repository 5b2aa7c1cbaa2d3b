"""
Person model.

A person is the responsible party for a booking (instructor, supervisor).
Only one active booking per person may occupy any instant of a date.
"""

from sqlalchemy import Column, Integer, String

from backend.src.models import Base


class Person(Base):
    """
    Responsible person directory entry.

    Attributes:
        id: Primary key
        name: Full display name
        email: Contact e-mail (optional)
    """

    __tablename__ = "persons"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=True)

    def __repr__(self) -> str:
        return f"<Person(id={self.id}, name='{self.name}')>"
