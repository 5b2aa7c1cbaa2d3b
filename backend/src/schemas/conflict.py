"""
Pydantic schemas for the booking conflict scan.

The scan reports every pair of active bookings that share a date and a
responsible person or a location and whose intervals overlap.
"""

import enum
from datetime import date, time
from typing import List, Optional

from pydantic import BaseModel, Field


class ConflictDimension(str, enum.Enum):
    """Resource dimension on which two bookings collide."""
    PERSON = "person"
    LOCATION = "location"


class ConflictingBooking(BaseModel):
    """Booking side of a conflict entry."""

    id: int
    course_id: int
    person_id: int
    location_id: int
    start_time: time
    end_time: time

    model_config = {"from_attributes": True}


class ConflictEntry(BaseModel):
    """One colliding pair of bookings on one dimension (lower id first)."""

    dimension: ConflictDimension
    resource_id: int
    booking_date: date
    booking_a: ConflictingBooking
    booking_b: ConflictingBooking
    detail: str


class ConflictSummary(BaseModel):
    """Conflict counts per dimension."""

    total: int = 0
    person: int = 0
    location: int = 0


class ConflictReport(BaseModel):
    """Response for the conflict scan."""

    start_date: Optional[date] = None
    end_date: Optional[date] = None
    conflicts: List[ConflictEntry] = Field(default_factory=list)
    summary: ConflictSummary = Field(default_factory=ConflictSummary)
