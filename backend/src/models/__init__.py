"""
SQLAlchemy models for the practicum scheduling backend.

This module provides the declarative base class and imports all models
to ensure they are registered with SQLAlchemy's metadata.
"""

from sqlalchemy.orm import declarative_base

# Create the declarative base class
# All models will inherit from this Base class
Base = declarative_base()


# Import all models here so they are registered with Base.metadata
# This is required for Alembic autogenerate to detect models

# Directory entities (owned by external directory services)
from backend.src.models.course import Course
from backend.src.models.activity_type import ActivityType
from backend.src.models.person import Person
from backend.src.models.location import Location
from backend.src.models.group import Group
from backend.src.models.student import Student, StudentStatus

# Scheduling core
from backend.src.models.booking import Booking, BookingStatus
from backend.src.models.group_assignment import GroupAssignment, AssignmentStatus
from backend.src.models.attendance import AttendanceRecord, AttendanceStatus

# Side effects
from backend.src.models.notification import Notification, NotificationCategory

# Export Base and all models
__all__ = [
    "Base",
    "Course",
    "ActivityType",
    "Person",
    "Location",
    "Group",
    "Student",
    "StudentStatus",
    "Booking",
    "BookingStatus",
    "GroupAssignment",
    "AssignmentStatus",
    "AttendanceRecord",
    "AttendanceStatus",
    "Notification",
    "NotificationCategory",
]
