"""
Service layer for business logic.

This module exports all service classes for use in API endpoints.
"""

from backend.src.services.attendance_service import AttendanceBulkUpdater
from backend.src.services.conflict_detector import ConflictDetector, intervals_overlap
from backend.src.services.exceptions import (
    ServiceError,
    NotFoundError,
    ConflictError,
    ValidationError,
    StateError,
    BookingHasAttendanceError,
    BookingNotEditableError,
    NoStudentsError,
    RosterAlreadyInitializedError,
    InternalError,
)
from backend.src.services.group_assignment_service import GroupAssignmentManager
from backend.src.services.notification_service import (
    DatabaseNotificationDispatcher,
    InMemoryNotificationDispatcher,
    NotificationDispatcher,
)
from backend.src.services.roster_service import RosterInitializer
from backend.src.services.scheduler import Scheduler

__all__ = [
    "AttendanceBulkUpdater",
    "ConflictDetector",
    "intervals_overlap",
    "GroupAssignmentManager",
    "RosterInitializer",
    "Scheduler",
    "NotificationDispatcher",
    "DatabaseNotificationDispatcher",
    "InMemoryNotificationDispatcher",
    "ServiceError",
    "NotFoundError",
    "ConflictError",
    "ValidationError",
    "StateError",
    "BookingHasAttendanceError",
    "BookingNotEditableError",
    "NoStudentsError",
    "RosterAlreadyInitializedError",
    "InternalError",
]
