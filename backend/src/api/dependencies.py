"""
Shared dependencies for the scheduling API routers.

Provides:
- Unit of work bound to the request's database session
- Notification dispatcher (or None when notifications are disabled)
- Actor id from the X-Actor-Id header
- Service factories
- Translation of service errors into HTTP errors
"""

from typing import Any, Dict, Optional

from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy.orm import Session

from backend.src.config.settings import get_settings
from backend.src.db.database import get_database, get_db
from backend.src.repositories.base import UnitOfWork
from backend.src.repositories.sql import SqlUnitOfWork
from backend.src.services.attendance_service import AttendanceBulkUpdater
from backend.src.services.exceptions import (
    ConflictError,
    NotFoundError,
    ServiceError,
    StateError,
    ValidationError,
)
from backend.src.services.group_assignment_service import GroupAssignmentManager
from backend.src.services.notification_service import (
    DatabaseNotificationDispatcher,
    NotificationDispatcher,
)
from backend.src.services.roster_service import RosterInitializer
from backend.src.services.scheduler import Scheduler
from backend.src.utils.logging_config import get_logger


logger = get_logger("api")


# ============================================================================
# Dependencies
# ============================================================================


def get_unit_of_work(db: Session = Depends(get_db)) -> UnitOfWork:
    """Create a unit of work over the request's database session."""
    return SqlUnitOfWork(db)


def get_notifier(request: Request) -> Optional[NotificationDispatcher]:
    """Create the notification dispatcher, or None when disabled."""
    if not get_settings().notifications_enabled:
        return None
    return DatabaseNotificationDispatcher(get_database(request).session_factory)


def get_actor_id(
    x_actor_id: Optional[str] = Header(default=None, max_length=100),
) -> Optional[str]:
    """Opaque actor id supplied by the identity layer."""
    return x_actor_id


def get_scheduler(
    uow: UnitOfWork = Depends(get_unit_of_work),
    notifier: Optional[NotificationDispatcher] = Depends(get_notifier),
) -> Scheduler:
    """Create Scheduler instance for the request."""
    return Scheduler(uow, notifier)


def get_group_manager(uow: UnitOfWork = Depends(get_unit_of_work)) -> GroupAssignmentManager:
    """Create GroupAssignmentManager instance for the request."""
    return GroupAssignmentManager(uow)


def get_roster_initializer(
    uow: UnitOfWork = Depends(get_unit_of_work),
    notifier: Optional[NotificationDispatcher] = Depends(get_notifier),
) -> RosterInitializer:
    """Create RosterInitializer instance for the request."""
    return RosterInitializer(uow, notifier)


def get_attendance_updater(
    uow: UnitOfWork = Depends(get_unit_of_work),
    notifier: Optional[NotificationDispatcher] = Depends(get_notifier),
) -> AttendanceBulkUpdater:
    """Create AttendanceBulkUpdater instance for the request."""
    return AttendanceBulkUpdater(uow, notifier)


# ============================================================================
# Error translation
# ============================================================================


def service_error_to_http(exc: ServiceError) -> HTTPException:
    """
    Map a service error to an HTTPException with a structured detail.

    ValidationError -> 400, NotFoundError -> 404, ConflictError and
    StateError -> 409, anything else -> 500 with a generic message.
    """
    detail: Dict[str, Any] = {
        "error": exc.kind,
        "message": getattr(exc, "message", str(exc)),
    }

    if isinstance(exc, ValidationError):
        detail["field"] = exc.field
        status_code = status.HTTP_400_BAD_REQUEST
    elif isinstance(exc, NotFoundError):
        detail["resource"] = exc.resource
        status_code = status.HTTP_404_NOT_FOUND
    elif isinstance(exc, ConflictError):
        detail["dimension"] = exc.dimension
        detail["existing_booking_id"] = exc.existing_booking_id
        detail["resource_id"] = exc.resource_id
        status_code = status.HTTP_409_CONFLICT
    elif isinstance(exc, StateError):
        detail["reason"] = exc.reason
        status_code = status.HTTP_409_CONFLICT
    else:
        detail["message"] = "An internal error occurred. Please try again later."
        status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    return HTTPException(status_code=status_code, detail=detail)
