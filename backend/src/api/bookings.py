"""
Bookings API endpoints for scheduling practicum sessions.

Provides operations for bookings:
- Create bookings (single and bulk) with double-booking prevention
- List bookings with allow-listed filters
- Get, update and delete bookings
- Replace the groups assigned to a booking
- Scan for overlapping bookings
- Initialize and preview the attendance roster of a booking
- List the attendance sheet of a booking

Design:
- Uses dependency injection for services
- Service errors are mapped to 400 / 404 / 409, storage failures to 500
- The acting user is identified by the optional X-Actor-Id header
- Handlers are synchronous; FastAPI runs them in its worker threadpool
"""

from datetime import date
from typing import Annotated, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from backend.src.api.dependencies import (
    get_actor_id,
    get_attendance_updater,
    get_group_manager,
    get_roster_initializer,
    get_scheduler,
    service_error_to_http,
)
from backend.src.schemas.attendance import AttendanceSheet, RosterEntry, RosterSummary
from backend.src.schemas.booking import (
    BookingCreate,
    BookingFilter,
    BookingResponse,
    BookingUpdate,
    BulkBookingCreate,
    BulkBookingResult,
    GroupAssignmentRequest,
)
from backend.src.schemas.conflict import ConflictReport
from backend.src.services.attendance_service import AttendanceBulkUpdater
from backend.src.services.exceptions import ServiceError
from backend.src.services.group_assignment_service import GroupAssignmentManager
from backend.src.services.roster_service import RosterInitializer
from backend.src.services.scheduler import Scheduler
from backend.src.utils.logging_config import get_logger


logger = get_logger("api")

router = APIRouter(
    prefix="/bookings",
    tags=["Bookings"],
)


def _internal_error(action: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail={
            "error": "internal_error",
            "message": f"Failed to {action}. Please try again later.",
        },
    )


# ============================================================================
# Collection endpoints
# ============================================================================


@router.post(
    "",
    response_model=BookingResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create booking",
    description="Create a booking; rejected if the person or the location is already booked",
)
def create_booking(
    booking: BookingCreate,
    scheduler: Scheduler = Depends(get_scheduler),
    actor_id: Optional[str] = Depends(get_actor_id),
) -> BookingResponse:
    """
    Create a new booking.

    Request Body:
        BookingCreate schema

    Returns:
        201 Created with the booking

    Raises:
        400 Bad Request: Invalid interval or unknown reference
        409 Conflict: Person or location already booked (detail carries the
            dimension and the existing booking id)

    Example:
        POST /api/bookings
        {
          "course_id": 1, "activity_type_id": 2, "person_id": 3, "location_id": 7,
          "booking_date": "2026-03-02", "start_time": "09:00", "end_time": "11:00",
          "group_ids": [4]
        }
    """
    try:
        created = scheduler.create(**booking.model_dump(), acted_by=actor_id)
        return scheduler.describe([created])[0]

    except ServiceError as e:
        logger.warning(f"Booking creation rejected: {e}", extra={"error": e.kind})
        raise service_error_to_http(e)

    except Exception as e:
        logger.error(f"Error creating booking: {str(e)}", exc_info=True)
        raise _internal_error("create booking")


@router.post(
    "/bulk",
    response_model=BulkBookingResult,
    summary="Create several bookings",
    description="Create bookings one by one; failures are reported per item",
)
def create_bookings_bulk(
    request: BulkBookingCreate,
    scheduler: Scheduler = Depends(get_scheduler),
    actor_id: Optional[str] = Depends(get_actor_id),
) -> BulkBookingResult:
    """
    Create several bookings, each in its own transaction.

    Returns:
        200 OK with succeeded bookings and failed items (by index)
    """
    try:
        return scheduler.create_bulk(
            [item.model_dump() for item in request.items],
            acted_by=actor_id,
        )

    except ServiceError as e:
        raise service_error_to_http(e)

    except Exception as e:
        logger.error(f"Error creating bookings in bulk: {str(e)}", exc_info=True)
        raise _internal_error("create bookings")


@router.get(
    "",
    response_model=List[BookingResponse],
    summary="List bookings",
    description="List bookings ordered by date and start time",
)
def list_bookings(
    filters: Annotated[BookingFilter, Query()],
    scheduler: Scheduler = Depends(get_scheduler),
) -> List[BookingResponse]:
    """
    List bookings with optional filters.

    Query Parameters:
        course_id, activity_type_id, person_id, location_id, status,
        date_from, date_to, limit (max 500), offset

    Unknown query parameters are rejected with 422.
    """
    try:
        return scheduler.describe(scheduler.list(filters))

    except ServiceError as e:
        raise service_error_to_http(e)

    except Exception as e:
        logger.error(f"Error listing bookings: {str(e)}", exc_info=True)
        raise _internal_error("list bookings")


@router.get(
    "/conflicts",
    response_model=ConflictReport,
    summary="Scan for conflicts",
    description="Report every pair of active bookings overlapping on a person or a location",
)
def scan_conflicts(
    start_date: Optional[date] = Query(None, description="First date to scan (inclusive)"),
    end_date: Optional[date] = Query(None, description="Last date to scan (inclusive)"),
    scheduler: Scheduler = Depends(get_scheduler),
) -> ConflictReport:
    """
    Scan active bookings for overlapping pairs.

    Raises:
        400 Bad Request: start_date after end_date
    """
    try:
        report = scheduler.check_conflicts(start_date, end_date)
        logger.info(
            "Scanned booking conflicts",
            extra={"total": report.summary.total, "start_date": start_date, "end_date": end_date},
        )
        return report

    except ServiceError as e:
        raise service_error_to_http(e)

    except Exception as e:
        logger.error(f"Error scanning conflicts: {str(e)}", exc_info=True)
        raise _internal_error("scan conflicts")


# ============================================================================
# Item endpoints
# ============================================================================


@router.get(
    "/{booking_id}",
    response_model=BookingResponse,
    summary="Get booking",
)
def get_booking(
    booking_id: int,
    scheduler: Scheduler = Depends(get_scheduler),
) -> BookingResponse:
    """Get a booking by id."""
    try:
        return scheduler.describe([scheduler.get(booking_id)])[0]

    except ServiceError as e:
        raise service_error_to_http(e)

    except Exception as e:
        logger.error(f"Error getting booking: {str(e)}", exc_info=True)
        raise _internal_error("get booking")


@router.patch(
    "/{booking_id}",
    response_model=BookingResponse,
    summary="Update booking",
    description="Partially update a booking; only fields present in the body change",
)
def update_booking(
    booking_id: int,
    changes: BookingUpdate,
    scheduler: Scheduler = Depends(get_scheduler),
    actor_id: Optional[str] = Depends(get_actor_id),
) -> BookingResponse:
    """
    Partially update a booking.

    Raises:
        400 Bad Request: Null required field, invalid interval, unknown reference
        404 Not Found: Booking does not exist
        409 Conflict: New slot collides, or the booking is not editable
    """
    try:
        updated = scheduler.update(
            booking_id,
            changes.model_dump(exclude_unset=True),
            acted_by=actor_id,
        )
        return scheduler.describe([updated])[0]

    except ServiceError as e:
        logger.warning(
            f"Booking update rejected: {e}",
            extra={"booking_id": booking_id, "error": e.kind},
        )
        raise service_error_to_http(e)

    except Exception as e:
        logger.error(f"Error updating booking: {str(e)}", exc_info=True)
        raise _internal_error("update booking")


@router.delete(
    "/{booking_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete booking",
    description="Delete a booking (protected: cannot delete once attendance exists)",
)
def delete_booking(
    booking_id: int,
    scheduler: Scheduler = Depends(get_scheduler),
    actor_id: Optional[str] = Depends(get_actor_id),
) -> None:
    """
    Delete a booking and its group assignments.

    Raises:
        404 Not Found: Booking does not exist
        409 Conflict: Booking has attendance records
    """
    try:
        scheduler.delete(booking_id, acted_by=actor_id)

    except ServiceError as e:
        logger.warning(
            f"Booking deletion rejected: {e}",
            extra={"booking_id": booking_id, "error": e.kind},
        )
        raise service_error_to_http(e)

    except Exception as e:
        logger.error(f"Error deleting booking: {str(e)}", exc_info=True)
        raise _internal_error("delete booking")


@router.put(
    "/{booking_id}/groups",
    response_model=BookingResponse,
    summary="Replace assigned groups",
    description="Replace every group assignment of a booking (an empty list clears them)",
)
def assign_groups(
    booking_id: int,
    request: GroupAssignmentRequest,
    manager: GroupAssignmentManager = Depends(get_group_manager),
    scheduler: Scheduler = Depends(get_scheduler),
    actor_id: Optional[str] = Depends(get_actor_id),
) -> BookingResponse:
    """Replace the groups assigned to a booking and recompute its enrollment."""
    try:
        booking = manager.assign(booking_id, request.group_ids, acted_by=actor_id)
        return scheduler.describe([booking])[0]

    except ServiceError as e:
        raise service_error_to_http(e)

    except Exception as e:
        logger.error(f"Error assigning groups: {str(e)}", exc_info=True)
        raise _internal_error("assign groups")


# ============================================================================
# Attendance roster endpoints
# ============================================================================


@router.post(
    "/{booking_id}/roster",
    response_model=RosterSummary,
    status_code=status.HTTP_201_CREATED,
    summary="Initialize attendance roster",
    description="Create one absent attendance record per active student, exactly once",
)
def initialize_roster(
    booking_id: int,
    initializer: RosterInitializer = Depends(get_roster_initializer),
    actor_id: Optional[str] = Depends(get_actor_id),
) -> RosterSummary:
    """
    Initialize the attendance roster of a booking.

    Raises:
        404 Not Found: Booking does not exist
        409 Conflict: Roster already initialized, or no active students
    """
    try:
        return initializer.initialize(booking_id, acted_by=actor_id)

    except ServiceError as e:
        logger.warning(
            f"Roster initialization rejected: {e}",
            extra={"booking_id": booking_id, "error": e.kind},
        )
        raise service_error_to_http(e)

    except Exception as e:
        logger.error(f"Error initializing roster: {str(e)}", exc_info=True)
        raise _internal_error("initialize roster")


@router.get(
    "/{booking_id}/roster/preview",
    response_model=List[RosterEntry],
    summary="Preview attendance roster",
)
def preview_roster(
    booking_id: int,
    initializer: RosterInitializer = Depends(get_roster_initializer),
) -> List[RosterEntry]:
    """List the expected roster of a booking with each student's current attendance."""
    try:
        return initializer.preview(booking_id)

    except ServiceError as e:
        raise service_error_to_http(e)

    except Exception as e:
        logger.error(f"Error previewing roster: {str(e)}", exc_info=True)
        raise _internal_error("preview roster")


@router.get(
    "/{booking_id}/attendance",
    response_model=AttendanceSheet,
    summary="List booking attendance",
)
def list_booking_attendance(
    booking_id: int,
    updater: AttendanceBulkUpdater = Depends(get_attendance_updater),
) -> AttendanceSheet:
    """List the attendance records of a booking with counts per status."""
    try:
        return updater.list_for_booking(booking_id)

    except ServiceError as e:
        raise service_error_to_http(e)

    except Exception as e:
        logger.error(f"Error listing attendance: {str(e)}", exc_info=True)
        raise _internal_error("list attendance")
