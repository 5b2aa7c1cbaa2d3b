"""
Attendance API endpoints.

Provides operations for attendance records produced by roster
initialization:
- Update one attendance record
- Update several attendance records (best-effort, per-item results)
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status

from backend.src.api.dependencies import (
    get_actor_id,
    get_attendance_updater,
    service_error_to_http,
)
from backend.src.schemas.attendance import (
    AttendanceResponse,
    AttendanceUpdate,
    BulkUpdateRequest,
    BulkUpdateResult,
)
from backend.src.services.attendance_service import AttendanceBulkUpdater
from backend.src.services.exceptions import ServiceError
from backend.src.utils.logging_config import get_logger


logger = get_logger("api")

router = APIRouter(
    prefix="/attendance",
    tags=["Attendance"],
)


@router.post(
    "/bulk-update",
    response_model=BulkUpdateResult,
    summary="Update several attendance records",
    description="Apply each update in its own transaction; failures are reported per item",
)
def bulk_update_attendance(
    request: BulkUpdateRequest,
    updater: AttendanceBulkUpdater = Depends(get_attendance_updater),
    actor_id: Optional[str] = Depends(get_actor_id),
) -> BulkUpdateResult:
    """
    Update several attendance records.

    Returns:
        200 OK with updated records and failed items

    Example:
        POST /api/attendance/bulk-update
        {"items": [{"attendance_id": 11, "status": "present"}]}
    """
    try:
        return updater.update_bulk(
            [item.model_dump(exclude_unset=True) for item in request.items],
            acted_by=actor_id,
        )

    except ServiceError as e:
        raise service_error_to_http(e)

    except Exception as e:
        logger.error(f"Error updating attendance in bulk: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={
                "error": "internal_error",
                "message": "Failed to update attendance. Please try again later.",
            },
        )


@router.patch(
    "/{attendance_id}",
    response_model=AttendanceResponse,
    summary="Update attendance record",
    description="Partially update one attendance record",
)
def update_attendance(
    attendance_id: int,
    changes: AttendanceUpdate,
    updater: AttendanceBulkUpdater = Depends(get_attendance_updater),
    actor_id: Optional[str] = Depends(get_actor_id),
) -> AttendanceResponse:
    """
    Partially update one attendance record.

    Raises:
        400 Bad Request: Null status, score out of range, check-out before check-in
        404 Not Found: Record does not exist
    """
    try:
        record = updater.update_one(
            attendance_id,
            changes.model_dump(exclude_unset=True),
            acted_by=actor_id,
        )
        return AttendanceResponse.model_validate(record)

    except ServiceError as e:
        logger.warning(
            f"Attendance update rejected: {e}",
            extra={"attendance_id": attendance_id, "error": e.kind},
        )
        raise service_error_to_http(e)

    except Exception as e:
        logger.error(f"Error updating attendance: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={
                "error": "internal_error",
                "message": "Failed to update attendance. Please try again later.",
            },
        )
