"""
Attendance record updates.

Design:
- Partial updates: only supplied fields change; explicit null clears
  check-in, check-out, score and notes; status can never be null
- Score must be within 0-100 and check-out may not precede check-in
- Bulk updates are best-effort: each item runs in its own transaction, a
  failing item is rolled back alone and reported, the rest are applied
- No transition graph between attendance statuses
"""

from datetime import time
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import SQLAlchemyError

from backend.src.models import AttendanceRecord, AttendanceStatus, NotificationCategory
from backend.src.repositories.base import UnitOfWork
from backend.src.schemas.attendance import (
    AttendanceBulkFailure,
    AttendanceResponse,
    AttendanceSheet,
    BulkUpdateResult,
)
from backend.src.services.exceptions import (
    InternalError,
    NotFoundError,
    ServiceError,
    ValidationError,
)
from backend.src.services.notification_service import NotificationDispatcher, notify_safely
from backend.src.utils.logging_config import get_logger


logger = get_logger("services")


UPDATE_FIELDS = frozenset({"status", "check_in_time", "check_out_time", "score", "notes"})

_FIELD_TYPES = {
    "check_in_time": TypeAdapter(Optional[time]),
    "check_out_time": TypeAdapter(Optional[time]),
    "score": TypeAdapter(Optional[float]),
    "notes": TypeAdapter(Optional[str]),
}


def _normalize_changes(changes: Mapping[str, Any]) -> Dict[str, Any]:
    unknown = sorted(set(changes) - UPDATE_FIELDS)
    if unknown:
        raise ValidationError(
            f"Unknown attendance field(s): {', '.join(unknown)}", field=unknown[0]
        )

    normalized = dict(changes)
    if "status" in normalized:
        if normalized["status"] is None:
            raise ValidationError("status cannot be null", field="status")
        try:
            normalized["status"] = AttendanceStatus(normalized["status"])
        except ValueError:
            raise ValidationError(
                f"Invalid attendance status: {normalized['status']}", field="status"
            ) from None

    for field, adapter in _FIELD_TYPES.items():
        if field not in normalized:
            continue
        try:
            normalized[field] = adapter.validate_python(normalized[field])
        except PydanticValidationError:
            raise ValidationError(
                f"Invalid value for {field}: {normalized[field]!r}", field=field
            ) from None

    score = normalized.get("score")
    if score is not None and not 0 <= score <= 100:
        raise ValidationError("score must be between 0 and 100", field="score")
    return normalized


class AttendanceBulkUpdater:
    """
    Service for mutating attendance records singly or in batch.

    Usage:
        >>> updater = AttendanceBulkUpdater(uow, notifier)
        >>> result = updater.update_bulk([
        ...     {"attendance_id": 11, "status": "present"},
        ...     {"attendance_id": 12, "status": "late", "score": 80},
        ... ], acted_by="u-17")
    """

    def __init__(self, uow: UnitOfWork, notifier: Optional[NotificationDispatcher] = None):
        self.uow = uow
        self.notifier = notifier

    def _apply(
        self,
        attendance_id: int,
        changes: Mapping[str, Any],
        acted_by: Optional[str],
    ) -> Tuple[AttendanceRecord, Optional[int]]:
        """Apply one update in its own transaction; returns the record and the booking's person."""
        changes = _normalize_changes(changes)
        try:
            with self.uow:
                record = self.uow.attendance.get(attendance_id)
                if record is None:
                    raise NotFoundError("Attendance record", attendance_id)

                check_in = changes.get("check_in_time", record.check_in_time)
                check_out = changes.get("check_out_time", record.check_out_time)
                if check_in is not None and check_out is not None and check_out < check_in:
                    raise ValidationError(
                        "check_out_time cannot be before check_in_time",
                        field="check_out_time",
                    )

                for field, value in changes.items():
                    setattr(record, field, value)
                if acted_by is not None:
                    record.recorded_by_id = acted_by
                self.uow.attendance.save(record)

                booking = self.uow.bookings.get(record.booking_id)
                person_id = booking.person_id if booking is not None else None
                self.uow.commit()
        except SQLAlchemyError as e:
            logger.error(
                f"Failed to update attendance record {attendance_id}: {e}",
                extra={"attendance_id": attendance_id, "acted_by": acted_by},
                exc_info=True,
            )
            raise InternalError("Failed to update attendance record") from e

        logger.info(
            f"Updated attendance record {attendance_id}",
            extra={
                "attendance_id": attendance_id,
                "booking_id": record.booking_id,
                "fields": sorted(changes),
                "acted_by": acted_by,
            },
        )
        return record, person_id

    def _notify_bookings(self, touched: Dict[int, Optional[int]], counts: Dict[int, int]) -> None:
        for booking_id, person_id in touched.items():
            if person_id is None:
                continue
            notify_safely(
                self.notifier,
                person_id=person_id,
                title="Attendance updated",
                message=f"{counts[booking_id]} attendance record(s) updated for booking {booking_id}",
                category=NotificationCategory.INFO.value,
                booking_id=booking_id,
            )

    def update_one(
        self,
        attendance_id: int,
        changes: Mapping[str, Any],
        acted_by: Optional[str] = None,
    ) -> AttendanceRecord:
        """
        Partially update one attendance record.

        Raises:
            NotFoundError: If the record does not exist
            ValidationError: If a field is unknown, status is null, score is
                out of range or check-out precedes check-in
        """
        record, person_id = self._apply(attendance_id, changes, acted_by)
        self._notify_bookings({record.booking_id: person_id}, {record.booking_id: 1})
        return record

    def update_bulk(
        self,
        items: Sequence[Mapping[str, Any]],
        acted_by: Optional[str] = None,
    ) -> BulkUpdateResult:
        """
        Update several attendance records, each in its own transaction.

        Args:
            items: Mappings with an ``attendance_id`` plus the fields to change
            acted_by: Actor id stamped on the records

        Returns:
            BulkUpdateResult with updated records and per-item failures

        Raises:
            ValidationError: If items is empty
        """
        if not items:
            raise ValidationError("At least one attendance update is required", field="items")

        succeeded: List[AttendanceResponse] = []
        failed: List[AttendanceBulkFailure] = []
        touched: Dict[int, Optional[int]] = {}
        counts: Dict[int, int] = {}

        for item in items:
            changes = dict(item)
            attendance_id = changes.pop("attendance_id", None)
            if attendance_id is None:
                failed.append(AttendanceBulkFailure(
                    attendance_id=0,
                    error=ValidationError.kind,
                    message="attendance_id is required",
                    field="attendance_id",
                ))
                continue
            try:
                record, person_id = self._apply(attendance_id, changes, acted_by)
            except ServiceError as e:
                failed.append(AttendanceBulkFailure(
                    attendance_id=attendance_id,
                    error=e.kind,
                    message=getattr(e, "message", str(e)),
                    field=getattr(e, "field", None),
                ))
                continue

            succeeded.append(AttendanceResponse.model_validate(record))
            touched[record.booking_id] = person_id
            counts[record.booking_id] = counts.get(record.booking_id, 0) + 1

        logger.info(
            "Bulk attendance update finished",
            extra={"succeeded": len(succeeded), "failed": len(failed), "acted_by": acted_by},
        )
        self._notify_bookings(touched, counts)
        return BulkUpdateResult(succeeded=succeeded, failed=failed)

    def list_for_booking(self, booking_id: int) -> AttendanceSheet:
        """
        List the attendance records of a booking with counts per status.

        Raises:
            NotFoundError: If the booking does not exist
        """
        with self.uow:
            if self.uow.bookings.get(booking_id) is None:
                raise NotFoundError("Booking", booking_id)
            records = self.uow.attendance.list_for_booking(booking_id)
            responses = [AttendanceResponse.model_validate(r) for r in records]

        counts = {status.value: 0 for status in AttendanceStatus}
        for response in responses:
            counts[response.status.value] += 1
        return AttendanceSheet(
            booking_id=booking_id,
            total=len(responses),
            counts=counts,
            records=responses,
        )
