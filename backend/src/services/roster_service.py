"""
Attendance roster initialization.

Generates the attendance records of a booking exactly once: one record per
distinct active student reachable through the booking's active group
assignments, all initialized to absent.

The at-most-once guarantee has two layers: an existence check under the
booking row lock, and the (booking, student) unique constraint for an
initializer that slips past the check.
"""

from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError

from backend.src.models import AttendanceRecord, AttendanceStatus, NotificationCategory
from backend.src.repositories.base import DuplicateRecordError, UnitOfWork
from backend.src.schemas.attendance import AttendanceResponse, RosterEntry, RosterSummary
from backend.src.services.exceptions import (
    InternalError,
    NoStudentsError,
    NotFoundError,
    RosterAlreadyInitializedError,
)
from backend.src.services.notification_service import NotificationDispatcher, notify_safely
from backend.src.utils.logging_config import get_logger


logger = get_logger("services")


class RosterInitializer:
    """
    Service for generating and previewing attendance rosters.

    Usage:
        >>> initializer = RosterInitializer(uow, notifier)
        >>> summary = initializer.initialize(booking_id=12, acted_by="u-17")
        >>> summary.total_students
        3
    """

    def __init__(self, uow: UnitOfWork, notifier: Optional[NotificationDispatcher] = None):
        self.uow = uow
        self.notifier = notifier

    def initialize(self, booking_id: int, acted_by: Optional[str] = None) -> RosterSummary:
        """
        Create the attendance roster of a booking.

        Args:
            booking_id: Booking to build the roster for
            acted_by: Actor id stamped on the records

        Returns:
            RosterSummary with the created records

        Raises:
            NotFoundError: If the booking does not exist
            RosterAlreadyInitializedError: If the booking already has records
            NoStudentsError: If no active student is reachable
        """
        try:
            with self.uow:
                booking = self.uow.bookings.get_for_update(booking_id)
                if booking is None:
                    raise NotFoundError("Booking", booking_id)

                if self.uow.attendance.count_for_booking(booking_id):
                    logger.warning(
                        "Attendance roster already initialized",
                        extra={"booking_id": booking_id, "acted_by": acted_by},
                    )
                    raise RosterAlreadyInitializedError(booking_id)

                group_ids = [
                    a.group_id for a in self.uow.group_assignments.list_for_booking(booking_id)
                ]
                students = self.uow.directory.active_students(group_ids)
                if not students:
                    raise NoStudentsError(booking_id)

                records = self.uow.attendance.add_many(
                    AttendanceRecord(
                        booking_id=booking_id,
                        student_id=student.id,
                        status=AttendanceStatus.ABSENT,
                        recorded_by_id=acted_by,
                    )
                    for student in students
                )
                person_id = booking.person_id
                summary = RosterSummary(
                    booking_id=booking_id,
                    total_students=len(records),
                    records=[AttendanceResponse.model_validate(r) for r in records],
                )
                self.uow.commit()
        except DuplicateRecordError as e:
            logger.warning(
                "Concurrent roster initialization rejected by unique constraint",
                extra={"booking_id": booking_id, "acted_by": acted_by},
            )
            raise RosterAlreadyInitializedError(booking_id) from e
        except SQLAlchemyError as e:
            logger.error(
                f"Failed to initialize roster: {e}",
                extra={"booking_id": booking_id, "acted_by": acted_by},
                exc_info=True,
            )
            raise InternalError("Failed to initialize attendance roster") from e

        logger.info(
            f"Initialized attendance roster for booking {booking_id}",
            extra={
                "booking_id": booking_id,
                "total_students": summary.total_students,
                "acted_by": acted_by,
            },
        )
        notify_safely(
            self.notifier,
            person_id=person_id,
            title="Attendance roster ready",
            message=f"{summary.total_students} student(s) on the roster of booking {booking_id}",
            category=NotificationCategory.SUCCESS.value,
            booking_id=booking_id,
        )
        return summary

    def preview(self, booking_id: int) -> List[RosterEntry]:
        """
        List the expected roster of a booking with current attendance.

        Raises:
            NotFoundError: If the booking does not exist
        """
        with self.uow:
            if self.uow.bookings.get(booking_id) is None:
                raise NotFoundError("Booking", booking_id)

            group_ids = [
                a.group_id for a in self.uow.group_assignments.list_for_booking(booking_id)
            ]
            students = self.uow.directory.active_students(group_ids)
            records = {
                record.student_id: record
                for record in self.uow.attendance.list_for_booking(booking_id)
            }

            entries = []
            for student in students:
                record = records.get(student.id)
                entries.append(RosterEntry(
                    student_id=student.id,
                    student_name=student.name,
                    group_id=student.group_id,
                    attendance_id=record.id if record else None,
                    status=record.status if record else None,
                    has_attendance=record is not None,
                ))
            return entries
