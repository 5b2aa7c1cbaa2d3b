"""
Group assignment management for bookings.

Owns the many-to-many link between bookings and enrollment groups and the
denormalized enrolled_count of a booking.

Design:
- Replace-all semantics: every assignment row of the booking is deleted and
  one active row is inserted per requested group
- Requested group ids are de-duplicated, first occurrence wins
- enrolled_count is recomputed after every assignment change and counts
  distinct active students of active groups
- Exceeding max_students is logged, not rejected
"""

from typing import Iterable, List, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError

from backend.src.models import AssignmentStatus, Booking, BookingStatus, GroupAssignment
from backend.src.repositories.base import UnitOfWork
from backend.src.services.exceptions import (
    BookingNotEditableError,
    InternalError,
    NotFoundError,
    ValidationError,
)
from backend.src.utils.logging_config import get_logger


logger = get_logger("services")


def dedupe_ids(ids: Iterable[int]) -> List[int]:
    """Remove duplicate ids, keeping the first occurrence of each."""
    seen = set()
    result = []
    for value in ids:
        if value not in seen:
            seen.add(value)
            result.append(value)
    return result


class GroupAssignmentManager:
    """
    Service for booking/group assignments.

    ``replace`` and ``validate_group_ids`` do not commit and are meant to run
    inside a caller's unit of work (the Scheduler uses them while creating or
    updating a booking). The other public methods are transactional.

    Usage:
        >>> manager = GroupAssignmentManager(uow)
        >>> manager.assign(booking_id=12, group_ids=[4, 5], acted_by="u-17")
    """

    def __init__(self, uow: UnitOfWork):
        self.uow = uow

    # =========================================================================
    # Building blocks (caller owns the transaction)
    # =========================================================================

    def validate_group_ids(self, group_ids: Sequence[int]) -> List[int]:
        """
        De-duplicate group ids and check that every group exists.

        Raises:
            ValidationError: If any group id matches no group
        """
        unique_ids = dedupe_ids(group_ids)
        missing = self.uow.directory.missing_group_ids(unique_ids)
        if missing:
            raise ValidationError(
                f"Unknown group id(s): {', '.join(str(g) for g in missing)}",
                field="group_ids",
            )
        return unique_ids

    def replace(self, booking: Booking, group_ids: Sequence[int]) -> List[int]:
        """
        Replace every assignment of a booking and recompute its enrollment.

        Args:
            booking: Booking loaded in the current unit of work
            group_ids: Validated replacement group ids

        Returns:
            The group ids now assigned, in insertion order
        """
        unique_ids = dedupe_ids(group_ids)
        removed = self.uow.group_assignments.delete_for_booking(booking.id)
        for group_id in unique_ids:
            self.uow.group_assignments.add(GroupAssignment(
                booking_id=booking.id,
                group_id=group_id,
                status=AssignmentStatus.ACTIVE,
            ))

        self._recompute(booking)

        logger.info(
            "Replaced group assignments",
            extra={
                "booking_id": booking.id,
                "removed": removed,
                "group_ids": unique_ids,
            },
        )
        return unique_ids

    def _recompute(self, booking: Booking) -> int:
        group_ids = [
            a.group_id for a in self.uow.group_assignments.list_for_booking(booking.id)
        ]
        students = self.uow.directory.active_students(group_ids)
        count = len({student.id for student in students})

        booking.enrolled_count = count
        self.uow.bookings.save(booking)

        if booking.max_students is not None and count > booking.max_students:
            logger.warning(
                "Enrollment exceeds booking capacity",
                extra={
                    "booking_id": booking.id,
                    "enrolled_count": count,
                    "max_students": booking.max_students,
                },
            )
        return count

    # =========================================================================
    # Transactional operations
    # =========================================================================

    def assign(
        self,
        booking_id: int,
        group_ids: Sequence[int],
        acted_by: Optional[str] = None,
    ) -> Booking:
        """
        Replace the groups assigned to a booking.

        Args:
            booking_id: Booking to change
            group_ids: Replacement group set (empty clears every assignment)
            acted_by: Actor id stamped on the booking

        Returns:
            Updated Booking

        Raises:
            NotFoundError: If the booking does not exist
            ValidationError: If any group does not exist
            BookingNotEditableError: If the booking is not scheduled
        """
        try:
            with self.uow:
                booking = self.uow.bookings.get_for_update(booking_id)
                if booking is None:
                    raise NotFoundError("Booking", booking_id)
                if booking.status != BookingStatus.SCHEDULED:
                    raise BookingNotEditableError(booking.id, BookingStatus(booking.status).value)

                unique_ids = self.validate_group_ids(group_ids)
                self.replace(booking, unique_ids)

                booking.updated_by_id = acted_by
                self.uow.bookings.save(booking)
                self.uow.commit()
        except SQLAlchemyError as e:
            logger.error(
                f"Failed to assign groups: {e}",
                extra={"booking_id": booking_id},
                exc_info=True,
            )
            raise InternalError("Failed to assign groups") from e

        logger.info(
            "Assigned groups to booking",
            extra={"booking_id": booking_id, "group_ids": unique_ids, "acted_by": acted_by},
        )
        return booking

    def recompute_enrollment(self, booking_id: int) -> int:
        """
        Recompute and store the enrolled student count of a booking.

        Raises:
            NotFoundError: If the booking does not exist
        """
        try:
            with self.uow:
                booking = self.uow.bookings.get_for_update(booking_id)
                if booking is None:
                    raise NotFoundError("Booking", booking_id)
                count = self._recompute(booking)
                self.uow.commit()
        except SQLAlchemyError as e:
            logger.error(
                f"Failed to recompute enrollment: {e}",
                extra={"booking_id": booking_id},
                exc_info=True,
            )
            raise InternalError("Failed to recompute enrollment") from e
        return count

    def group_ids(self, booking_id: int) -> List[int]:
        """
        List the groups actively assigned to a booking.

        Raises:
            NotFoundError: If the booking does not exist
        """
        with self.uow:
            if self.uow.bookings.get(booking_id) is None:
                raise NotFoundError("Booking", booking_id)
            return [
                a.group_id for a in self.uow.group_assignments.list_for_booking(booking_id)
            ]
