"""
Booking scheduler.

Owns the booking lifecycle: create, update, delete, bulk create, lookup,
listing and the diagnostic conflict scan.

Design:
- No two active bookings may overlap for the same responsible person or the
  same location on the same date; cancelled bookings never block
- Writers lock the (person, date) and (location, date) slots before checking
  for conflicts, so check-then-insert cannot race
- Booking, group assignments and enrollment count change in one transaction
- Scheduling fields are frozen unless the resulting status is scheduled;
  status and notes can always change
- Notifications go out only after commit and never undo it
"""

from datetime import date, time
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError

from backend.src.models import Booking, BookingStatus, NotificationCategory
from backend.src.repositories.base import SlotKey, UnitOfWork
from backend.src.schemas.booking import (
    BookingFilter,
    BookingResponse,
    BulkBookingResult,
    BulkItemFailure,
)
from backend.src.schemas.conflict import ConflictReport, ConflictSummary
from backend.src.services.conflict_detector import ConflictDetector, DIMENSIONS
from backend.src.services.exceptions import (
    BookingHasAttendanceError,
    BookingNotEditableError,
    ConflictError,
    InternalError,
    NotFoundError,
    ServiceError,
    ValidationError,
)
from backend.src.services.group_assignment_service import GroupAssignmentManager, dedupe_ids
from backend.src.services.notification_service import NotificationDispatcher, notify_safely
from backend.src.utils.logging_config import get_logger


logger = get_logger("services")


# Fields accepted by create
CREATE_FIELDS = (
    "course_id", "activity_type_id", "person_id", "location_id",
    "booking_date", "start_time", "end_time", "max_students", "notes", "group_ids",
)

REQUIRED_CREATE_FIELDS = CREATE_FIELDS[:7]

# Fields accepted by update
UPDATE_FIELDS = frozenset(CREATE_FIELDS) | {"status"}

# Fields that may not be set to null
REQUIRED_FIELDS = frozenset({
    "course_id", "activity_type_id", "person_id", "location_id",
    "booking_date", "start_time", "end_time", "status",
})

# Fields frozen unless the booking stays scheduled
SCHEDULING_FIELDS = frozenset({
    "course_id", "activity_type_id", "person_id", "location_id",
    "booking_date", "start_time", "end_time", "max_students", "group_ids",
})

# Changing any of these re-runs the conflict check for the dimension
DIMENSION_TRIGGERS = {
    "person": frozenset({"person_id", "booking_date", "start_time", "end_time"}),
    "location": frozenset({"location_id", "booking_date", "start_time", "end_time"}),
}

# Changes the responsible person is told about
IMPORTANT_FIELDS = frozenset({
    "person_id", "location_id", "booking_date", "start_time", "end_time",
})

# Directory references checked on create / update
REFERENCE_FIELDS = {
    "course_id": ("course", "Course"),
    "activity_type_id": ("activity_type", "Activity type"),
    "person_id": ("person", "Person"),
    "location_id": ("location", "Location"),
}

# BookingFilter fields mapped to repository criteria
LISTING_FIELDS = (
    "course_id", "activity_type_id", "person_id", "location_id",
    "status", "date_from", "date_to", "limit", "offset",
)


def _validate_interval(start_time: time, end_time: time) -> None:
    if start_time >= end_time:
        raise ValidationError("start_time must be before end_time", field="end_time")


def _validate_max_students(max_students: Optional[int]) -> None:
    if max_students is not None and not 1 <= max_students <= 100:
        raise ValidationError("max_students must be between 1 and 100", field="max_students")


def _slot_keys(dimensions: Iterable[str], values: Mapping[str, Any]) -> List[SlotKey]:
    return [
        (dimension, values[f"{dimension}_id"], values["booking_date"])
        for dimension in dimensions
    ]


class Scheduler:
    """
    Service for booking lifecycle operations.

    Usage:
        >>> scheduler = Scheduler(uow, notifier)
        >>> booking = scheduler.create(
        ...     course_id=1, activity_type_id=1, person_id=3, location_id=7,
        ...     booking_date=date(2026, 3, 2), start_time=time(9), end_time=time(11),
        ...     group_ids=[4], acted_by="u-17",
        ... )
    """

    def __init__(self, uow: UnitOfWork, notifier: Optional[NotificationDispatcher] = None):
        """
        Initialize scheduler.

        Args:
            uow: Unit of work giving access to storage
            notifier: Optional dispatcher for post-commit notifications
        """
        self.uow = uow
        self.notifier = notifier
        self.groups = GroupAssignmentManager(uow)
        self.detector = ConflictDetector(uow.bookings)

    # =========================================================================
    # Validation helpers (run inside the caller's unit of work)
    # =========================================================================

    def _validate_references(self, values: Mapping[str, Any]) -> None:
        for field, (kind, label) in REFERENCE_FIELDS.items():
            if field in values and not self.uow.directory.exists(kind, values[field]):
                raise ValidationError(f"{label} {values[field]} does not exist", field=field)

    def _check_conflicts(
        self,
        dimensions: Sequence[str],
        values: Mapping[str, Any],
        exclude_booking_id: Optional[int] = None,
    ) -> None:
        """Lock the slots of the given dimensions, then check each in order."""
        if not dimensions:
            return
        self.uow.lock_slots(_slot_keys(dimensions, values))

        for dimension in dimensions:
            resource_id = values[f"{dimension}_id"]
            existing = self.detector.find_conflict(
                resource_id,
                dimension,
                values["booking_date"],
                values["start_time"],
                values["end_time"],
                exclude_booking_id=exclude_booking_id,
            )
            if existing is not None:
                logger.warning(
                    "Booking conflict detected",
                    extra={
                        "dimension": dimension,
                        "resource_id": resource_id,
                        "existing_booking_id": existing.id,
                        "booking_date": values["booking_date"],
                    },
                )
                raise ConflictError(
                    f"The {dimension} is already booked on {values['booking_date']} "
                    f"from {existing.start_time.strftime('%H:%M')} to "
                    f"{existing.end_time.strftime('%H:%M')} (booking {existing.id})",
                    dimension=dimension,
                    existing_booking_id=existing.id,
                    resource_id=resource_id,
                )

    # =========================================================================
    # Create
    # =========================================================================

    def create(
        self,
        course_id: int,
        activity_type_id: int,
        person_id: int,
        location_id: int,
        booking_date: date,
        start_time: time,
        end_time: time,
        max_students: Optional[int] = None,
        notes: Optional[str] = None,
        group_ids: Optional[Sequence[int]] = None,
        acted_by: Optional[str] = None,
    ) -> Booking:
        """
        Create a booking.

        Args:
            course_id: Course the session belongs to
            activity_type_id: Kind of session
            person_id: Responsible person
            location_id: Venue
            booking_date: Calendar date
            start_time: Interval start (inclusive)
            end_time: Interval end (exclusive)
            max_students: Optional enrollment ceiling (1-100)
            notes: Free-text notes
            group_ids: Groups to assign (duplicates removed)
            acted_by: Actor id stamped on the booking

        Returns:
            Created Booking

        Raises:
            ValidationError: If the interval is empty or inverted, max_students
                is out of range, or a referenced entity does not exist
            ConflictError: If the person or the location is already booked
        """
        _validate_interval(start_time, end_time)
        _validate_max_students(max_students)

        values = {
            "course_id": course_id,
            "activity_type_id": activity_type_id,
            "person_id": person_id,
            "location_id": location_id,
            "booking_date": booking_date,
            "start_time": start_time,
            "end_time": end_time,
        }

        try:
            with self.uow:
                self._validate_references(values)
                unique_group_ids = None
                if group_ids is not None:
                    unique_group_ids = self.groups.validate_group_ids(group_ids)

                self._check_conflicts(DIMENSIONS, values)

                booking = self.uow.bookings.add(Booking(
                    **values,
                    max_students=max_students,
                    notes=notes,
                    status=BookingStatus.SCHEDULED,
                    enrolled_count=0,
                    created_by_id=acted_by,
                    updated_by_id=acted_by,
                ))
                if unique_group_ids is not None:
                    self.groups.replace(booking, unique_group_ids)

                self.uow.commit()
        except SQLAlchemyError as e:
            logger.error(
                f"Failed to create booking: {e}",
                extra={"person_id": person_id, "location_id": location_id, "acted_by": acted_by},
                exc_info=True,
            )
            raise InternalError("Failed to create booking") from e

        logger.info(
            f"Created booking {booking.id}",
            extra={
                "booking_id": booking.id,
                "person_id": person_id,
                "location_id": location_id,
                "booking_date": booking_date,
                "acted_by": acted_by,
            },
        )

        notify_safely(
            self.notifier,
            person_id=person_id,
            title="New booking",
            message=(
                f"You have been booked on {booking_date.isoformat()} "
                f"from {start_time.strftime('%H:%M')} to {end_time.strftime('%H:%M')}"
            ),
            category=NotificationCategory.INFO.value,
            booking_id=booking.id,
        )
        return booking

    def create_bulk(
        self,
        items: Sequence[Mapping[str, Any]],
        acted_by: Optional[str] = None,
    ) -> BulkBookingResult:
        """
        Create several bookings, each in its own transaction.

        A failing item is reported by its index and does not affect the
        others. Later items see the bookings created by earlier ones.

        Args:
            items: Mappings with the arguments of ``create``
            acted_by: Actor id stamped on every booking

        Returns:
            BulkBookingResult with created bookings and per-item failures

        Raises:
            ValidationError: If items is empty
        """
        if not items:
            raise ValidationError("At least one booking is required", field="items")

        created: List[Booking] = []
        failed: List[BulkItemFailure] = []
        for index, item in enumerate(items):
            try:
                unknown = sorted(set(item) - set(CREATE_FIELDS))
                if unknown:
                    raise ValidationError(
                        f"Unknown booking field(s): {', '.join(unknown)}", field=unknown[0]
                    )
                missing = [f for f in REQUIRED_CREATE_FIELDS if item.get(f) is None]
                if missing:
                    raise ValidationError(f"{missing[0]} is required", field=missing[0])
                created.append(self.create(**item, acted_by=acted_by))
            except ServiceError as e:
                failed.append(BulkItemFailure(
                    index=index,
                    error=e.kind,
                    message=getattr(e, "message", str(e)),
                    field=getattr(e, "field", None),
                    dimension=getattr(e, "dimension", None),
                    existing_booking_id=getattr(e, "existing_booking_id", None),
                ))

        logger.info(
            "Bulk booking creation finished",
            extra={"succeeded": len(created), "failed": len(failed), "acted_by": acted_by},
        )
        return BulkBookingResult(succeeded=self.describe(created), failed=failed)

    # =========================================================================
    # Update
    # =========================================================================

    def _normalize_changes(self, changes: Mapping[str, Any]) -> Dict[str, Any]:
        unknown = sorted(set(changes) - UPDATE_FIELDS)
        if unknown:
            raise ValidationError(
                f"Unknown booking field(s): {', '.join(unknown)}", field=unknown[0]
            )

        normalized = dict(changes)
        for field in sorted(REQUIRED_FIELDS & set(normalized)):
            if normalized[field] is None:
                raise ValidationError(f"{field} cannot be null", field=field)

        # Null group_ids means "leave the assignments alone"
        if "group_ids" in normalized and normalized["group_ids"] is None:
            del normalized["group_ids"]

        if "status" in normalized:
            try:
                normalized["status"] = BookingStatus(normalized["status"])
            except ValueError:
                raise ValidationError(
                    f"Invalid status: {normalized['status']}", field="status"
                ) from None
        if "group_ids" in normalized:
            normalized["group_ids"] = dedupe_ids(normalized["group_ids"])
        return normalized

    def update(
        self,
        booking_id: int,
        changes: Mapping[str, Any],
        acted_by: Optional[str] = None,
    ) -> Booking:
        """
        Partially update a booking.

        Only the supplied fields change. A supplied group_ids list (even an
        empty one) replaces the assignment set; an omitted or null group_ids
        leaves it untouched.

        Args:
            booking_id: Booking to change
            changes: Field name to new value
            acted_by: Actor id stamped on the booking

        Returns:
            Updated Booking

        Raises:
            NotFoundError: If the booking does not exist
            ValidationError: If a field is unknown, a required field is null,
                the interval is invalid or a reference does not exist
            ConflictError: If the new slot collides with another booking
            BookingNotEditableError: If scheduling fields change while the
                resulting status is not scheduled
        """
        changes = self._normalize_changes(changes)

        try:
            with self.uow:
                booking = self.uow.bookings.get_for_update(booking_id)
                if booking is None:
                    raise NotFoundError("Booking", booking_id)

                previous = {
                    "person_id": booking.person_id,
                    "status": BookingStatus(booking.status),
                }
                current_group_ids = None
                if "group_ids" in changes:
                    current_group_ids = [
                        a.group_id
                        for a in self.uow.group_assignments.list_for_booking(booking.id)
                    ]

                changed = {
                    field for field, value in changes.items()
                    if field != "group_ids" and getattr(booking, field) != value
                }
                if "group_ids" in changes and set(changes["group_ids"]) != set(current_group_ids):
                    changed.add("group_ids")

                new_status = changes.get("status", previous["status"])
                if changed & SCHEDULING_FIELDS and new_status != BookingStatus.SCHEDULED:
                    raise BookingNotEditableError(booking.id, new_status.value)

                merged = {
                    field: changes.get(field, getattr(booking, field))
                    for field in (
                        "person_id", "location_id", "booking_date",
                        "start_time", "end_time", "max_students",
                    )
                }
                _validate_interval(merged["start_time"], merged["end_time"])
                _validate_max_students(merged["max_students"])
                self._validate_references({f: changes[f] for f in changed if f in REFERENCE_FIELDS})
                if "group_ids" in changed:
                    self.groups.validate_group_ids(changes["group_ids"])

                if new_status != BookingStatus.CANCELLED:
                    revived = previous["status"] == BookingStatus.CANCELLED
                    dimensions = [
                        dimension for dimension in DIMENSIONS
                        if revived or changed & DIMENSION_TRIGGERS[dimension]
                    ]
                    self._check_conflicts(dimensions, merged, exclude_booking_id=booking.id)

                for field, value in changes.items():
                    if field != "group_ids":
                        setattr(booking, field, value)
                booking.updated_by_id = acted_by
                self.uow.bookings.save(booking)

                if "group_ids" in changes and new_status == BookingStatus.SCHEDULED:
                    self.groups.replace(booking, changes["group_ids"])

                self.uow.commit()
        except SQLAlchemyError as e:
            logger.error(
                f"Failed to update booking {booking_id}: {e}",
                extra={"booking_id": booking_id, "acted_by": acted_by},
                exc_info=True,
            )
            raise InternalError("Failed to update booking") from e

        logger.info(
            f"Updated booking {booking_id}",
            extra={
                "booking_id": booking_id,
                "fields": sorted(changed),
                "acted_by": acted_by,
            },
        )

        self._notify_update(booking, previous, changed, new_status)
        return booking

    def _notify_update(
        self,
        booking: Booking,
        previous: Mapping[str, Any],
        changed: set,
        new_status: BookingStatus,
    ) -> None:
        when = (
            f"{booking.booking_date.isoformat()} "
            f"{booking.start_time.strftime('%H:%M')}-{booking.end_time.strftime('%H:%M')}"
        )
        if new_status == BookingStatus.CANCELLED and previous["status"] != BookingStatus.CANCELLED:
            notify_safely(
                self.notifier,
                person_id=booking.person_id,
                title="Booking cancelled",
                message=f"Your booking on {when} has been cancelled",
                category=NotificationCategory.WARNING.value,
                booking_id=booking.id,
            )
            return

        if not changed & IMPORTANT_FIELDS:
            return

        if "person_id" in changed:
            notify_safely(
                self.notifier,
                person_id=previous["person_id"],
                title="Booking reassigned",
                message=f"Your booking on {when} has been assigned to someone else",
                category=NotificationCategory.WARNING.value,
                booking_id=booking.id,
            )
        notify_safely(
            self.notifier,
            person_id=booking.person_id,
            title="Booking updated",
            message=f"Your booking is now on {when}",
            category=NotificationCategory.INFO.value,
            booking_id=booking.id,
        )

    # =========================================================================
    # Delete
    # =========================================================================

    def delete(self, booking_id: int, acted_by: Optional[str] = None) -> None:
        """
        Delete a booking and its group assignments.

        Raises:
            NotFoundError: If the booking does not exist
            BookingHasAttendanceError: If attendance records reference it
        """
        try:
            with self.uow:
                booking = self.uow.bookings.get_for_update(booking_id)
                if booking is None:
                    raise NotFoundError("Booking", booking_id)

                record_count = self.uow.attendance.count_for_booking(booking_id)
                if record_count:
                    logger.warning(
                        "Refused to delete booking with attendance",
                        extra={"booking_id": booking_id, "record_count": record_count},
                    )
                    raise BookingHasAttendanceError(booking_id, record_count)

                person_id = booking.person_id
                booking_date = booking.booking_date
                self.uow.group_assignments.delete_for_booking(booking_id)
                self.uow.bookings.delete(booking_id)
                self.uow.commit()
        except SQLAlchemyError as e:
            logger.error(
                f"Failed to delete booking {booking_id}: {e}",
                extra={"booking_id": booking_id, "acted_by": acted_by},
                exc_info=True,
            )
            raise InternalError("Failed to delete booking") from e

        logger.info(
            f"Deleted booking {booking_id}",
            extra={"booking_id": booking_id, "acted_by": acted_by},
        )
        notify_safely(
            self.notifier,
            person_id=person_id,
            title="Booking removed",
            message=f"Your booking on {booking_date.isoformat()} has been removed",
            category=NotificationCategory.WARNING.value,
            booking_id=booking_id,
        )

    # =========================================================================
    # Queries
    # =========================================================================

    def get(self, booking_id: int) -> Booking:
        """
        Get a booking by id.

        Raises:
            NotFoundError: If the booking does not exist
        """
        with self.uow:
            booking = self.uow.bookings.get(booking_id)
            if booking is None:
                raise NotFoundError("Booking", booking_id)
            return booking

    def list(self, filters: Optional[BookingFilter] = None) -> List[Booking]:
        """
        List bookings ordered by date then start time.

        Raises:
            ValidationError: If date_from is after date_to
        """
        filters = filters or BookingFilter()
        if filters.date_from and filters.date_to and filters.date_from > filters.date_to:
            raise ValidationError("date_from must not be after date_to", field="date_from")

        criteria = {field: getattr(filters, field) for field in LISTING_FIELDS}
        with self.uow:
            return self.uow.bookings.list(**criteria)

    def group_ids(self, booking_id: int) -> List[int]:
        """List the groups actively assigned to a booking."""
        return self.groups.group_ids(booking_id)

    def describe(self, bookings: Sequence[Booking]) -> List[BookingResponse]:
        """Build API responses for bookings, including their group ids."""
        with self.uow:
            group_map = self.uow.group_assignments.group_ids_by_booking(
                [booking.id for booking in bookings]
            )
            return [
                BookingResponse.model_validate(booking).model_copy(
                    update={"group_ids": group_map.get(booking.id, [])}
                )
                for booking in bookings
            ]

    def check_conflicts(
        self,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> ConflictReport:
        """
        Scan active bookings for overlapping pairs.

        Read-only; takes no locks. Omitted bounds leave the range open.

        Raises:
            ValidationError: If start_date is after end_date
        """
        if start_date and end_date and start_date > end_date:
            raise ValidationError("start_date must not be after end_date", field="start_date")

        with self.uow:
            bookings = self.uow.bookings.list_active_between(start_date, end_date)
            entries = self.detector.scan(bookings)

        person_count = sum(1 for e in entries if e.dimension.value == "person")
        return ConflictReport(
            start_date=start_date,
            end_date=end_date,
            conflicts=entries,
            summary=ConflictSummary(
                total=len(entries),
                person=person_count,
                location=len(entries) - person_count,
            ),
        )
