"""
Repository and unit-of-work interfaces.

Services reach storage only through a UnitOfWork, which exposes one
repository per entity plus a read-only directory reader, and owns the
transaction scope and slot locking.

Two backends implement these interfaces:
- sql: SQLAlchemy session (PostgreSQL in production, SQLite for development)
- memory: dictionary tables guarded by a store-wide lock (tests, tooling)

A unit of work is entered with ``with uow:``. Leaving the block without an
explicit ``commit()`` rolls back every change made inside it, whatever the
exit path.
"""

from abc import ABC, abstractmethod
from datetime import date
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from backend.src.models import (
    AttendanceRecord,
    Booking,
    GroupAssignment,
    Student,
)


# (dimension, resource_id, booking_date)
SlotKey = Tuple[str, int, date]

# Directory entity kinds a booking can reference
DIRECTORY_KINDS = ("course", "activity_type", "person", "location", "group")


class RepositoryError(Exception):
    """Base exception for storage-level errors raised by repositories."""
    pass


class DuplicateRecordError(RepositoryError):
    """Raised when an insert violates a uniqueness constraint."""

    def __init__(self, message: str, constraint: Optional[str] = None):
        self.constraint = constraint
        super().__init__(message)


class BookingRepository(ABC):
    """Storage operations for bookings."""

    @abstractmethod
    def get(self, booking_id: int) -> Optional[Booking]:
        """Get a booking by id."""

    @abstractmethod
    def get_for_update(self, booking_id: int) -> Optional[Booking]:
        """Get a booking by id, row-locking it until the transaction ends."""

    @abstractmethod
    def add(self, booking: Booking) -> Booking:
        """Insert a booking; the returned instance carries its id."""

    @abstractmethod
    def save(self, booking: Booking) -> None:
        """Persist changes made to a loaded booking."""

    @abstractmethod
    def delete(self, booking_id: int) -> None:
        """Delete a booking row."""

    @abstractmethod
    def find_active_on(
        self,
        dimension: str,
        resource_id: int,
        booking_date: date,
        exclude_booking_id: Optional[int] = None,
    ) -> List[Booking]:
        """
        List non-cancelled bookings of one resource on one date.

        Args:
            dimension: "person" or "location"
            resource_id: Person or location id
            booking_date: Calendar date
            exclude_booking_id: Booking to leave out (the one being updated)

        Returns:
            Bookings ordered by start time, then id
        """

    @abstractmethod
    def list(
        self,
        course_id: Optional[int] = None,
        activity_type_id: Optional[int] = None,
        person_id: Optional[int] = None,
        location_id: Optional[int] = None,
        status: Optional[str] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[Booking]:
        """List bookings matching every given criterion, ordered by date then start time."""

    @abstractmethod
    def list_active_between(
        self,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> List[Booking]:
        """List non-cancelled bookings with a date inside the inclusive range."""


class GroupAssignmentRepository(ABC):
    """Storage operations for booking/group assignments."""

    @abstractmethod
    def list_for_booking(self, booking_id: int, active_only: bool = True) -> List[GroupAssignment]:
        """List assignments of a booking ordered by id."""

    @abstractmethod
    def group_ids_by_booking(self, booking_ids: Sequence[int]) -> Dict[int, List[int]]:
        """Map each booking id to the group ids of its active assignments."""

    @abstractmethod
    def add(self, assignment: GroupAssignment) -> GroupAssignment:
        """Insert an assignment."""

    @abstractmethod
    def delete_for_booking(self, booking_id: int) -> int:
        """Delete every assignment row of a booking; returns the number removed."""


class AttendanceRepository(ABC):
    """Storage operations for attendance records."""

    @abstractmethod
    def get(self, attendance_id: int) -> Optional[AttendanceRecord]:
        """Get an attendance record by id."""

    @abstractmethod
    def count_for_booking(self, booking_id: int) -> int:
        """Count attendance records of a booking."""

    @abstractmethod
    def list_for_booking(self, booking_id: int) -> List[AttendanceRecord]:
        """List attendance records of a booking ordered by id."""

    @abstractmethod
    def add_many(self, records: Iterable[AttendanceRecord]) -> List[AttendanceRecord]:
        """
        Insert attendance records.

        Raises:
            DuplicateRecordError: If a (booking, student) pair already exists
        """

    @abstractmethod
    def save(self, record: AttendanceRecord) -> None:
        """Persist changes made to a loaded record."""


class DirectoryReader(ABC):
    """Read-only access to the directory entities owned by other services."""

    @abstractmethod
    def exists(self, kind: str, entity_id: int) -> bool:
        """
        Check that a directory entity exists.

        Args:
            kind: One of DIRECTORY_KINDS
            entity_id: Entity id
        """

    @abstractmethod
    def missing_group_ids(self, group_ids: Sequence[int]) -> List[int]:
        """Return the ids among group_ids that match no group, in input order."""

    @abstractmethod
    def active_students(self, group_ids: Sequence[int]) -> List[Student]:
        """
        Distinct active students belonging to the active groups among group_ids.

        Returns:
            Students ordered by id
        """


class UnitOfWork(ABC):
    """
    Transaction scope over the repositories.

    Usage:
        >>> with uow:
        ...     booking = uow.bookings.get_for_update(12)
        ...     booking.notes = "Bring lab coats"
        ...     uow.bookings.save(booking)
        ...     uow.commit()
    """

    bookings: BookingRepository
    group_assignments: GroupAssignmentRepository
    attendance: AttendanceRepository
    directory: DirectoryReader

    def __enter__(self) -> "UnitOfWork":
        self._begin()
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> bool:
        try:
            self.rollback()
        finally:
            self._end()
        return False

    def _begin(self) -> None:
        """Hook run when the scope is entered."""

    def _end(self) -> None:
        """Hook run after the final rollback when the scope is left."""

    @abstractmethod
    def commit(self) -> None:
        """Make every change of the current scope durable."""

    @abstractmethod
    def rollback(self) -> None:
        """Discard every uncommitted change of the current scope."""

    @abstractmethod
    def lock_slots(self, keys: Iterable[SlotKey]) -> None:
        """
        Serialize writers on (dimension, resource, date) slots.

        Locks are held until the transaction ends. Implementations take them
        in a stable order so that two writers never wait on each other.
        """
