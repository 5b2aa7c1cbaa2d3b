"""
SQLAlchemy implementation of the repositories and unit of work.

Slot locks are PostgreSQL transaction-scoped advisory locks
(``pg_advisory_xact_lock``) keyed by a stable 64-bit hash of
"dimension:resource_id:date". They are released automatically at commit or
rollback. SQLite has no advisory locks; the transaction is promoted to a
write transaction (``BEGIN IMMEDIATE``) instead, which holds the database-level
write lock until commit or rollback.
"""

import hashlib
from datetime import date
from typing import Dict, Iterable, List, Optional, Sequence

from sqlalchemy import func, select, text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from backend.src.models import (
    ActivityType,
    AssignmentStatus,
    AttendanceRecord,
    Booking,
    BookingStatus,
    Course,
    Group,
    GroupAssignment,
    Location,
    Person,
    Student,
    StudentStatus,
)
from backend.src.repositories.base import (
    AttendanceRepository,
    BookingRepository,
    DirectoryReader,
    DuplicateRecordError,
    GroupAssignmentRepository,
    SlotKey,
    UnitOfWork,
)


_DIRECTORY_MODELS = {
    "course": Course,
    "activity_type": ActivityType,
    "person": Person,
    "location": Location,
    "group": Group,
}

_DIMENSION_COLUMNS = {
    "person": Booking.person_id,
    "location": Booking.location_id,
}


def advisory_lock_key(dimension: str, resource_id: int, booking_date: date) -> int:
    """
    Derive a signed 64-bit advisory lock key for a slot.

    The key is stable across processes and interpreter runs (no ``hash()``
    randomization), so every writer locks the same key for the same slot.
    """
    raw = f"{dimension}:{resource_id}:{booking_date.isoformat()}".encode("utf-8")
    digest = hashlib.sha256(raw).digest()
    return int.from_bytes(digest[:8], byteorder="big", signed=True)


def ordered_slot_keys(keys: Iterable[SlotKey]) -> List[SlotKey]:
    """De-duplicate slot keys and sort them into lock acquisition order."""
    return sorted(set(keys), key=lambda k: (k[0], k[1], k[2].isoformat()))


class SqlBookingRepository(BookingRepository):
    """Booking storage over a SQLAlchemy session."""

    def __init__(self, session: Session):
        self.session = session

    def get(self, booking_id: int) -> Optional[Booking]:
        return self.session.get(Booking, booking_id)

    def get_for_update(self, booking_id: int) -> Optional[Booking]:
        # FOR UPDATE is dropped by the SQLite compiler
        return self.session.execute(
            select(Booking)
            .where(Booking.id == booking_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def add(self, booking: Booking) -> Booking:
        self.session.add(booking)
        self.session.flush()
        return booking

    def save(self, booking: Booking) -> None:
        self.session.flush()

    def delete(self, booking_id: int) -> None:
        booking = self.session.get(Booking, booking_id)
        if booking is not None:
            self.session.delete(booking)
            self.session.flush()

    def find_active_on(
        self,
        dimension: str,
        resource_id: int,
        booking_date: date,
        exclude_booking_id: Optional[int] = None,
    ) -> List[Booking]:
        column = _DIMENSION_COLUMNS[dimension]
        stmt = select(Booking).where(
            column == resource_id,
            Booking.booking_date == booking_date,
            Booking.status != BookingStatus.CANCELLED,
        )
        if exclude_booking_id is not None:
            stmt = stmt.where(Booking.id != exclude_booking_id)
        stmt = stmt.order_by(Booking.start_time, Booking.id)
        return list(self.session.execute(stmt).scalars().all())

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
        stmt = select(Booking)
        if course_id is not None:
            stmt = stmt.where(Booking.course_id == course_id)
        if activity_type_id is not None:
            stmt = stmt.where(Booking.activity_type_id == activity_type_id)
        if person_id is not None:
            stmt = stmt.where(Booking.person_id == person_id)
        if location_id is not None:
            stmt = stmt.where(Booking.location_id == location_id)
        if status is not None:
            stmt = stmt.where(Booking.status == status)
        if date_from is not None:
            stmt = stmt.where(Booking.booking_date >= date_from)
        if date_to is not None:
            stmt = stmt.where(Booking.booking_date <= date_to)
        stmt = (
            stmt.order_by(Booking.booking_date, Booking.start_time, Booking.id)
            .offset(offset)
            .limit(limit)
        )
        return list(self.session.execute(stmt).scalars().all())

    def list_active_between(
        self,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> List[Booking]:
        stmt = select(Booking).where(Booking.status != BookingStatus.CANCELLED)
        if start_date is not None:
            stmt = stmt.where(Booking.booking_date >= start_date)
        if end_date is not None:
            stmt = stmt.where(Booking.booking_date <= end_date)
        stmt = stmt.order_by(Booking.booking_date, Booking.start_time, Booking.id)
        return list(self.session.execute(stmt).scalars().all())


class SqlGroupAssignmentRepository(GroupAssignmentRepository):
    """Group assignment storage over a SQLAlchemy session."""

    def __init__(self, session: Session):
        self.session = session

    def list_for_booking(self, booking_id: int, active_only: bool = True) -> List[GroupAssignment]:
        stmt = select(GroupAssignment).where(GroupAssignment.booking_id == booking_id)
        if active_only:
            stmt = stmt.where(GroupAssignment.status == AssignmentStatus.ACTIVE)
        stmt = stmt.order_by(GroupAssignment.id)
        return list(self.session.execute(stmt).scalars().all())

    def group_ids_by_booking(self, booking_ids: Sequence[int]) -> Dict[int, List[int]]:
        result: Dict[int, List[int]] = {booking_id: [] for booking_id in booking_ids}
        if not booking_ids:
            return result
        rows = self.session.execute(
            select(GroupAssignment.booking_id, GroupAssignment.group_id)
            .where(
                GroupAssignment.booking_id.in_(list(booking_ids)),
                GroupAssignment.status == AssignmentStatus.ACTIVE,
            )
            .order_by(GroupAssignment.id)
        ).all()
        for booking_id, group_id in rows:
            result[booking_id].append(group_id)
        return result

    def add(self, assignment: GroupAssignment) -> GroupAssignment:
        self.session.add(assignment)
        self.session.flush()
        return assignment

    def delete_for_booking(self, booking_id: int) -> int:
        assignments = self.list_for_booking(booking_id, active_only=False)
        for assignment in assignments:
            self.session.delete(assignment)
        self.session.flush()
        return len(assignments)


class SqlAttendanceRepository(AttendanceRepository):
    """Attendance storage over a SQLAlchemy session."""

    def __init__(self, session: Session):
        self.session = session

    def get(self, attendance_id: int) -> Optional[AttendanceRecord]:
        return self.session.get(AttendanceRecord, attendance_id)

    def count_for_booking(self, booking_id: int) -> int:
        return self.session.execute(
            select(func.count(AttendanceRecord.id))
            .where(AttendanceRecord.booking_id == booking_id)
        ).scalar_one()

    def list_for_booking(self, booking_id: int) -> List[AttendanceRecord]:
        return list(
            self.session.execute(
                select(AttendanceRecord)
                .where(AttendanceRecord.booking_id == booking_id)
                .order_by(AttendanceRecord.id)
            ).scalars().all()
        )

    def add_many(self, records: Iterable[AttendanceRecord]) -> List[AttendanceRecord]:
        records = list(records)
        self.session.add_all(records)
        try:
            self.session.flush()
        except IntegrityError as e:
            raise DuplicateRecordError(
                "Attendance record already exists for this booking and student",
                constraint="uq_attendance_booking_student",
            ) from e
        return records

    def save(self, record: AttendanceRecord) -> None:
        self.session.flush()


class SqlDirectoryReader(DirectoryReader):
    """Directory lookups over a SQLAlchemy session."""

    def __init__(self, session: Session):
        self.session = session

    def exists(self, kind: str, entity_id: int) -> bool:
        model = _DIRECTORY_MODELS[kind]
        return self.session.execute(
            select(model.id).where(model.id == entity_id)
        ).first() is not None

    def missing_group_ids(self, group_ids: Sequence[int]) -> List[int]:
        if not group_ids:
            return []
        found = set(
            self.session.execute(
                select(Group.id).where(Group.id.in_(list(group_ids)))
            ).scalars().all()
        )
        return [group_id for group_id in group_ids if group_id not in found]

    def active_students(self, group_ids: Sequence[int]) -> List[Student]:
        if not group_ids:
            return []
        stmt = (
            select(Student)
            .join(Group, Group.id == Student.group_id)
            .where(
                Student.group_id.in_(list(group_ids)),
                Student.status == StudentStatus.ACTIVE,
                Group.is_active.is_(True),
            )
            .order_by(Student.id)
        )
        return list(self.session.execute(stmt).scalars().unique().all())


class SqlUnitOfWork(UnitOfWork):
    """
    Unit of work bound to one SQLAlchemy session.

    The session is owned by the caller (the request dependency or a test
    fixture); the unit of work only commits or rolls it back.
    """

    def __init__(self, session: Session):
        self.session = session
        self.bookings = SqlBookingRepository(session)
        self.group_assignments = SqlGroupAssignmentRepository(session)
        self.attendance = SqlAttendanceRepository(session)
        self.directory = SqlDirectoryReader(session)

    def commit(self) -> None:
        self.session.commit()

    def rollback(self) -> None:
        self.session.rollback()

    def lock_slots(self, keys: Iterable[SlotKey]) -> None:
        dialect = self.session.get_bind().dialect.name
        if dialect == "sqlite":
            self._lock_sqlite_database()
            return
        if dialect != "postgresql":
            return
        for dimension, resource_id, booking_date in ordered_slot_keys(keys):
            self.session.execute(
                text("SELECT pg_advisory_xact_lock(:key)"),
                {"key": advisory_lock_key(dimension, resource_id, booking_date)},
            )

    def _lock_sqlite_database(self) -> None:
        # pysqlite runs reads outside a transaction until the first write
        connection = self.session.connection()
        if not connection.connection.driver_connection.in_transaction:
            connection.exec_driver_sql("BEGIN IMMEDIATE")
