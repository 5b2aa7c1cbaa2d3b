"""
In-memory implementation of the repositories and unit of work.

Tables are dictionaries of plain row dicts keyed by id, built from the
SQLAlchemy model columns so both backends share one data model. Repositories
hand out detached model instances; changes reach the table only through
``add`` / ``save`` / ``delete``.

Each unit of work holds the store-wide lock for its whole scope and works on
a private copy of the tables, so transactions are serializable and a
rollback simply drops the copy.
"""

import copy
import threading
from datetime import date
from typing import Any, Dict, Iterable, List, Optional, Sequence, Type

from sqlalchemy import inspect

from backend.src.models import (
    ActivityType,
    AssignmentStatus,
    AttendanceRecord,
    Base,
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


def _columns(model: Type[Base]):
    return inspect(model).column_attrs


def to_row(instance: Base) -> Dict[str, Any]:
    """Copy the column values of a model instance into a plain dict."""
    return {attr.key: getattr(instance, attr.key) for attr in _columns(type(instance))}


def from_row(model: Type[Base], row: Dict[str, Any]) -> Base:
    """Build a detached model instance from a row dict."""
    return model(**row)


def apply_defaults(instance: Base, updating: bool = False) -> None:
    """
    Apply Python-side column defaults the way an INSERT / UPDATE would.

    Args:
        instance: Model instance to fill in
        updating: Apply ``onupdate`` defaults instead of insert defaults
    """
    for attr in _columns(type(instance)):
        column = attr.columns[0]
        default = column.onupdate if updating else column.default
        if default is None:
            continue
        if not updating and getattr(instance, attr.key) is not None:
            continue
        if default.is_scalar:
            setattr(instance, attr.key, default.arg)
        elif default.is_callable:
            setattr(instance, attr.key, default.arg(None))


class MemoryStore:
    """
    Committed state shared by every in-memory unit of work.

    Usage:
        >>> store = MemoryStore()
        >>> person = store.seed(Person(name="Dr. Ada"))
        >>> uow = InMemoryUnitOfWork(store)
    """

    def __init__(self):
        self.lock = threading.RLock()
        self.tables: Dict[str, Dict[int, Dict[str, Any]]] = {
            name: {} for name in Base.metadata.tables
        }
        self.sequences: Dict[str, int] = {name: 0 for name in Base.metadata.tables}

    def seed(self, instance: Base) -> Base:
        """Insert a row outside any unit of work (fixtures, tooling)."""
        with self.lock:
            table = type(instance).__tablename__
            apply_defaults(instance)
            if instance.id is None:
                self.sequences[table] += 1
                instance.id = self.sequences[table]
            else:
                self.sequences[table] = max(self.sequences[table], instance.id)
            self.tables[table][instance.id] = to_row(instance)
            return instance

    def snapshot(self) -> Dict[str, Any]:
        return {
            "tables": copy.deepcopy(self.tables),
            "sequences": dict(self.sequences),
        }


class _MemoryRepository:
    """Shared row access for the in-memory repositories."""

    model: Type[Base]

    def __init__(self, uow: "InMemoryUnitOfWork"):
        self.uow = uow

    @property
    def rows(self) -> Dict[int, Dict[str, Any]]:
        return self.uow.table(self.model.__tablename__)

    def _get(self, entity_id: int):
        row = self.rows.get(entity_id)
        return from_row(self.model, row) if row is not None else None

    def _all(self) -> List[Any]:
        return [from_row(self.model, row) for _, row in sorted(self.rows.items())]

    def _insert(self, instance: Base) -> Base:
        apply_defaults(instance)
        if instance.id is None:
            instance.id = self.uow.next_id(self.model.__tablename__)
        self.rows[instance.id] = to_row(instance)
        return instance

    def _update(self, instance: Base) -> None:
        if instance.id not in self.rows:
            raise KeyError(f"{self.model.__name__} {instance.id} is not stored")
        apply_defaults(instance, updating=True)
        self.rows[instance.id] = to_row(instance)


class MemoryBookingRepository(_MemoryRepository, BookingRepository):
    model = Booking

    def get(self, booking_id: int) -> Optional[Booking]:
        return self._get(booking_id)

    def get_for_update(self, booking_id: int) -> Optional[Booking]:
        return self._get(booking_id)

    def add(self, booking: Booking) -> Booking:
        return self._insert(booking)

    def save(self, booking: Booking) -> None:
        self._update(booking)

    def delete(self, booking_id: int) -> None:
        self.rows.pop(booking_id, None)

    def find_active_on(
        self,
        dimension: str,
        resource_id: int,
        booking_date: date,
        exclude_booking_id: Optional[int] = None,
    ) -> List[Booking]:
        column = f"{dimension}_id"
        matches = [
            booking for booking in self._all()
            if getattr(booking, column) == resource_id
            and booking.booking_date == booking_date
            and booking.status != BookingStatus.CANCELLED
            and booking.id != exclude_booking_id
        ]
        return sorted(matches, key=lambda b: (b.start_time, b.id))

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
        criteria = {
            "course_id": course_id,
            "activity_type_id": activity_type_id,
            "person_id": person_id,
            "location_id": location_id,
            "status": status,
        }
        matches = []
        for booking in self._all():
            if any(
                value is not None and getattr(booking, key) != value
                for key, value in criteria.items()
            ):
                continue
            if date_from is not None and booking.booking_date < date_from:
                continue
            if date_to is not None and booking.booking_date > date_to:
                continue
            matches.append(booking)
        matches.sort(key=lambda b: (b.booking_date, b.start_time, b.id))
        return matches[offset:offset + limit]

    def list_active_between(
        self,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> List[Booking]:
        matches = [
            booking for booking in self._all()
            if booking.status != BookingStatus.CANCELLED
            and (start_date is None or booking.booking_date >= start_date)
            and (end_date is None or booking.booking_date <= end_date)
        ]
        return sorted(matches, key=lambda b: (b.booking_date, b.start_time, b.id))


class MemoryGroupAssignmentRepository(_MemoryRepository, GroupAssignmentRepository):
    model = GroupAssignment

    def list_for_booking(self, booking_id: int, active_only: bool = True) -> List[GroupAssignment]:
        return [
            assignment for assignment in self._all()
            if assignment.booking_id == booking_id
            and (not active_only or assignment.status == AssignmentStatus.ACTIVE)
        ]

    def group_ids_by_booking(self, booking_ids: Sequence[int]) -> Dict[int, List[int]]:
        result: Dict[int, List[int]] = {booking_id: [] for booking_id in booking_ids}
        for assignment in self._all():
            if assignment.booking_id in result and assignment.status == AssignmentStatus.ACTIVE:
                result[assignment.booking_id].append(assignment.group_id)
        return result

    def add(self, assignment: GroupAssignment) -> GroupAssignment:
        for row in self.rows.values():
            if row["booking_id"] == assignment.booking_id and row["group_id"] == assignment.group_id:
                raise DuplicateRecordError(
                    f"Group {assignment.group_id} is already assigned to booking {assignment.booking_id}",
                    constraint="uq_booking_groups_booking_group",
                )
        return self._insert(assignment)

    def delete_for_booking(self, booking_id: int) -> int:
        doomed = [key for key, row in self.rows.items() if row["booking_id"] == booking_id]
        for key in doomed:
            del self.rows[key]
        return len(doomed)


class MemoryAttendanceRepository(_MemoryRepository, AttendanceRepository):
    model = AttendanceRecord

    def get(self, attendance_id: int) -> Optional[AttendanceRecord]:
        return self._get(attendance_id)

    def count_for_booking(self, booking_id: int) -> int:
        return sum(1 for row in self.rows.values() if row["booking_id"] == booking_id)

    def list_for_booking(self, booking_id: int) -> List[AttendanceRecord]:
        return [record for record in self._all() if record.booking_id == booking_id]

    def add_many(self, records: Iterable[AttendanceRecord]) -> List[AttendanceRecord]:
        records = list(records)
        taken = {(row["booking_id"], row["student_id"]) for row in self.rows.values()}
        for record in records:
            pair = (record.booking_id, record.student_id)
            if pair in taken:
                raise DuplicateRecordError(
                    "Attendance record already exists for this booking and student",
                    constraint="uq_attendance_booking_student",
                )
            taken.add(pair)
        return [self._insert(record) for record in records]

    def save(self, record: AttendanceRecord) -> None:
        self._update(record)


class MemoryDirectoryReader(DirectoryReader):

    def __init__(self, uow: "InMemoryUnitOfWork"):
        self.uow = uow

    def exists(self, kind: str, entity_id: int) -> bool:
        model = _DIRECTORY_MODELS[kind]
        return entity_id in self.uow.table(model.__tablename__)

    def missing_group_ids(self, group_ids: Sequence[int]) -> List[int]:
        groups = self.uow.table(Group.__tablename__)
        return [group_id for group_id in group_ids if group_id not in groups]

    def active_students(self, group_ids: Sequence[int]) -> List[Student]:
        groups = self.uow.table(Group.__tablename__)
        active_groups = {
            group_id for group_id in group_ids
            if group_id in groups and groups[group_id]["is_active"]
        }
        return [
            from_row(Student, row)
            for _, row in sorted(self.uow.table(Student.__tablename__).items())
            if row["group_id"] in active_groups and row["status"] == StudentStatus.ACTIVE
        ]


class InMemoryUnitOfWork(UnitOfWork):
    """
    Unit of work over a MemoryStore.

    The store lock is held from ``__enter__`` to ``__exit__``, so units of
    work on the same store run one at a time. Scopes do not nest: entering a
    scope that is already open raises RuntimeError.
    """

    def __init__(self, store: MemoryStore):
        self.store = store
        self._working: Optional[Dict[str, Any]] = None
        self._active = False
        self.bookings = MemoryBookingRepository(self)
        self.group_assignments = MemoryGroupAssignmentRepository(self)
        self.attendance = MemoryAttendanceRepository(self)
        self.directory = MemoryDirectoryReader(self)

    def _begin(self) -> None:
        if self._active:
            raise RuntimeError("Unit of work scope is already open")
        self.store.lock.acquire()
        self._active = True
        self._working = None

    def _end(self) -> None:
        self._active = False
        self.store.lock.release()

    def _state(self) -> Dict[str, Any]:
        if self._working is None:
            self._working = self.store.snapshot()
        return self._working

    def table(self, name: str) -> Dict[int, Dict[str, Any]]:
        return self._state()["tables"][name]

    def next_id(self, name: str) -> int:
        sequences = self._state()["sequences"]
        sequences[name] += 1
        return sequences[name]

    def commit(self) -> None:
        if self._working is not None:
            self.store.tables = self._working["tables"]
            self.store.sequences = self._working["sequences"]
        self._working = None

    def rollback(self) -> None:
        self._working = None

    def lock_slots(self, keys: Iterable[SlotKey]) -> None:
        # The store lock already serializes every unit of work
        return None
