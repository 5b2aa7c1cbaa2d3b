"""
Tests for the repository layer: in-memory transaction semantics, unique
constraints shared by both backends and the advisory lock key.
"""

import pytest
from datetime import date, time

from backend.src.models import (
    AssignmentStatus,
    AttendanceRecord,
    Booking,
    BookingStatus,
    GroupAssignment,
    Person,
)
from backend.src.repositories import InMemoryUnitOfWork, MemoryStore, advisory_lock_key
from backend.src.repositories.base import DuplicateRecordError


def _booking(directory, **overrides):
    values = dict(
        course_id=directory.course_id,
        activity_type_id=directory.activity_type_id,
        person_id=directory.person_a,
        location_id=directory.location_a,
        booking_date=date(2026, 3, 2),
        start_time=time(9, 0),
        end_time=time(11, 0),
        status=BookingStatus.SCHEDULED,
    )
    values.update(overrides)
    return Booking(**values)


class TestUnitOfWork:
    """Behavior shared by both backends"""

    def test_uncommitted_changes_discarded(self, uow, directory):
        with uow:
            booking = uow.bookings.add(_booking(directory))
            booking_id = booking.id

        with uow:
            assert uow.bookings.get(booking_id) is None

    def test_committed_changes_visible(self, uow, directory):
        with uow:
            booking = uow.bookings.add(_booking(directory))
            uow.commit()
            booking_id = booking.id

        with uow:
            stored = uow.bookings.get(booking_id)
            assert stored.enrolled_count == 0
            assert stored.created_at is not None

    def test_find_active_on_skips_cancelled_and_excluded(self, uow, directory):
        with uow:
            kept = uow.bookings.add(_booking(directory, start_time=time(13), end_time=time(14)))
            uow.bookings.add(_booking(directory, status=BookingStatus.CANCELLED))
            excluded = uow.bookings.add(_booking(directory))
            early = uow.bookings.add(_booking(directory, start_time=time(8), end_time=time(9)))
            uow.commit()
            ids = (kept.id, excluded.id, early.id)

        with uow:
            found = uow.bookings.find_active_on(
                "person", directory.person_a, date(2026, 3, 2), exclude_booking_id=ids[1]
            )
            assert [b.id for b in found] == [ids[2], ids[0]]

    def test_duplicate_attendance_rejected(self, uow, seeder, directory):
        _, students = seeder.group_with_students(count=1)
        with uow:
            booking = uow.bookings.add(_booking(directory))
            uow.attendance.add_many([
                AttendanceRecord(booking_id=booking.id, student_id=students[0].id),
            ])
            uow.commit()
            booking_id = booking.id

        with uow:
            with pytest.raises(DuplicateRecordError) as exc_info:
                uow.attendance.add_many([
                    AttendanceRecord(booking_id=booking_id, student_id=students[0].id),
                ])
            assert exc_info.value.constraint == "uq_attendance_booking_student"

    def test_group_ids_by_booking(self, uow, seeder, directory):
        group_1 = seeder.group(name="G1")
        group_2 = seeder.group(name="G2")
        with uow:
            first = uow.bookings.add(_booking(directory))
            second = uow.bookings.add(_booking(directory, booking_date=date(2026, 3, 3)))
            for group in (group_2, group_1):
                uow.group_assignments.add(GroupAssignment(
                    booking_id=first.id, group_id=group.id, status=AssignmentStatus.ACTIVE,
                ))
            uow.commit()
            ids = (first.id, second.id)

        with uow:
            mapping = uow.group_assignments.group_ids_by_booking(list(ids))

        assert mapping == {ids[0]: [group_2.id, group_1.id], ids[1]: []}


class TestMemoryStore:

    def test_seed_assigns_sequential_ids(self):
        store = MemoryStore()

        first = store.seed(Person(name="A"))
        second = store.seed(Person(name="B"))

        assert (first.id, second.id) == (1, 2)

    def test_directory_lookup(self):
        store = MemoryStore()
        person = store.seed(Person(name="A"))
        uow = InMemoryUnitOfWork(store)

        with uow:
            assert uow.directory.exists("person", person.id)
            assert not uow.directory.exists("person", person.id + 1)

    def test_rollback_discards_id_allocation(self):
        store = MemoryStore()
        uow = InMemoryUnitOfWork(store)
        with uow:
            uow.next_id("bookings")

        with uow:
            assert uow.next_id("bookings") == 1


class TestAdvisoryLockKey:

    def test_stable_signed_64_bit(self):
        key = advisory_lock_key("person", 5, date(2024, 1, 10))

        assert key == advisory_lock_key("person", 5, date(2024, 1, 10))
        assert -2 ** 63 <= key < 2 ** 63

    def test_distinct_per_slot(self):
        keys = {
            advisory_lock_key("person", 5, date(2024, 1, 10)),
            advisory_lock_key("location", 5, date(2024, 1, 10)),
            advisory_lock_key("person", 6, date(2024, 1, 10)),
            advisory_lock_key("person", 5, date(2024, 1, 11)),
        }

        assert len(keys) == 4
