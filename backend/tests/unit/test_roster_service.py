"""
Tests for RosterInitializer: at-most-once roster generation and preview.
"""

import pytest

from backend.src.models import AttendanceStatus, StudentStatus
from backend.src.repositories.base import DuplicateRecordError
from backend.src.services.exceptions import (
    NoStudentsError,
    NotFoundError,
    RosterAlreadyInitializedError,
)


@pytest.fixture
def booked_group(scheduler, booking_data, seeder):
    """A booking with one group of three active students."""
    group, students = seeder.group_with_students(name="G1", count=3)
    booking = scheduler.create(**booking_data(group_ids=[group.id]))
    return booking, group, students


class TestInitialize:
    """Tests for RosterInitializer.initialize"""

    def test_creates_absent_record_per_student(self, roster, booked_group):
        booking, _, students = booked_group

        summary = roster.initialize(booking.id, acted_by="u-17")

        assert summary.booking_id == booking.id
        assert summary.total_students == 3
        assert sorted(r.student_id for r in summary.records) == sorted(s.id for s in students)
        for record in summary.records:
            assert record.status == AttendanceStatus.ABSENT
            assert record.recorded_by_id == "u-17"
            assert record.check_in_time is None
            assert record.score is None

    def test_second_initialize_rejected(self, roster, booked_group, uow):
        booking, _, _ = booked_group
        roster.initialize(booking.id)

        with pytest.raises(RosterAlreadyInitializedError) as exc_info:
            roster.initialize(booking.id)

        assert exc_info.value.reason == "already_initialized"
        with uow:
            assert uow.attendance.count_for_booking(booking.id) == 3

    def test_student_in_two_groups_counted_once(self, scheduler, roster, booking_data, seeder):
        group_1, students = seeder.group_with_students(name="G1", count=2)
        group_2, _ = seeder.group_with_students(name="G2", count=1)
        booking = scheduler.create(**booking_data(group_ids=[group_1.id, group_2.id]))

        summary = roster.initialize(booking.id)

        assert summary.total_students == 3
        assert len({r.student_id for r in summary.records}) == 3

    def test_inactive_students_excluded(self, scheduler, roster, booking_data, seeder):
        group, _ = seeder.group_with_students(count=2)
        seeder.student(group.id, status=StudentStatus.INACTIVE)
        booking = scheduler.create(**booking_data(group_ids=[group.id]))

        assert roster.initialize(booking.id).total_students == 2

    def test_no_students(self, scheduler, roster, booking_data, uow):
        booking = scheduler.create(**booking_data())

        with pytest.raises(NoStudentsError) as exc_info:
            roster.initialize(booking.id)

        assert exc_info.value.reason == "no_students"
        with uow:
            assert uow.attendance.count_for_booking(booking.id) == 0

    def test_missing_booking(self, roster):
        with pytest.raises(NotFoundError):
            roster.initialize(999)

    def test_unique_constraint_maps_to_already_initialized(self, roster, booked_group, uow, mocker):
        """An initializer that slips past the existence check still fails cleanly"""
        booking, _, _ = booked_group
        mocker.patch.object(
            uow.attendance,
            "add_many",
            side_effect=DuplicateRecordError("duplicate", constraint="uq_attendance_booking_student"),
        )

        with pytest.raises(RosterAlreadyInitializedError):
            roster.initialize(booking.id)

    def test_notifies_person(self, roster, booked_group, notifier, directory):
        booking, _, _ = booked_group
        notifier.sent.clear()

        roster.initialize(booking.id)

        assert notifier.sent[0]["title"] == "Attendance roster ready"
        assert notifier.sent[0]["category"] == "success"
        assert notifier.sent[0]["person_id"] == directory.person_a


class TestPreview:
    """Tests for RosterInitializer.preview"""

    def test_before_initialize(self, roster, booked_group):
        booking, group, students = booked_group

        entries = roster.preview(booking.id)

        assert [e.student_id for e in entries] == [s.id for s in students]
        assert all(e.group_id == group.id for e in entries)
        assert all(not e.has_attendance and e.attendance_id is None for e in entries)

    def test_after_initialize(self, roster, booked_group):
        booking, _, _ = booked_group
        summary = roster.initialize(booking.id)

        entries = roster.preview(booking.id)

        assert {e.attendance_id for e in entries} == {r.id for r in summary.records}
        assert all(e.status == AttendanceStatus.ABSENT for e in entries)

    def test_missing_booking(self, roster):
        with pytest.raises(NotFoundError):
            roster.preview(999)
