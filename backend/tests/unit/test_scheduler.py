"""
Tests for Scheduler: booking create / update / delete, double-booking
prevention, the status guard, listing and the conflict scan.

Every test runs against both the in-memory and the SQLite backend.
"""

import pytest
from datetime import date, time

from backend.src.models import AttendanceRecord, AttendanceStatus, BookingStatus
from backend.src.schemas.booking import BookingFilter
from backend.src.services.exceptions import (
    BookingHasAttendanceError,
    BookingNotEditableError,
    ConflictError,
    NotFoundError,
    ValidationError,
)


class TestCreateBooking:
    """Tests for Scheduler.create"""

    def test_create_booking(self, scheduler, booking_data, directory):
        """Creating a booking in a free slot succeeds"""
        booking = scheduler.create(**booking_data(notes="Bring lab coats"), acted_by="u-17")

        assert booking.id is not None
        assert booking.status == BookingStatus.SCHEDULED
        assert booking.enrolled_count == 0
        assert booking.person_id == directory.person_a
        assert booking.notes == "Bring lab coats"
        assert booking.created_by_id == "u-17"
        assert booking.updated_by_id == "u-17"

        fetched = scheduler.get(booking.id)
        assert fetched.start_time == time(9, 0)
        assert fetched.end_time == time(11, 0)

    def test_create_notifies_person(self, scheduler, booking_data, notifier, directory):
        booking = scheduler.create(**booking_data())

        assert len(notifier.sent) == 1
        sent = notifier.sent[0]
        assert sent["person_id"] == directory.person_a
        assert sent["title"] == "New booking"
        assert sent["booking_id"] == booking.id
        assert "09:00" in sent["message"]

    def test_person_conflict(self, scheduler, booking_data, directory):
        """Overlapping same-person bookings are rejected on the person dimension"""
        first = scheduler.create(**booking_data())

        with pytest.raises(ConflictError) as exc_info:
            scheduler.create(**booking_data(
                location_id=directory.location_b,
                start_time=time(10, 0),
                end_time=time(12, 0),
            ))

        assert exc_info.value.dimension == "person"
        assert exc_info.value.existing_booking_id == first.id
        assert exc_info.value.resource_id == directory.person_a

    def test_location_conflict(self, scheduler, booking_data, directory):
        """Overlapping bookings of the same location are rejected independently"""
        first = scheduler.create(**booking_data())

        with pytest.raises(ConflictError) as exc_info:
            scheduler.create(**booking_data(
                person_id=directory.person_b,
                start_time=time(10, 30),
                end_time=time(11, 30),
            ))

        assert exc_info.value.dimension == "location"
        assert exc_info.value.existing_booking_id == first.id

    def test_person_checked_before_location(self, scheduler, booking_data):
        """When both dimensions collide the person conflict is reported"""
        scheduler.create(**booking_data())

        with pytest.raises(ConflictError) as exc_info:
            scheduler.create(**booking_data())

        assert exc_info.value.dimension == "person"

    def test_back_to_back_bookings_allowed(self, scheduler, booking_data):
        """A booking ending when another starts does not conflict"""
        scheduler.create(**booking_data(start_time=time(9, 0), end_time=time(11, 0)))
        second = scheduler.create(**booking_data(start_time=time(11, 0), end_time=time(12, 0)))
        third = scheduler.create(**booking_data(start_time=time(8, 0), end_time=time(9, 0)))

        assert second.id is not None
        assert third.id is not None

    def test_other_date_does_not_conflict(self, scheduler, booking_data):
        scheduler.create(**booking_data())
        other = scheduler.create(**booking_data(booking_date=date(2026, 3, 3)))

        assert other.booking_date == date(2026, 3, 3)

    def test_cancelled_booking_does_not_block(self, scheduler, booking_data):
        """Cancelled bookings never participate in conflict detection"""
        first = scheduler.create(**booking_data())
        scheduler.update(first.id, {"status": "cancelled"})

        replacement = scheduler.create(**booking_data())

        assert replacement.id != first.id

    @pytest.mark.parametrize("start,end", [
        (time(11, 0), time(9, 0)),
        (time(9, 0), time(9, 0)),
    ])
    def test_invalid_interval(self, scheduler, booking_data, start, end):
        with pytest.raises(ValidationError) as exc_info:
            scheduler.create(**booking_data(start_time=start, end_time=end))

        assert exc_info.value.field == "end_time"
        assert scheduler.list() == []

    def test_max_students_out_of_range(self, scheduler, booking_data):
        with pytest.raises(ValidationError) as exc_info:
            scheduler.create(**booking_data(max_students=101))

        assert exc_info.value.field == "max_students"

    def test_unknown_person(self, scheduler, booking_data):
        with pytest.raises(ValidationError) as exc_info:
            scheduler.create(**booking_data(person_id=999))

        assert exc_info.value.field == "person_id"
        assert "999" in exc_info.value.message

    def test_unknown_group_creates_nothing(self, scheduler, booking_data):
        """An unknown group rejects the whole create"""
        with pytest.raises(ValidationError) as exc_info:
            scheduler.create(**booking_data(group_ids=[999]))

        assert exc_info.value.field == "group_ids"
        assert scheduler.list() == []

    def test_create_with_groups(self, scheduler, booking_data, seeder):
        """Groups are assigned and the enrollment count computed in the same transaction"""
        group, _ = seeder.group_with_students(count=3)

        booking = scheduler.create(**booking_data(group_ids=[group.id]))

        assert booking.enrolled_count == 3
        assert scheduler.group_ids(booking.id) == [group.id]

    def test_duplicate_group_ids_deduplicated(self, scheduler, booking_data, seeder):
        group_1, _ = seeder.group_with_students(name="G1", count=2)
        group_2, _ = seeder.group_with_students(name="G2", count=1)

        booking = scheduler.create(**booking_data(group_ids=[group_2.id, group_1.id, group_2.id]))

        assert scheduler.group_ids(booking.id) == [group_2.id, group_1.id]
        assert booking.enrolled_count == 3


class TestBulkCreate:
    """Tests for Scheduler.create_bulk"""

    def test_failures_reported_per_item(self, scheduler, booking_data, directory):
        """Later items see earlier ones; a failing item does not affect the others"""
        items = [
            booking_data(),
            booking_data(location_id=directory.location_b, start_time=time(10, 0), end_time=time(12, 0)),
            booking_data(person_id=directory.person_b, location_id=directory.location_b),
        ]

        result = scheduler.create_bulk(items, acted_by="u-17")

        assert len(result.succeeded) == 2
        assert len(result.failed) == 1
        failure = result.failed[0]
        assert failure.index == 1
        assert failure.error == "conflict"
        assert failure.dimension == "person"
        assert failure.existing_booking_id == result.succeeded[0].id

    def test_missing_and_unknown_fields(self, scheduler, booking_data):
        incomplete = booking_data()
        del incomplete["end_time"]
        unknown = booking_data(room="B12")

        result = scheduler.create_bulk([incomplete, unknown, booking_data()])

        assert [f.index for f in result.failed] == [0, 1]
        assert result.failed[0].field == "end_time"
        assert result.failed[1].field == "room"
        assert len(result.succeeded) == 1

    def test_empty_items_rejected(self, scheduler):
        with pytest.raises(ValidationError):
            scheduler.create_bulk([])


class TestUpdateBooking:
    """Tests for Scheduler.update"""

    def test_update_notes(self, scheduler, booking_data):
        booking = scheduler.create(**booking_data())

        updated = scheduler.update(booking.id, {"notes": "Room changed"}, acted_by="u-9")

        assert updated.notes == "Room changed"
        assert updated.updated_by_id == "u-9"
        assert updated.created_by_id is None

    def test_update_does_not_conflict_with_itself(self, scheduler, booking_data):
        booking = scheduler.create(**booking_data())

        updated = scheduler.update(booking.id, {"start_time": time(10, 0), "end_time": time(12, 0)})

        assert updated.start_time == time(10, 0)
        assert updated.end_time == time(12, 0)

    def test_update_into_conflict(self, scheduler, booking_data, directory):
        first = scheduler.create(**booking_data())
        second = scheduler.create(**booking_data(
            location_id=directory.location_b,
            start_time=time(13, 0),
            end_time=time(15, 0),
        ))

        with pytest.raises(ConflictError) as exc_info:
            scheduler.update(second.id, {"start_time": time(10, 0)})

        assert exc_info.value.dimension == "person"
        assert exc_info.value.existing_booking_id == first.id
        assert scheduler.get(second.id).start_time == time(13, 0)

    def test_update_merged_interval_validated(self, scheduler, booking_data):
        booking = scheduler.create(**booking_data())

        with pytest.raises(ValidationError) as exc_info:
            scheduler.update(booking.id, {"end_time": time(8, 0)})

        assert exc_info.value.field == "end_time"

    def test_null_required_field_rejected(self, scheduler, booking_data):
        booking = scheduler.create(**booking_data())

        with pytest.raises(ValidationError) as exc_info:
            scheduler.update(booking.id, {"person_id": None})

        assert exc_info.value.field == "person_id"

    def test_unknown_field_rejected(self, scheduler, booking_data):
        booking = scheduler.create(**booking_data())

        with pytest.raises(ValidationError) as exc_info:
            scheduler.update(booking.id, {"enrolled_count": 40})

        assert exc_info.value.field == "enrolled_count"

    def test_update_missing_booking(self, scheduler):
        with pytest.raises(NotFoundError):
            scheduler.update(999, {"notes": "x"})

    def test_scheduling_fields_frozen_when_cancelled(self, scheduler, booking_data):
        """Scheduling fields change only while the resulting status is scheduled"""
        booking = scheduler.create(**booking_data())
        scheduler.update(booking.id, {"status": "cancelled"})

        with pytest.raises(BookingNotEditableError) as exc_info:
            scheduler.update(booking.id, {"start_time": time(10, 0)})

        assert exc_info.value.reason == "booking_not_editable"

    def test_cancel_with_unchanged_scheduling_values(self, scheduler, booking_data, directory):
        """Re-sending unchanged scheduling values together with a cancel is allowed"""
        booking = scheduler.create(**booking_data())

        updated = scheduler.update(booking.id, {
            "status": "cancelled",
            "person_id": directory.person_a,
            "notes": "Instructor ill",
        })

        assert updated.status == BookingStatus.CANCELLED
        assert updated.notes == "Instructor ill"

    def test_complete_and_move_rejected(self, scheduler, booking_data):
        booking = scheduler.create(**booking_data())

        with pytest.raises(BookingNotEditableError):
            scheduler.update(booking.id, {"status": "completed", "start_time": time(10, 0)})

        assert scheduler.get(booking.id).status == BookingStatus.SCHEDULED

    def test_reviving_cancelled_booking_rechecks_conflicts(self, scheduler, booking_data):
        cancelled = scheduler.create(**booking_data())
        scheduler.update(cancelled.id, {"status": "cancelled"})
        taken = scheduler.create(**booking_data())

        with pytest.raises(ConflictError) as exc_info:
            scheduler.update(cancelled.id, {"status": "scheduled"})

        assert exc_info.value.existing_booking_id == taken.id
        assert scheduler.get(cancelled.id).status == BookingStatus.CANCELLED

    def test_group_ids_omitted_leaves_assignments(self, scheduler, booking_data, seeder):
        group, _ = seeder.group_with_students(count=2)
        booking = scheduler.create(**booking_data(group_ids=[group.id]))

        scheduler.update(booking.id, {"notes": "x", "group_ids": None})

        assert scheduler.group_ids(booking.id) == [group.id]
        assert scheduler.get(booking.id).enrolled_count == 2

    def test_group_ids_empty_list_clears(self, scheduler, booking_data, seeder):
        group, _ = seeder.group_with_students(count=2)
        booking = scheduler.create(**booking_data(group_ids=[group.id]))

        updated = scheduler.update(booking.id, {"group_ids": []})

        assert scheduler.group_ids(booking.id) == []
        assert updated.enrolled_count == 0

    def test_person_change_notifies_both(self, scheduler, booking_data, notifier, directory):
        booking = scheduler.create(**booking_data())
        notifier.sent.clear()

        scheduler.update(booking.id, {"person_id": directory.person_b})

        titles = [(n["person_id"], n["title"]) for n in notifier.sent]
        assert titles == [
            (directory.person_a, "Booking reassigned"),
            (directory.person_b, "Booking updated"),
        ]

    def test_cancel_notifies_with_warning(self, scheduler, booking_data, notifier):
        booking = scheduler.create(**booking_data())
        notifier.sent.clear()

        scheduler.update(booking.id, {"status": "cancelled"})

        assert len(notifier.sent) == 1
        assert notifier.sent[0]["title"] == "Booking cancelled"
        assert notifier.sent[0]["category"] == "warning"

    def test_notes_change_sends_nothing(self, scheduler, booking_data, notifier):
        booking = scheduler.create(**booking_data())
        notifier.sent.clear()

        scheduler.update(booking.id, {"notes": "Quiet please"})

        assert notifier.sent == []


class TestDeleteBooking:
    """Tests for Scheduler.delete"""

    def test_delete_removes_booking_and_assignments(self, scheduler, booking_data, seeder, uow):
        group, _ = seeder.group_with_students(count=2)
        booking = scheduler.create(**booking_data(group_ids=[group.id]))

        scheduler.delete(booking.id)

        with pytest.raises(NotFoundError):
            scheduler.get(booking.id)
        with uow:
            assert uow.group_assignments.list_for_booking(booking.id, active_only=False) == []

    def test_delete_with_attendance_refused(self, scheduler, booking_data, seeder, roster, uow):
        """Deletion is refused and nothing changes once attendance exists"""
        group, _ = seeder.group_with_students(count=3)
        booking = scheduler.create(**booking_data(group_ids=[group.id]))
        roster.initialize(booking.id)

        with pytest.raises(BookingHasAttendanceError) as exc_info:
            scheduler.delete(booking.id)

        assert exc_info.value.reason == "has_attendance"
        assert scheduler.get(booking.id).id == booking.id
        assert scheduler.group_ids(booking.id) == [group.id]
        with uow:
            assert uow.attendance.count_for_booking(booking.id) == 3

    def test_delete_missing_booking(self, scheduler):
        with pytest.raises(NotFoundError):
            scheduler.delete(999)

    def test_delete_notifies_person(self, scheduler, booking_data, notifier, directory):
        booking = scheduler.create(**booking_data())
        notifier.sent.clear()

        scheduler.delete(booking.id)

        assert notifier.sent[0]["title"] == "Booking removed"
        assert notifier.sent[0]["person_id"] == directory.person_a


class TestListBookings:
    """Tests for Scheduler.list"""

    def test_ordered_by_date_and_start(self, scheduler, booking_data, directory):
        late = scheduler.create(**booking_data(booking_date=date(2026, 3, 3)))
        afternoon = scheduler.create(**booking_data(start_time=time(14, 0), end_time=time(15, 0)))
        morning = scheduler.create(**booking_data())

        assert [b.id for b in scheduler.list()] == [morning.id, afternoon.id, late.id]

    def test_filters(self, scheduler, booking_data, directory):
        scheduler.create(**booking_data())
        other = scheduler.create(**booking_data(
            person_id=directory.person_b,
            location_id=directory.location_b,
        ))
        later = scheduler.create(**booking_data(booking_date=date(2026, 3, 10)))
        scheduler.update(later.id, {"status": "cancelled"})

        by_person = scheduler.list(BookingFilter(person_id=directory.person_b))
        assert [b.id for b in by_person] == [other.id]

        by_status = scheduler.list(BookingFilter(status=BookingStatus.CANCELLED))
        assert [b.id for b in by_status] == [later.id]

        by_range = scheduler.list(BookingFilter(date_from=date(2026, 3, 5)))
        assert [b.id for b in by_range] == [later.id]

    def test_limit_and_offset(self, scheduler, booking_data):
        created = [
            scheduler.create(**booking_data(start_time=time(h, 0), end_time=time(h + 1, 0)))
            for h in (8, 9, 10)
        ]

        page = scheduler.list(BookingFilter(limit=1, offset=1))

        assert [b.id for b in page] == [created[1].id]

    def test_inverted_date_range(self, scheduler):
        with pytest.raises(ValidationError):
            scheduler.list(BookingFilter(date_from=date(2026, 3, 5), date_to=date(2026, 3, 1)))


class TestConflictScan:
    """Tests for Scheduler.check_conflicts"""

    def test_reports_each_pair_once_per_dimension(self, scheduler, seeder, directory):
        """Rows inserted around the scheduler (e.g. legacy data) are reported"""
        common = dict(
            course_id=directory.course_id,
            activity_type_id=directory.activity_type_id,
            booking_date=date(2026, 3, 2),
        )
        a = seeder.booking(person_id=directory.person_a, location_id=directory.location_a,
                           start_time=time(9, 0), end_time=time(11, 0), **common)
        b = seeder.booking(person_id=directory.person_a, location_id=directory.location_a,
                           start_time=time(10, 0), end_time=time(12, 0), **common)
        seeder.booking(person_id=directory.person_b, location_id=directory.location_b,
                       start_time=time(11, 0), end_time=time(12, 0), **common)

        report = scheduler.check_conflicts()

        assert report.summary.total == 2
        assert report.summary.person == 1
        assert report.summary.location == 1
        for entry in report.conflicts:
            assert entry.booking_a.id == a.id
            assert entry.booking_b.id == b.id
        assert report.conflicts[0].detail == "Same location on 2026-03-02: 09:00-11:00 vs 10:00-12:00"

    def test_cancelled_bookings_ignored(self, scheduler, seeder, directory):
        common = dict(
            course_id=directory.course_id,
            activity_type_id=directory.activity_type_id,
            person_id=directory.person_a,
            location_id=directory.location_a,
            booking_date=date(2026, 3, 2),
            start_time=time(9, 0),
            end_time=time(11, 0),
        )
        seeder.booking(**common)
        seeder.booking(status=BookingStatus.CANCELLED, **common)

        assert scheduler.check_conflicts().summary.total == 0

    def test_date_bounds(self, scheduler, seeder, directory):
        common = dict(
            course_id=directory.course_id,
            activity_type_id=directory.activity_type_id,
            person_id=directory.person_a,
            location_id=directory.location_a,
            booking_date=date(2026, 3, 2),
            start_time=time(9, 0),
            end_time=time(11, 0),
        )
        seeder.booking(**common)
        seeder.booking(**common)

        assert scheduler.check_conflicts(date(2026, 3, 3), None).summary.total == 0
        assert scheduler.check_conflicts(date(2026, 3, 1), date(2026, 3, 2)).summary.total == 2

        with pytest.raises(ValidationError):
            scheduler.check_conflicts(date(2026, 3, 5), date(2026, 3, 1))


class TestNotificationFailure:
    """A failing dispatcher never undoes a committed change"""

    def test_booking_kept_when_notification_fails(self, scheduler, booking_data, notifier, mocker):
        mocker.patch.object(notifier, "send", side_effect=RuntimeError("mail server down"))

        booking = scheduler.create(**booking_data())

        assert scheduler.get(booking.id).status == BookingStatus.SCHEDULED
        notifier.send.assert_called_once()

    def test_no_notifier(self, uow, booking_data):
        from backend.src.services.scheduler import Scheduler

        booking = Scheduler(uow, notifier=None).create(**booking_data())

        assert booking.id is not None


class TestScenario:
    """End-to-end scheduling and roster scenario"""

    def test_bookings_groups_and_roster(self, scheduler, group_manager, roster, seeder, directory, uow):
        from backend.src.services.exceptions import RosterAlreadyInitializedError

        day = date(2024, 1, 10)
        person_5 = directory.person_a
        person_7 = directory.person_b
        location_10 = directory.location_a
        location_99 = directory.location_b
        base = dict(course_id=directory.course_id, activity_type_id=directory.activity_type_id)

        s1 = scheduler.create(person_id=person_5, location_id=location_10, booking_date=day,
                              start_time=time(9, 0), end_time=time(11, 0), **base)

        with pytest.raises(ConflictError) as exc_info:
            scheduler.create(person_id=person_5, location_id=location_99, booking_date=day,
                             start_time=time(10, 0), end_time=time(12, 0), **base)
        assert exc_info.value.dimension == "person"
        assert exc_info.value.existing_booking_id == s1.id

        s3 = scheduler.create(person_id=person_7, location_id=location_10, booking_date=day,
                              start_time=time(11, 0), end_time=time(12, 0), **base)
        assert s3.id != s1.id

        g1, _ = seeder.group_with_students(name="G1", count=3)
        group_manager.assign(s1.id, [g1.id])

        summary = roster.initialize(s1.id)
        assert summary.total_students == 3
        assert all(r.status == AttendanceStatus.ABSENT for r in summary.records)

        with pytest.raises(RosterAlreadyInitializedError):
            roster.initialize(s1.id)
        with uow:
            assert uow.attendance.count_for_booking(s1.id) == 3
