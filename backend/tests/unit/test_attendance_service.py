"""
Tests for AttendanceBulkUpdater: partial updates, validation and the
best-effort bulk policy.
"""

import pytest
from datetime import time

from backend.src.models import AttendanceStatus
from backend.src.services.exceptions import NotFoundError, ValidationError


@pytest.fixture
def roster_records(scheduler, roster, booking_data, seeder):
    """A booking with an initialized roster of three students."""
    group, _ = seeder.group_with_students(count=3)
    booking = scheduler.create(**booking_data(group_ids=[group.id]))
    summary = roster.initialize(booking.id)
    return booking, summary.records


class TestUpdateOne:
    """Tests for AttendanceBulkUpdater.update_one"""

    def test_partial_update(self, attendance_updater, roster_records):
        _, records = roster_records

        record = attendance_updater.update_one(
            records[0].id,
            {"status": "present", "check_in_time": time(9, 2)},
            acted_by="u-5",
        )

        assert record.status == AttendanceStatus.PRESENT
        assert record.check_in_time == time(9, 2)
        assert record.check_out_time is None
        assert record.recorded_by_id == "u-5"

    def test_explicit_null_clears_field(self, attendance_updater, roster_records):
        _, records = roster_records
        attendance_updater.update_one(records[0].id, {"score": 75.0, "notes": "Good"})

        record = attendance_updater.update_one(records[0].id, {"score": None})

        assert record.score is None
        assert record.notes == "Good"

    def test_null_status_rejected(self, attendance_updater, roster_records):
        _, records = roster_records

        with pytest.raises(ValidationError) as exc_info:
            attendance_updater.update_one(records[0].id, {"status": None})

        assert exc_info.value.field == "status"

    @pytest.mark.parametrize("score", [-1, 100.5])
    def test_score_out_of_range(self, attendance_updater, roster_records, score):
        _, records = roster_records

        with pytest.raises(ValidationError) as exc_info:
            attendance_updater.update_one(records[0].id, {"score": score})

        assert exc_info.value.field == "score"

    def test_check_out_before_check_in(self, attendance_updater, roster_records):
        _, records = roster_records
        attendance_updater.update_one(records[0].id, {"check_in_time": time(10, 0)})

        with pytest.raises(ValidationError) as exc_info:
            attendance_updater.update_one(records[0].id, {"check_out_time": time(9, 0)})

        assert exc_info.value.field == "check_out_time"

    def test_time_strings_are_parsed(self, attendance_updater, roster_records):
        _, records = roster_records

        record = attendance_updater.update_one(
            records[0].id, {"check_in_time": "09:05:00", "score": "82.5"}
        )

        assert record.check_in_time == time(9, 5)
        assert record.score == 82.5

    @pytest.mark.parametrize("field,value", [
        ("score", "high"),
        ("check_in_time", "noon"),
        ("check_out_time", [9, 30]),
        ("notes", 42),
    ])
    def test_wrong_value_type(self, attendance_updater, roster_records, field, value):
        _, records = roster_records

        with pytest.raises(ValidationError) as exc_info:
            attendance_updater.update_one(records[0].id, {field: value})

        assert exc_info.value.field == field

    def test_missing_record(self, attendance_updater):
        with pytest.raises(NotFoundError):
            attendance_updater.update_one(999, {"status": "present"})


class TestUpdateBulk:
    """Tests for AttendanceBulkUpdater.update_bulk"""

    def test_one_invalid_id_among_valid(self, attendance_updater, roster_records):
        """N-1 updates applied, one failure reported"""
        booking, records = roster_records
        items = [{"attendance_id": r.id, "status": "present"} for r in records]
        items.insert(1, {"attendance_id": 999, "status": "present"})

        result = attendance_updater.update_bulk(items)

        assert len(result.succeeded) == 3
        assert len(result.failed) == 1
        assert result.failed[0].attendance_id == 999
        assert result.failed[0].error == "not_found"

        sheet = attendance_updater.list_for_booking(booking.id)
        assert sheet.counts["present"] == 3

    def test_invalid_item_rolled_back_alone(self, attendance_updater, roster_records):
        booking, records = roster_records
        items = [
            {"attendance_id": records[0].id, "status": "late", "score": 80},
            {"attendance_id": records[1].id, "status": "present", "score": 120},
            {"attendance_id": records[2].id, "status": "excused"},
        ]

        result = attendance_updater.update_bulk(items)

        assert [r.id for r in result.succeeded] == [records[0].id, records[2].id]
        assert result.failed[0].attendance_id == records[1].id
        assert result.failed[0].field == "score"

        sheet = attendance_updater.list_for_booking(booking.id)
        assert sheet.counts == {"present": 0, "absent": 1, "late": 1, "excused": 1}

    def test_wrong_value_types_reported_per_item(self, attendance_updater, roster_records):
        booking, records = roster_records
        items = [
            {"attendance_id": records[0].id, "status": "present"},
            {"attendance_id": records[1].id, "score": "high"},
            {"attendance_id": records[2].id, "check_in_time": "noon"},
        ]

        result = attendance_updater.update_bulk(items)

        assert [r.id for r in result.succeeded] == [records[0].id]
        assert [(f.attendance_id, f.error, f.field) for f in result.failed] == [
            (records[1].id, "validation_error", "score"),
            (records[2].id, "validation_error", "check_in_time"),
        ]

        sheet = attendance_updater.list_for_booking(booking.id)
        assert sheet.counts["present"] == 1

    def test_missing_attendance_id(self, attendance_updater, roster_records):
        _, records = roster_records

        result = attendance_updater.update_bulk([
            {"status": "present"},
            {"attendance_id": records[0].id, "status": "present"},
        ])

        assert len(result.succeeded) == 1
        assert result.failed[0].field == "attendance_id"

    def test_empty_items_rejected(self, attendance_updater):
        with pytest.raises(ValidationError):
            attendance_updater.update_bulk([])

    def test_one_notification_per_booking(self, attendance_updater, roster_records, notifier):
        booking, records = roster_records
        notifier.sent.clear()

        attendance_updater.update_bulk([{"attendance_id": r.id, "status": "present"} for r in records])

        assert len(notifier.sent) == 1
        assert notifier.sent[0]["booking_id"] == booking.id
        assert notifier.sent[0]["message"].startswith("3 attendance record(s)")


class TestListForBooking:

    def test_counts_every_status(self, attendance_updater, roster_records):
        booking, records = roster_records

        sheet = attendance_updater.list_for_booking(booking.id)

        assert sheet.total == 3
        assert sheet.counts == {"present": 0, "absent": 3, "late": 0, "excused": 0}
        assert [r.id for r in sheet.records] == [r.id for r in records]

    def test_missing_booking(self, attendance_updater):
        with pytest.raises(NotFoundError):
            attendance_updater.list_for_booking(999)
