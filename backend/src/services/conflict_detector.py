"""
Booking conflict detection.

Two bookings conflict when they share a date and a resource (the responsible
person or the location) and their half-open intervals [start, end) overlap.
Cancelled bookings never take part. Back-to-back bookings, where one ends
exactly when the other starts, do not conflict.
"""

from datetime import date, time
from typing import Dict, List, Optional, Tuple

from backend.src.models import Booking
from backend.src.repositories.base import BookingRepository
from backend.src.schemas.conflict import ConflictDimension, ConflictEntry, ConflictingBooking


DIMENSIONS = (ConflictDimension.PERSON.value, ConflictDimension.LOCATION.value)


def intervals_overlap(start_a: time, end_a: time, start_b: time, end_b: time) -> bool:
    """Check if [start_a, end_a) and [start_b, end_b) overlap."""
    return start_a < end_b and start_b < end_a


def _overlap_detail(dimension: str, a: Booking, b: Booking) -> str:
    date_str = a.booking_date.isoformat()
    a_range = f"{a.start_time.strftime('%H:%M')}-{a.end_time.strftime('%H:%M')}"
    b_range = f"{b.start_time.strftime('%H:%M')}-{b.end_time.strftime('%H:%M')}"
    return f"Same {dimension} on {date_str}: {a_range} vs {b_range}"


class ConflictDetector:
    """
    Overlap testing for one resource dimension at a time.

    Usage:
        >>> detector = ConflictDetector(uow.bookings)
        >>> detector.has_conflict(3, "person", date(2026, 3, 2), time(9), time(11))
        False
    """

    def __init__(self, bookings: BookingRepository):
        self.bookings = bookings

    def find_conflict(
        self,
        resource_id: int,
        dimension: str,
        booking_date: date,
        start_time: time,
        end_time: time,
        exclude_booking_id: Optional[int] = None,
    ) -> Optional[Booking]:
        """
        Find the earliest active booking colliding with the given slot.

        Args:
            resource_id: Person or location id
            dimension: "person" or "location"
            booking_date: Calendar date
            start_time: Interval start (inclusive)
            end_time: Interval end (exclusive)
            exclude_booking_id: Booking to ignore (the one being updated)

        Returns:
            The colliding booking with the earliest start, or None
        """
        if dimension not in DIMENSIONS:
            raise ValueError(f"Unknown conflict dimension: {dimension}")

        candidates = self.bookings.find_active_on(
            dimension, resource_id, booking_date, exclude_booking_id=exclude_booking_id
        )
        for existing in candidates:
            if intervals_overlap(start_time, end_time, existing.start_time, existing.end_time):
                return existing
        return None

    def has_conflict(
        self,
        resource_id: int,
        dimension: str,
        booking_date: date,
        start_time: time,
        end_time: time,
        exclude_booking_id: Optional[int] = None,
    ) -> bool:
        """Check if the slot collides with an active booking of the resource."""
        return self.find_conflict(
            resource_id, dimension, booking_date, start_time, end_time,
            exclude_booking_id=exclude_booking_id,
        ) is not None

    @staticmethod
    def scan(bookings: List[Booking]) -> List[ConflictEntry]:
        """
        Find every colliding pair among active bookings.

        Each pair is reported once per dimension, lower booking id first.
        Entries are ordered by date, dimension, resource and booking ids.
        """
        entries: List[ConflictEntry] = []
        for dimension in DIMENSIONS:
            # Group by (date, resource) so only same-day same-resource pairs are compared
            buckets: Dict[Tuple[date, int], List[Booking]] = {}
            for booking in bookings:
                if not booking.is_active:
                    continue
                key = (booking.booking_date, booking.resource_id(dimension))
                buckets.setdefault(key, []).append(booking)

            for (booking_date, resource_id), day_bookings in buckets.items():
                day_bookings = sorted(day_bookings, key=lambda b: b.id)
                for i in range(len(day_bookings)):
                    for j in range(i + 1, len(day_bookings)):
                        a, b = day_bookings[i], day_bookings[j]
                        if intervals_overlap(a.start_time, a.end_time, b.start_time, b.end_time):
                            entries.append(ConflictEntry(
                                dimension=ConflictDimension(dimension),
                                resource_id=resource_id,
                                booking_date=booking_date,
                                booking_a=ConflictingBooking.model_validate(a),
                                booking_b=ConflictingBooking.model_validate(b),
                                detail=_overlap_detail(dimension, a, b),
                            ))

        entries.sort(key=lambda e: (
            e.booking_date, e.dimension.value, e.resource_id, e.booking_a.id, e.booking_b.id
        ))
        return entries
