"""
Storage layer for the scheduling core.

Exports the repository / unit-of-work interfaces and both backends.
"""

from backend.src.repositories.base import (
    AttendanceRepository,
    BookingRepository,
    DirectoryReader,
    DuplicateRecordError,
    GroupAssignmentRepository,
    RepositoryError,
    SlotKey,
    UnitOfWork,
)
from backend.src.repositories.memory import InMemoryUnitOfWork, MemoryStore
from backend.src.repositories.sql import SqlUnitOfWork, advisory_lock_key, ordered_slot_keys

__all__ = [
    "AttendanceRepository",
    "BookingRepository",
    "DirectoryReader",
    "DuplicateRecordError",
    "GroupAssignmentRepository",
    "RepositoryError",
    "SlotKey",
    "UnitOfWork",
    "InMemoryUnitOfWork",
    "MemoryStore",
    "SqlUnitOfWork",
    "advisory_lock_key",
    "ordered_slot_keys",
]
