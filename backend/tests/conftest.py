"""
Pytest configuration and fixtures for backend tests.

Provides shared fixtures for:
- Test database sessions (in-memory SQLite, foreign keys on)
- Unit of work parametrized over the in-memory and SQL backends
- Directory seeding factories (courses, persons, locations, groups, students)
- Services wired to an in-memory notification dispatcher
- FastAPI test client with dependency overrides
"""

import os
from datetime import date, time
from types import SimpleNamespace

import pytest
from sqlalchemy.orm import sessionmaker

# Set test environment variables before importing app modules
os.environ['PRACTICUM_DB_URL'] = 'sqlite:///:memory:'
os.environ['PRACTICUM_ENV'] = 'test'

from backend.src.db.database import create_db_engine
from backend.src.models import (
    ActivityType,
    Base,
    Booking,
    BookingStatus,
    Course,
    Group,
    Location,
    Person,
    Student,
    StudentStatus,
)
from backend.src.repositories import InMemoryUnitOfWork, MemoryStore, SqlUnitOfWork
from backend.src.services.attendance_service import AttendanceBulkUpdater
from backend.src.services.group_assignment_service import GroupAssignmentManager
from backend.src.services.notification_service import InMemoryNotificationDispatcher
from backend.src.services.roster_service import RosterInitializer
from backend.src.services.scheduler import Scheduler


# ============================================================================
# Database Fixtures
# ============================================================================

@pytest.fixture(scope='function')
def test_db_engine():
    """Create an in-memory SQLite database engine for testing."""
    engine = create_db_engine('sqlite:///:memory:')
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture(scope='function')
def test_session_factory(test_db_engine):
    """Session factory bound to the test engine."""
    return sessionmaker(autocommit=False, autoflush=False, bind=test_db_engine)


@pytest.fixture(scope='function')
def test_db_session(test_session_factory):
    """Create a test database session."""
    session = test_session_factory()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


# ============================================================================
# Storage Backends
# ============================================================================

@pytest.fixture(params=['memory', 'sql'])
def storage(request):
    """
    Unit of work plus a raw insert function, for each storage backend.

    The SQL backend shares one session between the unit of work and the
    seeding helper, the way a request shares its session.
    """
    if request.param == 'memory':
        store = MemoryStore()
        return SimpleNamespace(
            name='memory',
            uow=InMemoryUnitOfWork(store),
            insert=store.seed,
        )

    session = request.getfixturevalue('test_db_session')

    def insert(instance):
        session.add(instance)
        session.commit()
        return instance

    return SimpleNamespace(name='sql', uow=SqlUnitOfWork(session), insert=insert)


@pytest.fixture
def uow(storage):
    """Unit of work for the current backend."""
    return storage.uow


class DirectorySeeder:
    """Creates directory rows (and raw bookings) through a backend's insert function."""

    def __init__(self, insert):
        self._insert = insert
        self._counter = 0

    def _next(self):
        self._counter += 1
        return self._counter

    def course(self, name='Clinical Practice'):
        n = self._next()
        return self._insert(Course(code=f'CP-{n:03d}', name=name))

    def activity_type(self, name=None):
        return self._insert(ActivityType(name=name or f'Lab session {self._next()}'))

    def person(self, name='Dr. Rivera'):
        return self._insert(Person(name=name, email=f'staff{self._next()}@example.edu'))

    def location(self, name='Lab A', capacity=30):
        return self._insert(Location(name=name, capacity=capacity))

    def group(self, name='G1', course_id=None, is_active=True):
        return self._insert(Group(name=name, course_id=course_id, is_active=is_active))

    def student(self, group_id, name=None, status=StudentStatus.ACTIVE):
        return self._insert(Student(
            group_id=group_id,
            name=name or f'Student {self._next()}',
            status=status,
        ))

    def group_with_students(self, name='G1', count=3, course_id=None):
        group = self.group(name=name, course_id=course_id)
        students = [self.student(group.id) for _ in range(count)]
        return group, students

    def booking(self, **overrides):
        """Insert a booking directly, bypassing conflict checks."""
        values = {
            'status': BookingStatus.SCHEDULED,
            'enrolled_count': 0,
        }
        values.update(overrides)
        return self._insert(Booking(**values))


@pytest.fixture
def seeder(storage):
    """Directory seeding factory for the current backend."""
    return DirectorySeeder(storage.insert)


@pytest.fixture
def directory(seeder):
    """
    A small directory: one course, one activity type, two persons and two
    locations (ids resolved through attribute access).
    """
    course = seeder.course()
    activity = seeder.activity_type()
    person_a = seeder.person(name='Dr. Rivera')
    person_b = seeder.person(name='Dr. Okafor')
    location_a = seeder.location(name='Lab A')
    location_b = seeder.location(name='Lab B')
    return SimpleNamespace(
        course_id=course.id,
        activity_type_id=activity.id,
        person_a=person_a.id,
        person_b=person_b.id,
        location_a=location_a.id,
        location_b=location_b.id,
    )


@pytest.fixture
def booking_data(directory):
    """Factory for create() keyword arguments on 2026-03-02."""
    def _create(**overrides):
        data = {
            'course_id': directory.course_id,
            'activity_type_id': directory.activity_type_id,
            'person_id': directory.person_a,
            'location_id': directory.location_a,
            'booking_date': date(2026, 3, 2),
            'start_time': time(9, 0),
            'end_time': time(11, 0),
        }
        data.update(overrides)
        return data
    return _create


# ============================================================================
# Service Fixtures
# ============================================================================

@pytest.fixture
def notifier():
    """Notification dispatcher that records what was sent."""
    return InMemoryNotificationDispatcher()


@pytest.fixture
def scheduler(uow, notifier):
    return Scheduler(uow, notifier)


@pytest.fixture
def group_manager(uow):
    return GroupAssignmentManager(uow)


@pytest.fixture
def roster(uow, notifier):
    return RosterInitializer(uow, notifier)


@pytest.fixture
def attendance_updater(uow, notifier):
    return AttendanceBulkUpdater(uow, notifier)


# ============================================================================
# API Fixtures
# ============================================================================

@pytest.fixture
def api_seeder(test_db_session):
    """Directory seeding factory writing to the API test session."""
    def insert(instance):
        test_db_session.add(instance)
        test_db_session.commit()
        return instance
    return DirectorySeeder(insert)


@pytest.fixture
def api_notifier():
    return InMemoryNotificationDispatcher()


@pytest.fixture
def test_client(test_db_session, api_notifier):
    """Create a test client for FastAPI application."""
    from fastapi.testclient import TestClient
    from backend.src.main import app

    # Override dependencies
    def get_test_db():
        try:
            yield test_db_session
        finally:
            pass

    def get_test_notifier():
        return api_notifier

    from backend.src.api.dependencies import get_notifier
    from backend.src.db.database import get_db

    app.dependency_overrides[get_db] = get_test_db
    app.dependency_overrides[get_notifier] = get_test_notifier

    with TestClient(app) as client:
        yield client

    # Clear overrides
    app.dependency_overrides.clear()
