"""Create scheduling core tables

Revision ID: 001_scheduling_core
Revises:
Create Date: 2026-03-01

Creates:
- Directory tables: courses, activity_types, persons, locations,
  student_groups, students
- bookings table with interval/capacity checks and slot indexes
- booking_groups table (group assignments, unique per booking/group)
- attendance_records table (unique per booking/student)
- notifications table
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '001_scheduling_core'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    """Create directory, booking, assignment, attendance and notification tables."""

    # Directory tables
    op.create_table(
        'courses',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('code', sa.String(length=50), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('code'),
    )

    op.create_table(
        'activity_types',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name'),
    )

    op.create_table(
        'persons',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )

    op.create_table(
        'locations',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('capacity', sa.Integer(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )

    op.create_table(
        'student_groups',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('course_id', sa.Integer(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.ForeignKeyConstraint(['course_id'], ['courses.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_student_groups_course_id', 'student_groups', ['course_id'])

    op.create_table(
        'students',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('group_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.ForeignKeyConstraint(['group_id'], ['student_groups.id'], ondelete='RESTRICT'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_students_group_id', 'students', ['group_id'])

    # Bookings
    op.create_table(
        'bookings',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('course_id', sa.Integer(), nullable=False),
        sa.Column('activity_type_id', sa.Integer(), nullable=False),
        sa.Column('person_id', sa.Integer(), nullable=False),
        sa.Column('location_id', sa.Integer(), nullable=False),
        sa.Column('booking_date', sa.Date(), nullable=False),
        sa.Column('start_time', sa.Time(), nullable=False),
        sa.Column('end_time', sa.Time(), nullable=False),
        sa.Column('max_students', sa.Integer(), nullable=True),
        sa.Column('enrolled_count', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_by_id', sa.String(length=100), nullable=True),
        sa.Column('updated_by_id', sa.String(length=100), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['course_id'], ['courses.id'], ondelete='RESTRICT'),
        sa.ForeignKeyConstraint(['activity_type_id'], ['activity_types.id'], ondelete='RESTRICT'),
        sa.ForeignKeyConstraint(['person_id'], ['persons.id'], ondelete='RESTRICT'),
        sa.ForeignKeyConstraint(['location_id'], ['locations.id'], ondelete='RESTRICT'),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('start_time < end_time', name='ck_bookings_time_order'),
        sa.CheckConstraint(
            'max_students IS NULL OR (max_students >= 1 AND max_students <= 100)',
            name='ck_bookings_max_students'
        ),
        sa.CheckConstraint('enrolled_count >= 0', name='ck_bookings_enrolled_count'),
    )
    op.create_index('ix_bookings_course_id', 'bookings', ['course_id'])
    op.create_index('ix_bookings_status', 'bookings', ['status'])
    op.create_index('idx_bookings_person_date', 'bookings', ['person_id', 'booking_date'])
    op.create_index('idx_bookings_location_date', 'bookings', ['location_id', 'booking_date'])
    op.create_index('idx_bookings_date_start', 'bookings', ['booking_date', 'start_time'])

    # Group assignments
    op.create_table(
        'booking_groups',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('booking_id', sa.Integer(), nullable=False),
        sa.Column('group_id', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('assigned_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['booking_id'], ['bookings.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['group_id'], ['student_groups.id'], ondelete='RESTRICT'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('booking_id', 'group_id', name='uq_booking_groups_booking_group'),
    )
    op.create_index('ix_booking_groups_booking_id', 'booking_groups', ['booking_id'])
    op.create_index('ix_booking_groups_group_id', 'booking_groups', ['group_id'])

    # Attendance records
    op.create_table(
        'attendance_records',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('booking_id', sa.Integer(), nullable=False),
        sa.Column('student_id', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('check_in_time', sa.Time(), nullable=True),
        sa.Column('check_out_time', sa.Time(), nullable=True),
        sa.Column('score', sa.Float(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('recorded_by_id', sa.String(length=100), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['booking_id'], ['bookings.id'], ondelete='RESTRICT'),
        sa.ForeignKeyConstraint(['student_id'], ['students.id'], ondelete='RESTRICT'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('booking_id', 'student_id', name='uq_attendance_booking_student'),
        sa.CheckConstraint(
            'score IS NULL OR (score >= 0 AND score <= 100)',
            name='ck_attendance_score_range'
        ),
    )
    op.create_index('ix_attendance_records_student_id', 'attendance_records', ['student_id'])
    op.create_index('idx_attendance_booking', 'attendance_records', ['booking_id'])

    # Notifications
    op.create_table(
        'notifications',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('person_id', sa.Integer(), nullable=False),
        sa.Column('title', sa.String(length=200), nullable=False),
        sa.Column('message', sa.String(length=500), nullable=False),
        sa.Column('category', sa.String(length=20), nullable=False),
        sa.Column('booking_id', sa.Integer(), nullable=True),
        sa.Column('is_read', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['person_id'], ['persons.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_notifications_created_at', 'notifications', ['created_at'])
    op.create_index('ix_notifications_person_unread', 'notifications', ['person_id', 'is_read'])


def downgrade() -> None:
    """Drop all scheduling tables in reverse dependency order."""
    op.drop_index('ix_notifications_person_unread', table_name='notifications')
    op.drop_index('ix_notifications_created_at', table_name='notifications')
    op.drop_table('notifications')

    op.drop_index('idx_attendance_booking', table_name='attendance_records')
    op.drop_index('ix_attendance_records_student_id', table_name='attendance_records')
    op.drop_table('attendance_records')

    op.drop_index('ix_booking_groups_group_id', table_name='booking_groups')
    op.drop_index('ix_booking_groups_booking_id', table_name='booking_groups')
    op.drop_table('booking_groups')

    op.drop_index('idx_bookings_date_start', table_name='bookings')
    op.drop_index('idx_bookings_location_date', table_name='bookings')
    op.drop_index('idx_bookings_person_date', table_name='bookings')
    op.drop_index('ix_bookings_status', table_name='bookings')
    op.drop_index('ix_bookings_course_id', table_name='bookings')
    op.drop_table('bookings')

    op.drop_index('ix_students_group_id', table_name='students')
    op.drop_table('students')
    op.drop_index('ix_student_groups_course_id', table_name='student_groups')
    op.drop_table('student_groups')
    op.drop_table('locations')
    op.drop_table('persons')
    op.drop_table('activity_types')
    op.drop_table('courses')
