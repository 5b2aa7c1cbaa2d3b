"""
Notification model for in-app notification history.

Stores notifications recorded for responsible persons when their bookings
are created, changed, cancelled or deleted, or when attendance is recorded.
Delivery channels (push, e-mail) are handled elsewhere; these rows are the
source of truth for what was sent.
"""

import enum
from datetime import datetime

from sqlalchemy import Column, Integer, String, Boolean, DateTime, Enum, ForeignKey, Index

from backend.src.models import Base


class NotificationCategory(str, enum.Enum):
    """Notification severity shown to the recipient."""
    INFO = "info"
    WARNING = "warning"
    SUCCESS = "success"


class Notification(Base):
    """
    Notification sent to a person.

    Attributes:
        person_id: Recipient
        title: Short notification title (max 200 chars)
        message: Notification body text (max 500 chars)
        category: info / warning / success
        booking_id: Related booking; no foreign key so the notification
            survives the booking's deletion
        is_read: Whether the recipient has seen it
        created_at: Creation timestamp
    """

    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, autoincrement=True)
    person_id = Column(
        Integer,
        ForeignKey("persons.id", ondelete="CASCADE"),
        nullable=False
    )
    title = Column(String(200), nullable=False)
    message = Column(String(500), nullable=False)
    category = Column(
        Enum(
            NotificationCategory,
            native_enum=False,
            values_callable=lambda x: [e.value for e in x],
            length=20,
        ),
        default=NotificationCategory.INFO,
        nullable=False
    )
    booking_id = Column(Integer, nullable=True)
    is_read = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    __table_args__ = (
        Index("ix_notifications_person_unread", "person_id", "is_read"),
    )

    def __repr__(self) -> str:
        return f"<Notification(id={self.id}, person_id={self.person_id}, title='{self.title}')>"
