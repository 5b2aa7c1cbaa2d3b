"""
Notification dispatch for booking and attendance changes.

Notifications are fire-and-forget side effects: services send them only after
their transaction has committed, and a failing dispatcher is logged without
undoing the committed change.

Dispatchers:
- DatabaseNotificationDispatcher: records a Notification row in its own session
- InMemoryNotificationDispatcher: keeps sent notifications in a list
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import sessionmaker

from backend.src.models import Notification, NotificationCategory
from backend.src.utils.logging_config import get_logger


logger = get_logger("services")


class NotificationDispatcher(ABC):
    """Recipient-facing side effect invoked after a successful commit."""

    @abstractmethod
    def send(
        self,
        person_id: int,
        title: str,
        message: str,
        category: str = NotificationCategory.INFO.value,
        booking_id: Optional[int] = None,
    ) -> None:
        """Send one notification to a person."""


class DatabaseNotificationDispatcher(NotificationDispatcher):
    """
    Records notifications in the notifications table.

    Uses a session of its own so a failure here can never touch the
    caller's transaction.
    """

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def send(
        self,
        person_id: int,
        title: str,
        message: str,
        category: str = NotificationCategory.INFO.value,
        booking_id: Optional[int] = None,
    ) -> None:
        session = self.session_factory()
        try:
            notification = Notification(
                person_id=person_id,
                title=title[:200],
                message=message[:500],
                category=NotificationCategory(category),
                booking_id=booking_id,
            )
            session.add(notification)
            session.commit()
            logger.info(
                "Created notification",
                extra={
                    "notification_id": notification.id,
                    "person_id": person_id,
                    "category": category,
                    "booking_id": booking_id,
                },
            )
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()


class InMemoryNotificationDispatcher(NotificationDispatcher):
    """Collects notifications in memory (tests, tooling)."""

    def __init__(self):
        self.sent: List[Dict[str, Any]] = []

    def send(
        self,
        person_id: int,
        title: str,
        message: str,
        category: str = NotificationCategory.INFO.value,
        booking_id: Optional[int] = None,
    ) -> None:
        self.sent.append({
            "person_id": person_id,
            "title": title,
            "message": message,
            "category": category,
            "booking_id": booking_id,
        })


def notify_safely(
    notifier: Optional[NotificationDispatcher],
    person_id: int,
    title: str,
    message: str,
    category: str = NotificationCategory.INFO.value,
    booking_id: Optional[int] = None,
) -> None:
    """
    Send a notification, logging instead of raising on failure.

    Args:
        notifier: Dispatcher to use; None disables notifications
        person_id: Recipient
        title: Short title
        message: Body text
        category: info / warning / success
        booking_id: Related booking
    """
    if notifier is None:
        return
    try:
        notifier.send(
            person_id=person_id,
            title=title,
            message=message,
            category=category,
            booking_id=booking_id,
        )
    except Exception as e:
        # Non-blocking: the change is already committed
        logger.error(
            f"Failed to send notification: {e}",
            extra={"person_id": person_id, "booking_id": booking_id, "title": title},
            exc_info=True,
        )
