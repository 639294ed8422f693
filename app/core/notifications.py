"""
Notification trigger contract.

Delivery is best-effort: a failed notification is logged and never undoes the
state transition that caused it.
"""
import logging
from typing import Protocol
import uuid

from sqlalchemy.orm import Session

from app.models.notification import Notification

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    def notify(
        self,
        *,
        user_id: uuid.UUID,
        type: str,
        title: str,
        message: str,
        related_entity_id: uuid.UUID | None = None,
        related_entity_type: str | None = None,
        priority: str = "MEDIUM",
    ) -> None: ...


class DbNotifier:
    """Stores an in-app notification; e-mail fan-out happens outside this service."""

    def __init__(self, db: Session):
        self.db = db

    def notify(
        self,
        *,
        user_id: uuid.UUID,
        type: str,
        title: str,
        message: str,
        related_entity_id: uuid.UUID | None = None,
        related_entity_type: str | None = None,
        priority: str = "MEDIUM",
    ) -> None:
        # SAVEPOINT: a failed insert here must not poison the caller's transaction
        with self.db.begin_nested():
            self.db.add(
                Notification(
                    user_id=user_id,
                    type=type,
                    title=title,
                    message=message,
                    related_entity_id=related_entity_id,
                    related_entity_type=related_entity_type,
                    priority=priority,
                )
            )
        logger.info("notification %s queued for user %s", type, user_id)


def dispatch_notification(notifier: Notifier, **kwargs) -> bool:
    """Fire-and-forget wrapper. Returns False when delivery failed."""
    try:
        notifier.notify(**kwargs)
    except Exception:
        logger.exception(
            "failed to send %s notification to user %s",
            kwargs.get("type"),
            kwargs.get("user_id"),
        )
        return False
    return True
