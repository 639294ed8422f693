from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any
import uuid

from sqlalchemy.orm import Session

from app.core.audit import AuditSink
from app.core.notifications import Notifier, dispatch_notification
from app.models.user import User


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class OperationContext:
    """
    Everything one workflow operation needs: the request's session (its
    transaction is the unit of atomicity), the authenticated actor, and the
    two side-effect collaborators.
    """

    db: Session
    actor: User
    audit: AuditSink
    notifier: Notifier
    ip_address: str | None = None

    @property
    def role(self) -> str:
        return self.actor.role

    @property
    def actor_id(self) -> uuid.UUID:
        return self.actor.id

    def record(
        self,
        action: str,
        *,
        entity_type: str | None = None,
        entity_id: uuid.UUID | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.audit.record(
            user_id=self.actor.id,
            action=action,
            details=details,
            entity_type=entity_type,
            entity_id=entity_id,
            ip_address=self.ip_address,
        )

    def notify(self, **kwargs) -> bool:
        return dispatch_notification(self.notifier, **kwargs)
