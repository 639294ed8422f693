from typing import Any, Protocol
import uuid

from sqlalchemy.orm import Session

from app.models.audit_event import AuditEvent


class AuditSink(Protocol):
    def record(
        self,
        *,
        user_id: uuid.UUID | None,
        action: str,
        details: dict[str, Any] | None = None,
        entity_type: str | None = None,
        entity_id: uuid.UUID | None = None,
        ip_address: str | None = None,
    ) -> None: ...


class DbAuditSink:
    """
    Appends audit rows to the caller's session, so the record commits or
    rolls back together with the mutation it describes.
    """

    def __init__(self, db: Session):
        self.db = db

    def record(
        self,
        *,
        user_id: uuid.UUID | None,
        action: str,
        details: dict[str, Any] | None = None,
        entity_type: str | None = None,
        entity_id: uuid.UUID | None = None,
        ip_address: str | None = None,
    ) -> None:
        self.db.add(
            AuditEvent(
                user_id=user_id,
                action=action,
                entity_type=entity_type,
                entity_id=entity_id,
                details=details,
                ip_address=ip_address,
            )
        )
