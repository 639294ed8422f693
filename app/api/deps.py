from fastapi import Depends, Request
from sqlalchemy.orm import Session

from app.core.audit import AuditSink, DbAuditSink
from app.core.notifications import DbNotifier, Notifier
from app.core.security import get_current_user
from app.db.session import get_db
from app.models.user import User
from app.services.context import OperationContext


def get_audit_sink(db: Session = Depends(get_db)) -> AuditSink:
    return DbAuditSink(db)


def get_notifier(db: Session = Depends(get_db)) -> Notifier:
    return DbNotifier(db)


def client_ip(request: Request) -> str | None:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


def get_context(
    request: Request,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    audit: AuditSink = Depends(get_audit_sink),
    notifier: Notifier = Depends(get_notifier),
) -> OperationContext:
    """One request, one transaction, one actor."""
    return OperationContext(
        db=db,
        actor=user,
        audit=audit,
        notifier=notifier,
        ip_address=client_ip(request),
    )
