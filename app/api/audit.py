import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.core.rbac import require_roles
from app.core.states import Role
from app.db.session import get_db
from app.models.audit_event import AuditEvent
from app.schemas.audit import AuditEventOut

router = APIRouter(prefix="/audit", tags=["audit"])


@router.get("", response_model=list[AuditEventOut])
def list_audit_events(
    action: str | None = Query(default=None),
    entity_type: str | None = Query(default=None),
    entity_id: uuid.UUID | None = Query(default=None),
    user_id: uuid.UUID | None = Query(default=None),
    limit: int = Query(default=50, le=200),
    db: Session = Depends(get_db),
    _=Depends(require_roles(Role.ADMIN)),
):
    q = db.query(AuditEvent)

    if action:
        q = q.filter(AuditEvent.action == action)
    if entity_type:
        q = q.filter(AuditEvent.entity_type == entity_type)
    if entity_id:
        q = q.filter(AuditEvent.entity_id == entity_id)
    if user_id:
        q = q.filter(AuditEvent.user_id == user_id)

    rows = q.order_by(AuditEvent.created_at.desc()).limit(limit).all()

    return [
        AuditEventOut(
            id=str(r.id),
            user_id=str(r.user_id) if r.user_id else None,
            action=r.action,
            entity_type=r.entity_type,
            entity_id=str(r.entity_id) if r.entity_id else None,
            details=r.details,
            ip_address=r.ip_address,
            created_at=r.created_at,
        )
        for r in rows
    ]
