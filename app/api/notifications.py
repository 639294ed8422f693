import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.core.errors import NotFound
from app.core.security import get_current_user
from app.db.session import get_db
from app.models.notification import Notification
from app.models.user import User
from app.schemas.notification import NotificationOut
from app.services.context import utcnow

router = APIRouter(prefix="/notifications", tags=["notifications"])


def notification_to_out(n: Notification) -> NotificationOut:
    return NotificationOut(
        id=str(n.id),
        type=n.type,
        title=n.title,
        message=n.message,
        related_entity_id=str(n.related_entity_id) if n.related_entity_id else None,
        related_entity_type=n.related_entity_type,
        priority=n.priority,
        is_read=n.is_read,
        read_at=n.read_at,
        created_at=n.created_at,
    )


@router.get("", response_model=list[NotificationOut])
def list_notifications(
    unread_only: bool = Query(default=False),
    limit: int = Query(default=50, ge=1, le=200),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    q = db.query(Notification).filter(Notification.user_id == user.id)
    if unread_only:
        q = q.filter(Notification.is_read.is_(False))
    rows = q.order_by(Notification.created_at.desc()).limit(limit).all()
    return [notification_to_out(n) for n in rows]


@router.post("/{notification_id}/read", response_model=NotificationOut)
def mark_read(
    notification_id: uuid.UUID,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    n = db.get(Notification, notification_id)
    # other users' notifications are indistinguishable from missing ones
    if not n or n.user_id != user.id:
        raise NotFound("Notification not found", notification_id=str(notification_id))
    if not n.is_read:
        n.is_read = True
        n.read_at = utcnow()
        db.flush()
    return notification_to_out(n)


@router.post("/read-all")
def mark_all_read(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    updated = (
        db.query(Notification)
        .filter(Notification.user_id == user.id, Notification.is_read.is_(False))
        .update({"is_read": True, "read_at": utcnow()}, synchronize_session="fetch")
    )
    return {"updated": updated}
