r"""
Placement lifecycle state machine.

    DRAFT -> PENDING -> APPROVED_PENDING_CHECKLIST -> ACTIVE -> ARCHIVED
                    \-> DECLINED

Every public function is one atomic operation on the caller's session: the
placement row is read with a row lock, the transition is validated against
PLACEMENT_TRANSITIONS, the new state and its audit record are written, and
the notification is dispatched best-effort. Commit/rollback belongs to the
session owner (``get_db`` for HTTP requests).
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date
import logging
import uuid

from sqlalchemy.orm import Session

from app.core import access
from app.core.errors import NotFound, PreconditionFailed
from app.core.states import (
    OCCUPYING_STATUSES,
    PLACEMENT_TRANSITIONS,
    DocumentKind,
    PlacementStatus,
    Role,
    TERMINAL_PLACEMENT_STATUSES,
    next_status,
)
from app.models.placement import Placement
from app.models.site import Site
from app.models.user import User
from app.services.context import OperationContext, utcnow
from app.services.hours import approved_hours, fmt_hours, local_today

logger = logging.getLogger(__name__)


def _lock_placement_or_404(db: Session, placement_id) -> Placement:
    p = (
        db.query(Placement)
        .filter(Placement.id == placement_id)
        .with_for_update()
        .one_or_none()
    )
    if not p:
        raise NotFound("Placement not found", placement_id=str(placement_id))
    return p


def _transition(p: Placement, action: str) -> PlacementStatus:
    return next_status(PLACEMENT_TRANSITIONS, PlacementStatus, action, p.status)


def _site_name(p: Placement) -> str:
    return p.site.name if p.site else "your site"


def _get_user_with_role_or_404(db: Session, user_id, role: Role, label: str) -> User:
    u = db.get(User, user_id)
    if not u or u.role != role.value:
        raise NotFound(f"{label} not found", **{f"{label.lower()}_id": str(user_id)})
    return u


# --- reads --------------------------------------------------------------------

def get_placement(ctx: OperationContext, placement_id) -> Placement:
    p = ctx.db.get(Placement, placement_id)
    if not p:
        raise NotFound("Placement not found", placement_id=str(placement_id))
    access.require(
        access.can_view_placement(ctx.role, ctx.actor_id, p),
        "You do not have access to this placement",
    )
    return p


def list_placements(
    ctx: OperationContext,
    *,
    status: str | None = None,
    limit: int = 100,
    offset: int = 0,
) -> tuple[list[Placement], int]:
    query = ctx.db.query(Placement)

    if ctx.role == Role.STUDENT.value:
        query = query.filter(Placement.student_id == ctx.actor_id)
    elif ctx.role == Role.SUPERVISOR.value:
        query = query.filter(Placement.supervisor_id == ctx.actor_id)
    elif ctx.role == Role.FACULTY.value:
        query = query.filter(Placement.faculty_id == ctx.actor_id)

    if status:
        query = query.filter(Placement.status == status)

    total = query.count()
    items = query.order_by(Placement.created_at.desc()).offset(offset).limit(limit).all()
    return items, total


# --- application --------------------------------------------------------------

def create_placement(
    ctx: OperationContext,
    *,
    site_id: uuid.UUID,
    faculty_id: uuid.UUID,
    start_date: date,
    end_date: date,
    required_hours: int,
    student_id: uuid.UUID | None = None,
    supervisor_id: uuid.UUID | None = None,
    class_id: uuid.UUID | None = None,
) -> Placement:
    """A student applies for a site; the placement starts in PENDING."""
    db = ctx.db
    student_id = student_id or ctx.actor_id

    access.require(
        access.can_apply_for_placement(ctx.role, ctx.actor_id, student_id),
        "Students can only apply for themselves",
    )

    student = _get_user_with_role_or_404(db, student_id, Role.STUDENT, "Student")
    faculty = _get_user_with_role_or_404(db, faculty_id, Role.FACULTY, "Faculty")
    if supervisor_id is not None:
        _get_user_with_role_or_404(db, supervisor_id, Role.SUPERVISOR, "Supervisor")

    site = db.get(Site, site_id)
    if not site:
        raise NotFound("Site not found", site_id=str(site_id))

    if end_date < start_date:
        raise PreconditionFailed(
            "End date must be on or after start date",
            start_date=start_date.isoformat(),
            end_date=end_date.isoformat(),
        )
    if required_hours < 0:
        raise PreconditionFailed("Required hours cannot be negative", required_hours=required_hours)

    occupying = (
        db.query(Placement.id)
        .filter(
            Placement.student_id == student.id,
            Placement.status.in_([s.value for s in OCCUPYING_STATUSES]),
        )
        .first()
    )
    if occupying:
        raise PreconditionFailed(
            "Student already has an active or approved placement",
            existing_placement_id=str(occupying[0]),
        )

    p = Placement(
        student_id=student.id,
        site_id=site.id,
        faculty_id=faculty.id,
        supervisor_id=supervisor_id,
        class_id=class_id,
        start_date=start_date,
        end_date=end_date,
        required_hours=required_hours,
        status=PlacementStatus.PENDING.value,
    )
    db.add(p)
    db.flush()

    ctx.record(
        "PLACEMENT_CREATED",
        entity_type="placement",
        entity_id=p.id,
        details={
            "placement_id": str(p.id),
            "student_id": str(student.id),
            "site_id": str(site.id),
            "status": p.status,
        },
    )
    logger.info("placement %s created for student %s at site %s", p.id, student.id, site.id)

    ctx.notify(
        user_id=faculty.id,
        type="PLACEMENT_REQUESTED",
        title="New Placement Request",
        message=f"{student.full_name} has requested a placement at {site.name}.",
        related_entity_id=p.id,
        related_entity_type="PLACEMENT",
        priority="MEDIUM",
    )
    return p


def attach_document(ctx: OperationContext, placement_id, kind: DocumentKind, url: str) -> Placement:
    """Record where an uploaded document lives; the upload itself is external."""
    p = _lock_placement_or_404(ctx.db, placement_id)
    access.require(
        access.can_attach_document(ctx.role, ctx.actor_id, p),
        "You cannot attach documents to this placement",
    )
    if PlacementStatus(p.status) in TERMINAL_PLACEMENT_STATUSES:
        raise PreconditionFailed(
            "Documents cannot be attached to a closed placement", status=p.status
        )
    if not url or not url.strip():
        raise PreconditionFailed("Document URL is required", document=kind.value)

    previous = getattr(p, kind.value)
    setattr(p, kind.value, url.strip())
    ctx.db.flush()

    ctx.record(
        "PLACEMENT_DOCUMENT_ATTACHED",
        entity_type="placement",
        entity_id=p.id,
        details={"placement_id": str(p.id), "document": kind.value, "replaced": previous is not None},
    )
    return p


# --- lifecycle ----------------------------------------------------------------

def approve_placement(ctx: OperationContext, placement_id) -> Placement:
    p = _lock_placement_or_404(ctx.db, placement_id)
    access.require(
        access.can_decide_placement(ctx.role, ctx.actor_id, p),
        "Only the assigned faculty or an admin can approve placements",
    )
    target = _transition(p, "approve")

    if not p.cell_policy:
        raise PreconditionFailed(
            "Cannot approve: cell phone usage policy is required",
            missing_document=DocumentKind.CELL_POLICY.value,
        )

    prev = p.status
    p.status = target.value
    p.approved_at = utcnow()
    p.approved_by = ctx.actor_id
    ctx.db.flush()

    ctx.record(
        "PLACEMENT_APPROVED",
        entity_type="placement",
        entity_id=p.id,
        details={"placement_id": str(p.id), "from": prev, "to": p.status, "student_id": str(p.student_id)},
    )
    logger.info("placement %s approved by %s", p.id, ctx.actor_id)

    ctx.notify(
        user_id=p.student_id,
        type="PLACEMENT_APPROVED",
        title="Placement Approved",
        message=(
            f"Your placement at {_site_name(p)} has been approved by your faculty liaison. "
            "You can now proceed with your placement activities."
        ),
        related_entity_id=p.id,
        related_entity_type="PLACEMENT",
        priority="HIGH",
    )
    return p


def activate_placement(ctx: OperationContext, placement_id) -> Placement:
    """No checklist gate here: the checklist falls due later in the term."""
    p = _lock_placement_or_404(ctx.db, placement_id)
    access.require(
        access.can_decide_placement(ctx.role, ctx.actor_id, p),
        "Only the assigned faculty or an admin can activate placements",
    )
    target = _transition(p, "activate")

    prev = p.status
    p.status = target.value
    p.approved_at = utcnow()
    p.approved_by = ctx.actor_id
    ctx.db.flush()

    ctx.record(
        "PLACEMENT_ACTIVATED",
        entity_type="placement",
        entity_id=p.id,
        details={"placement_id": str(p.id), "from": prev, "to": p.status},
    )
    logger.info("placement %s activated by %s", p.id, ctx.actor_id)

    ctx.notify(
        user_id=p.student_id,
        type="PLACEMENT_ACTIVATED",
        title="Placement Active",
        message=f"Your placement at {_site_name(p)} is now active. You can start logging hours.",
        related_entity_id=p.id,
        related_entity_type="PLACEMENT",
        priority="MEDIUM",
    )
    return p


def decline_placement(ctx: OperationContext, placement_id, reason: str | None) -> Placement:
    p = _lock_placement_or_404(ctx.db, placement_id)
    access.require(
        access.can_decide_placement(ctx.role, ctx.actor_id, p),
        "Only the assigned faculty or an admin can decline placements",
    )
    target = _transition(p, "decline")

    reason = (reason or "").strip()
    if not reason:
        raise PreconditionFailed("A reason is required to decline a placement", field="reason")

    prev = p.status
    p.status = target.value
    p.declined_at = utcnow()
    p.declined_by = ctx.actor_id
    p.decline_reason = reason
    ctx.db.flush()

    ctx.record(
        "PLACEMENT_DECLINED",
        entity_type="placement",
        entity_id=p.id,
        details={
            "placement_id": str(p.id),
            "from": prev,
            "to": p.status,
            "student_id": str(p.student_id),
            "site_id": str(p.site_id),
            "reason": reason,
        },
    )
    logger.info("placement %s declined by %s", p.id, ctx.actor_id)

    ctx.notify(
        user_id=p.student_id,
        type="PLACEMENT_DECLINED",
        title="Placement Declined",
        message=f"Your placement request at {_site_name(p)} has been declined. Reason: {reason}",
        related_entity_id=p.id,
        related_entity_type="PLACEMENT",
        priority="HIGH",
    )
    return p


@dataclass
class ArchiveResult:
    placement: Placement
    student_has_other_active: bool


def archive_placement(ctx: OperationContext, placement_id, *, today: date | None = None) -> ArchiveResult:
    """
    Eligible iff required hours are met (over-hours allowed) and the end date
    is on or before the end of today in the local zone.
    """
    db = ctx.db
    p = _lock_placement_or_404(db, placement_id)
    access.require(
        access.can_decide_placement(ctx.role, ctx.actor_id, p),
        "Only the assigned faculty or an admin can archive placements",
    )
    target = _transition(p, "archive")

    today = today or local_today()
    approved = approved_hours(db, p.id)
    remaining = p.required_hours - approved

    unmet: list[dict] = []
    if remaining > 0:
        unmet.append(
            {
                "condition": "hours_remaining",
                "message": f"{fmt_hours(remaining)} approved hours still required",
                "required_hours": p.required_hours,
                "approved_hours": float(approved),
                "remaining_hours": float(remaining),
            }
        )
    if p.end_date > today:
        unmet.append(
            {
                "condition": "end_date_in_future",
                "message": f"Placement ends on {p.end_date.isoformat()}",
                "end_date": p.end_date.isoformat(),
                "today": today.isoformat(),
            }
        )
    if unmet:
        raise PreconditionFailed(
            "Placement not eligible to archive",
            unmet_conditions=unmet,
        )

    prior_status = p.status
    prior_supervisor_id = p.supervisor_id

    p.status = target.value
    p.archived_at = utcnow()
    p.supervisor_id = None
    db.flush()

    other_active = (
        db.query(Placement.id)
        .filter(
            Placement.student_id == p.student_id,
            Placement.id != p.id,
            Placement.status == PlacementStatus.ACTIVE.value,
        )
        .first()
        is not None
    )

    ctx.record(
        "PLACEMENT_ARCHIVED",
        entity_type="placement",
        entity_id=p.id,
        details={
            "placement_id": str(p.id),
            "prior_status": prior_status,
            "prior_supervisor_id": str(prior_supervisor_id) if prior_supervisor_id else None,
            "student_id": str(p.student_id),
            "site_id": str(p.site_id),
            "approved_hours": float(approved),
        },
    )
    logger.info("placement %s archived by %s (approved hours %s)", p.id, ctx.actor_id, approved)

    return ArchiveResult(placement=p, student_has_other_active=other_active)


def unarchive_placement(ctx: OperationContext, placement_id) -> Placement:
    p = _lock_placement_or_404(ctx.db, placement_id)
    access.require(
        access.can_unarchive_placement(ctx.role, ctx.actor_id, p),
        "Only an admin can unarchive placements",
    )
    target = _transition(p, "unarchive")

    prior_status = p.status
    p.status = target.value
    p.archived_at = None
    ctx.db.flush()

    ctx.record(
        "PLACEMENT_UNARCHIVED",
        entity_type="placement",
        entity_id=p.id,
        details={
            "placement_id": str(p.id),
            "prior_status": prior_status,
            "new_status": p.status,
            "student_id": str(p.student_id),
            "site_id": str(p.site_id),
        },
    )
    logger.info("placement %s unarchived by %s", p.id, ctx.actor_id)
    return p
