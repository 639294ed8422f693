r"""
Timesheet approval pipeline.

    DRAFT -> PENDING_SUPERVISOR -> PENDING_FACULTY -> APPROVED
                     \-> REJECTED (back to the student, resubmittable)

Supervisor and faculty decisions are batch operations and all-or-nothing:
if any requested entry is missing or not in the decidable state, nothing is
changed and the mismatch is reported.
"""
from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation
import logging
import uuid

from sqlalchemy.orm import Session

from app.core import access
from app.core.errors import NotFound, PreconditionFailed, ValidationFailed
from app.core.states import (
    TIMESHEET_OPEN_STATUSES,
    TIMESHEET_TRANSITIONS,
    PlacementStatus,
    TimesheetCategory,
    TimesheetStatus,
    next_status,
    source_statuses,
)
from app.models.placement import Placement
from app.models.timesheet_entry import TimesheetEntry
from app.services.context import OperationContext, utcnow
from app.services.hours import fmt_hours

logger = logging.getLogger(__name__)

MAX_HOURS_PER_ENTRY = Decimal("24")
HOURS_DECIMAL_PLACES = 2  # Numeric(5, 2) column


@dataclass
class BatchResult:
    requested: int
    updated: int
    total_hours: Decimal


def _get_placement_or_404(db: Session, placement_id) -> Placement:
    p = db.get(Placement, placement_id)
    if not p:
        raise NotFound("Placement not found", placement_id=str(placement_id))
    return p


def _lock_entry_or_404(db: Session, entry_id) -> TimesheetEntry:
    e = (
        db.query(TimesheetEntry)
        .filter(TimesheetEntry.id == entry_id)
        .with_for_update()
        .one_or_none()
    )
    if not e:
        raise NotFound("Timesheet entry not found", entry_id=str(entry_id))
    return e


def _validate_fields(*, hours=None, category=None) -> tuple[Decimal | None, str | None]:
    errors: list[dict] = []
    parsed_hours = None
    parsed_category = None

    if hours is not None:
        try:
            parsed_hours = Decimal(str(hours))
        except InvalidOperation:
            errors.append({"field": "hours", "code": "type", "message": "Must be a number"})
        else:
            if not parsed_hours.is_finite():
                errors.append({"field": "hours", "code": "type", "message": "Must be a number"})
            elif not (Decimal("0") < parsed_hours <= MAX_HOURS_PER_ENTRY):
                errors.append(
                    {"field": "hours", "code": "range", "message": "Hours must be greater than 0 and at most 24"}
                )
            elif parsed_hours.normalize().as_tuple().exponent < -HOURS_DECIMAL_PLACES:
                errors.append(
                    {"field": "hours", "code": "precision", "message": "Hours allow at most 2 decimal places"}
                )

    if category is not None:
        try:
            parsed_category = TimesheetCategory(category).value
        except ValueError:
            errors.append(
                {
                    "field": "category",
                    "code": "choice",
                    "message": f"Must be one of {', '.join(c.value for c in TimesheetCategory)}",
                }
            )

    if errors:
        raise ValidationFailed("Invalid timesheet entry", errors=errors)
    return parsed_hours, parsed_category


def _append_note(existing: str | None, tag: str, text: str | None) -> str | None:
    text = (text or "").strip()
    if not text:
        return existing
    note = f"[{tag}: {text}]"
    return f"{existing}\n{note}" if existing else note


def _total(entries) -> Decimal:
    return sum((Decimal(str(e.hours)) for e in entries), Decimal("0"))


# --- student side -------------------------------------------------------------

def create_entry(
    ctx: OperationContext,
    placement_id,
    *,
    date: date,
    hours,
    category: str,
    notes: str | None = None,
) -> TimesheetEntry:
    p = _get_placement_or_404(ctx.db, placement_id)
    access.require(
        access.can_log_hours(ctx.role, ctx.actor_id, p),
        "Only the placement's student can log hours",
    )
    if PlacementStatus(p.status) not in TIMESHEET_OPEN_STATUSES:
        raise PreconditionFailed(
            "Hours can only be logged on an approved or active placement",
            placement_status=p.status,
        )

    parsed_hours, parsed_category = _validate_fields(hours=hours, category=category)

    e = TimesheetEntry(
        placement_id=p.id,
        date=date,
        hours=parsed_hours,
        category=parsed_category,
        notes=notes,
        status=TimesheetStatus.DRAFT.value,
    )
    ctx.db.add(e)
    ctx.db.flush()

    ctx.record(
        "TIMESHEET_ENTRY_CREATED",
        entity_type="timesheet_entry",
        entity_id=e.id,
        details={
            "placement_id": str(p.id),
            "date": date.isoformat(),
            "hours": float(parsed_hours),
            "category": parsed_category,
        },
    )
    return e


def _assert_student_editable(
    ctx: OperationContext, e: TimesheetEntry, verb: str, *, allow_submitted: bool = False
) -> None:
    """Delete only needs the entry unlocked; update also needs it unsubmitted."""
    access.require(
        access.can_log_hours(ctx.role, ctx.actor_id, e.placement),
        f"Only the placement's student can {verb} entries",
    )
    if e.locked or (e.submitted_at is not None and not allow_submitted):
        raise PreconditionFailed(
            f"Submitted or approved entries cannot be {verb}d",
            entry_id=str(e.id),
            status=e.status,
            locked=e.locked,
        )


def update_entry(
    ctx: OperationContext,
    entry_id,
    *,
    date: date | None = None,
    hours=None,
    category: str | None = None,
    notes: str | None = None,
) -> TimesheetEntry:
    e = _lock_entry_or_404(ctx.db, entry_id)
    _assert_student_editable(ctx, e, "update")

    parsed_hours, parsed_category = _validate_fields(hours=hours, category=category)
    changed = []
    if date is not None:
        e.date = date
        changed.append("date")
    if parsed_hours is not None:
        e.hours = parsed_hours
        changed.append("hours")
    if parsed_category is not None:
        e.category = parsed_category
        changed.append("category")
    if notes is not None:
        e.notes = notes
        changed.append("notes")

    ctx.db.flush()
    if changed:
        ctx.record(
            "TIMESHEET_ENTRY_UPDATED",
            entity_type="timesheet_entry",
            entity_id=e.id,
            details={"placement_id": str(e.placement_id), "fields": changed},
        )
    return e


def delete_entry(ctx: OperationContext, entry_id) -> None:
    e = _lock_entry_or_404(ctx.db, entry_id)
    _assert_student_editable(ctx, e, "delete", allow_submitted=True)

    details = {
        "placement_id": str(e.placement_id),
        "date": e.date.isoformat(),
        "hours": float(e.hours),
        "category": e.category,
    }
    entry_id = e.id
    ctx.db.delete(e)
    ctx.db.flush()

    ctx.record(
        "TIMESHEET_ENTRY_DELETED",
        entity_type="timesheet_entry",
        entity_id=entry_id,
        details=details,
    )


def list_entries(
    ctx: OperationContext,
    placement_id,
    *,
    start_date: date | None = None,
    end_date: date | None = None,
) -> list[TimesheetEntry]:
    p = _get_placement_or_404(ctx.db, placement_id)
    access.require(
        access.can_view_placement(ctx.role, ctx.actor_id, p),
        "You do not have access to this placement",
    )
    query = ctx.db.query(TimesheetEntry).filter(TimesheetEntry.placement_id == p.id)
    if start_date:
        query = query.filter(TimesheetEntry.date >= start_date)
    if end_date:
        query = query.filter(TimesheetEntry.date <= end_date)
    return query.order_by(TimesheetEntry.date.asc(), TimesheetEntry.created_at.asc()).all()


def submit_week(
    ctx: OperationContext,
    placement_id,
    *,
    start_date: date,
    end_date: date,
) -> BatchResult:
    """Submit every unsubmitted entry dated inside [start_date, end_date]."""
    db = ctx.db
    p = _get_placement_or_404(db, placement_id)
    access.require(
        access.can_log_hours(ctx.role, ctx.actor_id, p),
        "Only the placement's student can submit hours",
    )
    if PlacementStatus(p.status) not in TIMESHEET_OPEN_STATUSES:
        raise PreconditionFailed(
            "Hours can only be submitted on an approved or active placement",
            placement_status=p.status,
        )
    if end_date < start_date:
        raise PreconditionFailed(
            "End date must be on or after start date",
            start_date=start_date.isoformat(),
            end_date=end_date.isoformat(),
        )

    entries = (
        db.query(TimesheetEntry)
        .filter(
            TimesheetEntry.placement_id == p.id,
            TimesheetEntry.submitted_at.is_(None),
            TimesheetEntry.date >= start_date,
            TimesheetEntry.date <= end_date,
        )
        .with_for_update()
        .all()
    )
    if not entries:
        raise PreconditionFailed(
            "No unsubmitted entries found for this week",
            start_date=start_date.isoformat(),
            end_date=end_date.isoformat(),
        )

    now = utcnow()
    for e in entries:
        e.status = next_status(TIMESHEET_TRANSITIONS, TimesheetStatus, "submit", e.status).value
        e.submitted_at = now
    db.flush()

    total = _total(entries)
    ctx.record(
        "TIMESHEET_WEEK_SUBMITTED",
        entity_type="placement",
        entity_id=p.id,
        details={
            "placement_id": str(p.id),
            "start_date": start_date.isoformat(),
            "end_date": end_date.isoformat(),
            "entry_ids": [str(e.id) for e in entries],
            "total_hours": float(total),
        },
    )
    logger.info("placement %s: %d entries (%s h) submitted for review", p.id, len(entries), total)

    if p.supervisor_id:
        student_name = p.student.full_name if p.student else "A student"
        ctx.notify(
            user_id=p.supervisor_id,
            type="TIMESHEET_SUBMITTED",
            title="Timesheet Submitted for Review",
            message=(
                f"{student_name} submitted {len(entries)} entries ({fmt_hours(total)} hours) for "
                f"{start_date.isoformat()} to {end_date.isoformat()}."
            ),
            related_entity_id=p.id,
            related_entity_type="PLACEMENT",
            priority="MEDIUM",
        )

    return BatchResult(requested=len(entries), updated=len(entries), total_hours=total)


# --- reviewer side ------------------------------------------------------------

def _lock_batch(db: Session, entry_ids, *criteria) -> tuple[list[uuid.UUID], list[TimesheetEntry]]:
    """
    Lock the requested entries that satisfy ``criteria``. Any shortfall aborts
    the whole batch before a single row is touched.
    """
    requested = list(dict.fromkeys(entry_ids))
    if not requested:
        raise PreconditionFailed("No timesheet entries given", requested=0, matched=0, unmatched_ids=[])

    matched = (
        db.query(TimesheetEntry)
        .filter(TimesheetEntry.id.in_(requested), *criteria)
        .with_for_update()
        .all()
    )
    if len(matched) != len(requested):
        found = {e.id for e in matched}
        raise PreconditionFailed(
            "Some timesheet entries are not awaiting this decision",
            requested=len(requested),
            matched=len(matched),
            unmatched_ids=[str(i) for i in requested if i not in found],
        )
    return requested, matched


def _by_placement(entries: list[TimesheetEntry]) -> dict[uuid.UUID, list[TimesheetEntry]]:
    groups: dict[uuid.UUID, list[TimesheetEntry]] = defaultdict(list)
    for e in entries:
        groups[e.placement_id].append(e)
    return groups


def _check_decision(action: str) -> None:
    if action not in ("approve", "reject"):
        raise PreconditionFailed("Action must be 'approve' or 'reject'", action=action)


def supervisor_decision(
    ctx: OperationContext,
    entry_ids: list[uuid.UUID],
    action: str,
    notes: str | None = None,
) -> BatchResult:
    _check_decision(action)
    db = ctx.db
    requested, entries = _lock_batch(
        db,
        entry_ids,
        TimesheetEntry.status.in_(source_statuses(TIMESHEET_TRANSITIONS, f"supervisor_{action}")),
        TimesheetEntry.submitted_at.is_not(None),
        TimesheetEntry.supervisor_approved_at.is_(None),
    )

    groups = _by_placement(entries)
    placements = {pid: group[0].placement for pid, group in groups.items()}
    for p in placements.values():
        access.require(
            access.can_supervisor_decide(ctx.role, ctx.actor_id, p),
            "Only the placement's supervisor can review these entries",
            placement_id=str(p.id),
        )

    now = utcnow()
    for e in entries:
        e.status = next_status(
            TIMESHEET_TRANSITIONS, TimesheetStatus, f"supervisor_{action}", e.status
        ).value
        if action == "approve":
            e.supervisor_approved_at = now
            e.supervisor_approved_by = ctx.actor_id
            e.locked = True
        else:
            e.submitted_at = None
            e.rejected_at = now
            e.rejected_by = ctx.actor_id
            e.notes = _append_note(e.notes, "Rejected", notes)
    db.flush()

    audit_action = "TIMESHEET_SUPERVISOR_APPROVED" if action == "approve" else "TIMESHEET_SUPERVISOR_REJECTED"
    for pid, group in groups.items():
        p = placements[pid]
        total = _total(group)
        ctx.record(
            audit_action,
            entity_type="placement",
            entity_id=pid,
            details={
                "placement_id": str(pid),
                "entry_ids": [str(e.id) for e in group],
                "total_hours": float(total),
                "notes": notes,
            },
        )
        logger.info("placement %s: supervisor %s %d entries", pid, action, len(group))

        if action == "approve":
            ctx.notify(
                user_id=p.faculty_id,
                type="TIMESHEET_SUPERVISOR_APPROVED",
                title="Timesheet Awaiting Faculty Approval",
                message=f"{len(group)} entries ({fmt_hours(total)} hours) were approved by the site supervisor.",
                related_entity_id=pid,
                related_entity_type="PLACEMENT",
                priority="MEDIUM",
            )
        else:
            message = f"{len(group)} entries ({fmt_hours(total)} hours) were returned by your supervisor."
            if notes:
                message += f" Notes: {notes}"
            ctx.notify(
                user_id=p.student_id,
                type="TIMESHEET_REJECTED",
                title="Timesheet Returned",
                message=message,
                related_entity_id=pid,
                related_entity_type="PLACEMENT",
                priority="HIGH",
            )

    return BatchResult(requested=len(requested), updated=len(entries), total_hours=_total(entries))


def faculty_decision(
    ctx: OperationContext,
    entry_ids: list[uuid.UUID],
    action: str,
    notes: str | None = None,
) -> BatchResult:
    _check_decision(action)
    db = ctx.db
    requested, entries = _lock_batch(
        db,
        entry_ids,
        TimesheetEntry.status.in_(source_statuses(TIMESHEET_TRANSITIONS, f"faculty_{action}")),
        TimesheetEntry.faculty_approved_at.is_(None),
    )

    groups = _by_placement(entries)
    placements = {pid: group[0].placement for pid, group in groups.items()}
    for p in placements.values():
        access.require(
            access.can_faculty_decide(ctx.role, ctx.actor_id, p),
            "Only the placement's faculty liaison or an admin can review these entries",
            placement_id=str(p.id),
        )

    now = utcnow()
    for e in entries:
        e.status = next_status(
            TIMESHEET_TRANSITIONS, TimesheetStatus, f"faculty_{action}", e.status
        ).value
        if action == "approve":
            e.faculty_approved_at = now
            e.faculty_approved_by = ctx.actor_id
            e.notes = _append_note(e.notes, "Faculty Notes", notes)
        else:
            e.faculty_approved_at = None
            e.faculty_approved_by = None
            e.notes = _append_note(e.notes, "Faculty Rejected", notes)
    db.flush()

    audit_action = "TIMESHEET_FACULTY_APPROVED" if action == "approve" else "TIMESHEET_FACULTY_REJECTED"
    for pid, group in groups.items():
        p = placements[pid]
        total = _total(group)
        ctx.record(
            audit_action,
            entity_type="placement",
            entity_id=pid,
            details={
                "placement_id": str(pid),
                "entry_ids": [str(e.id) for e in group],
                "total_hours": float(total),
                "notes": notes,
            },
        )
        logger.info("placement %s: faculty %s %d entries", pid, action, len(group))

        if action == "approve":
            ctx.notify(
                user_id=p.student_id,
                type="TIMESHEET_APPROVED",
                title="Hours Approved",
                message=f"{fmt_hours(total)} hours were approved and added to your placement total.",
                related_entity_id=pid,
                related_entity_type="PLACEMENT",
                priority="MEDIUM",
            )
        elif p.supervisor_id:
            message = f"Faculty returned {len(group)} entries ({fmt_hours(total)} hours) for another look."
            if notes:
                message += f" Notes: {notes}"
            ctx.notify(
                user_id=p.supervisor_id,
                type="TIMESHEET_FACULTY_REJECTED",
                title="Timesheet Returned by Faculty",
                message=message,
                related_entity_id=pid,
                related_entity_type="PLACEMENT",
                priority="HIGH",
            )

    return BatchResult(requested=len(requested), updated=len(entries), total_hours=_total(entries))
