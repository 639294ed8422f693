"""
Evaluation issue / save / submit-and-lock protocol.

One Evaluation per (placement, type); under it one EvaluationSubmission per
role. A submission moves PENDING -> IN_PROGRESS -> LOCKED; only an admin can
reopen a locked one.
"""
from __future__ import annotations

from dataclasses import dataclass, field
import logging
from typing import Any
import uuid

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from app.core import access
from app.core.errors import (
    NotFound,
    PreconditionFailed,
    StaleVersion,
    ValidationFailed,
)
from app.core.evaluation_form import load_evaluation_form
from app.core.evaluation_form_validation import (
    missing_required_fields,
    validate_lock,
    validate_save_payload,
)
from app.core.optimistic_lock import assert_version_matches
from app.core.states import (
    SUBMISSION_TRANSITIONS,
    EvaluationType,
    PlacementStatus,
    Role,
    SubmissionRole,
    SubmissionStatus,
    next_status,
)
from app.models.evaluation import Evaluation
from app.models.evaluation_submission import EvaluationSubmission
from app.models.placement import Placement
from app.services.context import OperationContext, utcnow

logger = logging.getLogger(__name__)


@dataclass
class SendResult:
    evaluation: Evaluation
    created: int = 0
    reused: int = 0
    locked: int = 0
    created_roles: list[str] = field(default_factory=list)


def _parse_type(evaluation_type: str) -> EvaluationType:
    try:
        return EvaluationType(evaluation_type)
    except ValueError:
        raise ValidationFailed(
            "Invalid evaluation type",
            errors=[
                {
                    "field": "type",
                    "code": "choice",
                    "message": f"Must be one of {', '.join(t.value for t in EvaluationType)}",
                }
            ],
        )


def _holder_id(p: Placement, role: str) -> uuid.UUID | None:
    if role == SubmissionRole.STUDENT.value:
        return p.student_id
    return p.supervisor_id


def _flush_versioned(db: Session, s: EvaluationSubmission) -> None:
    try:
        db.flush()
    except StaleDataError:
        raise StaleVersion(
            "Submission was modified concurrently; reload and retry",
            submission_id=str(s.id),
        )


# --- issue --------------------------------------------------------------------

def _get_or_create_evaluation(
    ctx: OperationContext, p: Placement, etype: EvaluationType
) -> tuple[Evaluation, bool]:
    db = ctx.db
    existing = (
        db.query(Evaluation)
        .filter(Evaluation.placement_id == p.id, Evaluation.type == etype.value)
        .one_or_none()
    )
    if existing:
        return existing, False

    # SAVEPOINT so a concurrent insert hitting the unique constraint does not poison the txn
    try:
        with db.begin_nested():
            ev = Evaluation(placement_id=p.id, type=etype.value, created_by_id=ctx.actor_id)
            db.add(ev)
            db.flush()
    except IntegrityError:
        ev = (
            db.query(Evaluation)
            .filter(Evaluation.placement_id == p.id, Evaluation.type == etype.value)
            .one()
        )
        return ev, False
    return ev, True


def send_evaluation(
    ctx: OperationContext,
    placement_id,
    evaluation_type: str,
    *,
    student_msg: str | None = None,
    supervisor_msg: str | None = None,
) -> SendResult:
    """
    Idempotent: sending twice never creates a second submission for a role.
    Existing submissions are left untouched (locked ones are only counted).
    """
    db = ctx.db
    etype = _parse_type(evaluation_type)

    p = (
        db.query(Placement)
        .filter(Placement.id == placement_id)
        .with_for_update()
        .one_or_none()
    )
    if not p:
        raise NotFound("Placement not found", placement_id=str(placement_id))
    access.require(
        access.can_send_evaluation(ctx.role, ctx.actor_id, p),
        "Only the placement's faculty liaison or an admin can send evaluations",
    )
    if p.status != PlacementStatus.ACTIVE.value:
        raise PreconditionFailed(
            "Evaluations can only be sent for active placements",
            placement_status=p.status,
        )

    ev, _ = _get_or_create_evaluation(ctx, p, etype)
    if student_msg is not None:
        ev.student_msg = student_msg
    if supervisor_msg is not None:
        ev.supervisor_msg = supervisor_msg

    result = SendResult(evaluation=ev)
    existing = {s.role: s for s in ev.submissions}

    roles = [SubmissionRole.STUDENT]
    if p.supervisor_id:
        roles.append(SubmissionRole.SUPERVISOR)

    for role in roles:
        s = existing.get(role.value)
        if s is None:
            ev.submissions.append(
                EvaluationSubmission(role=role.value, status=SubmissionStatus.PENDING.value, answers={})
            )
            result.created += 1
            result.created_roles.append(role.value)
        elif s.status == SubmissionStatus.LOCKED.value:
            result.locked += 1
        else:
            result.reused += 1
    db.flush()

    ctx.record(
        "EVALUATION_ISSUED",
        entity_type="evaluation",
        entity_id=ev.id,
        details={
            "placement_id": str(p.id),
            "type": etype.value,
            "created": result.created,
            "reused": result.reused,
            "locked": result.locked,
        },
    )
    logger.info(
        "evaluation %s (%s) issued for placement %s: created=%d reused=%d locked=%d",
        ev.id, etype.value, p.id, result.created, result.reused, result.locked,
    )

    label = etype.value.capitalize()
    for role in result.created_roles:
        msg = ev.student_msg if role == SubmissionRole.STUDENT.value else ev.supervisor_msg
        message = f"A {label} evaluation is ready for you to complete."
        if msg:
            message += f" {msg}"
        ctx.notify(
            user_id=_holder_id(p, role),
            type="EVALUATION_ISSUED",
            title=f"{label} Evaluation Available",
            message=message,
            related_entity_id=ev.id,
            related_entity_type="EVALUATION",
            priority="MEDIUM",
        )

    return result


def bulk_send_evaluations(
    ctx: OperationContext,
    evaluation_type: str,
    *,
    student_msg: str | None = None,
    supervisor_msg: str | None = None,
) -> list[SendResult]:
    """Issue to every ACTIVE placement the caller liaises (admins: all of them)."""
    _parse_type(evaluation_type)
    access.require(
        ctx.role in (Role.FACULTY.value, Role.ADMIN.value),
        "Only faculty or admins can send evaluations",
    )

    query = ctx.db.query(Placement.id).filter(Placement.status == PlacementStatus.ACTIVE.value)
    if ctx.role == Role.FACULTY.value:
        query = query.filter(Placement.faculty_id == ctx.actor_id)
    placement_ids = [row[0] for row in query.order_by(Placement.created_at.asc()).all()]

    return [
        send_evaluation(
            ctx,
            pid,
            evaluation_type,
            student_msg=student_msg,
            supervisor_msg=supervisor_msg,
        )
        for pid in placement_ids
    ]


# --- reads --------------------------------------------------------------------

def list_evaluations(ctx: OperationContext, placement_id) -> list[Evaluation]:
    p = ctx.db.get(Placement, placement_id)
    if not p:
        raise NotFound("Placement not found", placement_id=str(placement_id))
    access.require(
        access.can_view_placement(ctx.role, ctx.actor_id, p),
        "You do not have access to this placement",
    )
    return (
        ctx.db.query(Evaluation)
        .filter(Evaluation.placement_id == p.id)
        .order_by(Evaluation.created_at.asc())
        .all()
    )


def get_submission(ctx: OperationContext, submission_id) -> EvaluationSubmission:
    s = ctx.db.get(EvaluationSubmission, submission_id)
    if not s:
        raise NotFound("Evaluation submission not found", submission_id=str(submission_id))
    access.require(
        access.can_view_submission(ctx.role, ctx.actor_id, s.role, s.evaluation.placement),
        "You do not have access to this submission",
    )
    return s


def preview_lock(ctx: OperationContext, submission_id) -> list[dict]:
    """What a lock attempt would report right now, without changing anything."""
    s = get_submission(ctx, submission_id)
    return missing_required_fields(form=load_evaluation_form(), answers=s.answers or {})


# --- save / lock / unlock -----------------------------------------------------

def _lock_submission_or_404(db: Session, submission_id) -> EvaluationSubmission:
    s = (
        db.query(EvaluationSubmission)
        .filter(EvaluationSubmission.id == submission_id)
        .with_for_update()
        .one_or_none()
    )
    if not s:
        raise NotFound("Evaluation submission not found", submission_id=str(submission_id))
    return s


def _validate_answer_values(answers: dict[str, Any]) -> None:
    errors = [
        {"field": key, "code": "type", "message": "Answers must be numbers or strings"}
        for key, value in answers.items()
        if isinstance(value, bool) or not isinstance(value, (int, float, str))
    ]
    if errors:
        raise ValidationFailed("Save validation failed", errors=errors)


def save_submission(
    ctx: OperationContext,
    submission_id,
    answers: dict[str, Any],
    *,
    expected_version: int | None = None,
) -> EvaluationSubmission:
    """Merge ``answers`` into the stored answers; keys not sent are kept."""
    db = ctx.db
    s = _lock_submission_or_404(db, submission_id)
    p = s.evaluation.placement
    access.require(
        access.owns_submission(ctx.role, ctx.actor_id, s.role, p),
        "Only the assigned respondent can edit this submission",
        submission_role=s.role,
    )
    target = next_status(SUBMISSION_TRANSITIONS, SubmissionStatus, "save", s.status)
    assert_version_matches(current_version=s.version, if_match_version=expected_version)

    _validate_answer_values(answers)
    validate_save_payload(form=load_evaluation_form(), answers=answers)

    merged = dict(s.answers or {})
    merged.update(answers)
    # new dict object so the JSON column registers the change
    s.answers = merged
    s.status = target.value
    s.last_saved_at = utcnow()
    s.submitted_by_id = ctx.actor_id
    _flush_versioned(db, s)

    ctx.record(
        "EVALUATION_SAVED",
        entity_type="evaluation_submission",
        entity_id=s.id,
        details={
            "evaluation_id": str(s.evaluation_id),
            "role": s.role,
            "fields": sorted(answers.keys()),
        },
    )
    return s


def lock_submission(
    ctx: OperationContext,
    submission_id,
    *,
    expected_version: int | None = None,
) -> EvaluationSubmission:
    db = ctx.db
    s = _lock_submission_or_404(db, submission_id)
    ev = s.evaluation
    p = ev.placement
    access.require(
        access.owns_submission(ctx.role, ctx.actor_id, s.role, p),
        "Only the assigned respondent can submit this evaluation",
        submission_role=s.role,
    )
    target = next_status(SUBMISSION_TRANSITIONS, SubmissionStatus, "lock", s.status)
    assert_version_matches(current_version=s.version, if_match_version=expected_version)

    validate_lock(form=load_evaluation_form(), answers=s.answers or {})

    s.status = target.value
    s.locked_at = utcnow()
    s.submitted_by_id = ctx.actor_id
    _flush_versioned(db, s)

    ctx.record(
        "EVALUATION_SUBMITTED",
        entity_type="evaluation_submission",
        entity_id=s.id,
        details={
            "evaluation_id": str(ev.id),
            "placement_id": str(p.id),
            "type": ev.type,
            "role": s.role,
        },
    )
    logger.info("submission %s (%s %s) locked by %s", s.id, ev.type, s.role, ctx.actor_id)

    label = ev.type.capitalize()
    ctx.notify(
        user_id=ctx.actor_id,
        type="EVALUATION_SUBMITTED",
        title=f"{label} Evaluation Submitted",
        message=f"Your {label.lower()} evaluation has been submitted.",
        related_entity_id=ev.id,
        related_entity_type="EVALUATION",
        priority="LOW",
    )
    who = "Student" if s.role == SubmissionRole.STUDENT.value else "Site supervisor"
    ctx.notify(
        user_id=p.faculty_id,
        type="EVALUATION_SUBMITTED",
        title=f"{label} Evaluation Submitted",
        message=f"{who} submitted the {label.lower()} evaluation for a placement you oversee.",
        related_entity_id=ev.id,
        related_entity_type="EVALUATION",
        priority="MEDIUM",
    )
    return s


def unlock_submission(ctx: OperationContext, submission_id) -> EvaluationSubmission:
    db = ctx.db
    s = _lock_submission_or_404(db, submission_id)
    p = s.evaluation.placement
    access.require(
        access.can_unlock_submission(ctx.role, ctx.actor_id, p),
        "Only an admin can unlock a submitted evaluation",
    )
    target = next_status(SUBMISSION_TRANSITIONS, SubmissionStatus, "unlock", s.status)

    s.status = target.value
    s.locked_at = None
    _flush_versioned(db, s)

    ctx.record(
        "EVALUATION_UNLOCKED",
        entity_type="evaluation_submission",
        entity_id=s.id,
        details={"evaluation_id": str(s.evaluation_id), "role": s.role},
    )
    logger.info("submission %s unlocked by %s", s.id, ctx.actor_id)

    holder = _holder_id(p, s.role)
    if holder:
        ctx.notify(
            user_id=holder,
            type="EVALUATION_UNLOCKED",
            title="Evaluation Reopened",
            message="An administrator reopened your evaluation for editing.",
            related_entity_id=s.evaluation_id,
            related_entity_type="EVALUATION",
            priority="MEDIUM",
        )
    return s
