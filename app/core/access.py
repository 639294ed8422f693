"""
Authorization predicates, one per operation.

Every predicate takes the caller's role, the caller's user id and the
aggregate being acted on, and answers allow/deny without touching the
database. Services call ``require(...)`` with the answer.
"""
from __future__ import annotations

import uuid

from app.core.errors import Forbidden
from app.core.states import Role, SubmissionRole
from app.models.placement import Placement

ADMIN = Role.ADMIN.value
FACULTY = Role.FACULTY.value
STUDENT = Role.STUDENT.value
SUPERVISOR = Role.SUPERVISOR.value


def require(allowed: bool, message: str = "Forbidden", **details) -> None:
    if not allowed:
        raise Forbidden(message, **details)


def _is_assigned_faculty(role: str, actor_id: uuid.UUID, p: Placement) -> bool:
    return role == FACULTY and p.faculty_id == actor_id


# --- placements ---------------------------------------------------------------

def can_view_placement(role: str, actor_id: uuid.UUID, p: Placement) -> bool:
    if role in (ADMIN, FACULTY):
        return True
    if role == STUDENT:
        return p.student_id == actor_id
    if role == SUPERVISOR:
        return p.supervisor_id == actor_id
    return False


def can_apply_for_placement(role: str, actor_id: uuid.UUID, student_id: uuid.UUID) -> bool:
    if role in (ADMIN, FACULTY):
        return True
    return role == STUDENT and student_id == actor_id


def can_decide_placement(role: str, actor_id: uuid.UUID, p: Placement) -> bool:
    """Approve / activate / decline / archive."""
    return role == ADMIN or _is_assigned_faculty(role, actor_id, p)


def can_unarchive_placement(role: str, actor_id: uuid.UUID, p: Placement) -> bool:
    return role == ADMIN


def can_attach_document(role: str, actor_id: uuid.UUID, p: Placement) -> bool:
    if role == STUDENT:
        return p.student_id == actor_id
    return role == ADMIN or _is_assigned_faculty(role, actor_id, p)


# --- timesheets ---------------------------------------------------------------

def can_log_hours(role: str, actor_id: uuid.UUID, p: Placement) -> bool:
    """Create, edit, submit and delete entries: the owning student only."""
    return role == STUDENT and p.student_id == actor_id


def can_supervisor_decide(role: str, actor_id: uuid.UUID, p: Placement) -> bool:
    return role == SUPERVISOR and p.supervisor_id is not None and p.supervisor_id == actor_id


def can_faculty_decide(role: str, actor_id: uuid.UUID, p: Placement) -> bool:
    return role == ADMIN or _is_assigned_faculty(role, actor_id, p)


# --- evaluations --------------------------------------------------------------

def can_send_evaluation(role: str, actor_id: uuid.UUID, p: Placement) -> bool:
    return role == ADMIN or _is_assigned_faculty(role, actor_id, p)


def owns_submission(role: str, actor_id: uuid.UUID, submission_role: str, p: Placement) -> bool:
    """Only the role-holder of the placement may fill in or lock a submission."""
    if submission_role == SubmissionRole.STUDENT.value:
        return role == STUDENT and p.student_id == actor_id
    if submission_role == SubmissionRole.SUPERVISOR.value:
        return role == SUPERVISOR and p.supervisor_id is not None and p.supervisor_id == actor_id
    return False


def can_view_submission(role: str, actor_id: uuid.UUID, submission_role: str, p: Placement) -> bool:
    if owns_submission(role, actor_id, submission_role, p):
        return True
    return role == ADMIN or _is_assigned_faculty(role, actor_id, p)


def can_unlock_submission(role: str, actor_id: uuid.UUID, p: Placement) -> bool:
    return role == ADMIN
