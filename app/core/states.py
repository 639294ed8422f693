"""
Closed status sets and transition tables for every workflow aggregate.

Each table maps an action to ``{from_status: to_status}``. An action that is
not listed for the current status is an invalid transition; nothing else in
the code base compares raw status strings to decide what is allowed.
"""
from __future__ import annotations

from enum import Enum

from app.core.errors import InvalidTransition


class Role(str, Enum):
    STUDENT = "STUDENT"
    SUPERVISOR = "SUPERVISOR"
    FACULTY = "FACULTY"
    ADMIN = "ADMIN"


class PlacementStatus(str, Enum):
    DRAFT = "DRAFT"
    PENDING = "PENDING"
    APPROVED_PENDING_CHECKLIST = "APPROVED_PENDING_CHECKLIST"
    APPROVED = "APPROVED"  # legacy rows; behaves like APPROVED_PENDING_CHECKLIST
    ACTIVE = "ACTIVE"
    ARCHIVED = "ARCHIVED"
    DECLINED = "DECLINED"


class TimesheetStatus(str, Enum):
    DRAFT = "DRAFT"  # not yet submitted (submitted_at is null)
    PENDING_SUPERVISOR = "PENDING_SUPERVISOR"
    PENDING_FACULTY = "PENDING_FACULTY"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"  # returned to the student; submitted_at is null again


class TimesheetCategory(str, Enum):
    DIRECT = "DIRECT"
    INDIRECT = "INDIRECT"
    TRAINING = "TRAINING"
    ADMIN = "ADMIN"


class EvaluationType(str, Enum):
    MIDTERM = "MIDTERM"
    FINAL = "FINAL"


class SubmissionRole(str, Enum):
    STUDENT = "STUDENT"
    SUPERVISOR = "SUPERVISOR"


class SubmissionStatus(str, Enum):
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    LOCKED = "LOCKED"


class DocumentKind(str, Enum):
    CELL_POLICY = "cell_policy"
    LEARNING_CONTRACT = "learning_contract"
    CHECKLIST = "checklist"


P = PlacementStatus

PLACEMENT_TRANSITIONS: dict[str, dict[PlacementStatus, PlacementStatus]] = {
    "approve": {P.PENDING: P.APPROVED_PENDING_CHECKLIST},
    "activate": {
        P.APPROVED_PENDING_CHECKLIST: P.ACTIVE,
        P.APPROVED: P.ACTIVE,
    },
    "decline": {P.PENDING: P.DECLINED},
    "archive": {
        P.DRAFT: P.ARCHIVED,
        P.PENDING: P.ARCHIVED,
        P.APPROVED_PENDING_CHECKLIST: P.ARCHIVED,
        P.APPROVED: P.ARCHIVED,
        P.ACTIVE: P.ARCHIVED,
    },
    "unarchive": {P.ARCHIVED: P.ACTIVE},
}

# Placement statuses that allow students to log and submit hours
TIMESHEET_OPEN_STATUSES = frozenset(
    {P.ACTIVE, P.APPROVED, P.APPROVED_PENDING_CHECKLIST}
)

# A student may hold at most one of these at a time
OCCUPYING_STATUSES = frozenset(
    {P.ACTIVE, P.APPROVED, P.APPROVED_PENDING_CHECKLIST}
)

TERMINAL_PLACEMENT_STATUSES = frozenset({P.ARCHIVED, P.DECLINED})

T = TimesheetStatus

TIMESHEET_TRANSITIONS: dict[str, dict[TimesheetStatus, TimesheetStatus]] = {
    "submit": {T.DRAFT: T.PENDING_SUPERVISOR, T.REJECTED: T.PENDING_SUPERVISOR},
    "supervisor_approve": {T.PENDING_SUPERVISOR: T.PENDING_FACULTY},
    "supervisor_reject": {T.PENDING_SUPERVISOR: T.REJECTED},
    "faculty_approve": {T.PENDING_FACULTY: T.APPROVED},
    # faculty rejection sends the entry back to the supervisor stage, not the student
    "faculty_reject": {T.PENDING_FACULTY: T.PENDING_FACULTY},
}

S = SubmissionStatus

SUBMISSION_TRANSITIONS: dict[str, dict[SubmissionStatus, SubmissionStatus]] = {
    "save": {S.PENDING: S.IN_PROGRESS, S.IN_PROGRESS: S.IN_PROGRESS},
    "lock": {S.PENDING: S.LOCKED, S.IN_PROGRESS: S.LOCKED},
    "unlock": {S.LOCKED: S.IN_PROGRESS},
}


def next_status(table: dict[str, dict], enum_cls: type[Enum], action: str, current: str):
    """
    Resolve ``action`` from ``current`` through ``table``.
    Raises InvalidTransition when the pair is not in the table.
    """
    try:
        cur = enum_cls(current)
    except ValueError:
        raise InvalidTransition(
            f"Unknown status {current!r}", current_status=current, action=action
        )

    target = table[action].get(cur)
    if target is None:
        raise InvalidTransition(
            f"Cannot {action} from status {cur.value}",
            current_status=cur.value,
            action=action,
            allowed_from=sorted(s.value for s in table[action]),
        )
    return target


def source_statuses(table: dict[str, dict], action: str) -> list[str]:
    """Statuses an action may start from, as stored column values."""
    return [s.value for s in table[action]]
