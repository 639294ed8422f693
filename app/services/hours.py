from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
import uuid

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.states import TimesheetStatus
from app.models.placement import Placement
from app.models.timesheet_entry import TimesheetEntry


def _to_decimal(value) -> Decimal:
    if value is None:
        return Decimal("0")
    return Decimal(str(value))


def approved_hours(db: Session, placement_id: uuid.UUID) -> Decimal:
    """
    Sum of faculty-approved hours. Runs on the caller's session so it sees
    (and is serialized with) the caller's transaction.
    """
    total = (
        db.query(func.sum(TimesheetEntry.hours))
        .filter(
            TimesheetEntry.placement_id == placement_id,
            TimesheetEntry.faculty_approved_at.is_not(None),
        )
        .scalar()
    )
    return _to_decimal(total)


def pending_hours(db: Session, placement_id: uuid.UUID) -> Decimal:
    total = (
        db.query(func.sum(TimesheetEntry.hours))
        .filter(
            TimesheetEntry.placement_id == placement_id,
            TimesheetEntry.status.in_(
                [TimesheetStatus.PENDING_SUPERVISOR.value, TimesheetStatus.PENDING_FACULTY.value]
            ),
        )
        .scalar()
    )
    return _to_decimal(total)


@dataclass
class HoursSummary:
    required: int
    approved: Decimal
    pending: Decimal

    @property
    def remaining(self) -> Decimal:
        return Decimal(self.required) - self.approved


def hours_summary(db: Session, placement: Placement) -> HoursSummary:
    return HoursSummary(
        required=placement.required_hours,
        approved=approved_hours(db, placement.id),
        pending=pending_hours(db, placement.id),
    )


def local_today(now: datetime | None = None) -> date:
    """Calendar date in the configured local zone; "end of today" is its last instant."""
    now = now or datetime.now(settings.local_tz)
    return now.astimezone(settings.local_tz).date()


def fmt_hours(value) -> str:
    """7.50 -> "7.5", 8.00 -> "8"."""
    return f"{_to_decimal(value).normalize():f}"
