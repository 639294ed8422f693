from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

from sqlalchemy.orm import Session

from app.models.audit_event import AuditEvent
from app.models.placement import Placement
from app.models.site import Site
from app.models.timesheet_entry import TimesheetEntry
from app.models.user import User
from app.services.hours import local_today


def headers(user: User) -> dict:
    return {"X-User-Email": user.email}


def create_user(db, email: str, full_name="User", role="STUDENT", is_active=True) -> User:
    u = User(email=email, full_name=full_name, role=role, is_active=is_active)
    db.add(u)
    db.commit()
    db.refresh(u)
    return u


def create_site(db, name: str = "Site") -> Site:
    s = Site(name=name)
    db.add(s)
    db.commit()
    db.refresh(s)
    return s


def create_placement(
    db: Session,
    *,
    student: User,
    faculty: User,
    site: Site,
    supervisor: User | None = None,
    status: str = "ACTIVE",
    required_hours: int = 16,
    start_date: date | None = None,
    end_date: date | None = None,
    cell_policy: str | None = None,
) -> Placement:
    today = local_today()
    p = Placement(
        student_id=student.id,
        faculty_id=faculty.id,
        site_id=site.id,
        supervisor_id=supervisor.id if supervisor else None,
        status=status,
        required_hours=required_hours,
        start_date=start_date or today - timedelta(days=90),
        end_date=end_date or today + timedelta(days=30),
        cell_policy=cell_policy,
    )
    if status == "ARCHIVED":
        p.archived_at = datetime.now(timezone.utc)
        p.supervisor_id = None
    if status == "DECLINED":
        p.declined_at = datetime.now(timezone.utc)
    db.add(p)
    db.commit()
    db.refresh(p)
    return p


def create_entry(
    db: Session,
    placement: Placement,
    *,
    day: date,
    hours="8",
    category: str = "DIRECT",
    stage: str = "DRAFT",
    notes: str | None = None,
) -> TimesheetEntry:
    """
    stage: DRAFT | PENDING_SUPERVISOR | PENDING_FACULTY | APPROVED
    Stamps are filled in so the row looks like it went through the pipeline.
    """
    now = datetime.now(timezone.utc)
    e = TimesheetEntry(
        placement_id=placement.id,
        date=day,
        hours=Decimal(str(hours)),
        category=category,
        notes=notes,
        status=stage,
    )
    if stage in ("PENDING_SUPERVISOR", "PENDING_FACULTY", "APPROVED"):
        e.submitted_at = now
    if stage in ("PENDING_FACULTY", "APPROVED"):
        e.supervisor_approved_at = now
        e.supervisor_approved_by = placement.supervisor_id
        e.locked = True
    if stage == "APPROVED":
        e.faculty_approved_at = now
        e.faculty_approved_by = placement.faculty_id
    db.add(e)
    db.commit()
    db.refresh(e)
    return e


def count_audit(db, action: str, entity_id=None) -> int:
    db.flush()
    q = db.query(AuditEvent).filter(AuditEvent.action == action)
    if entity_id is not None:
        q = q.filter(AuditEvent.entity_id == entity_id)
    return q.count()


class RecordingNotifier:
    """In-memory Notifier; keeps every call for assertions."""

    def __init__(self):
        self.sent: list[dict] = []

    def notify(self, **kwargs) -> None:
        self.sent.append(kwargs)

    def to(self, user_id) -> list[dict]:
        return [n for n in self.sent if n["user_id"] == user_id]

    def types(self) -> list[str]:
        return [n["type"] for n in self.sent]


class FailingNotifier:
    def notify(self, **kwargs) -> None:
        raise RuntimeError("notification backend down")
