# seed_dev.py
from datetime import date, timedelta

from sqlalchemy.orm import Session

from app.db.base import Base
from app.db.session import SessionLocal, engine
from app.models.placement import Placement
from app.models.site import Site
from app.models.user import User
from app.services.hours import local_today


# ---------- helpers ----------

def get_or_create_user(db: Session, email: str, full_name: str, role: str) -> User:
    u = db.query(User).filter(User.email == email).one_or_none()
    if u:
        # keep these up to date in dev
        changed = False
        if u.full_name != full_name:
            u.full_name = full_name
            changed = True
        if u.role != role:
            u.role = role
            changed = True
        if not u.is_active:
            u.is_active = True
            changed = True
        if changed:
            db.commit()
            db.refresh(u)
        return u

    u = User(email=email, full_name=full_name, role=role, is_active=True)
    db.add(u)
    db.commit()
    db.refresh(u)
    return u


def get_or_create_site(db: Session, name: str) -> Site:
    s = db.query(Site).filter(Site.name == name).one_or_none()
    if s:
        return s
    s = Site(name=name)
    db.add(s)
    db.commit()
    db.refresh(s)
    return s


def get_or_create_placement(
    db: Session,
    *,
    student: User,
    faculty: User,
    supervisor: User,
    site: Site,
    status: str,
    start_date: date,
    end_date: date,
    required_hours: int,
) -> Placement:
    p = (
        db.query(Placement)
        .filter(Placement.student_id == student.id, Placement.site_id == site.id)
        .one_or_none()
    )
    if p:
        return p

    p = Placement(
        student_id=student.id,
        faculty_id=faculty.id,
        supervisor_id=supervisor.id,
        site_id=site.id,
        status=status,
        start_date=start_date,
        end_date=end_date,
        required_hours=required_hours,
        cell_policy="https://files.local.test/cell-policy.pdf" if status != "PENDING" else None,
    )
    db.add(p)
    db.commit()
    db.refresh(p)
    return p


# ---------- main ----------

def main():
    # migrations are not part of this service; dev databases are created from the models
    Base.metadata.create_all(bind=engine)

    db = SessionLocal()
    try:
        admin = get_or_create_user(db, "admin@local.test", "Admin Local", "ADMIN")
        faculty = get_or_create_user(db, "faculty@local.test", "Faculty Local", "FACULTY")
        supervisor = get_or_create_user(db, "supervisor@local.test", "Supervisor Local", "SUPERVISOR")
        active_student = get_or_create_user(db, "student@local.test", "Student Local", "STUDENT")
        pending_student = get_or_create_user(db, "applicant@local.test", "Applicant Local", "STUDENT")

        clinic = get_or_create_site(db, "Riverside Community Clinic")
        school = get_or_create_site(db, "Eastside Middle School")

        today = local_today()
        active = get_or_create_placement(
            db,
            student=active_student,
            faculty=faculty,
            supervisor=supervisor,
            site=clinic,
            status="ACTIVE",
            start_date=today - timedelta(days=60),
            end_date=today + timedelta(days=60),
            required_hours=240,
        )
        pending = get_or_create_placement(
            db,
            student=pending_student,
            faculty=faculty,
            supervisor=supervisor,
            site=school,
            status="PENDING",
            start_date=today + timedelta(days=14),
            end_date=today + timedelta(days=120),
            required_hours=120,
        )

        print("\n=== DEV SEED COMPLETE ===")
        print("Users:")
        print(f"  admin:      {admin.email}")
        print(f"  faculty:    {faculty.email}")
        print(f"  supervisor: {supervisor.email}")
        print(f"  student:    {active_student.email}")
        print(f"  applicant:  {pending_student.email}")

        print("\nPlacements:")
        print(f"  active:  {active.id} (site={clinic.name})")
        print(f"  pending: {pending.id} (site={school.name})")

        print("\nNext API steps (X-User-Email header):")
        print(f"  POST /placements/{pending.id}/documents  (as {pending_student.email})")
        print(f"  POST /placements/{pending.id}/approve     (as {faculty.email})")
        print(f"  POST /placements/{active.id}/timesheet    (as {active_student.email})")
        print(f"  POST /placements/{active.id}/evaluations  (as {faculty.email})")

    finally:
        db.close()


if __name__ == "__main__":
    main()
