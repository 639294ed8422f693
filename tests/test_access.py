"""
Authorization predicates are pure: no database needed.
"""
import uuid

from app.core import access
from app.models.placement import Placement

STUDENT = uuid.uuid4()
SUPERVISOR = uuid.uuid4()
FACULTY = uuid.uuid4()
OTHER = uuid.uuid4()


def _placement(supervisor_id=SUPERVISOR) -> Placement:
    return Placement(
        id=uuid.uuid4(),
        student_id=STUDENT,
        supervisor_id=supervisor_id,
        faculty_id=FACULTY,
        status="ACTIVE",
    )


def test_only_assigned_faculty_or_admin_decide_placements():
    p = _placement()
    assert access.can_decide_placement("FACULTY", FACULTY, p)
    assert access.can_decide_placement("ADMIN", OTHER, p)
    assert not access.can_decide_placement("FACULTY", OTHER, p)
    assert not access.can_decide_placement("STUDENT", STUDENT, p)
    assert not access.can_decide_placement("SUPERVISOR", SUPERVISOR, p)


def test_unarchive_is_admin_only():
    p = _placement()
    assert access.can_unarchive_placement("ADMIN", OTHER, p)
    assert not access.can_unarchive_placement("FACULTY", FACULTY, p)


def test_students_apply_only_for_themselves():
    assert access.can_apply_for_placement("STUDENT", STUDENT, STUDENT)
    assert not access.can_apply_for_placement("STUDENT", STUDENT, OTHER)
    assert access.can_apply_for_placement("FACULTY", FACULTY, STUDENT)
    assert not access.can_apply_for_placement("SUPERVISOR", SUPERVISOR, STUDENT)


def test_view_placement_by_relationship():
    p = _placement()
    assert access.can_view_placement("STUDENT", STUDENT, p)
    assert not access.can_view_placement("STUDENT", OTHER, p)
    assert access.can_view_placement("SUPERVISOR", SUPERVISOR, p)
    assert not access.can_view_placement("SUPERVISOR", OTHER, p)
    assert access.can_view_placement("FACULTY", OTHER, p)


def test_only_owning_student_logs_hours():
    p = _placement()
    assert access.can_log_hours("STUDENT", STUDENT, p)
    assert not access.can_log_hours("STUDENT", OTHER, p)
    assert not access.can_log_hours("ADMIN", OTHER, p)


def test_supervisor_decision_requires_assigned_supervisor():
    assert access.can_supervisor_decide("SUPERVISOR", SUPERVISOR, _placement())
    assert not access.can_supervisor_decide("SUPERVISOR", OTHER, _placement())
    assert not access.can_supervisor_decide("SUPERVISOR", SUPERVISOR, _placement(supervisor_id=None))


def test_admin_may_act_as_faculty_on_timesheets():
    p = _placement()
    assert access.can_faculty_decide("ADMIN", OTHER, p)
    assert access.can_faculty_decide("FACULTY", FACULTY, p)
    assert not access.can_faculty_decide("FACULTY", OTHER, p)


def test_submission_ownership_follows_submission_role():
    p = _placement()
    assert access.owns_submission("STUDENT", STUDENT, "STUDENT", p)
    assert not access.owns_submission("STUDENT", STUDENT, "SUPERVISOR", p)
    assert access.owns_submission("SUPERVISOR", SUPERVISOR, "SUPERVISOR", p)
    assert not access.owns_submission("ADMIN", OTHER, "STUDENT", p)


def test_faculty_and_admin_can_read_submissions_but_only_admin_unlocks():
    p = _placement()
    assert access.can_view_submission("FACULTY", FACULTY, "STUDENT", p)
    assert access.can_view_submission("ADMIN", OTHER, "SUPERVISOR", p)
    assert not access.can_view_submission("STUDENT", STUDENT, "SUPERVISOR", p)
    assert access.can_unlock_submission("ADMIN", OTHER, p)
    assert not access.can_unlock_submission("FACULTY", FACULTY, p)
