import pytest

from app.core.errors import Forbidden, InvalidTransition, PreconditionFailed, ValidationFailed
from app.models.evaluation import Evaluation
from app.models.evaluation_submission import EvaluationSubmission
from app.services import evaluations as svc

from tests.helpers import count_audit, create_placement, create_user, headers

COMPLETE_ANSWERS = {
    "attendance": 5,
    "ethics": 4,
    "supervision_use": 4,
    "engagement": 3,
    "assessment": 9,
    "documentation": 5,
    "strengths": "Builds rapport quickly",
    "growth_areas": "Case notes",
}


@pytest.fixture()
def placement(db_session, people):
    return create_placement(
        db_session,
        student=people.student,
        faculty=people.faculty,
        supervisor=people.supervisor,
        site=people.site,
    )


def _submission(db, evaluation_id, role) -> EvaluationSubmission:
    return (
        db.query(EvaluationSubmission)
        .filter(EvaluationSubmission.evaluation_id == evaluation_id, EvaluationSubmission.role == role)
        .one()
    )


@pytest.fixture()
def issued(db_session, make_ctx, people, placement):
    result = svc.send_evaluation(make_ctx(people.faculty), placement.id, "MIDTERM")
    ev = result.evaluation
    return {
        "evaluation": ev,
        "student": _submission(db_session, ev.id, "STUDENT"),
        "supervisor": _submission(db_session, ev.id, "SUPERVISOR"),
    }


# --- send ---------------------------------------------------------------------

def test_send_creates_one_submission_per_role(db_session, client, people, placement, notifier):
    r = client.post(
        f"/placements/{placement.id}/evaluations",
        headers=headers(people.faculty),
        json={"type": "MIDTERM", "student_msg": "Due Friday"},
    )
    assert r.status_code == 201, r.text
    assert r.json()["created"] == 2
    assert r.json()["reused"] == 0

    student_note = notifier.to(people.student.id)[0]
    assert student_note["type"] == "EVALUATION_ISSUED"
    assert "Due Friday" in student_note["message"]
    assert notifier.to(people.supervisor.id)

    r = client.post(
        f"/placements/{placement.id}/evaluations",
        headers=headers(people.faculty),
        json={"type": "MIDTERM"},
    )
    assert r.json()["created"] == 0
    assert r.json()["reused"] == 2

    ev = db_session.query(Evaluation).filter(Evaluation.placement_id == placement.id).one()
    assert len(ev.submissions) == 2
    assert ev.student_msg == "Due Friday"
    assert count_audit(db_session, "EVALUATION_ISSUED", ev.id) == 2


def test_send_without_supervisor_issues_student_only(db_session, make_ctx, people):
    p = create_placement(db_session, student=people.student, faculty=people.faculty, site=people.site)
    result = svc.send_evaluation(make_ctx(people.faculty), p.id, "FINAL")
    assert result.created == 1
    assert [s.role for s in result.evaluation.submissions] == ["STUDENT"]


def test_send_leaves_locked_submission_alone(db_session, make_ctx, people, placement, issued):
    student_sub = issued["student"]
    svc.save_submission(make_ctx(people.student), student_sub.id, COMPLETE_ANSWERS)
    svc.lock_submission(make_ctx(people.student), student_sub.id)

    result = svc.send_evaluation(make_ctx(people.faculty), placement.id, "MIDTERM")
    assert (result.created, result.reused, result.locked) == (0, 1, 1)
    assert student_sub.status == "LOCKED"


def test_send_requires_active_placement(db_session, make_ctx, people):
    p = create_placement(db_session, student=people.student, faculty=people.faculty, site=people.site, status="PENDING")
    with pytest.raises(PreconditionFailed):
        svc.send_evaluation(make_ctx(people.faculty), p.id, "MIDTERM")


def test_only_assigned_faculty_or_admin_send(db_session, client, people, placement):
    r = client.post(
        f"/placements/{placement.id}/evaluations",
        headers=headers(people.student),
        json={"type": "MIDTERM"},
    )
    assert r.status_code == 403

    r = client.post(
        f"/placements/{placement.id}/evaluations",
        headers=headers(people.admin),
        json={"type": "FINAL"},
    )
    assert r.status_code == 201


def test_bulk_send_covers_faculty_active_placements(db_session, client, people, placement):
    other_student = create_user(db_session, "other@local.test", "Other", role="STUDENT")
    create_placement(db_session, student=other_student, faculty=people.faculty, site=people.site)
    create_placement(db_session, student=other_student, faculty=people.faculty, site=people.site, status="PENDING")

    r = client.post("/evaluations/send-bulk", headers=headers(people.faculty), json={"type": "MIDTERM"})
    assert r.status_code == 200
    assert len(r.json()) == 2

    assert client.post("/evaluations/send-bulk", headers=headers(people.student), json={"type": "MIDTERM"}).status_code == 403


# --- save ---------------------------------------------------------------------

def test_save_merges_answers(db_session, make_ctx, people, issued):
    sub = issued["student"]
    ctx = make_ctx(people.student)

    svc.save_submission(ctx, sub.id, {"attendance": 1})
    svc.save_submission(ctx, sub.id, {"ethics": 2})

    assert sub.answers == {"attendance": 1, "ethics": 2}
    assert sub.status == "IN_PROGRESS"
    assert sub.submitted_by_id == people.student.id
    assert sub.last_saved_at is not None


def test_save_over_http_with_etag(db_session, client, people, issued):
    sub = issued["supervisor"]

    r = client.get(f"/evaluations/submissions/{sub.id}", headers=headers(people.supervisor))
    assert r.status_code == 200
    etag = r.headers["ETag"]

    r = client.put(
        f"/evaluations/submissions/{sub.id}/answers",
        headers={**headers(people.supervisor), "If-Match": etag},
        json={"answers": {"attendance": 4, "strengths": "Reliable"}},
    )
    assert r.status_code == 200, r.text
    assert r.json()["answers"] == {"attendance": 4, "strengths": "Reliable"}
    assert r.headers["ETag"] != etag

    # reusing the old version is a conflict
    r = client.put(
        f"/evaluations/submissions/{sub.id}/answers",
        headers={**headers(people.supervisor), "If-Match": etag},
        json={"answers": {"attendance": 5}},
    )
    assert r.status_code == 409
    assert r.json()["error"] == "stale_version"


def test_save_rejects_bad_option_code(db_session, make_ctx, people, issued):
    with pytest.raises(ValidationFailed):
        svc.save_submission(make_ctx(people.student), issued["student"].id, {"attendance": 6})


def test_student_cannot_touch_supervisor_submission(db_session, make_ctx, people, issued):
    sub = issued["supervisor"]
    with pytest.raises(Forbidden):
        svc.save_submission(make_ctx(people.student), sub.id, {"attendance": 1})
    with pytest.raises(Forbidden):
        svc.lock_submission(make_ctx(people.student), sub.id)
    assert sub.status == "PENDING"


# --- lock / unlock ------------------------------------------------------------

def test_lock_lists_every_missing_field(db_session, client, people, issued):
    sub = issued["student"]
    client.put(
        f"/evaluations/submissions/{sub.id}/answers",
        headers=headers(people.student),
        json={"answers": {"attendance": 5, "ethics": 4}},
    )

    r = client.post(f"/evaluations/submissions/{sub.id}/lock", headers=headers(people.student))
    assert r.status_code == 422
    body = r.json()
    assert body["error"] == "validation_failed"
    assert body["details"]["missing_fields"] == [
        "Professionalism: Uses supervision effectively",
        "Practice Skills: Engagement with clients",
        "Practice Skills: Assessment skills",
        "Practice Skills: Documentation quality",
        "Summary: Strengths",
        "Summary: Areas for growth",
    ]
    assert sub.status == "IN_PROGRESS"


def test_lock_preview_matches_lock(db_session, client, people, issued):
    sub = issued["student"]
    r = client.get(f"/evaluations/submissions/{sub.id}/lock-preview", headers=headers(people.faculty))
    assert r.status_code == 200
    body = r.json()
    assert body["valid"] is False
    assert len(body["missing_fields"]) == 8
    assert sub.status == "PENDING"


def test_lock_then_unlock(db_session, client, make_ctx, people, issued, notifier):
    sub = issued["student"]
    svc.save_submission(make_ctx(people.student), sub.id, COMPLETE_ANSWERS)

    r = client.post(f"/evaluations/submissions/{sub.id}/lock", headers=headers(people.student))
    assert r.status_code == 200, r.text
    assert r.json()["status"] == "LOCKED"
    assert r.json()["locked_at"] is not None

    submitted = [n for n in notifier.sent if n["type"] == "EVALUATION_SUBMITTED"]
    assert {(n["user_id"], n["priority"]) for n in submitted} == {
        (people.student.id, "LOW"),
        (people.faculty.id, "MEDIUM"),
    }
    assert count_audit(db_session, "EVALUATION_SUBMITTED", sub.id) == 1

    # locked: no more edits, no second lock
    with pytest.raises(InvalidTransition):
        svc.save_submission(make_ctx(people.student), sub.id, {"strengths": "changed"})
    with pytest.raises(InvalidTransition):
        svc.lock_submission(make_ctx(people.student), sub.id)

    assert client.post(f"/evaluations/submissions/{sub.id}/unlock", headers=headers(people.faculty)).status_code == 403

    r = client.post(f"/evaluations/submissions/{sub.id}/unlock", headers=headers(people.admin))
    assert r.status_code == 200
    assert r.json()["status"] == "IN_PROGRESS"
    assert r.json()["locked_at"] is None
    assert count_audit(db_session, "EVALUATION_UNLOCKED", sub.id) == 1


def test_unlock_requires_locked_submission(db_session, make_ctx, people, issued):
    with pytest.raises(InvalidTransition):
        svc.unlock_submission(make_ctx(people.admin), issued["student"].id)


def test_list_evaluations_for_placement(db_session, client, people, placement, issued):
    r = client.get(f"/placements/{placement.id}/evaluations", headers=headers(people.student))
    assert r.status_code == 200
    body = r.json()
    assert len(body) == 1
    assert body[0]["type"] == "MIDTERM"
    assert {s["role"] for s in body[0]["submissions"]} == {"STUDENT", "SUPERVISOR"}


def test_form_is_served(client, people):
    r = client.get("/evaluations/form", headers=headers(people.student))
    assert r.status_code == 200
    assert [p["id"] for p in r.json()["pages"]] == ["professionalism", "practice_skills", "summary"]
