"""
Tests for the audit trail and the admin audit listing.
"""
from datetime import timedelta

from fastapi.testclient import TestClient
from app.main import app

from app.models.audit_event import AuditEvent
from app.services.hours import local_today

from tests.helpers import create_placement, headers


def test_transition_and_audit_share_the_transaction(db_session, people):
    p = create_placement(
        db_session,
        student=people.student,
        faculty=people.faculty,
        site=people.site,
        status="PENDING",
    )

    client = TestClient(app)
    # refused transition: no audit row
    r = client.post(f"/placements/{p.id}/approve", headers=headers(people.faculty))
    assert r.status_code == 422
    assert db_session.query(AuditEvent).count() == 0

    r = client.post(
        f"/placements/{p.id}/decline",
        headers={**headers(people.faculty), "X-Forwarded-For": "203.0.113.7, 10.0.0.1"},
        json={"reason": "Not a fit"},
    )
    assert r.status_code == 200

    event = db_session.query(AuditEvent).one()
    assert event.action == "PLACEMENT_DECLINED"
    assert event.user_id == people.faculty.id
    assert event.entity_type == "placement"
    assert event.entity_id == p.id
    assert event.ip_address == "203.0.113.7"
    assert event.details["from"] == "PENDING"
    assert event.details["to"] == "DECLINED"


def test_list_audit_events_admin_only(db_session, people):
    yesterday = local_today() - timedelta(days=1)
    p = create_placement(
        db_session,
        student=people.student,
        faculty=people.faculty,
        site=people.site,
        required_hours=0,
        start_date=yesterday - timedelta(days=10),
        end_date=yesterday,
    )

    client = TestClient(app)
    assert client.post(f"/placements/{p.id}/archive", headers=headers(people.faculty)).status_code == 200

    response = client.get("/audit", headers=headers(people.faculty))
    assert response.status_code == 403

    response = client.get(
        "/audit",
        headers=headers(people.admin),
        params={"entity_type": "placement", "entity_id": str(p.id)},
    )
    assert response.status_code == 200
    events = response.json()
    assert [e["action"] for e in events] == ["PLACEMENT_ARCHIVED"]
    assert events[0]["user_id"] == str(people.faculty.id)

    response = client.get("/audit", headers=headers(people.admin), params={"action": "PLACEMENT_APPROVED"})
    assert response.json() == []
