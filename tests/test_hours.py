from datetime import datetime, timedelta, timezone
from decimal import Decimal
from zoneinfo import ZoneInfo

from app.core.config import settings
from app.services.hours import approved_hours, fmt_hours, hours_summary, local_today, pending_hours

from tests.helpers import create_entry, create_placement


def test_approved_hours_counts_only_faculty_approved(db_session, people):
    p = create_placement(db_session, student=people.student, faculty=people.faculty, site=people.site, required_hours=40)
    today = local_today()
    create_entry(db_session, p, day=today, hours="8", stage="APPROVED")
    create_entry(db_session, p, day=today, hours="4.25", stage="APPROVED")
    create_entry(db_session, p, day=today, hours="3", stage="PENDING_FACULTY")
    create_entry(db_session, p, day=today, hours="2", stage="PENDING_SUPERVISOR")
    create_entry(db_session, p, day=today, hours="1")

    assert approved_hours(db_session, p.id) == Decimal("12.25")
    assert pending_hours(db_session, p.id) == Decimal("5")

    summary = hours_summary(db_session, p)
    assert summary.remaining == Decimal("27.75")


def test_approved_hours_for_empty_placement_is_zero(db_session, people):
    p = create_placement(db_session, student=people.student, faculty=people.faculty, site=people.site)
    assert approved_hours(db_session, p.id) == Decimal("0")


def test_local_today_uses_configured_zone(monkeypatch):
    monkeypatch.setattr(settings, "LOCAL_TIMEZONE", "America/Los_Angeles")
    # 03:00 UTC is still the previous evening on the west coast
    now = datetime(2024, 3, 2, 3, 0, tzinfo=timezone.utc)
    assert local_today(now).isoformat() == "2024-03-01"
    assert settings.local_tz == ZoneInfo("America/Los_Angeles")



def test_placement_fixture_dates_follow_configured_zone(monkeypatch, db_session, people):
    monkeypatch.setattr(settings, "LOCAL_TIMEZONE", "Pacific/Kiritimati")
    p = create_placement(db_session, student=people.student, faculty=people.faculty, site=people.site)
    assert p.start_date == local_today() - timedelta(days=90)
    assert p.end_date == local_today() + timedelta(days=30)

def test_fmt_hours():
    assert fmt_hours(Decimal("7.50")) == "7.5"
    assert fmt_hours(Decimal("10.00")) == "10"
