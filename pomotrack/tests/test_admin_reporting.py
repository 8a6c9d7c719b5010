"""Admin reporting service without the HTTP layer."""

from datetime import datetime, timedelta, timezone

from pomotrack.features.admin import service as admin_service
from pomotrack.features.presence import service as presence
from pomotrack.features.sessions.service import record_session
from pomotrack.models.presence import PresenceStatus


def test_status_reflects_timer_state(make_user):
    now = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)
    make_user("running")
    make_user("recent")
    make_user("idle")
    make_user("never")

    presence.start("running", now=now - timedelta(minutes=40))
    presence.stop("recent", now=now - timedelta(minutes=2))
    record_session("idle", "focus", 600, completed_at=now - timedelta(days=3))

    page = admin_service.list_users(sort="display_name", order="asc", now=now)
    status = {u.user_id: u.stats.status for u in page.users}
    assert status == {
        "running": PresenceStatus.ACTIVE,
        "recent": PresenceStatus.RECENTLY_ACTIVE,
        "idle": PresenceStatus.INACTIVE,
        "never": PresenceStatus.DORMANT,
    }


def test_days_since_last_active(make_user):
    now = datetime(2024, 6, 10, 12, 0, tzinfo=timezone.utc)
    make_user("someone")
    record_session("someone", "focus", 600, completed_at=datetime(2024, 6, 7, 12, 0, tzinfo=timezone.utc))

    summary = admin_service.list_users(now=now).users[0]
    assert summary.stats.days_since_last_active == 3
    assert summary.stats.first_session_at == datetime(2024, 6, 7, 12, 0, tzinfo=timezone.utc)


def test_overview_active_windows(make_user):
    now = datetime(2024, 6, 30, 12, 0, tzinfo=timezone.utc)
    make_user("weekly")
    make_user("monthly")
    record_session("weekly", "focus", 600, completed_at=now - timedelta(days=2))
    record_session("monthly", "focus", 600, completed_at=now - timedelta(days=20))

    stats = admin_service.overview(now=now)
    assert stats.active_users_7d == 1
    assert stats.active_users_30d == 2
    assert stats.peak_usage_hour == 17  # 12:00 UTC is 17:30 IST


def test_overview_empty_platform():
    stats = admin_service.overview()
    assert stats.total_users == 0
    assert stats.total_sessions == 0
    assert stats.avg_session_minutes == 0.0
    assert stats.peak_usage_hour is None


def test_timeline_counts_per_day(make_user):
    now = datetime(2024, 6, 30, 12, 0, tzinfo=timezone.utc)
    make_user("t1")
    record_session("t1", "focus", 600, completed_at=now - timedelta(days=1))
    record_session("t1", "break", 300, completed_at=now - timedelta(days=1))
    record_session("t1", "focus", 900, completed_at=now)

    days = admin_service.timeline(days=3, now=now)
    assert [d.day for d in days] == ["2024-06-28", "2024-06-29", "2024-06-30"]
    assert [(d.sessions, d.focus_seconds) for d in days] == [(0, 0), (2, 600), (1, 900)]


def test_timeline_window_starts_at_local_midnight(make_user):
    now = datetime(2024, 6, 30, 12, 0, tzinfo=timezone.utc)
    make_user("edge")
    # 18:30 UTC on the 27th is midnight IST on the 28th
    record_session("edge", "focus", 60, completed_at=datetime(2024, 6, 27, 18, 29, tzinfo=timezone.utc))
    record_session("edge", "focus", 120, completed_at=datetime(2024, 6, 27, 18, 30, tzinfo=timezone.utc))

    days = admin_service.timeline(days=3, now=now)
    assert (days[0].day, days[0].sessions, days[0].focus_seconds) == ("2024-06-28", 1, 120)
    assert sum(d.sessions for d in days) == 1
