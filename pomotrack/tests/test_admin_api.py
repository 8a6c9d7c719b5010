"""Admin policy and admin dashboard routes."""

from datetime import datetime, timedelta, timezone

import pytest

from pomotrack.core.admin_auth import AdminPolicy, get_admin_policy
from pomotrack.core.auth import Principal, create_session_token
from pomotrack.features.browsing.service import record_visit
from pomotrack.features.sessions.service import record_session
from pomotrack.main import app

ADMIN = {"X-User-Id": "admin-user"}
REGULAR = {"X-User-Id": "regular-user"}

ADMIN_ROUTES = [
    ("get", "/api/admin/stats"),
    ("get", "/api/admin/users"),
    ("get", "/api/admin/users/regular-user"),
    ("get", "/api/admin/leaderboard"),
    ("get", "/api/admin/session-analytics"),
    ("get", "/api/admin/timeline"),
    ("post", "/api/admin/users/regular-user/streak/reconcile"),
]


def _seed(make_user):
    base = datetime(2024, 4, 1, 6, 0, tzinfo=timezone.utc)
    make_user("alice", email="alice@example.com", display_name="Alice")
    make_user("bob", email="bob@example.com", display_name="Bob")
    for offset in range(3):
        record_session("alice", "focus", 1500, completed_at=base + timedelta(days=offset))
    record_session("alice", "break", 300, completed_at=base)
    record_session("bob", "focus", 3000, completed_at=base)
    record_session("bob", "focus", 3000, completed_at=base + timedelta(hours=1))
    record_session("bob", "focus", 3000, completed_at=base + timedelta(hours=2))
    record_session("bob", "focus", 3000, completed_at=base + timedelta(hours=3))
    record_session("bob", "break", 300, completed_at=base + timedelta(hours=4))
    record_visit("alice", "example.com")
    record_visit("alice", "example.com")
    record_visit("alice", "python.org")


@pytest.mark.parametrize("method,path", ADMIN_ROUTES)
def test_non_admin_is_forbidden(client, method, path):
    resp = getattr(client, method)(path, headers=REGULAR)
    assert resp.status_code == 403
    assert resp.json()["error"]["code"] == "forbidden"


@pytest.mark.parametrize("method,path", ADMIN_ROUTES)
def test_admin_routes_require_auth(client, method, path):
    assert getattr(client, method)(path).status_code == 401


def test_admin_by_email_allowlist(client):
    token = create_session_token("owner", email="Owner@Example.com")
    resp = client.get("/api/admin/stats", headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 200


def test_admin_by_role_claim(client):
    token = create_session_token("ops", role="admin")
    resp = client.get("/api/admin/stats", headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 200


def test_policy_can_be_swapped(client):
    app.dependency_overrides[get_admin_policy] = lambda: AdminPolicy(user_ids=frozenset({"regular-user"}))
    assert client.get("/api/admin/stats", headers=REGULAR).status_code == 200
    assert client.get("/api/admin/stats", headers=ADMIN).status_code == 403


def test_policy_checks():
    policy = AdminPolicy(user_ids=frozenset({"a"}), emails=frozenset({"boss@example.com"}))
    assert policy.allows(Principal(user_id="a"))
    assert policy.allows(Principal(user_id="b", email="BOSS@example.com"))
    assert policy.allows(Principal(user_id="c"), stored_email="boss@example.com")
    assert policy.allows(Principal(user_id="d", role="admin"))
    assert not policy.allows(Principal(user_id="e", email="someone@example.com", role="user"))


def test_stats(client, make_user):
    _seed(make_user)
    body = client.get("/api/admin/stats", headers=ADMIN).json()
    # alice, bob and the admin caller
    assert body["total_users"] == 3
    assert body["total_sessions"] == 9
    assert body["total_focus_seconds"] == 4500 + 12000
    assert body["total_break_seconds"] == 600
    assert body["avg_session_minutes"] == round((16500 / 7) / 60, 2)
    assert body["new_users_week"] == 3


def test_user_list_sorting_and_paging(client, make_user):
    _seed(make_user)
    resp = client.get("/api/admin/users", headers=ADMIN, params={"sort": "total_focus_seconds", "order": "desc"})
    assert resp.status_code == 200
    page = resp.json()
    assert page["total"] == 3
    assert [u["user_id"] for u in page["users"]] == ["bob", "alice", "admin-user"]

    bob = page["users"][0]
    assert bob["stats"]["total_focus_seconds"] == 12000
    assert bob["stats"]["total_focus_hours"] == 3.33
    assert bob["stats"]["active_days"] == 1
    assert bob["stats"]["total_sessions"] == 5
    assert bob["stats"]["status"] == "Dormant"

    alice = page["users"][1]
    assert alice["stats"]["current_streak"] == 3
    assert alice["stats"]["total_sessions"] == 4
    assert alice["stats"]["avg_session_minutes"] == 25.0

    streak_sorted = client.get(
        "/api/admin/users", headers=ADMIN, params={"sort": "current_streak", "limit": 1}
    ).json()
    assert streak_sorted["limit"] == 1
    assert [u["user_id"] for u in streak_sorted["users"]] == ["alice"]

    asc = client.get("/api/admin/users", headers=ADMIN, params={"sort": "total_sessions", "order": "asc", "offset": 1}).json()
    assert [u["user_id"] for u in asc["users"]] == ["alice", "bob"]


@pytest.mark.parametrize("params", [{"sort": "password"}, {"order": "sideways"}, {"limit": 0}, {"offset": -1}])
def test_user_list_rejects_bad_params(client, params):
    resp = client.get("/api/admin/users", headers=ADMIN, params=params)
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "validation_error"


def test_user_detail(client, make_user):
    _seed(make_user)
    body = client.get("/api/admin/users/alice", headers=ADMIN).json()
    assert body["user"]["email"] == "alice@example.com"
    assert len(body["sessions"]) == 4
    assert [d["day"] for d in body["daily_stats"]] == ["2024-04-03", "2024-04-02", "2024-04-01"]
    top = body["browsing"]["top_sites"][0]
    assert (top["domain"], top["count"]) == ("example.com", 2)
    assert body["browsing"]["last_site"]["domain"] == "python.org"

    missing = client.get("/api/admin/users/nobody", headers=ADMIN)
    assert missing.status_code == 404
    assert missing.json()["error"]["code"] == "user_not_found"


def test_leaderboard(client, make_user):
    _seed(make_user)
    body = client.get("/api/admin/leaderboard", headers=ADMIN).json()
    assert body["top_by_focus_time"][0]["user_id"] == "bob"
    assert body["top_by_sessions"][0]["user_id"] == "bob"
    assert body["top_by_streak"][0]["user_id"] == "alice"
    assert len(body["top_by_focus_time"]) <= 10


def test_session_analytics(client, make_user):
    _seed(make_user)
    body = client.get("/api/admin/session-analytics", headers=ADMIN).json()
    assert body["kind_distribution"]["focus"] == {"count": 7, "total_seconds": 16500}
    assert body["kind_distribution"]["break"] == {"count": 2, "total_seconds": 600}
    # 06:00 UTC is 11:30 IST
    assert body["sessions_by_hour"]["11"] == 5
    # 2024-04-01 is a Monday
    assert body["sessions_by_weekday"]["Mon"]["count"] == 7
    assert sum(v["count"] for v in body["sessions_by_weekday"].values()) == 9


def test_timeline(client, make_user):
    make_user("fresh")
    body = client.get("/api/admin/timeline", headers=ADMIN, params={"days": 7}).json()
    assert len(body["days"]) == 7
    assert body["days"][-1]["new_users"] == 2  # fresh + the admin caller

    resp = client.get("/api/admin/timeline", headers=ADMIN, params={"days": 0})
    assert resp.status_code == 400


def test_reconcile_endpoint(client, make_user):
    _seed(make_user)
    resp = client.post("/api/admin/users/alice/streak/reconcile", headers=ADMIN)
    assert resp.status_code == 200
    assert resp.json()["current_streak"] == 3
    assert resp.json()["longest_streak"] == 3

    missing = client.post("/api/admin/users/nobody/streak/reconcile", headers=ADMIN)
    assert missing.status_code == 404
