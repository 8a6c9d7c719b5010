import pomotrack.api.health as health_api
from pomotrack.api.health import REQUIRED_TABLES


def test_healthz_always_ok(client):
    resp = client.get("/healthz")
    assert resp.status_code == 200
    assert resp.json().get("status") == "ok"


def test_readyz_ok_against_test_database(client):
    resp = client.get("/readyz")
    assert resp.status_code == 200
    assert resp.json().get("status") == "ok"


def test_readyz_reports_missing_tables(client, monkeypatch):
    class FakeInspector:
        def has_table(self, name):
            return name != "daily_aggregates"

    monkeypatch.setattr(health_api, "inspect", lambda engine: FakeInspector())

    resp = client.get("/readyz")
    assert resp.status_code == 503
    assert resp.json()["detail"] == "missing tables: daily_aggregates"


def test_readyz_handles_db_down(client, monkeypatch):
    def boom():
        raise RuntimeError("db down")

    monkeypatch.setattr(health_api, "get_engine", boom)

    resp = client.get("/readyz")
    body = resp.json()
    assert resp.status_code == 503
    assert body.get("status") == "error"
    assert "database" in body.get("detail", "")


def test_health_db_is_deterministic_with_now(client):
    resp = client.get("/api/health/db", params={"now": "2024-01-01T00:00:00+00:00"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["ok"] is True
    assert body["computed_at"] == "2024-01-01T00:00:00+00:00"
    assert body["db"]["latency_ms"] is None
    assert body["db"]["tables_present"] == sorted(REQUIRED_TABLES)
