"""Authentication contract and normalized error responses."""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from pomotrack.core import auth as auth_module
from pomotrack.core.auth import create_session_token, verify_session_token
from pomotrack.core.errors import (
    AppError,
    ConflictError,
    StorageUnavailableError,
    UnauthenticatedError,
    app_error_handler,
    unhandled_exception_handler,
)
from pomotrack.core.middleware.request_id import RequestIdMiddleware
from pomotrack.features.users.service import get_user


def test_missing_credentials_is_401_with_standard_shape(client):
    resp = client.get("/api/streak")
    assert resp.status_code == 401
    body = resp.json()
    rid = resp.headers.get("x-request-id")
    assert body["error"]["code"] == "unauthenticated"
    assert body["error"]["request_id"] == rid
    assert body["detail"] == body["error"]["message"]


@pytest.mark.parametrize(
    "path,method",
    [
        ("/api/session", "post"),
        ("/api/dashboard/day", "get"),
        ("/api/dashboard/week", "get"),
        ("/api/dashboard/month", "get"),
        ("/api/presence/start", "post"),
        ("/api/user/browse-ping", "post"),
    ],
)
def test_every_user_route_requires_auth(client, path, method):
    resp = getattr(client, method)(path)
    assert resp.status_code == 401


def test_bearer_token_identifies_caller(client):
    token = create_session_token("token-user", email="t@example.com", name="Tess")
    resp = client.get("/api/streak", headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 200
    assert resp.json()["currentStreak"] == 0

    user = get_user("token-user")
    assert user.email == "t@example.com"
    assert user.display_name == "Tess"


def test_legacy_id_claim_is_accepted():
    import jwt
    from pomotrack.core.config import settings

    token = jwt.encode({"id": "legacy-user"}, settings.JWT_SECRET, algorithm="HS256")
    assert verify_session_token(token)["sub"] == "legacy-user"


def test_expired_and_forged_tokens_rejected(client):
    expired = create_session_token("u", expires_in_seconds=-60)
    resp = client.get("/api/streak", headers={"Authorization": f"Bearer {expired}"})
    assert resp.status_code == 401
    assert resp.json()["error"]["message"] == "Token expired"

    forged = create_session_token("u", secret="another-secret-that-is-long-enough!")
    resp = client.get("/api/streak", headers={"Authorization": f"Bearer {forged}"})
    assert resp.status_code == 401
    assert resp.json()["error"]["message"] == "Invalid token"


def test_header_auth_disabled(client, monkeypatch):
    monkeypatch.setattr(auth_module.settings, "ALLOW_HEADER_AUTH", False)
    resp = client.get("/api/streak", headers={"X-User-Id": "someone"})
    assert resp.status_code == 401


def test_token_without_subject_rejected():
    import jwt
    from pomotrack.core.config import settings

    token = jwt.encode({"email": "x@example.com"}, settings.JWT_SECRET, algorithm="HS256")
    with pytest.raises(UnauthenticatedError):
        verify_session_token(token)


def _error_app() -> FastAPI:
    app = FastAPI()
    app.add_middleware(RequestIdMiddleware)
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    @app.get("/conflict")
    def conflict():
        raise ConflictError("Streak was updated concurrently; please retry")

    @app.get("/storage")
    def storage():
        raise StorageUnavailableError("Storage is temporarily unavailable")

    @app.get("/boom")
    def boom():
        raise RuntimeError("secret internals")

    return app


def test_conflict_and_storage_errors_normalized():
    client = TestClient(_error_app())

    resp = client.get("/conflict", headers={"x-request-id": "rid-123"})
    assert resp.status_code == 409
    assert resp.headers["x-request-id"] == "rid-123"
    assert resp.json()["error"] == {
        "code": "conflict",
        "message": "Streak was updated concurrently; please retry",
        "request_id": "rid-123",
    }

    resp = client.get("/storage")
    assert resp.status_code == 503
    assert resp.json()["error"]["code"] == "storage_unavailable"


def test_unhandled_errors_hide_internals():
    client = TestClient(_error_app(), raise_server_exceptions=False)
    resp = client.get("/boom")
    assert resp.status_code == 500
    body = resp.json()
    assert body["error"]["code"] == "internal_error"
    assert "secret internals" not in resp.text
