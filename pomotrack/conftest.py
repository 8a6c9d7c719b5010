# pomotrack/conftest.py
import os
import tempfile
from pathlib import Path

import pytest

# Settings are read at import time, so the test environment goes in first
_TMP_DIR = Path(tempfile.mkdtemp(prefix="pomotrack-tests-"))
os.environ["ENV"] = "test"
os.environ.setdefault("TEST_DATABASE_URL", f"sqlite:///{_TMP_DIR / 'pomotrack.db'}")
os.environ["ALLOW_HEADER_AUTH"] = "true"
os.environ["JWT_SECRET"] = "test-secret-key-for-pomotrack-tests"
os.environ["ADMIN_USER_IDS"] = "admin-user"
os.environ["ADMIN_EMAILS"] = "owner@example.com"
os.environ["BUCKET_TZ_OFFSET_MINUTES"] = "330"
os.environ.pop("DATABASE_URL", None)


@pytest.fixture(scope="session", autouse=True)
def create_tables():
    """Create all database tables once per test session."""
    from pomotrack.core.database import create_all_tables, dispose_engine

    create_all_tables()
    yield
    dispose_engine()


@pytest.fixture(scope="function", autouse=True)
def reset_db():
    """
    Empty every table before each test so each test starts from a clean slate.
    """
    from sqlalchemy import delete
    from pomotrack.core.database import get_engine, metadata

    engine = get_engine()
    with engine.begin() as conn:
        for table in reversed(metadata.sorted_tables):
            conn.execute(delete(table))
    yield


@pytest.fixture
def client():
    from fastapi.testclient import TestClient
    from pomotrack.main import app

    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def make_user():
    """Create a user record and return its id."""
    from pomotrack.features.users.service import get_or_create_user

    def _make(user_id: str = "user-1", **kwargs) -> str:
        get_or_create_user(user_id, **kwargs)
        return user_id

    return _make
