"""
Liveness, readiness and database diagnostics.

Nothing here reveals connection strings or secrets.
"""

import logging
import time
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import APIRouter, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy import inspect

from pomotrack.core.database import check_connection, get_engine
from pomotrack.core.logging import get_request_id, latency_bucket_ms

logger = logging.getLogger("pomotrack")

router = APIRouter(prefix="/api/health", tags=["health"])
root_router = APIRouter(tags=["health"])

REQUIRED_TABLES = [
    "app_users",
    "focus_sessions",
    "daily_aggregates",
    "browse_stats",
]


class DBHealth(BaseModel):
    connected: bool
    latency_ms: Optional[float] = None  # omitted when the caller pins ``now``
    tables_present: List[str] = []


class HealthResponse(BaseModel):
    ok: bool
    db: DBHealth
    computed_at: str


def _tables_present(engine) -> List[str]:
    inspector = inspect(engine)
    return sorted(name for name in REQUIRED_TABLES if inspector.has_table(name))


def _not_ready(detail: str) -> JSONResponse:
    return JSONResponse(status_code=503, content={"status": "error", "detail": detail})


@root_router.get("/healthz")
def healthz():
    """Process is up. Touches nothing else."""
    return {"status": "ok"}


@root_router.get("/readyz")
def readyz():
    """Ready once the database answers and every table exists."""
    try:
        engine = get_engine()
        with engine.connect() as conn:
            conn.exec_driver_sql("SELECT 1")
        present = _tables_present(engine)
    except Exception as exc:
        logger.error("readyz.unreachable", extra={"error": str(exc)})
        return _not_ready("database unreachable")

    missing = [name for name in REQUIRED_TABLES if name not in present]
    if missing:
        detail = f"missing tables: {', '.join(missing)}"
        logger.warning("readyz.missing_tables", extra={"missing": ",".join(missing)})
        return _not_ready(detail)
    return {"status": "ok"}


@router.get("/db", response_model=HealthResponse)
def health_db(now: Optional[str] = Query(None)):
    """Connectivity, latency and table presence.

    Passing ``now`` pins ``computed_at`` and drops the latency figure so the
    response is reproducible.
    """
    started = time.perf_counter()
    connected = check_connection()
    elapsed_ms = (time.perf_counter() - started) * 1000

    tables: List[str] = []
    if connected:
        try:
            tables = _tables_present(get_engine())
        except Exception as exc:
            logger.warning("health.tables_failed", extra={"error": str(exc)})

    logger.info(
        "health.db",
        extra={
            "request_id": get_request_id(),
            "ok": connected,
            "latency_bucket": latency_bucket_ms(None if now else elapsed_ms),
        },
    )
    return HealthResponse(
        ok=connected,
        db=DBHealth(connected=connected, latency_ms=None if now else elapsed_ms, tables_present=tables),
        computed_at=now or datetime.now(timezone.utc).isoformat(),
    )
