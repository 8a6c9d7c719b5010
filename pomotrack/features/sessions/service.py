"""
Session ledger.

Records completed focus/break intervals. A focus save also increments the
user's daily aggregate and advances the streak; every save marks the timer
stopped. All of these writes share one transaction, so the ledger, the daily
totals and the streak never disagree after a failed save.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, List, Optional

from sqlalchemy import func, insert, select, update

from pomotrack.core.calendar import calendar_day, ensure_utc, utc_now
from pomotrack.core.database import focus_sessions, get_db_session, users as app_users
from pomotrack.core.errors import UserNotFoundError
from pomotrack.core.logging import log_event
from pomotrack.features.aggregates.service import add_focus_seconds, get_day_total
from pomotrack.features.sessions.validators import normalize_duration, validate_kind
from pomotrack.features.streaks.service import evaluate_streak, load_streak, to_view
from pomotrack.models.session import SavedSession, SessionRecord


def row_to_record(row) -> SessionRecord:
    return SessionRecord(
        id=row.id,
        user_id=row.user_id,
        kind=row.kind,
        duration_seconds=row.duration_seconds,
        completed_at=ensure_utc(row.completed_at),
    )


def record_session(
    user_id: str,
    kind: Any,
    duration: Any,
    completed_at: Optional[datetime] = None,
) -> SavedSession:
    """Validate and append one completed interval.

    Raises:
        InvalidSessionKindError: kind is not focus/break
        InvalidDurationError: duration is not a usable number of seconds
        UserNotFoundError: no user record for ``user_id``
    """
    kind = validate_kind(kind)
    seconds = normalize_duration(duration)
    completed = ensure_utc(completed_at) or utc_now()
    day = calendar_day(completed)

    with get_db_session() as session:
        exists = session.execute(select(app_users.c.user_id).where(app_users.c.user_id == user_id)).first()
        if exists is None:
            raise UserNotFoundError(f"User {user_id} not found")

        session_id = session.execute(
            insert(focus_sessions)
            .values(user_id=user_id, kind=kind, duration_seconds=seconds, completed_at=completed)
            .returning(focus_sessions.c.id)
        ).scalar_one()

        if kind == "focus":
            day_total = add_focus_seconds(session, user_id, day, seconds)
            streak = evaluate_streak(session, user_id, day)
        else:
            day_total = get_day_total(user_id, day, session=session)
            streak = load_streak(session, user_id)

        # Completing an interval ends the running timer
        session.execute(
            update(app_users)
            .where(app_users.c.user_id == user_id)
            .values(pomodoro_running=False, pomodoro_started_at=None, last_pomodoro_at=completed)
        )

    record = SessionRecord(
        id=session_id,
        user_id=user_id,
        kind=kind,
        duration_seconds=seconds,
        completed_at=completed,
    )
    log_event(
        "info",
        "session.saved",
        user_id=user_id,
        event_type="session.saved",
        extra={"kind": kind, "seconds": seconds, "day": day, "day_total": day_total},
    )
    return SavedSession(
        session=record,
        day=day,
        normalized_seconds=seconds,
        day_total_seconds=day_total,
        streak=to_view(user_id, streak),
    )


def list_sessions(user_id: str, limit: int = 100) -> List[SessionRecord]:
    """Most recent sessions first."""
    with get_db_session() as session:
        rows = session.execute(
            select(focus_sessions)
            .where(focus_sessions.c.user_id == user_id)
            .order_by(focus_sessions.c.completed_at.desc(), focus_sessions.c.id.desc())
            .limit(limit)
        ).all()
    return [row_to_record(row) for row in rows]


def session_totals(user_id: Optional[str] = None) -> dict:
    """Count and summed/average duration per kind, optionally for one user."""
    query = select(
        focus_sessions.c.kind,
        func.count().label("sessions"),
        func.coalesce(func.sum(focus_sessions.c.duration_seconds), 0).label("total"),
        func.avg(focus_sessions.c.duration_seconds).label("avg"),
    ).group_by(focus_sessions.c.kind)
    if user_id is not None:
        query = query.where(focus_sessions.c.user_id == user_id)

    totals = {
        kind: {"count": 0, "total_seconds": 0, "avg_seconds": 0.0}
        for kind in ("focus", "break")
    }
    with get_db_session() as session:
        for row in session.execute(query):
            totals[row.kind] = {
                "count": int(row.sessions),
                "total_seconds": int(row.total or 0),
                "avg_seconds": float(row.avg or 0),
            }
    return totals
