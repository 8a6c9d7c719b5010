"""
Timer presence: whether a user's pomodoro is running and when it was last used.

The status shown on the admin dashboard is derived at read time from
``pomodoro_running`` and ``last_pomodoro_at``; it is never stored.
"""
from __future__ import annotations

from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import select, update

from pomotrack.core.calendar import calendar_day, ensure_utc, utc_now
from pomotrack.core.database import get_db_session, users as app_users
from pomotrack.core.errors import UserNotFoundError
from pomotrack.core.logging import log_event
from pomotrack.models.presence import PresenceState, PresenceStatus

RECENT_WINDOW = timedelta(minutes=5)
INACTIVE_WINDOW = timedelta(days=30)


def classify_presence(running: bool, last_pomodoro_at: Optional[datetime], now: Optional[datetime] = None) -> PresenceStatus:
    if running:
        return PresenceStatus.ACTIVE
    if last_pomodoro_at is None:
        return PresenceStatus.DORMANT
    elapsed = (ensure_utc(now) or utc_now()) - ensure_utc(last_pomodoro_at)
    if elapsed <= RECENT_WINDOW:
        return PresenceStatus.RECENTLY_ACTIVE
    if elapsed <= INACTIVE_WINDOW:
        return PresenceStatus.INACTIVE
    return PresenceStatus.DORMANT


def _apply(user_id: str, action: str, values: dict, now: datetime) -> None:
    values = {
        **values,
        "last_pomodoro_at": now,
        "last_presence_day": calendar_day(now),
    }
    with get_db_session() as session:
        result = session.execute(update(app_users).where(app_users.c.user_id == user_id).values(**values))
        if result.rowcount == 0:
            raise UserNotFoundError(f"User {user_id} not found")
    log_event("info", f"presence.{action}", user_id=user_id, event_type=f"presence.{action}")


def start(user_id: str, now: Optional[datetime] = None) -> None:
    moment = ensure_utc(now) or utc_now()
    _apply(user_id, "start", {"pomodoro_running": True, "pomodoro_started_at": moment}, moment)


def heartbeat(user_id: str, now: Optional[datetime] = None) -> None:
    moment = ensure_utc(now) or utc_now()
    _apply(user_id, "heartbeat", {"pomodoro_running": True}, moment)


def stop(user_id: str, now: Optional[datetime] = None) -> None:
    moment = ensure_utc(now) or utc_now()
    _apply(user_id, "stop", {"pomodoro_running": False, "pomodoro_started_at": None}, moment)


def get_presence(user_id: str, now: Optional[datetime] = None) -> PresenceState:
    with get_db_session() as session:
        row = session.execute(
            select(
                app_users.c.pomodoro_running,
                app_users.c.pomodoro_started_at,
                app_users.c.last_pomodoro_at,
                app_users.c.last_presence_day,
            ).where(app_users.c.user_id == user_id)
        ).first()
    if row is None:
        raise UserNotFoundError(f"User {user_id} not found")

    last = ensure_utc(row.last_pomodoro_at)
    return PresenceState(
        user_id=user_id,
        pomodoro_running=bool(row.pomodoro_running),
        pomodoro_started_at=ensure_utc(row.pomodoro_started_at),
        last_pomodoro_at=last,
        last_presence_day=row.last_presence_day,
        status=classify_presence(bool(row.pomodoro_running), last, now),
    )
