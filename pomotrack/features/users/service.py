"""
User domain service.
- get_or_create_user(user_id)
- get_user(user_id)
- normalize_display_name()
"""

from typing import Optional
from sqlalchemy import select, update

from pomotrack.core.calendar import ensure_utc, utc_now
from pomotrack.core.database import get_db_session, upsert, users as app_users
from pomotrack.core.logging import log_event
from pomotrack.models.user import User


def normalize_display_name(user_id: str, display_name: Optional[str]) -> str:
    return User.normalized_display_name(user_id, display_name)


def row_to_user(row) -> User:
    return User(
        user_id=row.user_id,
        created_at=ensure_utc(row.created_at),
        email=row.email,
        display_name=row.display_name or normalize_display_name(row.user_id, None),
        current_streak=row.current_streak or 0,
        longest_streak=row.longest_streak or 0,
        last_active_day=row.last_active_day,
        pomodoro_running=bool(row.pomodoro_running),
        pomodoro_started_at=ensure_utc(row.pomodoro_started_at),
        last_pomodoro_at=ensure_utc(row.last_pomodoro_at),
        last_presence_day=row.last_presence_day,
    )


def get_user(user_id: str) -> Optional[User]:
    with get_db_session() as session:
        row = session.execute(select(app_users).where(app_users.c.user_id == user_id)).first()
        if not row:
            return None
        return row_to_user(row)


def get_or_create_user(user_id: str, *, email: Optional[str] = None, display_name: Optional[str] = None) -> User:
    """Idempotent: concurrent first requests for the same user create one row."""
    now = utc_now()
    with get_db_session() as session:
        stmt = upsert(session, app_users).values(
            user_id=user_id,
            email=email,
            display_name=normalize_display_name(user_id, display_name),
            created_at=now,
        ).on_conflict_do_nothing(index_elements=[app_users.c.user_id])
        created = session.execute(stmt).rowcount == 1

        row = session.execute(select(app_users).where(app_users.c.user_id == user_id)).first()

        # Keep identity fields fresh when the token carries newer values
        patch = {}
        if email and row.email != email:
            patch["email"] = email
        if display_name and display_name.strip() and row.display_name != display_name.strip():
            patch["display_name"] = display_name.strip()
        if patch:
            session.execute(update(app_users).where(app_users.c.user_id == user_id).values(**patch))
            row = session.execute(select(app_users).where(app_users.c.user_id == user_id)).first()

    if created:
        log_event("info", "user.created", user_id=user_id, event_type="user.created")
    return row_to_user(row)
