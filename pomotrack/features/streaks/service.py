from __future__ import annotations

from typing import Iterable, Optional

from sqlalchemy import and_, select, update
from sqlalchemy.orm import Session

from pomotrack.core.calendar import days_between
from pomotrack.core.config import settings
from pomotrack.core.database import get_db_session, users as app_users
from pomotrack.core.errors import ConflictError, UserNotFoundError
from pomotrack.core.logging import log_event
from pomotrack.features.aggregates.service import list_active_days
from pomotrack.models.streak import StreakState, StreakView


def advance_streak(state: StreakState, today: str) -> StreakState:
    """Apply one qualifying focus session on ``today`` to ``state``.

    Same day is a no-op, the next day extends the run, anything else starts a
    new run of 1. A day before ``last_active_day`` (back-dated save) is a no-op.
    """
    if state.last_active_day is None:
        return StreakState(
            current_streak=1,
            longest_streak=max(state.longest_streak, 1),
            last_active_day=today,
        )

    gap = days_between(state.last_active_day, today)
    if gap <= 0:
        return state
    if gap == 1:
        current = state.current_streak + 1
        return StreakState(
            current_streak=current,
            longest_streak=max(state.longest_streak, current),
            last_active_day=today,
        )
    return StreakState(
        current_streak=1,
        longest_streak=max(state.longest_streak, 1),
        last_active_day=today,
    )


def derive_streak(days: Iterable[str]) -> StreakState:
    """Rebuild streak state from the set of days with focus activity."""
    state = StreakState()
    for day in sorted(set(days)):
        state = advance_streak(state, day)
    return state


def _read_state(session: Session, user_id: str):
    row = session.execute(
        select(
            app_users.c.current_streak,
            app_users.c.longest_streak,
            app_users.c.last_active_day,
            app_users.c.streak_version,
        ).where(app_users.c.user_id == user_id)
    ).first()
    if row is None:
        raise UserNotFoundError(f"User {user_id} not found")
    state = StreakState(
        current_streak=row.current_streak or 0,
        longest_streak=row.longest_streak or 0,
        last_active_day=row.last_active_day,
    )
    return state, row.streak_version or 0


def load_streak(session: Session, user_id: str) -> StreakState:
    state, _ = _read_state(session, user_id)
    return state


def _write_state(session: Session, user_id: str, state: StreakState, expected_version: int) -> bool:
    result = session.execute(
        update(app_users)
        .where(and_(app_users.c.user_id == user_id, app_users.c.streak_version == expected_version))
        .values(
            current_streak=state.current_streak,
            longest_streak=state.longest_streak,
            last_active_day=state.last_active_day,
            streak_version=expected_version + 1,
        )
    )
    return result.rowcount == 1


def evaluate_streak(session: Session, user_id: str, today: str, *, retries: Optional[int] = None) -> StreakState:
    """Advance the stored streak for a focus session on ``today``.

    Read-compute-write guarded by ``streak_version``; a concurrent writer makes
    the conditional update miss and the transition is recomputed from the
    fresh row.
    """
    attempts = 1 + (settings.STREAK_WRITE_RETRIES if retries is None else retries)
    for _ in range(attempts):
        state, version = _read_state(session, user_id)
        nxt = advance_streak(state, today)
        if nxt == state:
            return state
        if _write_state(session, user_id, nxt, version):
            log_event(
                "info",
                "streak.advanced",
                user_id=user_id,
                event_type="streak.advanced",
                extra={"day": today, "current": nxt.current_streak, "longest": nxt.longest_streak},
            )
            return nxt
    raise ConflictError("Streak was updated concurrently; please retry")


def to_view(user_id: str, state: StreakState) -> StreakView:
    return StreakView(
        user_id=user_id,
        current_streak=state.current_streak,
        longest_streak=state.longest_streak,
        last_active_day=state.last_active_day,
    )


def get_streak(user_id: str) -> StreakView:
    with get_db_session() as session:
        state, _ = _read_state(session, user_id)
    return to_view(user_id, state)


def reconcile_streak(user_id: str) -> StreakView:
    """Overwrite the stored streak with the one derived from daily aggregates."""
    with get_db_session() as session:
        stored, version = _read_state(session, user_id)
        derived = derive_streak(list_active_days(user_id, session=session))
        if derived != stored and not _write_state(session, user_id, derived, version):
            raise ConflictError("Streak was updated concurrently; please retry")

    log_event(
        "info",
        "streak.reconciled",
        user_id=user_id,
        event_type="streak.reconciled",
        extra={"changed": derived != stored, "current": derived.current_streak, "longest": derived.longest_streak},
    )
    return to_view(user_id, derived)
