"""
Daily aggregate store.

One row per (user, calendar day) holding the running total of focused
seconds. Increments are a single INSERT ... ON CONFLICT DO UPDATE so two
concurrent completions for the same user-day are both counted.
"""
from __future__ import annotations

from typing import Dict, List, Optional, Tuple

from sqlalchemy import and_, func, select
from sqlalchemy.orm import Session

from pomotrack.core.calendar import parse_day, utc_now
from pomotrack.core.database import daily_aggregates, get_db_session, upsert
from pomotrack.core.logging import log_event

DayTotal = Tuple[str, int]


def add_focus_seconds(session: Session, user_id: str, day: str, seconds: int) -> int:
    """Atomically add ``seconds`` to the user-day total and return the new total.

    Runs on the caller's session so it commits with the ledger write.
    """
    if seconds < 0:
        raise ValueError("seconds must be non-negative")
    parse_day(day)

    now = utc_now()
    stmt = upsert(session, daily_aggregates).values(
        user_id=user_id,
        day=day,
        total_focus_seconds=seconds,
        updated_at=now,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=[daily_aggregates.c.user_id, daily_aggregates.c.day],
        set_={
            "total_focus_seconds": daily_aggregates.c.total_focus_seconds + stmt.excluded.total_focus_seconds,
            "updated_at": stmt.excluded.updated_at,
        },
    ).returning(daily_aggregates.c.total_focus_seconds)

    new_total = int(session.execute(stmt).scalar_one())
    log_event(
        "info",
        "aggregate.incremented",
        user_id=user_id,
        event_type="aggregate.incremented",
        extra={"day": day, "seconds": seconds, "total": new_total},
    )
    return new_total


def get_range(user_id: str, day_from: str, day_to: str) -> List[DayTotal]:
    """(day, total) rows in [day_from, day_to], ascending; missing days are absent."""
    parse_day(day_from)
    parse_day(day_to)
    with get_db_session() as session:
        rows = session.execute(
            select(daily_aggregates.c.day, daily_aggregates.c.total_focus_seconds)
            .where(
                and_(
                    daily_aggregates.c.user_id == user_id,
                    daily_aggregates.c.day >= day_from,
                    daily_aggregates.c.day <= day_to,
                )
            )
            .order_by(daily_aggregates.c.day)
        ).all()
    return [(row.day, int(row.total_focus_seconds)) for row in rows]


def get_day_total(user_id: str, day: str, session: Optional[Session] = None) -> int:
    query = select(daily_aggregates.c.total_focus_seconds).where(
        and_(daily_aggregates.c.user_id == user_id, daily_aggregates.c.day == day)
    )
    if session is not None:
        value = session.execute(query).scalar_one_or_none()
    else:
        with get_db_session() as own:
            value = own.execute(query).scalar_one_or_none()
    return int(value or 0)


def list_active_days(user_id: str, session: Optional[Session] = None) -> List[str]:
    """Days with a positive focus total, ascending."""
    query = (
        select(daily_aggregates.c.day)
        .where(and_(daily_aggregates.c.user_id == user_id, daily_aggregates.c.total_focus_seconds > 0))
        .order_by(daily_aggregates.c.day)
    )
    if session is not None:
        return list(session.execute(query).scalars())
    with get_db_session() as own:
        return list(own.execute(query).scalars())


def monthly_averages(user_id: str, year: int) -> Dict[int, float]:
    """Average daily total per month of ``year``, grouped in SQL. Months without rows are absent."""
    month = func.substr(daily_aggregates.c.day, 6, 2).label("month")
    with get_db_session() as session:
        rows = session.execute(
            select(month, func.avg(daily_aggregates.c.total_focus_seconds).label("avg_seconds"))
            .where(
                and_(
                    daily_aggregates.c.user_id == user_id,
                    daily_aggregates.c.day >= f"{year:04d}-01-01",
                    daily_aggregates.c.day <= f"{year:04d}-12-31",
                )
            )
            .group_by(month)
            .order_by(month)
        ).all()
    return {int(row.month): float(row.avg_seconds or 0) for row in rows}


def count_active_days(user_id: str) -> int:
    with get_db_session() as session:
        return int(
            session.execute(
                select(func.count()).select_from(daily_aggregates).where(daily_aggregates.c.user_id == user_id)
            ).scalar_one()
        )


def list_user_days(user_id: str, limit: int = 400) -> List[DayTotal]:
    """Most recent days first (admin detail)."""
    with get_db_session() as session:
        rows = session.execute(
            select(daily_aggregates.c.day, daily_aggregates.c.total_focus_seconds)
            .where(daily_aggregates.c.user_id == user_id)
            .order_by(daily_aggregates.c.day.desc())
            .limit(limit)
        ).all()
    return [(row.day, int(row.total_focus_seconds)) for row in rows]
