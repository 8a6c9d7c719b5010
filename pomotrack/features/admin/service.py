"""
Admin reporting over users, the session ledger and daily aggregates.

Per-user figures come from grouped queries (one per table) and are joined in
Python, so listing N users costs a fixed number of round trips.
"""
from __future__ import annotations

from collections import Counter, defaultdict
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from sqlalchemy import func, select

from pomotrack.core.calendar import (
    bucket_zone,
    calendar_day,
    day_bounds_utc,
    days_between,
    default_offset,
    ensure_utc,
    shift_day,
    today,
    utc_now,
)
from pomotrack.core.database import daily_aggregates, focus_sessions, get_db_session, users as app_users
from pomotrack.core.errors import UserNotFoundError, ValidationError
from pomotrack.features.aggregates.service import count_active_days, list_user_days
from pomotrack.features.browsing.service import last_site, top_sites
from pomotrack.features.presence.service import classify_presence
from pomotrack.features.sessions.service import list_sessions, session_totals
from pomotrack.features.users.service import get_user, row_to_user
from pomotrack.models.admin import (
    AdminUserPage,
    AdminUserSummary,
    LeaderboardEntry,
    Leaderboards,
    PlatformOverview,
    SessionAnalytics,
    TimelineDay,
    UserStats,
)
from pomotrack.models.user import User

SORT_FIELDS = {
    "total_focus_seconds": lambda s: s.stats.total_focus_seconds,
    "total_sessions": lambda s: s.stats.total_sessions,
    "current_streak": lambda s: s.stats.current_streak,
    "longest_streak": lambda s: s.stats.longest_streak,
    "active_days": lambda s: s.stats.active_days,
    "created_at": lambda s: s.created_at,
    "last_pomodoro_at": lambda s: s.last_pomodoro_at or datetime.min.replace(tzinfo=s.created_at.tzinfo),
    "display_name": lambda s: (s.display_name or "").lower(),
}
WEEKDAYS = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
LEADERBOARD_SIZE = 10


def _hours(seconds: float) -> float:
    return round(seconds / 3600, 2)


def _minutes(seconds: float) -> float:
    return round(seconds / 60, 2)


def overview(now: Optional[datetime] = None) -> PlatformOverview:
    now = ensure_utc(now) or utc_now()
    current_day = calendar_day(now)
    totals = session_totals()

    with get_db_session() as session:
        total_users = session.execute(select(func.count()).select_from(app_users)).scalar_one()

        def active_since(days: int) -> int:
            return session.execute(
                select(func.count(func.distinct(daily_aggregates.c.user_id)))
                .where(daily_aggregates.c.day > shift_day(current_day, -days))
                .where(daily_aggregates.c.total_focus_seconds > 0)
            ).scalar_one()

        def created_since(delta: timedelta) -> int:
            return session.execute(
                select(func.count()).select_from(app_users).where(app_users.c.created_at >= now - delta)
            ).scalar_one()

        active_7 = active_since(7)
        active_30 = active_since(30)
        new_week = created_since(timedelta(days=7))
        new_month = created_since(timedelta(days=30))

    by_hour = _sessions_by_hour()
    peak = max(by_hour.items(), key=lambda kv: (kv[1], -kv[0]))[0] if by_hour else None

    focus, brk = totals["focus"], totals["break"]
    return PlatformOverview(
        total_users=total_users,
        total_sessions=focus["count"] + brk["count"],
        total_focus_seconds=focus["total_seconds"],
        total_focus_hours=_hours(focus["total_seconds"]),
        total_break_seconds=brk["total_seconds"],
        total_break_hours=_hours(brk["total_seconds"]),
        active_users_7d=active_7,
        active_users_30d=active_30,
        new_users_week=new_week,
        new_users_month=new_month,
        avg_session_minutes=_minutes(focus["avg_seconds"]),
        peak_usage_hour=peak,
    )


def _per_user_session_stats(user_ids: Optional[List[str]] = None) -> Dict[str, dict]:
    query = select(
        focus_sessions.c.user_id,
        focus_sessions.c.kind,
        func.count().label("sessions"),
        func.sum(focus_sessions.c.duration_seconds).label("total"),
        func.min(focus_sessions.c.completed_at).label("first_at"),
        func.max(focus_sessions.c.completed_at).label("last_at"),
    ).group_by(focus_sessions.c.user_id, focus_sessions.c.kind)
    if user_ids is not None:
        query = query.where(focus_sessions.c.user_id.in_(user_ids))

    stats: Dict[str, dict] = defaultdict(lambda: {
        "sessions": 0, "focus_sessions": 0, "focus": 0, "break": 0, "first_at": None, "last_at": None,
    })
    with get_db_session() as session:
        for row in session.execute(query):
            entry = stats[row.user_id]
            entry["sessions"] += int(row.sessions)
            entry[row.kind] += int(row.total or 0)
            if row.kind == "focus":
                entry["focus_sessions"] = int(row.sessions)
            first_at, last_at = ensure_utc(row.first_at), ensure_utc(row.last_at)
            if entry["first_at"] is None or first_at < entry["first_at"]:
                entry["first_at"] = first_at
            if entry["last_at"] is None or last_at > entry["last_at"]:
                entry["last_at"] = last_at
    return stats


def _active_day_counts() -> Dict[str, int]:
    with get_db_session() as session:
        rows = session.execute(
            select(daily_aggregates.c.user_id, func.count().label("days")).group_by(daily_aggregates.c.user_id)
        ).all()
    return {row.user_id: int(row.days) for row in rows}


def _summarize(user: User, sessions: dict, active_days: int, now: datetime) -> AdminUserSummary:
    days_since = None
    if user.last_active_day:
        days_since = max(0, days_between(user.last_active_day, calendar_day(now)))

    focus_sessions_count = sessions["focus_sessions"]
    stats = UserStats(
        total_sessions=sessions["sessions"],
        total_focus_seconds=sessions["focus"],
        total_focus_hours=_hours(sessions["focus"]),
        total_break_seconds=sessions["break"],
        total_break_hours=_hours(sessions["break"]),
        avg_session_minutes=_minutes(sessions["focus"] / focus_sessions_count) if focus_sessions_count else 0.0,
        active_days=active_days,
        first_session_at=sessions["first_at"],
        last_session_at=sessions["last_at"],
        days_since_last_active=days_since,
        status=classify_presence(user.pomodoro_running, user.last_pomodoro_at, now),
        current_streak=user.current_streak,
        longest_streak=user.longest_streak,
    )
    return AdminUserSummary(
        user_id=user.user_id,
        email=user.email,
        display_name=user.display_name,
        created_at=user.created_at,
        pomodoro_running=user.pomodoro_running,
        last_pomodoro_at=user.last_pomodoro_at,
        stats=stats,
    )


def _all_summaries(now: datetime) -> List[AdminUserSummary]:
    with get_db_session() as session:
        user_rows = session.execute(select(app_users)).all()
    session_stats = _per_user_session_stats()
    day_counts = _active_day_counts()
    return [
        _summarize(row_to_user(row), session_stats[row.user_id], day_counts.get(row.user_id, 0), now)
        for row in user_rows
    ]


def list_users(
    *,
    sort: str = "total_focus_seconds",
    order: str = "desc",
    limit: int = 50,
    offset: int = 0,
    now: Optional[datetime] = None,
) -> AdminUserPage:
    if sort not in SORT_FIELDS:
        raise ValidationError(f"sort must be one of: {', '.join(sorted(SORT_FIELDS))}")
    if order not in {"asc", "desc"}:
        raise ValidationError("order must be 'asc' or 'desc'")
    if not 1 <= limit <= 500:
        raise ValidationError("limit must be between 1 and 500")
    if offset < 0:
        raise ValidationError("offset must be non-negative")

    summaries = _all_summaries(ensure_utc(now) or utc_now())
    # Stable tie-break on user_id, then the requested key
    summaries.sort(key=lambda s: s.user_id)
    summaries.sort(key=SORT_FIELDS[sort], reverse=(order == "desc"))
    return AdminUserPage(
        total=len(summaries),
        limit=limit,
        offset=offset,
        users=summaries[offset:offset + limit],
    )


def user_detail(user_id: str, now: Optional[datetime] = None) -> dict:
    user = get_user(user_id)
    if user is None:
        raise UserNotFoundError("User not found")

    now = ensure_utc(now) or utc_now()
    session_stats = _per_user_session_stats([user_id])[user_id]
    days = list_user_days(user_id)
    summary = _summarize(user, session_stats, count_active_days(user_id), now)
    site = last_site(user_id)
    return {
        "user": summary.model_dump(mode="json"),
        "sessions": [s.model_dump(mode="json") for s in list_sessions(user_id, limit=100)],
        "daily_stats": [{"day": day, "total_focus_seconds": total} for day, total in days],
        "browsing": {
            "last_site": site.model_dump(mode="json") if site else None,
            "top_sites": [s.model_dump(mode="json") for s in top_sites(user_id, limit=10)],
        },
    }


def leaderboard(now: Optional[datetime] = None) -> Leaderboards:
    summaries = _all_summaries(ensure_utc(now) or utc_now())
    entries = [
        LeaderboardEntry(
            user_id=s.user_id,
            display_name=s.display_name,
            email=s.email,
            total_focus_seconds=s.stats.total_focus_seconds,
            total_focus_hours=s.stats.total_focus_hours,
            total_sessions=s.stats.total_sessions,
            current_streak=s.stats.current_streak,
            longest_streak=s.stats.longest_streak,
        )
        for s in sorted(summaries, key=lambda s: s.user_id)
    ]

    def top(key):
        return sorted(entries, key=key, reverse=True)[:LEADERBOARD_SIZE]

    return Leaderboards(
        top_by_focus_time=top(lambda e: e.total_focus_seconds),
        top_by_sessions=top(lambda e: e.total_sessions),
        top_by_streak=top(lambda e: e.current_streak),
    )


def _iter_sessions(since: Optional[datetime] = None):
    query = select(focus_sessions.c.kind, focus_sessions.c.duration_seconds, focus_sessions.c.completed_at)
    if since is not None:
        query = query.where(focus_sessions.c.completed_at >= since)
    with get_db_session() as session:
        for row in session.execute(query.execution_options(yield_per=1000)):
            yield row.kind, row.duration_seconds, ensure_utc(row.completed_at)


def _sessions_by_hour() -> Dict[int, int]:
    zone = bucket_zone(default_offset())
    counts = Counter(completed.astimezone(zone).hour for _, _, completed in _iter_sessions())
    return dict(sorted(counts.items()))


def session_analytics() -> SessionAnalytics:
    zone = bucket_zone(default_offset())
    by_hour: Counter = Counter()
    weekday_count: Counter = Counter()
    weekday_seconds: Counter = Counter()
    kinds: Dict[str, Dict[str, int]] = {k: {"count": 0, "total_seconds": 0} for k in ("focus", "break")}

    for kind, seconds, completed in _iter_sessions():
        local = completed.astimezone(zone)
        by_hour[local.hour] += 1
        weekday_count[local.weekday()] += 1
        weekday_seconds[local.weekday()] += seconds
        kinds[kind]["count"] += 1
        kinds[kind]["total_seconds"] += seconds

    by_weekday = {
        WEEKDAYS[i]: {
            "count": weekday_count[i],
            "avg_seconds": round(weekday_seconds[i] / weekday_count[i], 2) if weekday_count[i] else 0.0,
        }
        for i in range(7)
    }
    return SessionAnalytics(
        sessions_by_hour=dict(sorted(by_hour.items())),
        sessions_by_weekday=by_weekday,
        kind_distribution=kinds,
    )


def timeline(days: int = 30, now: Optional[datetime] = None) -> List[TimelineDay]:
    """Sessions, focus seconds and sign-ups per calendar day for the last ``days`` days (oldest first)."""
    if not 1 <= days <= 366:
        raise ValidationError("days must be between 1 and 366")
    now = ensure_utc(now) or utc_now()
    last = today(now)
    first = shift_day(last, -(days - 1))
    since, _ = day_bounds_utc(first)

    sessions: Counter = Counter()
    seconds: Counter = Counter()
    for kind, duration, completed in _iter_sessions(since):
        day = calendar_day(completed)
        sessions[day] += 1
        if kind == "focus":
            seconds[day] += duration

    with get_db_session() as session:
        created = [ensure_utc(v) for v in session.execute(
            select(app_users.c.created_at).where(app_users.c.created_at >= since)
        ).scalars()]
    signups = Counter(calendar_day(c) for c in created)

    out = []
    for offset in range(days):
        day = shift_day(first, offset)
        out.append(TimelineDay(day=day, sessions=sessions[day], focus_seconds=seconds[day], new_users=signups[day]))
    return out
