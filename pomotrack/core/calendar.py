"""
Calendar-day bucketing in a fixed time zone.

Every aggregation key in the service is a ``YYYY-MM-DD`` label produced here.
The bucket zone is a fixed UTC offset (India Standard Time by default), so
there is no daylight-saving handling.
"""
from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from functools import lru_cache
from typing import Optional, Tuple

from pomotrack.core.config import settings


def utc_now() -> datetime:
    """Timezone-aware UTC now."""
    return datetime.now(timezone.utc)


def ensure_utc(moment: Optional[datetime]) -> Optional[datetime]:
    """Treat naive datetimes (e.g. read back from SQLite) as UTC."""
    if moment is None:
        return None
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


@lru_cache(maxsize=None)
def bucket_zone(offset_minutes: int) -> timezone:
    return timezone(timedelta(minutes=offset_minutes))


def default_offset() -> int:
    return settings.BUCKET_TZ_OFFSET_MINUTES


def calendar_day(instant: datetime, offset_minutes: Optional[int] = None) -> str:
    """Label the calendar day ``instant`` falls on in the bucket zone."""
    offset = default_offset() if offset_minutes is None else offset_minutes
    local = ensure_utc(instant).astimezone(bucket_zone(offset))
    return local.date().isoformat()


def today(now: Optional[datetime] = None, offset_minutes: Optional[int] = None) -> str:
    return calendar_day(now or utc_now(), offset_minutes)


def parse_day(value: str) -> date:
    """Parse a ``YYYY-MM-DD`` label. Raises ValueError on anything else."""
    if not isinstance(value, str) or len(value) != 10:
        raise ValueError(f"expected YYYY-MM-DD, got {value!r}")
    return date.fromisoformat(value)


def shift_day(day: str, days: int) -> str:
    return (parse_day(day) + timedelta(days=days)).isoformat()


def days_between(earlier: str, later: str) -> int:
    return (parse_day(later) - parse_day(earlier)).days


def iso_week_key(day: str) -> Tuple[int, int]:
    """(ISO year, ISO week) for a day label; weeks start on Monday."""
    iso = parse_day(day).isocalendar()
    return iso[0], iso[1]


def iso_week_label(key: Tuple[int, int]) -> str:
    return f"{key[0]}-W{key[1]:02d}"


def day_bounds_utc(day: str, offset_minutes: Optional[int] = None) -> Tuple[datetime, datetime]:
    """UTC instants [start, end) covering a bucket-zone calendar day."""
    offset = default_offset() if offset_minutes is None else offset_minutes
    start_local = datetime.combine(parse_day(day), datetime.min.time(), tzinfo=bucket_zone(offset))
    start = start_local.astimezone(timezone.utc)
    return start, start + timedelta(days=1)
