"""
Rollup query engine (dashboard charts).

Pure read-side projections over the daily aggregate table:
- day view: 7 daily totals ending at the anchor day
- week view: average per logged day for the 4 ISO weeks ending at the anchor's week
- month view: average per logged day for each month of a year

A bucket with no rows and a bucket whose value is zero both render as null.
"""
from __future__ import annotations

from collections import defaultdict
from datetime import date, timedelta
from typing import Dict, List, Optional, Tuple

from pomotrack.core.calendar import iso_week_key, iso_week_label, parse_day, shift_day, today
from pomotrack.core.errors import ValidationError
from pomotrack.features.aggregates.service import get_range, monthly_averages
from pomotrack.models.rollup import RollupBucket, RollupView

MONTH_LABELS = ["Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]
DAY_BUCKETS = 7
WEEK_BUCKETS = 4


def _bucket(label: str, seconds: Optional[float]) -> RollupBucket:
    if not seconds or seconds <= 0:
        return RollupBucket(label=label, seconds=None, hours=None)
    return RollupBucket(label=label, seconds=round(seconds, 2), hours=round(seconds / 3600, 2))


def _anchor(anchor_day: Optional[str]) -> str:
    if anchor_day is None:
        return today()
    try:
        parse_day(anchor_day)
    except ValueError:
        raise ValidationError("date must be formatted YYYY-MM-DD")
    return anchor_day


def _window(anchor: str, first_offset: int, last_offset: int) -> Tuple[date, date]:
    """Dates ``first_offset`` and ``last_offset`` days from the anchor; both must be representable."""
    anchor_date = parse_day(anchor)
    try:
        return anchor_date + timedelta(days=first_offset), anchor_date + timedelta(days=last_offset)
    except OverflowError:
        raise ValidationError("date out of range")


def day_view(user_id: str, anchor_day: Optional[str] = None) -> RollupView:
    anchor = _anchor(anchor_day)
    first, _ = _window(anchor, -(DAY_BUCKETS - 1), 0)
    start = first.isoformat()
    totals = dict(get_range(user_id, start, anchor))

    buckets = []
    for offset in range(DAY_BUCKETS - 1, -1, -1):
        day = shift_day(anchor, -offset)
        buckets.append(_bucket(day, totals.get(day)))

    return RollupView(
        kind="day",
        title="Daily focus, last 7 days",
        range=f"{start} to {anchor}",
        buckets=buckets,
    )


def week_view(user_id: str, anchor_day: Optional[str] = None) -> RollupView:
    anchor = _anchor(anchor_day)
    weekday = parse_day(anchor).weekday()
    first_monday, last_sunday = _window(anchor, -weekday - 7 * (WEEK_BUCKETS - 1), 6 - weekday)

    weeks: List[Tuple[int, int]] = [
        iso_week_key((first_monday + timedelta(weeks=i)).isoformat()) for i in range(WEEK_BUCKETS)
    ]

    by_week: Dict[Tuple[int, int], List[int]] = defaultdict(list)
    for day, total in get_range(user_id, first_monday.isoformat(), last_sunday.isoformat()):
        by_week[iso_week_key(day)].append(total)

    buckets = []
    for key in weeks:
        rows = by_week.get(key)
        average = sum(rows) / len(rows) if rows else None
        buckets.append(_bucket(iso_week_label(key), average))

    return RollupView(
        kind="week",
        title="Weekly average focus per day, last 4 weeks",
        range=f"{first_monday.isoformat()} to {last_sunday.isoformat()}",
        buckets=buckets,
    )


def month_view(user_id: str, year: Optional[int] = None) -> RollupView:
    if year is None:
        year = parse_day(today()).year
    if not 1 <= year <= 9999:
        raise ValidationError("year must be between 1 and 9999")

    averages = monthly_averages(user_id, year)
    buckets = [_bucket(label, averages.get(i + 1)) for i, label in enumerate(MONTH_LABELS)]

    return RollupView(
        kind="month",
        title=f"Monthly average focus per day {year}",
        range=f"Year {year}",
        buckets=buckets,
    )
