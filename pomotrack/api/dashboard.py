"""
Dashboard chart API (day / week / month rollups).

Each response carries parallel ``labels`` / ``values`` arrays for the chart
plus the hour figures and display strings. Empty buckets are ``null``.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query

from pomotrack.core.auth import get_current_user_id
from pomotrack.features.rollups.service import day_view, month_view, week_view
from pomotrack.models.rollup import RollupView

router = APIRouter(prefix="/api/dashboard", tags=["dashboard"])


def _render(view: RollupView) -> dict:
    return {
        "kind": view.kind,
        "title": view.title,
        "range": view.range,
        "labels": view.labels,
        "values": view.values,
        "hours": [b.hours for b in view.buckets],
    }


@router.get("/day")
def dashboard_day(
    date: Optional[str] = Query(None, description="Anchor day YYYY-MM-DD (defaults to today)"),
    user_id: str = Depends(get_current_user_id),
):
    return _render(day_view(user_id, date))


@router.get("/week")
def dashboard_week(
    date: Optional[str] = Query(None, description="Any day inside the last week shown"),
    user_id: str = Depends(get_current_user_id),
):
    return _render(week_view(user_id, date))


@router.get("/month")
@router.get("/year")
def dashboard_month(
    year: Optional[int] = Query(None),
    user_id: str = Depends(get_current_user_id),
):
    return _render(month_view(user_id, year))
