from __future__ import annotations

from fastapi import APIRouter, Depends

from pomotrack.core.auth import get_current_user_id
from pomotrack.features.streaks.service import get_streak

router = APIRouter()


@router.get("/api/streak")
def get_current_streak(user_id: str = Depends(get_current_user_id)):
    """Current and longest consecutive-day streak for the caller."""
    view = get_streak(user_id)
    return {
        "currentStreak": view.current_streak,
        "longestStreak": view.longest_streak,
        "lastActiveDay": view.last_active_day,
    }
