"""
Session recording API.
"""
from fastapi import APIRouter, Depends

from pomotrack.core.auth import get_current_user_id
from pomotrack.features.sessions.service import record_session
from pomotrack.models.session import SaveSessionRequest

router = APIRouter(prefix="/api", tags=["sessions"])


@router.post("/session")
def save_session(body: SaveSessionRequest, user_id: str = Depends(get_current_user_id)) -> dict:
    """Record one completed focus or break interval.

    ``duration`` is in seconds; ``type`` is ``focus`` or ``break``.
    """
    saved = record_session(user_id, body.type, body.duration)
    return {
        "success": True,
        "session": saved.session.model_dump(mode="json"),
        "day": saved.day,
        "dayTotalSeconds": saved.day_total_seconds,
        "streak": {
            "currentStreak": saved.streak.current_streak,
            "longestStreak": saved.streak.longest_streak,
            "lastActiveDay": saved.streak.last_active_day,
        } if saved.streak else None,
    }
