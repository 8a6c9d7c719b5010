"""
Admin dashboard API.

All routes require the admin policy (see ``pomotrack.core.admin_auth``).
"""
from fastapi import APIRouter, Depends, Query

from pomotrack.core.admin_auth import require_admin
from pomotrack.core.auth import Principal
from pomotrack.core.logging import log_event
from pomotrack.features.admin import service as admin_service
from pomotrack.features.streaks.service import reconcile_streak

router = APIRouter(prefix="/api/admin", tags=["admin"])


@router.get("/stats")
def platform_stats(admin: Principal = Depends(require_admin)) -> dict:
    return admin_service.overview().model_dump(mode="json")


@router.get("/users")
def list_users(
    sort: str = Query("total_focus_seconds"),
    order: str = Query("desc"),
    limit: int = Query(50),
    offset: int = Query(0),
    admin: Principal = Depends(require_admin),
) -> dict:
    """List users with totals, status and streak (sortable, paginated)."""
    page = admin_service.list_users(sort=sort, order=order, limit=limit, offset=offset)
    return page.model_dump(mode="json")


@router.get("/users/{user_id}")
def user_detail(user_id: str, admin: Principal = Depends(require_admin)) -> dict:
    return admin_service.user_detail(user_id)


@router.post("/users/{user_id}/streak/reconcile")
def reconcile_user_streak(user_id: str, admin: Principal = Depends(require_admin)) -> dict:
    """Rebuild a user's streak from their daily aggregates."""
    view = reconcile_streak(user_id)
    log_event(
        "info",
        "admin.streak_reconciled",
        user_id=admin.user_id,
        event_type="admin.streak_reconciled",
        extra={"target_user_id": user_id},
    )
    return view.model_dump(mode="json")


@router.get("/leaderboard")
def leaderboard(admin: Principal = Depends(require_admin)) -> dict:
    return admin_service.leaderboard().model_dump(mode="json")


@router.get("/session-analytics")
def session_analytics(admin: Principal = Depends(require_admin)) -> dict:
    return admin_service.session_analytics().model_dump(mode="json")


@router.get("/timeline")
def activity_timeline(days: int = Query(30), admin: Principal = Depends(require_admin)) -> dict:
    entries = admin_service.timeline(days=days)
    return {"days": [e.model_dump(mode="json") for e in entries]}
