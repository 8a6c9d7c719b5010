"""
Per-user endpoints fed by the browser extension.
"""
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from pomotrack.core.auth import get_current_user_id
from pomotrack.features.browsing.service import record_visit

router = APIRouter(prefix="/api/user", tags=["user"])


class BrowsePing(BaseModel):
    domain: str = Field(..., description="Hostname only; a full URL is reduced to its host")
    visitedAt: Optional[datetime] = None


@router.post("/browse-ping")
def browse_ping(body: BrowsePing, user_id: str = Depends(get_current_user_id)) -> dict:
    stat = record_visit(user_id, body.domain, body.visitedAt)
    return {"ok": True, "domain": stat.domain, "count": stat.count}
