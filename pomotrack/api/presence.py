from fastapi import APIRouter, Depends

from pomotrack.core.auth import get_current_user_id
from pomotrack.features.presence import service as presence

router = APIRouter(prefix="/api/presence", tags=["presence"])


@router.post("/start")
def presence_start(user_id: str = Depends(get_current_user_id)):
    presence.start(user_id)
    return {"ok": True}


@router.post("/heartbeat")
def presence_heartbeat(user_id: str = Depends(get_current_user_id)):
    presence.heartbeat(user_id)
    return {"ok": True}


@router.post("/stop")
def presence_stop(user_id: str = Depends(get_current_user_id)):
    presence.stop(user_id)
    return {"ok": True}


@router.get("")
def presence_status(user_id: str = Depends(get_current_user_id)):
    return presence.get_presence(user_id).model_dump(mode="json")
