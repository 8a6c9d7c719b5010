from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict


class PresenceStatus(str, Enum):
    ACTIVE = "Active"
    RECENTLY_ACTIVE = "Recently Active"
    INACTIVE = "Inactive"
    DORMANT = "Dormant"


class PresenceState(BaseModel):
    model_config = ConfigDict(frozen=True)

    user_id: str
    pomodoro_running: bool
    pomodoro_started_at: Optional[datetime] = None
    last_pomodoro_at: Optional[datetime] = None
    last_presence_day: Optional[str] = None
    status: PresenceStatus
