"""
Session models: completed focus/break intervals and the save-session contract.
"""
from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from pomotrack.models.streak import StreakView

SessionKind = Literal["focus", "break"]
SESSION_KINDS = ("focus", "break")


class SessionRecord(BaseModel):
    """One immutable ledger row."""

    model_config = ConfigDict(frozen=True)

    id: int
    user_id: str
    kind: SessionKind
    duration_seconds: int = Field(gt=0, le=43200)
    completed_at: datetime


class SaveSessionRequest(BaseModel):
    """Body of POST /api/session. Values are validated by the session service."""

    duration: Any = Field(..., description="Completed duration in seconds")
    type: Any = Field(..., description="focus | break")


class SavedSession(BaseModel):
    model_config = ConfigDict(frozen=True)

    session: SessionRecord
    day: str = Field(description="Calendar day (YYYY-MM-DD) the session was bucketed into")
    normalized_seconds: int
    day_total_seconds: int = Field(ge=0, description="Focus seconds logged for the day after this save")
    streak: Optional[StreakView] = None
