from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from pydantic import BaseModel, ConfigDict


@dataclass(frozen=True)
class StreakState:
    """
    Streak state for one user. Day labels are bucket-zone YYYY-MM-DD strings.
    """

    current_streak: int = 0
    longest_streak: int = 0
    last_active_day: Optional[str] = None


class StreakView(BaseModel):
    model_config = ConfigDict(frozen=True)

    user_id: str
    current_streak: int
    longest_streak: int
    last_active_day: Optional[str] = None
