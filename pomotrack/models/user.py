from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict


class User(BaseModel):
    model_config = ConfigDict(frozen=True)

    user_id: str
    created_at: datetime
    email: Optional[str] = None
    display_name: Optional[str] = None

    # Activity state
    current_streak: int = 0
    longest_streak: int = 0
    last_active_day: Optional[str] = None
    pomodoro_running: bool = False
    pomodoro_started_at: Optional[datetime] = None
    last_pomodoro_at: Optional[datetime] = None
    last_presence_day: Optional[str] = None

    @staticmethod
    def normalized_display_name(user_id: str, display_name: Optional[str] = None) -> str:
        if display_name and display_name.strip():
            return display_name.strip()
        # Deterministic fallback handle
        import hashlib
        h = hashlib.sha1(user_id.encode("utf-8")).hexdigest()
        return f"@u_{h[-6:]}"
