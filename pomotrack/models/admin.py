"""
Admin dashboard models.
"""
from datetime import datetime
from typing import Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from pomotrack.models.presence import PresenceStatus


class PlatformOverview(BaseModel):
    model_config = ConfigDict(frozen=True)

    total_users: int = Field(ge=0)
    total_sessions: int = Field(ge=0)
    total_focus_seconds: int = Field(ge=0)
    total_focus_hours: float = Field(ge=0)
    total_break_seconds: int = Field(ge=0)
    total_break_hours: float = Field(ge=0)
    active_users_7d: int = Field(ge=0, description="Users with a focus day in the last 7 calendar days")
    active_users_30d: int = Field(ge=0)
    new_users_week: int = Field(ge=0)
    new_users_month: int = Field(ge=0)
    avg_session_minutes: float = Field(ge=0, description="Average focus session length")
    peak_usage_hour: Optional[int] = Field(default=None, ge=0, le=23, description="Bucket-zone hour with most sessions")


class UserStats(BaseModel):
    model_config = ConfigDict(frozen=True)

    total_sessions: int = 0
    total_focus_seconds: int = 0
    total_focus_hours: float = 0.0
    total_break_seconds: int = 0
    total_break_hours: float = 0.0
    avg_session_minutes: float = 0.0
    active_days: int = 0
    first_session_at: Optional[datetime] = None
    last_session_at: Optional[datetime] = None
    days_since_last_active: Optional[int] = None
    status: PresenceStatus = PresenceStatus.DORMANT
    current_streak: int = 0
    longest_streak: int = 0


class AdminUserSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    user_id: str
    email: Optional[str] = None
    display_name: Optional[str] = None
    created_at: datetime
    pomodoro_running: bool = False
    last_pomodoro_at: Optional[datetime] = None
    stats: UserStats


class AdminUserPage(BaseModel):
    model_config = ConfigDict(frozen=True)

    total: int
    limit: int
    offset: int
    users: List[AdminUserSummary]


class LeaderboardEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    user_id: str
    display_name: Optional[str] = None
    email: Optional[str] = None
    total_focus_seconds: int
    total_focus_hours: float
    total_sessions: int
    current_streak: int
    longest_streak: int


class Leaderboards(BaseModel):
    model_config = ConfigDict(frozen=True)

    top_by_focus_time: List[LeaderboardEntry]
    top_by_sessions: List[LeaderboardEntry]
    top_by_streak: List[LeaderboardEntry]


class SessionAnalytics(BaseModel):
    model_config = ConfigDict(frozen=True)

    sessions_by_hour: Dict[int, int]
    sessions_by_weekday: Dict[str, Dict[str, Union[int, float]]]
    kind_distribution: Dict[str, Dict[str, int]]


class TimelineDay(BaseModel):
    model_config = ConfigDict(frozen=True)

    day: str
    sessions: int = 0
    focus_seconds: int = 0
    new_users: int = 0
