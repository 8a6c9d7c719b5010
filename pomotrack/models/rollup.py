"""
Rollup models: labeled buckets for the day/week/month dashboard charts.
"""
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

RollupKind = Literal["day", "week", "month"]


class RollupBucket(BaseModel):
    """One chart bucket. Empty and zero buckets both render as null."""

    model_config = ConfigDict(frozen=True)

    label: str
    seconds: Optional[float] = Field(default=None, description="Seconds (total for day view, average per logged day otherwise)")
    hours: Optional[float] = Field(default=None, description="seconds / 3600, 2 decimals")


class RollupView(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: RollupKind
    title: str
    range: str
    buckets: List[RollupBucket]

    @property
    def labels(self) -> List[str]:
        return [b.label for b in self.buckets]

    @property
    def values(self) -> List[Optional[float]]:
        return [b.seconds for b in self.buckets]
