from datetime import datetime
from pydantic import BaseModel
from typing import Optional


class UsageRecord(BaseModel):
    provider: str
    tokens: int
    cost: float
    timestamp: datetime


class QuotaMetrics(BaseModel):
    daily_usage: int = 0
    monthly_usage: int = 0
    remaining_daily: int = 0
    remaining_monthly: int = 0
    last_rotation: Optional[datetime] = None

    @property
    def headroom(self) -> int:
        return min(self.remaining_daily, self.remaining_monthly)
