from pydantic import BaseModel, Field
from datetime import datetime, timezone
from typing import Optional

UTC = timezone.utc


class ActiveTimerSession(BaseModel):
    user_id: str
    status: str = "running"  # or paused
    start_time: datetime
    total_accumulated_duration: int = 0  # seconds over completed intervals
    last_interval_start_time: Optional[datetime] = None  # None while paused
    description: Optional[str] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
