from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime, timezone
from typing import Optional
from bson.decimal128 import Decimal128

UTC = timezone.utc


class TimeEntry(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    user_id: str
    project_id: str
    date: datetime  # calendar day the work is attributed to, midnight UTC
    duration_seconds: int
    hourly_rate: Decimal128  # user's rate at commit time, never re-derived
    description: Optional[str] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
