from pydantic import BaseModel, Field
from datetime import datetime, timezone

UTC = timezone.utc


class EmailNotification(BaseModel):
    user_id: str
    type: str
    date: str  # YYYY-MM-DD in the reference time zone
    sent_at: datetime
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class SystemSetting(BaseModel):
    key: str
    value: str
    description: str = ""
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
