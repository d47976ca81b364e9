from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, Field


class UpdateHourlyRate(BaseModel):
    hourly_rate: Decimal = Field(..., ge=0, max_digits=10, decimal_places=2)


class UpdateReminderSettings(BaseModel):
    timer_reminder_time: Optional[str] = Field(None, pattern=r"^([01]\d|2[0-3]):[0-5]\d$",
                                               description="Local time of day, HH:MM")
    enable_timer_reminders: Optional[bool] = None

    def changes(self) -> dict:
        return self.model_dump(include=self.model_fields_set)
