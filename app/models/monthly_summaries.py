from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime, timezone
from bson.decimal128 import Decimal128

UTC = timezone.utc


class MonthlyCostSummary(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    project_id: str
    user_id: str
    month: datetime  # first day of the month
    total_duration_seconds: int
    total_cost: Decimal128
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
