from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime, timezone
from typing import Optional
from bson.decimal128 import Decimal128

UTC = timezone.utc


class User(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    email: str
    password: bytes  # bcrypt hash
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    role: str = "user"  # or admin
    hourly_rate: Decimal128 = Decimal128("0.00")
    department_id: Optional[str] = None
    account_status: str = "active"  # or inactive
    date_created: datetime = Field(default_factory=lambda: datetime.now(UTC))
