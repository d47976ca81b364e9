from datetime import date as date_type
from typing import Optional
from pydantic import BaseModel, Field


class CreateTimeEntry(BaseModel):
    project_id: str
    date: date_type
    duration_seconds: int = Field(..., gt=0, description="Worked time in seconds.")
    description: Optional[str] = None


class UpdateTimeEntry(BaseModel):
    """
    Partial update. Only the fields sent in the body are written, so
    `{"description": null}` clears the description while `{}` changes nothing.
    The snapshotted hourly rate is not patchable.
    """
    project_id: Optional[str] = None
    date: Optional[date_type] = None
    duration_seconds: Optional[int] = Field(None, gt=0)
    description: Optional[str] = None

    def changes(self) -> dict:
        return self.model_dump(include=self.model_fields_set)


class TimeEntryOut(BaseModel):
    id: str
    user_id: str
    project_id: str
    date: date_type
    duration_seconds: int
    hourly_rate: str
    cost: str
    description: Optional[str] = None
