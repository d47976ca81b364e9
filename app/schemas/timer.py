from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field


class StartTimer(BaseModel):
    description: Optional[str] = Field(None, description="What the session is tracking.")


class SyncTimer(BaseModel):
    """
    Metadata changes for a running or paused session.
    Only fields present in the request body are applied; an explicit null
    clears the description, an omitted one leaves it as is.
    """
    description: Optional[str] = Field(None, description="New session description.")

    def changes(self) -> dict:
        return self.model_dump(include=self.model_fields_set)


class TimerSessionOut(BaseModel):
    id: str
    user_id: str
    status: str
    start_time: datetime
    total_accumulated_duration: int
    current_elapsed_total: int
    last_interval_start_time: Optional[datetime] = None
    description: Optional[str] = None


class TimerSessionAction(BaseModel):
    action: str
    session: TimerSessionOut


class PausedTimerSession(TimerSessionAction):
    total_elapsed: int


class ActiveTimerSessions(BaseModel):
    has_active_sessions: bool
    sessions: List[TimerSessionOut]


class EndedTimerSession(BaseModel):
    action: str
    final_duration: int
    start_time: datetime
    end_time: datetime
    description: Optional[str] = None


class SyncedTimerSession(BaseModel):
    action: str
    current_elapsed_total: int
    status: str
