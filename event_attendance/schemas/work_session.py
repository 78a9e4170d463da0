"""
Work Session Schemas - read-side pairing of a check-in with its check-out
"""
from datetime import datetime, timedelta
from typing import Optional

from pydantic import BaseModel


class WorkSession(BaseModel):
    checkin_id: str
    checkout_id: Optional[str] = None
    event_id: str
    employee_id: str
    partner_id: str
    checkin_time: datetime
    checkout_time: Optional[datetime] = None
    duration: timedelta = timedelta(0)
    is_valid: bool
    is_complete: bool
    is_short: bool = False
    is_long: bool = False

    def is_short_session(self) -> bool:
        return self.is_short

    def is_long_session(self) -> bool:
        return self.is_long

    @property
    def duration_minutes(self) -> float:
        return self.duration.total_seconds() / 60

    @property
    def duration_hours(self) -> float:
        return self.duration.total_seconds() / 3600


class WorkSessionSummary(BaseModel):
    """Aggregate figures for a list of work sessions"""
    total_sessions: int = 0
    completed_sessions: int = 0
    open_sessions: int = 0
    valid_sessions: int = 0
    short_sessions: int = 0
    long_sessions: int = 0
    total_duration: timedelta = timedelta(0)
    average_duration: timedelta = timedelta(0)
