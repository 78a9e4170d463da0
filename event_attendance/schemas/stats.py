"""
Stats Schemas - aggregate figures over check-ins and check-outs
"""
from datetime import datetime, timedelta
from typing import Optional

from pydantic import BaseModel

from event_attendance.schemas.work_session import WorkSessionSummary


class StatsPeriods(BaseModel):
    """Start of the current day, ISO week and month (UTC)"""
    today: datetime
    week: datetime
    month: datetime

    @classmethod
    def starting(cls, now: datetime) -> "StatsPeriods":
        today = now.replace(hour=0, minute=0, second=0, microsecond=0)
        return cls(
            today=today,
            week=today - timedelta(days=today.weekday()),
            month=today.replace(day=1)
        )


class CheckinStats(BaseModel):
    total_checkins: int = 0
    valid_checkins: int = 0
    invalid_checkins: int = 0
    facial_checkins: int = 0
    qr_code_checkins: int = 0
    manual_checkins: int = 0
    checkins_today: int = 0
    checkins_this_week: int = 0
    checkins_this_month: int = 0
    last_checkin_time: Optional[datetime] = None


class CheckoutStats(BaseModel):
    total_checkouts: int = 0
    valid_checkouts: int = 0
    invalid_checkouts: int = 0
    facial_checkouts: int = 0
    qr_code_checkouts: int = 0
    manual_checkouts: int = 0
    checkouts_today: int = 0
    checkouts_this_week: int = 0
    checkouts_this_month: int = 0
    total_work_hours: float = 0.0
    average_work_hours: float = 0.0
    last_checkout_time: Optional[datetime] = None


class EventStats(BaseModel):
    event_id: str
    checkins: CheckinStats
    checkouts: CheckoutStats
    work_sessions: WorkSessionSummary
