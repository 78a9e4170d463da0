"""
Maintenance Schemas
"""
from datetime import datetime

from pydantic import BaseModel


class CleanupResult(BaseModel):
    """Outcome of purging QR token usage records"""
    days_old: int
    cutoff_time: datetime
    deleted_count: int
    remaining_count: int
