"""
Common schema helpers shared by event and attendance schemas
"""
import re
from datetime import datetime, timezone
from typing import Any

from atams.schemas import DataResponse, PaginationResponse

_SHORT_OFFSET = re.compile(r'\d{2}:\d{2}(:\d{2}(\.\d+)?)?[+-]\d{2}$')


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def fix_datetime_timezone(v: Any) -> Any:
    """
    Fix datetime timezone format from PostgreSQL
    PostgreSQL returns: '2025-10-01 09:17:39.587802+00'
    Pydantic expects: '2025-10-01 09:17:39.587802+00:00'
    """
    if v == '' or v is None:
        return None

    # Fix timezone format: +00 -> +00:00, +07 -> +07:00
    if isinstance(v, str) and _SHORT_OFFSET.search(v):
        v = v + ':00'

    return v


def as_utc(v: Any) -> Any:
    """Treat naive datetimes as UTC so they compare with aware ones"""
    if isinstance(v, datetime) and v.tzinfo is None:
        return v.replace(tzinfo=timezone.utc)
    return v


__all__ = [
    "DataResponse",
    "PaginationResponse",
    "as_utc",
    "fix_datetime_timezone",
    "utc_now",
]
