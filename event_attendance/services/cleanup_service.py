"""
Cleanup Service - Maintenance operations for database hygiene
"""
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from atams.logging import get_logger

from event_attendance.repositories.used_qr_token_repository import UsedQrTokenRepository
from event_attendance.schemas.common import as_utc, utc_now
from event_attendance.schemas.maintenance import CleanupResult

logger = get_logger(__name__)


class CleanupService:
    def __init__(self) -> None:
        self.qr_token_repo = UsedQrTokenRepository()

    def cleanup_used_qr_tokens(
        self,
        db: Session,
        days_old: int = 7,
        now: Optional[datetime] = None
    ) -> CleanupResult:
        """
        Delete QR token usage records older than days_old

        Tokens expire within seconds, so records past a few days can no
        longer be replayed.
        """
        now = as_utc(now) if now is not None else utc_now()
        cutoff_time = now - timedelta(days=days_old)

        deleted = self.qr_token_repo.cleanup_old_tokens(db, cutoff_time)
        remaining = self.qr_token_repo.count_remaining(db)
        logger.info(
            f"Deleted {deleted} used QR token records",
            extra={"extra_data": {"cutoff_time": cutoff_time.isoformat(), "remaining": remaining}}
        )

        return CleanupResult(
            days_old=days_old,
            cutoff_time=cutoff_time,
            deleted_count=deleted,
            remaining_count=remaining
        )
