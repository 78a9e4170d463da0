"""
Used QR Token Repository - Data access layer for QR token usage tracking
"""
from datetime import datetime
from sqlalchemy import text
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError

from atams.db import BaseRepository
from event_attendance.models.used_qr_token import UsedQrToken


class UsedQrTokenRepository(BaseRepository[UsedQrToken]):
    def __init__(self):
        super().__init__(UsedQrToken)

    def count_usage(self, db: Session, jti: str) -> int:
        """How many times a token id has been used using native SQL"""
        query = """
            SELECT COUNT(*)
            FROM attendance.used_qr_tokens
            WHERE uj_jti = :jti
        """
        return self.execute_raw_sql_scalar(db, query, {"jti": jti}) or 0

    def mark_token_as_used(
        self,
        db: Session,
        jti: str,
        event_id: str,
        employee_id: str,
        usage_no: int = 1
    ) -> bool:
        """
        Record one use of a token id inside the caller's transaction.
        Returns True if successfully marked, False if that use was already taken (replay detected).

        usage_no is the observed usage count plus one, so two concurrent scans
        that both saw the same count cannot both succeed. The row is written
        in a savepoint; the caller commits it together with the attendance record.
        """
        try:
            with db.begin_nested():
                db.add(UsedQrToken(jti=jti, usage_no=usage_no, event_id=event_id, employee_id=employee_id))
            return True
        except IntegrityError:
            return False

    def count_remaining(self, db: Session) -> int:
        query = "SELECT COUNT(*) FROM attendance.used_qr_tokens"
        return self.execute_raw_sql_scalar(db, query) or 0

    def cleanup_old_tokens(self, db: Session, cutoff_time: datetime) -> int:
        """
        Delete token usage records recorded before cutoff_time using native SQL.
        Returns count of deleted records.
        """
        delete_query = """
            DELETE FROM attendance.used_qr_tokens
            WHERE uj_used_at < :cutoff_time
        """
        result = db.execute(text(delete_query), {"cutoff_time": cutoff_time})
        db.commit()

        return result.rowcount or 0
