"""
Used QR Token Model - Usage tracking of scanned event QR tokens
"""
from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.sql import func
from atams.db import Base


class UsedQrToken(Base):
    """Used QR token model for attendance schema - Table: attendance.used_qr_tokens"""
    __tablename__ = "used_qr_tokens"
    __table_args__ = {"schema": "attendance"}

    # (jti, usage_no) is the arbiter: two scans observing the same usage count collide here
    jti = Column("uj_jti", String(64), primary_key=True, index=True)  # JWT ID
    usage_no = Column("uj_usage_no", Integer, primary_key=True, default=1)
    event_id = Column("uj_event_id", String(36), nullable=False, index=True)
    employee_id = Column("uj_employee_id", String(36), nullable=False)
    used_at = Column("uj_used_at", DateTime(timezone=True), server_default=func.now(), nullable=False)
