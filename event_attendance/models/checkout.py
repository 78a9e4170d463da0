"""
Checkout Model - Every check-out attempt, paired with its check-in
"""
from sqlalchemy import Boolean, Column, String, DateTime, Float, ForeignKey, Index, Interval, JSON, Text, text
from sqlalchemy.sql import func
from atams.db import Base


class Checkout(Base):
    """Checkout model for attendance schema - Table: attendance.checkouts"""
    __tablename__ = "checkouts"
    __table_args__ = (
        # At most one valid checkout per check-in; rejected attempts are kept for audit
        Index(
            "ux_checkouts_checkin",
            "co_checkin_id",
            unique=True,
            postgresql_where=text("co_is_valid"),
        ),
        {"schema": "attendance"},
    )

    id = Column("co_id", String(36), primary_key=True, index=True)
    tenant_id = Column("co_tenant_id", String(36), nullable=False, index=True)
    event_id = Column("co_event_id", String(36), ForeignKey("attendance.events.ev_id"), nullable=False, index=True)
    checkin_id = Column("co_checkin_id", String(36), ForeignKey("attendance.checkins.ci_id"), nullable=False, index=True)
    employee_id = Column("co_employee_id", String(36), nullable=False, index=True)
    partner_id = Column("co_partner_id", String(36), nullable=False, index=True)
    method = Column("co_method", String(20), nullable=False)
    latitude = Column("co_lat", Float, nullable=True)
    longitude = Column("co_lon", Float, nullable=True)
    checkout_time = Column("co_checkout_time", DateTime(timezone=True), nullable=False)
    work_duration = Column("co_work_duration", Interval, nullable=True)
    photo_url = Column("co_photo_url", String(500), nullable=True)
    notes = Column("co_notes", Text, nullable=True)
    is_valid = Column("co_is_valid", Boolean, nullable=False, default=False)
    validation_details = Column("co_validation_details", JSON, nullable=True)
    created_at = Column("co_created_at", DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column("co_updated_at", DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
    created_by = Column("co_created_by", String(36), nullable=True)
    updated_by = Column("co_updated_by", String(36), nullable=True)

    @property
    def location(self):
        if self.latitude is None or self.longitude is None:
            return None
        return {"latitude": self.latitude, "longitude": self.longitude}
