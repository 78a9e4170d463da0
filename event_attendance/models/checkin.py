"""
Checkin Model - Every check-in attempt, valid or rejected
"""
from sqlalchemy import Boolean, Column, String, DateTime, Float, ForeignKey, Index, JSON, Text, text
from sqlalchemy.sql import func
from atams.db import Base


class Checkin(Base):
    """Checkin model for attendance schema - Table: attendance.checkins"""
    __tablename__ = "checkins"
    __table_args__ = (
        # One valid open check-in per employee and event; checkouts close it
        Index(
            "ux_checkins_open_session",
            "ci_event_id",
            "ci_employee_id",
            unique=True,
            postgresql_where=text("ci_is_valid AND ci_is_open"),
        ),
        {"schema": "attendance"},
    )

    id = Column("ci_id", String(36), primary_key=True, index=True)
    tenant_id = Column("ci_tenant_id", String(36), nullable=False, index=True)
    event_id = Column("ci_event_id", String(36), ForeignKey("attendance.events.ev_id"), nullable=False, index=True)
    employee_id = Column("ci_employee_id", String(36), nullable=False, index=True)
    partner_id = Column("ci_partner_id", String(36), nullable=False, index=True)
    method = Column("ci_method", String(20), nullable=False)  # 'facial_recognition', 'qr_code' or 'manual'
    latitude = Column("ci_lat", Float, nullable=True)
    longitude = Column("ci_lon", Float, nullable=True)
    checkin_time = Column("ci_checkin_time", DateTime(timezone=True), nullable=False)
    photo_url = Column("ci_photo_url", String(500), nullable=True)
    notes = Column("ci_notes", Text, nullable=True)
    is_valid = Column("ci_is_valid", Boolean, nullable=False, default=False)
    is_open = Column("ci_is_open", Boolean, nullable=False, default=True)
    validation_details = Column("ci_validation_details", JSON, nullable=True)
    created_at = Column("ci_created_at", DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column("ci_updated_at", DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
    created_by = Column("ci_created_by", String(36), nullable=True)
    updated_by = Column("ci_updated_by", String(36), nullable=True)

    @property
    def location(self):
        if self.latitude is None or self.longitude is None:
            return None
        return {"latitude": self.latitude, "longitude": self.longitude}
