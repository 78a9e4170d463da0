"""
Event Model - Time-windowed, fenced events where attendance is taken
"""
from sqlalchemy import Column, String, DateTime, JSON
from sqlalchemy.sql import func
from atams.db import Base


class Event(Base):
    """Event model for attendance schema - Table: attendance.events"""
    __tablename__ = "events"
    __table_args__ = {"schema": "attendance"}

    id = Column("ev_id", String(36), primary_key=True, index=True)
    tenant_id = Column("ev_tenant_id", String(36), nullable=False, index=True)
    name = Column("ev_name", String(255), nullable=False)
    location = Column("ev_location", String(500), nullable=False)
    fence = Column("ev_fence", JSON, nullable=True)  # [[lat, lon], ...]
    initial_date = Column("ev_initial_date", DateTime(timezone=True), nullable=False)
    final_date = Column("ev_final_date", DateTime(timezone=True), nullable=False)
    status = Column("ev_status", String(10), nullable=False, default="active")  # 'active', 'inactive' or 'deleted'
    created_at = Column("ev_created_at", DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column("ev_updated_at", DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
    created_by = Column("ev_created_by", String(36), nullable=True)
    updated_by = Column("ev_updated_by", String(36), nullable=True)
