"""
Employee Face Model - Registered reference face embeddings
"""
from sqlalchemy import Column, String, DateTime, JSON
from sqlalchemy.sql import func
from atams.db import Base


class EmployeeFace(Base):
    """Employee face model for attendance schema - Table: attendance.employee_faces"""
    __tablename__ = "employee_faces"
    __table_args__ = {"schema": "attendance"}

    employee_id = Column("ef_employee_id", String(36), primary_key=True, index=True)
    tenant_id = Column("ef_tenant_id", String(36), nullable=False, index=True)
    embedding = Column("ef_embedding", JSON, nullable=False)  # list of floats
    created_at = Column("ef_created_at", DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column("ef_updated_at", DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
