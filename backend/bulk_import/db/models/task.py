"""SQLAlchemy model for project tasks."""

import uuid

from sqlalchemy import Column, Date, Float, String, Text, func
from sqlalchemy.types import DateTime

from bulk_import.db.base import Base, utcnow


class Task(Base):
    __tablename__ = "tasks"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    reference = Column(String(32), nullable=False, unique=True)
    title = Column(String(255), nullable=False)
    project_id = Column(String(36), nullable=False, index=True)
    description = Column(Text)
    status = Column(String(32))
    priority = Column(String(32))
    employee_id = Column(String(36))
    planned_start_date = Column(Date)
    planned_end_date = Column(Date)
    estimated_hours = Column(Float)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
