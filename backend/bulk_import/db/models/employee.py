"""SQLAlchemy model for employee (HR) records."""

import uuid

from sqlalchemy import Column, Date, Float, String, func
from sqlalchemy.types import DateTime

from bulk_import.db.base import Base, utcnow


class Employee(Base):
    __tablename__ = "employees"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    first_name = Column(String(128), nullable=False)
    last_name = Column(String(128), nullable=False)
    professional_email = Column(String(255), index=True)
    personal_email = Column(String(255))
    phone = Column(String(64))
    position = Column(String(128))
    contract_type = Column(String(64))
    entry_date = Column(Date)
    weekly_hours = Column(Float)
    gross_salary = Column(Float)
    net_salary = Column(Float)
    address_line1 = Column(String(255))
    postal_code = Column(String(16))
    city = Column(String(128))
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
