"""SQLAlchemy model for client (customer) records."""

import uuid

from sqlalchemy import Column, String, Text, func
from sqlalchemy.types import DateTime

from bulk_import.db.base import Base, utcnow


class Client(Base):
    __tablename__ = "clients"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(255), nullable=False)
    legal_name = Column(String(255))
    siret = Column(String(32), index=True)
    vat_number = Column(String(32))
    email = Column(String(255))
    phone = Column(String(64))
    address_line1 = Column(String(255))
    postal_code = Column(String(16))
    city = Column(String(128))
    country = Column(String(64))
    payment_conditions = Column(String(255))
    notes = Column(Text)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
