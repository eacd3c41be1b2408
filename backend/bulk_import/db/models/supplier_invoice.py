"""SQLAlchemy model for supplier (purchase) invoices."""

import uuid

from sqlalchemy import Column, Date, Float, String, Text, func
from sqlalchemy.types import DateTime

from bulk_import.db.base import Base, utcnow


class SupplierInvoice(Base):
    __tablename__ = "supplier_invoices"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    reference = Column(String(64), nullable=False, index=True)
    supplier_id = Column(String(36), nullable=False, index=True)
    amount = Column(Float, nullable=False)
    date = Column(Date, nullable=False)
    vat_rate = Column(Float)
    due_date = Column(Date)
    notes = Column(Text)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
