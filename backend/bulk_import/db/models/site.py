"""SQLAlchemy model for client sites."""

import uuid

from sqlalchemy import Column, Float, String, func
from sqlalchemy.types import DateTime

from bulk_import.db.base import Base, utcnow


class Site(Base):
    __tablename__ = "sites"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    reference = Column(String(32), nullable=False, unique=True)
    name = Column(String(255), nullable=False)
    client_id = Column(String(36), nullable=False, index=True)
    address = Column(String(255), nullable=False)
    postal_code = Column(String(16))
    commune = Column(String(128))
    departement = Column(String(128))
    country = Column(String(64))
    latitude = Column(Float)
    longitude = Column(Float)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
