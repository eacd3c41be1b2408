"""Named, reusable column-to-field mapping presets."""

import uuid

from sqlalchemy import Column, String
from sqlalchemy.sql import func
from sqlalchemy.types import DateTime

from bulk_import.db.base import Base, JSONType, utcnow


class ImportTemplate(Base):
    __tablename__ = "import_templates"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(100), nullable=False)
    entity_type = Column(String(32), nullable=False, index=True)
    mappings = Column(JSONType, nullable=False, default=dict)
    created_by_id = Column(String(64))
    created_at = Column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), index=True
    )
