"""Track spreadsheet import runs: inputs, progress counters and row errors."""

import uuid

from sqlalchemy import Column, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from sqlalchemy.types import DateTime

from bulk_import.db.base import Base, JSONType, utcnow


class ImportJob(Base):
    __tablename__ = "import_jobs"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    entity_type = Column(String(32), nullable=False, index=True)
    status = Column(String(32), nullable=False, default="pending", index=True)
    file_url = Column(Text, nullable=False)
    file_name = Column(String(255), nullable=False)
    # source column label -> target field name, in mapping order
    mappings = Column(JSONType, nullable=False, default=dict)
    on_duplicate = Column(String(16), nullable=False, default="skip")
    template_id = Column(
        String(36), ForeignKey("import_templates.id", ondelete="SET NULL")
    )
    created_by_id = Column(String(64))

    total_rows = Column(Integer, nullable=False, default=0)
    processed_rows = Column(Integer, nullable=False, default=0)
    error_rows = Column(Integer, nullable=False, default=0)
    # [{"row": int, "field": str, "message": str}, ...]
    errors = Column(JSONType, nullable=False, default=list)
    # spreadsheet row number of the last checkpointed row, used to resume retries
    last_processed_row = Column(Integer, nullable=False, default=0)
    attempts = Column(Integer, nullable=False, default=0)
    error_message = Column(Text)
    meta = Column(JSONType)

    created_at = Column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), index=True
    )
    started_at = Column(DateTime(timezone=True))
    completed_at = Column(DateTime(timezone=True))
    updated_at = Column(DateTime(timezone=True), onupdate=utcnow)

    template = relationship("ImportTemplate", lazy="joined")
