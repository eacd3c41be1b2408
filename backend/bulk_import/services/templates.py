"""Named column-mapping presets, scoped to an entity type."""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from bulk_import.core.enums import EntityType
from bulk_import.db.models.import_template import ImportTemplate
from bulk_import.services.errors import NotFoundError

logger = logging.getLogger(__name__)

MAX_NAME_LENGTH = 100


def save_template(
    db: Session,
    name: str,
    entity_type: EntityType | str,
    mappings: dict[str, str],
    created_by_id: str | None = None,
) -> ImportTemplate:
    """Persist a new template. Mapping values are not checked against the row schemas."""
    name = (name or "").strip()
    if not name:
        raise ValueError("Template name is required")
    if len(name) > MAX_NAME_LENGTH:
        raise ValueError(f"Template name must be at most {MAX_NAME_LENGTH} characters")

    template = ImportTemplate(
        name=name,
        entity_type=EntityType(entity_type).value,
        mappings=dict(mappings),
        created_by_id=created_by_id,
    )
    db.add(template)
    db.commit()
    db.refresh(template)
    logger.info(f"Saved import template {template.id} ({name!r}, {template.entity_type})")
    return template


def get_template(db: Session, template_id: str) -> ImportTemplate:
    template = db.get(ImportTemplate, template_id)
    if not template:
        raise NotFoundError(f"ImportTemplate {template_id} not found")
    return template


def list_templates(
    db: Session, entity_type: EntityType | str | None = None
) -> list[ImportTemplate]:
    """Return templates, most recent first, optionally restricted to one entity type."""
    query = select(ImportTemplate)
    if entity_type:
        query = query.where(ImportTemplate.entity_type == EntityType(entity_type).value)
    query = query.order_by(ImportTemplate.created_at.desc())
    return list(db.scalars(query).all())


def delete_template(db: Session, template_id: str) -> None:
    template = get_template(db, template_id)
    db.delete(template)
    db.commit()
    logger.info(f"Deleted import template {template_id}")
