"""Entry points that accept files and start import jobs.

Jobs are persisted in `pending` and handed to the Celery worker; nothing here
waits for processing.
"""

from __future__ import annotations

import logging
from typing import NamedTuple

from sqlalchemy.orm import Session

from bulk_import.core.config import get_settings
from bulk_import.core.enums import DuplicatePolicy, EntityType
from bulk_import.db.models.import_job import ImportJob
from bulk_import.services import job_store, templates
from bulk_import.services.errors import FileRejectedError
from bulk_import.services.progress_tracker import publish_progress
from bulk_import.services.workbook import read_headers
from bulk_import.storage import object_storage

logger = logging.getLogger(__name__)


def check_upload(size: int, content_type: str | None) -> None:
    """Reject oversized files and non-spreadsheet content types before storing anything."""
    settings = get_settings()
    if size > settings.max_upload_bytes:
        limit_mb = settings.max_upload_bytes // (1024 * 1024)
        raise FileRejectedError(f"File too large (max {limit_mb} MB)", too_large=True)
    if content_type not in settings.allowed_upload_types:
        raise FileRejectedError("Only .xlsx and .xls spreadsheets are accepted")


class StoredUpload(NamedTuple):
    file_url: str
    headers: list[str]


def upload_file(content: bytes, file_name: str, content_type: str | None) -> StoredUpload:
    """Validate an uploaded spreadsheet, read its headers, then store it.

    Nothing is written to storage unless the workbook decodes.
    """
    check_upload(len(content), content_type)
    headers = read_headers(content)
    file_url = object_storage.store(content, content_type, file_name)
    return StoredUpload(file_url=file_url, headers=headers)


def parse_headers(file_url: str) -> list[str]:
    """Download a stored workbook and return its first-row labels."""
    content = object_storage.fetch(file_url)
    return read_headers(content)


def start_import(
    db: Session,
    *,
    entity_type: EntityType | str,
    file_url: str,
    file_name: str,
    mappings: dict[str, str],
    on_duplicate: DuplicatePolicy | str = DuplicatePolicy.SKIP,
    template_id: str | None = None,
    created_by_id: str | None = None,
) -> ImportJob:
    """Persist a pending job and enqueue it; returns without waiting for the worker."""
    if template_id:
        templates.get_template(db, template_id)

    job = job_store.create_job(
        db,
        entity_type=entity_type,
        file_url=file_url,
        file_name=file_name,
        mappings=mappings,
        on_duplicate=on_duplicate,
        template_id=template_id,
        created_by_id=created_by_id,
    )
    publish_progress(job.id, job.status, "Queued")
    try:
        enqueue_job(job.id)
    except Exception as exc:
        # The job exists but no worker will ever pick it up
        logger.error(f"Error enqueueing import job {job.id}: {exc}", exc_info=True)
        job_store.mark_failed(db, job, f"Failed to enqueue import job: {exc}")
        raise
    logger.info(f"Created import job {job.id} ({job.entity_type}) for file {file_name}")
    return job


def enqueue_job(job_id: str) -> None:
    """Hand the job to the import queue with the configured attempts/backoff policy."""
    from bulk_import.workers.celery_app import IMPORT_QUEUE
    from bulk_import.workers.tasks.process_import import process_import_task

    settings = get_settings()
    process_import_task.apply_async(
        args=(job_id,),
        kwargs={
            "max_attempts": settings.import_max_attempts,
            "backoff_seconds": settings.import_backoff_seconds,
        },
        queue=IMPORT_QUEUE,
    )
