"""Shared helpers for shaping import job responses."""
from __future__ import annotations

from bulk_import.api.schemas.imports import ImportJobRead
from bulk_import.db.models.import_job import ImportJob


def serialize_job(job: ImportJob, progress_payload: dict | None) -> ImportJobRead:
    """Combine the DB record with the cached progress snapshot.

    The record is authoritative for status and counters; the snapshot only
    contributes the progress fraction and message when it has them.
    """
    progress_payload = progress_payload or {}
    payload = ImportJobRead.model_validate(job)

    calculated_progress = progress_payload.get("progress")
    if calculated_progress is None and job.total_rows:
        calculated_progress = job.processed_rows / job.total_rows

    message = progress_payload.get("message")
    if not message:
        total_display = job.total_rows if job.total_rows else "?"
        message = f"Processed {job.processed_rows}/{total_display} rows"

    return payload.model_copy(update={"progress": calculated_progress, "message": message})
