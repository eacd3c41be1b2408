"""Celery task for spreadsheet imports: decode, validate and upsert every row of one job."""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from bulk_import.core.config import get_settings
from bulk_import.core.enums import JobStatus
from bulk_import.db.models.import_job import ImportJob
from bulk_import.db.session import get_fresh_session
from bulk_import.services import job_store, row_schemas
from bulk_import.services.job_store import JobProgress, RowError
from bulk_import.services.progress_tracker import publish_progress
from bulk_import.services.upsert import RecordUpserter, get_upserter
from bulk_import.services.workbook import read_sheet
from bulk_import.storage.object_storage import fetch
from bulk_import.workers.celery_app import IMPORT_TASK, celery_app

logger = logging.getLogger(__name__)

# Spreadsheet row 1 holds the headers; data row i (0-based) is sheet row i + 2.
FIRST_DATA_ROW = 2


def map_row(source: dict[str, Any], mappings: dict[str, str]) -> dict[str, Any]:
    """Apply a column mapping: target field -> cell value (None for blank/missing cells)."""
    return {field: source.get(column) for column, field in mappings.items()}


def row_error_message(exc: Exception) -> str:
    """User-facing text for a failed upsert; database errors omit the SQL and parameters."""
    if isinstance(exc, SQLAlchemyError):
        orig = getattr(exc, "orig", None)
        return str(orig) if orig is not None else exc.__class__.__name__
    return str(exc) or exc.__class__.__name__


def _publish(job: ImportJob, progress: JobProgress, status: JobStatus, message: str) -> None:
    publish_progress(
        job.id,
        status.value,
        message,
        processed=progress.processed_rows,
        total=job.total_rows or 0,
        errors=progress.error_rows,
        outcomes=progress.outcomes,
    )


def _process_row(
    db: Session,
    job: ImportJob,
    upserter: RecordUpserter,
    progress: JobProgress,
    row_number: int,
    source: dict[str, Any],
) -> None:
    mapped = map_row(source, job.mappings or {})

    result = row_schemas.validate(job.entity_type, mapped)
    if not result.ok:
        for error in result.errors:
            progress.add_error(RowError(row=row_number, field=error.field, message=error.message))
        progress.error_rows += 1
        return

    try:
        outcome = upserter.upsert(result.data)
    except Exception as exc:
        db.rollback()
        logger.warning(f"Job {job.id} row {row_number} failed: {exc}")
        progress.add_error(RowError(row=row_number, field="", message=row_error_message(exc)))
        progress.error_rows += 1
        return

    progress.outcomes[outcome.value] = progress.outcomes.get(outcome.value, 0) + 1


def run_import_job(
    db: Session, job_id: str, *, final_attempt: bool = True
) -> JobStatus | None:
    """Process one import job end to end and return the status it was left in.

    Row-level problems are recorded on the job and never stop the loop.
    Job-level problems (unreachable file, undecodable workbook, unexpected
    errors) are recorded and re-raised: on the final attempt the job becomes
    `failed`, otherwise it goes back to `pending` for the queue to retry.
    """
    job = db.get(ImportJob, job_id)
    if job is None:
        logger.error(f"ImportJob {job_id} not found")
        return None

    if not job_store.claim_for_processing(db, job):
        logger.warning(f"ImportJob {job_id} is {job.status}; not processing it again")
        return JobStatus(job.status)

    settings = get_settings()
    progress = JobProgress.resume_from(job)
    logger.info(f"Processing import job {job_id} ({job.entity_type}, attempt {job.attempts})")

    try:
        content = fetch(job.file_url)
        sheet = read_sheet(content)
        job_store.set_total_rows(db, job, len(sheet.rows))

        if progress.last_processed_row:
            logger.info(
                f"Resuming job {job_id} after sheet row {progress.last_processed_row} "
                f"({progress.processed_rows} rows already processed)"
            )

        upserter = get_upserter(
            db,
            job.entity_type,
            job.on_duplicate,
            fuzzy_threshold=settings.fuzzy_match_threshold,
        )

        for position, source in enumerate(sheet.rows):
            row_number = position + FIRST_DATA_ROW
            if row_number <= progress.last_processed_row:
                continue

            _process_row(db, job, upserter, progress, row_number, source)
            progress.processed_rows += 1
            progress.last_processed_row = row_number

            if progress.processed_rows % settings.import_checkpoint_every == 0:
                job_store.checkpoint(db, job, progress)
                _publish(
                    job,
                    progress,
                    JobStatus.PROCESSING,
                    f"Processed {progress.processed_rows}/{job.total_rows} rows",
                )

        job_store.mark_done(db, job, progress)
        _publish(job, progress, JobStatus.DONE, "Import complete")
        logger.info(
            f"Job {job_id} done: {progress.processed_rows} rows, {progress.error_rows} errors"
        )
        return JobStatus.DONE

    except Exception as exc:
        db.rollback()
        message = str(exc) or exc.__class__.__name__
        logger.error(f"Job {job_id} failed: {message}", exc_info=True)
        try:
            if final_attempt:
                job_store.mark_failed(db, job, message)
                _publish(job, progress, JobStatus.FAILED, f"Import failed: {message}")
            else:
                job_store.requeue(db, job, message, progress)
                _publish(job, progress, JobStatus.PENDING, f"Retrying after error: {message}")
        except SQLAlchemyError as record_exc:
            db.rollback()
            # The job stays in `processing`, which later attempts will not claim
            logger.error(
                f"Could not record failure of job {job_id}, it is stuck in processing; "
                f"run release_stuck_jobs.py to queue it again: {record_exc}",
                exc_info=True,
            )
        raise


@celery_app.task(bind=True, name=IMPORT_TASK)
def process_import_task(
    self, job_id: str, max_attempts: int = 2, backoff_seconds: int = 3
) -> str | None:
    """Run one job; job-level failures are retried with exponential backoff."""
    retries = self.request.retries
    final_attempt = retries + 1 >= max_attempts
    session = get_fresh_session()
    try:
        status = run_import_job(session, job_id, final_attempt=final_attempt)
        return status.value if status else None
    except Exception as exc:
        if final_attempt:
            raise
        countdown = backoff_seconds * (2**retries)
        logger.warning(
            f"Import job {job_id} attempt {retries + 1}/{max_attempts} failed, "
            f"retrying in {countdown}s"
        )
        raise self.retry(exc=exc, countdown=countdown, max_retries=max_attempts - 1)
    finally:
        session.close()
