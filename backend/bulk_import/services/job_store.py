"""Durable state of import runs: creation, queries and worker-side transitions.

Only the worker that owns a job id mutates it after creation, always through
whole-record progress writes; a job in `done` or `failed` is never written again.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from bulk_import.core.enums import DuplicatePolicy, EntityType, JobStatus
from bulk_import.db.base import utcnow
from bulk_import.db.models.import_job import ImportJob
from bulk_import.services.errors import JobStateError, NotFoundError

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100


@dataclass
class RowError:
    row: int
    field: str
    message: str

    def to_dict(self) -> dict[str, Any]:
        return {"row": self.row, "field": self.field, "message": self.message}


@dataclass
class JobProgress:
    """In-memory counters of one worker attempt, flushed at checkpoints."""

    processed_rows: int = 0
    error_rows: int = 0
    errors: list[dict[str, Any]] = field(default_factory=list)
    last_processed_row: int = 0
    outcomes: dict[str, int] = field(default_factory=dict)

    @classmethod
    def resume_from(cls, job: ImportJob) -> "JobProgress":
        """Rebuild counters from the job's last checkpoint."""
        meta = job.meta or {}
        return cls(
            processed_rows=job.processed_rows or 0,
            error_rows=job.error_rows or 0,
            errors=list(job.errors or []),
            last_processed_row=job.last_processed_row or 0,
            outcomes=dict(meta.get("outcomes") or {}),
        )

    def add_error(self, error: RowError) -> None:
        self.errors.append(error.to_dict())


@dataclass
class JobPage:
    items: list[ImportJob]
    total: int
    page: int
    limit: int

    @property
    def pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0


def create_job(
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
    """Persist a new job in `pending`."""
    job = ImportJob(
        entity_type=EntityType(entity_type).value,
        file_url=file_url,
        file_name=file_name,
        mappings=dict(mappings),
        on_duplicate=DuplicatePolicy(on_duplicate).value,
        template_id=template_id,
        created_by_id=created_by_id,
        status=JobStatus.PENDING.value,
        errors=[],
    )
    db.add(job)
    db.commit()
    db.refresh(job)
    return job


def get_job(db: Session, job_id: str) -> ImportJob:
    job = db.get(ImportJob, job_id)
    if not job:
        raise NotFoundError(f"ImportJob {job_id} not found")
    return job


def list_jobs(
    db: Session,
    *,
    entity_type: EntityType | str | None = None,
    status: JobStatus | str | None = None,
    page: int = 1,
    limit: int = 20,
) -> JobPage:
    """Return one page of jobs, newest first."""
    page = max(page, 1)
    limit = min(max(limit, 1), MAX_PAGE_SIZE)

    conditions = []
    if entity_type:
        conditions.append(ImportJob.entity_type == EntityType(entity_type).value)
    if status:
        conditions.append(ImportJob.status == JobStatus(status).value)

    total = db.scalar(select(func.count(ImportJob.id)).where(*conditions)) or 0
    query = (
        select(ImportJob)
        .where(*conditions)
        .order_by(ImportJob.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    items = list(db.scalars(query).unique().all())
    return JobPage(items=items, total=total, page=page, limit=limit)


def _ensure_mutable(job: ImportJob) -> None:
    if JobStatus(job.status).is_terminal:
        raise JobStateError(f"ImportJob {job.id} is already {job.status}")


def _write_progress(job: ImportJob, progress: JobProgress) -> None:
    job.processed_rows = progress.processed_rows
    job.error_rows = progress.error_rows
    # JSON columns only register changes on reassignment
    job.errors = list(progress.errors)
    job.last_processed_row = progress.last_processed_row
    job.meta = {**(job.meta or {}), "outcomes": dict(progress.outcomes)}


def claim_for_processing(db: Session, job: ImportJob) -> bool:
    """Move a `pending` job to `processing`; False if another attempt holds it or it is finished.

    The status check and the write are one UPDATE, so two consumers can never
    both enter `processing` for the same job.
    """
    result = db.execute(
        update(ImportJob)
        .where(ImportJob.id == job.id, ImportJob.status == JobStatus.PENDING.value)
        .values(
            status=JobStatus.PROCESSING.value,
            attempts=ImportJob.attempts + 1,
            started_at=func.coalesce(ImportJob.started_at, utcnow()),
        )
        .execution_options(synchronize_session=False)
    )
    db.commit()
    db.refresh(job)
    return result.rowcount == 1


def set_total_rows(db: Session, job: ImportJob, total_rows: int) -> None:
    _ensure_mutable(job)
    job.total_rows = total_rows
    db.commit()


def checkpoint(db: Session, job: ImportJob, progress: JobProgress) -> None:
    """Persist in-flight counters, error list and row cursor."""
    _ensure_mutable(job)
    _write_progress(job, progress)
    db.commit()
    logger.debug(
        f"Job {job.id} checkpoint: {progress.processed_rows}/{job.total_rows} rows, "
        f"{progress.error_rows} errors"
    )


def mark_done(db: Session, job: ImportJob, progress: JobProgress) -> None:
    _ensure_mutable(job)
    _write_progress(job, progress)
    job.status = JobStatus.DONE.value
    job.error_message = None
    job.completed_at = utcnow()
    db.commit()


def mark_failed(db: Session, job: ImportJob, message: str) -> None:
    """Terminal failure: the error list becomes a single synthetic row-0 error."""
    _ensure_mutable(job)
    job.status = JobStatus.FAILED.value
    job.errors = [RowError(row=0, field="", message=message).to_dict()]
    job.error_message = message
    job.completed_at = utcnow()
    db.commit()


def requeue(db: Session, job: ImportJob, message: str, progress: JobProgress) -> None:
    """Non-final attempt failed: back to `pending`, checkpointing progress for the retry."""
    _ensure_mutable(job)
    _write_progress(job, progress)
    job.status = JobStatus.PENDING.value
    job.error_message = message
    db.commit()


def release_stale_jobs(db: Session, older_than: timedelta) -> list[str]:
    """Return jobs stuck in `processing` (no write for `older_than`) to `pending`.

    Only meant for jobs whose worker died: a live worker touches the record at
    every checkpoint. The caller decides whether to enqueue the released ids.
    """
    cutoff = utcnow() - older_than
    last_write = func.coalesce(ImportJob.updated_at, ImportJob.started_at)
    stale_ids = list(
        db.scalars(
            select(ImportJob.id).where(
                ImportJob.status == JobStatus.PROCESSING.value, last_write < cutoff
            )
        )
    )
    if not stale_ids:
        return []

    db.execute(
        update(ImportJob)
        .where(
            ImportJob.id.in_(stale_ids),
            ImportJob.status == JobStatus.PROCESSING.value,
        )
        .values(
            status=JobStatus.PENDING.value,
            error_message="Released after worker loss",
        )
        .execution_options(synchronize_session=False)
    )
    db.commit()
    logger.warning(f"Released {len(stale_ids)} stuck import job(s): {', '.join(stale_ids)}")
    return stale_ids
