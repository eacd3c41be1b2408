"""Endpoints for spreadsheet upload, import jobs and mapping templates."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from bulk_import.api.dependencies.request import get_current_user_id, get_session
from bulk_import.api.routers.job_helpers import serialize_job
from bulk_import.api.schemas.imports import (
    EntityFields,
    ImportJobPage,
    ImportJobRead,
    ParseHeadersRequest,
    ParseHeadersResponse,
    StartImportRequest,
    StartImportResponse,
    TemplateCreate,
    TemplateRead,
    UploadResponse,
)
from bulk_import.core.config import get_settings
from bulk_import.core.enums import EntityType, JobStatus
from bulk_import.services import job_store, orchestrator, row_schemas, templates
from bulk_import.services.errors import (
    FileRejectedError,
    FileRetrievalError,
    NotFoundError,
    WorkbookError,
)
from bulk_import.services.progress_tracker import fetch_progress

logger = logging.getLogger(__name__)

router = APIRouter()


def _bad_request(exc: Exception) -> HTTPException:
    if isinstance(exc, FileRejectedError) and exc.too_large:
        return HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, detail=str(exc)
        )
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))


# ── File handling ───────────────────────────────────────────


@router.post(
    "/upload",
    summary="Upload a spreadsheet and read its header row",
    response_model=UploadResponse,
)
async def upload(file: UploadFile = File(...)) -> UploadResponse:
    """Store the spreadsheet and return its URL with the first-row labels."""
    if not file.filename:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Filename is required"
        )

    # Never read more than one byte past the limit
    max_bytes = get_settings().max_upload_bytes
    content = await file.read(max_bytes + 1)
    try:
        stored = orchestrator.upload_file(content, file.filename, file.content_type)
    except (FileRejectedError, WorkbookError) as exc:
        raise _bad_request(exc) from exc
    except OSError as exc:
        logger.error(f"OS error storing uploaded file: {exc}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to save uploaded file",
        ) from exc

    return UploadResponse(
        file_url=stored.file_url, file_name=file.filename, headers=stored.headers
    )


@router.post(
    "/parse-headers",
    summary="Read the header row of an already uploaded spreadsheet",
    response_model=ParseHeadersResponse,
)
def parse_headers(body: ParseHeadersRequest) -> ParseHeadersResponse:
    try:
        headers = orchestrator.parse_headers(body.file_url)
    except (FileRetrievalError, WorkbookError) as exc:
        raise _bad_request(exc) from exc
    return ParseHeadersResponse(headers=headers)


@router.get(
    "/fields/{entity_type}",
    summary="Target fields available to column mappings",
    response_model=EntityFields,
)
async def entity_fields(entity_type: EntityType) -> EntityFields:
    return EntityFields(
        entity_type=entity_type,
        fields=row_schemas.available_fields(entity_type),
        required=row_schemas.required_fields(entity_type),
    )


# ── Jobs ────────────────────────────────────────────────────


@router.post(
    "/start",
    summary="Start an import job",
    status_code=status.HTTP_202_ACCEPTED,
    response_model=StartImportResponse,
)
async def start_import(
    body: StartImportRequest,
    db: Session = Depends(get_session),
    user_id: str | None = Depends(get_current_user_id),
) -> StartImportResponse:
    """Persist a pending job, enqueue it and return its id without waiting."""
    try:
        job = orchestrator.start_import(
            db,
            entity_type=body.entity_type,
            file_url=body.file_url,
            file_name=body.file_name,
            mappings=body.mappings,
            on_duplicate=body.on_duplicate,
            template_id=body.template_id,
            created_by_id=user_id,
        )
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error(f"Database error creating import job: {exc}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create import job",
        ) from exc
    except Exception as exc:
        logger.error(f"Error starting import: {exc}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to start import process",
        ) from exc

    return StartImportResponse(job_id=job.id)


@router.get(
    "/jobs",
    summary="List import jobs, newest first",
    response_model=ImportJobPage,
)
async def list_jobs(
    entity_type: EntityType | None = Query(None, alias="entityType"),
    job_status: JobStatus | None = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=job_store.MAX_PAGE_SIZE),
    db: Session = Depends(get_session),
) -> ImportJobPage:
    result = job_store.list_jobs(
        db, entity_type=entity_type, status=job_status, page=page, limit=limit
    )
    return ImportJobPage(
        data=[serialize_job(job, fetch_progress(job.id)) for job in result.items],
        total=result.total,
        page=result.page,
        limit=result.limit,
        pages=result.pages,
    )


@router.get(
    "/jobs/{job_id}",
    summary="Fetch one import job with its progress and row errors",
    response_model=ImportJobRead,
)
async def get_job(job_id: str, db: Session = Depends(get_session)) -> ImportJobRead:
    try:
        job = job_store.get_job(db, job_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return serialize_job(job, fetch_progress(job_id))


# ── Templates ───────────────────────────────────────────────


@router.get(
    "/templates",
    summary="List mapping templates, most recent first",
    response_model=list[TemplateRead],
)
async def list_templates(
    entity_type: EntityType | None = Query(None, alias="entityType"),
    db: Session = Depends(get_session),
) -> list[TemplateRead]:
    return [
        TemplateRead.model_validate(template)
        for template in templates.list_templates(db, entity_type)
    ]


@router.post(
    "/templates",
    summary="Save a mapping template",
    status_code=status.HTTP_201_CREATED,
    response_model=TemplateRead,
)
async def save_template(
    body: TemplateCreate,
    db: Session = Depends(get_session),
    user_id: str | None = Depends(get_current_user_id),
) -> TemplateRead:
    try:
        template = templates.save_template(
            db, body.name, body.entity_type, body.mappings, created_by_id=user_id
        )
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return TemplateRead.model_validate(template)


@router.delete(
    "/templates/{template_id}",
    summary="Delete a mapping template",
)
async def delete_template(
    template_id: str, db: Session = Depends(get_session)
) -> dict[str, bool]:
    try:
        templates.delete_template(db, template_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return {"success": True}
