"""Request and response payloads for the import endpoints (camelCase on the wire)."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from bulk_import.core.enums import DuplicatePolicy, EntityType, JobStatus


class ApiModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class RowErrorRead(ApiModel):
    row: int
    field: str
    message: str


class TemplateRef(ApiModel):
    id: str
    name: str


class ImportJobRead(ApiModel):
    id: str
    entity_type: EntityType
    status: JobStatus
    file_url: str
    file_name: str
    mappings: dict[str, str]
    on_duplicate: DuplicatePolicy
    template_id: str | None = None
    template: TemplateRef | None = None
    created_by_id: str | None = None
    total_rows: int = 0
    processed_rows: int = 0
    error_rows: int = 0
    errors: list[RowErrorRead] = Field(default_factory=list)
    progress: float | None = Field(None, description="0-1 range for UI progress bars")
    message: str | None = None
    meta: dict | None = None
    created_at: datetime | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    updated_at: datetime | None = None


class ImportJobPage(ApiModel):
    data: list[ImportJobRead]
    total: int
    page: int
    limit: int
    pages: int


class StartImportRequest(ApiModel):
    entity_type: EntityType
    file_url: str = Field(..., min_length=1)
    file_name: str = Field(..., min_length=1)
    mappings: dict[str, str] = Field(
        ..., min_length=1, description="Spreadsheet column label -> target field name"
    )
    on_duplicate: DuplicatePolicy = DuplicatePolicy.SKIP
    template_id: str | None = None


class StartImportResponse(ApiModel):
    job_id: str


class TemplateCreate(ApiModel):
    name: str = Field(..., min_length=1, max_length=100)
    entity_type: EntityType
    mappings: dict[str, str]


class TemplateRead(ApiModel):
    id: str
    name: str
    entity_type: EntityType
    mappings: dict[str, str]
    created_by_id: str | None = None
    created_at: datetime | None = None


class UploadResponse(ApiModel):
    file_url: str
    file_name: str
    headers: list[str]


class ParseHeadersRequest(ApiModel):
    file_url: str = Field(..., min_length=1)


class ParseHeadersResponse(ApiModel):
    headers: list[str]


class EntityFields(ApiModel):
    entity_type: EntityType
    fields: list[str]
    required: list[str]
