"""Per-entity validation rules applied to every mapped spreadsheet row.

Field names exposed to column mappings are camelCase (``professionalEmail``);
validated rows are dumped with the snake_case attribute names of the ORM
models so the upsert engine can pass them straight to SQLAlchemy.
"""

from __future__ import annotations

import datetime as dt
from typing import Any, NamedTuple, get_args

from pydantic import (
    BaseModel,
    ConfigDict,
    EmailStr,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel
from pydantic.fields import FieldInfo

from bulk_import.core.enums import EntityType


class FieldError(NamedTuple):
    field: str
    message: str


class RowValidation(NamedTuple):
    data: dict[str, Any] | None
    errors: list[FieldError]

    @property
    def ok(self) -> bool:
        return not self.errors


def _annotated_with(info: FieldInfo, kind: type) -> bool:
    return info.annotation is kind or kind in get_args(info.annotation)


class RowSchema(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
        coerce_numbers_to_str=True,
        extra="ignore",
    )

    @model_validator(mode="before")
    @classmethod
    def _normalize_cells(cls, values: Any) -> Any:
        """Drop blank cells and reduce spreadsheet datetimes to dates where a date is expected."""
        if not isinstance(values, dict):
            return values
        date_keys = cls._date_keys()
        cleaned: dict[str, Any] = {}
        for key, value in values.items():
            if value is None:
                continue
            if isinstance(value, str) and not value.strip():
                continue
            if key in date_keys and isinstance(value, dt.datetime):
                value = value.date()
            cleaned[key] = value
        return cleaned

    @classmethod
    def _date_keys(cls) -> set[str]:
        keys: set[str] = set()
        for name, info in cls.model_fields.items():
            if _annotated_with(info, dt.date):
                keys.update({name, info.alias or name})
        return keys


class ClientRow(RowSchema):
    name: str = Field(min_length=1)
    legal_name: str | None = None
    siret: str | None = None
    vat_number: str | None = None
    email: EmailStr | None = None
    phone: str | None = None
    address_line1: str | None = None
    postal_code: str | None = None
    city: str | None = None
    country: str | None = None
    payment_conditions: str | None = None
    notes: str | None = None


class EmployeeRow(RowSchema):
    first_name: str = Field(min_length=1)
    last_name: str = Field(min_length=1)
    professional_email: EmailStr
    personal_email: EmailStr | None = None
    phone: str | None = None
    position: str | None = None
    contract_type: str | None = None
    entry_date: dt.date | None = None
    weekly_hours: float | None = Field(default=None, ge=0)
    gross_salary: float | None = Field(default=None, ge=0)
    net_salary: float | None = Field(default=None, ge=0)
    address_line1: str | None = None
    postal_code: str | None = None
    city: str | None = None

    @field_validator("professional_email")
    @classmethod
    def _professional_email(cls, v: str) -> str:
        return v.lower()


class SiteRow(RowSchema):
    name: str = Field(min_length=1)
    client_id: str = Field(min_length=1)
    address: str = Field(min_length=1)
    postal_code: str | None = None
    commune: str | None = None
    departement: str | None = None
    country: str | None = None
    latitude: float | None = None
    longitude: float | None = None


class TaskRow(RowSchema):
    title: str = Field(min_length=1)
    project_id: str = Field(min_length=1)
    description: str | None = None
    status: str | None = None
    priority: str | None = None
    employee_id: str | None = None
    planned_start_date: dt.date | None = None
    planned_end_date: dt.date | None = None
    estimated_hours: float | None = Field(default=None, ge=0)


class SupplierInvoiceRow(RowSchema):
    reference: str = Field(min_length=1)
    supplier_id: str = Field(min_length=1)
    amount: float
    date: dt.date
    vat_rate: float | None = Field(default=None, ge=0)
    due_date: dt.date | None = None
    notes: str | None = None


ROW_SCHEMAS: dict[EntityType, type[RowSchema]] = {
    EntityType.CLIENT: ClientRow,
    EntityType.EMPLOYEE: EmployeeRow,
    EntityType.SITE: SiteRow,
    EntityType.TASK: TaskRow,
    EntityType.SUPPLIER_INVOICE: SupplierInvoiceRow,
}


def get_row_schema(entity_type: EntityType | str) -> type[RowSchema]:
    return ROW_SCHEMAS[EntityType(entity_type)]


def available_fields(entity_type: EntityType | str) -> list[str]:
    """Target-field vocabulary offered to column mappings, in declaration order."""
    schema = get_row_schema(entity_type)
    return [info.alias or name for name, info in schema.model_fields.items()]


def required_fields(entity_type: EntityType | str) -> list[str]:
    schema = get_row_schema(entity_type)
    return [
        info.alias or name
        for name, info in schema.model_fields.items()
        if info.is_required()
    ]


def _error_message(field: str, error: dict[str, Any], *, is_email: bool = False) -> str:
    kind = error.get("type")
    if kind == "missing":
        return f"{field} is required"
    if kind == "string_too_short" and error.get("ctx", {}).get("min_length") == 1:
        return f"{field} is required"
    if kind == "value_error":
        if is_email:
            return "Invalid email address"
        return str(error.get("ctx", {}).get("error", error["msg"]))
    return error["msg"]


def validate(entity_type: EntityType | str, mapped_row: dict[str, Any]) -> RowValidation:
    """Validate one mapped row; returns the cleaned data or one error per violated constraint."""
    schema = get_row_schema(entity_type)
    try:
        row = schema.model_validate(mapped_row)
    except ValidationError as exc:
        aliases = {name: info.alias or name for name, info in schema.model_fields.items()}
        email_fields = {
            aliases[name]
            for name, info in schema.model_fields.items()
            if _annotated_with(info, EmailStr)
        }
        errors = []
        for error in exc.errors():
            loc = error.get("loc") or ("",)
            field = aliases.get(str(loc[0]), str(loc[0]))
            message = _error_message(field, error, is_email=field in email_fields)
            errors.append(FieldError(field=field, message=message))
        return RowValidation(data=None, errors=errors)
    return RowValidation(data=row.model_dump(exclude_unset=True), errors=[])
