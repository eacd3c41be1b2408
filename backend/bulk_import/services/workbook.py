"""Spreadsheet decoding: header labels and data rows of a workbook's first sheet."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from io import BytesIO
from typing import Any

import openpyxl

from bulk_import.services.errors import WorkbookError

logger = logging.getLogger(__name__)


@dataclass
class SheetData:
    """Header labels (row 1) and data rows keyed by header label, in sheet order."""

    headers: list[str] = field(default_factory=list)
    rows: list[dict[str, Any]] = field(default_factory=list)


def _load_first_sheet_rows(content: bytes) -> list[tuple[Any, ...]]:
    try:
        wb = openpyxl.load_workbook(BytesIO(content), read_only=True, data_only=True)
    except Exception as e:
        raise WorkbookError(f"Unable to read workbook: {e}") from e

    try:
        if not wb.worksheets:
            raise WorkbookError("Empty workbook")
        sheet = wb.worksheets[0]
        return [tuple(row) for row in sheet.iter_rows(values_only=True)]
    finally:
        wb.close()


def _label(value: Any) -> str:
    return str(value).strip() if value is not None else ""


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def read_headers(content: bytes) -> list[str]:
    """Return the non-empty first-row labels of the first sheet."""
    raw_rows = _load_first_sheet_rows(content)
    if not raw_rows:
        raise WorkbookError("The first sheet of the workbook is empty")
    headers = [label for label in (_label(v) for v in raw_rows[0]) if label]
    if not headers:
        raise WorkbookError("The first row of the first sheet has no column labels")
    return headers


def read_sheet(content: bytes) -> SheetData:
    """Decode the first sheet into header labels and label->value row mappings.

    Rows whose cells are all blank are skipped; blank cells become None.
    """
    raw_rows = _load_first_sheet_rows(content)
    if not raw_rows:
        return SheetData()

    headers = [_label(v) for v in raw_rows[0]]
    rows: list[dict[str, Any]] = []
    for raw in raw_rows[1:]:
        if all(_is_blank(v) for v in raw):
            continue
        row: dict[str, Any] = {}
        for header, value in zip(headers, raw):
            if header:
                row[header] = None if _is_blank(value) else value
        rows.append(row)

    logger.debug(f"Decoded sheet with {len(headers)} columns and {len(rows)} data rows")
    return SheetData(headers=[h for h in headers if h], rows=rows)
