"""Tabular template export and lazy row reading for individual-mode grants.

The template and the upload share one column layout. Exports are produced as
xlsx (default) or csv; uploads are accepted in either format and detected by
content, not by filename.
"""

from __future__ import annotations

import csv
import io
import zipfile
from dataclasses import dataclass
from datetime import date, datetime
from typing import TYPE_CHECKING, Any

from openpyxl import Workbook, load_workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter
from openpyxl.utils.exceptions import InvalidFileException

from leave_grant.models.enums import TemplateFormat

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

TEMPLATE_COLUMNS: tuple[str, ...] = (
    "employee_id",
    "employee_name",
    "email",
    "department",
    "days_granted",
    "period_start",
    "period_end",
    "carryover_expiration",
)
REQUIRED_COLUMNS: frozenset[str] = frozenset(
    {"employee_id", "days_granted", "period_start", "period_end", "carryover_expiration"}
)
SHEET_TITLE = "Leave Grant"

_XLSX_SIGNATURE = b"PK\x03\x04"
# Raised by openpyxl for damaged archives, XML (lxml and ElementTree errors derive
# from SyntaxError) and cell values.
_XLSX_READ_ERRORS = (InvalidFileException, zipfile.BadZipFile, KeyError, ValueError, TypeError, EOFError, SyntaxError)
_COLUMN_WIDTHS = {
    "employee_id": 38,
    "employee_name": 24,
    "email": 30,
    "department": 16,
    "days_granted": 14,
    "period_start": 14,
    "period_end": 14,
    "carryover_expiration": 22,
}

MEDIA_TYPES = {
    TemplateFormat.XLSX: "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    TemplateFormat.CSV: "text/csv",
}


class TemplateFormatError(ValueError):
    """The uploaded file is not a readable grant table."""


@dataclass(frozen=True)
class UploadRow:
    """One non-blank data row of an upload, keyed by normalized column name."""

    row_number: int
    values: dict[str, Any]


# ---------------------------------------------------------------------------
# Export
# ---------------------------------------------------------------------------


def _write_xlsx(rows: Iterable[dict[str, Any]]) -> bytes:
    wb = Workbook()
    ws = wb.active
    ws.title = SHEET_TITLE

    header_font = Font(bold=True, size=11, name="Arial")
    header_fill = PatternFill("solid", fgColor="DAEEF3")
    input_fill = PatternFill("solid", fgColor="FFFFCC")
    thin = Side(style="thin")
    border = Border(left=thin, right=thin, top=thin, bottom=thin)
    input_columns = {"days_granted", "period_start", "period_end", "carryover_expiration"}

    for col_idx, name in enumerate(TEMPLATE_COLUMNS, 1):
        cell = ws.cell(row=1, column=col_idx, value=name)
        cell.font = header_font
        cell.fill = header_fill
        cell.border = border
        cell.alignment = Alignment(horizontal="center", vertical="center")
        ws.column_dimensions[get_column_letter(col_idx)].width = _COLUMN_WIDTHS[name]

    for row_idx, row in enumerate(rows, 2):
        for col_idx, name in enumerate(TEMPLATE_COLUMNS, 1):
            cell = ws.cell(row=row_idx, column=col_idx, value=row.get(name))
            cell.border = border
            if name in input_columns:
                cell.fill = input_fill
            if isinstance(row.get(name), date):
                cell.number_format = "yyyy-mm-dd"

    ws.freeze_panes = "A2"
    buffer = io.BytesIO()
    wb.save(buffer)
    return buffer.getvalue()


def _csv_cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, date):
        return value.isoformat()
    return str(value)


def _write_csv(rows: Iterable[dict[str, Any]]) -> bytes:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(TEMPLATE_COLUMNS)
    for row in rows:
        writer.writerow([_csv_cell(row.get(name)) for name in TEMPLATE_COLUMNS])
    return buffer.getvalue().encode("utf-8-sig")


def render_template(rows: Iterable[dict[str, Any]], fmt: TemplateFormat = TemplateFormat.XLSX) -> bytes:
    """Render template rows (dicts keyed by ``TEMPLATE_COLUMNS``) to file bytes."""
    if fmt == TemplateFormat.CSV:
        return _write_csv(rows)
    return _write_xlsx(rows)


# ---------------------------------------------------------------------------
# Upload reading
# ---------------------------------------------------------------------------


def normalize_header(value: Any) -> str:
    """Map a header cell to its column key, e.g. ``"Employee ID"`` -> ``"employee_id"``."""
    if value is None:
        return ""
    return "_".join(str(value).strip().lower().replace("-", " ").split())


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _raw_xlsx_rows(content: bytes) -> Iterator[tuple[Any, ...]]:
    try:
        wb = load_workbook(io.BytesIO(content), read_only=True, data_only=True)
    except _XLSX_READ_ERRORS as exc:
        msg = "File is not a readable xlsx workbook"
        raise TemplateFormatError(msg) from exc
    try:
        ws = wb[SHEET_TITLE] if SHEET_TITLE in wb.sheetnames else wb.active
        yield from ws.iter_rows(values_only=True)
    except _XLSX_READ_ERRORS as exc:
        msg = "Workbook sheet could not be read"
        raise TemplateFormatError(msg) from exc
    finally:
        wb.close()


def _raw_csv_rows(content: bytes) -> Iterator[tuple[Any, ...]]:
    try:
        text = content.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        msg = "CSV file must be UTF-8 encoded"
        raise TemplateFormatError(msg) from exc
    reader = csv.reader(io.StringIO(text))
    try:
        for record in reader:
            yield tuple(record)
    except csv.Error as exc:
        msg = f"CSV file is malformed near line {reader.line_num}: {exc}"
        raise TemplateFormatError(msg) from exc


def _cell_value(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, str):
        return value.strip()
    return value


def iter_upload_rows(content: bytes) -> Iterator[UploadRow]:
    """Lazily yield the non-blank data rows of an uploaded grant table.

    The first non-blank row is the header. Raises ``TemplateFormatError`` when
    the file cannot be read or the header lacks a required column.
    """
    raw_rows = _raw_xlsx_rows(content) if content.startswith(_XLSX_SIGNATURE) else _raw_csv_rows(content)
    header: list[str] | None = None
    for row_number, raw in enumerate(raw_rows, 1):
        if all(_is_blank(v) for v in raw):
            continue
        if header is None:
            header = [normalize_header(v) for v in raw]
            missing = sorted(REQUIRED_COLUMNS - set(header))
            if missing:
                msg = f"Missing required column(s): {', '.join(missing)}"
                raise TemplateFormatError(msg)
            continue
        values = {name: _cell_value(raw[idx]) if idx < len(raw) else None for idx, name in enumerate(header) if name}
        yield UploadRow(row_number=row_number, values=values)
    if header is None:
        msg = "File is empty"
        raise TemplateFormatError(msg)
