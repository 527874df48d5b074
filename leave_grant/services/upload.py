"""All-or-nothing parsing of individual-mode grant uploads.

Rows are parsed into a temporary mapping; the caller only replaces its
authoritative rows when the result carries no issues.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING, Any

from leave_grant.schemas.grant import GrantLine
from leave_grant.schemas.wizard import FieldIssue
from leave_grant.services.template import TemplateFormatError, iter_upload_rows
from leave_grant.services.validation import line_issues

if TYPE_CHECKING:
    from collections.abc import Sequence

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UploadResult:
    """Outcome of parsing one upload: either lines or the reasons it was rejected."""

    lines: dict[uuid.UUID, GrantLine] = field(default_factory=dict)
    issues: list[FieldIssue] = field(default_factory=list)

    @property
    def accepted(self) -> bool:
        return not self.issues


class _CellError(ValueError):
    pass


def _parse_uuid(value: Any) -> uuid.UUID:
    if isinstance(value, uuid.UUID):
        return value
    if value is None or not str(value).strip():
        msg = "Employee ID is required"
        raise _CellError(msg)
    try:
        return uuid.UUID(str(value).strip())
    except ValueError:
        msg = f"'{value}' is not a valid employee ID"
        raise _CellError(msg) from None


def _parse_decimal(value: Any) -> Decimal:
    if value is None or isinstance(value, bool) or (isinstance(value, str) and not value):
        msg = "Days granted is required"
        raise _CellError(msg)
    try:
        result = Decimal(str(value))
    except InvalidOperation:
        msg = f"'{value}' is not a number"
        raise _CellError(msg) from None
    if not result.is_finite():
        msg = f"'{value}' is not a number"
        raise _CellError(msg)
    return result


def _parse_date(value: Any, label: str) -> date:
    if isinstance(value, date):
        return value
    if value is None or (isinstance(value, str) and not value):
        msg = f"{label} is required"
        raise _CellError(msg)
    try:
        return date.fromisoformat(str(value))
    except ValueError:
        msg = f"'{value}' is not a valid date (expected YYYY-MM-DD)"
        raise _CellError(msg) from None


_DATE_COLUMNS = (
    ("period_start", "Period start"),
    ("period_end", "Period end"),
    ("carryover_expiration", "Carryover expiration"),
)


def _parse_line(
    employee_id: uuid.UUID,
    values: dict[str, Any],
    row_number: int,
) -> tuple[GrantLine | None, list[FieldIssue]]:
    issues: list[FieldIssue] = []
    parsed: dict[str, Any] = {"employee_id": employee_id}
    try:
        parsed["days_granted"] = _parse_decimal(values.get("days_granted"))
    except _CellError as exc:
        issues.append(FieldIssue(field="days_granted", message=str(exc), row=row_number))
    for column, label in _DATE_COLUMNS:
        try:
            parsed[column] = _parse_date(values.get(column), label)
        except _CellError as exc:
            issues.append(FieldIssue(field=column, message=str(exc), row=row_number))
    if issues:
        return None, issues
    return GrantLine(**parsed), []


def parse_upload(
    content: bytes,
    *,
    selected_ids: Sequence[uuid.UUID],
    max_days: Decimal | None,
    max_rows: int,
) -> UploadResult:
    """Parse an uploaded grant table against the selected employees.

    Every selected employee needs exactly one row; rows for other employees,
    duplicate rows and any out-of-range value reject the whole file.
    """
    selected = set(selected_ids)
    candidate: dict[uuid.UUID, GrantLine] = {}
    first_seen: dict[uuid.UUID, int] = {}
    issues: list[FieldIssue] = []
    data_rows = 0

    try:
        for row in iter_upload_rows(content):
            data_rows += 1
            if data_rows > max_rows:
                issues.append(FieldIssue(field="file", message=f"File exceeds the limit of {max_rows} rows"))
                break
            try:
                employee_id = _parse_uuid(row.values.get("employee_id"))
            except _CellError as exc:
                issues.append(FieldIssue(field="employee_id", message=str(exc), row=row.row_number))
                continue
            if employee_id not in selected:
                issues.append(
                    FieldIssue(
                        field="employee_id",
                        message=f"Employee {employee_id} is not in the selected employees",
                        row=row.row_number,
                    )
                )
                continue
            if employee_id in first_seen:
                issues.append(
                    FieldIssue(
                        field="employee_id",
                        message=f"Duplicate row for employee {employee_id} (first on row {first_seen[employee_id]})",
                        row=row.row_number,
                    )
                )
                continue
            first_seen[employee_id] = row.row_number

            line, row_issues = _parse_line(employee_id, row.values, row.row_number)
            if line is not None:
                row_issues = line_issues(line, max_days, row=row.row_number)
            if row_issues:
                issues.extend(row_issues)
            elif line is not None:
                candidate[employee_id] = line
    except TemplateFormatError as exc:
        logger.warning("Upload rejected: %s", exc)
        return UploadResult(issues=[FieldIssue(field="file", message=str(exc))])

    if data_rows == 0:
        issues.append(FieldIssue(field="file", message="File contains no data rows"))
    for employee_id in selected_ids:
        if employee_id not in first_seen:
            issues.append(FieldIssue(field="employee_id", message=f"Missing row for employee {employee_id}"))

    if issues:
        logger.warning("Upload rejected with %d issue(s) across %d row(s)", len(issues), data_rows)
        return UploadResult(issues=issues)
    logger.info("Upload accepted: %d line(s)", len(candidate))
    return UploadResult(lines=candidate)
