"""Pure per-step validation predicates for the grant wizard.

Each predicate takes the draft and the reference data snapshot and returns a
list of ``FieldIssue``; an empty list means the step is satisfied. Nothing
here mutates state or raises for bad input, so the wizard can recompute
``can_proceed`` on every read.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING

from leave_grant.models.enums import GrantMode, WizardStep
from leave_grant.schemas.wizard import FieldIssue
from leave_grant.services.carryover import ExpirationOutOfRangeError, expiration_issue, resolve_expiration

if TYPE_CHECKING:
    import uuid
    from datetime import date

    from leave_grant.schemas.grant import GrantLine
    from leave_grant.services.employee import EmployeeInfo
    from leave_grant.services.leave_type import LeaveTypeInfo
    from leave_grant.services.wizard import GrantDraft

_CENT = Decimal("0.01")
# Upper bound of the Numeric(7, 2) days columns.
_DAYS_LIMIT = Decimal(100000)


@dataclass(frozen=True)
class ReferenceData:
    """Catalog and directory snapshot taken when a wizard opens."""

    leave_types: Mapping[str, LeaveTypeInfo]
    employees: Mapping[uuid.UUID, EmployeeInfo]

    def max_days_for(self, leave_type_id: str | None) -> Decimal | None:
        if leave_type_id is None or leave_type_id not in self.leave_types:
            return None
        return self.leave_types[leave_type_id].max_days


# ---------------------------------------------------------------------------
# Field-level checks shared by uniform fields and uploaded lines
# ---------------------------------------------------------------------------


def days_issues(
    days: Decimal | None,
    max_days: Decimal | None,
    *,
    field: str = "days_granted",
    row: int | None = None,
) -> list[FieldIssue]:
    """Days must be a finite, non-negative amount in hundredths below 100000, within the declared maximum."""
    if days is None:
        return [FieldIssue(field=field, message="Days granted is required", row=row)]
    if not days.is_finite():
        return [FieldIssue(field=field, message="Days granted must be a number", row=row)]
    if days < 0:
        return [FieldIssue(field=field, message="Days granted must be zero or more", row=row)]
    if days >= _DAYS_LIMIT:
        return [FieldIssue(field=field, message="Days granted must be less than 100000", row=row)]
    issues: list[FieldIssue] = []
    if days != days.quantize(_CENT):
        issues.append(FieldIssue(field=field, message="Days granted allows at most two decimal places", row=row))
    if max_days is not None and days > max_days:
        issues.append(
            FieldIssue(field=field, message=f"Days granted {days} exceeds the leave type maximum of {max_days}", row=row)
        )
    return issues


def period_issues(
    period_start: date | None,
    period_end: date | None,
    *,
    row: int | None = None,
) -> list[FieldIssue]:
    issues: list[FieldIssue] = []
    if period_start is None:
        issues.append(FieldIssue(field="period_start", message="Period start is required", row=row))
    if period_end is None:
        issues.append(FieldIssue(field="period_end", message="Period end is required", row=row))
    if period_start is not None and period_end is not None and period_start > period_end:
        issues.append(FieldIssue(field="period_end", message="Period end must be on or after period start", row=row))
    return issues


def line_issues(line: GrantLine, max_days: Decimal | None, *, row: int | None = None) -> list[FieldIssue]:
    """Check one per-employee line against the same invariants as the uniform fields."""
    issues = days_issues(line.days_granted, max_days, row=row)
    issues.extend(period_issues(line.period_start, line.period_end, row=row))
    message = expiration_issue(line.carryover_expiration, line.period_end)
    if message is not None:
        issues.append(FieldIssue(field="carryover_expiration", message=message, row=row))
    return issues


# ---------------------------------------------------------------------------
# Step predicates
# ---------------------------------------------------------------------------


def title_issues(draft: GrantDraft, ref: ReferenceData) -> list[FieldIssue]:
    if not draft.title.strip():
        return [FieldIssue(field="title", message="Title is required")]
    if len(draft.title.strip()) > 255:
        return [FieldIssue(field="title", message="Title must be at most 255 characters")]
    return []


def leave_type_issues(draft: GrantDraft, ref: ReferenceData) -> list[FieldIssue]:
    if draft.leave_type_id is None:
        return [FieldIssue(field="leave_type_id", message="Select a leave type")]
    if draft.leave_type_id not in ref.leave_types:
        return [FieldIssue(field="leave_type_id", message=f"Unknown leave type '{draft.leave_type_id}'")]
    return []


def employee_issues(draft: GrantDraft, ref: ReferenceData) -> list[FieldIssue]:
    if not draft.employee_ids:
        return [FieldIssue(field="employee_ids", message="Select at least one employee")]
    issues: list[FieldIssue] = []
    if len(set(draft.employee_ids)) != len(draft.employee_ids):
        issues.append(FieldIssue(field="employee_ids", message="Each employee may be selected only once"))
    unknown = [str(eid) for eid in draft.employee_ids if eid not in ref.employees]
    if unknown:
        issues.append(FieldIssue(field="employee_ids", message=f"Unknown employee(s): {', '.join(unknown)}"))
    return issues


def mode_issues(draft: GrantDraft, ref: ReferenceData) -> list[FieldIssue]:
    if draft.mode is None:
        return [FieldIssue(field="mode", message="Choose a grant mode")]
    return []


def _uniform_detail_issues(draft: GrantDraft, ref: ReferenceData) -> list[FieldIssue]:
    issues = days_issues(draft.days_granted, ref.max_days_for(draft.leave_type_id))
    issues.extend(period_issues(draft.period_start, draft.period_end))
    if draft.carryover_rule is None:
        issues.append(FieldIssue(field="carryover_rule", message="Carryover rule is required"))
    elif draft.period_end is not None:
        try:
            message = expiration_issue(resolve_expiration(draft.carryover_rule, draft.period_end), draft.period_end)
        except ExpirationOutOfRangeError as exc:
            message = str(exc)
        if message is not None:
            issues.append(FieldIssue(field="carryover_rule", message=message))
    return issues


def _individual_detail_issues(draft: GrantDraft, ref: ReferenceData) -> list[FieldIssue]:
    if not draft.per_employee_rows:
        return [FieldIssue(field="per_employee_rows", message="Upload a completed grant file")]
    issues: list[FieldIssue] = []
    selected = set(draft.employee_ids)
    for eid in draft.employee_ids:
        if eid not in draft.per_employee_rows:
            issues.append(FieldIssue(field="per_employee_rows", message=f"No uploaded line for employee {eid}"))
    for eid in draft.per_employee_rows:
        if eid not in selected:
            issues.append(FieldIssue(field="per_employee_rows", message=f"Uploaded line for unselected employee {eid}"))
    max_days = ref.max_days_for(draft.leave_type_id)
    for line in draft.per_employee_rows.values():
        issues.extend(line_issues(line, max_days))
    return issues


def details_issues(draft: GrantDraft, ref: ReferenceData) -> list[FieldIssue]:
    if draft.mode == GrantMode.UNIFORM:
        return _uniform_detail_issues(draft, ref)
    if draft.mode == GrantMode.INDIVIDUAL:
        return _individual_detail_issues(draft, ref)
    return mode_issues(draft, ref)


def review_issues(draft: GrantDraft, ref: ReferenceData) -> list[FieldIssue]:
    """Re-run every earlier step against the current draft."""
    issues: list[FieldIssue] = []
    for step in (WizardStep.TITLE, WizardStep.LEAVE_TYPE, WizardStep.EMPLOYEES, WizardStep.MODE, WizardStep.DETAILS):
        issues.extend(STEP_PREDICATES[step](draft, ref))
    return issues


STEP_PREDICATES: dict[WizardStep, Callable[[GrantDraft, ReferenceData], list[FieldIssue]]] = {
    WizardStep.TITLE: title_issues,
    WizardStep.LEAVE_TYPE: leave_type_issues,
    WizardStep.EMPLOYEES: employee_issues,
    WizardStep.MODE: mode_issues,
    WizardStep.DETAILS: details_issues,
    WizardStep.REVIEW: review_issues,
}


def step_issues(step: WizardStep, draft: GrantDraft, ref: ReferenceData) -> list[FieldIssue]:
    """Return the issues blocking ``step`` for the given draft."""
    return STEP_PREDICATES[step](draft, ref)
