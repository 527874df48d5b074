# ruff: noqa: TC001, TC003
from __future__ import annotations

import uuid
from datetime import date
from decimal import Decimal

from pydantic import BaseModel, ConfigDict

from leave_grant.models.enums import GrantMode
from leave_grant.schemas.carryover import CarryoverRule
from leave_grant.schemas.grant import GrantLine


class FieldIssue(BaseModel):
    """A single actionable validation problem, optionally tied to an upload row."""

    model_config = ConfigDict(frozen=True)

    field: str
    message: str
    row: int | None = None


# ---------------------------------------------------------------------------
# Request payloads
# ---------------------------------------------------------------------------


class DraftUpdate(BaseModel):
    """Partial update of a wizard draft. Only fields present in the body are applied."""

    title: str | None = None
    leave_type_id: str | None = None
    employee_ids: list[uuid.UUID] | None = None
    mode: GrantMode | None = None
    days_granted: Decimal | None = None
    period_start: date | None = None
    period_end: date | None = None
    carryover_rule: CarryoverRule | None = None


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class DraftView(BaseModel):
    """Read-only projection of a wizard draft."""

    title: str
    leave_type_id: str | None
    employee_ids: list[uuid.UUID]
    mode: GrantMode | None
    days_granted: Decimal | None
    period_start: date | None
    period_end: date | None
    carryover_rule: CarryoverRule | None
    carryover_expiration: date | None
    lines: list[GrantLine]


class WizardStateResponse(BaseModel):
    """Current step, validation state and draft of a wizard session."""

    id: uuid.UUID
    company_id: uuid.UUID
    current_step: int
    step_name: str
    can_proceed: bool
    can_submit: bool
    submitting: bool
    issues: list[FieldIssue]
    draft: DraftView


class UploadResultResponse(BaseModel):
    """Outcome of an accepted individual-mode upload."""

    accepted: bool
    line_count: int
    lines: list[GrantLine]
