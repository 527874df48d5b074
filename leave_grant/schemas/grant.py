# ruff: noqa: TC001, TC003
from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Self

from pydantic import BaseModel, ConfigDict, Field, model_validator

from leave_grant.models.enums import GrantMode
from leave_grant.schemas.carryover import CarryoverRule


class GrantLine(BaseModel):
    """One employee's granted days, period and resolved carryover expiration."""

    model_config = ConfigDict(frozen=True)

    employee_id: uuid.UUID
    days_granted: Decimal
    period_start: date
    period_end: date
    carryover_expiration: date


class LeaveGrantCandidate(BaseModel):
    """A fully populated grant handed to persistence, before an id is assigned.

    ``lines`` is always materialized: uploaded rows in individual mode, or one
    synthesized line per employee in uniform mode.
    """

    model_config = ConfigDict(frozen=True)

    company_id: uuid.UUID
    title: str = Field(min_length=1, max_length=255)
    leave_type_id: str = Field(min_length=1, max_length=100)
    employee_ids: tuple[uuid.UUID, ...] = Field(min_length=1)
    mode: GrantMode
    days_granted: Decimal | None = None
    period_start: date | None = None
    period_end: date | None = None
    carryover_rule: CarryoverRule | None = None
    lines: tuple[GrantLine, ...]
    created_by: uuid.UUID

    @model_validator(mode="after")
    def _validate_lines(self) -> Self:
        line_ids = [line.employee_id for line in self.lines]
        if len(set(line_ids)) != len(line_ids):
            msg = "Each employee may appear in only one line"
            raise ValueError(msg)
        if set(line_ids) != set(self.employee_ids):
            msg = "Lines must cover exactly the selected employees"
            raise ValueError(msg)
        if self.mode == GrantMode.UNIFORM and (
            self.days_granted is None
            or self.period_start is None
            or self.period_end is None
            or self.carryover_rule is None
        ):
            msg = "Uniform grants require days_granted, period and carryover_rule"
            raise ValueError(msg)
        return self


class LeaveGrantResponse(BaseModel):
    """Response schema for a persisted leave grant."""

    id: uuid.UUID
    company_id: uuid.UUID
    title: str
    leave_type_id: str
    mode: GrantMode
    employee_ids: list[uuid.UUID]
    days_granted: Decimal | None
    period_start: date | None
    period_end: date | None
    carryover_rule: CarryoverRule | None
    lines: list[GrantLine]
    created_by: uuid.UUID
    created_at: datetime


class LeaveGrantListResponse(BaseModel):
    """Paginated list of leave grants."""

    items: list[LeaveGrantResponse]
    total: int
