# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Any

import sqlalchemy as sa
from sqlmodel import Field

from leave_grant.models.base import UUIDBase, created_at_field


class LeaveGrant(UUIDBase, table=True):
    """A persisted, write-once grant of leave days to a set of employees."""

    __tablename__ = "leave_grant"
    __table_args__ = (sa.UniqueConstraint("company_id", "title", name="uq_leave_grant_company_title"),)

    company_id: uuid.UUID = Field(index=True)
    title: str = Field(max_length=255)
    leave_type_id: str = Field(max_length=100, index=True)
    mode: str = Field(max_length=50)
    days_granted: Decimal | None = Field(default=None, max_digits=7, decimal_places=2)
    period_start: date | None = None
    period_end: date | None = None
    carryover_rule_json: dict[str, Any] | None = Field(default=None, sa_type=sa.JSON)
    created_by: uuid.UUID
    created_at: datetime = created_at_field()


class LeaveGrantLine(UUIDBase, table=True):
    """Normalized per-employee terms of a grant, one row per employee."""

    __tablename__ = "leave_grant_line"
    __table_args__ = (sa.UniqueConstraint("grant_id", "employee_id", name="uq_leave_grant_line_employee"),)

    grant_id: uuid.UUID = Field(
        sa_column=sa.Column(sa.Uuid, sa.ForeignKey("leave_grant.id", ondelete="CASCADE"), nullable=False, index=True),
    )
    position: int = 0
    employee_id: uuid.UUID = Field(index=True)
    days_granted: Decimal = Field(max_digits=7, decimal_places=2)
    period_start: date
    period_end: date
    carryover_expiration: date
