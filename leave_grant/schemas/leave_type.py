# ruff: noqa: TC003
from __future__ import annotations

from decimal import Decimal

from pydantic import BaseModel


class LeaveTypeResponse(BaseModel):
    """Response schema for a leave type from the catalog."""

    id: str
    name: str
    max_days: Decimal | None
    color: str
    requires_approval: bool


class LeaveTypeListResponse(BaseModel):
    """List of leave types."""

    items: list[LeaveTypeResponse]
    total: int
