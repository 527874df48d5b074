# ruff: noqa: TC003
from __future__ import annotations

import uuid

from pydantic import BaseModel, Field


class UpsertEmployeeRequest(BaseModel):
    """Request body for upserting an employee in the in-memory directory."""

    name: str = Field(min_length=1, max_length=200)
    email: str = Field(min_length=1, max_length=255)
    department: str = Field(default="", max_length=100)


class EmployeeResponse(BaseModel):
    """Response schema for an employee."""

    id: uuid.UUID
    company_id: uuid.UUID
    name: str
    email: str
    department: str


class EmployeeListResponse(BaseModel):
    """List of employees."""

    items: list[EmployeeResponse]
    total: int
