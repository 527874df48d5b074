# ruff: noqa: TC003
from __future__ import annotations

import uuid
from collections.abc import Iterable
from decimal import Decimal
from typing import Protocol, runtime_checkable

from pydantic import BaseModel, Field


class LeaveTypeInfo(BaseModel):
    """A leave type from the Leave Type Catalog."""

    id: str = Field(min_length=1, max_length=100)
    name: str
    max_days: Decimal | None = Field(default=None, gt=0)  # None: no declared maximum
    color: str = "#6B7280"
    requires_approval: bool = True


DEFAULT_LEAVE_TYPES: tuple[LeaveTypeInfo, ...] = (
    LeaveTypeInfo(id="annual", name="Annual Leave", max_days=Decimal(25), color="#3B82F6"),
    LeaveTypeInfo(id="sick", name="Sick Leave", max_days=Decimal(15), color="#EF4444", requires_approval=False),
    LeaveTypeInfo(id="personal", name="Personal Leave", max_days=Decimal(10), color="#10B981"),
    LeaveTypeInfo(id="maternity", name="Maternity Leave", max_days=Decimal(90), color="#8B5CF6"),
)


@runtime_checkable
class LeaveTypeCatalog(Protocol):
    """Interface for the Leave Type Catalog."""

    async def list_leave_types(self, company_id: uuid.UUID) -> list[LeaveTypeInfo]:
        """List the leave types available to a company."""
        ...


class InMemoryLeaveTypeCatalog:
    """In-memory stub implementation.

    Companies without seeded leave types see the default catalog.
    """

    def __init__(self, defaults: Iterable[LeaveTypeInfo] = DEFAULT_LEAVE_TYPES) -> None:
        self._defaults = list(defaults)
        self._by_company: dict[uuid.UUID, dict[str, LeaveTypeInfo]] = {}

    def seed(self, company_id: uuid.UUID, leave_type: LeaveTypeInfo) -> None:
        """Add or replace a company-specific leave type."""
        self._by_company.setdefault(company_id, {})[leave_type.id] = leave_type

    async def list_leave_types(self, company_id: uuid.UUID) -> list[LeaveTypeInfo]:
        seeded = self._by_company.get(company_id)
        if seeded is None:
            return list(self._defaults)
        return list(seeded.values())


_leave_type_catalog: LeaveTypeCatalog = InMemoryLeaveTypeCatalog()


def get_leave_type_catalog() -> LeaveTypeCatalog:
    """FastAPI dependency for the Leave Type Catalog."""
    return _leave_type_catalog


def set_leave_type_catalog(catalog: LeaveTypeCatalog) -> None:
    """Override the catalog (for testing or production wiring)."""
    global _leave_type_catalog
    _leave_type_catalog = catalog
