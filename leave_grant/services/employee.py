# ruff: noqa: TC003
from __future__ import annotations

import uuid
from typing import Protocol, runtime_checkable

from pydantic import BaseModel


class EmployeeInfo(BaseModel):
    """Employee record from the Employee Directory."""

    id: uuid.UUID
    company_id: uuid.UUID
    name: str
    email: str
    department: str = ""


@runtime_checkable
class EmployeeDirectory(Protocol):
    """Interface for the Employee Directory."""

    async def get_employee(self, company_id: uuid.UUID, employee_id: uuid.UUID) -> EmployeeInfo | None:
        """Fetch an employee. Returns None if not found."""
        ...

    async def list_employees(self, company_id: uuid.UUID, department: str | None = None) -> list[EmployeeInfo]:
        """List employees for a company in directory order, optionally by department."""
        ...


class InMemoryEmployeeDirectory:
    """In-memory stub implementation for development."""

    def __init__(self) -> None:
        self._employees: dict[tuple[uuid.UUID, uuid.UUID], EmployeeInfo] = {}

    def seed(self, employee: EmployeeInfo) -> None:
        """Add or replace an employee."""
        self._employees[(employee.company_id, employee.id)] = employee

    def remove(self, company_id: uuid.UUID, employee_id: uuid.UUID) -> None:
        """Drop an employee from the directory if present."""
        self._employees.pop((company_id, employee_id), None)

    async def get_employee(self, company_id: uuid.UUID, employee_id: uuid.UUID) -> EmployeeInfo | None:
        return self._employees.get((company_id, employee_id))

    async def list_employees(self, company_id: uuid.UUID, department: str | None = None) -> list[EmployeeInfo]:
        return [
            e
            for e in self._employees.values()
            if e.company_id == company_id and (department is None or e.department == department)
        ]


_employee_directory: EmployeeDirectory = InMemoryEmployeeDirectory()


def get_employee_directory() -> EmployeeDirectory:
    """FastAPI dependency for the Employee Directory."""
    return _employee_directory


def set_employee_directory(directory: EmployeeDirectory) -> None:
    """Override the directory (for testing or production wiring)."""
    global _employee_directory
    _employee_directory = directory
