# ruff: noqa: B008, TC003
from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query

from leave_grant.api.deps import AdminDep, AuthDep, validate_company_scope
from leave_grant.exceptions import AppError
from leave_grant.schemas.employee import EmployeeListResponse, EmployeeResponse, UpsertEmployeeRequest
from leave_grant.services.employee import EmployeeInfo, InMemoryEmployeeDirectory, get_employee_directory

employees_router = APIRouter(
    prefix="/companies/{company_id}/employees",
    tags=["employees"],
    dependencies=[Depends(validate_company_scope)],
)


def _build_employee_response(employee: EmployeeInfo) -> EmployeeResponse:
    return EmployeeResponse(
        id=employee.id,
        company_id=employee.company_id,
        name=employee.name,
        email=employee.email,
        department=employee.department,
    )


@employees_router.put("/{employee_id}", response_model=EmployeeResponse)
async def upsert_employee(
    company_id: uuid.UUID,
    employee_id: uuid.UUID,
    payload: UpsertEmployeeRequest,
    auth: AdminDep,
) -> EmployeeResponse:
    """Create or update an employee in the in-memory directory (admin only)."""
    directory = get_employee_directory()
    if not isinstance(directory, InMemoryEmployeeDirectory):
        raise AppError("Employee directory is read-only", status_code=405)
    employee = EmployeeInfo(
        id=employee_id,
        company_id=company_id,
        name=payload.name,
        email=payload.email,
        department=payload.department,
    )
    directory.seed(employee)
    return _build_employee_response(employee)


@employees_router.get("/{employee_id}", response_model=EmployeeResponse)
async def get_employee(
    company_id: uuid.UUID,
    employee_id: uuid.UUID,
    auth: AuthDep,
) -> EmployeeResponse:
    """Get one employee from the directory."""
    employee = await get_employee_directory().get_employee(company_id, employee_id)
    if employee is None:
        raise AppError("Employee not found", status_code=404)
    return _build_employee_response(employee)


@employees_router.get("", response_model=EmployeeListResponse)
async def list_employees(
    company_id: uuid.UUID,
    auth: AuthDep,
    department: str | None = Query(default=None),
) -> EmployeeListResponse:
    """List the company's employees, optionally filtered by department."""
    employees = await get_employee_directory().list_employees(company_id, department)
    items = [_build_employee_response(e) for e in employees]
    return EmployeeListResponse(items=items, total=len(items))
