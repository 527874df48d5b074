# ruff: noqa: TC003
from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends

from leave_grant.api.deps import AuthDep, validate_company_scope
from leave_grant.schemas.leave_type import LeaveTypeListResponse, LeaveTypeResponse
from leave_grant.services.leave_type import get_leave_type_catalog

leave_types_router = APIRouter(
    prefix="/companies/{company_id}/leave-types",
    tags=["leave-types"],
    dependencies=[Depends(validate_company_scope)],
)


@leave_types_router.get("", response_model=LeaveTypeListResponse)
async def list_leave_types(
    company_id: uuid.UUID,
    auth: AuthDep,
) -> LeaveTypeListResponse:
    """List the leave types a grant can be issued for."""
    leave_types = await get_leave_type_catalog().list_leave_types(company_id)
    items = [
        LeaveTypeResponse(
            id=lt.id,
            name=lt.name,
            max_days=lt.max_days,
            color=lt.color,
            requires_approval=lt.requires_approval,
        )
        for lt in leave_types
    ]
    return LeaveTypeListResponse(items=items, total=len(items))
