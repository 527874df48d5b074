# ruff: noqa: B008, TC003
from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query

from leave_grant.api.deps import AuthDep, validate_company_scope
from leave_grant.db import SessionDep
from leave_grant.schemas.grant import LeaveGrantListResponse, LeaveGrantResponse
from leave_grant.services import grant as grant_service

grants_router = APIRouter(
    prefix="/companies/{company_id}/grants",
    tags=["grants"],
    dependencies=[Depends(validate_company_scope)],
)


@grants_router.get("", response_model=LeaveGrantListResponse)
async def list_grants(
    session: SessionDep,
    auth: AuthDep,
    leave_type_id: str | None = Query(default=None),
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=100),
) -> LeaveGrantListResponse:
    """List persisted leave grants, newest first."""
    return await grant_service.list_grants(session, auth.company_id, leave_type_id, offset, limit)


@grants_router.get("/{grant_id}", response_model=LeaveGrantResponse)
async def get_grant(
    grant_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
) -> LeaveGrantResponse:
    """Get a single leave grant with its per-employee lines."""
    return await grant_service.get_grant(session, auth.company_id, grant_id)
