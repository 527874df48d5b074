from fastapi import APIRouter

from leave_grant.api.employees import employees_router
from leave_grant.api.grants import grants_router
from leave_grant.api.leave_types import leave_types_router
from leave_grant.api.wizards import wizards_router

api_router = APIRouter()
api_router.include_router(employees_router)
api_router.include_router(leave_types_router)
api_router.include_router(wizards_router)
api_router.include_router(grants_router)
