from sqlmodel import SQLModel

from leave_grant.models.audit import AuditLog
from leave_grant.models.base import UUIDBase
from leave_grant.models.enums import (
    AuditAction,
    AuditEntityType,
    GrantMode,
    SubmitFailureKind,
    TemplateFormat,
    WizardStep,
)
from leave_grant.models.grant import LeaveGrant, LeaveGrantLine

__all__ = [
    "AuditAction",
    "AuditEntityType",
    "AuditLog",
    "GrantMode",
    "LeaveGrant",
    "LeaveGrantLine",
    "SQLModel",
    "SubmitFailureKind",
    "TemplateFormat",
    "UUIDBase",
    "WizardStep",
]
