from __future__ import annotations

import enum


class GrantMode(enum.StrEnum):
    """How days are specified for the selected employees."""

    UNIFORM = "UNIFORM"
    INDIVIDUAL = "INDIVIDUAL"


class WizardStep(enum.IntEnum):
    """Linear sequence of grant wizard steps."""

    TITLE = 1
    LEAVE_TYPE = 2
    EMPLOYEES = 3
    MODE = 4
    DETAILS = 5
    REVIEW = 6


class SubmitFailureKind(enum.StrEnum):
    """Why the persistence collaborator did not store a grant."""

    REJECTED = "REJECTED"
    CONFLICT = "CONFLICT"
    UNAVAILABLE = "UNAVAILABLE"


class TemplateFormat(enum.StrEnum):
    """Tabular formats for the individual-mode template export."""

    XLSX = "xlsx"
    CSV = "csv"


class AuditEntityType(enum.StrEnum):
    """Entity type recorded in the audit log."""

    GRANT = "GRANT"


class AuditAction(enum.StrEnum):
    """Action recorded in the audit log."""

    CREATE = "CREATE"
