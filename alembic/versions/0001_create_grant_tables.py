"""Create leave grant, grant line and audit log tables.

Revision ID: 0001
Revises:
Create Date: 2025-01-06
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

revision: str = "0001"
down_revision: str | None = None
branch_labels: str | None = None
depends_on: str | None = None


def _created_at() -> sa.Column:
    return sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False)


def upgrade() -> None:
    op.create_table(
        "leave_grant",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("company_id", sa.Uuid(), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("leave_type_id", sa.String(length=100), nullable=False),
        sa.Column("mode", sa.String(length=50), nullable=False),
        sa.Column("days_granted", sa.Numeric(precision=7, scale=2), nullable=True),
        sa.Column("period_start", sa.Date(), nullable=True),
        sa.Column("period_end", sa.Date(), nullable=True),
        sa.Column("carryover_rule_json", sa.JSON(), nullable=True),
        sa.Column("created_by", sa.Uuid(), nullable=False),
        _created_at(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("company_id", "title", name="uq_leave_grant_company_title"),
    )
    op.create_index("ix_leave_grant_company_id", "leave_grant", ["company_id"])
    op.create_index("ix_leave_grant_leave_type_id", "leave_grant", ["leave_type_id"])

    op.create_table(
        "leave_grant_line",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("grant_id", sa.Uuid(), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("employee_id", sa.Uuid(), nullable=False),
        sa.Column("days_granted", sa.Numeric(precision=7, scale=2), nullable=False),
        sa.Column("period_start", sa.Date(), nullable=False),
        sa.Column("period_end", sa.Date(), nullable=False),
        sa.Column("carryover_expiration", sa.Date(), nullable=False),
        sa.ForeignKeyConstraint(["grant_id"], ["leave_grant.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("grant_id", "employee_id", name="uq_leave_grant_line_employee"),
    )
    op.create_index("ix_leave_grant_line_grant_id", "leave_grant_line", ["grant_id"])
    op.create_index("ix_leave_grant_line_employee_id", "leave_grant_line", ["employee_id"])

    op.create_table(
        "audit_log",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("company_id", sa.Uuid(), nullable=False),
        sa.Column("actor_id", sa.Uuid(), nullable=False),
        sa.Column("entity_type", sa.String(length=50), nullable=False),
        sa.Column("entity_id", sa.Uuid(), nullable=False),
        sa.Column("action", sa.String(length=50), nullable=False),
        sa.Column("after_json", sa.JSON(), nullable=True),
        _created_at(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_audit_log_company_id", "audit_log", ["company_id"])
    op.create_index("ix_audit_log_created_at", "audit_log", ["created_at"])
    op.create_index("ix_audit_entity", "audit_log", ["entity_type", "entity_id"])


def downgrade() -> None:
    op.drop_index("ix_audit_entity", table_name="audit_log")
    op.drop_index("ix_audit_log_created_at", table_name="audit_log")
    op.drop_index("ix_audit_log_company_id", table_name="audit_log")
    op.drop_table("audit_log")
    op.drop_index("ix_leave_grant_line_employee_id", table_name="leave_grant_line")
    op.drop_index("ix_leave_grant_line_grant_id", table_name="leave_grant_line")
    op.drop_table("leave_grant_line")
    op.drop_index("ix_leave_grant_leave_type_id", table_name="leave_grant")
    op.drop_index("ix_leave_grant_company_id", table_name="leave_grant")
    op.drop_table("leave_grant")
