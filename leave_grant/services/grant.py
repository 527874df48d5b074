"""Grant persistence: the SQL-backed store the wizard submits to, and grant queries."""

# ruff: noqa: TC003
from __future__ import annotations

import logging
import uuid
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from pydantic import TypeAdapter
from sqlalchemy import func, select
from sqlalchemy.exc import DataError, IntegrityError, InterfaceError, OperationalError
from sqlmodel import col

from leave_grant.exceptions import AppError
from leave_grant.models.enums import AuditAction, AuditEntityType, GrantMode, SubmitFailureKind
from leave_grant.models.grant import LeaveGrant, LeaveGrantLine
from leave_grant.schemas.carryover import CarryoverRule
from leave_grant.schemas.grant import GrantLine, LeaveGrantListResponse, LeaveGrantResponse
from leave_grant.services.audit import write_audit_log

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from leave_grant.schemas.grant import LeaveGrantCandidate

logger = logging.getLogger(__name__)

_rule_adapter: TypeAdapter[CarryoverRule] = TypeAdapter(CarryoverRule)


@dataclass(frozen=True)
class SubmitOutcome:
    """Result of handing a grant candidate to persistence."""

    grant_id: uuid.UUID | None = None
    created_at: datetime | None = None
    failure: SubmitFailureKind | None = None
    message: str | None = None

    @property
    def ok(self) -> bool:
        return self.failure is None

    @property
    def retryable(self) -> bool:
        """Transient failures can be resubmitted unchanged; others need edits first."""
        return self.failure == SubmitFailureKind.UNAVAILABLE

    @classmethod
    def succeeded(cls, grant_id: uuid.UUID, created_at: datetime) -> SubmitOutcome:
        return cls(grant_id=grant_id, created_at=created_at)

    @classmethod
    def failed(cls, failure: SubmitFailureKind, message: str) -> SubmitOutcome:
        return cls(failure=failure, message=message)


@runtime_checkable
class GrantStore(Protocol):
    """Persistence collaborator for finished grants."""

    async def save_grant(self, candidate: LeaveGrantCandidate) -> SubmitOutcome:
        """Persist a candidate and return its assigned id, or a structured failure."""
        ...


class SqlGrantStore:
    """Stores grants and their normalized lines in one transaction with an audit entry."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def _title_taken(self, company_id: uuid.UUID, title: str) -> bool:
        result = await self._session.execute(
            select(LeaveGrant.id).where(
                col(LeaveGrant.company_id) == company_id,
                col(LeaveGrant.title) == title,
            )
        )
        return result.scalar_one_or_none() is not None

    async def save_grant(self, candidate: LeaveGrantCandidate) -> SubmitOutcome:
        session = self._session
        try:
            if await self._title_taken(candidate.company_id, candidate.title):
                return SubmitOutcome.failed(
                    SubmitFailureKind.CONFLICT, f"A grant titled '{candidate.title}' already exists"
                )

            grant = LeaveGrant(
                company_id=candidate.company_id,
                title=candidate.title,
                leave_type_id=candidate.leave_type_id,
                mode=candidate.mode.value,
                days_granted=candidate.days_granted,
                period_start=candidate.period_start,
                period_end=candidate.period_end,
                carryover_rule_json=(
                    candidate.carryover_rule.model_dump(mode="json") if candidate.carryover_rule is not None else None
                ),
                created_by=candidate.created_by,
            )
            session.add(grant)
            await session.flush()

            for position, line in enumerate(candidate.lines):
                session.add(
                    LeaveGrantLine(
                        grant_id=grant.id,
                        position=position,
                        employee_id=line.employee_id,
                        days_granted=line.days_granted,
                        period_start=line.period_start,
                        period_end=line.period_end,
                        carryover_expiration=line.carryover_expiration,
                    )
                )
            await session.flush()

            await write_audit_log(
                session,
                company_id=candidate.company_id,
                actor_id=candidate.created_by,
                entity_type=AuditEntityType.GRANT,
                entity_id=grant.id,
                action=AuditAction.CREATE,
                after_json=candidate.model_dump(),
            )
            await session.commit()
        except IntegrityError:
            await session.rollback()
            return SubmitOutcome.failed(SubmitFailureKind.CONFLICT, "Duplicate grant")
        except DataError as exc:
            await session.rollback()
            logger.warning("Grant '%s' rejected by the database: %s", candidate.title, exc.orig)
            return SubmitOutcome.failed(SubmitFailureKind.REJECTED, "Grant values were rejected by the database")
        except (OperationalError, InterfaceError):
            logger.exception("Database unavailable while saving grant '%s'", candidate.title)
            await session.rollback()
            return SubmitOutcome.failed(SubmitFailureKind.UNAVAILABLE, "Grant storage is temporarily unavailable")

        logger.info("Saved grant %s '%s' with %d line(s)", grant.id, grant.title, len(candidate.lines))
        return SubmitOutcome.succeeded(grant.id, grant.created_at)


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


def _build_grant_response(grant: LeaveGrant, lines: list[LeaveGrantLine]) -> LeaveGrantResponse:
    """Map a grant and its lines (in position order) to the response schema."""
    return LeaveGrantResponse(
        id=grant.id,
        company_id=grant.company_id,
        title=grant.title,
        leave_type_id=grant.leave_type_id,
        mode=GrantMode(grant.mode),
        employee_ids=[line.employee_id for line in lines],
        days_granted=grant.days_granted,
        period_start=grant.period_start,
        period_end=grant.period_end,
        carryover_rule=(
            _rule_adapter.validate_python(grant.carryover_rule_json) if grant.carryover_rule_json is not None else None
        ),
        lines=[
            GrantLine(
                employee_id=line.employee_id,
                days_granted=line.days_granted,
                period_start=line.period_start,
                period_end=line.period_end,
                carryover_expiration=line.carryover_expiration,
            )
            for line in lines
        ],
        created_by=grant.created_by,
        created_at=grant.created_at,
    )


async def _lines_by_grant(session: AsyncSession, grant_ids: list[uuid.UUID]) -> dict[uuid.UUID, list[LeaveGrantLine]]:
    if not grant_ids:
        return {}
    result = await session.execute(
        select(LeaveGrantLine)
        .where(col(LeaveGrantLine.grant_id).in_(grant_ids))
        .order_by(col(LeaveGrantLine.grant_id), col(LeaveGrantLine.position))
    )
    grouped: dict[uuid.UUID, list[LeaveGrantLine]] = defaultdict(list)
    for line in result.scalars().all():
        grouped[line.grant_id].append(line)
    return grouped


async def get_grant(session: AsyncSession, company_id: uuid.UUID, grant_id: uuid.UUID) -> LeaveGrantResponse:
    """Fetch a grant with its lines. Raises 404 if not found."""
    result = await session.execute(
        select(LeaveGrant).where(
            col(LeaveGrant.id) == grant_id,
            col(LeaveGrant.company_id) == company_id,
        )
    )
    grant = result.scalar_one_or_none()
    if grant is None:
        raise AppError("Grant not found", status_code=404)
    lines = await _lines_by_grant(session, [grant.id])
    return _build_grant_response(grant, lines.get(grant.id, []))


async def list_grants(
    session: AsyncSession,
    company_id: uuid.UUID,
    leave_type_id: str | None = None,
    offset: int = 0,
    limit: int = 50,
) -> LeaveGrantListResponse:
    """List grants for a company, newest first."""
    filters = [col(LeaveGrant.company_id) == company_id]
    if leave_type_id is not None:
        filters.append(col(LeaveGrant.leave_type_id) == leave_type_id)

    total_result = await session.execute(select(func.count()).select_from(LeaveGrant).where(*filters))
    total = total_result.scalar_one()

    result = await session.execute(
        select(LeaveGrant)
        .where(*filters)
        .order_by(col(LeaveGrant.created_at).desc(), col(LeaveGrant.title))
        .offset(offset)
        .limit(limit)
    )
    grants = list(result.scalars().all())
    lines = await _lines_by_grant(session, [g.id for g in grants])
    items = [_build_grant_response(g, lines.get(g.id, [])) for g in grants]
    return LeaveGrantListResponse(items=items, total=total)
