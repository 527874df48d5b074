"""Grant wizard: a six-step state machine that builds and submits one leave grant.

Steps are strictly linear (title, leave type, employees, mode, details,
review). ``can_proceed`` is recomputed from the draft on every read. Field
edits never raise for bad values; they surface as issues that block
``advance()`` and ``submit()``. Calling those while blocked is a caller bug
and raises ``WizardStateError``.
"""

# ruff: noqa: TC003
from __future__ import annotations

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from leave_grant.exceptions import AppError, DraftLockedError, WizardStateError
from leave_grant.models.enums import GrantMode, SubmitFailureKind, TemplateFormat, WizardStep
from leave_grant.schemas.grant import GrantLine, LeaveGrantCandidate
from leave_grant.schemas.wizard import DraftView
from leave_grant.services.carryover import ExpirationOutOfRangeError, resolve_expiration
from leave_grant.services.grant import SubmitOutcome
from leave_grant.services.template import render_template
from leave_grant.services.upload import UploadResult, parse_upload
from leave_grant.services.validation import ReferenceData, step_issues

if TYPE_CHECKING:
    from collections.abc import Iterable

    from leave_grant.config import Settings
    from leave_grant.schemas.carryover import CarryoverRule
    from leave_grant.schemas.wizard import DraftUpdate, FieldIssue
    from leave_grant.services.employee import EmployeeDirectory, EmployeeInfo
    from leave_grant.services.grant import GrantStore
    from leave_grant.services.leave_type import LeaveTypeCatalog

logger = logging.getLogger(__name__)


@dataclass
class GrantDraft:
    """In-progress grant owned by exactly one wizard."""

    title: str = ""
    leave_type_id: str | None = None
    employee_ids: list[uuid.UUID] = field(default_factory=list)
    mode: GrantMode | None = None
    days_granted: Decimal | None = None
    period_start: date | None = None
    period_end: date | None = None
    carryover_rule: CarryoverRule | None = None
    per_employee_rows: dict[uuid.UUID, GrantLine] = field(default_factory=dict)

    def resolved_expiration(self) -> date | None:
        """Carryover expiration from the uniform rule, or None when it cannot be resolved yet."""
        if self.carryover_rule is None or self.period_end is None:
            return None
        try:
            return resolve_expiration(self.carryover_rule, self.period_end)
        except ExpirationOutOfRangeError:
            return None


class GrantWizard:
    """Builds a ``LeaveGrantCandidate`` step by step and hands it to a ``GrantStore``."""

    def __init__(
        self,
        *,
        company_id: uuid.UUID,
        actor_id: uuid.UUID,
        reference: ReferenceData,
        directory: EmployeeDirectory,
        submit_timeout: float = 10.0,
        max_upload_rows: int = 5000,
    ) -> None:
        self.id = uuid.uuid4()
        self.company_id = company_id
        self.actor_id = actor_id
        self.reference = reference
        self._directory = directory
        self._submit_timeout = submit_timeout
        self._max_upload_rows = max_upload_rows
        self._submitting = False
        self.draft = GrantDraft()
        self.current_step = WizardStep.TITLE

    @classmethod
    async def open(
        cls,
        *,
        company_id: uuid.UUID,
        actor_id: uuid.UUID,
        directory: EmployeeDirectory,
        catalog: LeaveTypeCatalog,
        settings: Settings,
    ) -> GrantWizard:
        """Snapshot the directory and catalog for the company and start at step 1."""
        leave_types = await catalog.list_leave_types(company_id)
        employees = await directory.list_employees(company_id)
        reference = ReferenceData(
            leave_types={lt.id: lt for lt in leave_types},
            employees={e.id: e for e in employees},
        )
        wizard = cls(
            company_id=company_id,
            actor_id=actor_id,
            reference=reference,
            directory=directory,
            submit_timeout=settings.submit_timeout_seconds,
            max_upload_rows=settings.max_upload_rows,
        )
        logger.debug(
            "Opened wizard %s for company %s (%d leave types, %d employees)",
            wizard.id,
            company_id,
            len(leave_types),
            len(employees),
        )
        return wizard

    # -----------------------------------------------------------------------
    # Derived state
    # -----------------------------------------------------------------------

    @property
    def submitting(self) -> bool:
        return self._submitting

    def issues(self, step: WizardStep | None = None) -> list[FieldIssue]:
        """Issues blocking the given step, or the current one."""
        return step_issues(step or self.current_step, self.draft, self.reference)

    @property
    def can_proceed(self) -> bool:
        return not self.issues()

    @property
    def can_submit(self) -> bool:
        return self.current_step == WizardStep.REVIEW and not self._submitting and self.can_proceed

    def ordered_lines(self) -> list[GrantLine]:
        """Normalized lines in selection order: uploaded rows, or synthesized uniform lines."""
        draft = self.draft
        if draft.mode == GrantMode.INDIVIDUAL:
            return [draft.per_employee_rows[eid] for eid in draft.employee_ids if eid in draft.per_employee_rows]
        expiration = draft.resolved_expiration()
        if draft.days_granted is None or draft.period_start is None or draft.period_end is None or expiration is None:
            return []
        return [
            GrantLine(
                employee_id=eid,
                days_granted=draft.days_granted,
                period_start=draft.period_start,
                period_end=draft.period_end,
                carryover_expiration=expiration,
            )
            for eid in draft.employee_ids
        ]

    def view(self) -> DraftView:
        draft = self.draft
        return DraftView(
            title=draft.title,
            leave_type_id=draft.leave_type_id,
            employee_ids=list(draft.employee_ids),
            mode=draft.mode,
            days_granted=draft.days_granted,
            period_start=draft.period_start,
            period_end=draft.period_end,
            carryover_rule=draft.carryover_rule,
            carryover_expiration=draft.resolved_expiration(),
            lines=self.ordered_lines(),
        )

    # -----------------------------------------------------------------------
    # Field edits
    # -----------------------------------------------------------------------

    def _ensure_editable(self) -> None:
        if self._submitting:
            raise DraftLockedError

    def set_title(self, title: str) -> None:
        self._ensure_editable()
        self.draft.title = title

    def select_leave_type(self, leave_type_id: str | None) -> None:
        self._ensure_editable()
        self.draft.leave_type_id = leave_type_id

    def set_employees(self, employee_ids: Iterable[uuid.UUID]) -> None:
        self._ensure_editable()
        self.draft.employee_ids = list(employee_ids)

    def toggle_employee(self, employee_id: uuid.UUID) -> None:
        self._ensure_editable()
        if employee_id in self.draft.employee_ids:
            self.draft.employee_ids = [eid for eid in self.draft.employee_ids if eid != employee_id]
        else:
            self.draft.employee_ids = [*self.draft.employee_ids, employee_id]

    def select_all_employees(self, department: str | None = None) -> None:
        """Select everyone in the directory snapshot, optionally one department only."""
        self._ensure_editable()
        self.draft.employee_ids = [
            e.id for e in self.reference.employees.values() if department is None or e.department == department
        ]

    def set_mode(self, mode: GrantMode | None) -> None:
        self._ensure_editable()
        self.draft.mode = mode

    def set_days_granted(self, days: Decimal | None) -> None:
        self._ensure_editable()
        self.draft.days_granted = days

    def set_period(self, period_start: date | None, period_end: date | None) -> None:
        self._ensure_editable()
        self.draft.period_start = period_start
        self.draft.period_end = period_end

    def set_carryover_rule(self, rule: CarryoverRule | None) -> None:
        self._ensure_editable()
        self.draft.carryover_rule = rule

    def apply(self, update: DraftUpdate) -> None:
        """Apply the fields explicitly present in a partial update."""
        self._ensure_editable()
        fields = update.model_fields_set
        if "title" in fields:
            self.set_title(update.title or "")
        if "leave_type_id" in fields:
            self.select_leave_type(update.leave_type_id)
        if "employee_ids" in fields:
            self.set_employees(update.employee_ids or [])
        if "mode" in fields:
            self.set_mode(update.mode)
        if "days_granted" in fields:
            self.set_days_granted(update.days_granted)
        if "period_start" in fields or "period_end" in fields:
            self.set_period(
                update.period_start if "period_start" in fields else self.draft.period_start,
                update.period_end if "period_end" in fields else self.draft.period_end,
            )
        if "carryover_rule" in fields:
            self.set_carryover_rule(update.carryover_rule)

    # -----------------------------------------------------------------------
    # Navigation
    # -----------------------------------------------------------------------

    def advance(self) -> WizardStep:
        self._ensure_editable()
        if self.current_step == WizardStep.REVIEW:
            raise WizardStateError("Review is the last step; submit instead of advancing")
        issues = self.issues()
        if issues:
            raise WizardStateError(f"Cannot leave step {self.current_step.name} until it is valid", issues=issues)
        self.current_step = WizardStep(self.current_step + 1)
        logger.debug("Wizard %s advanced to %s", self.id, self.current_step.name)
        return self.current_step

    def retreat(self) -> WizardStep:
        self._ensure_editable()
        if self.current_step == WizardStep.TITLE:
            raise WizardStateError("Already at the first step")
        self.current_step = WizardStep(self.current_step - 1)
        logger.debug("Wizard %s went back to %s", self.id, self.current_step.name)
        return self.current_step

    def cancel(self) -> None:
        """Discard the draft and return to an empty step 1. Always succeeds."""
        self.draft = GrantDraft()
        self.current_step = WizardStep.TITLE
        logger.debug("Wizard %s cancelled", self.id)

    # -----------------------------------------------------------------------
    # Individual mode: template and upload
    # -----------------------------------------------------------------------

    def template_rows(self) -> list[dict[str, Any]]:
        """Project the selected employees onto template rows, prefilled from uniform fields."""
        draft = self.draft
        expiration = draft.resolved_expiration()
        rows: list[dict[str, Any]] = []
        for eid in draft.employee_ids:
            employee: EmployeeInfo | None = self.reference.employees.get(eid)
            rows.append(
                {
                    "employee_id": str(eid),
                    "employee_name": employee.name if employee else None,
                    "email": employee.email if employee else None,
                    "department": employee.department if employee else None,
                    "days_granted": draft.days_granted,
                    "period_start": draft.period_start,
                    "period_end": draft.period_end,
                    "carryover_expiration": expiration,
                }
            )
        return rows

    def build_template(self, fmt: TemplateFormat = TemplateFormat.XLSX) -> bytes:
        return render_template(self.template_rows(), fmt)

    def upload(self, content: bytes) -> UploadResult:
        """Parse an uploaded grant table; replace the rows only when the whole file is valid."""
        self._ensure_editable()
        if self.current_step != WizardStep.DETAILS or self.draft.mode != GrantMode.INDIVIDUAL:
            raise WizardStateError("Uploads are only accepted at DETAILS in INDIVIDUAL mode")
        result = parse_upload(
            content,
            selected_ids=self.draft.employee_ids,
            max_days=self.reference.max_days_for(self.draft.leave_type_id),
            max_rows=self._max_upload_rows,
        )
        if result.accepted:
            self.draft.per_employee_rows = dict(result.lines)
        return result

    # -----------------------------------------------------------------------
    # Submit
    # -----------------------------------------------------------------------

    def build_candidate(self) -> LeaveGrantCandidate:
        draft = self.draft
        uniform = draft.mode == GrantMode.UNIFORM
        return LeaveGrantCandidate(
            company_id=self.company_id,
            title=draft.title.strip(),
            leave_type_id=draft.leave_type_id or "",
            employee_ids=tuple(draft.employee_ids),
            mode=draft.mode or GrantMode.UNIFORM,
            days_granted=draft.days_granted if uniform else None,
            period_start=draft.period_start if uniform else None,
            period_end=draft.period_end if uniform else None,
            carryover_rule=draft.carryover_rule if uniform else None,
            lines=tuple(self.ordered_lines()),
            created_by=self.actor_id,
        )

    async def _removed_employees(self) -> list[uuid.UUID]:
        removed: list[uuid.UUID] = []
        for eid in self.draft.employee_ids:
            if await self._directory.get_employee(self.company_id, eid) is None:
                removed.append(eid)
        return removed

    async def submit(self, store: GrantStore) -> SubmitOutcome:
        """Persist the grant. On success the wizard restarts empty; on failure the draft is untouched."""
        if self._submitting:
            raise DraftLockedError("A submit is already in progress")
        if self.current_step != WizardStep.REVIEW:
            raise WizardStateError(f"Submit is only allowed from REVIEW, not {self.current_step.name}")
        issues = self.issues()
        if issues:
            raise WizardStateError("Grant is not valid", issues=issues)

        self._submitting = True
        try:
            removed = await self._removed_employees()
            if removed:
                outcome = SubmitOutcome.failed(
                    SubmitFailureKind.REJECTED,
                    f"Employee(s) no longer in the directory: {', '.join(str(e) for e in removed)}",
                )
            else:
                try:
                    candidate = self.build_candidate()
                    outcome = await asyncio.wait_for(store.save_grant(candidate), timeout=self._submit_timeout)
                except ValidationError as exc:
                    outcome = SubmitOutcome.failed(SubmitFailureKind.REJECTED, f"Grant is not valid: {exc}")
                except TimeoutError:
                    outcome = SubmitOutcome.failed(
                        SubmitFailureKind.UNAVAILABLE,
                        f"Grant storage did not respond within {self._submit_timeout:g}s",
                    )
        finally:
            self._submitting = False

        if outcome.ok:
            logger.info("Wizard %s submitted grant %s", self.id, outcome.grant_id)
            self.cancel()
        else:
            logger.warning("Wizard %s submit failed (%s): %s", self.id, outcome.failure, outcome.message)
        return outcome


# ---------------------------------------------------------------------------
# Session registry
# ---------------------------------------------------------------------------


class WizardRegistry:
    """In-memory wizard sessions, scoped by company and evicted after idling."""

    def __init__(self, idle_timeout_seconds: float = 3600) -> None:
        self._idle_timeout = idle_timeout_seconds
        self._sessions: dict[uuid.UUID, tuple[GrantWizard, float]] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def _evict_idle(self, now: float) -> None:
        expired = [
            wid
            for wid, (wizard, touched) in self._sessions.items()
            if now - touched > self._idle_timeout and not wizard.submitting
        ]
        for wid in expired:
            logger.info("Evicting idle wizard %s", wid)
            del self._sessions[wid]

    def add(self, wizard: GrantWizard) -> None:
        now = time.monotonic()
        self._evict_idle(now)
        self._sessions[wizard.id] = (wizard, now)

    def get(self, company_id: uuid.UUID, wizard_id: uuid.UUID) -> GrantWizard:
        """Return a live wizard for the company. Raises 404 if unknown, expired or foreign."""
        now = time.monotonic()
        self._evict_idle(now)
        entry = self._sessions.get(wizard_id)
        if entry is None or entry[0].company_id != company_id:
            raise AppError("Wizard session not found", status_code=404)
        wizard = entry[0]
        self._sessions[wizard_id] = (wizard, now)
        return wizard

    def discard(self, company_id: uuid.UUID, wizard_id: uuid.UUID) -> None:
        wizard = self.get(company_id, wizard_id)
        wizard.cancel()
        del self._sessions[wizard_id]


_wizard_registry: WizardRegistry | None = None


def get_wizard_registry() -> WizardRegistry:
    """Return the process-wide wizard registry, creating it on first call."""
    global _wizard_registry
    if _wizard_registry is None:
        from leave_grant.config import get_settings

        _wizard_registry = WizardRegistry(get_settings().wizard_idle_timeout_seconds)
    return _wizard_registry


def set_wizard_registry(registry: WizardRegistry) -> None:
    """Override the registry (for testing)."""
    global _wizard_registry
    _wizard_registry = registry
