"""Tests for the grant wizard state machine: navigation, edits, upload and submit."""

from __future__ import annotations

import asyncio
import uuid
from datetime import UTC, date, datetime
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from leave_grant.config import Settings
from leave_grant.exceptions import AppError, DraftLockedError, WizardStateError
from leave_grant.models.enums import GrantMode, SubmitFailureKind, TemplateFormat, WizardStep
from leave_grant.schemas.carryover import MonthsAfterPeriodEnd
from leave_grant.schemas.grant import LeaveGrantCandidate
from leave_grant.schemas.wizard import DraftUpdate
from leave_grant.services.employee import EmployeeInfo, InMemoryEmployeeDirectory
from leave_grant.services.grant import GrantStore, SubmitOutcome
from leave_grant.services.leave_type import InMemoryLeaveTypeCatalog
from leave_grant.services.wizard import GrantWizard, WizardRegistry

COMPANY_ID = uuid.uuid4()
OTHER_COMPANY_ID = uuid.uuid4()
ADMIN_ID = uuid.uuid4()

ALICE = EmployeeInfo(id=uuid.uuid4(), company_id=COMPANY_ID, name="Alice Smith", email="a@x.com", department="Sales")
BOB = EmployeeInfo(id=uuid.uuid4(), company_id=COMPANY_ID, name="Bob Johnson", email="b@x.com", department="Marketing")
DAVID = EmployeeInfo(id=uuid.uuid4(), company_id=COMPANY_ID, name="David Wilson", email="d@x.com", department="Sales")


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def directory() -> InMemoryEmployeeDirectory:
    directory = InMemoryEmployeeDirectory()
    for employee in (ALICE, BOB, DAVID):
        directory.seed(employee)
    return directory


async def _open(directory: InMemoryEmployeeDirectory, **settings: object) -> GrantWizard:
    return await GrantWizard.open(
        company_id=COMPANY_ID,
        actor_id=ADMIN_ID,
        directory=directory,
        catalog=InMemoryLeaveTypeCatalog(),
        settings=Settings(**settings),  # type: ignore[arg-type]
    )


@pytest.fixture
async def wizard(directory: InMemoryEmployeeDirectory) -> GrantWizard:
    return await _open(directory)


def _fill_uniform(wizard: GrantWizard) -> None:
    """Walk a wizard from step 1 to REVIEW with a valid uniform grant."""
    wizard.set_title("Annual Leave 2025")
    wizard.advance()
    wizard.select_leave_type("annual")
    wizard.advance()
    wizard.set_employees([ALICE.id, BOB.id])
    wizard.advance()
    wizard.set_mode(GrantMode.UNIFORM)
    wizard.advance()
    wizard.set_days_granted(Decimal(25))
    wizard.set_period(date(2025, 1, 1), date(2025, 12, 31))
    wizard.set_carryover_rule(MonthsAfterPeriodEnd(months=3))
    wizard.advance()


def _saved_outcome() -> SubmitOutcome:
    return SubmitOutcome.succeeded(uuid.uuid4(), datetime.now(UTC))


def _mock_store(outcome: SubmitOutcome) -> AsyncMock:
    store = AsyncMock(spec=GrantStore)
    store.save_grant.return_value = outcome
    return store


# ---------------------------------------------------------------------------
# Opening and navigation
# ---------------------------------------------------------------------------


async def test_open_starts_empty_at_title(wizard: GrantWizard) -> None:
    assert wizard.current_step == WizardStep.TITLE
    assert wizard.draft.title == ""
    assert wizard.can_proceed is False
    assert wizard.can_submit is False
    assert set(wizard.reference.employees) == {ALICE.id, BOB.id, DAVID.id}
    assert "annual" in wizard.reference.leave_types


async def test_advance_blocked_by_issues(wizard: GrantWizard) -> None:
    with pytest.raises(WizardStateError) as exc_info:
        wizard.advance()
    assert exc_info.value.status_code == 409
    assert exc_info.value.issues[0].field == "title"
    assert wizard.current_step == WizardStep.TITLE


async def test_invalid_edit_is_kept_and_reported(wizard: GrantWizard) -> None:
    wizard.set_title("   ")
    assert wizard.draft.title == "   "
    assert wizard.can_proceed is False


async def test_walk_to_review(wizard: GrantWizard) -> None:
    _fill_uniform(wizard)
    assert wizard.current_step == WizardStep.REVIEW
    assert wizard.can_submit is True
    view = wizard.view()
    assert view.carryover_expiration == date(2026, 3, 31)
    assert [line.employee_id for line in view.lines] == [ALICE.id, BOB.id]
    assert all(line.days_granted == Decimal(25) for line in view.lines)


async def test_advance_past_review_raises(wizard: GrantWizard) -> None:
    _fill_uniform(wizard)
    with pytest.raises(WizardStateError):
        wizard.advance()


async def test_retreat_at_title_raises(wizard: GrantWizard) -> None:
    with pytest.raises(WizardStateError):
        wizard.retreat()


async def test_retreat_preserves_entered_data(wizard: GrantWizard) -> None:
    _fill_uniform(wizard)
    before = wizard.view()
    for _ in range(5):
        wizard.retreat()
    assert wizard.current_step == WizardStep.TITLE
    assert wizard.view() == before
    for _ in range(5):
        wizard.advance()
    assert wizard.current_step == WizardStep.REVIEW


async def test_review_invalidated_by_edit(wizard: GrantWizard) -> None:
    _fill_uniform(wizard)
    wizard.set_days_granted(Decimal(30))
    assert wizard.can_submit is False
    assert {issue.field for issue in wizard.issues()} == {"days_granted"}


async def test_cancel_resets_to_empty_title(wizard: GrantWizard) -> None:
    _fill_uniform(wizard)
    wizard.cancel()
    assert wizard.current_step == WizardStep.TITLE
    assert wizard.draft.title == ""
    assert wizard.draft.employee_ids == []


# ---------------------------------------------------------------------------
# Edits
# ---------------------------------------------------------------------------


async def test_toggle_employee(wizard: GrantWizard) -> None:
    wizard.toggle_employee(ALICE.id)
    wizard.toggle_employee(BOB.id)
    assert wizard.draft.employee_ids == [ALICE.id, BOB.id]
    wizard.toggle_employee(ALICE.id)
    assert wizard.draft.employee_ids == [BOB.id]


async def test_select_all_by_department(wizard: GrantWizard) -> None:
    wizard.select_all_employees("Sales")
    assert set(wizard.draft.employee_ids) == {ALICE.id, DAVID.id}
    wizard.select_all_employees()
    assert set(wizard.draft.employee_ids) == {ALICE.id, BOB.id, DAVID.id}


async def test_apply_only_touches_fields_present(wizard: GrantWizard) -> None:
    wizard.apply(DraftUpdate(title="Annual", period_end=date(2025, 12, 31)))
    wizard.apply(DraftUpdate(period_start=date(2025, 1, 1)))
    assert wizard.draft.title == "Annual"
    assert wizard.draft.period_start == date(2025, 1, 1)
    assert wizard.draft.period_end == date(2025, 12, 31)


async def test_apply_explicit_null_clears_field(wizard: GrantWizard) -> None:
    wizard.apply(DraftUpdate(leave_type_id="annual"))
    wizard.apply(DraftUpdate.model_validate({"leave_type_id": None}))
    assert wizard.draft.leave_type_id is None


# ---------------------------------------------------------------------------
# Individual mode
# ---------------------------------------------------------------------------


def _csv(*rows: str) -> bytes:
    header = "employee_id,days_granted,period_start,period_end,carryover_expiration"
    return "\n".join([header, *rows]).encode()


async def _to_individual_details(wizard: GrantWizard) -> None:
    wizard.set_title("Individual 2025")
    wizard.advance()
    wizard.select_leave_type("annual")
    wizard.advance()
    wizard.set_employees([ALICE.id, BOB.id])
    wizard.advance()
    wizard.set_mode(GrantMode.INDIVIDUAL)
    wizard.advance()


async def test_template_rows_prefilled_from_uniform_fields(wizard: GrantWizard) -> None:
    await _to_individual_details(wizard)
    wizard.set_period(date(2025, 1, 1), date(2025, 12, 31))
    wizard.set_carryover_rule(MonthsAfterPeriodEnd(months=3))
    rows = wizard.template_rows()
    assert [row["employee_id"] for row in rows] == [str(ALICE.id), str(BOB.id)]
    assert rows[0]["employee_name"] == "Alice Smith"
    assert rows[0]["carryover_expiration"] == date(2026, 3, 31)
    assert rows[0]["days_granted"] is None


async def test_individual_upload_then_review(wizard: GrantWizard) -> None:
    await _to_individual_details(wizard)
    result = wizard.upload(
        _csv(
            f"{BOB.id},20,2025-01-01,2025-12-31,2026-03-31",
            f"{ALICE.id},12.5,2025-04-01,2026-03-31,2026-06-30",
        )
    )
    assert result.accepted
    wizard.advance()
    assert wizard.current_step == WizardStep.REVIEW
    lines = wizard.ordered_lines()
    assert [line.employee_id for line in lines] == [ALICE.id, BOB.id]
    assert lines[0].days_granted == Decimal("12.5")


async def test_rejected_upload_keeps_previous_rows(wizard: GrantWizard) -> None:
    await _to_individual_details(wizard)
    wizard.upload(
        _csv(
            f"{ALICE.id},10,2025-01-01,2025-12-31,2026-03-31",
            f"{BOB.id},10,2025-01-01,2025-12-31,2026-03-31",
        )
    )
    before = dict(wizard.draft.per_employee_rows)

    result = wizard.upload(
        _csv(
            f"{ALICE.id},99,2025-01-01,2025-12-31,2026-03-31",
            f"{BOB.id},10,2025-01-01,2025-12-31,2026-03-31",
        )
    )
    assert not result.accepted
    assert wizard.draft.per_employee_rows == before


async def test_build_template_csv(wizard: GrantWizard) -> None:
    await _to_individual_details(wizard)
    content = wizard.build_template(TemplateFormat.CSV)
    text = content.decode("utf-8-sig")
    assert text.splitlines()[0].startswith("employee_id,employee_name")
    assert str(ALICE.id) in text


async def test_template_rows_with_unresolvable_rule(wizard: GrantWizard) -> None:
    await _to_individual_details(wizard)
    wizard.set_period(date(9999, 1, 1), date(9999, 12, 31))
    wizard.set_carryover_rule(MonthsAfterPeriodEnd(months=3))
    rows = wizard.template_rows()
    assert [row["carryover_expiration"] for row in rows] == [None, None]
    assert wizard.view().carryover_expiration is None


async def test_uniform_rule_past_last_date_blocks_details(wizard: GrantWizard) -> None:
    wizard.set_title("Far future")
    wizard.advance()
    wizard.select_leave_type("annual")
    wizard.advance()
    wizard.set_employees([ALICE.id])
    wizard.advance()
    wizard.set_mode(GrantMode.UNIFORM)
    wizard.advance()
    wizard.set_days_granted(Decimal(10))
    wizard.set_period(date(9999, 1, 1), date(9999, 12, 31))
    wizard.set_carryover_rule(MonthsAfterPeriodEnd(months=3))

    assert [issue.field for issue in wizard.issues()] == ["carryover_rule"]
    view = wizard.view()
    assert view.carryover_expiration is None
    assert view.lines == []
    with pytest.raises(WizardStateError):
        wizard.advance()


async def test_upload_in_uniform_mode_raises(wizard: GrantWizard) -> None:
    await _to_individual_details(wizard)
    wizard.set_mode(GrantMode.UNIFORM)
    with pytest.raises(WizardStateError, match="Uploads are only accepted"):
        wizard.upload(_csv(f"{ALICE.id},10,2025-01-01,2025-12-31,2026-03-31"))
    assert wizard.draft.per_employee_rows == {}


async def test_upload_before_details_raises(wizard: GrantWizard) -> None:
    wizard.set_title("Early upload")
    with pytest.raises(WizardStateError):
        wizard.upload(_csv(f"{ALICE.id},10,2025-01-01,2025-12-31,2026-03-31"))
    assert wizard.current_step == WizardStep.TITLE



# ---------------------------------------------------------------------------
# Submit
# ---------------------------------------------------------------------------


async def test_submit_success_resets_wizard(wizard: GrantWizard) -> None:
    _fill_uniform(wizard)
    outcome = _saved_outcome()
    store = _mock_store(outcome)

    result = await wizard.submit(store)

    assert result is outcome
    assert result.ok
    candidate: LeaveGrantCandidate = store.save_grant.await_args.args[0]
    assert candidate.title == "Annual Leave 2025"
    assert candidate.employee_ids == (ALICE.id, BOB.id)
    assert {line.carryover_expiration for line in candidate.lines} == {date(2026, 3, 31)}
    assert wizard.current_step == WizardStep.TITLE
    assert wizard.draft.title == ""


@pytest.mark.parametrize(
    ("failure", "retryable"),
    [
        (SubmitFailureKind.CONFLICT, False),
        (SubmitFailureKind.REJECTED, False),
        (SubmitFailureKind.UNAVAILABLE, True),
    ],
)
async def test_submit_failure_preserves_draft(
    wizard: GrantWizard, failure: SubmitFailureKind, retryable: bool
) -> None:
    _fill_uniform(wizard)
    before = wizard.view()

    result = await wizard.submit(_mock_store(SubmitOutcome.failed(failure, "nope")))

    assert result.failure == failure
    assert result.retryable is retryable
    assert wizard.current_step == WizardStep.REVIEW
    assert wizard.view() == before
    assert wizard.submitting is False


async def test_submit_retry_after_unavailable(wizard: GrantWizard) -> None:
    _fill_uniform(wizard)
    store = AsyncMock(spec=GrantStore)
    store.save_grant.side_effect = [
        SubmitOutcome.failed(SubmitFailureKind.UNAVAILABLE, "down"),
        _saved_outcome(),
    ]
    assert (await wizard.submit(store)).retryable
    assert (await wizard.submit(store)).ok
    assert store.save_grant.await_count == 2


async def test_submit_outside_review_raises(wizard: GrantWizard) -> None:
    store = _mock_store(_saved_outcome())
    with pytest.raises(WizardStateError):
        await wizard.submit(store)
    store.save_grant.assert_not_awaited()


async def test_submit_at_review_with_issues_raises(wizard: GrantWizard) -> None:
    _fill_uniform(wizard)
    wizard.set_title("")
    with pytest.raises(WizardStateError):
        await wizard.submit(_mock_store(_saved_outcome()))


async def test_submit_times_out_as_unavailable(directory: InMemoryEmployeeDirectory) -> None:
    wizard = await _open(directory, submit_timeout_seconds=0.01)
    _fill_uniform(wizard)

    async def _hang(candidate: LeaveGrantCandidate) -> SubmitOutcome:
        await asyncio.sleep(5)
        return _saved_outcome()

    store = AsyncMock(spec=GrantStore)
    store.save_grant.side_effect = _hang

    result = await wizard.submit(store)
    assert result.failure == SubmitFailureKind.UNAVAILABLE
    assert result.retryable
    assert wizard.current_step == WizardStep.REVIEW
    assert wizard.submitting is False


async def test_draft_locked_while_submitting(wizard: GrantWizard) -> None:
    _fill_uniform(wizard)
    seen: list[type[Exception]] = []

    async def _save(candidate: LeaveGrantCandidate) -> SubmitOutcome:
        assert wizard.submitting is True
        assert wizard.can_submit is False
        for action in (lambda: wizard.set_title("Other"), wizard.retreat, lambda: wizard.upload(b"")):
            with pytest.raises(DraftLockedError) as exc_info:
                action()
            seen.append(type(exc_info.value))
        with pytest.raises(DraftLockedError):
            await wizard.submit(store)
        return SubmitOutcome.failed(SubmitFailureKind.UNAVAILABLE, "down")

    store = AsyncMock(spec=GrantStore)
    store.save_grant.side_effect = _save

    await wizard.submit(store)
    assert len(seen) == 3
    assert wizard.draft.title == "Annual Leave 2025"
    wizard.set_title("Editable again")


async def test_submit_rejected_when_employee_left_directory(
    wizard: GrantWizard, directory: InMemoryEmployeeDirectory
) -> None:
    _fill_uniform(wizard)
    directory.remove(COMPANY_ID, BOB.id)
    store = _mock_store(_saved_outcome())

    result = await wizard.submit(store)

    assert result.failure == SubmitFailureKind.REJECTED
    assert str(BOB.id) in (result.message or "")
    store.save_grant.assert_not_awaited()
    assert wizard.current_step == WizardStep.REVIEW


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


async def test_registry_scoped_by_company(wizard: GrantWizard) -> None:
    registry = WizardRegistry()
    registry.add(wizard)
    assert registry.get(COMPANY_ID, wizard.id) is wizard
    with pytest.raises(AppError) as exc_info:
        registry.get(OTHER_COMPANY_ID, wizard.id)
    assert exc_info.value.status_code == 404


async def test_registry_discard(wizard: GrantWizard) -> None:
    registry = WizardRegistry()
    registry.add(wizard)
    registry.discard(COMPANY_ID, wizard.id)
    assert len(registry) == 0
    with pytest.raises(AppError):
        registry.get(COMPANY_ID, wizard.id)


async def test_registry_evicts_idle_sessions(wizard: GrantWizard) -> None:
    registry = WizardRegistry(idle_timeout_seconds=-1)
    registry.add(wizard)
    with pytest.raises(AppError):
        registry.get(COMPANY_ID, wizard.id)
