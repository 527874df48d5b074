"""Tests for carryover rule resolution and the expiration ordering check."""

from __future__ import annotations

from datetime import date

import pytest
from pydantic import TypeAdapter, ValidationError

from leave_grant.schemas.carryover import (
    CarryoverRule,
    DaysAfterPeriodEnd,
    MonthsAfterPeriodEnd,
    NextYearMonth,
    SpecificDate,
)
from leave_grant.services.carryover import (
    ExpirationOutOfRangeError,
    add_months,
    expiration_issue,
    resolve_expiration,
)

YEAR_END = date(2025, 12, 31)


# ---------------------------------------------------------------------------
# Month arithmetic
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    ("start", "months", "expected"),
    [
        (date(2025, 1, 15), 1, date(2025, 2, 15)),
        (date(2025, 1, 31), 1, date(2025, 2, 28)),
        (date(2024, 1, 31), 1, date(2024, 2, 29)),
        (date(2025, 12, 31), 3, date(2026, 3, 31)),
        (date(2025, 11, 30), 3, date(2026, 2, 28)),
        (date(2025, 6, 30), 24, date(2027, 6, 30)),
    ],
)
def test_add_months_clamps_to_month_end(start: date, months: int, expected: date) -> None:
    assert add_months(start, months) == expected


# ---------------------------------------------------------------------------
# Rule resolution
# ---------------------------------------------------------------------------


def test_months_after_period_end() -> None:
    assert resolve_expiration(MonthsAfterPeriodEnd(months=3), YEAR_END) == date(2026, 3, 31)


def test_days_after_period_end() -> None:
    assert resolve_expiration(DaysAfterPeriodEnd(days=90), YEAR_END) == date(2026, 3, 31)


def test_next_year_month_defaults_to_first_day() -> None:
    assert resolve_expiration(NextYearMonth(month=4), YEAR_END) == date(2026, 4, 1)


def test_next_year_month_clamps_day() -> None:
    assert resolve_expiration(NextYearMonth(month=2, day=31), date(2027, 6, 30)) == date(2028, 2, 29)


def test_specific_date_ignores_period_end() -> None:
    rule = SpecificDate(expires_on=date(2026, 6, 30))
    assert resolve_expiration(rule, YEAR_END) == date(2026, 6, 30)
    assert resolve_expiration(rule, date(2020, 1, 1)) == date(2026, 6, 30)


def test_rule_parses_from_discriminated_json() -> None:
    adapter: TypeAdapter[CarryoverRule] = TypeAdapter(CarryoverRule)
    rule = adapter.validate_python({"kind": "NEXT_YEAR_MONTH", "month": 3, "day": 15})
    assert isinstance(rule, NextYearMonth)
    assert resolve_expiration(rule, YEAR_END) == date(2026, 3, 15)


def test_rule_rejects_unknown_kind() -> None:
    adapter: TypeAdapter[CarryoverRule] = TypeAdapter(CarryoverRule)
    with pytest.raises(ValidationError):
        adapter.validate_python({"kind": "FOREVER"})


@pytest.mark.parametrize(
    "payload",
    [
        {"kind": "MONTHS_AFTER_PERIOD_END", "months": 0},
        {"kind": "DAYS_AFTER_PERIOD_END", "days": -1},
        {"kind": "NEXT_YEAR_MONTH", "month": 13},
    ],
)
def test_rule_rejects_out_of_range_parameters(payload: dict) -> None:
    adapter: TypeAdapter[CarryoverRule] = TypeAdapter(CarryoverRule)
    with pytest.raises(ValidationError):
        adapter.validate_python(payload)


@pytest.mark.parametrize(
    "rule",
    [MonthsAfterPeriodEnd(months=3), DaysAfterPeriodEnd(days=1), NextYearMonth(month=1)],
)
def test_rule_past_last_date_is_out_of_range(rule: CarryoverRule) -> None:
    with pytest.raises(ExpirationOutOfRangeError, match="out of range for period end 9999-12-31"):
        resolve_expiration(rule, date(9999, 12, 31))


def test_specific_date_at_last_period_end_resolves() -> None:
    rule = SpecificDate(expires_on=date(9999, 12, 31))
    assert resolve_expiration(rule, date(9999, 12, 31)) == date(9999, 12, 31)


# ---------------------------------------------------------------------------
# Ordering check

# ---------------------------------------------------------------------------


def test_expiration_after_period_end_is_fine() -> None:
    assert expiration_issue(date(2026, 1, 1), YEAR_END) is None


def test_expiration_on_period_end_is_an_issue() -> None:
    message = expiration_issue(YEAR_END, YEAR_END)
    assert message is not None
    assert "must be after period end 2025-12-31" in message


def test_expiration_before_period_end_is_an_issue() -> None:
    assert expiration_issue(date(2025, 6, 30), YEAR_END) is not None
