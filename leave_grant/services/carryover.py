"""Carryover rule resolution.

Every rule resolves to a concrete expiration date for a given period end.
Month arithmetic clamps to the last day of the target month, so a period
ending on Dec 31 with a three-month carryover expires on Mar 31.
"""

from __future__ import annotations

import calendar
from datetime import date, timedelta
from typing import TYPE_CHECKING

from leave_grant.schemas.carryover import DaysAfterPeriodEnd, MonthsAfterPeriodEnd, NextYearMonth, SpecificDate

if TYPE_CHECKING:
    from leave_grant.schemas.carryover import CarryoverRule


def _clamped_date(year: int, month: int, day: int) -> date:
    return date(year, month, min(day, calendar.monthrange(year, month)[1]))


def add_months(value: date, months: int) -> date:
    """Shift a date by whole months, clamping the day to the target month length."""
    total = value.year * 12 + (value.month - 1) + months
    year, month_index = divmod(total, 12)
    return _clamped_date(year, month_index + 1, value.day)


class ExpirationOutOfRangeError(ValueError):
    """The rule resolves to a date past the last representable day."""


def resolve_expiration(rule: CarryoverRule, period_end: date) -> date:
    """Resolve a carryover rule to its concrete expiration date.

    Raises ``ExpirationOutOfRangeError`` when the result would fall after 9999-12-31.
    """
    try:
        match rule:
            case MonthsAfterPeriodEnd(months=months):
                return add_months(period_end, months)
            case DaysAfterPeriodEnd(days=days):
                return period_end + timedelta(days=days)
            case NextYearMonth(month=month, day=day):
                return _clamped_date(period_end.year + 1, month, day)
            case SpecificDate(expires_on=expires_on):
                return expires_on
    except (ValueError, OverflowError) as exc:
        msg = f"Carryover expiration is out of range for period end {period_end.isoformat()}"
        raise ExpirationOutOfRangeError(msg) from exc
    msg = f"Unsupported carryover rule: {rule!r}"
    raise TypeError(msg)


def expiration_issue(expiration: date, period_end: date) -> str | None:
    """Return a message when the expiration does not fall strictly after the period end."""
    if expiration <= period_end:
        return f"Carryover expiration {expiration.isoformat()} must be after period end {period_end.isoformat()}"
    return None
