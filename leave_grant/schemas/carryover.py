"""Carryover rules: how the expiration of unused granted leave is computed.

Each variant resolves to a concrete date given the grant period end; the
resolution itself lives in ``leave_grant.services.carryover``.
"""

# ruff: noqa: TC003
from __future__ import annotations

from datetime import date
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field


class MonthsAfterPeriodEnd(BaseModel):
    """Expire ``months`` calendar months after the period end."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["MONTHS_AFTER_PERIOD_END"] = "MONTHS_AFTER_PERIOD_END"
    months: int = Field(ge=1, le=120)


class DaysAfterPeriodEnd(BaseModel):
    """Expire ``days`` days after the period end."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["DAYS_AFTER_PERIOD_END"] = "DAYS_AFTER_PERIOD_END"
    days: int = Field(ge=1, le=3660)


class NextYearMonth(BaseModel):
    """Expire on ``day`` of ``month`` in the year following the period end."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["NEXT_YEAR_MONTH"] = "NEXT_YEAR_MONTH"
    month: int = Field(ge=1, le=12)
    day: int = Field(default=1, ge=1, le=31)


class SpecificDate(BaseModel):
    """Expire on a literal date."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["SPECIFIC_DATE"] = "SPECIFIC_DATE"
    expires_on: date


CarryoverRule = Annotated[
    MonthsAfterPeriodEnd | DaysAfterPeriodEnd | NextYearMonth | SpecificDate,
    Field(discriminator="kind"),
]
