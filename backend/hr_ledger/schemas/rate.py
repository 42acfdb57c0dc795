# ruff: noqa: TC001, TC003
from __future__ import annotations

from datetime import date, datetime, time
from decimal import Decimal

from pydantic import BaseModel, Field

from hr_ledger.models.enums import DayType


class RateQuery(BaseModel):
    """Request body for previewing an overtime rate."""

    work_date: date
    start_time: time
    end_time: time
    ends_next_day: bool = False
    rate_multiplier: Decimal | None = Field(default=None, ge=Decimal("1"), le=Decimal("10"), decimal_places=3)
    employee_id: int | None = Field(default=None, description="Includes the employee's scheduled rest days")


class RateSegmentResponse(BaseModel):
    start_at: datetime
    end_at: datetime
    day_type: DayType
    night_differential: bool
    night_hours: Decimal
    hours: Decimal
    multiplier: Decimal
    effective_units: Decimal


class RateBreakdownResponse(BaseModel):
    """Multiplier and segment-by-segment breakdown of an overtime interval."""

    work_date: date
    start_at: datetime
    end_at: datetime
    multiplier: Decimal
    override: bool
    crosses_midnight: bool
    has_night_differential: bool
    total_hours: Decimal
    night_differential_hours: Decimal
    effective_units: Decimal
    segments: list[RateSegmentResponse]
    explanation: list[str]
