from __future__ import annotations

from datetime import timedelta
from typing import TYPE_CHECKING

from hr_ledger.exceptions import NotFound
from hr_ledger.schemas.rate import RateBreakdownResponse, RateSegmentResponse
from hr_ledger.services.calendar import load_calendar
from hr_ledger.services.rates import compute_overtime_rate, resolve_interval

if TYPE_CHECKING:
    from datetime import date, datetime, time
    from decimal import Decimal

    from sqlalchemy.ext.asyncio import AsyncSession

    from hr_ledger.schemas.rate import RateQuery
    from hr_ledger.services.calendar import WorkCalendar
    from hr_ledger.services.employee import EmployeeDirectory, EmployeeInfo
    from hr_ledger.services.rates import RateBreakdown


def build_rate_response(breakdown: RateBreakdown) -> RateBreakdownResponse:
    """Map a rate breakdown to its response schema."""
    return RateBreakdownResponse(
        work_date=breakdown.work_date,
        start_at=breakdown.start_at,
        end_at=breakdown.end_at,
        multiplier=breakdown.multiplier,
        override=breakdown.override,
        crosses_midnight=breakdown.crosses_midnight,
        has_night_differential=breakdown.has_night_differential,
        total_hours=breakdown.total_hours,
        night_differential_hours=breakdown.night_differential_hours,
        effective_units=breakdown.effective_units,
        segments=[
            RateSegmentResponse(
                start_at=s.start_at,
                end_at=s.end_at,
                day_type=s.day_type,
                night_differential=s.night_differential,
                night_hours=s.night_hours,
                hours=s.hours,
                multiplier=s.multiplier,
                effective_units=s.effective_units,
            )
            for s in breakdown.segments
        ],
        explanation=list(breakdown.explanation),
    )


async def rate_interval(
    session: AsyncSession,
    start_at: datetime,
    end_at: datetime,
    *,
    employee: EmployeeInfo | None = None,
    rate_multiplier: Decimal | None = None,
    calendar: WorkCalendar | None = None,
) -> RateBreakdown:
    """Rate an interval against the stored holiday calendar.

    A ``calendar`` passed in is used as-is instead of the database one.
    """
    if calendar is None:
        calendar = await load_calendar(session, start_at.date(), end_at.date() + timedelta(days=1), employee)
    return compute_overtime_rate(start_at, end_at, calendar, rate_multiplier)


async def rate_shift(
    session: AsyncSession,
    work_date: date,
    start_time: time,
    end_time: time,
    ends_next_day: bool = False,
    *,
    employee: EmployeeInfo | None = None,
    rate_multiplier: Decimal | None = None,
    calendar: WorkCalendar | None = None,
) -> RateBreakdown:
    start_at, end_at = resolve_interval(work_date, start_time, end_time, ends_next_day)
    return await rate_interval(
        session, start_at, end_at, employee=employee, rate_multiplier=rate_multiplier, calendar=calendar
    )


async def preview_overtime_rate(
    session: AsyncSession,
    directory: EmployeeDirectory,
    query: RateQuery,
) -> RateBreakdownResponse:
    """Compute a rate without creating a request."""
    employee = None
    if query.employee_id is not None:
        employee = await directory.get_employee(query.employee_id)
        if employee is None:
            raise NotFound("Employee not found", context={"employee_id": query.employee_id})

    breakdown = await rate_shift(
        session,
        query.work_date,
        query.start_time,
        query.end_time,
        query.ends_next_day,
        employee=employee,
        rate_multiplier=query.rate_multiplier,
    )
    return build_rate_response(breakdown)
