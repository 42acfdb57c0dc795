from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from sqlalchemy import select
from sqlmodel import col

from hr_ledger.models.enums import DayType
from hr_ledger.models.holiday import CompanyHoliday

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from hr_ledger.services.employee import EmployeeInfo

# Saturday and Sunday.
_DEFAULT_REST_WEEKDAYS = frozenset({5, 6})


@runtime_checkable
class WorkCalendar(Protocol):
    """Calendar lookups consumed by the overtime rate calculator."""

    def is_holiday(self, day: date) -> bool: ...

    def is_rest_day(self, day: date) -> bool: ...

    def is_scheduled_rest_day(self, day: date) -> bool: ...


@dataclass(frozen=True)
class CalendarSnapshot:
    """A synchronous, preloaded calendar.

    Holidays come from the company calendar, rest days from the weekday
    pattern, scheduled rest days from the employee's own schedule.
    """

    holidays: frozenset[date] = frozenset()
    rest_weekdays: frozenset[int] = _DEFAULT_REST_WEEKDAYS
    scheduled_rest_dates: frozenset[date] = field(default_factory=frozenset)

    def is_holiday(self, day: date) -> bool:
        return day in self.holidays

    def is_rest_day(self, day: date) -> bool:
        return day.weekday() in self.rest_weekdays

    def is_scheduled_rest_day(self, day: date) -> bool:
        return day in self.scheduled_rest_dates


def classify_day(calendar: WorkCalendar, day: date) -> DayType:
    """Classify a day; holidays win over rest days."""
    if calendar.is_holiday(day):
        return DayType.REGULAR_HOLIDAY
    if calendar.is_scheduled_rest_day(day):
        return DayType.SCHEDULED_REST_DAY
    if calendar.is_rest_day(day):
        return DayType.REST_DAY
    return DayType.ORDINARY


async def fetch_holiday_dates(session: AsyncSession, start_date: date, end_date: date) -> set[date]:
    """Fetch company holidays in the given date range."""
    result = await session.execute(
        select(col(CompanyHoliday.date)).where(
            col(CompanyHoliday.date) >= start_date,
            col(CompanyHoliday.date) <= end_date,
        )
    )
    return {row[0] for row in result.all()}


async def load_calendar(
    session: AsyncSession,
    start_date: date,
    end_date: date,
    employee: EmployeeInfo | None = None,
) -> CalendarSnapshot:
    """Build a calendar snapshot covering ``start_date..end_date``."""
    holidays = await fetch_holiday_dates(session, start_date, end_date)
    scheduled = frozenset(employee.scheduled_rest_dates) if employee is not None else frozenset()
    return CalendarSnapshot(holidays=frozenset(holidays), scheduled_rest_dates=scheduled)
