"""Overtime rate calculation.

Everything here is pure: calendar lookups come from an injected
``WorkCalendar`` and nothing touches the database.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import TYPE_CHECKING

from hr_ledger.exceptions import ValidationError
from hr_ledger.models.enums import DayType
from hr_ledger.services.calendar import classify_day

if TYPE_CHECKING:
    from hr_ledger.services.calendar import WorkCalendar

# (without night differential, with night differential)
RATE_TABLE: dict[DayType, tuple[Decimal, Decimal]] = {
    DayType.ORDINARY: (Decimal("1.25"), Decimal("1.375")),
    DayType.REST_DAY: (Decimal("1.69"), Decimal("1.859")),
    DayType.SCHEDULED_REST_DAY: (Decimal("1.95"), Decimal("2.145")),
    DayType.REGULAR_HOLIDAY: (Decimal("2.60"), Decimal("2.86")),
}

MIN_MULTIPLIER = Decimal("1")
MAX_MULTIPLIER = Decimal("10")

_NIGHT_START = time(22, 0)
_NIGHT_LENGTH = timedelta(hours=8)
_MAX_SHIFT = timedelta(hours=24)
_CENT = Decimal("0.01")
_SECONDS_PER_HOUR = Decimal(3600)

_DAY_TYPE_LABELS = {
    DayType.ORDINARY: "an ordinary working day",
    DayType.REST_DAY: "a rest day",
    DayType.SCHEDULED_REST_DAY: "a scheduled rest day",
    DayType.REGULAR_HOLIDAY: "a regular holiday",
}


@dataclass(frozen=True)
class RateSegment:
    """A slice of an overtime interval rated under one day classification."""

    start_at: datetime
    end_at: datetime
    day_type: DayType
    night_differential: bool
    night_hours: Decimal
    hours: Decimal
    multiplier: Decimal
    effective_units: Decimal


@dataclass(frozen=True)
class RateBreakdown:
    """Result of rating one overtime interval."""

    work_date: date
    start_at: datetime
    end_at: datetime
    multiplier: Decimal
    override: bool
    segments: tuple[RateSegment, ...]
    total_hours: Decimal
    night_differential_hours: Decimal
    effective_units: Decimal
    explanation: tuple[str, ...]

    @property
    def has_night_differential(self) -> bool:
        return any(s.night_differential for s in self.segments)

    @property
    def crosses_midnight(self) -> bool:
        return self.end_at.date() != self.start_at.date() and self.end_at.time() != time(0)

    def to_json(self) -> dict[str, object]:
        """JSON-safe form stored on the request record."""
        return {
            "work_date": self.work_date.isoformat(),
            "start_at": self.start_at.isoformat(),
            "end_at": self.end_at.isoformat(),
            "multiplier": str(self.multiplier),
            "override": self.override,
            "total_hours": str(self.total_hours),
            "night_differential_hours": str(self.night_differential_hours),
            "effective_units": str(self.effective_units),
            "segments": [
                {
                    "start_at": s.start_at.isoformat(),
                    "end_at": s.end_at.isoformat(),
                    "day_type": s.day_type.value,
                    "night_differential": s.night_differential,
                    "night_hours": str(s.night_hours),
                    "hours": str(s.hours),
                    "multiplier": str(s.multiplier),
                    "effective_units": str(s.effective_units),
                }
                for s in self.segments
            ],
            "explanation": list(self.explanation),
        }


def resolve_interval(work_date: date, start_time: time, end_time: time, ends_next_day: bool = False) -> tuple[datetime, datetime]:
    """Turn a work date and wall-clock times into a concrete interval.

    An end time at or before the start time is only accepted when the
    caller says the shift ends on the following day.
    """
    start_at = datetime.combine(work_date, start_time)
    end_day = work_date + timedelta(days=1) if ends_next_day else work_date
    end_at = datetime.combine(end_day, end_time)
    if end_at <= start_at:
        raise ValidationError(
            "Overtime must end after it starts",
            context={"start_at": start_at.isoformat(), "end_at": end_at.isoformat()},
        )
    return start_at, end_at


def night_differential_seconds(start_at: datetime, end_at: datetime) -> int:
    """Seconds of [start_at, end_at) that fall inside any 22:00-06:00 window."""
    total = 0
    day = start_at.date() - timedelta(days=1)
    while day <= end_at.date():
        window_start = datetime.combine(day, _NIGHT_START, tzinfo=start_at.tzinfo)
        window_end = window_start + _NIGHT_LENGTH
        overlap = min(end_at, window_end) - max(start_at, window_start)
        if overlap > timedelta(0):
            total += int(overlap.total_seconds())
        day += timedelta(days=1)
    return total


def base_multiplier(day_type: DayType, night_differential: bool) -> Decimal:
    plain, night = RATE_TABLE[day_type]
    return night if night_differential else plain


def validate_multiplier(multiplier: Decimal) -> Decimal:
    if not MIN_MULTIPLIER <= multiplier <= MAX_MULTIPLIER:
        raise ValidationError(
            f"Rate multiplier must be between {MIN_MULTIPLIER} and {MAX_MULTIPLIER}",
            context={"rate_multiplier": str(multiplier)},
        )
    return multiplier


def compute_overtime_rate(
    start_at: datetime,
    end_at: datetime,
    calendar: WorkCalendar,
    requested_multiplier: Decimal | None = None,
) -> RateBreakdown:
    """Rate an overtime interval.

    A shift that crosses midnight into a differently classified day is split
    at midnight and each part is rated on its own. ``requested_multiplier``
    is a manual override: when given it is applied to every segment, while
    the computed classification is still reported.
    """
    if end_at <= start_at:
        raise ValidationError(
            "Overtime must end after it starts",
            context={"start_at": start_at.isoformat(), "end_at": end_at.isoformat()},
        )
    if end_at - start_at > _MAX_SHIFT:
        raise ValidationError(
            "Overtime cannot exceed 24 hours",
            context={"start_at": start_at.isoformat(), "end_at": end_at.isoformat()},
        )
    if requested_multiplier is not None:
        validate_multiplier(requested_multiplier)

    work_date = start_at.date()
    first_type = classify_day(calendar, work_date)
    midnight = datetime.combine(work_date + timedelta(days=1), time(0), tzinfo=start_at.tzinfo)

    bounds: list[tuple[datetime, datetime, DayType]] = [(start_at, end_at, first_type)]
    if end_at > midnight:
        next_type = classify_day(calendar, midnight.date())
        if next_type != first_type:
            bounds = [(start_at, midnight, first_type), (midnight, end_at, next_type)]

    segments = tuple(_rate_segment(s, e, t, requested_multiplier) for s, e, t in bounds)

    breakdown = RateBreakdown(
        work_date=work_date,
        start_at=start_at,
        end_at=end_at,
        multiplier=requested_multiplier if requested_multiplier is not None else segments[0].multiplier,
        override=requested_multiplier is not None,
        segments=segments,
        total_hours=_hours(int((end_at - start_at).total_seconds())),
        night_differential_hours=sum((s.night_hours for s in segments), Decimal("0")),
        effective_units=sum((s.effective_units for s in segments), Decimal("0")),
        explanation=(),
    )
    return _with_explanation(breakdown)


def _rate_segment(
    start_at: datetime,
    end_at: datetime,
    day_type: DayType,
    override: Decimal | None,
) -> RateSegment:
    night_seconds = night_differential_seconds(start_at, end_at)
    has_night = night_seconds > 0
    multiplier = override if override is not None else base_multiplier(day_type, has_night)
    hours = _hours(int((end_at - start_at).total_seconds()))
    return RateSegment(
        start_at=start_at,
        end_at=end_at,
        day_type=day_type,
        night_differential=has_night,
        night_hours=_hours(night_seconds),
        hours=hours,
        multiplier=multiplier,
        effective_units=(hours * multiplier).quantize(_CENT, rounding=ROUND_HALF_UP),
    )


def _hours(seconds: int) -> Decimal:
    return (Decimal(seconds) / _SECONDS_PER_HOUR).quantize(_CENT, rounding=ROUND_HALF_UP)


def _percent(multiplier: Decimal) -> str:
    text = f"{multiplier * 100:f}"
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return f"{text}%"


def _with_explanation(breakdown: RateBreakdown) -> RateBreakdown:
    lines: list[str] = []
    for segment in breakdown.segments:
        label = _DAY_TYPE_LABELS[segment.day_type]
        lines.append(
            f"{segment.start_at.date().isoformat()} is {label}: {segment.hours} hours "
            f"rated at {_percent(base_multiplier(segment.day_type, segment.night_differential))}."
        )
    if breakdown.has_night_differential:
        lines.append(
            f"{breakdown.night_differential_hours} hours fall within the night differential window "
            "(10PM to 6AM), which adds 10% to the rate."
        )
    if len(breakdown.segments) > 1:
        first, second = breakdown.segments
        lines.append(
            f"The shift crosses midnight into a differently classified day: {first.hours} hours at "
            f"{_percent(first.multiplier)} and {second.hours} hours at {_percent(second.multiplier)}."
        )
    if breakdown.override:
        lines.append(f"A manual multiplier of {_percent(breakdown.multiplier)} overrides the computed rates.")

    return RateBreakdown(
        work_date=breakdown.work_date,
        start_at=breakdown.start_at,
        end_at=breakdown.end_at,
        multiplier=breakdown.multiplier,
        override=breakdown.override,
        segments=breakdown.segments,
        total_hours=breakdown.total_hours,
        night_differential_hours=breakdown.night_differential_hours,
        effective_units=breakdown.effective_units,
        explanation=tuple(lines),
    )
