"""
Attendance Penalty Calculator

Converts lateness, absence, undertime and short days into pesos. Two paths:

- time-clock facts, prorated per second of a day's salary;
- manual entries typed in by an admin, charged per minute at a flat rate.

The live time clock is switched off in this deployment; `DisabledTimeClock`
is the shipped source and always yields nothing.
"""
from dataclasses import dataclass
from datetime import date, datetime, time
from decimal import Decimal
from typing import Iterable, List, Optional, Protocol, Union

from brgy_payroll.core.config import settings
from brgy_payroll.core.exceptions import InvalidInputError
from brgy_payroll.core.money import ZERO, to_decimal

MINUTES_PER_WORKDAY = 480
HOURS_PER_WORKDAY = 8
SECONDS_PER_WORKDAY = HOURS_PER_WORKDAY * 60 * 60
DEFAULT_WORKING_DAYS = 22
WORKING_DAYS_RANGE = (22, 31)
DEFAULT_GRACE_SECONDS = 60

# Lateness is uncapped: a very late arrival may cost more than a day's pay.
# PAYROLL_LATE_PENALTY_CAP sets a ceiling; 0 waives lateness entirely.
LATE_PENALTY_CAP: Optional[Decimal] = None

Clock = Union[time, datetime]


@dataclass(frozen=True)
class Penalty:
    amount: Decimal
    description: str
    kind: str = "attendance"
    day: Optional[date] = None


def effective_working_days(working_days: Optional[int] = None) -> int:
    days = settings.payroll.working_days_in_period if working_days is None else working_days
    low, high = WORKING_DAYS_RANGE
    if days is None or not (low <= days <= high):
        return DEFAULT_WORKING_DAYS
    return days


def daily_salary(monthly_basic, working_days: Optional[int] = None) -> Decimal:
    return to_decimal(monthly_basic) / Decimal(effective_working_days(working_days))


def _per_second_rate(daily: Decimal) -> Decimal:
    return to_decimal(daily) / Decimal(SECONDS_PER_WORKDAY)


def _seconds_between(earlier: Clock, later: Clock) -> int:
    """Signed whole seconds from `earlier` to `later`."""
    if isinstance(earlier, datetime) and isinstance(later, datetime):
        return int((later - earlier).total_seconds())
    if isinstance(earlier, datetime) or isinstance(later, datetime):
        raise InvalidInputError("Cannot compare a clock time with a full timestamp")
    def to_secs(t: time) -> int:
        return t.hour * 3600 + t.minute * 60 + t.second

    return to_secs(later) - to_secs(earlier)


def _fmt_duration(seconds: int) -> str:
    minutes, secs = divmod(seconds, 60)
    hours, minutes = divmod(minutes, 60)
    parts = []
    if hours:
        parts.append(f"{hours}h")
    if minutes:
        parts.append(f"{minutes}m")
    if secs or not parts:
        parts.append(f"{secs}s")
    return " ".join(parts)


def compute_absence_penalty(daily, day: Optional[date] = None) -> Penalty:
    amount = to_decimal(daily)
    return Penalty(amount=amount, description="Absent (1 day)", kind="absence", day=day)


def compute_late_penalty(
    daily,
    expected_time_in: Clock,
    actual_time_in: Clock,
    grace_seconds: Optional[int] = None,
    cap: Optional[Decimal] = None,
    day: Optional[date] = None,
) -> Penalty:
    grace = settings.payroll.late_grace_seconds if grace_seconds is None else grace_seconds
    seconds_late = max(0, _seconds_between(expected_time_in, actual_time_in) - grace)
    # seconds * daily / seconds-per-day keeps the result exact for whole-peso rates
    amount = Decimal(seconds_late) * to_decimal(daily) / Decimal(SECONDS_PER_WORKDAY)

    limit = cap
    if limit is None:
        limit = settings.payroll.late_penalty_cap
    if limit is None:
        limit = LATE_PENALTY_CAP
    capped = limit is not None and amount > limit
    if capped:
        amount = to_decimal(limit)

    description = f"Late {_fmt_duration(seconds_late)} beyond {grace}s grace"
    if capped:
        description += " (capped)"
    return Penalty(amount=amount, description=description, kind="late", day=day)


def compute_undertime_penalty(
    daily,
    expected_time_out: Clock,
    actual_time_out: Clock,
    day: Optional[date] = None,
) -> Penalty:
    seconds_short = max(0, _seconds_between(actual_time_out, expected_time_out))
    amount = Decimal(seconds_short) * to_decimal(daily) / Decimal(SECONDS_PER_WORKDAY)
    return Penalty(
        amount=amount,
        description=f"Undertime {_fmt_duration(seconds_short)}",
        kind="undertime",
        day=day,
    )


def compute_partial_attendance_penalty(daily, hours_worked, day: Optional[date] = None) -> Penalty:
    hours = to_decimal(hours_worked)
    missing = max(ZERO, Decimal(HOURS_PER_WORKDAY) - hours)
    amount = missing * to_decimal(daily) / Decimal(HOURS_PER_WORKDAY)
    return Penalty(
        amount=amount,
        description=f"Partial attendance ({hours.normalize():f}h of {HOURS_PER_WORKDAY}h)",
        kind="partial",
        day=day,
    )


@dataclass(frozen=True)
class ManualEntryResult:
    late_hours: int
    late_minutes: int
    absent_days: Decimal
    total_minutes: Decimal
    rate_per_minute: Decimal
    amount: Decimal

    @property
    def folded_late_minutes(self) -> int:
        return self.late_hours * 60 + self.late_minutes

    def describe(self) -> str:
        parts = []
        if self.late_hours or self.late_minutes:
            parts.append(f"Late {self.late_hours}h {self.late_minutes}m")
        if self.absent_days:
            parts.append(f"Absent {self.absent_days.normalize():f} day(s)")
        return ", ".join(parts)


def compute_manual_entry(late_hours=0, late_minutes=0, absent_days=0, rate_per_minute=None) -> ManualEntryResult:
    """
    Manual lateness/absence entry.

    total_minutes = hours * 60 + minutes + absent_days * 480, charged at the
    per-minute rate. An entry with no minutes at all is rejected.
    """
    hours = int(late_hours or 0)
    minutes = int(late_minutes or 0)
    days = to_decimal(absent_days or 0)
    rate = to_decimal(settings.payroll.deduction_rate_per_minute if rate_per_minute is None else rate_per_minute)

    if hours < 0 or minutes < 0 or days < 0:
        raise InvalidInputError(
            "Late hours, late minutes and absent days cannot be negative",
            details={"late_hours": hours, "late_minutes": minutes, "absent_days": str(days)},
        )
    if rate <= 0:
        raise InvalidInputError(f"Deduction rate per minute must be positive, got {rate}")

    total_minutes = Decimal(hours * 60 + minutes) + days * Decimal(MINUTES_PER_WORKDAY)
    if total_minutes == 0:
        raise InvalidInputError("Enter at least one minute of lateness or one absent day")

    return ManualEntryResult(
        late_hours=hours,
        late_minutes=minutes,
        absent_days=days,
        total_minutes=total_minutes,
        rate_per_minute=rate,
        amount=total_minutes * rate,
    )


# --- Time clock collaborator ---

@dataclass(frozen=True)
class TimeClockRecord:
    day: date
    expected_time_in: Clock
    expected_time_out: Clock
    time_in: Optional[Clock] = None
    time_out: Optional[Clock] = None
    hours_worked: Optional[Decimal] = None


class TimeClockSource(Protocol):
    def records_for(self, users_id: int, period) -> List[TimeClockRecord]:
        ...


class DisabledTimeClock:
    """Live time-clock attendance is turned off; only manual entries count."""

    def records_for(self, users_id: int, period) -> List[TimeClockRecord]:
        return []


def penalties_from_time_clock(records: Iterable[TimeClockRecord], daily) -> List[Penalty]:
    penalties: List[Penalty] = []
    for rec in records:
        if rec.time_in is None:
            penalties.append(compute_absence_penalty(daily, day=rec.day))
            continue

        late = compute_late_penalty(daily, rec.expected_time_in, rec.time_in, day=rec.day)
        if late.amount > 0:
            penalties.append(late)

        if rec.time_out is not None:
            under = compute_undertime_penalty(daily, rec.expected_time_out, rec.time_out, day=rec.day)
            if under.amount > 0:
                penalties.append(under)
        elif rec.hours_worked is not None:
            partial = compute_partial_attendance_penalty(daily, rec.hours_worked, day=rec.day)
            if partial.amount > 0:
                penalties.append(partial)
    return penalties
