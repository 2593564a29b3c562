"""
Recurrence calculation for digest schedules.

next_run() maps a RecurrenceSpec and a reference instant to the next
concrete run time. It is pure: no clock reads, no I/O, identical inputs
always give identical output. All calendar arithmetic happens in the
schedule's own timezone and the result is returned in UTC.

Daylight-saving handling:
- A wall-clock time that does not exist (spring-forward gap) resolves to the
  first valid local instant after the gap starts.
- A wall-clock time that occurs twice (fall-back overlap) resolves to its
  first occurrence, so a schedule never fires twice for the same slot.
"""

import calendar
from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo

from dateutil.relativedelta import relativedelta

from models.schedule import Frequency, RecurrenceSpec, TimeOfDay
from shared.utils import ensure_utc

# Longest DST gap in the tz database is well under this
_MAX_GAP_MINUTES = 24 * 60


def to_python_weekday(day_of_week: int) -> int:
    """Convert 0 = Sunday numbering to Python's 0 = Monday numbering."""
    return (day_of_week - 1) % 7


def resolve_local(day: date, time_of_day: TimeOfDay, tz: ZoneInfo) -> datetime:
    """
    Turn a local calendar date and wall-clock time into an aware UTC instant.

    Args:
        day: Local calendar date
        time_of_day: Wall-clock time on that date
        tz: Schedule timezone

    Returns:
        The first valid instant at or after the nominal local time, in UTC
    """
    naive = datetime.combine(day, time(time_of_day.hour, time_of_day.minute))
    candidate = naive
    for _ in range(_MAX_GAP_MINUTES):
        # fold=0 picks the first occurrence of an ambiguous time
        aware = candidate.replace(tzinfo=tz, fold=0)
        round_trip = aware.astimezone(timezone.utc).astimezone(tz).replace(tzinfo=None)
        if round_trip == candidate:
            return aware.astimezone(timezone.utc)
        candidate += timedelta(minutes=1)
    raise ValueError(f"No valid local time found after {naive} in {tz.key}")


def _clamped_day(year: int, month: int, day_of_month: int) -> date:
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day_of_month, last_day))


def _next_daily(spec: RecurrenceSpec, reference: datetime, tz: ZoneInfo) -> datetime:
    day = reference.astimezone(tz).date()
    candidate = resolve_local(day, spec.time_of_day, tz)
    while candidate <= reference:
        day += timedelta(days=1)
        candidate = resolve_local(day, spec.time_of_day, tz)
    return candidate


def _next_weekly(spec: RecurrenceSpec, reference: datetime, tz: ZoneInfo) -> datetime:
    today = reference.astimezone(tz).date()
    target = to_python_weekday(spec.day_of_week or 0)
    day = today + timedelta(days=(target - today.weekday()) % 7)
    candidate = resolve_local(day, spec.time_of_day, tz)
    while candidate <= reference:
        day += timedelta(days=7)
        candidate = resolve_local(day, spec.time_of_day, tz)
    return candidate


def biweekly_origin(spec: RecurrenceSpec) -> date:
    """First date on or after the anchor that falls on the schedule's weekday."""
    if spec.anchor_date is None:
        raise ValueError("biweekly recurrence requires anchor_date")
    target = to_python_weekday(spec.day_of_week or 0)
    return spec.anchor_date + timedelta(days=(target - spec.anchor_date.weekday()) % 7)


def _next_biweekly(spec: RecurrenceSpec, reference: datetime, tz: ZoneInfo) -> datetime:
    origin = biweekly_origin(spec)
    today = reference.astimezone(tz).date()
    elapsed_days = (today - origin).days
    cycles = elapsed_days // 14 if elapsed_days > 0 else 0
    day = origin + timedelta(days=14 * cycles)
    candidate = resolve_local(day, spec.time_of_day, tz)
    while candidate <= reference:
        day += timedelta(days=14)
        candidate = resolve_local(day, spec.time_of_day, tz)
    return candidate


def _next_monthly(spec: RecurrenceSpec, reference: datetime, tz: ZoneInfo) -> datetime:
    local = reference.astimezone(tz)
    month_start = date(local.year, local.month, 1)
    day_of_month = spec.day_of_month or 1
    day = _clamped_day(month_start.year, month_start.month, day_of_month)
    candidate = resolve_local(day, spec.time_of_day, tz)
    while candidate <= reference:
        month_start += relativedelta(months=1)
        day = _clamped_day(month_start.year, month_start.month, day_of_month)
        candidate = resolve_local(day, spec.time_of_day, tz)
    return candidate


_CALCULATORS = {
    Frequency.DAILY: _next_daily,
    Frequency.WEEKLY: _next_weekly,
    Frequency.BIWEEKLY: _next_biweekly,
    Frequency.MONTHLY: _next_monthly,
}


def next_run(spec: RecurrenceSpec, reference_now: datetime) -> datetime:
    """
    Compute the next run strictly after reference_now.

    Args:
        spec: Validated recurrence spec
        reference_now: Instant to compute from (naive values are treated as UTC)

    Returns:
        Aware UTC datetime of the next run
    """
    reference = ensure_utc(reference_now)
    tz = ZoneInfo(spec.timezone)
    return _CALCULATORS[spec.frequency](spec, reference, tz)


def upcoming_runs(spec: RecurrenceSpec, reference_now: datetime, count: int) -> list[datetime]:
    """Return the next ``count`` run times, each computed from the previous one."""
    runs: list[datetime] = []
    current = ensure_utc(reference_now)
    for _ in range(count):
        current = next_run(spec, current)
        runs.append(current)
    return runs
