"""
Unit tests for scheduling/recurrence.py

Tests next-run calculation for every frequency, month-end clamping,
biweekly anchoring and daylight-saving transitions.
"""

import unittest
from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo

from models.schedule import TimeOfDay
from scheduling.recurrence import (
    biweekly_origin,
    next_run,
    resolve_local,
    to_python_weekday,
    upcoming_runs,
)
from tests.fixtures.schedule_factory import create_test_recurrence

UTC = timezone.utc


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=UTC)


class TestWeekdayConversion(unittest.TestCase):
    def test_sunday_is_zero(self):
        self.assertEqual(to_python_weekday(0), 6)
        self.assertEqual(to_python_weekday(1), 0)
        self.assertEqual(to_python_weekday(6), 5)


class TestDaily(unittest.TestCase):
    def setUp(self):
        self.spec = create_test_recurrence(frequency="daily", day_of_week=None, time_of_day="09:00")

    def test_later_today(self):
        """Time not yet reached today fires today"""
        self.assertEqual(next_run(self.spec, utc(2026, 1, 5, 8, 0)), utc(2026, 1, 5, 9, 0))

    def test_passed_today(self):
        """Time already passed fires tomorrow"""
        self.assertEqual(next_run(self.spec, utc(2026, 1, 5, 9, 30)), utc(2026, 1, 6, 9, 0))

    def test_exactly_now_is_not_returned(self):
        """Result is strictly after the reference instant"""
        self.assertEqual(next_run(self.spec, utc(2026, 1, 5, 9, 0)), utc(2026, 1, 6, 9, 0))

    def test_timezone_applied(self):
        """09:00 in Chicago is 15:00 UTC in winter"""
        spec = create_test_recurrence(
            frequency="daily", day_of_week=None, timezone_name="America/Chicago"
        )
        self.assertEqual(next_run(spec, utc(2026, 1, 5, 12, 0)), utc(2026, 1, 5, 15, 0))

    def test_naive_reference_treated_as_utc(self):
        self.assertEqual(
            next_run(self.spec, datetime(2026, 1, 5, 8, 0)), utc(2026, 1, 5, 9, 0)
        )


class TestWeekly(unittest.TestCase):
    def setUp(self):
        # Mondays at 09:00
        self.spec = create_test_recurrence(frequency="weekly", day_of_week=1, time_of_day="09:00")

    def test_monday_after_time_goes_to_next_monday(self):
        """Monday 10:00 -> following Monday 09:00"""
        self.assertEqual(next_run(self.spec, utc(2026, 1, 5, 10, 0)), utc(2026, 1, 12, 9, 0))

    def test_monday_before_time_is_today(self):
        self.assertEqual(next_run(self.spec, utc(2026, 1, 5, 8, 59)), utc(2026, 1, 5, 9, 0))

    def test_midweek_goes_to_next_monday(self):
        """Thursday -> the following Monday"""
        self.assertEqual(next_run(self.spec, utc(2026, 1, 8, 12, 0)), utc(2026, 1, 12, 9, 0))

    def test_sunday_schedule(self):
        spec = create_test_recurrence(frequency="weekly", day_of_week=0, time_of_day="18:30")
        result = next_run(spec, utc(2026, 1, 5, 0, 0))
        self.assertEqual(result, utc(2026, 1, 11, 18, 30))
        self.assertEqual(result.weekday(), 6)


class TestBiweekly(unittest.TestCase):
    def setUp(self):
        # Anchored on Thursday 2026-01-01, so the first Monday is 2026-01-05
        self.spec = create_test_recurrence(
            frequency="biweekly", day_of_week=1, anchor_date=date(2026, 1, 1)
        )

    def test_origin_is_first_matching_weekday(self):
        self.assertEqual(biweekly_origin(self.spec), date(2026, 1, 5))

    def test_first_occurrence(self):
        self.assertEqual(next_run(self.spec, utc(2026, 1, 1, 0, 0)), utc(2026, 1, 5, 9, 0))

    def test_skips_off_week(self):
        """The Monday between two occurrences is never chosen"""
        self.assertEqual(next_run(self.spec, utc(2026, 1, 5, 10, 0)), utc(2026, 1, 19, 9, 0))
        self.assertEqual(next_run(self.spec, utc(2026, 1, 12, 8, 0)), utc(2026, 1, 19, 9, 0))

    def test_stays_on_cycle_after_many_weeks(self):
        """Every result is a whole number of fortnights from the origin"""
        for run in upcoming_runs(self.spec, utc(2026, 1, 1), 20):
            days = (run.date() - date(2026, 1, 5)).days
            self.assertEqual(days % 14, 0)

    def test_different_anchor_picks_other_week(self):
        spec = create_test_recurrence(
            frequency="biweekly", day_of_week=1, anchor_date=date(2026, 1, 8)
        )
        self.assertEqual(next_run(spec, utc(2026, 1, 5, 10, 0)), utc(2026, 1, 12, 9, 0))

    def test_missing_anchor_raises(self):
        spec = create_test_recurrence(frequency="biweekly", day_of_week=1)
        with self.assertRaises(ValueError):
            next_run(spec, utc(2026, 1, 1))


class TestMonthly(unittest.TestCase):
    def test_day_31_clamps_to_february_28(self):
        """dayOfMonth=31 in February fires on Feb 28, not in March"""
        spec = create_test_recurrence(frequency="monthly", day_of_week=None, day_of_month=31)
        self.assertEqual(next_run(spec, utc(2026, 2, 10, 0, 0)), utc(2026, 2, 28, 9, 0))

    def test_leap_year_clamps_to_29(self):
        spec = create_test_recurrence(frequency="monthly", day_of_week=None, day_of_month=31)
        self.assertEqual(next_run(spec, utc(2028, 2, 10, 0, 0)), utc(2028, 2, 29, 9, 0))

    def test_passed_this_month_goes_to_next(self):
        spec = create_test_recurrence(frequency="monthly", day_of_week=None, day_of_month=15)
        self.assertEqual(next_run(spec, utc(2026, 1, 15, 10, 0)), utc(2026, 2, 15, 9, 0))

    def test_clamped_month_then_full_month(self):
        """After the clamped Feb 28 run, March uses the 31st again"""
        spec = create_test_recurrence(frequency="monthly", day_of_week=None, day_of_month=31)
        self.assertEqual(next_run(spec, utc(2026, 2, 28, 9, 0)), utc(2026, 3, 31, 9, 0))

    def test_december_rolls_into_january(self):
        spec = create_test_recurrence(frequency="monthly", day_of_week=None, day_of_month=1)
        self.assertEqual(next_run(spec, utc(2026, 12, 2, 0, 0)), utc(2027, 1, 1, 9, 0))


class TestDaylightSaving(unittest.TestCase):
    """America/New_York: clocks spring forward 2026-03-08, fall back 2026-11-01."""

    tz = ZoneInfo("America/New_York")

    def test_gap_resolves_to_first_valid_time(self):
        """02:30 does not exist on 2026-03-08; 03:00 EDT is used instead"""
        result = resolve_local(date(2026, 3, 8), TimeOfDay(hour=2, minute=30), self.tz)
        self.assertEqual(result, utc(2026, 3, 8, 7, 0))

    def test_overlap_resolves_to_first_occurrence(self):
        """01:30 happens twice on 2026-11-01; the EDT one is used"""
        result = resolve_local(date(2026, 11, 1), TimeOfDay(hour=1, minute=30), self.tz)
        self.assertEqual(result, utc(2026, 11, 1, 5, 30))

    def test_daily_across_overlap_fires_once(self):
        spec = create_test_recurrence(
            frequency="daily",
            day_of_week=None,
            time_of_day="01:30",
            timezone_name="America/New_York",
        )
        first = next_run(spec, utc(2026, 11, 1, 0, 0))
        second = next_run(spec, first)
        self.assertEqual(first, utc(2026, 11, 1, 5, 30))
        self.assertEqual(second, utc(2026, 11, 2, 6, 30))

    def test_wall_clock_kept_across_transition(self):
        spec = create_test_recurrence(
            frequency="weekly", day_of_week=1, timezone_name="America/New_York"
        )
        before = next_run(spec, utc(2026, 3, 1))
        after = next_run(spec, before)
        self.assertEqual(before, utc(2026, 3, 2, 14, 0))
        self.assertEqual(after, utc(2026, 3, 9, 13, 0))


class TestProperties(unittest.TestCase):
    def test_always_after_reference(self):
        specs = [
            create_test_recurrence(frequency="daily", day_of_week=None),
            create_test_recurrence(frequency="weekly", day_of_week=3),
            create_test_recurrence(
                frequency="biweekly", day_of_week=5, anchor_date=date(2025, 12, 20)
            ),
            create_test_recurrence(frequency="monthly", day_of_week=None, day_of_month=28),
            create_test_recurrence(
                frequency="daily", day_of_week=None, timezone_name="Europe/London"
            ),
        ]
        reference = utc(2026, 1, 1)
        for spec in specs:
            for step in range(0, 24 * 400, 7):
                now = reference + timedelta(hours=step)
                self.assertGreater(next_run(spec, now), now)

    def test_pure(self):
        spec = create_test_recurrence(frequency="monthly", day_of_week=None, day_of_month=10)
        now = utc(2026, 5, 20, 13, 45)
        self.assertEqual(next_run(spec, now), next_run(spec, now))

    def test_result_is_utc(self):
        spec = create_test_recurrence(timezone_name="Asia/Tokyo")
        self.assertEqual(next_run(spec, utc(2026, 1, 1)).tzinfo, UTC)

    def test_upcoming_runs_strictly_increasing(self):
        runs = upcoming_runs(create_test_recurrence(), utc(2026, 1, 1), 5)
        self.assertEqual(len(runs), 5)
        self.assertEqual(runs, sorted(set(runs)))


if __name__ == "__main__":
    unittest.main()
