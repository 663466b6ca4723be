"""
Tests for the weekly working-hours model.
"""

from datetime import date, time

import pendulum
import pytest

from uhi_scheduling.domain.exceptions import ValidationError
from uhi_scheduling.domain.models import TimeRange
from uhi_scheduling.domain.working_hours import WorkingHours, weekday_index

MONDAY = date(2024, 11, 25)
SATURDAY = date(2024, 11, 23)
CHRISTMAS_EVE = date(2024, 12, 24)  # Tuesday


def _schedule(**kwargs) -> WorkingHours:
    return WorkingHours(
        regular_hours={
            "MON": [TimeRange.parse("09:00", "12:00"), TimeRange.parse("14:00", "18:00")],
            "TUE": [TimeRange.parse("09:00", "17:00")],
        },
        breaks={"TUE": [TimeRange.parse("12:00", "13:00")]},
        **kwargs,
    )


class TestWeekdayIndex:
    """Weekday keys accept numbers and names."""

    def test_numbers_and_names(self):
        assert weekday_index(0) == 0
        assert weekday_index("MON") == 0
        assert weekday_index("sunday") == 6
        assert weekday_index("4") == 4

    def test_rejects_unknown(self):
        with pytest.raises(ValidationError):
            weekday_index(7)
        with pytest.raises(ValidationError):
            weekday_index("Funday")
        with pytest.raises(ValidationError):
            weekday_index(True)


class TestResolve:
    """Resolution of a date into working ranges."""

    def test_regular_weekday(self):
        wh = _schedule()
        assert [str(r) for r in wh.resolve(MONDAY)] == ["09:00-12:00", "14:00-18:00"]
        assert wh.is_working_day(MONDAY)

    def test_day_off(self):
        wh = _schedule()
        assert wh.resolve(SATURDAY) == ()
        assert not wh.is_working_day(SATURDAY)

    def test_exception_replaces_weekday(self):
        wh = _schedule(exceptions={CHRISTMAS_EVE: [TimeRange.parse("10:00", "11:00")]})
        assert [str(r) for r in wh.resolve(CHRISTMAS_EVE)] == ["10:00-11:00"]
        assert wh.has_exception(CHRISTMAS_EVE)

    def test_empty_exception_closes_date(self):
        wh = _schedule(exceptions={CHRISTMAS_EVE: []})
        assert not wh.is_working_day(CHRISTMAS_EVE)

    def test_resolve_accepts_datetime(self):
        wh = _schedule()
        assert wh.resolve(pendulum.datetime(2024, 11, 25, 15, 0, tz="UTC")) == wh.resolve(MONDAY)

    def test_ranges_are_sorted(self):
        wh = WorkingHours(
            regular_hours={0: [TimeRange.parse("14:00", "18:00"), TimeRange.parse("09:00", "12:00")]}
        )
        assert [str(r) for r in wh.resolve(MONDAY)] == ["09:00-12:00", "14:00-18:00"]


class TestBreaks:
    """Break lookups."""

    def test_within_break_is_half_open(self):
        wh = _schedule()
        tuesday = date(2024, 11, 26)
        assert wh.is_within_break(tuesday, 12, 0)
        assert wh.is_within_break(tuesday, 12, 59)
        assert not wh.is_within_break(tuesday, 13, 0)
        assert not wh.is_within_break(tuesday, 11, 59)

    def test_breaks_ignored_on_exception_dates(self):
        wh = _schedule(exceptions={CHRISTMAS_EVE: [TimeRange.parse("09:00", "17:00")]})
        assert wh.breaks_for(CHRISTMAS_EVE) == ()
        assert not wh.is_within_break(CHRISTMAS_EVE, 12, 30)

    def test_invalid_time_raises(self):
        with pytest.raises(ValidationError):
            _schedule().is_within_break(MONDAY, 24, 0)

    def test_break_overlaps(self):
        wh = _schedule()
        tuesday = date(2024, 11, 26)
        assert wh.break_overlaps(tuesday, time(11, 30), time(12, 30))
        assert not wh.break_overlaps(tuesday, time(11, 0), time(12, 0))


class TestFactories:
    """Convenience constructors."""

    def test_default_schedule(self):
        wh = WorkingHours.default()
        assert wh.timezone == "UTC"
        assert [str(r) for r in wh.resolve(MONDAY)] == ["09:00-17:00"]
        assert wh.is_within_break(MONDAY, 12, 30)
        assert not wh.is_working_day(SATURDAY)

    def test_weekly_summary(self):
        summary = _schedule().weekly_summary()
        assert summary["MON"] == "09:00-12:00, 14:00-18:00"
        assert summary["TUE"] == "09:00-17:00"
        assert summary["SAT"] == "closed"
