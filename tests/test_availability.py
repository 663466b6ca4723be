"""
Tests for the working-hours availability check.
"""

from datetime import date, time

import pendulum
import pytest

from uhi_scheduling.domain.availability import AvailabilityChecker
from uhi_scheduling.domain.exceptions import ValidationError
from uhi_scheduling.domain.models import TimeRange
from uhi_scheduling.domain.working_hours import WorkingHours


def _checker(**kwargs) -> AvailabilityChecker:
    """Mon-Fri 09:00-17:00 with a 12:00-13:00 break."""
    return AvailabilityChecker(WorkingHours.default(**kwargs))


class TestIsAvailable:
    """Requests against the default weekday schedule (2024-11-25 is a Monday)."""

    def test_inside_working_hours(self):
        assert _checker().is_available("2024-11-25T10:00:00Z", 3600)

    def test_start_inside_break(self):
        assert not _checker().is_available("2024-11-25T12:30:00Z", 1800)

    def test_interval_spanning_break(self):
        assert not _checker().is_available("2024-11-25T11:30:00Z", 3600)

    def test_ending_exactly_when_break_starts(self):
        assert _checker().is_available("2024-11-25T11:00:00Z", 3600)

    def test_starting_exactly_when_break_ends(self):
        assert _checker().is_available("2024-11-25T13:00:00Z", 1800)

    def test_weekend(self):
        assert not _checker().is_available("2024-11-23T10:00:00Z", 3600)

    def test_ending_at_closing_time(self):
        assert _checker().is_available("2024-11-25T16:00:00Z", 3600)

    def test_running_past_closing_time(self):
        assert not _checker().is_available("2024-11-25T16:30:00Z", 3600)

    def test_before_opening(self):
        assert not _checker().is_available("2024-11-25T08:30:00Z", 3600)

    def test_crossing_midnight(self):
        checker = AvailabilityChecker(
            WorkingHours(regular_hours={day: [TimeRange.parse("00:00", "23:59")] for day in range(7)})
        )
        assert not checker.is_available("2024-11-25T23:30:00Z", 3600)

    def test_accepts_datetime(self):
        start = pendulum.datetime(2024, 11, 25, 14, 0, tz="UTC")
        assert _checker().is_available(start, 1800)

    def test_invalid_duration(self):
        with pytest.raises(ValidationError):
            _checker().is_available("2024-11-25T10:00:00Z", 0)
        with pytest.raises(ValidationError):
            _checker().is_available("2024-11-25T10:00:00Z", -60)
        with pytest.raises(ValidationError):
            _checker().is_available("2024-11-25T10:00:00Z", 1.5)

    def test_out_of_range_duration(self):
        with pytest.raises(ValidationError, match="out of range"):
            _checker().is_available("2024-11-25T10:00:00Z", 10**12)

    def test_invalid_start(self):
        with pytest.raises(ValidationError):
            _checker().is_available("tomorrow-ish", 3600)


class TestSplitAndExceptionDays:
    """Schedules with several windows per day and exception dates."""

    def _split(self, **kwargs) -> AvailabilityChecker:
        return AvailabilityChecker(
            WorkingHours(
                regular_hours={0: [TimeRange.parse("09:00", "12:00"), TimeRange.parse("14:00", "18:00")]},
                **kwargs,
            )
        )

    def test_second_window(self):
        assert self._split().is_available("2024-11-25T14:00:00Z", 3600)

    def test_gap_between_windows(self):
        assert not self._split().is_available("2024-11-25T12:30:00Z", 1800)

    def test_no_spanning_adjoining_windows(self):
        checker = AvailabilityChecker(
            WorkingHours(
                regular_hours={0: [TimeRange.parse("09:00", "12:00"), TimeRange.parse("12:00", "15:00")]}
            )
        )
        assert checker.is_available("2024-11-25T11:00:00Z", 3600)
        assert not checker.is_available("2024-11-25T11:30:00Z", 3600)

    def test_exception_date_overrides_weekday(self):
        checker = self._split(exceptions={date(2024, 11, 25): [TimeRange.parse("07:00", "08:00")]})
        assert checker.is_available("2024-11-25T07:00:00Z", 3600)
        assert not checker.is_available("2024-11-25T09:00:00Z", 3600)

    def test_exception_date_drops_breaks(self):
        checker = _checker()
        special = AvailabilityChecker(
            WorkingHours(
                regular_hours=checker.working_hours.regular_hours,
                breaks=checker.working_hours.breaks,
                exceptions={date(2024, 11, 25): [TimeRange.parse("09:00", "17:00")]},
            )
        )
        assert special.is_available("2024-11-25T12:00:00Z", 3600)


class TestTimezone:
    """Requests are evaluated in the schedule's timezone."""

    def test_local_working_hours(self):
        checker = _checker(timezone="Asia/Kolkata")
        # 04:30 UTC is 10:00 in Kolkata
        assert checker.is_available("2024-11-25T04:30:00Z", 3600)
        # 10:00 UTC is 15:30 in Kolkata; running to 16:30 still fits
        assert checker.is_available("2024-11-25T10:00:00Z", 3600)
        # 12:00 UTC is 17:30 in Kolkata
        assert not checker.is_available("2024-11-25T12:00:00Z", 1800)


class TestIsOpenAt:
    """Single instants against the open windows."""

    def test_opening_and_closing_instants(self):
        checker = _checker()
        assert checker.is_open_at("2024-11-25T09:00:00Z")
        assert not checker.is_open_at("2024-11-25T17:00:00Z")
        assert checker.is_open_at("2024-11-25T17:00:00Z", closing=True)
        assert not checker.is_open_at("2024-11-25T09:00:00Z", closing=True)

    def test_break_boundaries(self):
        checker = _checker()
        assert not checker.is_open_at("2024-11-25T12:00:00Z")
        assert checker.is_open_at("2024-11-25T12:00:00Z", closing=True)
        assert checker.is_open_at("2024-11-25T13:00:00Z")

    def test_window_for(self):
        checker = _checker()
        start = pendulum.datetime(2024, 11, 25, 10, 0, tz="UTC")
        window = checker.window_for(start, start.add(hours=1))
        assert window is not None
        assert (window.start, window.end) == (time(9, 0), time(17, 0))
