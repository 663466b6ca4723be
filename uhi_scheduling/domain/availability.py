"""
Working-hours availability for a single requested booking.

Pure domain logic: takes a provider's ``WorkingHours`` and a requested span,
knows nothing about stored bookings (see ``OverlapDetector`` for those).
"""

from __future__ import annotations

import logging
from typing import Optional

from pendulum import DateTime

from .exceptions import ValidationError
from .models import TimeRange, TimeSpan, to_instant
from .working_hours import WorkingHours

logger = logging.getLogger(__name__)


class AvailabilityChecker:
    """
    Decides whether a requested interval fits into a provider's open hours.

    Algorithm:
    1. Resolve the ranges for the requested date (exception or weekday)
    2. No ranges -> day off
    3. The start and end instants must each fall into an open window
    4. The whole interval must fit into one single window
    5. Outside exception dates, no break may overlap the interval
    """

    def __init__(self, working_hours: WorkingHours):
        self.working_hours = working_hours

    def is_available(self, requested_start: object, duration_seconds: int) -> bool:
        """
        Check whether ``[requested_start, requested_start + duration)`` is bookable.

        Args:
            requested_start: Instant as ISO-8601 string or datetime
            duration_seconds: Booking length in whole seconds

        Raises:
            ValidationError: If the start or duration is malformed
        """
        span = self.requested_span(requested_start, duration_seconds)
        local_start = span.start.in_timezone(self.working_hours.timezone)
        local_end = span.end.in_timezone(self.working_hours.timezone)

        if local_start.date() != local_end.date():
            logger.debug("Request %s crosses midnight in %s", span, self.working_hours.timezone)
            return False

        if not self.working_hours.resolve(local_start.date()):
            return False

        if not self.is_open_at(span.start) or not self.is_open_at(span.end, closing=True):
            return False

        if self.window_for(local_start, local_end) is None:
            return False

        if self.working_hours.break_overlaps(
            local_start.date(), local_start.time(), local_end.time()
        ):
            return False

        return True

    def is_open_at(self, moment: object, closing: bool = False) -> bool:
        """
        Check a single instant against the open windows of its date.

        An opening instant may coincide with a window's start, a closing
        instant with a window's end. Neither may fall strictly inside a break.
        """
        local = to_instant(moment).in_timezone(self.working_hours.timezone)
        day = local.date()
        wall = local.time()

        if closing:
            in_window = any(r.start < wall <= r.end for r in self.working_hours.resolve(day))
            in_break = any(b.start < wall < b.end for b in self.working_hours.breaks_for(day))
        else:
            in_window = any(r.contains_time(wall) for r in self.working_hours.resolve(day))
            in_break = self.working_hours.is_within_break(day, wall.hour, wall.minute)

        return in_window and not in_break

    def window_for(self, local_start: DateTime, local_end: DateTime) -> Optional[TimeRange]:
        """The resolved range that contains the whole interval, if any."""
        for window in self.working_hours.resolve(local_start.date()):
            if window.covers(local_start.time(), local_end.time()):
                return window
        return None

    @staticmethod
    def requested_span(requested_start: object, duration_seconds: int) -> TimeSpan:
        if isinstance(duration_seconds, bool) or not isinstance(duration_seconds, int):
            raise ValidationError(f"Duration must be whole seconds, got {duration_seconds!r}")
        if duration_seconds <= 0:
            raise ValidationError(f"Duration must be positive, got {duration_seconds}")
        start = to_instant(requested_start)
        try:
            end = start.add(seconds=duration_seconds)
        except (OverflowError, ValueError) as exc:
            raise ValidationError(f"Duration {duration_seconds}s is out of range: {exc}") from exc
        return TimeSpan(start=start, end=end)
