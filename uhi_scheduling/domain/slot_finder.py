"""
Open-slot search for one provider on one date.

Pure domain logic without any I/O: the caller supplies the provider's
working hours and existing bookings.
"""

from __future__ import annotations

from datetime import date
from typing import Iterable, List

import pendulum

from .exceptions import ValidationError
from .models import Fulfillment, TimeRange, TimeSpan, to_instant
from .overlap import OverlapDetector
from .working_hours import WorkingHours


class OpenSlotFinder:
    """
    Finds the free windows of a day that can hold a booking.

    Algorithm:
    1. Turn the day's resolved working ranges into concrete spans
    2. Collect busy time: breaks (not on exception dates) and bookings
    3. Subtract busy time from each working span separately
    4. Keep free pieces at least ``duration_seconds`` long

    Windows are never joined across working ranges, so a booking of
    ``duration_seconds`` at the start of any returned span passes
    ``AvailabilityChecker.is_available``.
    """

    def __init__(self, working_hours: WorkingHours, overlap_detector: OverlapDetector):
        self.working_hours = working_hours
        self.overlap_detector = overlap_detector

    def find_open_slots(
        self,
        day: object,
        booked: Iterable[Fulfillment],
        duration_seconds: int,
    ) -> List[TimeSpan]:
        """
        Args:
            day: Calendar date (``date`` or ``YYYY-MM-DD``)
            booked: Existing fulfillments of the provider
            duration_seconds: Minimum length of a usable window

        Returns:
            Free spans in chronological order

        Raises:
            ValidationError: If ``duration_seconds`` is not positive
        """
        if duration_seconds <= 0:
            raise ValidationError(f"Duration must be positive, got {duration_seconds}")
        local_day = self._as_local_date(day)
        working_blocks = [
            self._span_on(local_day, r) for r in self.working_hours.resolve(local_day)
        ]
        if not working_blocks:
            return []

        busy = [self._span_on(local_day, b) for b in self.working_hours.breaks_for(local_day)]
        tz = self.working_hours.timezone
        busy.extend(
            TimeSpan(start=s.start.in_timezone(tz), end=s.end.in_timezone(tz))
            for s in self.overlap_detector.booked_spans(booked)
        )
        busy = self._merge_adjacent_spans(busy)

        free: List[TimeSpan] = []
        for block in working_blocks:
            overlapping = [span for span in busy if block.overlaps(span)]
            if not overlapping:
                free.append(block)
                continue
            free.extend(self._subtract_busy_from_block(block, overlapping))

        return [span for span in free if span.duration_seconds() >= duration_seconds]

    def _as_local_date(self, day: object) -> date:
        if isinstance(day, date) and not hasattr(day, "hour"):
            return day
        if isinstance(day, str) and len(day.strip()) == 10:
            return to_instant(f"{day.strip()}T00:00:00").date()
        return to_instant(day).in_timezone(self.working_hours.timezone).date()

    def _span_on(self, day: date, time_range: TimeRange) -> TimeSpan:
        tz = self.working_hours.timezone
        return TimeSpan(
            start=pendulum.datetime(
                day.year, day.month, day.day, time_range.start.hour, time_range.start.minute, tz=tz
            ),
            end=pendulum.datetime(
                day.year, day.month, day.day, time_range.end.hour, time_range.end.minute, tz=tz
            ),
        )

    @staticmethod
    def _subtract_busy_from_block(block: TimeSpan, busy_spans: List[TimeSpan]) -> List[TimeSpan]:
        """
        Subtract busy spans from a working block, yielding free spans.

        Example:
        Working: 09:00 - 17:00
        Busy: [10:00-11:00, 12:00-13:00]
        Result: [09:00-10:00, 11:00-12:00, 13:00-17:00]
        """
        free: List[TimeSpan] = []
        current_start = block.start

        for busy in sorted(busy_spans, key=lambda s: s.start):
            clipped_start = max(busy.start, block.start)
            clipped_end = min(busy.end, block.end)

            if current_start < clipped_start:
                free.append(TimeSpan(start=current_start, end=clipped_start))

            current_start = max(current_start, clipped_end)

        if current_start < block.end:
            free.append(TimeSpan(start=current_start, end=block.end))

        return free

    @staticmethod
    def _merge_adjacent_spans(spans: List[TimeSpan]) -> List[TimeSpan]:
        """
        Merge overlapping or touching spans.

        Example: [09:00-10:00, 10:00-11:00] -> [09:00-11:00]
        """
        if not spans:
            return []

        ordered = sorted(spans, key=lambda s: s.start)
        merged: List[TimeSpan] = [ordered[0]]

        for current in ordered[1:]:
            last = merged[-1]
            if current.start <= last.end:
                merged[-1] = TimeSpan(start=last.start, end=max(last.end, current.end))
            else:
                merged.append(current)

        return merged
