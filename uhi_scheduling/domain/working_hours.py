"""
Per-provider weekly schedule with exception dates and breaks.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, time
from typing import Dict, Iterable, Mapping, Tuple

from .exceptions import ValidationError
from .models import TimeRange

# 0=Monday, 6=Sunday (same numbering as date.weekday())
WEEKDAY_NAMES: Tuple[str, ...] = ("MON", "TUE", "WED", "THU", "FRI", "SAT", "SUN")

Ranges = Tuple[TimeRange, ...]


def weekday_index(value: object) -> int:
    """Accept 0-6 or a weekday name such as ``"MON"``/``"monday"``."""
    if isinstance(value, int) and not isinstance(value, bool):
        if value in range(7):
            return value
    elif isinstance(value, str):
        key = value.strip().upper()[:3]
        if key in WEEKDAY_NAMES:
            return WEEKDAY_NAMES.index(key)
        if key.isdigit() and int(key) in range(7):
            return int(key)
    raise ValidationError(f"Unknown weekday {value!r}; use 0-6 (Monday=0) or MON..SUN")


def _ordered(ranges: Iterable[TimeRange]) -> Ranges:
    return tuple(sorted(set(ranges), key=lambda r: (r.start, r.end)))


@dataclass(frozen=True)
class WorkingHours:
    """
    Weekly opening hours of a provider.

    - ``regular_hours``: weekday -> ranges; a missing or empty entry is a day off
    - ``exceptions``: calendar date -> ranges, replacing the weekday's hours
      entirely (an empty entry closes the date)
    - ``breaks``: weekday -> ranges subtracted from regular working days

    Ranges are wall-clock times in ``timezone``.
    """
    regular_hours: Mapping[int, Ranges] = field(default_factory=dict)
    exceptions: Mapping[date, Ranges] = field(default_factory=dict)
    breaks: Mapping[int, Ranges] = field(default_factory=dict)
    timezone: str = "UTC"

    def __post_init__(self):
        object.__setattr__(
            self,
            "regular_hours",
            {weekday_index(day): _ordered(r) for day, r in self.regular_hours.items()},
        )
        object.__setattr__(
            self,
            "exceptions",
            {day: _ordered(r) for day, r in self.exceptions.items()},
        )
        object.__setattr__(
            self,
            "breaks",
            {weekday_index(day): _ordered(r) for day, r in self.breaks.items()},
        )

    @classmethod
    def weekly(
        cls,
        start: time,
        end: time,
        weekdays: Iterable[int] = range(5),
        breaks: Iterable[TimeRange] = (),
        timezone: str = "UTC",
    ) -> "WorkingHours":
        """Same hours (and breaks) on every listed weekday."""
        days = list(weekdays)
        opening = (TimeRange(start=start, end=end),)
        break_ranges = tuple(breaks)
        return cls(
            regular_hours={day: opening for day in days},
            breaks={day: break_ranges for day in days} if break_ranges else {},
            timezone=timezone,
        )

    @classmethod
    def default(cls, timezone: str = "UTC") -> "WorkingHours":
        """Fallback schedule: Monday to Friday 09:00-17:00, break 12:00-13:00."""
        return cls.weekly(
            start=time(9, 0),
            end=time(17, 0),
            breaks=(TimeRange(start=time(12, 0), end=time(13, 0)),),
            timezone=timezone,
        )

    def has_exception(self, day: date) -> bool:
        return _as_date(day) in self.exceptions

    def resolve(self, day: date) -> Ranges:
        """
        Working ranges for a calendar date.

        Exception ranges win outright; they are never merged with the
        regular weekday hours.
        """
        day = _as_date(day)
        if day in self.exceptions:
            return self.exceptions[day]
        return self.regular_hours.get(day.weekday(), ())

    def is_working_day(self, day: date) -> bool:
        return bool(self.resolve(day))

    def breaks_for(self, day: date) -> Ranges:
        """Breaks that apply on a date; exception dates have none."""
        day = _as_date(day)
        if day in self.exceptions:
            return ()
        return self.breaks.get(day.weekday(), ())

    def is_within_break(self, day: date, hour: int, minute: int) -> bool:
        try:
            moment = time(hour=hour, minute=minute)
        except (TypeError, ValueError) as exc:
            raise ValidationError(f"Invalid time of day {hour}:{minute}") from exc
        return any(b.contains_time(moment) for b in self.breaks_for(day))

    def break_overlaps(self, day: date, start: time, end: time) -> bool:
        return any(b.overlaps(start, end) for b in self.breaks_for(day))

    def weekly_summary(self) -> Dict[str, str]:
        """Human-readable hours per weekday, e.g. ``{"MON": "09:00-17:00"}``."""
        summary: Dict[str, str] = {}
        for index, name in enumerate(WEEKDAY_NAMES):
            ranges = self.regular_hours.get(index, ())
            summary[name] = ", ".join(str(r) for r in ranges) if ranges else "closed"
        return summary


def _as_date(value: date) -> date:
    """Strip a datetime down to its calendar date."""
    if hasattr(value, "date") and callable(value.date):
        return value.date()
    return value
