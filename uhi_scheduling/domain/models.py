"""
Domain models for wall-clock ranges, booked spans, fulfillments and orders.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, time
from typing import TYPE_CHECKING, Dict, List, Optional

import pendulum
from pendulum import DateTime

from .exceptions import BusinessLogicError, ValidationError

if TYPE_CHECKING:
    from .working_hours import WorkingHours

DEFAULT_FULFILLMENT_SECONDS = 3600


def to_instant(value: object) -> DateTime:
    """
    Coerce an ISO-8601 string or a datetime into a timezone-aware instant.

    Naive datetimes are taken to be UTC.

    Raises:
        ValidationError: If the value cannot be read as a point in time
    """
    if isinstance(value, DateTime):
        return value
    if isinstance(value, datetime):
        return pendulum.instance(value, tz="UTC")
    if isinstance(value, str):
        try:
            parsed = pendulum.parse(value.strip(), tz="UTC")
        except ValueError as exc:
            raise ValidationError(f"Cannot parse timestamp {value!r}: {exc}") from exc
        if not isinstance(parsed, DateTime):
            raise ValidationError(f"Timestamp {value!r} does not name a point in time")
        return parsed
    raise ValidationError(f"Unsupported timestamp value: {value!r}")


def parse_wall_clock(value: str) -> time:
    """Parse an ``HH:MM`` string on a 24-hour clock."""
    try:
        hour_text, minute_text = value.strip().split(":")
        return time(hour=int(hour_text), minute=int(minute_text))
    except (AttributeError, ValueError) as exc:
        raise ValidationError(f"Invalid time of day {value!r}, expected HH:MM") from exc


@dataclass(frozen=True)
class TimeRange:
    """
    Wall-clock range within a single day, e.g. 09:00-17:00.

    Invariant: start must be before end. Ranges never cross midnight.
    """
    start: time
    end: time

    def __post_init__(self):
        if self.start >= self.end:
            raise ValidationError(
                f"Start time {self.start:%H:%M} must be before end time {self.end:%H:%M}"
            )

    @classmethod
    def parse(cls, start: str, end: str) -> "TimeRange":
        return cls(start=parse_wall_clock(start), end=parse_wall_clock(end))

    def contains_time(self, moment: time) -> bool:
        """Half-open containment: the end minute itself is outside."""
        return self.start <= moment < self.end

    def covers(self, start: time, end: time) -> bool:
        """Check that ``[start, end)`` lies entirely inside this range."""
        return self.start <= start and end <= self.end

    def overlaps(self, start: time, end: time) -> bool:
        return self.start < end and start < self.end

    def __str__(self) -> str:
        return f"{self.start:%H:%M}-{self.end:%H:%M}"


@dataclass(frozen=True)
class TimeSpan:
    """
    Concrete half-open interval ``[start, end)`` between two instants.

    Invariant: start must be before end.
    """
    start: DateTime
    end: DateTime

    def __post_init__(self):
        if self.start >= self.end:
            raise ValidationError(f"Start time {self.start} must be before end time {self.end}")

    def duration_seconds(self) -> int:
        return int((self.end - self.start).total_seconds())

    def overlaps(self, other: "TimeSpan") -> bool:
        """Check if this span overlaps another; touching ends do not overlap."""
        return self.start < other.end and self.end > other.start

    def __str__(self) -> str:
        return f"{self.start.format('YYYY-MM-DD HH:mm')} - {self.end.format('HH:mm')}"


@dataclass(frozen=True)
class TimeSlot:
    """
    Start or end marker of a fulfillment.

    ``duration`` is in whole seconds and, when present, takes precedence over
    any separately recorded end time.
    """
    timestamp: DateTime
    duration: Optional[int] = None
    label: Optional[str] = None


@dataclass(frozen=True)
class FulfillmentState:
    descriptor: str
    updated_at: DateTime


@dataclass
class Fulfillment:
    """
    Scheduled service delivery for a provider.

    ``state`` is replaced only through ``FulfillmentStateMachine.update_state``.
    """
    id: str
    provider_id: str
    start: TimeSlot
    end: TimeSlot
    state: Optional[FulfillmentState] = None
    tags: Dict[str, str] = field(default_factory=dict)
    fulfillment_type: str = "teleconsultation"
    agent: Optional[str] = None
    customer: Dict[str, str] = field(default_factory=dict)
    version: int = 0

    @property
    def state_descriptor(self) -> Optional[str]:
        return self.state.descriptor if self.state else None

    def duration_seconds(self, default: int = DEFAULT_FULFILLMENT_SECONDS) -> int:
        """Booked length: start duration, else explicit end, else ``default``."""
        return self.effective_span(default).duration_seconds()

    def effective_span(self, default_seconds: int = DEFAULT_FULFILLMENT_SECONDS) -> TimeSpan:
        """
        Resolve the booked interval.

        Order of precedence:
        1. start timestamp + start duration
        2. explicit end timestamp, if it lies after the start
        3. start timestamp + ``default_seconds``
        """
        start = self.start.timestamp
        if self.start.duration:
            return TimeSpan(start=start, end=start.add(seconds=self.start.duration))
        if self.end.timestamp > start:
            return TimeSpan(start=start, end=self.end.timestamp)
        return TimeSpan(start=start, end=start.add(seconds=default_seconds))

    @classmethod
    def booking(
        cls,
        *,
        fulfillment_id: str,
        provider_id: str,
        start: DateTime,
        duration_seconds: int,
        **extra,
    ) -> "Fulfillment":
        """
        Build an unsaved fulfillment for ``duration_seconds`` from ``start``.

        Raises:
            ValidationError: If the duration is not a positive whole number of seconds
        """
        if isinstance(duration_seconds, bool) or not isinstance(duration_seconds, int) or duration_seconds <= 0:
            raise ValidationError(f"Duration must be positive whole seconds, got {duration_seconds!r}")
        try:
            end = start.add(seconds=duration_seconds)
        except (OverflowError, ValueError) as exc:
            raise ValidationError(f"Duration {duration_seconds}s is out of range: {exc}") from exc
        return cls(
            id=fulfillment_id,
            provider_id=provider_id,
            start=TimeSlot(timestamp=start, duration=duration_seconds, label="start"),
            end=TimeSlot(timestamp=end, label="end"),
            **extra,
        )


@dataclass(frozen=True)
class OrderStatus:
    state: str
    updated_at: DateTime


@dataclass
class Order:
    """
    Booking order. Its displayed state is derived from the linked fulfillment.
    """
    id: str
    provider_id: str
    state: str
    fulfillment_id: Optional[str] = None
    created_at: DateTime = field(default_factory=lambda: pendulum.now("UTC"))
    updated_at: DateTime = field(default_factory=lambda: pendulum.now("UTC"))
    version: int = 0

    def status(self) -> OrderStatus:
        return OrderStatus(state=self.state, updated_at=self.updated_at)

    def with_state(self, state: str, now: Optional[DateTime] = None) -> "Order":
        return replace(self, state=state, updated_at=now or pendulum.now("UTC"))

    def link_fulfillment(self, fulfillment_id: str) -> "Order":
        """
        Attach a fulfillment. The reference cannot change once set.

        Raises:
            BusinessLogicError: If the order already points at another fulfillment
        """
        if self.fulfillment_id and self.fulfillment_id != fulfillment_id:
            raise BusinessLogicError(
                f"Order {self.id} is already linked to fulfillment {self.fulfillment_id}"
            )
        return replace(self, fulfillment_id=fulfillment_id)


@dataclass
class Provider:
    """
    Healthcare service provider. ``working_hours`` of None means the
    injected default schedule applies.
    """
    id: str
    name: str
    categories: List[str] = field(default_factory=list)
    working_hours: Optional[WorkingHours] = None
    created_at: DateTime = field(default_factory=lambda: pendulum.now("UTC"))
    updated_at: DateTime = field(default_factory=lambda: pendulum.now("UTC"))
