"""
Conflict detection between a requested booking and existing fulfillments.
"""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional

from .exceptions import ValidationError
from .models import DEFAULT_FULFILLMENT_SECONDS, Fulfillment, TimeSpan, to_instant

logger = logging.getLogger(__name__)


class OverlapDetector:
    """
    Half-open interval conflict check.

    A request ``[rs, re)`` conflicts with a booked ``[s, e)`` if:
    - rs lies inside the booking (s <= rs < e), or
    - re lies inside the booking (s < re <= e), or
    - the request swallows the booking (rs <= s and re >= e)

    Back-to-back bookings (rs == e or re == s) never conflict.
    """

    def __init__(
        self,
        default_duration_seconds: int = DEFAULT_FULFILLMENT_SECONDS,
        ignored_states: Iterable[str] = (),
    ):
        self.default_duration_seconds = default_duration_seconds
        self.ignored_states = frozenset(ignored_states)

    def booked_spans(self, fulfillments: Iterable[Fulfillment]) -> List[TimeSpan]:
        """Effective intervals of the fulfillments that still block time."""
        return [
            f.effective_span(self.default_duration_seconds)
            for f in fulfillments
            if f.state_descriptor not in self.ignored_states
        ]

    def has_conflict(
        self,
        requested_start: object,
        requested_end: object,
        existing_fulfillments: Iterable[Fulfillment],
    ) -> bool:
        return self.find_conflict(requested_start, requested_end, existing_fulfillments) is not None

    def find_conflict(
        self,
        requested_start: object,
        requested_end: object,
        existing_fulfillments: Iterable[Fulfillment],
    ) -> Optional[Fulfillment]:
        """Return the first fulfillment that clashes with the request, if any."""
        start = to_instant(requested_start)
        end = to_instant(requested_end)
        if end <= start:
            raise ValidationError(f"Requested end {end} must be after start {start}")

        for fulfillment in existing_fulfillments:
            if fulfillment.state_descriptor in self.ignored_states:
                continue

            booked = fulfillment.effective_span(self.default_duration_seconds)

            if (
                (booked.start <= start < booked.end)
                or (booked.start < end <= booked.end)
                or (start <= booked.start and end >= booked.end)
            ):
                logger.debug("Request %s - %s clashes with fulfillment %s", start, end, fulfillment.id)
                return fulfillment

        return None
