"""
Fulfillment lifecycle states and the only sanctioned way to change them.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from enum import Enum
from types import MappingProxyType
from typing import FrozenSet, Mapping, Optional

import pendulum
from pendulum import DateTime

from .exceptions import BusinessLogicError, ValidationError
from .models import Fulfillment, FulfillmentState

logger = logging.getLogger(__name__)


class FulfillmentStatus(str, Enum):
    SCHEDULED = "SCHEDULED"
    WAITING = "WAITING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    NO_SHOW = "NO_SHOW"
    RESCHEDULED = "RESCHEDULED"


INITIAL_STATE: FulfillmentStatus = FulfillmentStatus.SCHEDULED

# From -> allowed targets
ALLOWED_TRANSITIONS: Mapping[FulfillmentStatus, FrozenSet[FulfillmentStatus]] = MappingProxyType({
    FulfillmentStatus.SCHEDULED: frozenset({
        FulfillmentStatus.WAITING,
        FulfillmentStatus.IN_PROGRESS,
        FulfillmentStatus.CANCELLED,
        FulfillmentStatus.NO_SHOW,
        FulfillmentStatus.RESCHEDULED,
    }),
    FulfillmentStatus.WAITING: frozenset({
        FulfillmentStatus.IN_PROGRESS,
        FulfillmentStatus.CANCELLED,
        FulfillmentStatus.NO_SHOW,
    }),
    FulfillmentStatus.IN_PROGRESS: frozenset({
        FulfillmentStatus.COMPLETED,
        FulfillmentStatus.CANCELLED,
    }),
    FulfillmentStatus.COMPLETED: frozenset(),
    FulfillmentStatus.CANCELLED: frozenset(),
    FulfillmentStatus.NO_SHOW: frozenset({FulfillmentStatus.RESCHEDULED}),
    FulfillmentStatus.RESCHEDULED: frozenset({FulfillmentStatus.SCHEDULED}),
})

TERMINAL_STATES: FrozenSet[FulfillmentStatus] = frozenset(
    state for state, targets in ALLOWED_TRANSITIONS.items() if not targets
)

DEFAULT_TAG_PREFIX = "state_change_"


def validate_table(table: Mapping[FulfillmentStatus, FrozenSet[FulfillmentStatus]] = ALLOWED_TRANSITIONS) -> None:
    """
    Check that every state has an entry and every target is a known state.

    Raises:
        ValueError: If the table is incomplete or references unknown states
    """
    missing = [state.value for state in FulfillmentStatus if state not in table]
    if missing:
        raise ValueError(f"Transition table has no entry for: {', '.join(missing)}")
    for source, targets in table.items():
        unknown = [t for t in targets if not isinstance(t, FulfillmentStatus)]
        if unknown:
            raise ValueError(f"Transition table entry {source} targets unknown states {unknown}")


def _as_status(value: str) -> Optional[FulfillmentStatus]:
    try:
        return FulfillmentStatus(value)
    except ValueError:
        return None


class FulfillmentStateMachine:
    """
    Validates and applies fulfillment state transitions.

    Transitions never mutate the fulfillment passed in; ``update_state``
    returns a new record, so a rejected transition leaves the caller's
    copy untouched.
    """

    def __init__(self, tag_prefix: str = DEFAULT_TAG_PREFIX):
        self.tag_prefix = tag_prefix

    @staticmethod
    def allowed_transitions(state: str) -> FrozenSet[FulfillmentStatus]:
        status = _as_status(state)
        if status is None:
            return frozenset()
        return ALLOWED_TRANSITIONS[status]

    @staticmethod
    def is_terminal(state: str) -> bool:
        return _as_status(state) in TERMINAL_STATES

    def can_transition(self, current: Optional[str], new_state: str) -> bool:
        """
        An unset current state accepts any first transition. A current state
        the table does not know is let through as well.
        """
        if current is None:
            return True
        status = _as_status(current)
        if status is None:
            return True
        return _as_status(new_state) in ALLOWED_TRANSITIONS[status]

    def validate_transition(self, fulfillment: Fulfillment, new_state: str) -> None:
        current = fulfillment.state_descriptor
        if current is not None and _as_status(current) is None:
            logger.warning(
                "Fulfillment %s has unknown state '%s'; allowing transition to '%s'",
                fulfillment.id,
                current,
                new_state,
            )
        if not self.can_transition(current, new_state):
            raise BusinessLogicError(
                f"Invalid state transition from '{current}' to '{new_state}'"
            )

    def update_state(
        self,
        fulfillment: Fulfillment,
        new_state: str,
        context_tags: Optional[Mapping[str, str]] = None,
        now: Optional[DateTime] = None,
    ) -> Fulfillment:
        """
        Apply a transition and return the updated fulfillment.

        Args:
            fulfillment: Current record
            new_state: Target state descriptor, e.g. "IN_PROGRESS"
            context_tags: Extra information stored as ``<prefix><key>`` tags
            now: Timestamp for the new state (defaults to the current UTC time)

        Raises:
            ValidationError: If ``new_state`` is empty
            BusinessLogicError: If the table forbids the transition
        """
        if not new_state or not str(new_state).strip():
            raise ValidationError("New state must not be empty")
        new_state = str(new_state.value if isinstance(new_state, Enum) else new_state).strip()

        self.validate_transition(fulfillment, new_state)

        tags = dict(fulfillment.tags)
        for key, value in (context_tags or {}).items():
            tags[f"{self.tag_prefix}{key}"] = str(value)

        logger.info(
            "Fulfillment %s: %s -> %s",
            fulfillment.id,
            fulfillment.state_descriptor or "<unset>",
            new_state,
        )

        return replace(
            fulfillment,
            state=FulfillmentState(descriptor=new_state, updated_at=now or pendulum.now("UTC")),
            tags=tags,
        )
