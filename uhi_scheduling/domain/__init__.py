"""
Domain layer - Pure scheduling logic without external dependencies.
"""

from .availability import AvailabilityChecker
from .exceptions import (
    BusinessLogicError,
    ConcurrentUpdateError,
    ConfigError,
    DuplicateError,
    NotFoundError,
    SchedulingError,
    ValidationError,
)
from .models import (
    Fulfillment,
    FulfillmentState,
    Order,
    OrderStatus,
    Provider,
    TimeRange,
    TimeSlot,
    TimeSpan,
)
from .overlap import OverlapDetector
from .slot_finder import OpenSlotFinder
from .state_machine import FulfillmentStateMachine, FulfillmentStatus
from .working_hours import WorkingHours

__all__ = [
    "AvailabilityChecker",
    "BusinessLogicError",
    "ConcurrentUpdateError",
    "ConfigError",
    "DuplicateError",
    "Fulfillment",
    "FulfillmentState",
    "FulfillmentStateMachine",
    "FulfillmentStatus",
    "NotFoundError",
    "OpenSlotFinder",
    "Order",
    "OrderStatus",
    "OverlapDetector",
    "Provider",
    "SchedulingError",
    "TimeRange",
    "TimeSlot",
    "TimeSpan",
    "ValidationError",
    "WorkingHours",
]
