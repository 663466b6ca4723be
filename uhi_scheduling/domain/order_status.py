"""
Mapping between fulfillment states and externally visible order states.
"""

from types import MappingProxyType
from typing import Mapping, Optional

from .state_machine import FulfillmentStatus

ORDER_STATE_BY_FULFILLMENT_STATE: Mapping[str, str] = MappingProxyType({
    FulfillmentStatus.SCHEDULED.value: "CONFIRMED",
    FulfillmentStatus.WAITING.value: "FULFILLMENT_PENDING",
    FulfillmentStatus.IN_PROGRESS.value: "IN_PROGRESS",
    FulfillmentStatus.COMPLETED.value: "COMPLETED",
    FulfillmentStatus.CANCELLED.value: "CANCELLED",
    FulfillmentStatus.NO_SHOW.value: "NO_SHOW",
    FulfillmentStatus.RESCHEDULED.value: "RESCHEDULED",
})

FULFILLMENT_STATE_BY_ORDER_STATE: Mapping[str, str] = MappingProxyType(
    {order_state: f_state for f_state, order_state in ORDER_STATE_BY_FULFILLMENT_STATE.items()}
)


def order_state_for(fulfillment_state: Optional[str]) -> Optional[str]:
    """Order state for a fulfillment state; None when unmapped."""
    if fulfillment_state is None:
        return None
    return ORDER_STATE_BY_FULFILLMENT_STATE.get(fulfillment_state)


def fulfillment_state_for(order_state: str) -> Optional[str]:
    """Fulfillment state for an order state; None when unmapped."""
    return FULFILLMENT_STATE_BY_ORDER_STATE.get(order_state)
