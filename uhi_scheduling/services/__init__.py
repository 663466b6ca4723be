"""
Service layer helpers that orchestrate the record store and domain logic.
"""

from .order_status import OrderStatusProjector
from .scheduling import SchedulingService
from .storage import FulfillmentStore, OrderStore, ProviderStore

__all__ = [
    "FulfillmentStore",
    "OrderStatusProjector",
    "OrderStore",
    "ProviderStore",
    "SchedulingService",
]
