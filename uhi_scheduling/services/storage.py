"""
Protocols describing the record store the scheduling services depend on.

The engine performs read-modify-write sequences (state transitions, status
projection). Implementations must make ``update_*`` with an
``expected_version`` an atomic compare-and-swap so that concurrent writers to
the same record cannot lose updates.
"""

from __future__ import annotations

from typing import List, Optional, Protocol

from ..domain.models import Fulfillment, Order, Provider


class ProviderStore(Protocol):
    """
    Provider persistence. ``get``/``update``/``delete`` raise ``NotFoundError``
    for a missing id.
    """

    async def get_provider(self, provider_id: str) -> Provider:
        ...

    async def create_provider(self, provider: Provider) -> Provider:
        ...

    async def update_provider(self, provider: Provider) -> Provider:
        ...

    async def delete_provider(self, provider_id: str) -> None:
        ...

    async def list_providers(self) -> List[Provider]:
        ...


class FulfillmentStore(Protocol):
    """
    Fulfillment persistence.

    ``create_fulfillment`` raises ``DuplicateError`` for an existing id;
    ``get``/``update`` raise ``NotFoundError`` for a missing one and
    ``update`` raises ``ConcurrentUpdateError`` on a version mismatch.
    """

    async def get_fulfillment(self, fulfillment_id: str) -> Fulfillment:
        ...

    async def create_fulfillment(self, fulfillment: Fulfillment) -> Fulfillment:
        ...

    async def update_fulfillment(
        self,
        fulfillment: Fulfillment,
        expected_version: Optional[int] = None,
    ) -> Fulfillment:
        ...

    async def list_fulfillments_by_provider(self, provider_id: str) -> List[Fulfillment]:
        ...


class OrderStore(Protocol):
    """Order persistence with the same failure semantics as fulfillments."""

    async def get_order(self, order_id: str) -> Order:
        ...

    async def create_order(self, order: Order) -> Order:
        ...

    async def update_order(self, order: Order, expected_version: Optional[int] = None) -> Order:
        ...
