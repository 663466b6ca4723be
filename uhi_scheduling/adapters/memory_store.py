"""
In-memory record store for development, the CLI and tests.

Implements the provider, fulfillment and order store protocols. Each record
kind is guarded by its own ``asyncio.Lock`` and every record carries a
version number, so updates with ``expected_version`` behave as an atomic
compare-and-swap.
"""

from __future__ import annotations

import asyncio
import copy
import logging
from pathlib import Path
from typing import Dict, List, Optional

from ..domain.exceptions import ConcurrentUpdateError, DuplicateError, NotFoundError
from ..domain.models import Fulfillment, Order, Provider
from .records import FulfillmentRecord, OrderRecord, ProviderRecord, RecordFile

logger = logging.getLogger(__name__)


class _Table:
    """One record kind: id -> record, plus the lock serialising writes."""

    def __init__(self, kind: str):
        self.kind = kind
        self.rows: Dict[str, object] = {}
        self.lock = asyncio.Lock()

    def get(self, record_id: str):
        try:
            return copy.deepcopy(self.rows[record_id])
        except KeyError:
            raise NotFoundError(f"{self.kind} with ID {record_id} not found") from None

    def insert(self, record):
        if record.id in self.rows:
            raise DuplicateError(f"{self.kind} with ID {record.id} already exists")
        self.rows[record.id] = copy.deepcopy(record)
        return copy.deepcopy(record)

    def replace(self, record, expected_version: Optional[int] = None):
        stored = self.rows.get(record.id)
        if stored is None:
            raise NotFoundError(f"{self.kind} with ID {record.id} not found")

        stored_version = getattr(stored, "version", None)
        if expected_version is not None and stored_version != expected_version:
            logger.warning(
                "%s %s: expected version %s, stored version is %s",
                self.kind,
                record.id,
                expected_version,
                stored_version,
            )
            raise ConcurrentUpdateError(
                f"{self.kind} {record.id} was modified concurrently "
                f"(expected version {expected_version}, found {stored_version})"
            )

        saved = copy.deepcopy(record)
        if stored_version is not None:
            saved.version = stored_version + 1
        self.rows[record.id] = saved
        return copy.deepcopy(saved)


class MemoryStore:
    """
    Dictionary-backed store.

    Records are deep-copied on the way in and out, so callers can only change
    stored state through the ``create_*``/``update_*`` methods.
    """

    def __init__(self):
        self._providers = _Table("Provider")
        self._fulfillments = _Table("Fulfillment")
        self._orders = _Table("Order")

    # Provider operations
    async def create_provider(self, provider: Provider) -> Provider:
        async with self._providers.lock:
            return self._providers.insert(provider)

    async def get_provider(self, provider_id: str) -> Provider:
        return self._providers.get(provider_id)

    async def update_provider(self, provider: Provider) -> Provider:
        async with self._providers.lock:
            return self._providers.replace(provider)

    async def delete_provider(self, provider_id: str) -> None:
        async with self._providers.lock:
            if self._providers.rows.pop(provider_id, None) is None:
                raise NotFoundError(f"Provider with ID {provider_id} not found")

    async def list_providers(self) -> List[Provider]:
        return [copy.deepcopy(p) for p in self._providers.rows.values()]

    # Fulfillment operations
    async def create_fulfillment(self, fulfillment: Fulfillment) -> Fulfillment:
        async with self._fulfillments.lock:
            return self._fulfillments.insert(fulfillment)

    async def get_fulfillment(self, fulfillment_id: str) -> Fulfillment:
        return self._fulfillments.get(fulfillment_id)

    async def update_fulfillment(
        self,
        fulfillment: Fulfillment,
        expected_version: Optional[int] = None,
    ) -> Fulfillment:
        async with self._fulfillments.lock:
            return self._fulfillments.replace(fulfillment, expected_version)

    async def list_fulfillments_by_provider(self, provider_id: str) -> List[Fulfillment]:
        return [
            copy.deepcopy(f)
            for f in self._fulfillments.rows.values()
            if f.provider_id == provider_id
        ]

    # Order operations
    async def create_order(self, order: Order) -> Order:
        async with self._orders.lock:
            return self._orders.insert(order)

    async def get_order(self, order_id: str) -> Order:
        return self._orders.get(order_id)

    async def update_order(self, order: Order, expected_version: Optional[int] = None) -> Order:
        async with self._orders.lock:
            return self._orders.replace(order, expected_version)

    # Data file round trip
    @classmethod
    def from_records(cls, records: RecordFile) -> "MemoryStore":
        store = cls()
        for provider in records.providers:
            store._providers.insert(provider.to_domain())
        for fulfillment in records.fulfillments:
            store._fulfillments.insert(fulfillment.to_domain())
        for order in records.orders:
            store._orders.insert(order.to_domain())
        logger.debug(
            "Loaded %d providers, %d fulfillments, %d orders",
            len(records.providers),
            len(records.fulfillments),
            len(records.orders),
        )
        return store

    @classmethod
    def from_file(cls, path: Path) -> "MemoryStore":
        return cls.from_records(RecordFile.load(path))

    def to_records(self) -> RecordFile:
        return RecordFile(
            providers=[ProviderRecord.from_domain(p) for p in self._providers.rows.values()],
            fulfillments=[FulfillmentRecord.from_domain(f) for f in self._fulfillments.rows.values()],
            orders=[OrderRecord.from_domain(o) for o in self._orders.rows.values()],
        )

    def save(self, path: Path) -> None:
        self.to_records().save(path)
