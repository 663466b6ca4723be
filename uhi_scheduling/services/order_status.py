"""
Keeps order state derived from the linked fulfillment's state.
"""

from __future__ import annotations

import logging

from ..domain.exceptions import BusinessLogicError, SchedulingError
from ..domain.models import Order, OrderStatus
from ..domain.order_status import fulfillment_state_for, order_state_for
from .scheduling import SchedulingService
from .storage import OrderStore

logger = logging.getLogger(__name__)


class OrderStatusProjector:
    """
    Projects fulfillment state onto orders and pushes order state back.

    Reading is write-through: a projection that differs from the stored
    order state is persisted. Convergence between order and fulfillment is
    eventual; ``apply_status`` does not roll back the order when the
    fulfillment side rejects the change (unless ``strict`` is set).
    """

    def __init__(
        self,
        orders: OrderStore,
        scheduling: SchedulingService,
        *,
        strict: bool = False,
    ) -> None:
        self._orders = orders
        self._scheduling = scheduling
        self._strict = strict

    async def project_status(self, order: Order) -> OrderStatus:
        """
        Derive the visible status of an order.

        A fulfillment that cannot be fetched is logged and ignored; the
        stored order state is returned in that case.
        """
        if not order.fulfillment_id:
            return order.status()

        try:
            fulfillment = await self._scheduling.get_fulfillment(order.fulfillment_id)
        except SchedulingError as exc:
            logger.warning(
                "Order %s: cannot fetch fulfillment %s, using stored state: %s",
                order.id,
                order.fulfillment_id,
                exc,
            )
            return order.status()

        projected = order_state_for(fulfillment.state_descriptor)
        if projected is None or projected == order.state:
            return order.status()

        logger.info("Order %s: %s -> %s (from fulfillment %s)", order.id, order.state, projected, fulfillment.id)
        saved = await self._orders.update_order(order.with_state(projected), expected_version=order.version)
        return saved.status()

    async def apply_status(self, order: Order, new_status: str) -> Order:
        """
        Set an order's state and propagate it to the linked fulfillment.

        Returns:
            The saved order

        Raises:
            BusinessLogicError: Only in strict mode, when the fulfillment
                rejects the mapped transition
        """
        saved = await self._orders.update_order(order.with_state(new_status), expected_version=order.version)

        target = fulfillment_state_for(new_status)
        if not saved.fulfillment_id or target is None:
            return saved

        fulfillment = await self._scheduling.get_fulfillment(saved.fulfillment_id)
        if fulfillment.state_descriptor == target:
            return saved

        try:
            await self._scheduling.update_state(
                fulfillment.id,
                target,
                {"source": "order_status", "order_id": saved.id},
            )
        except BusinessLogicError as exc:
            if self._strict:
                raise
            logger.warning(
                "Order %s set to %s but fulfillment %s stays %s: %s",
                saved.id,
                new_status,
                fulfillment.id,
                fulfillment.state_descriptor,
                exc,
            )

        return saved

    async def status(self, order_id: str) -> OrderStatus:
        order = await self._orders.get_order(order_id)
        return await self.project_status(order)

    async def set_status(self, order_id: str, new_status: str) -> Order:
        order = await self._orders.get_order(order_id)
        return await self.apply_status(order, new_status)

    async def link_fulfillment(self, order_id: str, fulfillment_id: str) -> Order:
        """
        Attach a fulfillment to an order. The link cannot be changed later.

        Raises:
            NotFoundError: If the order or fulfillment does not exist
            BusinessLogicError: If the order is linked to another fulfillment
        """
        order = await self._orders.get_order(order_id)
        await self._scheduling.get_fulfillment(fulfillment_id)
        if order.fulfillment_id == fulfillment_id:
            return order
        return await self._orders.update_order(
            order.link_fulfillment(fulfillment_id), expected_version=order.version
        )
