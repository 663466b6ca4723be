"""
Application service for provider availability and fulfillment bookings.

The service coordinates record lookups via the store protocols and
delegates the actual decisions to the domain-level ``AvailabilityChecker``,
``OverlapDetector`` and ``FulfillmentStateMachine``. Keeping the store behind
a protocol lets tests plug in the in-memory adapter or a simple stub.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import List, Mapping, Optional

import pendulum

from ..domain.availability import AvailabilityChecker
from ..domain.exceptions import BusinessLogicError, ValidationError
from ..domain.models import DEFAULT_FULFILLMENT_SECONDS, Fulfillment, FulfillmentState, Provider, TimeSpan
from ..domain.overlap import OverlapDetector
from ..domain.slot_finder import OpenSlotFinder
from ..domain.state_machine import INITIAL_STATE, FulfillmentStateMachine
from ..domain.working_hours import WorkingHours
from .storage import FulfillmentStore, ProviderStore

logger = logging.getLogger(__name__)


class SchedulingService:
    """
    Orchestrates availability checks, bookings and state transitions.

    ``default_working_hours`` is the schedule used for providers that have
    none stored; it is passed in by the caller rather than read globally.
    """

    def __init__(
        self,
        providers: ProviderStore,
        fulfillments: FulfillmentStore,
        *,
        default_working_hours: Optional[WorkingHours] = None,
        overlap_detector: Optional[OverlapDetector] = None,
        state_machine: Optional[FulfillmentStateMachine] = None,
        default_duration_seconds: int = DEFAULT_FULFILLMENT_SECONDS,
    ) -> None:
        self._providers = providers
        self._fulfillments = fulfillments
        self._default_working_hours = default_working_hours or WorkingHours.default()
        self._overlap_detector = overlap_detector or OverlapDetector(default_duration_seconds)
        self._state_machine = state_machine or FulfillmentStateMachine()
        self._default_duration_seconds = default_duration_seconds

    async def register_provider(self, provider: Provider) -> Provider:
        return await self._providers.create_provider(provider)

    async def get_provider(self, provider_id: str) -> Provider:
        return await self._providers.get_provider(provider_id)

    async def list_providers(self) -> List[Provider]:
        return await self._providers.list_providers()

    async def update_provider(self, provider: Provider) -> Provider:
        """Replace a stored provider, e.g. to change its working hours."""
        return await self._providers.update_provider(
            replace(provider, updated_at=pendulum.now("UTC"))
        )

    async def delete_provider(self, provider_id: str) -> None:
        await self._providers.delete_provider(provider_id)
        logger.info("Deleted provider %s", provider_id)

    def working_hours_for(self, provider: Provider) -> WorkingHours:
        return provider.working_hours or self._default_working_hours

    async def check_availability(
        self,
        provider_id: str,
        requested_start: object,
        duration_seconds: int,
    ) -> bool:
        """
        Check working hours first, then existing bookings.

        Raises:
            NotFoundError: If the provider does not exist
            ValidationError: If the start or duration is malformed
        """
        return await self._find_blocker(provider_id, requested_start, duration_seconds) is None

    async def book_fulfillment(self, fulfillment: Fulfillment) -> Fulfillment:
        """
        Persist a fulfillment once its slot has been confirmed free.

        The fulfillment starts in ``SCHEDULED`` unless it already carries a state.

        Raises:
            BusinessLogicError: If the slot is outside working hours or taken
            DuplicateError: If the fulfillment id already exists
        """
        if not fulfillment.id or not fulfillment.provider_id:
            raise ValidationError("Fulfillment id and provider id are required")

        span = fulfillment.effective_span(self._default_duration_seconds)
        reason = await self._find_blocker(
            fulfillment.provider_id, span.start, span.duration_seconds()
        )
        if reason is not None:
            logger.info("Rejected booking %s: %s", fulfillment.id, reason)
            raise BusinessLogicError(
                f"Requested time slot is not available for provider {fulfillment.provider_id}: {reason}"
            )

        if fulfillment.state is None:
            fulfillment = replace(
                fulfillment,
                state=FulfillmentState(descriptor=INITIAL_STATE.value, updated_at=pendulum.now("UTC")),
            )

        created = await self._fulfillments.create_fulfillment(fulfillment)
        logger.info(
            "Booked fulfillment %s with provider %s at %s",
            created.id,
            created.provider_id,
            created.start.timestamp,
        )
        return created

    async def get_fulfillment(self, fulfillment_id: str) -> Fulfillment:
        return await self._fulfillments.get_fulfillment(fulfillment_id)

    async def list_fulfillments_by_provider(self, provider_id: str) -> List[Fulfillment]:
        return await self._fulfillments.list_fulfillments_by_provider(provider_id)

    async def update_state(
        self,
        fulfillment_id: str,
        new_state: str,
        context_tags: Optional[Mapping[str, str]] = None,
    ) -> Fulfillment:
        """
        Load, transition and save a fulfillment.

        The save is guarded by the version read here, so a concurrent writer
        makes this call fail with ``ConcurrentUpdateError`` instead of being
        silently overwritten.
        """
        current = await self._fulfillments.get_fulfillment(fulfillment_id)
        updated = self._state_machine.update_state(current, new_state, context_tags)
        return await self._fulfillments.update_fulfillment(updated, expected_version=current.version)

    async def find_open_slots(
        self,
        provider_id: str,
        day: object,
        duration_seconds: Optional[int] = None,
    ) -> List[TimeSpan]:
        provider = await self._providers.get_provider(provider_id)
        booked = await self._fulfillments.list_fulfillments_by_provider(provider_id)
        finder = OpenSlotFinder(self.working_hours_for(provider), self._overlap_detector)
        return finder.find_open_slots(
            day,
            booked,
            self._default_duration_seconds if duration_seconds is None else duration_seconds,
        )

    async def _find_blocker(
        self,
        provider_id: str,
        requested_start: object,
        duration_seconds: int,
    ) -> Optional[str]:
        """Describe why the slot cannot be booked, or None if it can."""
        provider = await self._providers.get_provider(provider_id)
        checker = AvailabilityChecker(self.working_hours_for(provider))

        if not checker.is_available(requested_start, duration_seconds):
            return "outside working hours"

        span = checker.requested_span(requested_start, duration_seconds)
        booked = await self._fulfillments.list_fulfillments_by_provider(provider_id)
        conflict = self._overlap_detector.find_conflict(span.start, span.end, booked)
        if conflict is not None:
            return f"overlaps fulfillment {conflict.id}"

        return None
