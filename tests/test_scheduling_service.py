"""
Tests for the SchedulingService orchestration layer.
"""

import asyncio
from datetime import time

import pendulum
import pytest

from uhi_scheduling.adapters.memory_store import MemoryStore
from uhi_scheduling.domain.exceptions import (
    BusinessLogicError,
    ConcurrentUpdateError,
    DuplicateError,
    NotFoundError,
    ValidationError,
)
from uhi_scheduling.domain.models import Fulfillment, Provider, TimeSlot
from uhi_scheduling.domain.overlap import OverlapDetector
from uhi_scheduling.domain.working_hours import WorkingHours
from uhi_scheduling.services.scheduling import SchedulingService

MONDAY_TEN = pendulum.datetime(2024, 11, 25, 10, 0, tz="UTC")


def _build_service(**kwargs):
    store = MemoryStore()
    service = SchedulingService(store, store, **kwargs)
    asyncio.run(service.register_provider(Provider(id="provider-1", name="City Clinic")))
    return service, store


def _booking(fulfillment_id: str, start=MONDAY_TEN, seconds: int = 3600) -> Fulfillment:
    return Fulfillment.booking(
        fulfillment_id=fulfillment_id,
        provider_id="provider-1",
        start=start,
        duration_seconds=seconds,
    )


class TestCheckAvailability:
    """Working hours and existing bookings combined."""

    def test_free_slot(self):
        service, _ = _build_service()
        assert asyncio.run(service.check_availability("provider-1", "2024-11-25T10:00:00Z", 3600))

    def test_break_blocks(self):
        service, _ = _build_service()
        assert not asyncio.run(service.check_availability("provider-1", "2024-11-25T12:30:00Z", 1800))

    def test_existing_booking_blocks(self):
        service, _ = _build_service()
        asyncio.run(service.book_fulfillment(_booking("f1")))
        assert not asyncio.run(service.check_availability("provider-1", "2024-11-25T10:30:00Z", 1800))
        assert asyncio.run(service.check_availability("provider-1", "2024-11-25T11:00:00Z", 1800))

    def test_unknown_provider(self):
        service, _ = _build_service()
        with pytest.raises(NotFoundError):
            asyncio.run(service.check_availability("nobody", "2024-11-25T10:00:00Z", 3600))

    def test_provider_schedule_overrides_default(self):
        service, _ = _build_service()
        weekend_only = WorkingHours.weekly(time(8, 0), time(12, 0), weekdays=[5, 6])
        asyncio.run(
            service.register_provider(Provider(id="provider-2", name="Weekend Clinic", working_hours=weekend_only))
        )
        assert asyncio.run(service.check_availability("provider-2", "2024-11-23T08:00:00Z", 3600))
        assert not asyncio.run(service.check_availability("provider-2", "2024-11-25T10:00:00Z", 3600))

    def test_injected_default_schedule(self):
        service, _ = _build_service(default_working_hours=WorkingHours.weekly(time(6, 0), time(8, 0)))
        assert asyncio.run(service.check_availability("provider-1", "2024-11-25T06:00:00Z", 3600))
        assert not asyncio.run(service.check_availability("provider-1", "2024-11-25T10:00:00Z", 3600))


class TestBookFulfillment:
    """Booking persists only free slots."""

    def test_booking_starts_scheduled(self):
        service, store = _build_service()
        created = asyncio.run(service.book_fulfillment(_booking("f1")))

        assert created.state_descriptor == "SCHEDULED"
        stored = asyncio.run(store.get_fulfillment("f1"))
        assert stored.state_descriptor == "SCHEDULED"

    def test_outside_working_hours(self):
        service, store = _build_service()
        with pytest.raises(BusinessLogicError, match="outside working hours"):
            asyncio.run(service.book_fulfillment(_booking("f1", start=MONDAY_TEN.add(hours=7))))
        with pytest.raises(NotFoundError):
            asyncio.run(store.get_fulfillment("f1"))

    def test_conflicting_booking(self):
        service, _ = _build_service()
        asyncio.run(service.book_fulfillment(_booking("f1")))
        with pytest.raises(BusinessLogicError, match="overlaps fulfillment f1"):
            asyncio.run(service.book_fulfillment(_booking("f2", start=MONDAY_TEN.add(minutes=30))))

    def test_back_to_back_bookings(self):
        service, _ = _build_service()
        asyncio.run(service.book_fulfillment(_booking("f1")))
        asyncio.run(service.book_fulfillment(_booking("f2", start=MONDAY_TEN.add(hours=1))))
        booked = asyncio.run(service.list_fulfillments_by_provider("provider-1"))
        assert {f.id for f in booked} == {"f1", "f2"}

    def test_duplicate_id(self):
        service, _ = _build_service()
        asyncio.run(service.book_fulfillment(_booking("f1")))
        with pytest.raises(DuplicateError):
            asyncio.run(service.book_fulfillment(_booking("f1", start=MONDAY_TEN.add(hours=4))))

    def test_missing_ids(self):
        service, _ = _build_service()
        with pytest.raises(ValidationError):
            asyncio.run(service.book_fulfillment(_booking("")))

    def test_explicit_end_is_checked_in_full(self):
        service, store = _build_service()
        asyncio.run(service.book_fulfillment(_booking("f1", start=MONDAY_TEN.add(hours=4))))
        long_visit = Fulfillment(
            id="f2",
            provider_id="provider-1",
            start=TimeSlot(timestamp=MONDAY_TEN),
            end=TimeSlot(timestamp=MONDAY_TEN.add(hours=6)),
        )

        with pytest.raises(BusinessLogicError, match="outside working hours"):
            asyncio.run(service.book_fulfillment(long_visit))
        with pytest.raises(NotFoundError):
            asyncio.run(store.get_fulfillment("f2"))

    def test_explicit_end_overlapping_booking(self):
        service, _ = _build_service()
        asyncio.run(service.book_fulfillment(_booking("f1", start=MONDAY_TEN.add(hours=1))))
        visit = Fulfillment(
            id="f2",
            provider_id="provider-1",
            start=TimeSlot(timestamp=MONDAY_TEN),
            end=TimeSlot(timestamp=MONDAY_TEN.add(hours=2)),
        )
        with pytest.raises(BusinessLogicError, match="overlaps fulfillment f1"):
            asyncio.run(service.book_fulfillment(visit))

    def test_explicit_end_within_hours(self):
        service, store = _build_service()
        visit = Fulfillment(
            id="f2",
            provider_id="provider-1",
            start=TimeSlot(timestamp=MONDAY_TEN),
            end=TimeSlot(timestamp=MONDAY_TEN.add(minutes=45)),
        )
        asyncio.run(service.book_fulfillment(visit))
        assert asyncio.run(store.get_fulfillment("f2")).duration_seconds() == 2700

    def test_ignored_states_release_time(self):
        service, _ = _build_service(overlap_detector=OverlapDetector(ignored_states=["CANCELLED"]))
        asyncio.run(service.book_fulfillment(_booking("f1")))
        asyncio.run(service.update_state("f1", "CANCELLED"))
        rebooked = asyncio.run(service.book_fulfillment(_booking("f2")))
        assert rebooked.id == "f2"


class TestUpdateState:
    """State transitions through the service."""

    def test_transition_is_persisted(self):
        service, store = _build_service()
        asyncio.run(service.book_fulfillment(_booking("f1")))

        updated = asyncio.run(service.update_state("f1", "IN_PROGRESS", {"reason": "doctor_ready"}))

        stored = asyncio.run(store.get_fulfillment("f1"))
        assert updated.state_descriptor == stored.state_descriptor == "IN_PROGRESS"
        assert stored.tags["state_change_reason"] == "doctor_ready"
        assert stored.version == 1

    def test_rejected_transition_leaves_record(self):
        service, store = _build_service()
        asyncio.run(service.book_fulfillment(_booking("f1")))
        asyncio.run(service.update_state("f1", "CANCELLED"))

        with pytest.raises(BusinessLogicError):
            asyncio.run(service.update_state("f1", "IN_PROGRESS"))
        assert asyncio.run(store.get_fulfillment("f1")).state_descriptor == "CANCELLED"

    def test_unknown_fulfillment(self):
        service, _ = _build_service()
        with pytest.raises(NotFoundError):
            asyncio.run(service.update_state("missing", "WAITING"))

    def test_stale_write_is_rejected(self):
        service, store = _build_service()
        asyncio.run(service.book_fulfillment(_booking("f1")))

        class RacingStore:
            """Lets another writer win between read and write."""

            async def get_fulfillment(self, fulfillment_id):
                snapshot = await store.get_fulfillment(fulfillment_id)
                await service.update_state(fulfillment_id, "WAITING")
                return snapshot

            async def update_fulfillment(self, fulfillment, expected_version=None):
                return await store.update_fulfillment(fulfillment, expected_version)

        racing = SchedulingService(store, RacingStore())
        with pytest.raises(ConcurrentUpdateError):
            asyncio.run(racing.update_state("f1", "IN_PROGRESS"))
        assert asyncio.run(store.get_fulfillment("f1")).state_descriptor == "WAITING"


class TestFindOpenSlots:
    """Open slots through the service."""

    def test_slots_skip_bookings(self):
        service, _ = _build_service()
        asyncio.run(service.book_fulfillment(_booking("f1")))
        slots = asyncio.run(service.find_open_slots("provider-1", "2024-11-25", 1800))
        assert [s.start.format("HH:mm") for s in slots] == ["09:00", "11:00", "13:00"]

    def test_default_duration(self):
        service, _ = _build_service(default_duration_seconds=4 * 3600)
        slots = asyncio.run(service.find_open_slots("provider-1", "2024-11-25"))
        assert [s.start.format("HH:mm") for s in slots] == ["13:00"]

    def test_zero_duration_is_rejected(self):
        service, _ = _build_service()
        with pytest.raises(ValidationError):
            asyncio.run(service.find_open_slots("provider-1", "2024-11-25", 0))


class TestProviders:
    """Provider maintenance through the service."""

    def test_update_working_hours(self):
        service, _ = _build_service()
        provider = asyncio.run(service.get_provider("provider-1"))
        provider.working_hours = WorkingHours.weekly(time(6, 0), time(8, 0))

        saved = asyncio.run(service.update_provider(provider))

        assert saved.updated_at >= provider.updated_at
        assert asyncio.run(service.check_availability("provider-1", "2024-11-25T06:00:00Z", 3600))
        assert not asyncio.run(service.check_availability("provider-1", "2024-11-25T10:00:00Z", 3600))

    def test_update_unknown_provider(self):
        service, _ = _build_service()
        with pytest.raises(NotFoundError):
            asyncio.run(service.update_provider(Provider(id="nobody", name="Nobody")))

    def test_delete_provider(self):
        service, _ = _build_service()
        asyncio.run(service.delete_provider("provider-1"))
        assert asyncio.run(service.list_providers()) == []
        with pytest.raises(NotFoundError):
            asyncio.run(service.check_availability("provider-1", "2024-11-25T10:00:00Z", 3600))
