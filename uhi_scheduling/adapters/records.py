"""
JSON record format for providers, fulfillments and orders.

Pydantic models validate the file contents and convert to and from the
domain dataclasses.
"""

from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

import pendulum
from pendulum import DateTime
from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from ..config import ScheduleConfig
from ..domain.exceptions import ValidationError
from ..domain.models import Fulfillment, FulfillmentState, Order, Provider, TimeSlot


def _instant(value: datetime) -> DateTime:
    return pendulum.instance(value, tz="UTC")


def _now() -> datetime:
    return pendulum.now("UTC")


class TimeSlotRecord(BaseModel):
    timestamp: datetime
    duration: Optional[int] = None
    label: Optional[str] = None

    def to_domain(self) -> TimeSlot:
        return TimeSlot(timestamp=_instant(self.timestamp), duration=self.duration, label=self.label)

    @classmethod
    def from_domain(cls, slot: TimeSlot) -> "TimeSlotRecord":
        return cls(timestamp=slot.timestamp, duration=slot.duration, label=slot.label)


class StateRecord(BaseModel):
    descriptor: str
    updated_at: datetime = Field(default_factory=_now)


class ProviderRecord(BaseModel):
    id: str
    name: str
    categories: List[str] = Field(default_factory=list)
    working_hours: Optional[ScheduleConfig] = None
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)

    def to_domain(self) -> Provider:
        return Provider(
            id=self.id,
            name=self.name,
            categories=list(self.categories),
            working_hours=self.working_hours.to_working_hours() if self.working_hours else None,
            created_at=_instant(self.created_at),
            updated_at=_instant(self.updated_at),
        )

    @classmethod
    def from_domain(cls, provider: Provider) -> "ProviderRecord":
        return cls(
            id=provider.id,
            name=provider.name,
            categories=list(provider.categories),
            working_hours=(
                ScheduleConfig.from_working_hours(provider.working_hours)
                if provider.working_hours else None
            ),
            created_at=provider.created_at,
            updated_at=provider.updated_at,
        )


class FulfillmentRecord(BaseModel):
    """
    A missing ``end`` slot is stored as the start instant, which makes the
    effective duration fall back to the start duration or the default.
    """
    id: str
    provider_id: str
    start: TimeSlotRecord
    end: Optional[TimeSlotRecord] = None
    state: Optional[StateRecord] = None
    tags: Dict[str, str] = Field(default_factory=dict)
    fulfillment_type: str = "teleconsultation"
    agent: Optional[str] = None
    customer: Dict[str, str] = Field(default_factory=dict)
    version: int = 0

    def to_domain(self) -> Fulfillment:
        start = self.start.to_domain()
        end = self.end.to_domain() if self.end else TimeSlot(timestamp=start.timestamp, label="end")
        return Fulfillment(
            id=self.id,
            provider_id=self.provider_id,
            start=start,
            end=end,
            state=(
                FulfillmentState(descriptor=self.state.descriptor, updated_at=_instant(self.state.updated_at))
                if self.state else None
            ),
            tags=dict(self.tags),
            fulfillment_type=self.fulfillment_type,
            agent=self.agent,
            customer=dict(self.customer),
            version=self.version,
        )

    @classmethod
    def from_domain(cls, fulfillment: Fulfillment) -> "FulfillmentRecord":
        return cls(
            id=fulfillment.id,
            provider_id=fulfillment.provider_id,
            start=TimeSlotRecord.from_domain(fulfillment.start),
            end=TimeSlotRecord.from_domain(fulfillment.end),
            state=(
                StateRecord(descriptor=fulfillment.state.descriptor, updated_at=fulfillment.state.updated_at)
                if fulfillment.state else None
            ),
            tags=dict(fulfillment.tags),
            fulfillment_type=fulfillment.fulfillment_type,
            agent=fulfillment.agent,
            customer=dict(fulfillment.customer),
            version=fulfillment.version,
        )


class OrderRecord(BaseModel):
    id: str
    provider_id: str
    state: str = "INITIALIZED"
    fulfillment_id: Optional[str] = None
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)
    version: int = 0

    def to_domain(self) -> Order:
        return Order(
            id=self.id,
            provider_id=self.provider_id,
            state=self.state,
            fulfillment_id=self.fulfillment_id,
            created_at=_instant(self.created_at),
            updated_at=_instant(self.updated_at),
            version=self.version,
        )

    @classmethod
    def from_domain(cls, order: Order) -> "OrderRecord":
        return cls(
            id=order.id,
            provider_id=order.provider_id,
            state=order.state,
            fulfillment_id=order.fulfillment_id,
            created_at=order.created_at,
            updated_at=order.updated_at,
            version=order.version,
        )


class RecordFile(BaseModel):
    """Top-level layout of a data file."""
    providers: List[ProviderRecord] = Field(default_factory=list)
    fulfillments: List[FulfillmentRecord] = Field(default_factory=list)
    orders: List[OrderRecord] = Field(default_factory=list)

    @classmethod
    def load(cls, path: Path) -> "RecordFile":
        """
        Read a data file; a missing file yields an empty record set.

        Raises:
            ValidationError: If the file is not valid JSON or has bad records
        """
        if not path.exists():
            return cls()
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
            return cls.model_validate(data)
        except json.JSONDecodeError as exc:
            raise ValidationError(f"Invalid JSON in {path}: {exc}") from exc
        except PydanticValidationError as exc:
            raise ValidationError(f"Invalid records in {path}:\n{exc}") from exc

    def save(self, path: Path) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            f.write(self.model_dump_json(indent=2))
            f.write("\n")
