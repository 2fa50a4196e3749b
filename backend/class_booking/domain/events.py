"""
Class booking domain events.

Events describe something that already happened and are published only after
the transaction that produced them has committed.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import date
from decimal import Decimal
from typing import Any, ClassVar, Protocol


@dataclass(frozen=True)
class DomainEvent:
    name: ClassVar[str]

    def payload(self) -> dict[str, Any]:
        """Field values with dates and amounts rendered as strings."""
        data = asdict(self)
        for key, value in data.items():
            if isinstance(value, date):
                data[key] = value.isoformat()
            elif isinstance(value, Decimal):
                data[key] = str(value)
        return data


@dataclass(frozen=True)
class ClassConfirmed(DomainEvent):
    """
    A pending registration was paid for and confirmed.

    Consumed by the notification dispatcher (customer email, admin
    real-time feed).
    """

    name: ClassVar[str] = "class.confirmed"

    registration_id: int
    date: date
    time_slot: str
    language: str
    customer_name: str
    customer_email: str
    total_participants: int
    total_price: Decimal
    currency: str


class EventPublisher(Protocol):
    async def publish(self, event: DomainEvent) -> None: ...
