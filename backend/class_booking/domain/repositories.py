from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Protocol, Sequence

from ..models import (
    ClassCapacity,
    ClassLanguage,
    ClassPrice,
    ClassSchedule,
    ClassSession,
    ClassType,
    Currency,
    ParticipantCategory,
    Registration,
    RegistrationWindow,
)


class ScheduleRepository(Protocol):
    async def find_start_time(self, time_slot: str, class_type: ClassType) -> ClassSchedule | None: ...

    async def list_by_type(self, class_type: ClassType | None) -> Sequence[ClassSchedule]: ...


class LanguageRepository(Protocol):
    async def find_by_name(self, name: str) -> ClassLanguage | None: ...

    async def list_all(self) -> Sequence[ClassLanguage]: ...


class PriceRepository(Protocol):
    async def find_price(
        self,
        class_type: ClassType,
        currency: Currency,
        category: ParticipantCategory,
    ) -> Decimal | None: ...

    async def list_prices(self, class_type: ClassType, currency: Currency) -> Sequence[ClassPrice]: ...


class CapacityRuleRepository(Protocol):
    async def get_rule(self, class_type: ClassType) -> ClassCapacity | None: ...

    async def list_rules(self) -> Sequence[ClassCapacity]: ...


class RegistrationWindowRepository(Protocol):
    async def get_active(self) -> RegistrationWindow | None: ...


class SessionRepository(Protocol):
    async def find(self, session_date: date, time_slot: str, class_type: ClassType) -> ClassSession | None: ...

    async def get(self, session_id: int) -> ClassSession | None: ...

    async def get_or_create_for_update(
        self,
        *,
        session_date: date,
        time_slot: str,
        class_type: ClassType,
        language: str,
    ) -> ClassSession: ...

    async def get_for_update(self, session_id: int) -> ClassSession | None: ...

    async def save(self, session: ClassSession) -> ClassSession: ...

    async def list_upcoming(self, from_date: date, class_type: ClassType | None) -> Sequence[ClassSession]: ...

    async def list_by_date(self, session_date: date) -> Sequence[ClassSession]: ...


class RegistrationRepository(Protocol):
    async def get(self, registration_id: int) -> Registration | None: ...

    async def get_for_update(self, registration_id: int) -> Registration | None: ...

    async def create(self, registration: Registration) -> Registration: ...

    async def save(self, registration: Registration) -> Registration: ...

    async def list_active_for_session(self, session_id: int) -> Sequence[Registration]: ...

    async def list_by_customer_email(self, customer_email: str) -> list[tuple[Registration, ClassSession]]: ...

    async def list_expired_ids(self, now: datetime) -> Sequence[int]: ...


@dataclass(frozen=True)
class Repositories:
    schedules: ScheduleRepository
    languages: LanguageRepository
    prices: PriceRepository
    capacities: CapacityRuleRepository
    windows: RegistrationWindowRepository
    sessions: SessionRepository
    registrations: RegistrationRepository
