import asyncio
from contextlib import asynccontextmanager
from datetime import date, datetime
from decimal import Decimal
from typing import AsyncIterator, Dict, List, Optional, Sequence, Tuple

import pytest
from class_booking.domain.repositories import Repositories
from class_booking.models import (
    ClassCapacity,
    ClassLanguage,
    ClassPrice,
    ClassSchedule,
    ClassSession,
    ClassType,
    Currency,
    ParticipantCategory,
    Registration,
    RegistrationStatus,
    RegistrationWindow,
)

SessionKey = Tuple[date, str, ClassType]


class FakeStore:
    """
    In-memory stand-in for the database. Row locks are per-key asyncio locks
    held until the owning transaction ends; a failed transaction undoes its writes.
    """

    def __init__(self) -> None:
        self.schedules: List[ClassSchedule] = [
            ClassSchedule(id=1, class_type=ClassType.NORMAL, start_time="10:00"),
            ClassSchedule(id=2, class_type=ClassType.NORMAL, start_time="15:00"),
            ClassSchedule(id=3, class_type=ClassType.PRIVATE, start_time="10:00"),
        ]
        self.languages: List[ClassLanguage] = [
            ClassLanguage(id=1, language_name="English"),
            ClassLanguage(id=2, language_name="Spanish"),
        ]
        self.prices: Dict[Tuple[ClassType, Currency, ParticipantCategory], Decimal] = {
            (ClassType.NORMAL, Currency.USD, ParticipantCategory.ADULT): Decimal("10"),
            (ClassType.NORMAL, Currency.USD, ParticipantCategory.CHILD): Decimal("5"),
        }
        self.capacities: Dict[ClassType, ClassCapacity] = {
            ClassType.NORMAL: ClassCapacity(id=1, class_type=ClassType.NORMAL, min_capacity=1, max_capacity=8),
            ClassType.PRIVATE: ClassCapacity(id=2, class_type=ClassType.PRIVATE, min_capacity=2, max_capacity=4),
        }
        self.window: Optional[RegistrationWindow] = RegistrationWindow(
            id=1, close_before_start_interval=30, final_registration_close_interval=0
        )
        self.sessions: Dict[int, ClassSession] = {}
        self.registrations: Dict[int, Registration] = {}
        self._locks: Dict[object, asyncio.Lock] = {}
        self._next_id = 1

    def next_id(self) -> int:
        value = self._next_id
        self._next_id += 1
        return value

    def lock_for(self, key: object) -> asyncio.Lock:
        return self._locks.setdefault(key, asyncio.Lock())

    def find_session(self, key: SessionKey) -> Optional[ClassSession]:
        for session in self.sessions.values():
            if (session.session_date, session.time_slot, session.class_type) == key:
                return session
        return None

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[Repositories]:
        tx = FakeTransaction(self)
        try:
            yield tx.repositories()
        except BaseException:
            tx.rollback()
            raise
        finally:
            tx.release()


class FakeTransaction:
    def __init__(self, store: FakeStore) -> None:
        self.store = store
        self.held: List[asyncio.Lock] = []
        self.held_keys: set = set()
        self.created_sessions: List[int] = []
        self.created_registrations: List[int] = []
        self.session_backup: Dict[int, Tuple[int, str, bool]] = {}
        self.registration_backup: Dict[int, Dict[str, object]] = {}

    async def lock(self, key: object) -> None:
        if key in self.held_keys:
            return
        lock = self.store.lock_for(key)
        await lock.acquire()
        self.held.append(lock)
        self.held_keys.add(key)
        await asyncio.sleep(0)

    def remember_session(self, session: ClassSession) -> None:
        self.session_backup.setdefault(session.id, (session.total_participants, session.language, session.is_closed))

    def remember_registration(self, registration: Registration) -> None:
        self.registration_backup.setdefault(
            registration.id,
            {
                "status": registration.status,
                "expires_at": registration.expires_at,
                "payment_reference": registration.payment_reference,
                "payment_method": registration.payment_method,
                "confirmed_at": registration.confirmed_at,
                "cancelled_at": registration.cancelled_at,
                "cancellation_reason": registration.cancellation_reason,
            },
        )

    def rollback(self) -> None:
        for registration_id in self.created_registrations:
            self.store.registrations.pop(registration_id, None)
        for session_id in self.created_sessions:
            self.store.sessions.pop(session_id, None)
        for session_id, (total, language, is_closed) in self.session_backup.items():
            session = self.store.sessions.get(session_id)
            if session is not None:
                session.total_participants = total
                session.language = language
                session.is_closed = is_closed
        for registration_id, fields in self.registration_backup.items():
            registration = self.store.registrations.get(registration_id)
            if registration is not None:
                for name, value in fields.items():
                    setattr(registration, name, value)

    def release(self) -> None:
        for lock in reversed(self.held):
            lock.release()
        self.held.clear()
        self.held_keys.clear()

    def repositories(self) -> Repositories:
        return Repositories(
            schedules=FakeScheduleRepo(self.store),
            languages=FakeLanguageRepo(self.store),
            prices=FakePriceRepo(self.store),
            capacities=FakeCapacityRepo(self.store),
            windows=FakeWindowRepo(self.store),
            sessions=FakeSessionRepo(self),
            registrations=FakeRegistrationRepo(self),
        )


class FakeScheduleRepo:
    def __init__(self, store: FakeStore) -> None:
        self.store = store

    async def find_start_time(self, time_slot: str, class_type: ClassType) -> Optional[ClassSchedule]:
        for schedule in self.store.schedules:
            if schedule.start_time == time_slot and schedule.class_type == class_type:
                return schedule
        return None

    async def list_by_type(self, class_type: Optional[ClassType]) -> Sequence[ClassSchedule]:
        return [s for s in self.store.schedules if class_type is None or s.class_type == class_type]


class FakeLanguageRepo:
    def __init__(self, store: FakeStore) -> None:
        self.store = store

    async def find_by_name(self, name: str) -> Optional[ClassLanguage]:
        return next((lang for lang in self.store.languages if lang.language_name == name), None)

    async def list_all(self) -> Sequence[ClassLanguage]:
        return list(self.store.languages)


class FakePriceRepo:
    def __init__(self, store: FakeStore) -> None:
        self.store = store

    async def find_price(
        self,
        class_type: ClassType,
        currency: Currency,
        category: ParticipantCategory,
    ) -> Optional[Decimal]:
        return self.store.prices.get((class_type, currency, category))

    async def list_prices(self, class_type: ClassType, currency: Currency) -> Sequence[ClassPrice]:
        return [
            ClassPrice(class_type=ct, currency=cur, category=cat, price=price)
            for (ct, cur, cat), price in self.store.prices.items()
            if ct == class_type and cur == currency
        ]


class FakeCapacityRepo:
    def __init__(self, store: FakeStore) -> None:
        self.store = store

    async def get_rule(self, class_type: ClassType) -> Optional[ClassCapacity]:
        return self.store.capacities.get(class_type)

    async def list_rules(self) -> Sequence[ClassCapacity]:
        return list(self.store.capacities.values())


class FakeWindowRepo:
    def __init__(self, store: FakeStore) -> None:
        self.store = store

    async def get_active(self) -> Optional[RegistrationWindow]:
        return self.store.window


class FakeSessionRepo:
    def __init__(self, tx: FakeTransaction) -> None:
        self.tx = tx
        self.store = tx.store

    async def find(self, session_date: date, time_slot: str, class_type: ClassType) -> Optional[ClassSession]:
        return self.store.find_session((session_date, time_slot, class_type))

    async def get(self, session_id: int) -> Optional[ClassSession]:
        return self.store.sessions.get(session_id)

    async def get_or_create_for_update(
        self,
        *,
        session_date: date,
        time_slot: str,
        class_type: ClassType,
        language: str,
    ) -> ClassSession:
        key = (session_date, time_slot, class_type)
        await asyncio.sleep(0)
        await self.tx.lock(("session", key))
        session = self.store.find_session(key)
        if session is None:
            session = ClassSession(
                id=self.store.next_id(),
                session_date=session_date,
                time_slot=time_slot,
                class_type=class_type,
                language=language,
                total_participants=0,
                is_closed=False,
            )
            self.store.sessions[session.id] = session
            self.tx.created_sessions.append(session.id)
        self.tx.remember_session(session)
        return session

    async def get_for_update(self, session_id: int) -> Optional[ClassSession]:
        session = self.store.sessions.get(session_id)
        if session is None:
            return None
        await self.tx.lock(("session", (session.session_date, session.time_slot, session.class_type)))
        self.tx.remember_session(session)
        return session

    async def save(self, session: ClassSession) -> ClassSession:
        return session

    async def list_upcoming(self, from_date: date, class_type: Optional[ClassType]) -> Sequence[ClassSession]:
        rows = [
            s
            for s in self.store.sessions.values()
            if s.session_date >= from_date and (class_type is None or s.class_type == class_type)
        ]
        return sorted(rows, key=lambda s: (s.session_date, s.time_slot))

    async def list_by_date(self, session_date: date) -> Sequence[ClassSession]:
        rows = [s for s in self.store.sessions.values() if s.session_date == session_date]
        return sorted(rows, key=lambda s: (s.time_slot, s.class_type))


class FakeRegistrationRepo:
    def __init__(self, tx: FakeTransaction) -> None:
        self.tx = tx
        self.store = tx.store

    async def get(self, registration_id: int) -> Optional[Registration]:
        return self.store.registrations.get(registration_id)

    async def get_for_update(self, registration_id: int) -> Optional[Registration]:
        registration = self.store.registrations.get(registration_id)
        if registration is None:
            return None
        await self.tx.lock(("registration", registration_id))
        self.tx.remember_registration(registration)
        return registration

    async def create(self, registration: Registration) -> Registration:
        registration.id = self.store.next_id()
        self.store.registrations[registration.id] = registration
        self.tx.created_registrations.append(registration.id)
        return registration

    async def save(self, registration: Registration) -> Registration:
        return registration

    async def list_active_for_session(self, session_id: int) -> Sequence[Registration]:
        return [
            r
            for r in self.store.registrations.values()
            if r.session_id == session_id
            and r.status in (RegistrationStatus.PENDING, RegistrationStatus.CONFIRMED)
        ]

    async def list_by_customer_email(self, customer_email: str) -> List[Tuple[Registration, ClassSession]]:
        rows = [
            (r, self.store.sessions[r.session_id])
            for r in self.store.registrations.values()
            if r.customer_email == customer_email
        ]
        return sorted(rows, key=lambda row: (row[1].session_date, row[1].time_slot, row[0].id))

    async def list_expired_ids(self, now: datetime) -> Sequence[int]:
        return [
            r.id
            for r in self.store.registrations.values()
            if r.status == RegistrationStatus.PENDING and r.expires_at is not None and r.expires_at <= now
        ]


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()
