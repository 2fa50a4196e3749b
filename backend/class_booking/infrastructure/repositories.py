from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import List, Optional, Sequence, Tuple, cast

from sqlalchemy import insert, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..domain.repositories import (
    CapacityRuleRepository,
    LanguageRepository,
    PriceRepository,
    RegistrationRepository,
    RegistrationWindowRepository,
    Repositories,
    ScheduleRepository,
    SessionRepository,
)
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
    RegistrationStatus,
    RegistrationWindow,
)


logger = logging.getLogger(__name__)


def _utc_now_naive() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class SqlAlchemyScheduleRepository(ScheduleRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def find_start_time(self, time_slot: str, class_type: ClassType) -> Optional[ClassSchedule]:
        stmt = select(ClassSchedule).where(
            ClassSchedule.start_time == time_slot,
            ClassSchedule.class_type == class_type,
        )
        return await self.session.scalar(stmt)

    async def list_by_type(self, class_type: ClassType | None) -> List[ClassSchedule]:
        stmt = select(ClassSchedule).order_by(ClassSchedule.class_type, ClassSchedule.start_time)
        if class_type is not None:
            stmt = stmt.where(ClassSchedule.class_type == class_type)
        return list((await self.session.scalars(stmt)).all())


class SqlAlchemyLanguageRepository(LanguageRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def find_by_name(self, name: str) -> Optional[ClassLanguage]:
        return await self.session.scalar(select(ClassLanguage).where(ClassLanguage.language_name == name))

    async def list_all(self) -> List[ClassLanguage]:
        stmt = select(ClassLanguage).order_by(ClassLanguage.language_name)
        return list((await self.session.scalars(stmt)).all())


class SqlAlchemyPriceRepository(PriceRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def find_price(
        self,
        class_type: ClassType,
        currency: Currency,
        category: ParticipantCategory,
    ) -> Optional[Decimal]:
        stmt = select(ClassPrice.price).where(
            ClassPrice.class_type == class_type,
            ClassPrice.currency == currency,
            ClassPrice.category == category,
        )
        price = await self.session.scalar(stmt)
        return Decimal(price) if price is not None else None

    async def list_prices(self, class_type: ClassType, currency: Currency) -> List[ClassPrice]:
        stmt = (
            select(ClassPrice)
            .where(ClassPrice.class_type == class_type, ClassPrice.currency == currency)
            .order_by(ClassPrice.category)
        )
        return list((await self.session.scalars(stmt)).all())


class SqlAlchemyCapacityRuleRepository(CapacityRuleRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_rule(self, class_type: ClassType) -> Optional[ClassCapacity]:
        return await self.session.scalar(select(ClassCapacity).where(ClassCapacity.class_type == class_type))

    async def list_rules(self) -> List[ClassCapacity]:
        return list((await self.session.scalars(select(ClassCapacity).order_by(ClassCapacity.class_type))).all())


class SqlAlchemyRegistrationWindowRepository(RegistrationWindowRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_active(self) -> Optional[RegistrationWindow]:
        stmt = select(RegistrationWindow).order_by(RegistrationWindow.id).limit(1)
        return await self.session.scalar(stmt)


class SqlAlchemySessionRepository(SessionRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def find(self, session_date: date, time_slot: str, class_type: ClassType) -> Optional[ClassSession]:
        stmt = select(ClassSession).where(
            ClassSession.session_date == session_date,
            ClassSession.time_slot == time_slot,
            ClassSession.class_type == class_type,
        )
        return await self.session.scalar(stmt)

    async def get(self, session_id: int) -> Optional[ClassSession]:
        return await self.session.get(ClassSession, session_id)

    async def _lock_existing(self, session_date: date, time_slot: str, class_type: ClassType) -> Optional[ClassSession]:
        stmt = (
            select(ClassSession)
            .where(
                ClassSession.session_date == session_date,
                ClassSession.time_slot == time_slot,
                ClassSession.class_type == class_type,
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return await self.session.scalar(stmt)

    async def get_or_create_for_update(
        self,
        *,
        session_date: date,
        time_slot: str,
        class_type: ClassType,
        language: str,
    ) -> ClassSession:
        locked = await self._lock_existing(session_date, time_slot, class_type)
        if locked is not None:
            return locked

        now = _utc_now_naive()
        try:
            async with self.session.begin_nested():
                await self.session.execute(
                    insert(ClassSession).values(
                        session_date=session_date,
                        time_slot=time_slot,
                        class_type=class_type,
                        language=language,
                        total_participants=0,
                        is_closed=False,
                        created_at=now,
                        updated_at=now,
                    )
                )
        except IntegrityError:
            # A concurrent first booking created the row after our lookup.
            logger.info("Session %s %s %s created concurrently, locking it", session_date, time_slot, class_type)

        locked = await self._lock_existing(session_date, time_slot, class_type)
        if locked is None:
            raise RuntimeError("session row missing after insert")
        return locked

    async def get_for_update(self, session_id: int) -> Optional[ClassSession]:
        stmt = (
            select(ClassSession)
            .where(ClassSession.id == session_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return await self.session.scalar(stmt)

    async def save(self, session: ClassSession) -> ClassSession:
        session.updated_at = _utc_now_naive()
        self.session.add(session)
        await self.session.flush()
        return session

    async def list_upcoming(self, from_date: date, class_type: ClassType | None) -> List[ClassSession]:
        stmt = (
            select(ClassSession)
            .where(ClassSession.session_date >= from_date)
            .order_by(ClassSession.session_date, ClassSession.time_slot)
        )
        if class_type is not None:
            stmt = stmt.where(ClassSession.class_type == class_type)
        return list((await self.session.scalars(stmt)).all())

    async def list_by_date(self, session_date: date) -> List[ClassSession]:
        stmt = (
            select(ClassSession)
            .where(ClassSession.session_date == session_date)
            .order_by(ClassSession.time_slot, ClassSession.class_type)
        )
        return list((await self.session.scalars(stmt)).all())


class SqlAlchemyRegistrationRepository(RegistrationRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, registration_id: int) -> Optional[Registration]:
        return await self.session.get(Registration, registration_id)

    async def get_for_update(self, registration_id: int) -> Optional[Registration]:
        stmt = (
            select(Registration)
            .where(Registration.id == registration_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return await self.session.scalar(stmt)

    async def create(self, registration: Registration) -> Registration:
        now = _utc_now_naive()
        registration.created_at = now
        registration.updated_at = now
        self.session.add(registration)
        await self.session.flush()
        return registration

    async def save(self, registration: Registration) -> Registration:
        registration.updated_at = _utc_now_naive()
        self.session.add(registration)
        await self.session.flush()
        return registration

    async def list_active_for_session(self, session_id: int) -> List[Registration]:
        stmt = (
            select(Registration)
            .where(
                Registration.session_id == session_id,
                Registration.status.in_([RegistrationStatus.PENDING, RegistrationStatus.CONFIRMED]),
            )
            .order_by(Registration.id)
        )
        return list((await self.session.scalars(stmt)).all())

    async def list_by_customer_email(self, customer_email: str) -> List[Tuple[Registration, ClassSession]]:
        stmt = (
            select(Registration, ClassSession)
            .join(ClassSession, Registration.session_id == ClassSession.id)
            .where(Registration.customer_email == customer_email)
            .order_by(ClassSession.session_date, ClassSession.time_slot, Registration.id)
        )
        rows = await self.session.execute(stmt)
        return cast(List[Tuple[Registration, ClassSession]], list(rows.all()))

    async def list_expired_ids(self, now: datetime) -> Sequence[int]:
        stmt = (
            select(Registration.id)
            .where(
                Registration.status == RegistrationStatus.PENDING,
                Registration.expires_at.is_not(None),
                Registration.expires_at <= now,
            )
            .order_by(Registration.expires_at)
        )
        return list((await self.session.scalars(stmt)).all())


def build_repositories(session: AsyncSession) -> Repositories:
    return Repositories(
        schedules=SqlAlchemyScheduleRepository(session),
        languages=SqlAlchemyLanguageRepository(session),
        prices=SqlAlchemyPriceRepository(session),
        capacities=SqlAlchemyCapacityRuleRepository(session),
        windows=SqlAlchemyRegistrationWindowRepository(session),
        sessions=SqlAlchemySessionRepository(session),
        registrations=SqlAlchemyRegistrationRepository(session),
    )
