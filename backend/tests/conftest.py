from decimal import Decimal
from typing import AsyncIterator

import pytest_asyncio
from class_booking.database import build_session_factory, enable_sqlite_savepoints
from class_booking.models import (
    Base,
    ClassCapacity,
    ClassLanguage,
    ClassPrice,
    ClassSchedule,
    ClassType,
    Currency,
    ParticipantCategory,
    RegistrationWindow,
)
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool


@pytest_asyncio.fixture()
async def session_factory() -> AsyncIterator[async_sessionmaker[AsyncSession]]:
    # One shared connection so every session sees the same in-memory database.
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", poolclass=StaticPool)
    enable_sqlite_savepoints(engine)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = build_session_factory(engine)
    async with factory() as session:
        async with session.begin():
            session.add_all(
                [
                    ClassSchedule(class_type=ClassType.NORMAL, start_time="10:00"),
                    ClassSchedule(class_type=ClassType.NORMAL, start_time="15:00"),
                    ClassLanguage(language_name="English"),
                    ClassLanguage(language_name="Spanish"),
                    ClassPrice(
                        class_type=ClassType.NORMAL,
                        currency=Currency.USD,
                        category=ParticipantCategory.ADULT,
                        price=Decimal("10.00"),
                    ),
                    ClassPrice(
                        class_type=ClassType.NORMAL,
                        currency=Currency.USD,
                        category=ParticipantCategory.CHILD,
                        price=Decimal("5.00"),
                    ),
                    ClassCapacity(class_type=ClassType.NORMAL, min_capacity=1, max_capacity=8),
                    RegistrationWindow(close_before_start_interval=30, final_registration_close_interval=0),
                ]
            )
    try:
        yield factory
    finally:
        await engine.dispose()
