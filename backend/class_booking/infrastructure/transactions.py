import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from ..domain.errors import ConcurrentBookingConflictError

logger = logging.getLogger(__name__)

# InnoDB: 1205 lock wait timeout, 1213 deadlock victim.
MYSQL_LOCK_ERRORS = frozenset({1205, 1213})


def is_lock_conflict(exc: OperationalError) -> bool:
    args = getattr(exc.orig, "args", ())
    if args and args[0] in MYSQL_LOCK_ERRORS:
        return True
    return "database is locked" in str(exc.orig)


@asynccontextmanager
async def write_transaction(session: AsyncSession) -> AsyncIterator[AsyncSession]:
    """
    Run one booking write in a transaction.

    A deadlock or lock timeout rolls the transaction back and surfaces as
    ConcurrentBookingConflictError so callers report a conflict instead of a
    server error. Other database errors propagate unchanged.
    """
    try:
        async with session.begin():
            yield session
    except OperationalError as exc:
        if not is_lock_conflict(exc):
            raise
        logger.warning("Booking transaction lost a lock race: %s", exc.orig)
        raise ConcurrentBookingConflictError("another booking changed this session, please retry") from exc
