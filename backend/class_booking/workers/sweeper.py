from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..domain.repositories import Repositories
from ..infrastructure.repositories import build_repositories
from ..infrastructure.transactions import write_transaction
from ..models import RegistrationStatus
from ..usecases import bookings as booking_usecase
from ..utils.audit_log import emit_audit_log
from ..utils.time import to_utc_naive, utc_now

logger = logging.getLogger(__name__)

SWEEP_JOB_ID = "expire-pending-registrations"


@dataclass
class SweepResult:
    expired: List[int] = field(default_factory=list)
    skipped: List[int] = field(default_factory=list)
    failed: List[int] = field(default_factory=list)


class ExpirySweeper:
    """
    Cancels PENDING holds whose ``expires_at`` has passed and gives their seats
    back to the session.

    Every registration is expired in its own transaction; one bad row is logged
    and retried on the next tick without affecting the others.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        interval_seconds: int = 60,
        repositories: Callable[[AsyncSession], Repositories] = build_repositories,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.session_factory = session_factory
        self.interval_seconds = interval_seconds
        self.repositories = repositories
        self.clock = clock
        self._scheduler: Optional[AsyncIOScheduler] = None

    async def run_once(self, now: Optional[datetime] = None) -> SweepResult:
        now = now or self.clock()
        result = SweepResult()
        try:
            async with self.session_factory() as session:
                candidates = list(await self.repositories(session).registrations.list_expired_ids(to_utc_naive(now)))
        except Exception:
            logger.exception("Failed to list expired registrations")
            return result

        for registration_id in candidates:
            try:
                expired = await self._expire_one(registration_id, now)
            except Exception:
                logger.exception("Failed to expire registration", extra={"registration_id": registration_id})
                result.failed.append(registration_id)
                continue
            if expired:
                result.expired.append(registration_id)
            else:
                result.skipped.append(registration_id)

        if result.expired or result.failed:
            logger.info(
                "Expiry sweep finished",
                extra={"expired": len(result.expired), "failed": len(result.failed), "skipped": len(result.skipped)},
            )
        return result

    async def _expire_one(self, registration_id: int, now: datetime) -> bool:
        async with self.session_factory() as session:
            async with write_transaction(session):
                outcome = await booking_usecase.expire_booking(
                    self.repositories(session),
                    registration_id=registration_id,
                    now=now,
                )
        if outcome is None:
            return False
        registration, class_session = outcome
        emit_audit_log(
            action="registration.expired",
            initiator="system",
            session_id=class_session.id,
            registration_id=registration.id,
            participants=registration.total_participants,
            session_total=class_session.total_participants,
            status_from=RegistrationStatus.PENDING,
            status_to=registration.status,
        )
        return True

    def start(self) -> AsyncIOScheduler:
        if self._scheduler is None:
            scheduler = AsyncIOScheduler()
            scheduler.add_job(
                self.run_once,
                "interval",
                seconds=self.interval_seconds,
                id=SWEEP_JOB_ID,
                max_instances=1,
                coalesce=True,
            )
            scheduler.start()
            self._scheduler = scheduler
        return self._scheduler

    def shutdown(self) -> None:
        if self._scheduler is not None:
            self._scheduler.shutdown(wait=False)
            self._scheduler = None
