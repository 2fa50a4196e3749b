from dataclasses import dataclass
from datetime import date, datetime
from typing import List, Optional, Sequence

from ..domain.errors import ErrorCode, SessionNotFoundError
from ..domain.repositories import Repositories
from ..domain.services import (
    BookingPolicy,
    SessionCutoffs,
    SessionSnapshot,
    closed_reason,
    session_cutoffs,
)
from ..models import ClassCapacity, ClassSession, ClassType, Registration
from ..utils.time import business_today
from . import catalog


@dataclass(frozen=True)
class SessionOccupancy:
    session: Optional[ClassSession]
    total_participants: int
    registrations: List[Registration]


@dataclass(frozen=True)
class SessionStatus:
    session_date: date
    time_slot: str
    class_type: ClassType
    occupancy: SessionOccupancy
    capacity: ClassCapacity
    cutoffs: SessionCutoffs
    closed_reason: Optional[ErrorCode]

    @property
    def registration_open(self) -> bool:
        return self.closed_reason is None


async def get_session_occupancy(
    repos: Repositories,
    *,
    session_date: date,
    time_slot: str,
    class_type: ClassType,
    require_existing: bool = False,
    with_registrations: bool = True,
) -> SessionOccupancy:
    session = await repos.sessions.find(session_date, time_slot, class_type)
    if session is None:
        if require_existing:
            raise SessionNotFoundError("no class registered for that date and time")
        return SessionOccupancy(session=None, total_participants=0, registrations=[])
    registrations = list(await repos.registrations.list_active_for_session(session.id)) if with_registrations else []
    return SessionOccupancy(
        session=session,
        total_participants=session.total_participants,
        registrations=registrations,
    )


async def get_session_status(
    repos: Repositories,
    *,
    session_date: date,
    time_slot: str,
    class_type: ClassType,
    now: datetime,
    policy: BookingPolicy,
) -> SessionStatus:
    await catalog.find_start_time(repos.schedules, time_slot=time_slot, class_type=class_type)
    window = await catalog.get_registration_window(repos.windows)
    rule = await catalog.get_capacity_rule(repos.capacities, class_type=class_type)
    occupancy = await get_session_occupancy(
        repos,
        session_date=session_date,
        time_slot=time_slot,
        class_type=class_type,
        with_registrations=False,
    )
    cutoffs = session_cutoffs(
        session_date,
        time_slot,
        close_before_start_interval=window.close_before_start_interval,
        final_registration_close_interval=window.final_registration_close_interval,
        tz=policy.tz,
    )
    snapshot = SessionSnapshot(
        is_closed=occupancy.session is not None and occupancy.session.is_closed,
        occupancy=occupancy.total_participants,
        is_new=occupancy.total_participants == 0,
    )
    reason = closed_reason(snapshot, cutoffs, now=now, max_capacity=rule.max_capacity)
    if reason is None and session_date < business_today(now, policy.tz):
        reason = ErrorCode.PAST_SESSION_DATE
    return SessionStatus(
        session_date=session_date,
        time_slot=time_slot,
        class_type=class_type,
        occupancy=occupancy,
        capacity=rule,
        cutoffs=cutoffs,
        closed_reason=reason,
    )


async def close_session(repos: Repositories, *, session_id: int) -> ClassSession:
    """Stop a session from taking further registrations. Closing twice is a no-op."""
    session = await repos.sessions.get_for_update(session_id)
    if session is None:
        raise SessionNotFoundError("session not found")
    if not session.is_closed:
        session.is_closed = True
        session = await repos.sessions.save(session)
    return session


async def list_upcoming_sessions(
    repos: Repositories,
    *,
    class_type: Optional[ClassType],
    now: datetime,
    policy: BookingPolicy,
) -> Sequence[ClassSession]:
    return await repos.sessions.list_upcoming(business_today(now, policy.tz), class_type)


async def list_sessions_for_date(repos: Repositories, *, session_date: date) -> List[SessionOccupancy]:
    """Every session held on ``session_date`` with its pending and confirmed registrations."""
    result: List[SessionOccupancy] = []
    for session in await repos.sessions.list_by_date(session_date):
        registrations = list(await repos.registrations.list_active_for_session(session.id))
        result.append(
            SessionOccupancy(
                session=session,
                total_participants=session.total_participants,
                registrations=registrations,
            )
        )
    return result
