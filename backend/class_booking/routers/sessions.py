import logging
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..deps import get_current_admin_id, get_policy, get_session
from ..domain.errors import DomainError
from ..domain.services import BookingPolicy
from ..infrastructure.repositories import build_repositories
from ..infrastructure.transactions import write_transaction
from ..models import ClassType
from ..schemas import TIME_SLOT_PATTERN, SessionDetailRead, SessionRead, SessionStatusRead
from ..usecases import sessions as session_usecase
from ..utils.audit_log import emit_audit_log
from ..utils.time import utc_now
from .errors import to_http_exception

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sessions", tags=["sessions"])
admin_router = APIRouter(
    prefix="/admin/sessions",
    tags=["admin"],
    dependencies=[Depends(get_current_admin_id)],
)


@router.get("", response_model=SessionStatusRead)
async def get_session_status(
    session_date: date = Query(..., alias="date"),
    time_slot: str = Query(..., pattern=TIME_SLOT_PATTERN),
    class_type: ClassType = Query(default=ClassType.NORMAL),
    session: AsyncSession = Depends(get_session),
    policy: BookingPolicy = Depends(get_policy),
) -> SessionStatusRead:
    repos = build_repositories(session)
    try:
        result = await session_usecase.get_session_status(
            repos,
            session_date=session_date,
            time_slot=time_slot,
            class_type=class_type,
            now=utc_now(),
            policy=policy,
        )
    except DomainError as exc:
        raise to_http_exception(exc) from exc
    return SessionStatusRead.from_status(result)


@router.get("/upcoming", response_model=List[SessionRead])
async def list_upcoming_sessions(
    class_type: Optional[ClassType] = Query(default=None),
    session: AsyncSession = Depends(get_session),
    policy: BookingPolicy = Depends(get_policy),
) -> list[SessionRead]:
    repos = build_repositories(session)
    rows = await session_usecase.list_upcoming_sessions(repos, class_type=class_type, now=utc_now(), policy=policy)
    return [SessionRead.from_db(session=row) for row in rows]


@admin_router.get("", response_model=List[SessionDetailRead])
async def list_sessions_for_date(
    session_date: date = Query(..., alias="date"),
    session: AsyncSession = Depends(get_session),
) -> list[SessionDetailRead]:
    repos = build_repositories(session)
    rows = await session_usecase.list_sessions_for_date(repos, session_date=session_date)
    return [SessionDetailRead.from_occupancy(row) for row in rows]


@admin_router.post("/{session_id}/close", response_model=SessionRead)
async def close_session(
    session_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    admin_id: int = Depends(get_current_admin_id),
) -> SessionRead:
    repos = build_repositories(session)
    try:
        async with write_transaction(session):
            class_session = await session_usecase.close_session(repos, session_id=session_id)
    except DomainError as exc:
        raise to_http_exception(exc) from exc

    try:
        emit_audit_log(
            action="session.closed",
            initiator="admin",
            session_id=class_session.id,
            session_total=class_session.total_participants,
            actor_id=admin_id,
        )
    except RuntimeError as exc:
        logger.exception("Failed to emit audit log")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="audit log failed") from exc
    return SessionRead.from_db(session=class_session)
