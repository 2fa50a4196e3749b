import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..deps import get_event_bus, get_policy, get_session
from ..domain.errors import DomainError
from ..domain.events import EventPublisher
from ..domain.services import BookingPolicy
from ..infrastructure.repositories import build_repositories
from ..infrastructure.transactions import write_transaction
from ..models import RegistrationStatus
from ..schemas import EMAIL_PATTERN, BookingConfirm, BookingCreate, RegistrationRead
from ..usecases import bookings as booking_usecase
from ..utils.audit_log import emit_audit_log
from ..utils.time import utc_now
from .errors import to_http_exception

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/bookings", tags=["bookings"])


def _audit_failed() -> HTTPException:
    logger.exception("Failed to emit audit log")
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="audit log failed")


@router.post("", response_model=RegistrationRead, status_code=status.HTTP_201_CREATED)
async def create_booking(
    payload: BookingCreate,
    session: AsyncSession = Depends(get_session),
    policy: BookingPolicy = Depends(get_policy),
) -> RegistrationRead:
    repos = build_repositories(session)
    try:
        async with write_transaction(session):
            registration, class_session = await booking_usecase.create_booking(
                repos,
                payload.to_request(),
                now=utc_now(),
                policy=policy,
            )
    except DomainError as exc:
        raise to_http_exception(exc) from exc

    try:
        emit_audit_log(
            action="registration.created",
            initiator="customer",
            session_id=class_session.id,
            registration_id=registration.id,
            participants=registration.total_participants,
            session_total=class_session.total_participants,
            status_to=registration.status,
        )
    except RuntimeError as exc:
        raise _audit_failed() from exc
    return RegistrationRead.from_db(registration=registration, session=class_session)


@router.get("", response_model=List[RegistrationRead])
async def list_customer_bookings(
    customer_email: str = Query(..., max_length=255, pattern=EMAIL_PATTERN),
    session: AsyncSession = Depends(get_session),
) -> list[RegistrationRead]:
    repos = build_repositories(session)
    rows = await booking_usecase.list_customer_bookings(repos, customer_email=customer_email)
    return [RegistrationRead.from_db(registration=reg, session=class_session) for reg, class_session in rows]


@router.get("/{registration_id}", response_model=RegistrationRead)
async def get_booking(
    registration_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
) -> RegistrationRead:
    repos = build_repositories(session)
    try:
        registration, class_session = await booking_usecase.get_booking(repos, registration_id=registration_id)
    except DomainError as exc:
        raise to_http_exception(exc) from exc
    return RegistrationRead.from_db(registration=registration, session=class_session)


@router.post("/{registration_id}/confirm", response_model=RegistrationRead)
async def confirm_booking(
    payload: BookingConfirm,
    registration_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    event_bus: EventPublisher = Depends(get_event_bus),
) -> RegistrationRead:
    repos = build_repositories(session)
    try:
        async with write_transaction(session):
            registration, class_session, event = await booking_usecase.confirm_booking(
                repos,
                registration_id=registration_id,
                payment_reference=payload.payment_reference,
                payment_method=payload.payment_method,
                now=utc_now(),
            )
    except DomainError as exc:
        raise to_http_exception(exc) from exc

    # Only committed confirmations are announced.
    await event_bus.publish(event)
    try:
        emit_audit_log(
            action="registration.confirmed",
            initiator="payment",
            session_id=class_session.id,
            registration_id=registration.id,
            participants=registration.total_participants,
            session_total=class_session.total_participants,
            status_from=RegistrationStatus.PENDING,
            status_to=registration.status,
            extra={"payment_reference": registration.payment_reference},
        )
    except RuntimeError as exc:
        raise _audit_failed() from exc
    return RegistrationRead.from_db(registration=registration, session=class_session)


@router.post("/{registration_id}/cancel", response_model=RegistrationRead)
async def cancel_booking(
    registration_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
) -> RegistrationRead:
    repos = build_repositories(session)
    try:
        async with write_transaction(session):
            registration, class_session = await booking_usecase.cancel_booking(
                repos,
                registration_id=registration_id,
                now=utc_now(),
            )
    except DomainError as exc:
        raise to_http_exception(exc) from exc

    try:
        emit_audit_log(
            action="registration.cancelled",
            initiator="customer",
            session_id=class_session.id,
            registration_id=registration.id,
            participants=registration.total_participants,
            session_total=class_session.total_participants,
            status_from=RegistrationStatus.PENDING,
            status_to=registration.status,
            message=registration.cancellation_reason,
        )
    except RuntimeError as exc:
        raise _audit_failed() from exc
    return RegistrationRead.from_db(registration=registration, session=class_session)
