from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional, cast

from ..domain.errors import (
    LanguageMismatchError,
    PastSessionDateError,
    RegistrationClosedError,
    RegistrationNotFoundError,
    SessionNotFoundError,
    WindowClosedForNewSessionError,
)
from ..domain.events import ClassConfirmed
from ..domain.repositories import Repositories
from ..domain.services import (
    BookingPolicy,
    SessionSnapshot,
    assert_transition,
    release,
    reserve,
    session_cutoffs,
)
from ..models import ClassSession, ClassType, Currency, Registration, RegistrationStatus
from ..utils.time import business_today, to_utc_naive
from . import catalog

EXPIRED_REASON = "hold_expired"
CUSTOMER_REASON = "customer_request"


@dataclass(frozen=True)
class BookingRequest:
    session_date: date
    time_slot: str
    class_type: ClassType
    language: str
    adults: int
    children: int
    currency: Currency
    customer_name: str
    customer_email: str
    customer_phone: str
    comments: Optional[str] = None

    @property
    def total_participants(self) -> int:
        return self.adults + self.children


async def create_booking(
    repos: Repositories,
    request: BookingRequest,
    *,
    now: datetime,
    policy: BookingPolicy,
) -> tuple[Registration, ClassSession]:
    """
    Place a PENDING hold for ``request``.

    Must run inside one transaction: the session row stays locked from the
    capacity check until the new occupancy is written. Any raised error leaves
    nothing behind once the caller rolls back.
    """
    await catalog.find_start_time(repos.schedules, time_slot=request.time_slot, class_type=request.class_type)
    await catalog.find_language(repos.languages, name=request.language)

    if request.session_date < business_today(now, policy.tz):
        raise PastSessionDateError("invalid class date")

    window = await catalog.get_registration_window(repos.windows)
    cutoffs = session_cutoffs(
        request.session_date,
        request.time_slot,
        close_before_start_interval=window.close_before_start_interval,
        final_registration_close_interval=window.final_registration_close_interval,
        tz=policy.tz,
    )
    rule = await catalog.get_capacity_rule(repos.capacities, class_type=request.class_type)

    session = await repos.sessions.get_or_create_for_update(
        session_date=request.session_date,
        time_slot=request.time_slot,
        class_type=request.class_type,
        language=request.language,
    )
    snapshot = SessionSnapshot(
        is_closed=session.is_closed,
        occupancy=session.total_participants,
        is_new=session.total_participants == 0,
    )

    if snapshot.is_new and now >= cutoffs.early_cutoff_at:
        raise WindowClosedForNewSessionError("class is closed for new sessions")
    if now >= cutoffs.final_cutoff_at:
        raise RegistrationClosedError("registration is closed")
    if not snapshot.is_new and session.language != request.language:
        raise LanguageMismatchError("the language of the class differs from the first registration")

    occupancy = reserve(
        snapshot,
        incoming=request.total_participants,
        min_capacity=rule.min_capacity,
        max_capacity=rule.max_capacity,
    )
    totals = await catalog.compute_booking_totals(
        repos.prices,
        class_type=request.class_type,
        currency=request.currency,
        adults=request.adults,
        children=request.children,
    )

    if snapshot.is_new:
        session.language = request.language
    session.total_participants = occupancy
    await repos.sessions.save(session)

    registration = Registration(
        session_id=session.id,
        adults=request.adults,
        children=request.children,
        total_participants=request.total_participants,
        price_adults=totals.price_adults,
        price_children=totals.price_children,
        total_price=totals.total_price,
        currency=request.currency,
        status=RegistrationStatus.PENDING,
        expires_at=to_utc_naive(now + policy.hold),
        customer_name=request.customer_name,
        customer_email=request.customer_email,
        customer_phone=request.customer_phone,
        comments=request.comments,
    )
    registration = await repos.registrations.create(registration)
    return registration, session


async def confirm_booking(
    repos: Repositories,
    *,
    registration_id: int,
    payment_reference: str,
    payment_method: Optional[str],
    now: datetime,
) -> tuple[Registration, ClassSession, ClassConfirmed]:
    """
    PENDING -> CONFIRMED once payment was verified elsewhere. The returned event
    must only be published after the transaction commits.
    """
    registration = await repos.registrations.get_for_update(registration_id)
    if registration is None:
        raise RegistrationNotFoundError("registration not found")
    assert_transition(registration.status, RegistrationStatus.CONFIRMED)

    session = await repos.sessions.get(registration.session_id)
    if session is None:
        raise SessionNotFoundError("registration has no session")

    registration.payment_reference = payment_reference
    registration.payment_method = payment_method
    registration.status = RegistrationStatus.CONFIRMED
    registration.expires_at = None
    registration.confirmed_at = to_utc_naive(now)
    registration = await repos.registrations.save(registration)

    event = ClassConfirmed(
        registration_id=registration.id,
        date=session.session_date,
        time_slot=session.time_slot,
        language=session.language,
        customer_name=registration.customer_name,
        customer_email=registration.customer_email,
        total_participants=registration.total_participants,
        total_price=registration.total_price,
        currency=str(registration.currency),
    )
    return registration, session, event


async def cancel_booking(
    repos: Repositories,
    *,
    registration_id: int,
    now: datetime,
    reason: str = CUSTOMER_REASON,
) -> tuple[Registration, ClassSession]:
    result = await _cancel(repos, registration_id=registration_id, now=now, reason=reason, expired_only=False)
    return cast(tuple[Registration, ClassSession], result)


async def expire_booking(
    repos: Repositories,
    *,
    registration_id: int,
    now: datetime,
) -> Optional[tuple[Registration, ClassSession]]:
    """
    Cancel a hold whose deadline passed. Returns None when the row is no longer
    an expired PENDING hold (for example it was confirmed in the meantime).
    """
    return await _cancel(repos, registration_id=registration_id, now=now, reason=EXPIRED_REASON, expired_only=True)


async def get_booking(repos: Repositories, *, registration_id: int) -> tuple[Registration, ClassSession]:
    registration = await repos.registrations.get(registration_id)
    if registration is None:
        raise RegistrationNotFoundError("registration not found")
    session = await repos.sessions.get(registration.session_id)
    if session is None:
        raise SessionNotFoundError("registration has no session")
    return registration, session


async def list_customer_bookings(
    repos: Repositories,
    *,
    customer_email: str,
) -> list[tuple[Registration, ClassSession]]:
    return await repos.registrations.list_by_customer_email(customer_email)


async def _cancel(
    repos: Repositories,
    *,
    registration_id: int,
    now: datetime,
    reason: str,
    expired_only: bool,
) -> Optional[tuple[Registration, ClassSession]]:
    unlocked = await repos.registrations.get(registration_id)
    if unlocked is None:
        raise RegistrationNotFoundError("registration not found")

    # Lock order: session first, then registration.
    session = await repos.sessions.get_for_update(unlocked.session_id)
    if session is None:
        raise SessionNotFoundError("registration has no session")
    registration = await repos.registrations.get_for_update(registration_id)
    if registration is None:
        raise RegistrationNotFoundError("registration not found")

    now_utc = to_utc_naive(now)
    if expired_only and (
        registration.status != RegistrationStatus.PENDING
        or registration.expires_at is None
        or registration.expires_at > now_utc
    ):
        return None
    assert_transition(registration.status, RegistrationStatus.CANCELLED)

    registration.status = RegistrationStatus.CANCELLED
    registration.expires_at = None
    registration.cancelled_at = now_utc
    registration.cancellation_reason = reason
    session.total_participants = release(
        session.total_participants,
        registration.total_participants,
        session_id=session.id,
    )
    await repos.sessions.save(session)
    registration = await repos.registrations.save(registration)
    return registration, session
