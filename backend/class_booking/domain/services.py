import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Mapping, Optional
from zoneinfo import ZoneInfo

from ..models import ParticipantCategory, RegistrationStatus
from ..utils.time import at_wall_clock, parse_time_slot
from .errors import (
    AlreadyCancelledError,
    AlreadyConfirmedError,
    BelowMinimumError,
    CapacityExceededError,
    ErrorCode,
    InvalidConfigurationError,
    InvalidParticipantsError,
    PriceNotFoundError,
    SessionClosedError,
)

logger = logging.getLogger(__name__)

MAX_WINDOW_INTERVAL_MINUTES = 300


@dataclass(frozen=True)
class BookingPolicy:
    tz: ZoneInfo
    hold: timedelta = timedelta(minutes=5)


# Registration window calculator


@dataclass(frozen=True)
class RegistrationCutoffs:
    early_cutoff_time: str
    final_cutoff_time: str


@dataclass(frozen=True)
class SessionCutoffs:
    early_cutoff_at: datetime
    final_cutoff_at: datetime


def validate_window_intervals(close_before_start_interval: int, final_registration_close_interval: int) -> None:
    """
    Reject windows that would gate bookings inconsistently: the final cutoff may
    never come before the early one, and neither may exceed the upper bound.
    """
    for name, value in (
        ("close_before_start_interval", close_before_start_interval),
        ("final_registration_close_interval", final_registration_close_interval),
    ):
        if not 0 <= value <= MAX_WINDOW_INTERVAL_MINUTES:
            raise InvalidConfigurationError(f"{name} must be between 0 and {MAX_WINDOW_INTERVAL_MINUTES} minutes")
    if final_registration_close_interval > close_before_start_interval:
        raise InvalidConfigurationError(
            "final_registration_close_interval must not exceed close_before_start_interval"
        )


def compute_cutoffs(
    time_slot: str,
    close_before_start_interval: int,
    final_registration_close_interval: int,
) -> RegistrationCutoffs:
    start = datetime.combine(date(2000, 1, 2), parse_time_slot(time_slot))
    early = start - timedelta(minutes=close_before_start_interval)
    final = start - timedelta(minutes=final_registration_close_interval)
    return RegistrationCutoffs(
        early_cutoff_time=early.strftime("%H:%M"),
        final_cutoff_time=final.strftime("%H:%M"),
    )


def session_cutoffs(
    session_date: date,
    time_slot: str,
    *,
    close_before_start_interval: int,
    final_registration_close_interval: int,
    tz: ZoneInfo,
) -> SessionCutoffs:
    starts_at = at_wall_clock(session_date, time_slot, tz)
    return SessionCutoffs(
        early_cutoff_at=starts_at - timedelta(minutes=close_before_start_interval),
        final_cutoff_at=starts_at - timedelta(minutes=final_registration_close_interval),
    )


# Capacity ledger


@dataclass(frozen=True)
class SessionSnapshot:
    is_closed: bool
    occupancy: int
    is_new: bool


def reserve(snapshot: SessionSnapshot, *, incoming: int, min_capacity: int, max_capacity: int) -> int:
    """
    Admit a whole party or nothing. Returns the occupancy after admission.
    """
    if snapshot.is_closed:
        raise SessionClosedError("session is closed")
    if snapshot.occupancy + incoming > max_capacity:
        raise CapacityExceededError("there are no more spots available")
    if snapshot.is_new and incoming < min_capacity:
        raise BelowMinimumError(f"a new session needs at least {min_capacity} participants")
    if incoming < 1:
        raise InvalidParticipantsError("at least one participant is required")
    if incoming > max_capacity:
        raise CapacityExceededError(f"party size exceeds {max_capacity}")
    return snapshot.occupancy + incoming


def release(current: int, participants: int, *, session_id: Optional[int] = None) -> int:
    remaining = current - participants
    if remaining < 0:
        logger.error(
            "Occupancy would drop below zero; clamping",
            extra={"session_id": session_id, "current": current, "participants": participants},
        )
        return 0
    return remaining


def closed_reason(
    snapshot: SessionSnapshot,
    cutoffs: SessionCutoffs,
    *,
    now: datetime,
    max_capacity: int,
) -> Optional[ErrorCode]:
    """Why a session no longer accepts registrations, or None if it does."""
    if snapshot.is_closed:
        return ErrorCode.SESSION_CLOSED
    if snapshot.is_new and now >= cutoffs.early_cutoff_at:
        return ErrorCode.WINDOW_CLOSED_FOR_NEW_SESSION
    if now >= cutoffs.final_cutoff_at:
        return ErrorCode.REGISTRATION_CLOSED
    if snapshot.occupancy >= max_capacity:
        return ErrorCode.CAPACITY_EXCEEDED
    return None


# Price catalog


@dataclass(frozen=True)
class PriceTotals:
    price_adults: Decimal
    price_children: Decimal
    total_price: Decimal


def compute_totals(
    unit_prices: Mapping[ParticipantCategory, Decimal],
    *,
    adults: int,
    children: int,
) -> PriceTotals:
    adult_price = unit_prices.get(ParticipantCategory.ADULT)
    child_price = unit_prices.get(ParticipantCategory.CHILD)
    if adults > 0 and adult_price is None:
        raise PriceNotFoundError("the price for adults is not defined")
    if children > 0 and child_price is None:
        raise PriceNotFoundError("the price for children is not defined")

    price_adults = (adult_price or Decimal("0")) * adults
    price_children = (child_price or Decimal("0")) * children
    return PriceTotals(
        price_adults=price_adults,
        price_children=price_children,
        total_price=price_adults + price_children,
    )


# Registration state machine

REGISTRATION_TRANSITIONS = {
    RegistrationStatus.PENDING: {RegistrationStatus.CONFIRMED, RegistrationStatus.CANCELLED},
    RegistrationStatus.CONFIRMED: set(),
    RegistrationStatus.CANCELLED: set(),
}


def assert_transition(current: RegistrationStatus, target: RegistrationStatus) -> None:
    if target in REGISTRATION_TRANSITIONS[current]:
        return
    if current == RegistrationStatus.CONFIRMED:
        raise AlreadyConfirmedError("registration is already confirmed")
    if current == RegistrationStatus.CANCELLED:
        raise AlreadyCancelledError("registration is already cancelled")
    raise ValueError(f"invalid registration transition: {current} -> {target}")
