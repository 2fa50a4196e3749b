from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field, field_serializer, model_validator

from .domain.errors import ErrorCode
from .models import (
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
from .usecases.bookings import BookingRequest
from .usecases.sessions import SessionOccupancy, SessionStatus
from .utils.time import utc_naive_to_aware

TIME_SLOT_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"
EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


class BookingCreate(BaseModel):
    date: date
    time_slot: str = Field(pattern=TIME_SLOT_PATTERN)
    class_type: ClassType = ClassType.NORMAL
    language: str = Field(min_length=1, max_length=50)
    adults: int = Field(ge=0)
    children: int = Field(default=0, ge=0)
    currency: Currency
    customer_name: str = Field(min_length=1, max_length=255)
    customer_email: str = Field(pattern=EMAIL_PATTERN, max_length=255)
    customer_phone: str = Field(min_length=1, max_length=50)
    comments: Optional[str] = Field(default=None, max_length=1000)

    @model_validator(mode="after")
    def _at_least_one_participant(self) -> "BookingCreate":
        if self.adults + self.children < 1:
            raise ValueError("at least one participant is required")
        return self

    def to_request(self) -> BookingRequest:
        return BookingRequest(
            session_date=self.date,
            time_slot=self.time_slot,
            class_type=self.class_type,
            language=self.language,
            adults=self.adults,
            children=self.children,
            currency=self.currency,
            customer_name=self.customer_name,
            customer_email=self.customer_email,
            customer_phone=self.customer_phone,
            comments=self.comments,
        )


class BookingConfirm(BaseModel):
    payment_reference: str = Field(min_length=1, max_length=255)
    payment_method: Optional[str] = Field(default=None, max_length=50)


class RegistrationRead(BaseModel):
    registration_id: int
    session_id: int
    date: date
    time_slot: str
    class_type: ClassType
    language: str
    adults: int
    children: int
    total_participants: int
    price_adults: Decimal
    price_children: Decimal
    total_price: Decimal
    currency: Currency
    status: RegistrationStatus
    expires_at: Optional[datetime]
    customer_name: str
    customer_email: str
    customer_phone: str
    comments: Optional[str] = None
    payment_reference: Optional[str] = None

    @field_serializer("expires_at")
    def _ser_datetime(self, dt: Optional[datetime]) -> Optional[str]:
        return dt.isoformat() if dt is not None else None

    @classmethod
    def from_db(cls, *, registration: Registration, session: ClassSession) -> "RegistrationRead":
        return cls(
            registration_id=registration.id,
            session_id=session.id,
            date=session.session_date,
            time_slot=session.time_slot,
            class_type=session.class_type,
            language=session.language,
            adults=registration.adults,
            children=registration.children,
            total_participants=registration.total_participants,
            price_adults=registration.price_adults,
            price_children=registration.price_children,
            total_price=registration.total_price,
            currency=registration.currency,
            status=registration.status,
            expires_at=utc_naive_to_aware(registration.expires_at) if registration.expires_at else None,
            customer_name=registration.customer_name,
            customer_email=registration.customer_email,
            customer_phone=registration.customer_phone,
            comments=registration.comments,
            payment_reference=registration.payment_reference,
        )


class SessionRead(BaseModel):
    session_id: int
    date: date
    time_slot: str
    class_type: ClassType
    language: str
    total_participants: int
    is_closed: bool

    @classmethod
    def from_db(cls, *, session: ClassSession) -> "SessionRead":
        return cls(
            session_id=session.id,
            date=session.session_date,
            time_slot=session.time_slot,
            class_type=session.class_type,
            language=session.language,
            total_participants=session.total_participants,
            is_closed=session.is_closed,
        )


class SessionDetailRead(SessionRead):
    registrations: List[RegistrationRead]

    @classmethod
    def from_occupancy(cls, occupancy: SessionOccupancy) -> "SessionDetailRead":
        session = occupancy.session
        if session is None:
            raise ValueError("occupancy has no session")
        base = SessionRead.from_db(session=session)
        return cls(
            **base.model_dump(),
            registrations=[
                RegistrationRead.from_db(registration=registration, session=session)
                for registration in occupancy.registrations
            ],
        )


class SessionStatusRead(BaseModel):
    session_id: Optional[int]
    date: date
    time_slot: str
    class_type: ClassType
    language: Optional[str]
    total_participants: int
    min_capacity: int
    max_capacity: int
    remaining: int
    is_closed: bool
    early_cutoff_at: datetime
    final_cutoff_at: datetime
    registration_open: bool
    closed_reason: Optional[ErrorCode]

    @field_serializer("early_cutoff_at", "final_cutoff_at")
    def _ser_datetime(self, dt: datetime) -> str:
        return dt.isoformat()

    @field_serializer("closed_reason")
    def _ser_reason(self, reason: Optional[ErrorCode]) -> Optional[str]:
        return reason.value if reason is not None else None

    @classmethod
    def from_status(cls, status: SessionStatus) -> "SessionStatusRead":
        session = status.occupancy.session
        total = status.occupancy.total_participants
        return cls(
            session_id=session.id if session is not None else None,
            date=status.session_date,
            time_slot=status.time_slot,
            class_type=status.class_type,
            language=session.language if session is not None and total > 0 else None,
            total_participants=total,
            min_capacity=status.capacity.min_capacity,
            max_capacity=status.capacity.max_capacity,
            remaining=max(status.capacity.max_capacity - total, 0),
            is_closed=session is not None and session.is_closed,
            early_cutoff_at=status.cutoffs.early_cutoff_at,
            final_cutoff_at=status.cutoffs.final_cutoff_at,
            registration_open=status.registration_open,
            closed_reason=status.closed_reason,
        )


class ScheduleRead(BaseModel):
    schedule_id: int
    class_type: ClassType
    start_time: str

    @classmethod
    def from_db(cls, *, schedule: ClassSchedule) -> "ScheduleRead":
        return cls(schedule_id=schedule.id, class_type=schedule.class_type, start_time=schedule.start_time)


class LanguageRead(BaseModel):
    language_id: int
    language_name: str

    @classmethod
    def from_db(cls, *, language: ClassLanguage) -> "LanguageRead":
        return cls(language_id=language.id, language_name=language.language_name)


class PriceRead(BaseModel):
    class_type: ClassType
    currency: Currency
    category: ParticipantCategory
    price: Decimal

    @classmethod
    def from_db(cls, *, price: ClassPrice) -> "PriceRead":
        return cls(
            class_type=price.class_type,
            currency=price.currency,
            category=price.category,
            price=price.price,
        )


class CapacityRead(BaseModel):
    class_type: ClassType
    min_capacity: int
    max_capacity: int

    @classmethod
    def from_db(cls, *, rule: ClassCapacity) -> "CapacityRead":
        return cls(class_type=rule.class_type, min_capacity=rule.min_capacity, max_capacity=rule.max_capacity)


class RegistrationWindowRead(BaseModel):
    close_before_start_interval: int
    final_registration_close_interval: int

    @classmethod
    def from_db(cls, *, window: RegistrationWindow) -> "RegistrationWindowRead":
        return cls(
            close_before_start_interval=window.close_before_start_interval,
            final_registration_close_interval=window.final_registration_close_interval,
        )
