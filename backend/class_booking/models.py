from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from enum import StrEnum
from typing import Optional

from sqlalchemy import Boolean, CheckConstraint, Enum, ForeignKey, Index, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.sql.sqltypes import BigInteger, Date, DateTime, Integer, Numeric, String

# SQLite only auto-increments INTEGER primary keys.
BigIntId = BigInteger().with_variant(Integer, "sqlite")


class Base(DeclarativeBase):
    pass


class ClassType(StrEnum):
    NORMAL = "NORMAL"
    PRIVATE = "PRIVATE"


class Currency(StrEnum):
    USD = "USD"
    PEN = "PEN"


class ParticipantCategory(StrEnum):
    ADULT = "ADULT"
    CHILD = "CHILD"


class RegistrationStatus(StrEnum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"


def _enum(enum_cls: type[StrEnum]) -> Enum:
    return Enum(
        enum_cls,
        values_callable=lambda cls: [e.value for e in cls],
        native_enum=False,
    )


class ClassSchedule(Base):
    __tablename__ = "class_schedules"
    __table_args__ = (UniqueConstraint("class_type", "start_time", name="uq_schedule_type_time"),)

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    class_type: Mapped[ClassType] = mapped_column(_enum(ClassType), nullable=False)
    start_time: Mapped[str] = mapped_column(String(5), nullable=False)


class ClassLanguage(Base):
    __tablename__ = "class_languages"
    __table_args__ = (UniqueConstraint("language_name", name="uq_language_name"),)

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    language_name: Mapped[str] = mapped_column(String(50), nullable=False)


class ClassPrice(Base):
    __tablename__ = "class_prices"
    __table_args__ = (
        UniqueConstraint("class_type", "currency", "category", name="uq_price_type_currency_category"),
        CheckConstraint("price >= 0", name="chk_price_non_negative"),
    )

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    class_type: Mapped[ClassType] = mapped_column(_enum(ClassType), nullable=False)
    currency: Mapped[Currency] = mapped_column(_enum(Currency), nullable=False)
    category: Mapped[ParticipantCategory] = mapped_column(_enum(ParticipantCategory), nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)


class ClassCapacity(Base):
    __tablename__ = "class_capacities"
    __table_args__ = (
        UniqueConstraint("class_type", name="uq_capacity_type"),
        CheckConstraint("min_capacity >= 1", name="chk_capacity_min"),
        CheckConstraint("min_capacity <= max_capacity", name="chk_capacity_range"),
    )

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    class_type: Mapped[ClassType] = mapped_column(_enum(ClassType), nullable=False)
    min_capacity: Mapped[int] = mapped_column(Integer, nullable=False)
    max_capacity: Mapped[int] = mapped_column(Integer, nullable=False)


class RegistrationWindow(Base):
    __tablename__ = "registration_windows"

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    close_before_start_interval: Mapped[int] = mapped_column(Integer, nullable=False)
    final_registration_close_interval: Mapped[int] = mapped_column(Integer, nullable=False)


class ClassSession(Base):
    __tablename__ = "class_sessions"
    __table_args__ = (
        UniqueConstraint("session_date", "time_slot", "class_type", name="uq_sessions_date_slot_type"),
        CheckConstraint("total_participants >= 0", name="chk_sessions_participants"),
        Index("idx_sessions_date", "session_date"),
    )

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    session_date: Mapped[date] = mapped_column(Date, nullable=False)
    time_slot: Mapped[str] = mapped_column(String(5), nullable=False)
    class_type: Mapped[ClassType] = mapped_column(_enum(ClassType), nullable=False)
    language: Mapped[str] = mapped_column(String(50), nullable=False)
    total_participants: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_closed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)

    registrations: Mapped[list["Registration"]] = relationship(back_populates="session")


class Registration(Base):
    __tablename__ = "registrations"
    __table_args__ = (
        CheckConstraint("adults >= 0 AND children >= 0", name="chk_reg_counts"),
        CheckConstraint("total_participants >= 1", name="chk_reg_participants"),
        Index("idx_reg_session", "session_id"),
        Index("idx_reg_status_expires", "status", "expires_at"),
    )

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    session_id: Mapped[int] = mapped_column(ForeignKey("class_sessions.id"), nullable=False)
    adults: Mapped[int] = mapped_column(Integer, nullable=False)
    children: Mapped[int] = mapped_column(Integer, nullable=False)
    total_participants: Mapped[int] = mapped_column(Integer, nullable=False)
    price_adults: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    price_children: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    total_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    currency: Mapped[Currency] = mapped_column(_enum(Currency), nullable=False)
    status: Mapped[RegistrationStatus] = mapped_column(
        _enum(RegistrationStatus),
        nullable=False,
        default=RegistrationStatus.PENDING,
    )
    expires_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=False), nullable=True)
    customer_name: Mapped[str] = mapped_column(String(255), nullable=False)
    customer_email: Mapped[str] = mapped_column(String(255), nullable=False)
    customer_phone: Mapped[str] = mapped_column(String(50), nullable=False)
    comments: Mapped[Optional[str]] = mapped_column(String(1000), nullable=True)
    payment_reference: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    payment_method: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    cancellation_reason: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    confirmed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=False), nullable=True)
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=False), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)

    session: Mapped["ClassSession"] = relationship(back_populates="registrations")
