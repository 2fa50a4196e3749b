"""Domain error codes for class booking.

Every rejection the engine produces is one of the subclasses below. The
``code`` is stable and client-facing; ``kind`` decides how a transport maps it.
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(Enum):
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    BUSINESS_RULE = "business_rule"
    CONFLICT = "conflict"


class ErrorCode(Enum):
    SLOT_NOT_FOUND = "SLOT_NOT_FOUND"
    LANGUAGE_NOT_FOUND = "LANGUAGE_NOT_FOUND"
    PRICE_NOT_FOUND = "PRICE_NOT_FOUND"
    CAPACITY_RULE_NOT_FOUND = "CAPACITY_RULE_NOT_FOUND"
    REGISTRATION_WINDOW_NOT_FOUND = "REGISTRATION_WINDOW_NOT_FOUND"
    SESSION_NOT_FOUND = "SESSION_NOT_FOUND"
    REGISTRATION_NOT_FOUND = "REGISTRATION_NOT_FOUND"
    PAST_SESSION_DATE = "PAST_SESSION_DATE"
    INVALID_PARTICIPANTS = "INVALID_PARTICIPANTS"
    INVALID_CONFIGURATION = "INVALID_CONFIGURATION"
    WINDOW_CLOSED_FOR_NEW_SESSION = "WINDOW_CLOSED_FOR_NEW_SESSION"
    REGISTRATION_CLOSED = "REGISTRATION_CLOSED"
    LANGUAGE_MISMATCH = "LANGUAGE_MISMATCH"
    SESSION_CLOSED = "SESSION_CLOSED"
    CAPACITY_EXCEEDED = "CAPACITY_EXCEEDED"
    BELOW_MINIMUM_FOR_NEW_SESSION = "BELOW_MINIMUM_FOR_NEW_SESSION"
    ALREADY_CONFIRMED = "ALREADY_CONFIRMED"
    ALREADY_CANCELLED = "ALREADY_CANCELLED"
    CONCURRENT_BOOKING_CONFLICT = "CONCURRENT_BOOKING_CONFLICT"


class DomainError(Exception):
    """Base domain error with code and user-safe message."""

    code: ErrorCode
    kind: ErrorKind

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"


class NotFoundError(DomainError):
    kind = ErrorKind.NOT_FOUND


class ValidationError(DomainError):
    kind = ErrorKind.VALIDATION


class BusinessRuleError(DomainError):
    kind = ErrorKind.BUSINESS_RULE


class ConflictError(DomainError):
    kind = ErrorKind.CONFLICT


class SlotNotFoundError(NotFoundError):
    code = ErrorCode.SLOT_NOT_FOUND


class LanguageNotFoundError(NotFoundError):
    code = ErrorCode.LANGUAGE_NOT_FOUND


class PriceNotFoundError(NotFoundError):
    code = ErrorCode.PRICE_NOT_FOUND


class CapacityRuleNotFoundError(NotFoundError):
    code = ErrorCode.CAPACITY_RULE_NOT_FOUND


class RegistrationWindowNotFoundError(NotFoundError):
    code = ErrorCode.REGISTRATION_WINDOW_NOT_FOUND


class SessionNotFoundError(NotFoundError):
    code = ErrorCode.SESSION_NOT_FOUND


class RegistrationNotFoundError(NotFoundError):
    code = ErrorCode.REGISTRATION_NOT_FOUND


class PastSessionDateError(ValidationError):
    code = ErrorCode.PAST_SESSION_DATE


class InvalidParticipantsError(ValidationError):
    code = ErrorCode.INVALID_PARTICIPANTS


class InvalidConfigurationError(ValidationError):
    code = ErrorCode.INVALID_CONFIGURATION


class WindowClosedForNewSessionError(BusinessRuleError):
    code = ErrorCode.WINDOW_CLOSED_FOR_NEW_SESSION


class RegistrationClosedError(BusinessRuleError):
    code = ErrorCode.REGISTRATION_CLOSED


class LanguageMismatchError(BusinessRuleError):
    code = ErrorCode.LANGUAGE_MISMATCH


class SessionClosedError(BusinessRuleError):
    code = ErrorCode.SESSION_CLOSED


class CapacityExceededError(BusinessRuleError):
    code = ErrorCode.CAPACITY_EXCEEDED


class BelowMinimumError(BusinessRuleError):
    code = ErrorCode.BELOW_MINIMUM_FOR_NEW_SESSION


class AlreadyConfirmedError(ConflictError):
    code = ErrorCode.ALREADY_CONFIRMED


class AlreadyCancelledError(ConflictError):
    code = ErrorCode.ALREADY_CANCELLED


class ConcurrentBookingConflictError(ConflictError):
    """Another transaction held the same rows; the request can be retried."""

    code = ErrorCode.CONCURRENT_BOOKING_CONFLICT
