"""
Result types for lending operations.

Lending calls never raise for expected failures; they return an ``Outcome``
carrying either a value or a ``LendingError`` code plus a human readable
message. Construction-time validation raises ``ValidationError`` instead,
because an invalid entity must never exist.
"""

from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


class LendingError(Enum):
    INACTIVE_ACCOUNT = "InactiveAccount"
    BOOK_NOT_FOUND = "BookNotFound"
    BOOK_UNAVAILABLE = "BookUnavailable"
    BORROW_LIMIT_REACHED = "BorrowLimitReached"
    DUPLICATE_BORROW = "DuplicateBorrow"
    NOT_BORROWED_BY_USER = "NotBorrowedByUser"
    ALREADY_RESERVED_BY_CALLER = "AlreadyReservedByCaller"
    NOT_AVAILABLE = "NotAvailable"
    NO_SUCH_RESERVATION = "NoSuchReservation"
    NOT_RENEWABLE = "NotRenewable"
    INVALID_ISBN = "InvalidISBN"
    CAPACITY_EXCEEDED = "CapacityExceeded"
    # accounts and catalog administration
    MEMBER_NOT_FOUND = "MemberNotFound"
    USERNAME_TAKEN = "UsernameTaken"
    INVALID_PASSWORD = "InvalidPassword"
    INVALID_EMAIL = "InvalidEmail"
    AUTHENTICATION_FAILED = "AuthenticationFailed"
    BOOK_IN_USE = "BookInUse"
    INVALID_STATUS_CHANGE = "InvalidStatusChange"
    INVALID_REVIEW = "InvalidReview"
    PERMISSION_DENIED = "PermissionDenied"


class ValidationError(ValueError):
    """Raised when an entity is constructed from invalid input."""

    def __init__(self, error: LendingError, message: str) -> None:
        super().__init__(message)
        self.error = error


@dataclass(frozen=True)
class Outcome(Generic[T]):
    value: Optional[T] = None
    error: Optional[LendingError] = None
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.error is None

    def __bool__(self) -> bool:
        return self.ok

    @classmethod
    def success(cls, value: Optional[T] = None, message: str = "") -> "Outcome[T]":
        return cls(value=value, message=message)

    @classmethod
    def failure(cls, error: LendingError, message: str = "") -> "Outcome[T]":
        return cls(error=error, message=message or error.value)
