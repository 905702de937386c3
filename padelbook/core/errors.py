"""Exception types shared by repositories, services and the HTTP layer."""
from typing import Any, Optional


class BookingError(Exception):
    """Base class for every error raised by the booking application."""


class ValidationError(BookingError):
    """Malformed or inconsistent input (missing time slot, bad price...)."""


class NotFoundError(ValidationError):
    pass


class InvalidTransitionError(ValidationError):
    def __init__(self, current, target):
        self.current = current
        self.target = target
        super().__init__(f"Cannot move from '{current.value}' to '{target.value}'.")


class PersistenceError(BookingError):
    """A row insert/update/select failed in the database."""


class GatewayError(BookingError):
    """The payment gateway answered with a non-success status or a malformed body."""

    def __init__(self, message: str, status_code: Optional[int] = None, details: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.details = details


class AuthError(BookingError):
    """Missing session, bad credentials or a bad webhook signature."""


class ForbiddenError(AuthError):
    pass
