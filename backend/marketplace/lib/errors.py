"""
Application exception taxonomy.

Services raise these; the API layer turns them into consistent JSON
error responses (see marketplace.api.middleware.error_handler).
"""
from typing import Optional, Dict, Any

from starlette import status


class AppException(Exception):
    """Base application exception."""

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class NotFoundException(AppException):
    """Resource not found exception."""

    def __init__(self, resource: str, resource_id: Optional[str] = None):
        message = f"{resource} not found"
        if resource_id:
            message = f"{resource} with id '{resource_id}' not found"
        super().__init__(
            message=message,
            status_code=status.HTTP_404_NOT_FOUND,
            details={"resource": resource, "resource_id": resource_id},
        )


class UnauthorizedException(AppException):
    """Unauthorized access exception."""

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(
            message=message,
            status_code=status.HTTP_401_UNAUTHORIZED,
        )


class ForbiddenException(AppException):
    """Forbidden access exception."""

    def __init__(self, message: str = "Forbidden"):
        super().__init__(
            message=message,
            status_code=status.HTTP_403_FORBIDDEN,
        )


class BadRequestException(AppException):
    """Bad request exception."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            status_code=status.HTTP_400_BAD_REQUEST,
            details=details or {},
        )


class ConflictException(AppException):
    """
    Resource conflict exception.

    Raised for lost booking races, seat capacity and overlapping weekly
    windows. ``details["reason"]`` tells clients whether re-polling
    availability makes sense.
    """

    def __init__(
        self,
        message: str,
        reason: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        payload = dict(details or {})
        if reason:
            payload["reason"] = reason
        super().__init__(
            message=message,
            status_code=status.HTTP_409_CONFLICT,
            details=payload,
        )
        self.reason = reason


class ValidationException(AppException):
    """Validation error exception."""

    def __init__(self, message: str, errors: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            details={"errors": errors or {}},
        )


class CalendarSyncError(AppException):
    """The lifecycle change committed but its calendar projection did not."""

    def __init__(self, booking_id: str):
        super().__init__(
            message="Booking saved but its calendar entries could not be updated",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            details={"booking_id": booking_id, "booking_committed": True},
        )


# Conflict reasons
SLOT_UNAVAILABLE = "slot_unavailable"
SEAT_NOT_ELIGIBLE = "seat_not_eligible"
SEAT_AT_CAPACITY = "seat_at_capacity"
NO_SEAT_AVAILABLE = "no_seat_available"
OVERLAPPING_WINDOWS = "overlapping_windows"


class PaymentMismatchError(Exception):
    """
    A provider reported an amount or currency that differs from the intent.

    Handled inside the payment reconciler; never returned to HTTP callers.
    """

    def __init__(self, expected_amount: int, expected_currency: str, amount: int, currency: str):
        self.expected_amount = expected_amount
        self.expected_currency = expected_currency
        self.amount = amount
        self.currency = currency
        super().__init__(
            f"Payment mismatch: expected {expected_amount} {expected_currency}, "
            f"received {amount} {currency}"
        )
