"""
Custom exceptions for the FreeSeat booking engine.
"""

from typing import Any, Dict, Optional, List
from enum import Enum


class ErrorCode(str, Enum):
    """Standard error codes for the engine."""

    # General errors
    INTERNAL_ERROR = "INTERNAL_ERROR"
    INVALID_REQUEST = "INVALID_REQUEST"
    NOT_FOUND = "NOT_FOUND"
    UNAUTHORIZED = "UNAUTHORIZED"

    # Business logic errors
    QUOTA_EXCEEDED = "QUOTA_EXCEEDED"
    SEATS_UNAVAILABLE = "SEATS_UNAVAILABLE"
    VENUE_ALREADY_SEEDED = "VENUE_ALREADY_SEEDED"

    # Concurrency errors
    CONCURRENCY_CONFLICT = "CONCURRENCY_CONFLICT"

    # External service errors
    EMAIL_SERVICE_ERROR = "EMAIL_SERVICE_ERROR"
    RENDER_ERROR = "RENDER_ERROR"


class FreeSeatError(Exception):
    """Base exception class for the booking engine."""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        details: Optional[Dict[str, Any]] = None,
        suggestions: Optional[List[str]] = None,
        retry_after: Optional[int] = None
    ):
        """Initialize the exception with comprehensive error information."""
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        self.suggestions = suggestions or []
        self.retry_after = retry_after
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        result = {
            "error_code": self.error_code.value,
            "message": self.message,
        }

        if self.details:
            result["details"] = self.details

        if self.suggestions:
            result["suggestions"] = self.suggestions

        if self.retry_after:
            result["retry_after"] = self.retry_after

        return result


class InvalidRequestError(FreeSeatError):
    """Exception raised for malformed reservation input."""

    def __init__(self, message: str, field: Optional[str] = None, **kwargs):
        super().__init__(
            message,
            error_code=ErrorCode.INVALID_REQUEST,
            details={"field": field} if field else None,
            **kwargs
        )
        self.field = field


class NotFoundError(FreeSeatError):
    """Base exception for resource not found errors."""

    def __init__(self, message: str, resource_type: Optional[str] = None, resource_id: Optional[str] = None, **kwargs):
        super().__init__(
            message,
            error_code=ErrorCode.NOT_FOUND,
            details={"resource_type": resource_type, "resource_id": resource_id} if resource_type else None,
            **kwargs
        )


class OrderNotFoundError(NotFoundError):
    """Exception raised when an order id does not match any committed order."""

    def __init__(self, order_id: str, **kwargs):
        super().__init__(
            f"Order {order_id} not found",
            resource_type="order",
            resource_id=order_id,
            suggestions=["Check the order ID on your receipt"],
            **kwargs
        )
        self.order_id = order_id


class AuthenticationError(FreeSeatError):
    """Exception raised when no verified identity accompanies a request."""

    def __init__(self, message: str = "Authentication required", **kwargs):
        super().__init__(
            message,
            error_code=ErrorCode.UNAUTHORIZED,
            suggestions=["Sign in again"],
            **kwargs
        )


class BusinessLogicError(FreeSeatError):
    """Base exception for business rule violations."""
    pass


class QuotaExceededError(BusinessLogicError):
    """Exception raised when a reservation would take an identity past its quota."""

    def __init__(self, already: int, requested: int, quota: int, **kwargs):
        super().__init__(
            f"Seat limit exceeded. You already reserved {already} seat(s). Max total is {quota}.",
            error_code=ErrorCode.QUOTA_EXCEEDED,
            details={"already": already, "requested": requested, "quota": quota},
            suggestions=[f"You can reserve at most {max(quota - already, 0)} more seat(s)"],
            **kwargs
        )
        self.already = already
        self.requested = requested
        self.quota = quota


class SeatsUnavailableError(BusinessLogicError):
    """Exception raised when one or more requested seats cannot be granted."""

    def __init__(self, conflicting_ids: List[str], **kwargs):
        super().__init__(
            f"Seats unavailable: {', '.join(conflicting_ids)}",
            error_code=ErrorCode.SEATS_UNAVAILABLE,
            details={"conflicting_ids": list(conflicting_ids)},
            suggestions=["Choose different seats", "Refresh the seat map"],
            **kwargs
        )
        self.conflicting_ids = list(conflicting_ids)


class VenueAlreadySeededError(BusinessLogicError):
    """Exception raised when the fixed venue map would be regenerated."""

    def __init__(self, seat_count: int, order_count: int, **kwargs):
        super().__init__(
            f"Venue map already exists ({seat_count} seats, {order_count} orders)",
            error_code=ErrorCode.VENUE_ALREADY_SEEDED,
            details={"seat_count": seat_count, "order_count": order_count},
            **kwargs
        )


class ConcurrencyError(FreeSeatError):
    """Exception raised when a concurrent writer invalidated the transaction."""

    def __init__(self, message: str, retry_after: int = 1, **kwargs):
        super().__init__(
            message,
            error_code=ErrorCode.CONCURRENCY_CONFLICT,
            retry_after=retry_after,
            suggestions=["Please try again"],
            **kwargs
        )


class InternalError(FreeSeatError):
    """Exception raised for storage failures; the caller should re-submit."""

    def __init__(self, message: str = "Storage temporarily unavailable", retry_after: int = 5, **kwargs):
        super().__init__(
            message,
            error_code=ErrorCode.INTERNAL_ERROR,
            retry_after=retry_after,
            suggestions=["Try again in a moment"],
            **kwargs
        )


class ExternalServiceError(FreeSeatError):
    """Exception raised for external collaborator failures."""

    def __init__(self, service_name: str, message: str, **kwargs):
        kwargs.setdefault("error_code", ErrorCode.EMAIL_SERVICE_ERROR)
        super().__init__(
            f"{service_name} service error: {message}",
            details={"service_name": service_name},
            **kwargs
        )


class EmailServiceError(ExternalServiceError):
    """Exception raised when a notifier fails to deliver."""

    def __init__(self, message: str, **kwargs):
        super().__init__("email", message, error_code=ErrorCode.EMAIL_SERVICE_ERROR, **kwargs)


class ReceiptRenderError(ExternalServiceError):
    """Exception raised when the receipt renderer fails."""

    def __init__(self, message: str, **kwargs):
        super().__init__("receipt", message, error_code=ErrorCode.RENDER_ERROR, **kwargs)
