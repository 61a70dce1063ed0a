"""
Error handling middleware and the error-to-HTTP mapping shared with the routes.
"""

import logging
import traceback
from datetime import datetime, timezone
from uuid import uuid4

from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from sqlalchemy.exc import OperationalError, TimeoutError as SQLTimeoutError

from ..utils.exceptions import (
    FreeSeatError,
    ErrorCode,
    InternalError,
    InvalidRequestError,
    NotFoundError,
    BusinessLogicError,
)

logger = logging.getLogger(__name__)

STATUS_MAP = {
    ErrorCode.INVALID_REQUEST: status.HTTP_400_BAD_REQUEST,
    ErrorCode.UNAUTHORIZED: status.HTTP_401_UNAUTHORIZED,
    ErrorCode.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.QUOTA_EXCEEDED: status.HTTP_409_CONFLICT,
    ErrorCode.SEATS_UNAVAILABLE: status.HTTP_409_CONFLICT,
    ErrorCode.VENUE_ALREADY_SEEDED: status.HTTP_409_CONFLICT,
    ErrorCode.CONCURRENCY_CONFLICT: status.HTTP_409_CONFLICT,
    ErrorCode.INTERNAL_ERROR: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorCode.EMAIL_SERVICE_ERROR: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorCode.RENDER_ERROR: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def status_code_for_error(exc: FreeSeatError) -> int:
    """Map an engine error code to its HTTP status code."""
    return STATUS_MAP.get(exc.error_code, status.HTTP_500_INTERNAL_SERVER_ERROR)


def to_http_exception(exc: FreeSeatError) -> HTTPException:
    """Convert an engine error into the HTTPException raised by a route."""
    headers = {"Retry-After": str(exc.retry_after)} if exc.retry_after else None
    return HTTPException(
        status_code=status_code_for_error(exc),
        detail=exc.to_dict(),
        headers=headers
    )


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """Turns any exception that escaped the routes into a structured JSON error."""

    def __init__(self, app, debug: bool = False):
        super().__init__(app)
        self.debug = debug

    async def dispatch(self, request: Request, call_next):
        error_id = str(uuid4())

        try:
            return await call_next(request)
        except Exception as exc:
            return self._handle_exception(request, exc, error_id)

    def _handle_exception(self, request: Request, exc: Exception, error_id: str) -> JSONResponse:
        self._log_error(request, exc, error_id)

        if isinstance(exc, FreeSeatError):
            error = exc
        elif isinstance(exc, (OperationalError, SQLTimeoutError)):
            error = InternalError("Database service temporarily unavailable", retry_after=30)
        else:
            error = FreeSeatError(
                "An unexpected error occurred",
                error_code=ErrorCode.INTERNAL_ERROR,
                details={"error_type": type(exc).__name__} if self.debug else None
            )

        response_data = {
            "error": error.to_dict(),
            "error_id": error_id,
            "timestamp": _timestamp()
        }
        if self.debug and not isinstance(exc, FreeSeatError):
            response_data["debug"] = {
                "exception": str(exc),
                "traceback": traceback.format_exc()
            }

        if isinstance(exc, FreeSeatError):
            status_code = status_code_for_error(exc)
        elif isinstance(error, InternalError):
            status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        else:
            status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

        headers = {"Retry-After": str(error.retry_after)} if error.retry_after else None
        return JSONResponse(status_code=status_code, content=response_data, headers=headers)

    def _log_error(self, request: Request, exc: Exception, error_id: str):
        request_info = {
            "method": request.method,
            "path": request.url.path,
            "client_ip": request.client.host if request.client else None,
        }

        if isinstance(exc, (InvalidRequestError, NotFoundError, BusinessLogicError)):
            logger.warning(
                f"Client error [{error_id}]: {exc.message}",
                extra={"error_id": error_id, "error_code": exc.error_code.value, "request": request_info}
            )
        elif isinstance(exc, FreeSeatError):
            logger.error(
                f"System error [{error_id}]: {exc.message}",
                extra={"error_id": error_id, "error_code": exc.error_code.value, "request": request_info}
            )
        else:
            logger.error(
                f"Unexpected error [{error_id}]: {exc}",
                extra={"error_id": error_id, "error_type": type(exc).__name__, "request": request_info},
                exc_info=True
            )
