"""
Secure Error Handler - Safe error handling without exposing internal details

This module provides:
- SecureError class for creating safe exceptions
- Error codes mapped to user-friendly messages
- Trace ID generation for log correlation
- FastAPI exception handlers (database errors become 503, anything
  unexpected becomes a sanitized 500)

Business outcomes of the core (no agent available, pickup lost) are return
values and never reach these handlers.

Usage:
    from inbox_core.security.error_handler import register_exception_handlers

    register_exception_handlers(app)
"""

import uuid
import logging
from typing import Optional, Dict, Any
from datetime import datetime
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pymongo.errors import PyMongoError
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


# Messages safe to show to clients
ERROR_CODES: Dict[str, str] = {
    "E001": "An internal server error occurred. Please try again later.",
    "E002": "Database connection error. Our team has been notified.",
    "E004": "Invalid request format. Please check your input.",
    "E005": "Authentication failed. Please check your credentials.",
    "E006": "You don't have permission to access this resource.",
    "E007": "The requested resource was not found.",
    "E008": "Too many requests. Please wait before trying again.",
    "E009": "Validation error. Please check the provided data.",
    "E010": "Service temporarily unavailable. Please try again later.",
    "E013": "The resource was modified by another request.",
}

DEFAULT_STATUS_CODES: Dict[str, int] = {
    "E001": 500,
    "E002": 503,
    "E004": 400,
    "E005": 401,
    "E006": 403,
    "E007": 404,
    "E008": 429,
    "E009": 422,
    "E010": 503,
    "E013": 409,
}


def generate_trace_id() -> str:
    """Generate a unique trace ID for error correlation."""
    return str(uuid.uuid4())


class SecureError(Exception):
    """
    Exception whose client-facing message never carries internal details.

    Attributes:
        code: Error code
        message: User-friendly message (derived from code if not provided)
        status_code: HTTP status code to return
        trace_id: Unique ID for log correlation
        internal_message: Detailed message for logging only
        context: Additional context for logging only
    """

    def __init__(
        self,
        code: str,
        message: Optional[str] = None,
        status_code: Optional[int] = None,
        internal_message: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        self.code = code
        self.message = message or ERROR_CODES.get(code, ERROR_CODES["E001"])
        self.status_code = status_code or DEFAULT_STATUS_CODES.get(code, 500)
        self.trace_id = generate_trace_id()
        self.internal_message = internal_message
        self.context = context or {}
        self.timestamp = datetime.utcnow().isoformat()

        super().__init__(self.message)

    def to_response(self) -> Dict[str, Any]:
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "trace_id": self.trace_id,
                "timestamp": self.timestamp,
            }
        }

    def log_error(self, logger_instance: Optional[logging.Logger] = None) -> None:
        log = logger_instance or logger
        log.error(
            f"SecureError [{self.code}]: {self.internal_message or self.message}",
            extra={
                "error_code": self.code,
                "trace_id": self.trace_id,
                "status_code": self.status_code,
                "context": self.context,
            }
        )


async def secure_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Exception handler for FastAPI that never exposes internal details.

    Args:
        request: FastAPI request
        exc: Exception that was raised

    Returns:
        Secure JSONResponse
    """
    if isinstance(exc, SecureError):
        exc.log_error()
        return JSONResponse(status_code=exc.status_code, content=exc.to_response())

    if isinstance(exc, PyMongoError):
        error = SecureError(
            "E002",
            internal_message=f"{type(exc).__name__}: {exc}",
            context={"path": request.url.path, "method": request.method},
        )
        error.log_error()
        return JSONResponse(status_code=error.status_code, content=error.to_response())

    if isinstance(exc, StarletteHTTPException):
        trace_id = generate_trace_id()
        code = _http_status_to_error_code(exc.status_code)
        detail = str(exc.detail)

        logger.warning(
            f"HTTPException [{code}] trace_id={trace_id}: {detail}",
            extra={"trace_id": trace_id, "status_code": exc.status_code, "path": request.url.path},
        )

        return JSONResponse(
            status_code=exc.status_code,
            headers=getattr(exc, "headers", None),
            content={
                "error": {
                    "code": code,
                    "message": detail if _is_safe_message(detail) else ERROR_CODES.get(code, ERROR_CODES["E001"]),
                    "trace_id": trace_id,
                    "timestamp": datetime.utcnow().isoformat(),
                }
            }
        )

    trace_id = generate_trace_id()
    logger.error(
        f"Unhandled exception trace_id={trace_id}",
        extra={
            "trace_id": trace_id,
            "exception_type": type(exc).__name__,
            "path": request.url.path,
            "method": request.method,
        },
        exc_info=exc,
    )

    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "E001",
                "message": ERROR_CODES["E001"],
                "trace_id": trace_id,
                "timestamp": datetime.utcnow().isoformat(),
            }
        }
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Install the secure handlers on an application."""
    app.add_exception_handler(SecureError, secure_exception_handler)
    app.add_exception_handler(PyMongoError, secure_exception_handler)
    app.add_exception_handler(StarletteHTTPException, secure_exception_handler)
    app.add_exception_handler(Exception, secure_exception_handler)


def _http_status_to_error_code(status_code: int) -> str:
    """Map HTTP status codes to our error codes."""
    mapping = {
        400: "E004",
        401: "E005",
        403: "E006",
        404: "E007",
        409: "E013",
        422: "E009",
        429: "E008",
        500: "E001",
        503: "E010",
    }
    return mapping.get(status_code, "E001")


def _is_safe_message(message: str) -> bool:
    """Reject messages that look like stack traces, paths or driver errors."""
    unsafe_patterns = [
        "Traceback",
        "File \"",
        "Exception:",
        "at 0x",
        "/usr/",
        "/home/",
        "pymongo",
        "motor",
        "mongodb",
        "localhost",
        ".py",
    ]

    message_lower = message.lower()
    return not any(pattern.lower() in message_lower for pattern in unsafe_patterns)


def raise_not_found(resource: str = "Resource", internal_msg: Optional[str] = None) -> None:
    """Raise a 404 Not Found error."""
    raise SecureError(
        "E007",
        message=f"{resource} not found.",
        internal_message=internal_msg,
    )


__all__ = [
    'SecureError',
    'ERROR_CODES',
    'DEFAULT_STATUS_CODES',
    'generate_trace_id',
    'secure_exception_handler',
    'register_exception_handlers',
    'raise_not_found',
]
