"""
Security Module - safe error responses
"""
from .error_handler import (
    SecureError,
    ERROR_CODES,
    secure_exception_handler,
    register_exception_handlers,
    raise_not_found,
)

__all__ = [
    "SecureError",
    "ERROR_CODES",
    "secure_exception_handler",
    "register_exception_handlers",
    "raise_not_found",
]
