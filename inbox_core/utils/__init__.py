"""
Utility functions
"""
from .periodic import PeriodicTask
from .secure_logging import (
    SensitiveDataFilter,
    SecureFormatter,
    JSONSecureFormatter,
    SENSITIVE_PATTERNS,
    configure_secure_logging,
)

__all__ = [
    # Background jobs
    "PeriodicTask",
    # Secure Logging
    "SensitiveDataFilter",
    "SecureFormatter",
    "JSONSecureFormatter",
    "SENSITIVE_PATTERNS",
    "configure_secure_logging",
]
