"""
Middleware for authentication and rate limiting
"""
from .auth import verify_api_key
from .rate_limiter import get_rate_limit_key, get_rate_limit, RATE_LIMITS, limiter

__all__ = [
    # Authentication
    "verify_api_key",
    # Rate Limiting
    "get_rate_limit_key",
    "get_rate_limit",
    "RATE_LIMITS",
    "limiter",
]
