"""
Rate limiting keys and limits

Keys combine the client IP with the API key prefix so that agents behind one
NAT do not share a bucket.
"""
import hashlib
from fastapi import Request
from slowapi import Limiter
from slowapi.util import get_remote_address


RATE_LIMITS = {
    "default": "100/minute",
    "read": "200/minute",       # Agent lists, assignment lookups
    "write": "60/minute",       # Pickup / transfer / release / assign
    "admin": "10/minute",       # Campaign sync and reconciliation
}


def get_rate_limit_key(request: Request) -> str:
    """
    Rate limit key from IP address and API key prefix.

    Args:
        request: FastAPI request object

    Returns:
        MD5 hash of the combined fingerprint
    """
    ip = get_remote_address(request)
    api_key = request.headers.get("X-API-Key", "")[:10]
    return hashlib.md5(f"{ip}:{api_key}".encode()).hexdigest()


def get_rate_limit(operation_type: str) -> str:
    """Rate limit string for an operation type (e.g. 'read', 'write')."""
    return RATE_LIMITS.get(operation_type, RATE_LIMITS["default"])


limiter = Limiter(key_func=get_rate_limit_key, default_limits=[RATE_LIMITS["default"]])
