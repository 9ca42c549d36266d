"""
Sentry integration for error tracking

Usage:
    from inbox_core.utils.monitoring import init_sentry

    init_sentry()   # no-op unless SENTRY_DSN is configured
"""

import logging
import os
from typing import Optional, Dict, Any

import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.logging import LoggingIntegration
from sentry_sdk.integrations.pymongo import PyMongoIntegration

from inbox_core import __version__


logger = logging.getLogger(__name__)

_enabled = False


def init_sentry(
    dsn: Optional[str] = None,
    environment: Optional[str] = None,
    traces_sample_rate: float = 0.2,
) -> bool:
    """
    Initialize Sentry SDK with FastAPI, logging and pymongo integrations

    Args:
        dsn: Sentry DSN (or set SENTRY_DSN env var)
        environment: Environment name (or SENTRY_ENVIRONMENT, default production)
        traces_sample_rate: APM sampling rate (0.0 - 1.0)

    Returns:
        True if Sentry was initialized
    """
    global _enabled

    dsn = dsn or os.getenv("SENTRY_DSN")
    if not dsn:
        logger.info("SENTRY_DSN not configured. Error tracking disabled.")
        return False

    environment = environment or os.getenv("SENTRY_ENVIRONMENT", "production")
    traces_sample_rate = float(os.getenv("SENTRY_TRACES_SAMPLE_RATE", str(traces_sample_rate)))

    try:
        sentry_sdk.init(
            dsn=dsn,
            environment=environment,
            release=f"inbox-core@{__version__}",
            integrations=[
                FastApiIntegration(transaction_style="url"),
                LoggingIntegration(level=logging.INFO, event_level=logging.ERROR),
                PyMongoIntegration(),
            ],
            traces_sample_rate=traces_sample_rate,
            send_default_pii=False,
            max_breadcrumbs=50,
            before_send=_before_send_filter,
        )
    except Exception as e:
        logger.error(f"Failed to initialize Sentry: {e}")
        return False

    sentry_sdk.set_tag("service", "inbox-core")
    _enabled = True
    logger.info(f"Sentry initialized - Environment: {environment}")
    return True


def _before_send_filter(event: Dict[str, Any], hint: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    # Health checks are noise
    if "/api/health" in event.get("request", {}).get("url", ""):
        return None
    return event


def flush_events(timeout: float = 2.0) -> None:
    """Flush pending Sentry events before shutdown"""
    if _enabled:
        sentry_sdk.flush(timeout=timeout)


def is_enabled() -> bool:
    return _enabled
