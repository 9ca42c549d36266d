"""
Main FastAPI application for the inbox assignment and campaign state service
"""
import logging
from datetime import timedelta
from fastapi import FastAPI
from contextlib import asynccontextmanager
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from inbox_core import __version__
from inbox_core.config import settings
from inbox_core.database import ensure_indexes, close_connection, MongoStore
from inbox_core.api import assignment_router, sync_router, health_router
from inbox_core.middleware.rate_limiter import limiter
from inbox_core.scheduling import ActiveQueueRegistry
from inbox_core.security.error_handler import register_exception_handlers
from inbox_core.services import AuditLogger, ConversationAssignmentService, StateSynchronizer
from inbox_core.utils.monitoring import init_sentry, flush_events
from inbox_core.utils.secure_logging import configure_secure_logging

configure_secure_logging(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format_type=settings.log_format,
    include_trace_id=True,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown events"""
    logger.info("Starting inbox assignment service...")

    init_sentry(dsn=settings.sentry_dsn, environment=settings.environment)

    await ensure_indexes()
    logger.info("Database indexes created/verified")

    store = MongoStore()
    audit_logger = AuditLogger(store)
    queue_registry = ActiveQueueRegistry()

    app.state.store = store
    app.state.queue_registry = queue_registry
    app.state.assignment_service = ConversationAssignmentService(store, audit_logger)
    app.state.state_synchronizer = StateSynchronizer(
        store,
        queue_registry,
        sync_interval=settings.state_sync_interval_seconds,
        stale_lock_after=timedelta(minutes=settings.stale_lock_minutes),
        auto_correct_on_sync=settings.state_sync_auto_correct,
    )

    # Campaigns interrupted by the previous shutdown/crash go to paused
    try:
        restored = await app.state.state_synchronizer.restore_running_campaigns()
        if restored:
            logger.info(
                f"Campaigns restored after restart: {', '.join(c.name or c.id for c in restored)}"
            )
    except Exception as e:
        logger.error(f"Campaign restoration failed: {e}", exc_info=True)

    if settings.state_sync_enabled:
        app.state.state_synchronizer.start_sync()

    yield

    logger.info("Shutting down...")

    if app.state.state_synchronizer.is_running:
        await app.state.state_synchronizer.stop_sync()

    flush_events(timeout=2.0)

    await close_connection()
    logger.info("Database connection closed")


app = FastAPI(
    title="Inbox Assignment Service",
    description="Conversation routing to human agents and campaign state synchronization",
    version=__version__,
    lifespan=lifespan
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_middleware(SlowAPIMiddleware)

register_exception_handlers(app)

app.include_router(health_router)
app.include_router(assignment_router)
app.include_router(sync_router)


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "name": "Inbox Assignment Service",
        "version": __version__,
        "status": "running",
        "endpoints": {
            "health": "/api/health",
            "available_agents": "GET /api/inboxes/{inbox_id}/available-agents",
            "auto_assign": "POST /api/conversations/{id}/auto-assign",
            "pickup": "POST /api/conversations/{id}/pickup",
            "transfer": "POST /api/conversations/{id}/transfer",
            "release": "POST /api/conversations/{id}/release",
            "manual_assign": "POST /api/conversations/{id}/assign",
            "campaign_sync": "GET /api/campaign-sync/stats",
        }
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.api_reload
    )
