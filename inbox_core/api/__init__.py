"""
API endpoints
"""
from .assignment_routes import router as assignment_router
from .sync_routes import router as sync_router
from .health_routes import router as health_router

__all__ = [
    "assignment_router",
    "sync_router",
    "health_router",
]
