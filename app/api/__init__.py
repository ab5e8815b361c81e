"""API module."""

from app.api.admin import router as admin_router
from app.api.routes import router

__all__ = ["router", "admin_router"]
