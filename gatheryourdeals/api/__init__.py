"""API package exports."""

from gatheryourdeals.api.admin import router as admin_router
from gatheryourdeals.api.auth import router as auth_router
from gatheryourdeals.api.middleware import CorrelationIdMiddleware
from gatheryourdeals.api.routes import router

__all__ = ["admin_router", "auth_router", "router", "CorrelationIdMiddleware"]
