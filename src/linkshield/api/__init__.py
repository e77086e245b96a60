"""FastAPI web interface components."""

from .app import create_app, main
from .auth import get_current_user, require_permission
from .middleware import setup_middleware
from .types import APIError, ErrorResponse, HealthStatus

__all__ = [
    "APIError",
    "HealthStatus",
    "ErrorResponse",
    "create_app",
    "main",
    "get_current_user",
    "require_permission",
    "setup_middleware",
]
