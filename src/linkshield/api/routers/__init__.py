"""API routers for different endpoint groups."""

from .blocklist import router as blocklist_router
from .cache import router as cache_router
from .links import router as links_router
from .safety import router as safety_router
from .scan import router as scan_router
from .system import router as system_router
from .whitelist import router as whitelist_router

__all__ = [
    "links_router",
    "safety_router",
    "scan_router",
    "blocklist_router",
    "cache_router",
    "whitelist_router",
    "system_router",
]
