"""FastAPI dependency providers for API components."""

from typing import TYPE_CHECKING, Optional

from fastapi import HTTPException, Request, status

if TYPE_CHECKING:
    from ..scanner.engine import ScanEngine
    from ..scheduler.manager import BlocklistRefreshScheduler


async def get_scan_engine(request: Request) -> "ScanEngine":
    """Dependency to get the scan engine from app state."""
    engine = getattr(request.app.state, "engine", None)
    if engine is None:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Scan engine not initialized",
        )
    return engine


async def get_refresh_scheduler(request: Request) -> Optional["BlocklistRefreshScheduler"]:
    """Dependency to get the blocklist refresh scheduler, if running."""
    return getattr(request.app.state, "scheduler", None)
