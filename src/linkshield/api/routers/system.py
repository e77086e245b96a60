"""System status endpoints."""

from typing import Any

from fastapi import APIRouter, Depends

from ...scanner.cache import LINK_NAMESPACE, SAFETY_NAMESPACE
from ..auth import require_permission
from ..dependencies import get_refresh_scheduler, get_scan_engine

router = APIRouter()


@router.get("/status")
async def system_status(
    engine=Depends(get_scan_engine),
    scheduler=Depends(get_refresh_scheduler),
    current_user: dict[str, Any] = Depends(require_permission("read")),
) -> dict:
    """Combined view of scan, blocklist, cache and scheduler state."""
    next_run = scheduler.next_run_time() if scheduler else None

    return {
        "scan": engine.get_scan_status().to_dict(),
        "blocklist": engine.blocklist_status().to_dict(),
        "cache": {
            "link": await engine.cache.size(LINK_NAMESPACE),
            "safety": await engine.cache.size(SAFETY_NAMESPACE),
        },
        "scheduler": {
            "running": bool(scheduler and scheduler.is_running),
            "next_refresh": next_run.isoformat() if next_run else None,
        },
        "limiter": {"running": engine.limiter.running, "waiting": engine.limiter.waiting},
    }
