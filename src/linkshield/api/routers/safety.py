"""URL safety endpoints."""

from typing import Any

from fastapi import APIRouter, Depends, Query

from ...utils.logging import get_structured_logger
from ..auth import require_permission
from ..dependencies import get_scan_engine
from ..types import SafetyCheckResponse, UrlCheckRequest

logger = get_structured_logger(__name__)

router = APIRouter()


@router.post("/check", response_model=SafetyCheckResponse)
async def check_safety(
    request: UrlCheckRequest,
    engine=Depends(get_scan_engine),
    current_user: dict[str, Any] = Depends(require_permission("read")),
) -> SafetyCheckResponse:
    """Run the layered safety evaluation for one URL."""
    result = await engine.check_url_safety(request.url, request.bypass_cache)
    logger.debug("Safety check served", url=request.url, status=result.status.value)
    return SafetyCheckResponse(
        url=request.url, status=result.status.value, sources=list(result.sources)
    )


@router.get("/history")
async def safety_history(
    url: str = Query(..., min_length=1),
    engine=Depends(get_scan_engine),
    current_user: dict[str, Any] = Depends(require_permission("read")),
) -> dict:
    """Recent safety verdicts recorded for ``url``, oldest first."""
    return {"url": url, "history": await engine.get_safety_history(url)}
