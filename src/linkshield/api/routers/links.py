"""Link reachability endpoints."""

from typing import Any

from fastapi import APIRouter, Depends

from ...utils.logging import get_structured_logger
from ..auth import require_permission
from ..dependencies import get_scan_engine
from ..types import LinkCheckResponse, UrlCheckRequest

logger = get_structured_logger(__name__)

router = APIRouter()


@router.post("/check", response_model=LinkCheckResponse)
async def check_link(
    request: UrlCheckRequest,
    engine=Depends(get_scan_engine),
    current_user: dict[str, Any] = Depends(require_permission("read")),
) -> LinkCheckResponse:
    """Classify one URL as live, dead or parked."""
    status = await engine.check_link_status(request.url, request.bypass_cache)
    logger.debug("Link check served", url=request.url, status=status.value)
    return LinkCheckResponse(url=request.url, status=status.value)
