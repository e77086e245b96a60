"""Threat blocklist endpoints."""

from typing import Any

from fastapi import APIRouter, Depends, Query

from ...scanner.types import ValidationRejection
from ...utils.logging import get_structured_logger
from ..auth import require_permission
from ..dependencies import get_scan_engine
from ..types import (
    APIError,
    BlocklistLookupResponse,
    BlocklistRefreshResponse,
    BlocklistStatusResponse,
)

logger = get_structured_logger(__name__)

router = APIRouter()


@router.get("/status", response_model=BlocklistStatusResponse)
async def blocklist_status(
    engine=Depends(get_scan_engine),
    current_user: dict[str, Any] = Depends(require_permission("read")),
) -> BlocklistStatusResponse:
    return BlocklistStatusResponse(**engine.blocklist_status().to_dict())


@router.post("/refresh", response_model=BlocklistRefreshResponse)
async def refresh_blocklist(
    engine=Depends(get_scan_engine),
    current_user: dict[str, Any] = Depends(require_permission("write")),
) -> BlocklistRefreshResponse:
    """Download every source and rebuild the index."""
    logger.info("Blocklist refresh requested", user_id=current_user["id"])
    success = await engine.refresh_blocklist()
    return BlocklistRefreshResponse(
        success=success,
        status=BlocklistStatusResponse(**engine.blocklist_status().to_dict()),
    )


@router.get("/lookup", response_model=BlocklistLookupResponse)
async def lookup_blocklist(
    url: str = Query(..., min_length=1),
    engine=Depends(get_scan_engine),
    current_user: dict[str, Any] = Depends(require_permission("read")),
) -> BlocklistLookupResponse:
    try:
        sources = engine.lookup_blocklist(url)
    except ValidationRejection as e:
        raise APIError(e.reason) from e

    return BlocklistLookupResponse(url=url, listed=bool(sources), sources=sources)
