"""User whitelist endpoints."""

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, status

from ...utils.logging import get_structured_logger
from ..auth import require_permission
from ..dependencies import get_scan_engine
from ..types import APIError, WhitelistRequest, WhitelistResponse

logger = get_structured_logger(__name__)

router = APIRouter()


@router.get("", response_model=WhitelistResponse)
async def list_whitelist(
    engine=Depends(get_scan_engine),
    current_user: dict[str, Any] = Depends(require_permission("read")),
) -> WhitelistResponse:
    return WhitelistResponse(hosts=await engine.list_whitelist())


@router.post("", response_model=WhitelistResponse, status_code=status.HTTP_201_CREATED)
async def add_to_whitelist(
    request: WhitelistRequest,
    engine=Depends(get_scan_engine),
    current_user: dict[str, Any] = Depends(require_permission("write")),
) -> WhitelistResponse:
    try:
        host = await engine.add_to_whitelist(request.host)
    except ValueError as e:
        raise APIError(str(e)) from e

    logger.info("Host whitelisted via API", host=host)
    return WhitelistResponse(hosts=await engine.list_whitelist())


@router.delete("/{host}", response_model=WhitelistResponse)
async def remove_from_whitelist(
    host: str,
    engine=Depends(get_scan_engine),
    current_user: dict[str, Any] = Depends(require_permission("write")),
) -> WhitelistResponse:
    if not await engine.remove_from_whitelist(host):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Host not whitelisted: {host}",
        )
    return WhitelistResponse(hosts=await engine.list_whitelist())
