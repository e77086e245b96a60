"""Result cache endpoints."""

from typing import Any, Optional

from fastapi import APIRouter, Depends

from ...scanner.cache import LINK_NAMESPACE, SAFETY_NAMESPACE
from ...utils.logging import get_structured_logger
from ..auth import require_permission
from ..dependencies import get_scan_engine
from ..types import APIError, CacheClearResponse

logger = get_structured_logger(__name__)

router = APIRouter()

CACHE_KINDS = {"link": LINK_NAMESPACE, "safety": SAFETY_NAMESPACE}


@router.delete("", response_model=CacheClearResponse)
async def clear_cache(
    kind: Optional[str] = None,
    engine=Depends(get_scan_engine),
    current_user: dict[str, Any] = Depends(require_permission("write")),
) -> CacheClearResponse:
    """Drop cached verdicts; ``kind`` limits it to ``link`` or ``safety``."""
    namespace = None
    if kind is not None:
        if kind not in CACHE_KINDS:
            raise APIError(f"Unknown cache kind: {kind}")
        namespace = CACHE_KINDS[kind]

    cleared = await engine.clear_cache(namespace)
    logger.info("Cache cleared via API", namespace=namespace, cleared=cleared)
    return CacheClearResponse(cleared=cleared, namespace=kind)
