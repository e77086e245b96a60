"""Bookmark scan control endpoints, including the live event stream."""

import asyncio
import json
from collections.abc import AsyncIterator
from typing import Any, Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse

from ...scanner.bookmarks import JsonBookmarkSource
from ...scanner.events import EngineEvent
from ...scanner.types import ScannerError
from ...utils.logging import get_structured_logger
from ..auth import require_permission
from ..dependencies import get_scan_engine
from ..types import (
    APIError,
    ScanStartRequest,
    ScanStartResponse,
    ScanStatusResponse,
    ScanStopResponse,
)

logger = get_structured_logger(__name__)

router = APIRouter()

KEEPALIVE_SECONDS = 15.0


def format_sse(event: EngineEvent) -> str:
    """Render one engine event as a server-sent event frame."""
    payload = json.dumps(event.to_dict(), default=str)
    return f"event: {event.type}\ndata: {payload}\n\n"


async def event_stream(
    engine,
    request: Request,
    limit: Optional[int] = None,
    keepalive: float = KEEPALIVE_SECONDS,
) -> AsyncIterator[str]:
    """Yield engine events as SSE frames until the client disconnects.

    ``limit`` closes the stream after that many events.
    """
    queue: asyncio.Queue[EngineEvent] = asyncio.Queue()
    unsubscribe = engine.subscribe(queue.put_nowait)
    sent = 0

    try:
        while limit is None or sent < limit:
            if await request.is_disconnected():
                break
            try:
                event = await asyncio.wait_for(queue.get(), timeout=keepalive)
            except asyncio.TimeoutError:
                yield ": keep-alive\n\n"
                continue
            yield format_sse(event)
            sent += 1
    finally:
        unsubscribe()
        logger.debug("Event stream closed", events_sent=sent)


@router.post("/start", response_model=ScanStartResponse)
async def start_scan(
    request: ScanStartRequest,
    engine=Depends(get_scan_engine),
    current_user: dict[str, Any] = Depends(require_permission("write")),
) -> ScanStartResponse:
    """Start a background scan; progress is reported on ``/events``."""
    bookmarks = None
    if request.bookmarks is not None:
        bookmarks = [b.model_dump() for b in request.bookmarks]
    elif request.bookmarks_file:
        try:
            bookmarks = await JsonBookmarkSource(request.bookmarks_file).load()
        except ScannerError as e:
            raise APIError(str(e)) from e

    result = await engine.start_scan(
        bookmarks,
        bypass_cache=request.bypass_cache,
        link_checking=request.link_checking,
        safety_checking=request.safety_checking,
    )
    logger.info("Scan start requested", success=result.success, total=result.total)
    return ScanStartResponse(**result.to_dict())


@router.post("/stop", response_model=ScanStopResponse)
async def stop_scan(
    engine=Depends(get_scan_engine),
    current_user: dict[str, Any] = Depends(require_permission("write")),
) -> ScanStopResponse:
    return ScanStopResponse(**engine.stop_scan())


@router.get("/status", response_model=ScanStatusResponse)
async def scan_status(
    engine=Depends(get_scan_engine),
    current_user: dict[str, Any] = Depends(require_permission("read")),
) -> ScanStatusResponse:
    return ScanStatusResponse(**engine.get_scan_status().to_dict())


@router.get("/events")
async def scan_events(
    request: Request,
    limit: Optional[int] = None,
    engine=Depends(get_scan_engine),
    current_user: dict[str, Any] = Depends(require_permission("read")),
) -> StreamingResponse:
    """Server-sent stream of every engine event."""
    return StreamingResponse(
        event_stream(engine, request, limit=limit),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache"},
    )
