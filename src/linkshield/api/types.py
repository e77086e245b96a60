"""Type definitions for the API module."""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


class APIError(Exception):
    """Base exception for API-related errors."""

    pass


class HealthStatus(str, Enum):
    """Health check status values."""

    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"
    DEGRADED = "degraded"


class HealthCheckResponse(BaseModel):
    """Response model for health checks."""

    status: HealthStatus
    timestamp: datetime
    version: str
    uptime_seconds: float
    checks: dict[str, bool] = {}
    message: Optional[str] = None


class UrlCheckRequest(BaseModel):
    """Request body for single-URL checks."""

    url: str
    bypass_cache: bool = False


class LinkCheckResponse(BaseModel):
    url: str
    status: str


class SafetyCheckResponse(BaseModel):
    url: str
    status: str
    sources: list[str]


class BookmarkModel(BaseModel):
    """A bookmark as submitted by the UI layer."""

    id: str
    url: str = ""
    title: str = ""


class ScanStartRequest(BaseModel):
    """Request body for starting a scan.

    Either an explicit bookmark list or a path to a bookmarks JSON file;
    with neither, the server's configured bookmark source is scanned.
    """

    bookmarks: Optional[list[BookmarkModel]] = None
    bookmarks_file: Optional[str] = None
    bypass_cache: bool = False
    link_checking: Optional[bool] = None
    safety_checking: Optional[bool] = None


class ScanStartResponse(BaseModel):
    success: bool
    total: int
    message: Optional[str] = None


class ScanStopResponse(BaseModel):
    success: bool
    message: Optional[str] = None


class ScanStatusResponse(BaseModel):
    isScanning: bool
    scanned: int
    total: int
    phase: str


class BlocklistStatusResponse(BaseModel):
    domains: int
    lastUpdate: Optional[float] = None
    loading: bool
    sources: int


class BlocklistRefreshResponse(BaseModel):
    success: bool
    status: BlocklistStatusResponse


class BlocklistLookupResponse(BaseModel):
    url: str
    listed: bool
    sources: list[str]


class CacheClearResponse(BaseModel):
    cleared: int
    namespace: Optional[str] = None


class WhitelistRequest(BaseModel):
    host: str


class WhitelistResponse(BaseModel):
    hosts: list[str]


class ErrorResponse(BaseModel):
    """Response model for API errors."""

    error: str
    message: str
    details: Optional[dict[str, Any]] = None
    timestamp: datetime = Field(default_factory=datetime.utcnow)
