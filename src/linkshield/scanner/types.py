"""Type definitions for the scan engine."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Optional


class ScannerError(Exception):
    """Base exception for scan-engine errors."""

    pass


class ValidationRejection(ScannerError):
    """A URL was rejected before any network access."""

    def __init__(self, reason: str, url: str = ""):
        super().__init__(reason)
        self.reason = reason
        self.url = url


class NetworkFailure(ScannerError):
    """Timeout, abort or connection error talking to a remote host."""

    def __init__(self, message: str, timed_out: bool = False):
        super().__init__(message)
        self.timed_out = timed_out


class SourceDownloadFailure(ScannerError):
    """A single blocklist source could not be downloaded."""

    def __init__(self, source_name: str, message: str):
        super().__init__(f"{source_name}: {message}")
        self.source_name = source_name


class RateLimited(ScannerError):
    """An external reputation API signalled throttling."""

    def __init__(self, detector: str):
        super().__init__(f"{detector} rate limited")
        self.detector = detector


class LinkStatus(str, enum.Enum):
    """Reachability verdict for one bookmark."""

    LIVE = "live"
    DEAD = "dead"
    PARKED = "parked"
    CHECKING = "checking"
    UNKNOWN = "unknown"


class SafetyStatus(str, enum.Enum):
    """Security verdict for one bookmark."""

    SAFE = "safe"
    WARNING = "warning"
    UNSAFE = "unsafe"
    UNKNOWN = "unknown"

    @property
    def severity(self) -> int:
        """Rank used for escalation; unknown never outranks a finding."""
        return _SEVERITY[self]


_SEVERITY = {
    SafetyStatus.UNKNOWN: -1,
    SafetyStatus.SAFE: 0,
    SafetyStatus.WARNING: 1,
    SafetyStatus.UNSAFE: 2,
}


def worst_status(*statuses: SafetyStatus) -> SafetyStatus:
    """Highest-severity status among definite findings, safe when there are none."""
    result = SafetyStatus.SAFE
    for status in statuses:
        if status.severity > result.severity:
            result = status
    return result


@dataclass
class SafetyResult:
    """Safety verdict plus every detector that contributed to it."""

    status: SafetyStatus
    sources: list[str] = field(default_factory=list)

    def to_payload(self) -> dict[str, Any]:
        return {"kind": "safety", "status": self.status.value, "sources": list(self.sources)}

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "SafetyResult":
        return cls(
            status=SafetyStatus(payload["status"]),
            sources=list(payload.get("sources", [])),
        )

    def to_dict(self) -> dict[str, Any]:
        return {"status": self.status.value, "sources": list(self.sources)}


@dataclass(frozen=True)
class UrlValidation:
    """Outcome of validating one raw URL string."""

    valid: bool
    url: str = ""
    privileged: bool = False
    privileged_label: str = ""
    reason: str = ""


@dataclass(frozen=True)
class BookmarkRef:
    """Read-only view of one bookmark handed to the scan engine."""

    id: str
    url: str
    title: str = ""


@dataclass
class BookmarkScanResult:
    """Per-bookmark record delivered in batched scan results."""

    id: str
    url: str
    link_status: Optional[LinkStatus] = None
    safety_status: Optional[SafetyStatus] = None
    safety_sources: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "url": self.url,
            "linkStatus": self.link_status.value if self.link_status else None,
            "safetyStatus": self.safety_status.value if self.safety_status else None,
            "safetySources": list(self.safety_sources),
        }


class ScanPhase(str, enum.Enum):
    """Orchestrator lifecycle."""

    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


@dataclass
class ScanState:
    """Mutable state of the active scan, owned by the orchestrator."""

    queue: list[BookmarkRef] = field(default_factory=list)
    scanned: int = 0
    total: int = 0
    cancelled: bool = False
    seen: set[str] = field(default_factory=set)


@dataclass
class ScanStartResult:
    """Reply to a start-scan request."""

    success: bool
    total: int = 0
    message: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"success": self.success, "total": self.total}
        if self.message:
            data["message"] = self.message
        return data


@dataclass
class ScanStatusSnapshot:
    """Point-in-time view of the orchestrator."""

    is_scanning: bool
    scanned: int
    total: int
    phase: ScanPhase = ScanPhase.IDLE

    def to_dict(self) -> dict[str, Any]:
        return {
            "isScanning": self.is_scanning,
            "scanned": self.scanned,
            "total": self.total,
            "phase": self.phase.value,
        }


@dataclass
class BlocklistStatus:
    """Summary of the current blocklist index."""

    domains: int
    last_update: Optional[float]
    loading: bool
    sources: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "domains": self.domains,
            "lastUpdate": self.last_update,
            "loading": self.loading,
            "sources": self.sources,
        }
