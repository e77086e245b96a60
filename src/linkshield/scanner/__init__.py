"""Scan engine: link reachability and safety classification for bookmarks."""

from ..utils.async_utils import ConcurrencyLimiter
from .batcher import ResultBatcher
from .blocklist import (
    BlocklistAggregator,
    BlocklistIndex,
    build_index,
    normalize_entry,
    parse_blocklist_line,
)
from .bookmarks import BookmarkSource, JsonBookmarkSource, flatten_bookmarks
from .cache import LINK_NAMESPACE, SAFETY_NAMESPACE, ResultCache
from .engine import ScanEngine, cleanup_engine, get_engine
from .events import EngineEvent, EventBus
from .heuristics import SuspiciousPatternChecker
from .history import SafetyHistory
from .link_checker import LinkChecker
from .orchestrator import ScanOrchestrator
from .reputation import (
    GoogleSafeBrowsingCheck,
    ReputationCheck,
    URLVoidCheck,
    VirusTotalCheck,
    YandexSafeBrowsingCheck,
    build_reputation_checks,
)
from .safety import SafetyEvaluator
from .types import (
    BlocklistStatus,
    BookmarkRef,
    BookmarkScanResult,
    LinkStatus,
    NetworkFailure,
    RateLimited,
    SafetyResult,
    SafetyStatus,
    ScannerError,
    ScanPhase,
    ScanStartResult,
    ScanState,
    ScanStatusSnapshot,
    SourceDownloadFailure,
    UrlValidation,
    ValidationRejection,
)
from .validator import ensure_valid_url, sanitize_url, validate_url
from .whitelist import UserWhitelist

__all__ = [
    # Types
    "LinkStatus",
    "SafetyStatus",
    "SafetyResult",
    "BookmarkRef",
    "BookmarkScanResult",
    "ScanPhase",
    "ScanState",
    "ScanStartResult",
    "ScanStatusSnapshot",
    "BlocklistStatus",
    "UrlValidation",
    "ScannerError",
    "ValidationRejection",
    "NetworkFailure",
    "SourceDownloadFailure",
    "RateLimited",
    # Components
    "validate_url",
    "ensure_valid_url",
    "sanitize_url",
    "ConcurrencyLimiter",
    "ResultCache",
    "LINK_NAMESPACE",
    "SAFETY_NAMESPACE",
    "LinkChecker",
    "BlocklistAggregator",
    "BlocklistIndex",
    "build_index",
    "normalize_entry",
    "parse_blocklist_line",
    "ReputationCheck",
    "GoogleSafeBrowsingCheck",
    "YandexSafeBrowsingCheck",
    "VirusTotalCheck",
    "URLVoidCheck",
    "build_reputation_checks",
    "SuspiciousPatternChecker",
    "SafetyEvaluator",
    "SafetyHistory",
    "UserWhitelist",
    "EventBus",
    "EngineEvent",
    "ResultBatcher",
    "BookmarkSource",
    "JsonBookmarkSource",
    "flatten_bookmarks",
    "ScanOrchestrator",
    # Engine
    "ScanEngine",
    "get_engine",
    "cleanup_engine",
]
