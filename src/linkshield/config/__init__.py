"""Configuration management system for LinkShield."""

from .loader import ConfigLoader
from .settings import (
    ApiSettings,
    AppSettings,
    BlocklistSettings,
    BlocklistSourceConfig,
    CacheSettings,
    DatabaseSettings,
    HeuristicSettings,
    LinkCheckSettings,
    ReputationSettings,
    ScanSettings,
    SchedulerSettings,
    default_blocklist_sources,
    get_settings,
    reload_settings,
)
from .types import ConfigError, ConfigLoadError, ConfigValidationError

__all__ = [
    "AppSettings",
    "ApiSettings",
    "BlocklistSettings",
    "BlocklistSourceConfig",
    "CacheSettings",
    "DatabaseSettings",
    "HeuristicSettings",
    "LinkCheckSettings",
    "ReputationSettings",
    "ScanSettings",
    "SchedulerSettings",
    "default_blocklist_sources",
    "get_settings",
    "reload_settings",
    "ConfigLoader",
    "ConfigError",
    "ConfigLoadError",
    "ConfigValidationError",
]
