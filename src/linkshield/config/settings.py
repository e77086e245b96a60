"""Pydantic settings models for configuration management."""

from functools import lru_cache
from typing import Optional

from pydantic import BaseModel, Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .types import ConfigError

URLHAUS_TEXT_URL = "https://urlhaus.abuse.ch/downloads/text/"
CORS_PROXY_PREFIX = "https://api.codetabs.com/v1/proxy?quest="


class BlocklistSourceConfig(BaseModel):
    """One community blocklist feed."""

    name: str
    url: str
    format: str = "domains"

    @field_validator("name", "url")
    @classmethod
    def validate_not_empty(cls, v):
        if not v or not v.strip():
            raise ValueError("Blocklist source name and url cannot be empty")
        return v.strip()

    @field_validator("format")
    @classmethod
    def validate_format(cls, v):
        return (v or "domains").strip().lower()


def default_blocklist_sources() -> list[BlocklistSourceConfig]:
    """Production feed table, all free and keyless."""
    from urllib.parse import quote

    return [
        BlocklistSourceConfig(
            name="URLhaus (Active)",
            url=CORS_PROXY_PREFIX + quote(URLHAUS_TEXT_URL, safe=""),
            format="urlhaus_text",
        ),
        BlocklistSourceConfig(
            name="URLhaus (Historical)",
            url="https://curbengh.github.io/malware-filter/urlhaus-filter.txt",
            format="domains",
        ),
        BlocklistSourceConfig(
            name="BlockList Project (Malware)",
            url="https://blocklistproject.github.io/Lists/malware.txt",
            format="hosts",
        ),
        BlocklistSourceConfig(
            name="BlockList Project (Phishing)",
            url="https://blocklistproject.github.io/Lists/phishing.txt",
            format="hosts",
        ),
        BlocklistSourceConfig(
            name="BlockList Project (Scam)",
            url="https://blocklistproject.github.io/Lists/scam.txt",
            format="hosts",
        ),
        BlocklistSourceConfig(
            name="HaGeZi TIF",
            url="https://cdn.jsdelivr.net/gh/hagezi/dns-blocklists@latest/domains/tif.txt",
            format="domains",
        ),
        BlocklistSourceConfig(
            name="Phishing-Filter",
            url="https://malware-filter.gitlab.io/malware-filter/phishing-filter-hosts.txt",
            format="hosts",
        ),
        BlocklistSourceConfig(
            name="OISD Big",
            url="https://raw.githubusercontent.com/sjhgvr/oisd/refs/heads/main/domainswild2_big.txt",
            format="domains",
        ),
    ]


class DatabaseSettings(BaseModel):
    """Persistence configuration for caches and engine state."""

    url: str = "sqlite:///./data/linkshield.db"
    echo: bool = False
    pool_size: int = 10
    max_overflow: int = 20

    @field_validator("url")
    @classmethod
    def validate_url(cls, v):
        if not v:
            raise ValueError("Database URL cannot be empty")
        return v


class ScanSettings(BaseModel):
    """Batching and concurrency for background scans."""

    batch_size: int = 10
    batch_delay: float = 0.1  # seconds
    max_concurrent: int = 10
    result_batch_size: int = 10
    result_flush_timeout: float = 0.5  # seconds
    blocklist_ready_timeout: float = 600.0  # seconds
    link_checking_enabled: bool = True
    safety_checking_enabled: bool = True

    @field_validator("batch_size", "max_concurrent", "result_batch_size")
    @classmethod
    def validate_positive(cls, v):
        if v <= 0:
            raise ValueError("Batch sizes and concurrency must be positive")
        return v

    @field_validator("batch_delay", "result_flush_timeout", "blocklist_ready_timeout")
    @classmethod
    def validate_non_negative(cls, v):
        if v < 0:
            raise ValueError("Delays cannot be negative")
        return v


class LinkCheckSettings(BaseModel):
    """Reachability probe configuration."""

    timeout: float = 5.0  # seconds
    user_agent: str = "Mozilla/5.0 (compatible; LinkShield/0.1)"

    @field_validator("timeout")
    @classmethod
    def validate_timeout(cls, v):
        if v <= 0:
            raise ValueError("Timeout must be positive")
        return v


class BlocklistSettings(BaseModel):
    """Threat blocklist feed configuration."""

    download_timeout: float = 60.0  # seconds
    sources: list[BlocklistSourceConfig] = Field(
        default_factory=default_blocklist_sources
    )

    @field_validator("download_timeout")
    @classmethod
    def validate_timeout(cls, v):
        if v <= 0:
            raise ValueError("Timeout must be positive")
        return v


class ReputationSettings(BaseModel):
    """External reputation API configuration. Empty keys disable a layer."""

    google_api_key: SecretStr = Field(default=SecretStr(""))
    yandex_api_key: SecretStr = Field(default=SecretStr(""))
    virustotal_api_key: SecretStr = Field(default=SecretStr(""))
    urlvoid_enabled: bool = False
    google_timeout: float = 5.0
    yandex_timeout: float = 5.0
    virustotal_timeout: float = 8.0
    urlvoid_timeout: float = 5.0
    client_id: str = "linkshield"
    client_version: str = "0.1.0"

    @field_validator(
        "google_timeout", "yandex_timeout", "virustotal_timeout", "urlvoid_timeout"
    )
    @classmethod
    def validate_timeout(cls, v):
        if v <= 0:
            raise ValueError("Timeout must be positive")
        return v


class HeuristicSettings(BaseModel):
    """Local suspicious-pattern checks."""

    probe_https_redirect: bool = True
    redirect_probe_timeout: float = 5.0


class CacheSettings(BaseModel):
    """Result cache configuration."""

    ttl_days: float = 7.0

    @field_validator("ttl_days")
    @classmethod
    def validate_ttl(cls, v):
        if v <= 0:
            raise ValueError("Cache TTL must be positive")
        return v


class SchedulerSettings(BaseModel):
    """Background blocklist refresh schedule."""

    enabled: bool = True
    refresh_cron: str = "0 3 * * *"  # daily, 03:00 local time

    @field_validator("refresh_cron")
    @classmethod
    def validate_cron(cls, v):
        if len(v.split()) != 5:
            raise ValueError("refresh_cron must have five fields")
        return v


class ApiSettings(BaseModel):
    """HTTP API server configuration."""

    host: str = "127.0.0.1"
    port: int = 8000
    development: bool = False
    api_tokens: list[str] = Field(default_factory=lambda: ["dev-token-12345"])


class AppSettings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_prefix="LINKSHIELD_",
        env_file=".env",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    debug: bool = False
    log_level: str = "INFO"
    json_logs: bool = False
    config_file: Optional[str] = None

    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    scan: ScanSettings = Field(default_factory=ScanSettings)
    link_check: LinkCheckSettings = Field(default_factory=LinkCheckSettings)
    blocklist: BlocklistSettings = Field(default_factory=BlocklistSettings)
    reputation: ReputationSettings = Field(default_factory=ReputationSettings)
    heuristics: HeuristicSettings = Field(default_factory=HeuristicSettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)
    api: ApiSettings = Field(default_factory=ApiSettings)
    scheduler: SchedulerSettings = Field(default_factory=SchedulerSettings)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Log level must be one of: {valid_levels}")
        return v.upper()


@lru_cache
def get_settings() -> AppSettings:
    """Get the application settings instance."""
    try:
        return AppSettings()
    except Exception as e:
        raise ConfigError(f"Failed to load settings: {str(e)}") from e


def reload_settings() -> AppSettings:
    """Force reload of settings (useful for testing)."""
    get_settings.cache_clear()
    return get_settings()
