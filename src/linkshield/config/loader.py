"""YAML configuration loading for feed tables and domain lists."""

from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import ValidationError

from ..utils.logging import get_structured_logger
from .settings import AppSettings, BlocklistSourceConfig
from .types import ConfigLoadError, ConfigValidationError

logger = get_structured_logger(__name__)


class ConfigLoader:
    """Loads optional overrides from a YAML file.

    Recognised top-level keys::

        blocklist_sources:    # replaces the default feed table
          - {name: ..., url: ..., format: hosts|domains|urlhaus_text}
        trusted_domains: [...]  # added to the built-in trusted platforms
        whitelist: [...]        # hostnames seeded into the user whitelist
    """

    def __init__(self, config_file: Optional[Path] = None):
        self.config_file = Path(config_file) if config_file else Path("linkshield.yaml")
        self._cache: Optional[dict[str, Any]] = None

    def load_yaml_config(self) -> dict[str, Any]:
        """Load configuration from YAML file."""
        if self._cache is not None:
            return self._cache

        if not self.config_file.exists():
            logger.debug("Config file not found, using defaults", path=str(self.config_file))
            self._cache = {}
            return self._cache

        try:
            with open(self.config_file, encoding="utf-8") as f:
                config = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigLoadError(f"Failed to parse YAML config: {str(e)}") from e
        except OSError as e:
            raise ConfigLoadError(f"Failed to load config file: {str(e)}") from e

        if not isinstance(config, dict):
            raise ConfigLoadError("Config file must contain a mapping at the top level")

        logger.info("Loaded configuration", path=str(self.config_file))
        self._cache = config
        return config

    def get_blocklist_sources(self) -> Optional[list[BlocklistSourceConfig]]:
        """Feed table override, or None to keep the defaults."""
        data = self.load_yaml_config().get("blocklist_sources")
        if data is None:
            return None

        try:
            return [BlocklistSourceConfig(**entry) for entry in data]
        except (TypeError, ValidationError) as e:
            raise ConfigValidationError(f"Invalid blocklist source: {str(e)}") from e

    def get_trusted_domains(self) -> list[str]:
        """Extra trusted platforms."""
        return self._get_host_list("trusted_domains")

    def get_whitelist(self) -> list[str]:
        """Hostnames to seed into the user whitelist."""
        return self._get_host_list("whitelist")

    def apply_to_settings(self, settings: AppSettings) -> AppSettings:
        """Return a copy of ``settings`` with file overrides applied."""
        sources = self.get_blocklist_sources()
        if sources is None:
            return settings

        blocklist = settings.blocklist.model_copy(update={"sources": sources})
        return settings.model_copy(update={"blocklist": blocklist})

    def _get_host_list(self, key: str) -> list[str]:
        values = self.load_yaml_config().get(key) or []
        if not isinstance(values, list):
            raise ConfigValidationError(f"'{key}' must be a list of hostnames")
        return [str(v).strip().lower() for v in values if str(v).strip()]
