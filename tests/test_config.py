"""Tests for settings and YAML configuration loading."""

import pytest
from pydantic import SecretStr, ValidationError

from linkshield.config import (
    AppSettings,
    CacheSettings,
    ConfigLoader,
    ConfigLoadError,
    ConfigValidationError,
    ScanSettings,
    SchedulerSettings,
    default_blocklist_sources,
)
from linkshield.config.settings import BlocklistSourceConfig


class TestSettings:
    def test_defaults(self):
        settings = AppSettings()
        assert settings.scan.batch_size == 10
        assert settings.cache.ttl_days == 7.0
        assert settings.reputation.urlvoid_enabled is False
        assert settings.reputation.google_api_key.get_secret_value() == ""
        assert len(settings.blocklist.sources) == len(default_blocklist_sources())

    def test_unset_api_keys_are_secret(self):
        reputation = AppSettings().reputation
        for key in (
            reputation.google_api_key,
            reputation.yandex_api_key,
            reputation.virustotal_api_key,
        ):
            assert isinstance(key, SecretStr)
            assert key.get_secret_value() == ""

    def test_default_sources(self):
        sources = default_blocklist_sources()
        formats = {source.format for source in sources}
        assert formats == {"hosts", "domains", "urlhaus_text"}
        assert sources[0].name == "URLhaus (Active)"
        assert sources[0].url.startswith("https://api.codetabs.com/v1/proxy?quest=")

    @pytest.mark.parametrize(
        "factory",
        [
            lambda: ScanSettings(batch_size=0),
            lambda: ScanSettings(batch_delay=-1),
            lambda: CacheSettings(ttl_days=0),
            lambda: SchedulerSettings(refresh_cron="daily"),
            lambda: AppSettings(log_level="LOUD"),
            lambda: BlocklistSourceConfig(name=" ", url="https://x.example/"),
        ],
    )
    def test_invalid_values_rejected(self, factory):
        with pytest.raises(ValidationError):
            factory()

    def test_log_level_normalized(self):
        assert AppSettings(log_level="debug").log_level == "DEBUG"

    def test_source_format_normalized(self):
        source = BlocklistSourceConfig(name="A", url="https://a.example/", format=" HOSTS ")
        assert source.format == "hosts"

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("LINKSHIELD_SCAN__BATCH_SIZE", "25")
        monkeypatch.setenv("LINKSHIELD_REPUTATION__VIRUSTOTAL_API_KEY", "vt-secret")
        settings = AppSettings()
        assert settings.scan.batch_size == 25
        assert settings.reputation.virustotal_api_key.get_secret_value() == "vt-secret"


class TestConfigLoader:
    def write(self, tmp_path, text):
        path = tmp_path / "linkshield.yaml"
        path.write_text(text, encoding="utf-8")
        return ConfigLoader(path)

    def test_missing_file_uses_defaults(self, tmp_path):
        loader = ConfigLoader(tmp_path / "absent.yaml")
        settings = AppSettings()
        assert loader.load_yaml_config() == {}
        assert loader.get_trusted_domains() == []
        assert loader.apply_to_settings(settings) is settings

    def test_overrides(self, tmp_path):
        loader = self.write(
            tmp_path,
            "blocklist_sources:\n"
            "  - name: Local\n"
            "    url: https://lists.example/local.txt\n"
            "    format: hosts\n"
            "trusted_domains: [Intranet.Example]\n"
            "whitelist:\n"
            "  - docs.example\n",
        )
        settings = loader.apply_to_settings(AppSettings())

        assert [s.name for s in settings.blocklist.sources] == ["Local"]
        assert settings.blocklist.sources[0].format == "hosts"
        assert loader.get_trusted_domains() == ["intranet.example"]
        assert loader.get_whitelist() == ["docs.example"]

    def test_malformed_yaml(self, tmp_path):
        loader = self.write(tmp_path, "blocklist_sources: [unclosed\n")
        with pytest.raises(ConfigLoadError):
            loader.load_yaml_config()

    def test_top_level_must_be_mapping(self, tmp_path):
        loader = self.write(tmp_path, "- just\n- a list\n")
        with pytest.raises(ConfigLoadError):
            loader.load_yaml_config()

    def test_invalid_source(self, tmp_path):
        loader = self.write(tmp_path, "blocklist_sources:\n  - name: NoUrl\n")
        with pytest.raises(ConfigValidationError):
            loader.get_blocklist_sources()

    def test_host_list_must_be_list(self, tmp_path):
        loader = self.write(tmp_path, "whitelist: docs.example\n")
        with pytest.raises(ConfigValidationError):
            loader.get_whitelist()
