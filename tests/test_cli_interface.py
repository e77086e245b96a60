"""Tests for the click command-line interface."""

import json

import pytest
from click.testing import CliRunner

from linkshield.cli import create_cli
from linkshield.cli.main import cli
from linkshield.scanner.engine import ScanEngine
from linkshield.storage.memory import MemoryKeyValueStore
from mock_network import make_settings, mock_client, network_handler, timeout_error

ROUTES = {
    "gone.example": 404,
    "slow.example": timeout_error,
}


@pytest.fixture
def cli_store():
    """Store shared across invocations, standing in for the on-disk database."""
    return MemoryKeyValueStore()


@pytest.fixture
def runner(monkeypatch, cli_store):
    def build_engine(ctx):
        return ScanEngine(
            make_settings(),
            store=cli_store,
            client=mock_client(network_handler(ROUTES)),
            reputation_checks=[],
        )

    monkeypatch.setattr("linkshield.cli.main.build_engine", build_engine)
    monkeypatch.setattr("linkshield.cli.main.setup_logging", lambda **kwargs: None)
    return CliRunner()


@pytest.fixture
def bookmarks_file(tmp_path):
    path = tmp_path / "Bookmarks"
    path.write_text(
        json.dumps(
            {
                "roots": {
                    "bookmark_bar": {
                        "id": "1",
                        "name": "Bar",
                        "children": [
                            {"id": "10", "name": "Good", "url": "https://good.example/"},
                            {"id": "11", "name": "Gone", "url": "https://gone.example/"},
                            {"id": "12", "name": "Bad", "url": "https://malware.example/"},
                        ],
                    }
                }
            }
        ),
        encoding="utf-8",
    )
    return path


class TestCLI:
    def test_help_lists_commands(self):
        result = CliRunner().invoke(create_cli(), ["--help"])

        assert result.exit_code == 0
        for command in ["check-link", "check-safety", "scan", "blocklist", "cache", "whitelist", "serve"]:
            assert command in result.output

    def test_check_link_live(self, runner):
        result = runner.invoke(cli, ["check-link", "https://good.example/"])
        assert result.exit_code == 0
        assert "https://good.example/: live" in result.output

    def test_check_link_dead(self, runner):
        result = runner.invoke(cli, ["check-link", "https://gone.example/"])
        assert result.exit_code == 0
        assert "https://gone.example/: dead" in result.output

    def test_check_link_timeout_is_live(self, runner):
        result = runner.invoke(cli, ["check-link", "https://slow.example/"])
        assert "https://slow.example/: live" in result.output

    def test_check_safety_blocklisted(self, runner):
        result = runner.invoke(cli, ["check-safety", "https://malware.example/"])

        assert result.exit_code == 0
        assert "https://malware.example/: unsafe" in result.output
        assert "• Test Hosts" in result.output

    def test_check_safety_skip_blocklist(self, runner):
        result = runner.invoke(cli, ["check-safety", "--skip-blocklist", "https://malware.example/"])
        assert "https://malware.example/: safe" in result.output

    def test_scan_json(self, runner, bookmarks_file):
        result = runner.invoke(cli, ["scan", str(bookmarks_file), "--format", "json"])

        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["summary"] == {"scanned": 3, "total": 3}
        by_id = {item["id"]: item for item in data["results"]}
        assert by_id["10"]["linkStatus"] == "live"
        assert by_id["11"]["linkStatus"] == "dead"
        assert by_id["12"]["safetyStatus"] == "unsafe"
        assert by_id["12"]["safetySources"] == ["Test Hosts"]

    def test_scan_table(self, runner, bookmarks_file):
        result = runner.invoke(cli, ["scan", str(bookmarks_file), "--no-safety"])

        assert result.exit_code == 0
        assert "Scan Results (3/3)" in result.output
        assert "Scanned 3 of 3 bookmarks" in result.output

    def test_scan_both_checks_disabled(self, runner, bookmarks_file):
        result = runner.invoke(cli, ["scan", str(bookmarks_file), "--no-links", "--no-safety"])
        assert result.exit_code == 1
        assert "both disabled" in result.output

    def test_scan_invalid_file(self, runner, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{nope", encoding="utf-8")

        result = runner.invoke(cli, ["scan", str(path)])

        assert result.exit_code == 1
        assert "Invalid bookmarks JSON" in result.output

    def test_blocklist_refresh_and_lookup(self, runner):
        refreshed = runner.invoke(cli, ["blocklist", "refresh"])
        assert refreshed.exit_code == 0
        assert "Blocklist updated" in refreshed.output
        assert "Test URLhaus" in refreshed.output

        listed = runner.invoke(cli, ["blocklist", "lookup", "https://shared-bad.example/"])
        assert listed.exit_code == 0
        assert "is listed by" in listed.output
        assert "Test Domains" in listed.output

        clean = runner.invoke(cli, ["blocklist", "lookup", "https://good.example/"])
        assert "is not listed" in clean.output

    def test_blocklist_lookup_invalid_url(self, runner):
        result = runner.invoke(cli, ["blocklist", "lookup", "ftp://files.example/"])
        assert result.exit_code == 2
        assert "Only HTTP and HTTPS URLs are allowed" in result.output

    def test_blocklist_status(self, runner):
        result = runner.invoke(cli, ["blocklist", "status"])
        assert result.exit_code == 0
        assert "Blocklist Status" in result.output
        assert "never" in result.output

    def test_cache_clear(self, runner):
        runner.invoke(cli, ["check-link", "https://good.example/"])

        result = runner.invoke(cli, ["cache", "clear", "--kind", "link"])
        assert result.exit_code == 0
        assert "Cleared 1 cached results" in result.output

        result = runner.invoke(cli, ["cache", "clear"])
        assert "Cleared 0 cached results" in result.output

    def test_whitelist_commands(self, runner):
        empty = runner.invoke(cli, ["whitelist", "list"])
        assert "Whitelist is empty" in empty.output

        added = runner.invoke(cli, ["whitelist", "add", "https://Trusted.example/page"])
        assert added.exit_code == 0
        assert "Whitelisted trusted.example" in added.output

        listed = runner.invoke(cli, ["whitelist", "list"])
        assert "trusted.example" in listed.output

        safety = runner.invoke(cli, ["check-safety", "--skip-blocklist", "https://trusted.example/"])
        assert "Whitelisted by user" in safety.output

        removed = runner.invoke(cli, ["whitelist", "remove", "trusted.example"])
        assert removed.exit_code == 0
        assert "Removed trusted.example from whitelist" in removed.output

        missing = runner.invoke(cli, ["whitelist", "remove", "trusted.example"])
        assert missing.exit_code == 1
        assert "Host not whitelisted" in missing.output

    def test_whitelist_add_invalid(self, runner):
        result = runner.invoke(cli, ["whitelist", "add", "   "])
        assert result.exit_code == 2

    def test_serve_uses_settings(self, runner, monkeypatch):
        calls = []
        monkeypatch.setattr("linkshield.cli.main.uvicorn.run", lambda *args, **kwargs: calls.append(kwargs))

        result = runner.invoke(cli, ["serve", "--port", "9123"])

        assert result.exit_code == 0
        assert calls[0]["port"] == 9123
        assert calls[0]["factory"] is True
