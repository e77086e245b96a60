"""Tests for external reputation checks."""

import base64
import json

import httpx
import pytest

from linkshield.config import ReputationSettings
from linkshield.scanner.reputation import (
    GoogleSafeBrowsingCheck,
    URLVoidCheck,
    VirusTotalCheck,
    YandexSafeBrowsingCheck,
    build_reputation_checks,
    classify_engine_stats,
    virustotal_url_id,
)
from linkshield.scanner.types import SafetyStatus
from mock_network import mock_client


def json_handler(payload, status_code=200, captured=None):
    def handler(request):
        if captured is not None:
            captured.append(request)
        return httpx.Response(status_code, json=payload)

    return handler


class TestSafeBrowsing:
    """Google and Yandex threatMatches lookups."""

    @pytest.mark.asyncio
    async def test_match_is_unsafe(self):
        captured = []
        async with mock_client(json_handler({"matches": [{"threatType": "MALWARE"}]}, captured=captured)) as client:
            check = GoogleSafeBrowsingCheck(client, "g-key")
            assert await check.check("https://bad.example/") is SafetyStatus.UNSAFE

        request = captured[0]
        assert request.url.host == "safebrowsing.googleapis.com"
        assert request.url.params["key"] == "g-key"
        body = json.loads(request.content)
        assert body["client"]["clientId"] == "linkshield"
        assert body["threatInfo"]["threatEntries"] == [{"url": "https://bad.example/"}]
        assert "POTENTIALLY_HARMFUL_APPLICATION" in body["threatInfo"]["threatTypes"]

    @pytest.mark.asyncio
    async def test_no_match_is_safe(self):
        async with mock_client(json_handler({})) as client:
            check = YandexSafeBrowsingCheck(client, "y-key")
            assert await check.check("https://ok.example/") is SafetyStatus.SAFE

    @pytest.mark.asyncio
    async def test_api_error_is_unknown(self):
        async with mock_client(json_handler({"error": "quota"}, status_code=403)) as client:
            check = GoogleSafeBrowsingCheck(client, "g-key")
            assert await check.check("https://ok.example/") is SafetyStatus.UNKNOWN

    @pytest.mark.asyncio
    async def test_network_error_is_unknown(self):
        def handler(request):
            raise httpx.ConnectError("down", request=request)

        async with mock_client(handler) as client:
            check = YandexSafeBrowsingCheck(client, "y-key")
            assert await check.check("https://ok.example/") is SafetyStatus.UNKNOWN

    @pytest.mark.asyncio
    async def test_invalid_json_is_unknown(self):
        async with mock_client(lambda request: httpx.Response(200, text="<html>")) as client:
            check = GoogleSafeBrowsingCheck(client, "g-key")
            assert await check.check("https://ok.example/") is SafetyStatus.UNKNOWN

    @pytest.mark.asyncio
    async def test_without_key_no_request(self):
        def handler(request):
            raise AssertionError("no request expected")

        async with mock_client(handler) as client:
            check = GoogleSafeBrowsingCheck(client, "  ")
            assert check.enabled is False
            assert await check.check("https://ok.example/") is SafetyStatus.UNKNOWN


class TestVirusTotal:
    def test_url_id_is_unpadded_urlsafe_base64(self):
        url_id = virustotal_url_id("https://example.com/?a=1")
        assert "=" not in url_id
        padded = url_id + "=" * (-len(url_id) % 4)
        assert base64.urlsafe_b64decode(padded).decode() == "https://example.com/?a=1"

    @pytest.mark.parametrize(
        "stats,expected",
        [
            ({"malicious": 2}, SafetyStatus.UNSAFE),
            ({"malicious": 1}, SafetyStatus.WARNING),
            ({"malicious": 0, "suspicious": 2}, SafetyStatus.WARNING),
            ({"malicious": 0, "suspicious": 1}, SafetyStatus.SAFE),
            ({}, SafetyStatus.SAFE),
        ],
    )
    def test_classify_engine_stats(self, stats, expected):
        assert classify_engine_stats(stats) is expected

    @pytest.mark.asyncio
    async def test_report_lookup(self):
        captured = []
        payload = {"data": {"attributes": {"last_analysis_stats": {"malicious": 3}}}}
        async with mock_client(json_handler(payload, captured=captured)) as client:
            check = VirusTotalCheck(client, "vt-key")
            assert await check.check("https://bad.example/") is SafetyStatus.UNSAFE

        assert captured[0].headers["x-apikey"] == "vt-key"
        assert captured[0].url.path.endswith(virustotal_url_id("https://bad.example/"))

    @pytest.mark.asyncio
    async def test_missing_report_is_unknown(self):
        async with mock_client(json_handler({"error": {"code": "NotFoundError"}}, 404)) as client:
            check = VirusTotalCheck(client, "vt-key")
            assert await check.check("https://new.example/") is SafetyStatus.UNKNOWN

    @pytest.mark.asyncio
    async def test_rate_limit_skips_until_reset(self):
        captured = []
        async with mock_client(json_handler({}, status_code=429, captured=captured)) as client:
            check = VirusTotalCheck(client, "vt-key")
            assert await check.check("https://a.example/") is SafetyStatus.UNKNOWN
            assert check.rate_limited is True

            assert await check.check("https://b.example/") is SafetyStatus.UNKNOWN
            assert len(captured) == 1

            check.reset()
            assert check.rate_limited is False
            await check.check("https://c.example/")
            assert len(captured) == 2


class TestURLVoid:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "page,expected",
        [
            ("<td>Detected</td><td>detected</td>", SafetyStatus.UNSAFE),
            ("<td>DETECTED</td>", SafetyStatus.WARNING),
            ("<td>clean</td>", SafetyStatus.SAFE),
        ],
    )
    async def test_detection_counts(self, page, expected):
        captured = []

        def handler(request):
            captured.append(request)
            return httpx.Response(200, text=page)

        async with mock_client(handler) as client:
            check = URLVoidCheck(client, enabled=True)
            assert await check.check("https://some.example/path") is expected
        assert captured[0].url.path == "/scan/some.example/"

    @pytest.mark.asyncio
    async def test_disabled_by_default(self):
        async with mock_client(lambda request: httpx.Response(200)) as client:
            assert await URLVoidCheck(client).check("https://x.example/") is SafetyStatus.UNKNOWN


def test_build_reputation_checks_order():
    client = httpx.AsyncClient()
    settings = ReputationSettings(google_api_key="g", virustotal_api_key="v")
    checks = build_reputation_checks(client, settings)

    assert [c.name for c in checks] == [
        "Google Safe Browsing",
        "Yandex Safe Browsing",
        "URLVoid",
        "VirusTotal",
    ]
    assert [c.enabled for c in checks] == [True, False, False, True]
