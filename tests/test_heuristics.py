"""Tests for suspicious-pattern heuristics."""

import httpx
import pytest

from linkshield.config import HeuristicSettings
from linkshield.scanner.domains import (
    has_suspicious_tld,
    is_ip_address,
    is_parking_domain,
    is_trusted_domain,
    is_url_shortener,
)
from linkshield.scanner.heuristics import (
    HTTP_REDIRECTS_TO_HTTPS,
    HTTP_UNENCRYPTED,
    IP_ADDRESS,
    SUSPICIOUS_TLD,
    URL_SHORTENER,
    SuspiciousPatternChecker,
)
from mock_network import mock_client


class TestDomainHelpers:
    def test_trusted_domains_match_subdomains(self):
        assert is_trusted_domain("user.github.io")
        assert is_trusted_domain("docs.google.com")
        assert not is_trusted_domain("google.com")
        assert not is_trusted_domain("notgithub.com")
        assert is_trusted_domain("intranet.corp", extra=["corp"])

    def test_parking_domains(self):
        assert is_parking_domain("www.hugedomains.com")
        assert not is_parking_domain("example.com")
        assert not is_parking_domain(None)

    def test_shorteners_and_tlds(self):
        assert is_url_shortener("bit.ly")
        assert not is_url_shortener("bit.ly.example")
        assert has_suspicious_tld("prize.xyz")
        assert not has_suspicious_tld("example.com")

    @pytest.mark.parametrize(
        "host,expected",
        [
            ("8.8.8.8", True),
            ("2001:db8::1", True),
            ("example.com", False),
            ("deadbeef", False),
        ],
    )
    def test_ip_addresses(self, host, expected):
        assert is_ip_address(host) is expected


class TestSuspiciousPatternChecker:
    @pytest.mark.asyncio
    async def test_clean_https(self):
        assert await SuspiciousPatternChecker().check("https://example.com/") == []

    @pytest.mark.asyncio
    async def test_http_without_probe(self):
        checker = SuspiciousPatternChecker(settings=HeuristicSettings(probe_https_redirect=False))
        assert await checker.check("http://example.com/") == [HTTP_UNENCRYPTED]

    @pytest.mark.asyncio
    async def test_http_redirecting_to_https(self):
        def handler(request):
            if request.url.scheme == "http":
                return httpx.Response(301, headers={"Location": "https://example.com/"})
            return httpx.Response(200)

        async with mock_client(handler) as client:
            checker = SuspiciousPatternChecker(client, HeuristicSettings())
            assert await checker.check("http://example.com/") == [HTTP_REDIRECTS_TO_HTTPS]

    @pytest.mark.asyncio
    async def test_http_probe_failure_reports_unencrypted(self):
        def handler(request):
            raise httpx.ConnectError("down", request=request)

        async with mock_client(handler) as client:
            checker = SuspiciousPatternChecker(client, HeuristicSettings())
            assert await checker.check("http://example.com/") == [HTTP_UNENCRYPTED]

    @pytest.mark.asyncio
    async def test_multiple_patterns(self):
        checker = SuspiciousPatternChecker()
        assert await checker.check("https://bit.ly/abc") == [URL_SHORTENER]
        assert await checker.check("https://win-big.xyz/") == [SUSPICIOUS_TLD]
        assert await checker.check("https://203.0.113.9/login") == [IP_ADDRESS]
