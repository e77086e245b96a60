"""External reputation services consulted during safety evaluation."""

import base64
import re
from abc import ABC, abstractmethod
from typing import Any, Optional
from urllib.parse import quote

import httpx

from ..config.settings import ReputationSettings
from ..utils.logging import get_structured_logger
from .domains import hostname_of
from .types import RateLimited, SafetyStatus

logger = get_structured_logger(__name__)

GOOGLE_SAFE_BROWSING_URL = "https://safebrowsing.googleapis.com/v4/threatMatches:find"
YANDEX_SAFE_BROWSING_URL = "https://sba.yandex.net/v4/threatMatches:find"
VIRUSTOTAL_URL_REPORT = "https://www.virustotal.com/api/v3/urls/{url_id}"
URLVOID_SCAN_URL = "https://www.urlvoid.com/scan/{host}/"

URLVOID_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:91.0) Gecko/20100101 Firefox/91.0"
)

_DETECTED = re.compile("detected", re.IGNORECASE)

# Failures that make a single reputation lookup inconclusive
LOOKUP_ERRORS = (httpx.HTTPError, httpx.InvalidURL, ValueError)


class ReputationCheck(ABC):
    """One independent reputation service.

    ``check`` never raises: missing configuration, throttling and network
    errors all come back as ``SafetyStatus.UNKNOWN``.
    """

    name: str = ""

    def __init__(self, client: httpx.AsyncClient, timeout: float):
        self.client = client
        self.timeout = timeout

    @property
    @abstractmethod
    def enabled(self) -> bool:
        """Whether the service is configured for use."""

    @abstractmethod
    async def _lookup(self, url: str) -> SafetyStatus:
        """Query the service; may raise."""

    def reset(self) -> None:
        """Clear per-scan state such as a rate-limit flag."""

    async def check(self, url: str) -> SafetyStatus:
        if not self.enabled:
            return SafetyStatus.UNKNOWN
        try:
            status = await self._lookup(url)
        except RateLimited:
            logger.warning("Reputation service rate limited", detector=self.name)
            return SafetyStatus.UNKNOWN
        except LOOKUP_ERRORS as e:
            logger.error("Reputation lookup failed", detector=self.name, url=url, error=str(e))
            return SafetyStatus.UNKNOWN

        logger.debug("Reputation result", detector=self.name, url=url, status=status.value)
        return status


class ThreatMatchCheck(ReputationCheck):
    """Safe Browsing v4 ``threatMatches:find`` lookups."""

    endpoint: str = ""
    threat_types: tuple = ()

    def __init__(self, client: httpx.AsyncClient, api_key: str, timeout: float):
        super().__init__(client, timeout)
        self.api_key = api_key.strip()

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    def build_body(self, url: str) -> dict[str, Any]:
        return {
            "threatInfo": {
                "threatTypes": list(self.threat_types),
                "platformTypes": ["ANY_PLATFORM"],
                "threatEntryTypes": ["URL"],
                "threatEntries": [{"url": url}],
            }
        }

    async def _lookup(self, url: str) -> SafetyStatus:
        response = await self.client.post(
            self.endpoint,
            params={"key": self.api_key},
            json=self.build_body(url),
            timeout=self.timeout,
        )
        if response.status_code >= 400:
            logger.error("Threat match API error", detector=self.name, status=response.status_code)
            return SafetyStatus.UNKNOWN

        data = response.json()
        if isinstance(data, dict) and data.get("matches"):
            return SafetyStatus.UNSAFE
        return SafetyStatus.SAFE


class GoogleSafeBrowsingCheck(ThreatMatchCheck):
    name = "Google Safe Browsing"
    endpoint = GOOGLE_SAFE_BROWSING_URL
    threat_types = (
        "MALWARE",
        "SOCIAL_ENGINEERING",
        "UNWANTED_SOFTWARE",
        "POTENTIALLY_HARMFUL_APPLICATION",
    )

    def __init__(
        self,
        client: httpx.AsyncClient,
        api_key: str,
        timeout: float = 5.0,
        client_id: str = "linkshield",
        client_version: str = "0.1.0",
    ):
        super().__init__(client, api_key, timeout)
        self.client_id = client_id
        self.client_version = client_version

    def build_body(self, url: str) -> dict[str, Any]:
        body = super().build_body(url)
        body["client"] = {"clientId": self.client_id, "clientVersion": self.client_version}
        return body


class YandexSafeBrowsingCheck(ThreatMatchCheck):
    name = "Yandex Safe Browsing"
    endpoint = YANDEX_SAFE_BROWSING_URL
    threat_types = ("MALWARE", "SOCIAL_ENGINEERING", "UNWANTED_SOFTWARE")

    def __init__(self, client: httpx.AsyncClient, api_key: str, timeout: float = 5.0):
        super().__init__(client, api_key, timeout)


def virustotal_url_id(url: str) -> str:
    """VirusTotal URL identifier: unpadded URL-safe base64 of the URL."""
    return base64.urlsafe_b64encode(url.encode("utf-8")).decode("ascii").rstrip("=")


def classify_engine_stats(stats: dict[str, Any]) -> SafetyStatus:
    """Map multi-engine malicious/suspicious counts to a status."""
    malicious = stats.get("malicious") or 0
    suspicious = stats.get("suspicious") or 0
    if malicious >= 2:
        return SafetyStatus.UNSAFE
    if malicious >= 1 or suspicious >= 2:
        return SafetyStatus.WARNING
    return SafetyStatus.SAFE


class VirusTotalCheck(ReputationCheck):
    """VirusTotal v3 URL report lookup.

    A 429 marks the detector rate limited; it then stays silent until
    ``reset`` is called at the start of the next scan.
    """

    name = "VirusTotal"

    def __init__(self, client: httpx.AsyncClient, api_key: str, timeout: float = 8.0):
        super().__init__(client, timeout)
        self.api_key = api_key.strip()
        self.rate_limited = False

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    def reset(self) -> None:
        self.rate_limited = False

    async def _lookup(self, url: str) -> SafetyStatus:
        if self.rate_limited:
            raise RateLimited(self.name)

        response = await self.client.get(
            VIRUSTOTAL_URL_REPORT.format(url_id=virustotal_url_id(url)),
            headers={"x-apikey": self.api_key},
            timeout=self.timeout,
        )
        if response.status_code == 429:
            self.rate_limited = True
            raise RateLimited(self.name)
        if response.status_code >= 400:
            return SafetyStatus.UNKNOWN

        data = response.json()
        attributes = ((data or {}).get("data") or {}).get("attributes") or {}
        stats = attributes.get("last_analysis_stats")
        if not stats:
            return SafetyStatus.UNKNOWN
        return classify_engine_stats(stats)


class URLVoidCheck(ReputationCheck):
    """Counts detections on the public URLVoid report page for a host."""

    name = "URLVoid"

    def __init__(self, client: httpx.AsyncClient, enabled: bool = False, timeout: float = 5.0):
        super().__init__(client, timeout)
        self._enabled = enabled

    @property
    def enabled(self) -> bool:
        return self._enabled

    async def _lookup(self, url: str) -> SafetyStatus:
        host = hostname_of(url)
        if not host:
            return SafetyStatus.UNKNOWN

        response = await self.client.get(
            URLVOID_SCAN_URL.format(host=quote(host, safe="")),
            headers={"User-Agent": URLVOID_USER_AGENT},
            timeout=self.timeout,
        )
        if response.status_code >= 400:
            return SafetyStatus.UNKNOWN

        detected = len(_DETECTED.findall(response.text))
        if detected >= 2:
            return SafetyStatus.UNSAFE
        if detected == 1:
            return SafetyStatus.WARNING
        return SafetyStatus.SAFE


def build_reputation_checks(
    client: httpx.AsyncClient, settings: Optional[ReputationSettings] = None
) -> list[ReputationCheck]:
    """Reputation layers in evaluation order."""
    settings = settings or ReputationSettings()
    return [
        GoogleSafeBrowsingCheck(
            client,
            settings.google_api_key.get_secret_value(),
            timeout=settings.google_timeout,
            client_id=settings.client_id,
            client_version=settings.client_version,
        ),
        YandexSafeBrowsingCheck(
            client, settings.yandex_api_key.get_secret_value(), timeout=settings.yandex_timeout
        ),
        URLVoidCheck(client, enabled=settings.urlvoid_enabled, timeout=settings.urlvoid_timeout),
        VirusTotalCheck(
            client,
            settings.virustotal_api_key.get_secret_value(),
            timeout=settings.virustotal_timeout,
        ),
    ]
