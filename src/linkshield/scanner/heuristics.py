"""Local suspicious-pattern heuristics."""

from typing import Optional

import httpx

from ..config.settings import HeuristicSettings
from ..utils.logging import get_structured_logger
from .domains import has_suspicious_tld, hostname_of, is_ip_address, is_url_shortener

logger = get_structured_logger(__name__)

HTTP_REDIRECTS_TO_HTTPS = "HTTP Only (redirects to HTTPS)"
HTTP_UNENCRYPTED = "HTTP Only (Unencrypted)"
URL_SHORTENER = "URL Shortener"
SUSPICIOUS_TLD = "Suspicious TLD"
IP_ADDRESS = "IP Address"


class SuspiciousPatternChecker:
    """Flags URLs that warrant caution without being known-bad."""

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        settings: Optional[HeuristicSettings] = None,
    ):
        self.client = client
        self.settings = settings or HeuristicSettings()

    async def check(self, url: str) -> list[str]:
        """Descriptive label for every pattern ``url`` matches."""
        patterns = []

        if url.lower().startswith("http://"):
            if await self._redirects_to_https(url):
                patterns.append(HTTP_REDIRECTS_TO_HTTPS)
            else:
                patterns.append(HTTP_UNENCRYPTED)

        hostname = hostname_of(url) or ""
        if hostname:
            if is_url_shortener(hostname):
                patterns.append(URL_SHORTENER)
            if has_suspicious_tld(hostname):
                patterns.append(SUSPICIOUS_TLD)
            if is_ip_address(hostname):
                patterns.append(IP_ADDRESS)

        return patterns

    async def _redirects_to_https(self, url: str) -> bool:
        if not self.settings.probe_https_redirect or self.client is None:
            return False

        try:
            response = await self.client.head(
                url,
                follow_redirects=True,
                timeout=self.settings.redirect_probe_timeout,
            )
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.debug("Could not check HTTPS redirect", url=url, error=str(e))
            return False

        return str(response.url).lower().startswith("https://")
