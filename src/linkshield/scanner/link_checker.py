"""Link reachability checks: live, dead or parked."""

from typing import Optional

import httpx

from ..config.settings import LinkCheckSettings
from ..utils.logging import get_structured_logger
from .cache import ResultCache
from .domains import hostname_of, is_parking_domain
from .types import LinkStatus, NetworkFailure
from .validator import privileged_label

logger = get_structured_logger(__name__)

GONE_STATUS_CODES = frozenset({404, 410, 451})

# InvalidURL is raised outside the HTTPError hierarchy
NETWORK_ERRORS = (httpx.HTTPError, httpx.InvalidURL)


class LinkChecker:
    """Classifies a URL by probing it over HTTP.

    Every path ends in a terminal status that is written to the cache;
    no network error escapes ``check``.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        cache: ResultCache,
        settings: Optional[LinkCheckSettings] = None,
    ):
        self.client = client
        self.cache = cache
        self.settings = settings or LinkCheckSettings()

    async def check(self, url: str, bypass_cache: bool = False) -> LinkStatus:
        """Return the reachability status for ``url``."""
        label = privileged_label(url)
        if label:
            logger.debug("Privileged URL treated as live", url=url, label=label)
            return await self._finish(url, LinkStatus.LIVE)

        if not bypass_cache:
            cached = await self.cache.get_link(url)
            if cached is not None:
                return cached

        if is_parking_domain(hostname_of(url)):
            return await self._finish(url, LinkStatus.PARKED)

        try:
            status = await self._probe(url, "HEAD")
        except NetworkFailure as head_error:
            if head_error.timed_out:
                logger.info("HEAD timed out, marking as live (slow server)", url=url)
                return await self._finish(url, LinkStatus.LIVE)

            logger.debug("HEAD failed, retrying with GET", url=url, error=str(head_error))
            try:
                status = await self._probe(url, "GET")
            except NetworkFailure as get_error:
                if get_error.timed_out:
                    logger.info("GET fallback timed out, marking as live (slow server)", url=url)
                    status = LinkStatus.LIVE
                else:
                    logger.warning("Link check failed", url=url, error=str(get_error))
                    status = LinkStatus.DEAD

        return await self._finish(url, status)

    async def _probe(self, url: str, method: str) -> LinkStatus:
        """Issue one request, inspecting redirects when the client allows it."""
        try:
            response = await self._send(url, method, follow_redirects=True)
        except httpx.TooManyRedirects:
            # Redirect chain cannot be inspected; only reachability is known
            await self._send(url, method, follow_redirects=False)
            return LinkStatus.LIVE

        origin_host = hostname_of(url)
        final_host = hostname_of(str(response.url))
        if final_host and final_host != origin_host and is_parking_domain(final_host):
            logger.debug("Redirected to parking service", url=url, final_host=final_host)
            return LinkStatus.PARKED

        if response.status_code in GONE_STATUS_CODES:
            return LinkStatus.DEAD

        return LinkStatus.LIVE

    async def _send(self, url: str, method: str, follow_redirects: bool) -> httpx.Response:
        try:
            request = self.client.build_request(
                method,
                url,
                headers={"User-Agent": self.settings.user_agent},
                timeout=self.settings.timeout,
            )
            response = await self.client.send(
                request, follow_redirects=follow_redirects, stream=True
            )
            await response.aclose()
        except httpx.TooManyRedirects:
            raise
        except NETWORK_ERRORS as e:
            raise NetworkFailure(
                str(e) or type(e).__name__,
                timed_out=isinstance(e, httpx.TimeoutException),
            ) from e
        return response

    async def _finish(self, url: str, status: LinkStatus) -> LinkStatus:
        await self.cache.set_link(url, status)
        logger.debug("Link verdict", url=url, status=status.value)
        return status
