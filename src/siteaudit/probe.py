"""
Reachability prober.

Sends a lightweight HEAD request to check that a URL responds. Any HTTP
response, including 403/404/500, means the host exists. Only host
resolution failures count as unreachable; other transport problems
(timeouts, TLS, bot protection) are left for the full analysis to handle.
"""

import logging
import socket
from typing import Optional, Protocol

import httpx

from siteaudit.constants import (
    DEFAULT_PROBE_TIMEOUT_SECONDS,
    DEFAULT_USER_AGENT,
    DNS_ERROR_MARKERS,
    DNS_FAILURE_MESSAGE,
)
from siteaudit.models import ProbeResult

logger = logging.getLogger(__name__)


class Prober(Protocol):
    """Anything that can check one URL for reachability."""

    async def probe(self, url: str) -> ProbeResult:
        ...


def is_dns_error(error: BaseException) -> bool:
    """Check whether an exception (or its cause chain) is a resolution failure."""
    seen = set()
    current: Optional[BaseException] = error
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        if isinstance(current, socket.gaierror):
            return True
        message = str(current).lower()
        if any(marker in message for marker in DNS_ERROR_MARKERS):
            return True
        current = current.__cause__ or current.__context__
    return False


class HttpProber:
    """Probe URLs with an httpx HEAD request that does not follow redirects."""

    def __init__(
        self,
        timeout: float = DEFAULT_PROBE_TIMEOUT_SECONDS,
        user_agent: str = DEFAULT_USER_AGENT,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize prober.

        Args:
            timeout: Seconds before a probe gives up
            user_agent: User-Agent header sent with each probe
            client: Optional shared client (a new one is opened per probe otherwise)
        """
        self.timeout = timeout
        self.user_agent = user_agent
        self._client = client

    async def probe(self, url: str) -> ProbeResult:
        """Check a single URL.

        Args:
            url: Absolute URL to probe

        Returns:
            ProbeResult with reachable=False only for invalid URLs or DNS failures
        """
        logger.info(f"Validating domain existence for: {url}")
        try:
            if self._client is not None:
                response = await self._head(self._client, url)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await self._head(client, url)

        except (httpx.InvalidURL, httpx.UnsupportedProtocol) as e:
            logger.warning(f"Invalid URL format for {url}: {e}")
            return ProbeResult(url=url, reachable=False, error="Invalid URL format")

        except httpx.HTTPError as e:
            if is_dns_error(e):
                logger.info(f"Domain does not exist: {url}")
                return ProbeResult(url=url, reachable=False, error=DNS_FAILURE_MESSAGE)

            logger.info(
                f"Domain likely exists for {url} "
                f"(validation blocked by: {type(e).__name__})"
            )
            return ProbeResult(url=url, reachable=True)

        logger.info(f"Domain exists for {url} (status: {response.status_code})")
        return ProbeResult(url=url, reachable=True, status_code=response.status_code)

    async def _head(self, client: httpx.AsyncClient, url: str) -> httpx.Response:
        return await client.head(
            url,
            headers={"User-Agent": self.user_agent},
            follow_redirects=False,
            timeout=self.timeout,
        )
