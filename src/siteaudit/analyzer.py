"""
Page Analyzer collaborator.

The scoring of a single page is owned by an external service. This module
defines the contract the orchestrator consumes, an httpx client for a
remote analysis endpoint, and the classification of analyzer failures.
"""

import asyncio
import logging
import time
from typing import Any, Optional, Protocol

import httpx

from siteaudit.constants import (
    CANCELLED_MESSAGE,
    FORBIDDEN_MESSAGE,
    GENERIC_FAILURE_MESSAGE,
    NETWORK_MESSAGE,
    NOT_FOUND_MESSAGE,
    QUOTA_MESSAGE,
    TIMEOUT_MESSAGE,
)
from siteaudit.exceptions import (
    AnalysisError,
    AnalysisNetworkError,
    AnalysisTimeout,
    UpstreamAnalysisError,
)
from siteaudit.models import FailureReason, PageAnalysis, PhaseCallback

logger = logging.getLogger(__name__)


# Response keys of the analysis service mapped to category names
CATEGORY_KEYS = {
    "aiLlmVisibilityScore": "ai_llm_visibility",
    "techScore": "technical",
    "contentScore": "content",
    "accessibilityScore": "accessibility",
    "authorityScore": "authority",
}


class PageAnalyzer(Protocol):
    """External page analyzer contract.

    Implementations must support cooperative cancellation (the task running
    analyze() may be cancelled at any await point) and raise AnalysisError
    subclasses for classified failures.
    """

    async def analyze(
        self,
        url: str,
        timeout: float,
        on_phase: Optional[PhaseCallback] = None,
    ) -> PageAnalysis:
        ...


class HttpPageAnalyzer:
    """Client for a remote page analysis endpoint.

    POSTs {"url": ...} and reads either an explicit "score" / "overallScore"
    or the five category scores, from which the weighted overall score is
    computed.
    """

    def __init__(
        self,
        endpoint: str,
        client: Optional[httpx.AsyncClient] = None,
        headers: Optional[dict[str, str]] = None,
    ):
        """
        Initialize analyzer client.

        Args:
            endpoint: Absolute URL of the analysis service
            client: Optional shared client (a new one is opened per call otherwise)
            headers: Extra request headers
        """
        self.endpoint = endpoint
        self.headers = headers or {}
        self._client = client

    async def analyze(
        self,
        url: str,
        timeout: float,
        on_phase: Optional[PhaseCallback] = None,
    ) -> PageAnalysis:
        """Analyze one page through the remote service.

        Args:
            url: Page URL
            timeout: Request timeout in seconds
            on_phase: Called with (step, detail) as the analysis progresses

        Returns:
            PageAnalysis

        Raises:
            AnalysisTimeout: Service did not answer in time
            AnalysisNetworkError: Service could not be reached
            UpstreamAnalysisError: Service returned an error or a bad payload
        """
        if on_phase:
            on_phase("fetching", f"Requesting analysis for {url}")

        started = time.monotonic()
        try:
            if self._client is not None:
                response = await self._post(self._client, url, timeout)
            else:
                async with httpx.AsyncClient(timeout=timeout) as client:
                    response = await self._post(client, url, timeout)
            response.raise_for_status()
            payload = response.json()

        except httpx.TimeoutException as e:
            raise AnalysisTimeout(f"Analysis timeout for {url} (>{timeout:g}s)") from e

        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            logger.error(f"Analysis service error {status} for {url}")
            raise UpstreamAnalysisError(
                f"Analysis service returned {status}", status_code=status
            ) from e

        except httpx.TransportError as e:
            raise AnalysisNetworkError(f"Network error analyzing {url}: {e}") from e

        except ValueError as e:
            raise UpstreamAnalysisError(f"Malformed analysis response for {url}") from e

        load_time_ms = (time.monotonic() - started) * 1000

        if on_phase:
            on_phase("scoring", f"Scoring results for {url}")

        return self._parse_response(payload, load_time_ms)

    async def _post(
        self, client: httpx.AsyncClient, url: str, timeout: float
    ) -> httpx.Response:
        return await client.post(
            self.endpoint,
            json={"url": url},
            headers=self.headers,
            timeout=timeout,
        )

    def _parse_response(self, payload: Any, load_time_ms: float) -> PageAnalysis:
        if not isinstance(payload, dict):
            raise UpstreamAnalysisError("Analysis response is not an object")

        # Accept either the results object itself or a wrapper around it
        results = payload.get("results", payload)
        if not isinstance(results, dict):
            raise UpstreamAnalysisError("Analysis response has no results")

        category_scores = {
            name: float(results[key])
            for key, name in CATEGORY_KEYS.items()
            if isinstance(results.get(key), (int, float))
        }
        for name, value in (results.get("categoryScores") or {}).items():
            if isinstance(value, (int, float)):
                category_scores[name] = float(value)

        reported_load_time = results.get("loadTimeMs")
        if isinstance(reported_load_time, (int, float)):
            load_time_ms = float(reported_load_time)
        explicit = results.get("score", results.get("overallScore"))

        try:
            if isinstance(explicit, (int, float)):
                return PageAnalysis(
                    score=float(explicit),
                    load_time_ms=load_time_ms,
                    category_scores=category_scores,
                )
            if len(category_scores) == 0:
                raise UpstreamAnalysisError("Analysis response has no scores")
            return PageAnalysis.from_category_scores(category_scores, load_time_ms)
        except ValueError as e:
            raise UpstreamAnalysisError(str(e)) from e


def classify_failure(error: BaseException) -> tuple[FailureReason, str]:
    """Map an analyzer exception to a failure reason and a readable message.

    Typed AnalysisError subclasses carry their own reason. Anything else is
    classified by its message.

    Args:
        error: Exception raised by (or while waiting on) the analyzer

    Returns:
        Tuple of (FailureReason, user-facing message)
    """
    if isinstance(error, asyncio.CancelledError):
        return FailureReason.CANCELLED, CANCELLED_MESSAGE

    if isinstance(error, (asyncio.TimeoutError, AnalysisTimeout)):
        return FailureReason.TIMEOUT, TIMEOUT_MESSAGE

    if isinstance(error, AnalysisNetworkError):
        return FailureReason.NETWORK_ERROR, NETWORK_MESSAGE

    if isinstance(error, UpstreamAnalysisError) and error.status_code is not None:
        by_status = {
            403: FORBIDDEN_MESSAGE,
            404: NOT_FOUND_MESSAGE,
            429: QUOTA_MESSAGE,
        }
        if error.status_code in by_status:
            return FailureReason.UPSTREAM_ERROR, by_status[error.status_code]

    message = str(error).lower()
    if not isinstance(error, AnalysisError):
        if "timeout" in message or "timed out" in message or "aborted" in message:
            return FailureReason.TIMEOUT, TIMEOUT_MESSAGE
        if any(
            marker in message
            for marker in ("network", "fetch", "connection", "econnrefused", "enotfound")
        ):
            return FailureReason.NETWORK_ERROR, NETWORK_MESSAGE

    if "403" in message or "forbidden" in message:
        return FailureReason.UPSTREAM_ERROR, FORBIDDEN_MESSAGE
    if "404" in message or "not found" in message:
        return FailureReason.UPSTREAM_ERROR, NOT_FOUND_MESSAGE
    if "quota" in message or "limit" in message:
        return FailureReason.UPSTREAM_ERROR, QUOTA_MESSAGE

    return FailureReason.UPSTREAM_ERROR, str(error) or GENERIC_FAILURE_MESSAGE
