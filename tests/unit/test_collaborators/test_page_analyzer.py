"""Unit tests for the remote page analyzer client and failure classification."""

import asyncio
import json

import httpx
import pytest

from siteaudit.analyzer import HttpPageAnalyzer, classify_failure
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
    AnalysisNetworkError,
    AnalysisTimeout,
    UpstreamAnalysisError,
)
from siteaudit.models import FailureReason

ENDPOINT = "https://analyzer.internal/api/analyze"
PAGE = "https://example.com/about"

CATEGORY_PAYLOAD = {
    "aiLlmVisibilityScore": 80,
    "techScore": 70,
    "contentScore": 90,
    "accessibilityScore": 60,
    "authorityScore": 40,
}


def _analyzer(handler):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return HttpPageAnalyzer(ENDPOINT, client=client)


class TestHttpPageAnalyzer:
    """Tests for HttpPageAnalyzer."""

    @pytest.mark.asyncio
    async def test_posts_page_url(self):
        """Test the request shape."""
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"score": 64})

        await _analyzer(handler).analyze(PAGE, timeout=10)

        assert seen[0].method == "POST"
        assert str(seen[0].url) == ENDPOINT
        assert json.loads(seen[0].content) == {"url": PAGE}

    @pytest.mark.asyncio
    async def test_weighted_score_from_categories(self):
        """Test the overall score is computed from category scores."""
        payload = {"results": dict(CATEGORY_PAYLOAD, loadTimeMs=1234)}
        analysis = await _analyzer(lambda r: httpx.Response(200, json=payload)).analyze(PAGE, 10)

        assert analysis.score == 71
        assert analysis.load_time_ms == 1234
        assert analysis.category_scores == {
            "ai_llm_visibility": 80,
            "technical": 70,
            "content": 90,
            "accessibility": 60,
            "authority": 40,
        }

    @pytest.mark.asyncio
    async def test_explicit_score_wins(self):
        """Test an explicit overall score is used as reported."""
        payload = dict(CATEGORY_PAYLOAD, overallScore=50)
        analysis = await _analyzer(lambda r: httpx.Response(200, json=payload)).analyze(PAGE, 10)

        assert analysis.score == 50
        assert analysis.load_time_ms >= 0

    @pytest.mark.asyncio
    async def test_extra_category_scores(self):
        """Test a categoryScores mapping is merged in."""
        payload = {"score": 60, "categoryScores": {"performance": 55, "bad": "x"}}
        analysis = await _analyzer(lambda r: httpx.Response(200, json=payload)).analyze(PAGE, 10)

        assert analysis.category_scores == {"performance": 55}

    @pytest.mark.asyncio
    async def test_phases_reported(self):
        """Test phase callbacks bracket the request."""
        phases = []
        analyzer = _analyzer(lambda r: httpx.Response(200, json={"score": 10}))

        await analyzer.analyze(PAGE, 10, on_phase=lambda step, detail: phases.append(step))

        assert phases == ["fetching", "scoring"]

    @pytest.mark.asyncio
    async def test_no_scores(self):
        """Test a payload without any score is an upstream error."""
        analyzer = _analyzer(lambda r: httpx.Response(200, json={"results": {}}))

        with pytest.raises(UpstreamAnalysisError, match="no scores"):
            await analyzer.analyze(PAGE, 10)

    @pytest.mark.asyncio
    async def test_score_out_of_range(self):
        """Test an impossible score is rejected."""
        analyzer = _analyzer(lambda r: httpx.Response(200, json={"score": 140}))

        with pytest.raises(UpstreamAnalysisError):
            await analyzer.analyze(PAGE, 10)

    @pytest.mark.asyncio
    async def test_malformed_json(self):
        """Test a non-JSON body."""
        analyzer = _analyzer(lambda r: httpx.Response(200, content=b"<html>oops</html>"))

        with pytest.raises(UpstreamAnalysisError, match="Malformed"):
            await analyzer.analyze(PAGE, 10)

    @pytest.mark.asyncio
    async def test_non_object_payload(self):
        analyzer = _analyzer(lambda r: httpx.Response(200, json=[1, 2, 3]))

        with pytest.raises(UpstreamAnalysisError):
            await analyzer.analyze(PAGE, 10)

    @pytest.mark.asyncio
    async def test_http_status_error(self):
        """Test a service error keeps its status code."""
        analyzer = _analyzer(lambda r: httpx.Response(429, json={"error": "quota"}))

        with pytest.raises(UpstreamAnalysisError) as exc_info:
            await analyzer.analyze(PAGE, 10)

        assert exc_info.value.status_code == 429

    @pytest.mark.asyncio
    async def test_timeout(self):
        """Test a read timeout maps to AnalysisTimeout."""

        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        with pytest.raises(AnalysisTimeout):
            await _analyzer(handler).analyze(PAGE, 10)

    @pytest.mark.asyncio
    async def test_network_error(self):
        """Test a connection failure maps to AnalysisNetworkError."""

        def handler(request):
            raise httpx.ConnectError("Connection refused", request=request)

        with pytest.raises(AnalysisNetworkError):
            await _analyzer(handler).analyze(PAGE, 10)


class TestClassifyFailure:
    """Tests for classify_failure()."""

    @pytest.mark.parametrize("error,reason,message", [
        (AnalysisTimeout("slow"), FailureReason.TIMEOUT, TIMEOUT_MESSAGE),
        (asyncio.TimeoutError(), FailureReason.TIMEOUT, TIMEOUT_MESSAGE),
        (asyncio.CancelledError(), FailureReason.CANCELLED, CANCELLED_MESSAGE),
        (AnalysisNetworkError("down"), FailureReason.NETWORK_ERROR, NETWORK_MESSAGE),
        (UpstreamAnalysisError("x", status_code=403), FailureReason.UPSTREAM_ERROR, FORBIDDEN_MESSAGE),
        (UpstreamAnalysisError("x", status_code=404), FailureReason.UPSTREAM_ERROR, NOT_FOUND_MESSAGE),
        (UpstreamAnalysisError("x", status_code=429), FailureReason.UPSTREAM_ERROR, QUOTA_MESSAGE),
        (RuntimeError("Request aborted"), FailureReason.TIMEOUT, TIMEOUT_MESSAGE),
        (RuntimeError("fetch failed: ECONNREFUSED"), FailureReason.NETWORK_ERROR, NETWORK_MESSAGE),
        (RuntimeError("HTTP 403 Forbidden"), FailureReason.UPSTREAM_ERROR, FORBIDDEN_MESSAGE),
        (RuntimeError("page not found"), FailureReason.UPSTREAM_ERROR, NOT_FOUND_MESSAGE),
        (RuntimeError("rate limit hit"), FailureReason.UPSTREAM_ERROR, QUOTA_MESSAGE),
    ])
    def test_classification(self, error, reason, message):
        assert classify_failure(error) == (reason, message)

    def test_unknown_error_keeps_message(self):
        """Test an unrecognized error passes its text through."""
        assert classify_failure(RuntimeError("renderer crashed")) == (
            FailureReason.UPSTREAM_ERROR, "renderer crashed",
        )

    def test_empty_message(self):
        """Test an error without text gets a generic message."""
        assert classify_failure(RuntimeError()) == (
            FailureReason.UPSTREAM_ERROR, GENERIC_FAILURE_MESSAGE,
        )
