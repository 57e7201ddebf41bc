"""Unit tests for UrlValidator."""

import asyncio

import pytest

from conftest import FakeProber
from siteaudit.validator import UrlValidator

URLS = [
    "https://example.com/",
    "https://example.com/about",
    "https://example.com/missing",
]


class TestUrlValidator:
    """Tests for concurrent reachability checks."""

    @pytest.mark.asyncio
    async def test_results_in_input_order(self):
        """Test results follow input order even when probes finish out of order."""
        prober = FakeProber(delays={URLS[0]: 0.05, URLS[1]: 0.02, URLS[2]: 0.0})

        results = await UrlValidator(prober).validate_all(URLS)

        assert [result.url for result in results] == URLS
        assert all(result.reachable for result in results)

    @pytest.mark.asyncio
    async def test_probes_run_concurrently(self):
        """Test all probes are in flight at once."""
        prober = FakeProber(delays={url: 0.1 for url in URLS})

        loop = asyncio.get_running_loop()
        started = loop.time()
        await UrlValidator(prober).validate_all(URLS)

        assert loop.time() - started < 0.25
        assert sorted(prober.calls) == sorted(URLS)

    @pytest.mark.asyncio
    async def test_unreachable_reported(self):
        """Test an unreachable URL is reported without affecting the rest."""
        prober = FakeProber(unreachable={URLS[2]})

        results = await UrlValidator(prober).validate_all(URLS)

        assert [result.reachable for result in results] == [True, True, False]
        assert results[2].error == "Domain not found - please check the URL is correct"

    @pytest.mark.asyncio
    async def test_probe_exception_becomes_result(self):
        """Test a crashing probe is reported as unreachable, not raised."""
        prober = FakeProber(errors={URLS[1]})

        results = await UrlValidator(prober).validate_all(URLS)

        assert results[0].reachable
        assert not results[1].reachable
        assert results[1].error == "Validation service error: probe exploded"
        assert results[2].reachable

    @pytest.mark.asyncio
    async def test_empty(self):
        """Test an empty input list."""
        assert await UrlValidator(FakeProber()).validate_all([]) == []

    @pytest.mark.asyncio
    async def test_cancel_mid_validation(self):
        """Test outstanding probes are reported as cancelled."""
        prober = FakeProber(delays={URLS[1]: 5.0})
        cancel_event = asyncio.Event()

        task = asyncio.create_task(UrlValidator(prober).validate_all(URLS, cancel_event))
        await asyncio.sleep(0.05)
        cancel_event.set()
        results = await asyncio.wait_for(task, timeout=1)

        assert results[0].reachable
        assert results[1].reachable is False
        assert results[1].error == "Cancelled"
        assert results[2].reachable

    @pytest.mark.asyncio
    async def test_already_cancelled(self):
        """Test a pre-set cancel event reports every URL as cancelled."""
        cancel_event = asyncio.Event()
        cancel_event.set()

        results = await UrlValidator(FakeProber()).validate_all(URLS, cancel_event)

        assert all(result.error == "Cancelled" for result in results)
