"""Shared fakes for audit tests."""

import asyncio
from typing import Optional

import pytest

from siteaudit.access import AccessGate
from siteaudit.controller import RunController
from siteaudit.models import PageAnalysis, ProbeResult
from siteaudit.tracker import PageStateTracker
from siteaudit.validator import UrlValidator

DOMAIN = "https://example.com"
SECRET = "test-secret"


class FakeProber:
    """Reachability prober with scripted outcomes."""

    def __init__(self, unreachable=(), delays=None, errors=()):
        self.unreachable = set(unreachable)
        self.delays = delays or {}
        self.errors = set(errors)
        self.calls: list[str] = []

    async def probe(self, url: str) -> ProbeResult:
        self.calls.append(url)
        await asyncio.sleep(self.delays.get(url, 0))
        if url in self.errors:
            raise RuntimeError("probe exploded")
        if url in self.unreachable:
            return ProbeResult(
                url=url,
                reachable=False,
                error="Domain not found - please check the URL is correct",
            )
        return ProbeResult(url=url, reachable=True, status_code=200)


class FakeAnalyzer:
    """Page analyzer with scripted scores, failures, delays and hangs."""

    def __init__(
        self,
        scores: Optional[dict] = None,
        failures: Optional[dict] = None,
        delays: Optional[dict] = None,
        hang=(),
        stubborn=(),
        phases=(),
        default_score: float = 80.0,
    ):
        self.scores = scores or {}
        self.failures = failures or {}
        self.delays = delays or {}
        self.hang = set(hang)
        self.stubborn = set(stubborn)
        self.phases = list(phases)
        self.default_score = default_score
        self.calls: list[str] = []
        self.cancelled: list[str] = []
        self.active = 0
        self.max_active = 0

    async def analyze(self, url, timeout, on_phase=None) -> PageAnalysis:
        self.calls.append(url)
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            for step, detail in self.phases:
                if on_phase:
                    on_phase(step, detail)
            if url in self.stubborn:
                try:
                    await asyncio.sleep(3600)
                except asyncio.CancelledError:
                    # Ignores the first cancellation, then gives up later
                    await asyncio.sleep(0.3)
            if url in self.hang:
                await asyncio.sleep(3600)
            await asyncio.sleep(self.delays.get(url, 0.01))
            if url in self.failures:
                raise self.failures[url]
            return PageAnalysis(
                score=self.scores.get(url, self.default_score),
                load_time_ms=25.0,
                category_scores={"content": self.scores.get(url, self.default_score)},
            )
        except asyncio.CancelledError:
            self.cancelled.append(url)
            raise
        finally:
            self.active -= 1


def validated_tracker(paths, unreachable_indexes=()) -> PageStateTracker:
    """Tracker whose slots already went through validation."""
    tracker = PageStateTracker(DOMAIN, paths)
    for index in range(len(paths)):
        tracker.mark_validating(index)
        tracker.mark_validated(
            index,
            index not in unreachable_indexes,
            "Domain not found" if index in unreachable_indexes else None,
        )
    return tracker


@pytest.fixture
def prober():
    return FakeProber()


@pytest.fixture
def analyzer():
    return FakeAnalyzer()


@pytest.fixture
def events():
    return []


@pytest.fixture
def make_controller(events):
    """Factory for controllers wired to fakes."""

    def _make(prober=None, analyzer=None, **kwargs):
        kwargs.setdefault("page_timeout", 2.0)
        kwargs.setdefault("cancel_grace", 0.1)
        return RunController(
            validator=UrlValidator(prober or FakeProber()),
            analyzer=analyzer or FakeAnalyzer(),
            access_gate=AccessGate(SECRET),
            on_progress=events.append,
            **kwargs,
        )

    return _make
