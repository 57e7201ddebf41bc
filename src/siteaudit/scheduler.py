"""
Analysis Scheduler.

Drives page analyses for every slot that passed validation, at most K at a
time, and records each outcome on the Page State Tracker.

Per slot: Validated -> Analyzing -> Completed | Failed. A slot's terminal
transition is always recorded before its terminal progress event is
emitted. One slot's failure never affects another slot, and nothing is
retried within a run.
"""

import asyncio
import logging
import time
from typing import Optional

from siteaudit.analyzer import PageAnalyzer, classify_failure
from siteaudit.constants import (
    CANCELLED_MESSAGE,
    DEFAULT_CANCEL_GRACE_SECONDS,
    DEFAULT_MAX_CONCURRENCY,
    DEFAULT_PAGE_TIMEOUT_SECONDS,
    TIMEOUT_MESSAGE,
)
from siteaudit.exceptions import InvariantViolation, UpstreamAnalysisError
from siteaudit.models import (
    FailureReason,
    PageAnalysis,
    PageSlot,
    ProgressCallback,
    ProgressEvent,
    SlotState,
)
from siteaudit.tracker import PageStateTracker

logger = logging.getLogger(__name__)


def _consume_result(task: asyncio.Task) -> None:
    """Retrieve the outcome of an abandoned analysis so it is never reported as unhandled."""
    if not task.cancelled():
        task.exception()


class AnalysisScheduler:
    """
    Bounded-concurrency driver for page analyses.

    Features:
    - At most max_concurrency analyses in flight (1 = one page at a time)
    - Per-page timeout as a hard upper bound on every analysis
    - Cooperative cancellation with a bounded grace period
    - Analyzer phase reports passed through verbatim as progress events
    """

    def __init__(
        self,
        analyzer: PageAnalyzer,
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
        page_timeout: float = DEFAULT_PAGE_TIMEOUT_SECONDS,
        cancel_grace: float = DEFAULT_CANCEL_GRACE_SECONDS,
        on_progress: Optional[ProgressCallback] = None,
    ):
        """
        Initialize scheduler.

        Args:
            analyzer: External page analyzer
            max_concurrency: Analyses allowed in flight at once
            page_timeout: Seconds before an analysis is abandoned as timed out
            cancel_grace: Seconds to wait for a cancelled analysis to unwind
            on_progress: Callback receiving every ProgressEvent
        """
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        if page_timeout <= 0:
            raise ValueError("page_timeout must be positive")

        self.analyzer = analyzer
        self.max_concurrency = max_concurrency
        self.page_timeout = page_timeout
        self.cancel_grace = min(cancel_grace, page_timeout)
        self.on_progress = on_progress

    async def run(
        self,
        tracker: PageStateTracker,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> tuple[PageSlot, ...]:
        """
        Analyze every Validated slot.

        Args:
            tracker: Slot table of the run
            cancel_event: Setting it cancels in-flight analyses and fails
                slots that have not started

        Returns:
            Final slot snapshot

        Raises:
            InvariantViolation: If a slot was driven out of order
        """
        cancel_event = cancel_event or asyncio.Event()
        semaphore = asyncio.Semaphore(self.max_concurrency)

        eligible = [
            slot.index for slot in tracker.snapshot()
            if slot.state is SlotState.VALIDATED
        ]
        skipped = len(tracker) - len(eligible)
        if skipped:
            logger.info(f"Skipping {skipped} slot(s) not eligible for analysis")

        logger.info(
            f"Analyzing {len(eligible)} page(s), "
            f"max concurrent: {self.max_concurrency}, timeout: {self.page_timeout:g}s"
        )

        workers = [
            asyncio.create_task(
                self._process_slot(tracker, index, semaphore, cancel_event)
            )
            for index in eligible
        ]

        try:
            await asyncio.gather(*workers)
        finally:
            for worker in workers:
                if not worker.done():
                    worker.cancel()
            await asyncio.gather(*workers, return_exceptions=True)

        return tracker.snapshot()

    async def _process_slot(
        self,
        tracker: PageStateTracker,
        index: int,
        semaphore: asyncio.Semaphore,
        cancel_event: asyncio.Event,
    ) -> None:
        if not await self._acquire(semaphore, cancel_event):
            slot = tracker.mark_failed(index, CANCELLED_MESSAGE, FailureReason.CANCELLED)
            logger.info(f"Slot {index} cancelled before start: {slot.url}")
            self._emit(slot)
            return

        try:
            await self._analyze_slot(tracker, index, cancel_event)
        finally:
            semaphore.release()

    async def _acquire(self, semaphore: asyncio.Semaphore, cancel_event: asyncio.Event) -> bool:
        """Wait for a worker permit. Returns False if cancellation came first."""
        if cancel_event.is_set():
            return False

        acquire = asyncio.ensure_future(semaphore.acquire())
        waiter = asyncio.ensure_future(cancel_event.wait())
        try:
            await asyncio.wait({acquire, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            acquire.cancel()
            raise
        finally:
            waiter.cancel()

        if acquire.done():
            if cancel_event.is_set():
                semaphore.release()
                return False
            return True

        acquire.cancel()
        try:
            await acquire
        except asyncio.CancelledError:
            return False
        # Permit was granted while the acquire was being cancelled
        semaphore.release()
        return False

    async def _analyze_slot(
        self,
        tracker: PageStateTracker,
        index: int,
        cancel_event: asyncio.Event,
    ) -> None:
        tracker.mark_analyzing(index)
        slot = tracker.mark_progress(
            index,
            "Starting analysis",
            f"Beginning analysis of page {index + 1}/{len(tracker)}",
        )
        self._emit(slot)
        logger.info(f"Analyzing page {index + 1}/{len(tracker)}: {slot.url}")

        def on_phase(step: str, detail: Optional[str] = None) -> None:
            # Late reports from an abandoned analysis are dropped
            if tracker.get(index).state is not SlotState.ANALYZING:
                logger.debug(f"Dropping late phase '{step}' for slot {index}")
                return
            self._emit(tracker.mark_progress(index, step, detail))

        started = time.monotonic()
        analysis_task = asyncio.create_task(
            self.analyzer.analyze(slot.url, self.page_timeout, on_phase)
        )
        cancel_waiter = asyncio.create_task(cancel_event.wait())
        try:
            done, _ = await asyncio.wait(
                {analysis_task, cancel_waiter},
                timeout=self.page_timeout,
                return_when=asyncio.FIRST_COMPLETED,
            )
        except asyncio.CancelledError:
            analysis_task.cancel()
            raise
        finally:
            cancel_waiter.cancel()

        elapsed_ms = (time.monotonic() - started) * 1000

        if analysis_task in done:
            self._record_outcome(tracker, index, analysis_task, elapsed_ms)
        elif cancel_event.is_set():
            await self._abandon(analysis_task, slot.url)
            tracker.mark_failed(index, CANCELLED_MESSAGE, FailureReason.CANCELLED, elapsed_ms)
            logger.info(f"Cancelled analysis of {slot.url}")
        else:
            await self._abandon(analysis_task, slot.url)
            tracker.mark_failed(index, TIMEOUT_MESSAGE, FailureReason.TIMEOUT, elapsed_ms)
            logger.warning(f"Page analysis timeout after {self.page_timeout:g}s: {slot.url}")

        self._emit(tracker.get(index))

    def _record_outcome(
        self,
        tracker: PageStateTracker,
        index: int,
        analysis_task: asyncio.Task,
        elapsed_ms: float,
    ) -> None:
        url = tracker.get(index).url
        try:
            analysis = analysis_task.result()
            if not isinstance(analysis, PageAnalysis):
                raise UpstreamAnalysisError(
                    f"Analyzer returned {type(analysis).__name__} instead of a page analysis"
                )

            for step, detail in analysis.phase_events:
                self._emit(tracker.mark_progress(index, step, detail))

            load_time_ms = analysis.load_time_ms or elapsed_ms
            tracker.mark_completed(index, analysis.score, load_time_ms, analysis.category_scores)
        except InvariantViolation:
            raise
        except (Exception, asyncio.CancelledError) as e:
            reason, message = classify_failure(e)
            tracker.mark_failed(index, message, reason, elapsed_ms)
            logger.error(f"Failed to analyze {url}: {reason.value}: {e}")
            return

        logger.info(f"Completed page {index + 1}/{len(tracker)}: {url} (Score: {analysis.score:g})")

    async def _abandon(self, task: asyncio.Task, url: str) -> None:
        """Cancel an analysis and wait a bounded time for it to unwind."""
        task.cancel()
        done, _ = await asyncio.wait({task}, timeout=self.cancel_grace)
        if not done:
            logger.warning(
                f"Analyzer did not stop within {self.cancel_grace:g}s for {url}; abandoning"
            )
        task.add_done_callback(_consume_result)

    def _emit(self, slot: PageSlot) -> None:
        if self.on_progress is None:
            return
        event = ProgressEvent(
            slot_index=slot.index,
            url=slot.url,
            state=slot.state,
            step=slot.step,
            step_detail=slot.step_detail,
        )
        try:
            self.on_progress(event)
        except Exception as e:
            logger.error(f"Progress callback failed for slot {slot.index}: {e}")
