"""
URL Validator.

Runs one reachability probe per URL, all at once, and returns the results
in input order regardless of completion order. A failing probe never
cancels its siblings. The validator has no gating logic of its own; the
Run Controller decides what an unreachable URL means for the run.
"""

import asyncio
import logging
from typing import Optional, Sequence

from siteaudit.models import ProbeResult
from siteaudit.probe import Prober

logger = logging.getLogger(__name__)

# Error recorded for probes cut short by cancellation
PROBE_CANCELLED_ERROR = "Cancelled"


class UrlValidator:
    """Concurrent fan-out/fan-in over a reachability prober."""

    def __init__(self, prober: Prober):
        self.prober = prober

    async def validate_all(
        self,
        urls: Sequence[str],
        cancel_event: Optional[asyncio.Event] = None,
    ) -> list[ProbeResult]:
        """
        Probe every URL concurrently.

        Args:
            urls: Absolute URLs to check
            cancel_event: When set, outstanding probes are cancelled and
                reported unreachable with error "Cancelled"

        Returns:
            One ProbeResult per URL, in input order
        """
        # Pre-sized so each probe writes its own position
        results: list[Optional[ProbeResult]] = [None] * len(urls)

        async def _probe_one(index: int, url: str) -> None:
            try:
                results[index] = await self.prober.probe(url)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"URL validation error for {url}: {e}")
                results[index] = ProbeResult(
                    url=url,
                    reachable=False,
                    error=f"Validation service error: {e}",
                )

        tasks = [
            asyncio.create_task(_probe_one(i, url))
            for i, url in enumerate(urls)
        ]

        try:
            if tasks:
                await self._wait(tasks, cancel_event)
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)

        return [
            result if result is not None
            else ProbeResult(url=url, reachable=False, error=PROBE_CANCELLED_ERROR)
            for url, result in zip(urls, results)
        ]

    async def _wait(
        self,
        tasks: list[asyncio.Task],
        cancel_event: Optional[asyncio.Event],
    ) -> None:
        if cancel_event is None:
            await asyncio.wait(tasks)
            return

        if cancel_event.is_set():
            logger.info("Validation cancelled before probing")
            return

        cancel_waiter = asyncio.create_task(cancel_event.wait())
        try:
            pending = set(tasks)
            while pending:
                done, _ = await asyncio.wait(
                    pending | {cancel_waiter},
                    return_when=asyncio.FIRST_COMPLETED,
                )
                pending -= done
                if cancel_waiter in done:
                    logger.info(f"Validation cancelled with {len(pending)} probe(s) outstanding")
                    return
        finally:
            cancel_waiter.cancel()
