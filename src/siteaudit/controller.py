"""
Run Controller.

Top-level state machine of a multi-page audit:

    AwaitingValidation -> Validated -> Running -> Done | Cancelled

A run only becomes Validated when every composed URL is reachable; there is
no partial start. Starting additionally requires the access credential.
Structural and access errors are raised before any slot work begins; per
slot failures are recorded on the slots and never raised.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Sequence

from siteaudit.access import AccessGate
from siteaudit.aggregator import aggregate
from siteaudit.analyzer import PageAnalyzer
from siteaudit.config import Config
from siteaudit.constants import (
    CANCELLED_MESSAGE,
    DEFAULT_CANCEL_GRACE_SECONDS,
    DEFAULT_MAX_CONCURRENCY,
    DEFAULT_PAGE_TIMEOUT_SECONDS,
    GENERIC_FAILURE_MESSAGE,
)
from siteaudit.exceptions import (
    AccessDenied,
    InvariantViolation,
    NotValidated,
    ValidationFailure,
)
from siteaudit.models import (
    AggregateResult,
    AuditRequest,
    FailureReason,
    PageSlot,
    ProgressCallback,
    ProgressEvent,
    RunState,
    SlotState,
    ValidationEntry,
)
from siteaudit.probe import HttpProber, Prober
from siteaudit.scheduler import AnalysisScheduler
from siteaudit.tracker import PageStateTracker
from siteaudit.validator import PROBE_CANCELLED_ERROR, UrlValidator

logger = logging.getLogger(__name__)


ACCESS_DENIED_MESSAGE = (
    "Invalid password for multi-page analysis. Please contact support for access."
)

# Slots an interrupted run leaves without an outcome
_OPEN_STATES = (SlotState.PENDING, SlotState.VALIDATED, SlotState.ANALYZING)


@dataclass
class AuditRun:
    """One audit of a domain. The credential is never retained."""
    domain: str
    paths: tuple[str, ...]
    tracker: PageStateTracker
    state: RunState = RunState.AWAITING_VALIDATION
    run_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)
    validation_report: list[ValidationEntry] = field(default_factory=list)
    cancel_event: asyncio.Event = field(default_factory=asyncio.Event, repr=False)

    @property
    def slots(self) -> tuple[PageSlot, ...]:
        return self.tracker.snapshot()

    @property
    def completed_count(self) -> int:
        return sum(1 for slot in self.slots if slot.state is SlotState.COMPLETED)

    @property
    def is_finished(self) -> bool:
        return self.state in (RunState.DONE, RunState.CANCELLED)

    def aggregate(self) -> AggregateResult:
        """Aggregate of the current snapshot (partial while running)."""
        return aggregate(self)

    def _set_state(self, state: RunState) -> None:
        logger.debug(f"Run {self.run_id}: {self.state.value} -> {state.value}")
        self.state = state
        self.updated_at = datetime.now()


class RunController:
    """
    Gates and drives audit runs.

    Owns the URL validator and builds an AnalysisScheduler per run.
    """

    def __init__(
        self,
        validator: UrlValidator,
        analyzer: PageAnalyzer,
        access_gate: AccessGate,
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
        page_timeout: float = DEFAULT_PAGE_TIMEOUT_SECONDS,
        cancel_grace: float = DEFAULT_CANCEL_GRACE_SECONDS,
        on_progress: Optional[ProgressCallback] = None,
    ):
        """
        Initialize controller.

        Args:
            validator: Reachability validator
            analyzer: External page analyzer
            access_gate: Credential check applied before scheduling
            max_concurrency: Pages analyzed at once
            page_timeout: Per-page analysis timeout in seconds
            cancel_grace: Seconds to wait for cancelled analyses to unwind
            on_progress: Callback receiving every ProgressEvent
        """
        self.validator = validator
        self.analyzer = analyzer
        self.access_gate = access_gate
        self.max_concurrency = max_concurrency
        self.page_timeout = page_timeout
        self.cancel_grace = cancel_grace
        self.on_progress = on_progress

    @classmethod
    def from_config(
        cls,
        config: Config,
        analyzer: PageAnalyzer,
        prober: Optional[Prober] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> "RunController":
        """Build a controller from a Config.

        Args:
            config: Loaded configuration
            analyzer: Page analyzer to use
            prober: Reachability prober (HttpProber by default)
            on_progress: Progress callback

        Returns:
            RunController
        """
        prober = prober or HttpProber(
            timeout=config.probe_timeout,
            user_agent=config.user_agent,
        )
        return cls(
            validator=UrlValidator(prober),
            analyzer=analyzer,
            access_gate=AccessGate(config.access_secret),
            max_concurrency=config.max_concurrency,
            page_timeout=config.page_timeout,
            cancel_grace=config.cancel_grace,
            on_progress=on_progress,
        )

    def create_run(self, domain: str, paths: Sequence[str]) -> AuditRun:
        """Create a run after structural checks.

        Args:
            domain: Base domain, e.g. https://example.com
            paths: One to five page paths

        Returns:
            AuditRun in AwaitingValidation

        Raises:
            StructuralError: Bad domain syntax, path count or blank path
        """
        request = AuditRequest.create(domain, list(paths))
        return self._run_for(request)

    def _run_for(self, request: AuditRequest) -> AuditRun:
        run = AuditRun(
            domain=request.domain,
            paths=tuple(request.paths),
            tracker=PageStateTracker(request.domain, request.paths),
        )
        logger.info(
            f"Created run {run.run_id} for {run.domain} with {len(run.paths)} page(s)"
        )
        return run

    async def validate(
        self,
        run: AuditRun,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> list[ValidationEntry]:
        """Probe every slot URL and gate the run on the outcome.

        Re-validating an AwaitingValidation or Validated run resets its
        slots first. If cancellation arrives while probing, every slot not
        proven unreachable fails as cancelled and the run is Cancelled.

        Args:
            run: Run to validate
            cancel_event: Cancels outstanding probes when set

        Returns:
            Validation report in slot order

        Raises:
            InvariantViolation: If the run already started
        """
        if run.state not in (RunState.AWAITING_VALIDATION, RunState.VALIDATED):
            raise InvariantViolation(
                f"Cannot validate run {run.run_id} in state {run.state.value}"
            )

        if any(slot.state is not SlotState.PENDING for slot in run.slots):
            run.tracker.reset()
        run._set_state(RunState.AWAITING_VALIDATION)

        for index in range(len(run.tracker)):
            self._emit(run.tracker.mark_validating(index))

        results = await self.validator.validate_all(run.tracker.urls, cancel_event)
        cancelled = run.cancel_event.is_set() or (
            cancel_event is not None and cancel_event.is_set()
        )

        report = []
        for index, result in enumerate(results):
            if cancelled and (result.reachable or result.error == PROBE_CANCELLED_ERROR):
                slot = run.tracker.mark_failed(
                    index, CANCELLED_MESSAGE, FailureReason.CANCELLED
                )
                self._emit(slot)
                report.append(ValidationEntry(
                    path=slot.path,
                    url=slot.url,
                    status="invalid",
                    error=CANCELLED_MESSAGE,
                ))
                continue

            slot = run.tracker.mark_validated(index, result.reachable, result.error)
            self._emit(slot)
            report.append(ValidationEntry(
                path=slot.path,
                url=slot.url,
                status="valid" if result.reachable else "invalid",
                error=slot.validation_error,
            ))

        run.validation_report = report
        invalid = [entry for entry in report if not entry.is_valid]
        if cancelled:
            logger.info(f"Run {run.run_id} cancelled during validation")
            if run.state is not RunState.CANCELLED:
                run._set_state(RunState.CANCELLED)
        elif invalid:
            logger.warning(
                f"{len(invalid)} URL(s) could not be accessed: "
                f"{', '.join(entry.url for entry in invalid)}"
            )
        else:
            run._set_state(RunState.VALIDATED)
            logger.info(f"All {len(report)} URL(s) validated for run {run.run_id}")

        return report

    async def start(self, run: AuditRun, credential: str) -> AggregateResult:
        """Run page analyses for a validated run.

        Args:
            run: Run in Validated state
            credential: Access credential

        Returns:
            Final AggregateResult

        Raises:
            NotValidated: If any URL has not passed validation
            AccessDenied: If the credential does not match
            InvariantViolation: If a slot was driven out of order
        """
        if run.state is not RunState.VALIDATED:
            raise NotValidated(
                "Please validate URLs first; every URL must be reachable "
                "before analysis can start."
            )
        self.check_access(credential)

        run._set_state(RunState.RUNNING)
        logger.info(
            f"Starting multi-page analysis for domain: {run.domain} "
            f"with {len(run.paths)} pages"
        )

        scheduler = AnalysisScheduler(
            analyzer=self.analyzer,
            max_concurrency=self.max_concurrency,
            page_timeout=self.page_timeout,
            cancel_grace=self.cancel_grace,
            on_progress=self.on_progress,
        )
        try:
            await scheduler.run(run.tracker, run.cancel_event)
        except InvariantViolation:
            logger.critical(f"Run {run.run_id} aborted: slot state corrupted", exc_info=True)
            raise
        except asyncio.CancelledError:
            logger.info(f"Run {run.run_id} interrupted")
            self._fail_open_slots(
                run, CANCELLED_MESSAGE, FailureReason.CANCELLED, _OPEN_STATES
            )
            run._set_state(RunState.CANCELLED)
            raise
        except Exception:
            logger.exception(f"Run {run.run_id} aborted by an unexpected error")
            self._fail_open_slots(
                run, GENERIC_FAILURE_MESSAGE, FailureReason.UPSTREAM_ERROR, _OPEN_STATES
            )
            run._set_state(RunState.DONE)
            raise

        run._set_state(
            RunState.CANCELLED if run.cancel_event.is_set() else RunState.DONE
        )
        result = run.aggregate()

        average = f"{result.average_score:.1f}" if result.average_score is not None else "n/a"
        logger.info(
            f"Multi-page analysis {run.state.value}: "
            f"{result.completed_count}/{result.total_pages} pages, average score: {average}"
        )
        return result

    def cancel(self, run: AuditRun) -> None:
        """Request cancellation.

        A Running run becomes Cancelled once in-flight analyses unwind
        (bounded by the cancel grace period). A run that has not started
        becomes Cancelled immediately, and its Pending and Validated slots
        fail as cancelled. Slots still being probed fail when their
        validation returns.
        """
        if run.is_finished:
            return
        logger.info(f"Cancellation requested for run {run.run_id}")
        run.cancel_event.set()
        if run.state is not RunState.RUNNING:
            self._fail_open_slots(
                run,
                CANCELLED_MESSAGE,
                FailureReason.CANCELLED,
                (SlotState.PENDING, SlotState.VALIDATED),
            )
            run._set_state(RunState.CANCELLED)

    async def execute(self, run: AuditRun, credential: str) -> AggregateResult:
        """Validate then start a run.

        Raises:
            AccessDenied: Before any probe is sent
            ValidationFailure: If any URL is unreachable (carries the report)
        """
        self.check_access(credential)
        if run.cancel_event.is_set():
            return run.aggregate()

        report = await self.validate(run, run.cancel_event)
        if run.cancel_event.is_set():
            run._set_state(RunState.CANCELLED)
            return run.aggregate()

        if run.state is not RunState.VALIDATED:
            invalid = [entry for entry in report if not entry.is_valid]
            raise ValidationFailure(
                f"{len(invalid)} URL(s) could not be accessed. "
                f"Please check the URLs and try again.",
                report=report,
            )
        return await self.start(run, credential)

    async def audit(self, request: AuditRequest) -> AggregateResult:
        """Create, validate and run an audit in one call."""
        return await self.execute(self._run_for(request), request.credential)

    def check_access(self, credential: str) -> None:
        if not self.access_gate.check(credential):
            logger.warning("Multi-page analysis rejected: credential mismatch")
            raise AccessDenied(ACCESS_DENIED_MESSAGE)

    def _fail_open_slots(
        self,
        run: AuditRun,
        message: str,
        reason: FailureReason,
        states: Sequence[SlotState],
    ) -> None:
        for slot in run.slots:
            if slot.state in states:
                self._emit(run.tracker.mark_failed(slot.index, message, reason))

    def _emit(self, slot: PageSlot) -> None:
        if self.on_progress is None:
            return
        try:
            self.on_progress(ProgressEvent(
                slot_index=slot.index,
                url=slot.url,
                state=slot.state,
                step=slot.step,
                step_detail=slot.step_detail,
            ))
        except Exception as e:
            logger.error(f"Progress callback failed for slot {slot.index}: {e}")
