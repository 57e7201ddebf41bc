"""
Page State Tracker.

Holds the lifecycle state of every page slot in a run. Each slot record is
an immutable PageSlot replaced in a single assignment, so a snapshot never
observes a half-written slot. Only the worker that owns slot i writes slot
i; writes to different slots never contend and no lock is needed.
"""

import logging
from dataclasses import replace
from typing import Optional, Sequence

from siteaudit.exceptions import InvariantViolation
from siteaudit.models import FailureReason, PageSlot, SlotState
from siteaudit.urls import compose

logger = logging.getLogger(__name__)


# Legal predecessor states for each target state
_PREDECESSORS = {
    SlotState.VALIDATING: {SlotState.PENDING},
    SlotState.VALIDATED: {SlotState.VALIDATING},
    SlotState.VALIDATION_FAILED: {SlotState.VALIDATING},
    SlotState.ANALYZING: {SlotState.VALIDATED},
    SlotState.COMPLETED: {SlotState.ANALYZING},
    # Slots that never reached Analyzing fail only through cancellation
    SlotState.FAILED: {
        SlotState.ANALYZING,
        SlotState.VALIDATED,
        SlotState.VALIDATING,
        SlotState.PENDING,
    },
}


class PageStateTracker:
    """
    In-memory table from slot index to PageSlot.

    Every mark_* call asserts the slot's current state is a legal
    predecessor of the target state and raises InvariantViolation if not.
    """

    def __init__(self, domain: str, paths: Sequence[str]):
        """
        Create one Pending slot per path, in request order.

        Args:
            domain: Validated origin
            paths: Page paths (duplicates become independent slots)
        """
        self._slots: list[PageSlot] = [
            PageSlot(index=i, path=path, url=compose(domain, path))
            for i, path in enumerate(paths)
        ]

    def __len__(self) -> int:
        return len(self._slots)

    def get(self, index: int) -> PageSlot:
        """Current record of one slot."""
        return self._slots[index]

    def snapshot(self) -> tuple[PageSlot, ...]:
        """Full-run read-only snapshot in slot order."""
        return tuple(self._slots)

    @property
    def urls(self) -> list[str]:
        return [slot.url for slot in self._slots]

    def _transition(self, index: int, target: SlotState, **changes) -> PageSlot:
        if not 0 <= index < len(self._slots):
            raise InvariantViolation(f"Slot {index} does not exist")

        current = self._slots[index]
        if current.state not in _PREDECESSORS[target]:
            raise InvariantViolation(
                f"Illegal transition for slot {index}: "
                f"{current.state.value} -> {target.value}"
            )

        updated = replace(current, state=target, **changes)
        self._slots[index] = updated
        logger.debug(f"Slot {index} ({updated.url}): {current.state.value} -> {target.value}")
        return updated

    def mark_validating(self, index: int) -> PageSlot:
        return self._transition(index, SlotState.VALIDATING)

    def mark_validated(self, index: int, ok: bool, error: Optional[str] = None) -> PageSlot:
        """Record a reachability outcome for one slot.

        Args:
            index: Slot index
            ok: Whether the URL was reachable
            error: Reason it was not reachable
        """
        if ok:
            return self._transition(index, SlotState.VALIDATED, validation_error=None)
        return self._transition(
            index,
            SlotState.VALIDATION_FAILED,
            validation_error=error or "URL could not be reached",
        )

    def mark_analyzing(self, index: int) -> PageSlot:
        return self._transition(index, SlotState.ANALYZING)

    def mark_progress(self, index: int, step: str, detail: Optional[str] = None) -> PageSlot:
        """Record the latest analyzer phase on an Analyzing slot."""
        current = self._slots[index]
        if current.state is not SlotState.ANALYZING:
            raise InvariantViolation(
                f"Progress reported for slot {index} in state {current.state.value}"
            )
        updated = replace(current, step=step, step_detail=detail)
        self._slots[index] = updated
        return updated

    def mark_completed(
        self,
        index: int,
        score: float,
        load_time_ms: float,
        category_scores: Optional[dict[str, float]] = None,
    ) -> PageSlot:
        return self._transition(
            index,
            SlotState.COMPLETED,
            score=score,
            load_time_ms=load_time_ms,
            category_scores=dict(category_scores or {}),
        )

    def mark_failed(
        self,
        index: int,
        error: str,
        reason: FailureReason,
        load_time_ms: Optional[float] = None,
    ) -> PageSlot:
        return self._transition(
            index,
            SlotState.FAILED,
            analysis_error=error,
            failure_reason=reason,
            load_time_ms=load_time_ms,
        )

    def reset(self) -> None:
        """Return every slot to Pending ahead of re-validation."""
        for slot in self._slots:
            if slot.state not in (
                SlotState.PENDING,
                SlotState.VALIDATED,
                SlotState.VALIDATION_FAILED,
            ):
                raise InvariantViolation(
                    f"Cannot reset slot {slot.index} in state {slot.state.value}"
                )
        self._slots = [
            PageSlot(index=slot.index, path=slot.path, url=slot.url)
            for slot in self._slots
        ]
