"""Score Aggregator: domain-level rollup over completed page slots."""

from typing import Iterable, Optional, Union

from siteaudit.models import AggregateResult, PageSlot, SlotState


def _slots_of(source) -> tuple[PageSlot, ...]:
    if hasattr(source, "slots"):
        return tuple(source.slots)
    return tuple(source)


def aggregate(source: Union[Iterable[PageSlot], object]) -> AggregateResult:
    """Compute the aggregate result for a run or a slot snapshot.

    The average covers Completed slots only and is None when no slot
    completed. Failed and ValidationFailed slots both count as failed.
    Calling this twice on the same snapshot gives identical results.

    Args:
        source: An AuditRun (anything with a .slots attribute) or a sequence
            of PageSlot snapshots

    Returns:
        AggregateResult
    """
    slots = _slots_of(source)
    completed = [slot for slot in slots if slot.state is SlotState.COMPLETED]
    failed = [
        slot for slot in slots
        if slot.state in (SlotState.FAILED, SlotState.VALIDATION_FAILED)
    ]

    average_score: Optional[float] = None
    if completed:
        average_score = sum(slot.score for slot in completed) / len(completed)

    best_slot = worst_slot = None
    if completed:
        # max/min return the first of equal items, so the first slot wins ties
        best_slot = max(completed, key=lambda slot: slot.score).index
        worst_slot = min(completed, key=lambda slot: slot.score).index

    total = len(slots)
    success_rate = round(len(completed) / total * 100) if total else 0

    return AggregateResult(
        average_score=average_score,
        completed_count=len(completed),
        failed_count=len(failed),
        total_pages=total,
        success_rate=success_rate,
        category_averages=_category_averages(completed),
        best_slot=best_slot,
        worst_slot=worst_slot,
        per_slot=slots,
    )


def _category_averages(completed: list[PageSlot]) -> dict[str, float]:
    """Mean of each category over the completed slots that report it."""
    totals: dict[str, float] = {}
    counts: dict[str, int] = {}
    for slot in completed:
        for name, value in slot.category_scores.items():
            totals[name] = totals.get(name, 0.0) + value
            counts[name] = counts.get(name, 0) + 1
    return {name: totals[name] / counts[name] for name in sorted(totals)}
