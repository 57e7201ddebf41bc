"""Data models for multi-page audits."""

import math
from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Callable, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

from siteaudit.constants import (
    CATEGORY_WEIGHTS,
    MAX_PATHS_PER_AUDIT,
    MAX_SCORE,
    MIN_PATHS_PER_AUDIT,
    MIN_SCORE,
)
from siteaudit.exceptions import StructuralError
from siteaudit.urls import is_valid_domain


class SlotState(Enum):
    """Lifecycle state of a single page slot."""
    PENDING = "pending"
    VALIDATING = "validating"
    VALIDATION_FAILED = "validation_failed"
    VALIDATED = "validated"
    ANALYZING = "analyzing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (
            SlotState.VALIDATION_FAILED,
            SlotState.COMPLETED,
            SlotState.FAILED,
        )


class RunState(Enum):
    """Run-level state gating the whole audit."""
    AWAITING_VALIDATION = "awaiting_validation"
    VALIDATED = "validated"
    RUNNING = "running"
    CANCELLED = "cancelled"
    DONE = "done"


class FailureReason(Enum):
    """Classification of a per-slot analysis failure."""
    TIMEOUT = "Timeout"
    NETWORK_ERROR = "NetworkError"
    UPSTREAM_ERROR = "UpstreamError"
    CANCELLED = "Cancelled"


class AuditRequest(BaseModel):
    """
    Structurally validated audit request.

    Domain syntax, path count and blank paths are checked here, before any
    network activity. Use AuditRequest.create() to get StructuralError
    instead of a pydantic ValidationError.
    """

    domain: str = Field(
        description="Absolute http/https origin without a path component"
    )

    paths: list[str] = Field(
        description="Page paths relative to the domain, in request order",
        min_length=MIN_PATHS_PER_AUDIT,
        max_length=MAX_PATHS_PER_AUDIT,
    )

    credential: str = Field(
        default="",
        description="Shared access secret checked before scheduling",
        repr=False,
    )

    class Config:
        """Pydantic model configuration."""
        frozen = True

    @field_validator("domain")
    @classmethod
    def _check_domain(cls, value: str) -> str:
        value = value.strip()
        if not is_valid_domain(value):
            raise ValueError(
                "Please enter a valid domain (e.g., https://example.com)"
            )
        return value

    @field_validator("paths")
    @classmethod
    def _check_paths(cls, value: list[str]) -> list[str]:
        trimmed = [path.strip() for path in value]
        for position, path in enumerate(trimmed, start=1):
            if not path:
                raise ValueError(f"Path {position} is blank")
        return trimmed

    @classmethod
    def create(cls, domain: str, paths: list[str], credential: str = "") -> "AuditRequest":
        """Build a request, translating validation errors to StructuralError.

        Args:
            domain: Base domain such as https://example.com
            paths: One to five page paths
            credential: Access secret (may be empty until the run starts)

        Returns:
            AuditRequest

        Raises:
            StructuralError: If the domain or paths are malformed
        """
        try:
            return cls(domain=domain, paths=list(paths), credential=credential)
        except ValidationError as e:
            messages = [err["msg"].removeprefix("Value error, ") for err in e.errors()]
            raise StructuralError("; ".join(messages)) from e


@dataclass(frozen=True)
class PageSlot:
    """Snapshot of one page's analysis unit. Index is identity."""
    index: int
    path: str
    url: str
    state: SlotState = SlotState.PENDING
    validation_error: Optional[str] = None
    score: Optional[float] = None
    load_time_ms: Optional[float] = None
    category_scores: dict[str, float] = field(default_factory=dict)
    analysis_error: Optional[str] = None
    failure_reason: Optional[FailureReason] = None
    step: Optional[str] = None
    step_detail: Optional[str] = None

    def to_dict(self) -> dict:
        data = asdict(self)
        data["state"] = self.state.value
        data["failure_reason"] = self.failure_reason.value if self.failure_reason else None
        return data


@dataclass(frozen=True)
class ProbeResult:
    """Outcome of one reachability probe."""
    url: str
    reachable: bool
    error: Optional[str] = None
    status_code: Optional[int] = None


@dataclass(frozen=True)
class ValidationEntry:
    """One row of a validation report."""
    path: str
    url: str
    status: str  # "valid" | "invalid"
    error: Optional[str] = None

    @property
    def is_valid(self) -> bool:
        return self.status == "valid"

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class ProgressEvent:
    """Progress notification emitted on every slot transition and phase."""
    slot_index: int
    url: str
    state: SlotState
    step: Optional[str] = None
    step_detail: Optional[str] = None


ProgressCallback = Callable[[ProgressEvent], None]
PhaseCallback = Callable[[str, Optional[str]], None]


def weighted_overall_score(category_scores: dict[str, float]) -> int:
    """Combine category scores into one overall page score.

    Uses the five-category weighting (AI/LLM visibility 25%, technical 20%,
    content 25%, accessibility 10%, authority 20%). Missing categories
    count as zero.

    Args:
        category_scores: Mapping of category name to 0-100 score

    Returns:
        Overall score rounded half up
    """
    total = sum(
        category_scores.get(name, 0.0) * weight
        for name, weight in CATEGORY_WEIGHTS.items()
    )
    return math.floor(round(total, 6) + 0.5)


@dataclass
class PageAnalysis:
    """Result contract of the external page analyzer."""
    score: float
    load_time_ms: float = 0.0
    category_scores: dict[str, float] = field(default_factory=dict)
    phase_events: list[tuple[str, Optional[str]]] = field(default_factory=list)

    def __post_init__(self):
        if not MIN_SCORE <= self.score <= MAX_SCORE:
            raise ValueError(f"Score {self.score} outside {MIN_SCORE:g}-{MAX_SCORE:g}")

    @classmethod
    def from_category_scores(
        cls,
        category_scores: dict[str, float],
        load_time_ms: float = 0.0,
    ) -> "PageAnalysis":
        """Build an analysis whose score is the weighted category mix."""
        return cls(
            score=weighted_overall_score(category_scores),
            load_time_ms=load_time_ms,
            category_scores=dict(category_scores),
        )


@dataclass(frozen=True)
class AggregateResult:
    """Domain-level rollup computed from completed slots only."""
    average_score: Optional[float]
    completed_count: int
    failed_count: int
    total_pages: int
    success_rate: int
    category_averages: dict[str, float]
    best_slot: Optional[int]
    worst_slot: Optional[int]
    per_slot: tuple[PageSlot, ...]

    def to_dict(self) -> dict:
        """Convert to a JSON-friendly dictionary.

        average_score is omitted when no slot completed.
        """
        data = {
            "completed_count": self.completed_count,
            "failed_count": self.failed_count,
            "total_pages": self.total_pages,
            "success_rate": self.success_rate,
            "category_averages": dict(self.category_averages),
            "best_slot": self.best_slot,
            "worst_slot": self.worst_slot,
            "per_slot": [slot.to_dict() for slot in self.per_slot],
        }
        if self.average_score is not None:
            data["average_score"] = self.average_score
        return data
