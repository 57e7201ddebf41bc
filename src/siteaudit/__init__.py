"""Multi-page site audit orchestrator."""

__version__ = "0.1.0"

from siteaudit.urls import compose, is_valid_domain, normalize_path
from siteaudit.models import (
    AggregateResult,
    AuditRequest,
    FailureReason,
    PageAnalysis,
    PageSlot,
    ProbeResult,
    ProgressEvent,
    RunState,
    SlotState,
    ValidationEntry,
    weighted_overall_score,
)
from siteaudit.exceptions import (
    AccessDenied,
    AnalysisError,
    AnalysisNetworkError,
    AnalysisTimeout,
    AuditError,
    InvariantViolation,
    NotValidated,
    SessionNotFound,
    StructuralError,
    UpstreamAnalysisError,
    ValidationFailure,
)
from siteaudit.access import AccessGate
from siteaudit.aggregator import aggregate
from siteaudit.analyzer import HttpPageAnalyzer, PageAnalyzer, classify_failure
from siteaudit.probe import HttpProber, Prober
from siteaudit.validator import UrlValidator
from siteaudit.tracker import PageStateTracker
from siteaudit.scheduler import AnalysisScheduler
from siteaudit.controller import AuditRun, RunController
from siteaudit.sessions import AuditSession, AuditSessions
from siteaudit.config import Config, settings

__all__ = [
    # URLs
    "compose",
    "is_valid_domain",
    "normalize_path",
    # Models
    "AggregateResult",
    "AuditRequest",
    "FailureReason",
    "PageAnalysis",
    "PageSlot",
    "ProbeResult",
    "ProgressEvent",
    "RunState",
    "SlotState",
    "ValidationEntry",
    "weighted_overall_score",
    # Errors
    "AccessDenied",
    "AnalysisError",
    "AnalysisNetworkError",
    "AnalysisTimeout",
    "AuditError",
    "InvariantViolation",
    "NotValidated",
    "SessionNotFound",
    "StructuralError",
    "UpstreamAnalysisError",
    "ValidationFailure",
    # Core
    "AccessGate",
    "aggregate",
    "HttpPageAnalyzer",
    "PageAnalyzer",
    "classify_failure",
    "HttpProber",
    "Prober",
    "UrlValidator",
    "PageStateTracker",
    "AnalysisScheduler",
    "AuditRun",
    "RunController",
    "AuditSession",
    "AuditSessions",
    "Config",
    "settings",
]
