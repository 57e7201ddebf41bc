"""Exception hierarchy for the audit orchestrator."""

from typing import Optional


class AuditError(Exception):
    """Base class for all audit errors."""


class StructuralError(AuditError):
    """Request rejected before any network activity.

    Raised for a malformed domain, a path count outside 1-5, or a path that
    is blank after trimming.
    """


class ValidationFailure(AuditError):
    """One or more composed URLs failed the reachability probe."""

    def __init__(self, message: str, report: Optional[list] = None):
        super().__init__(message)
        self.report = report or []

    @property
    def invalid_entries(self) -> list:
        """Entries of the report that did not validate."""
        return [entry for entry in self.report if not entry.is_valid]


class NotValidated(AuditError):
    """A run was started before every URL passed validation."""


class AccessDenied(AuditError):
    """Credential mismatch at the access gate."""


class InvariantViolation(AuditError):
    """An illegal slot or run state transition was attempted.

    This is a programming error. It is never recorded on a slot and always
    propagates out of the run.
    """


class SessionNotFound(AuditError):
    """Unknown or expired audit session id."""


class AnalysisError(AuditError):
    """Page analysis failed for a single slot."""

    reason = "UpstreamError"


class AnalysisTimeout(AnalysisError):
    """The page analyzer did not finish within the per-page timeout."""

    reason = "Timeout"


class AnalysisNetworkError(AnalysisError):
    """The page analyzer could not reach the page or its backend."""

    reason = "NetworkError"


class UpstreamAnalysisError(AnalysisError):
    """The page analyzer returned an error of its own."""

    reason = "UpstreamError"

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code
