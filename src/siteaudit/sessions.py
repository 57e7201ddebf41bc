"""
Audit session registry.

Runs audits in the background and lets callers poll progress by session
id. Sessions live in memory only; finished sessions expire after a period
of inactivity and are purged on the next access.
"""

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Callable, Optional

from siteaudit.constants import DEFAULT_SESSION_TTL_SECONDS
from siteaudit.controller import AuditRun, RunController
from siteaudit.exceptions import AuditError, SessionNotFound, ValidationFailure
from siteaudit.models import AggregateResult, AuditRequest, RunState, SlotState

logger = logging.getLogger(__name__)


_STATUS_BY_RUN_STATE = {
    RunState.AWAITING_VALIDATION: "validating",
    RunState.VALIDATED: "analyzing",
    RunState.RUNNING: "analyzing",
    RunState.DONE: "completed",
    RunState.CANCELLED: "cancelled",
}


@dataclass
class AuditSession:
    """Background audit and its bookkeeping."""
    session_id: str
    run: AuditRun
    started_at: float
    updated_at: float
    task: Optional[asyncio.Task] = field(default=None, repr=False)
    result: Optional[AggregateResult] = None
    error: Optional[str] = None
    completed_at: Optional[float] = None

    @property
    def status(self) -> str:
        if self.error is not None:
            return "failed"
        return _STATUS_BY_RUN_STATE[self.run.state]

    def snapshot(self) -> dict:
        """Progress view of the session for polling clients."""
        slots = self.run.slots
        analyzing = [slot for slot in slots if slot.state is SlotState.ANALYZING]
        current = analyzing[0] if analyzing else None
        aggregate = self.result or self.run.aggregate()

        return {
            "session_id": self.session_id,
            "domain": self.run.domain,
            "paths": list(self.run.paths),
            "status": self.status,
            "total_pages": len(slots),
            "completed_pages": sum(1 for slot in slots if slot.state.is_terminal),
            "current_page_index": current.index if current else None,
            "current_page_url": current.url if current else None,
            "current_step": current.step if current else None,
            "current_step_details": current.step_detail if current else None,
            "validation_report": [entry.to_dict() for entry in self.run.validation_report],
            "aggregate": aggregate.to_dict(),
            "error": self.error,
            "started_at": self.started_at,
            "updated_at": self.updated_at,
            "completed_at": self.completed_at,
        }


class AuditSessions:
    """
    In-memory registry of background audits.

    Structural and access errors are raised synchronously from start();
    everything after that is reported through get().
    """

    def __init__(
        self,
        controller: RunController,
        ttl_seconds: float = DEFAULT_SESSION_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize registry.

        Args:
            controller: Controller that drives each run
            ttl_seconds: Inactivity period after which finished sessions expire
            clock: Time source (seconds)
        """
        self.controller = controller
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._sessions: dict[str, AuditSession] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def start(self, request: AuditRequest) -> str:
        """Start an audit in the background.

        Must be called from inside a running event loop.

        Args:
            request: Structurally valid request with credential

        Returns:
            Session id

        Raises:
            AccessDenied: If the credential does not match
        """
        self.purge_expired()
        self.controller.check_access(request.credential)

        run = self.controller.create_run(request.domain, request.paths)
        now = self._clock()
        session = AuditSession(
            session_id=uuid.uuid4().hex,
            run=run,
            started_at=now,
            updated_at=now,
        )
        session.task = asyncio.get_running_loop().create_task(
            self._drive(session, request.credential)
        )
        self._sessions[session.session_id] = session

        logger.info(
            f"Session {session.session_id} started for {run.domain} "
            f"({len(run.paths)} pages)"
        )
        return session.session_id

    async def _drive(self, session: AuditSession, credential: str) -> None:
        try:
            session.result = await self.controller.execute(session.run, credential)
        except ValidationFailure as e:
            session.error = str(e)
        except AuditError as e:
            logger.error(f"Session {session.session_id} failed: {e}")
            session.error = str(e)
        except Exception as e:
            logger.exception(f"Session {session.session_id} crashed")
            session.error = str(e) or type(e).__name__
        finally:
            session.completed_at = self._clock()
            session.updated_at = session.completed_at

    def get(self, session_id: str) -> dict:
        """Snapshot of one session.

        Raises:
            SessionNotFound: Unknown or expired id
        """
        return self._session(session_id).snapshot()

    def cancel(self, session_id: str) -> None:
        """Request cancellation of a session's run."""
        session = self._session(session_id)
        self.controller.cancel(session.run)
        session.updated_at = self._clock()

    async def wait(self, session_id: str) -> dict:
        """Wait for a session's background task, then return its snapshot."""
        session = self._session(session_id)
        if session.task is not None:
            await asyncio.shield(session.task)
        return session.snapshot()

    def purge_expired(self) -> int:
        """Drop finished sessions idle for longer than the TTL.

        Returns:
            Number of sessions removed
        """
        now = self._clock()
        expired = [
            session_id for session_id, session in self._sessions.items()
            if session.completed_at is not None
            and now - session.updated_at > self.ttl_seconds
        ]
        for session_id in expired:
            del self._sessions[session_id]
        if expired:
            logger.debug(f"Purged {len(expired)} expired session(s)")
        return len(expired)

    def _session(self, session_id: str) -> AuditSession:
        self.purge_expired()
        session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFound(f"Session not found or expired: {session_id}")
        return session
