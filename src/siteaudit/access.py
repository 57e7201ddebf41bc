"""
Access gate for multi-page audits.

A single static shared secret decides whether a validated run may start.
This is a coarse access gate, not authentication or authorization: there
are no users, no rotation and no rate limiting, and it must not be relied
on as a security boundary.
"""

import hmac
import logging
from typing import Optional

logger = logging.getLogger(__name__)


class AccessGate:
    """Compare a provided credential against one configured secret."""

    def __init__(self, secret: Optional[str]):
        """
        Initialize gate.

        Args:
            secret: The shared secret. None or empty rejects every credential.
        """
        self._secret = secret or ""

    @property
    def configured(self) -> bool:
        return bool(self._secret)

    def check(self, provided: Optional[str]) -> bool:
        """Check a credential.

        Surrounding whitespace is ignored.

        Args:
            provided: Credential supplied with the request

        Returns:
            True if it matches the configured secret
        """
        if not self._secret:
            logger.warning("Access secret is not configured; rejecting credential")
            return False
        candidate = (provided or "").strip()
        return hmac.compare_digest(candidate.encode(), self._secret.encode())
