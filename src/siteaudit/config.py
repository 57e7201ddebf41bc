from dotenv import load_dotenv
from dataclasses import dataclass
from typing import Optional
import os

from siteaudit.constants import (
    DEFAULT_CANCEL_GRACE_SECONDS,
    DEFAULT_MAX_CONCURRENCY,
    DEFAULT_PAGE_TIMEOUT_SECONDS,
    DEFAULT_PROBE_TIMEOUT_SECONDS,
    DEFAULT_SESSION_TTL_SECONDS,
    DEFAULT_USER_AGENT,
)

load_dotenv()  # Loads variables from .env file


class Settings:
    """
    Manages application settings loaded from environment variables.
    """
    # Shared secret for the multi-page access gate (unset rejects everyone)
    AUDIT_ACCESS_SECRET = os.getenv("AUDIT_ACCESS_SECRET")
    AUDIT_ANALYZER_URL = os.getenv("AUDIT_ANALYZER_URL")
    USER_AGENT = os.getenv("USER_AGENT", DEFAULT_USER_AGENT)
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")


settings = Settings()


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        return default  # Keep default if conversion fails


@dataclass
class Config:
    """Configuration for the audit orchestrator."""
    access_secret: Optional[str] = None
    analyzer_url: Optional[str] = None
    user_agent: str = DEFAULT_USER_AGENT
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY
    page_timeout: float = DEFAULT_PAGE_TIMEOUT_SECONDS
    probe_timeout: float = DEFAULT_PROBE_TIMEOUT_SECONDS
    cancel_grace: float = DEFAULT_CANCEL_GRACE_SECONDS
    session_ttl: float = DEFAULT_SESSION_TTL_SECONDS
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Config":
        """Load configuration from environment variables.

        Returns:
            Config: Configuration instance with values from environment
        """
        return cls(
            access_secret=os.getenv("AUDIT_ACCESS_SECRET"),
            analyzer_url=os.getenv("AUDIT_ANALYZER_URL"),
            user_agent=os.getenv("USER_AGENT", DEFAULT_USER_AGENT),
            max_concurrency=max(1, int(_env_float("AUDIT_MAX_CONCURRENCY", DEFAULT_MAX_CONCURRENCY))),
            page_timeout=_env_float("AUDIT_PAGE_TIMEOUT", DEFAULT_PAGE_TIMEOUT_SECONDS),
            probe_timeout=_env_float("AUDIT_PROBE_TIMEOUT", DEFAULT_PROBE_TIMEOUT_SECONDS),
            cancel_grace=_env_float("AUDIT_CANCEL_GRACE", DEFAULT_CANCEL_GRACE_SECONDS),
            session_ttl=_env_float("AUDIT_SESSION_TTL", DEFAULT_SESSION_TTL_SECONDS),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )
