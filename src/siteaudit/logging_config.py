"""
Logging configuration for the audit orchestrator.

Two channels are configured:

- Diagnostic records from every ``siteaudit.*`` module go to stderr (and an
  optional log file) with timestamps and levels.
- Per-page progress lines go to the ``siteaudit.progress`` logger, which
  writes bare messages to stdout so they interleave with the report and
  never reach the log file.
"""

import logging
import sys
from pathlib import Path
from typing import Optional, TextIO

PROGRESS_LOGGER = "siteaudit.progress"

DEFAULT_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

# Libraries whose INFO chatter drowns out audit progress
NOISY_LOGGERS = ('httpx', 'httpcore', 'asyncio')


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    format_string: Optional[str] = None,
    progress_stream: Optional[TextIO] = None,
) -> None:
    """Configure diagnostic and progress logging.

    Args:
        level: Log level for diagnostics (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional log file path for diagnostics
        format_string: Optional custom diagnostic format string
        progress_stream: Stream for progress lines (stdout by default)
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=numeric_level,
        format=format_string or DEFAULT_FORMAT,
        handlers=handlers,
        force=True  # Override any existing configuration
    )

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    _setup_progress(progress_stream or sys.stdout)


def _setup_progress(stream: TextIO) -> None:
    # Progress stays visible whatever the diagnostic level is
    progress = logging.getLogger(PROGRESS_LOGGER)
    for handler in list(progress.handlers):
        progress.removeHandler(handler)
        handler.close()

    handler = logging.StreamHandler(stream)
    handler.setFormatter(logging.Formatter('%(message)s'))
    progress.addHandler(handler)
    progress.setLevel(logging.INFO)
    progress.propagate = False


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance.

    Args:
        name: Logger name (usually __name__)

    Returns:
        Configured logger instance
    """
    return logging.getLogger(name)


def get_progress_logger() -> logging.Logger:
    """Logger for user-facing per-page progress lines."""
    return logging.getLogger(PROGRESS_LOGGER)
