# src/siteaudit/constants.py
"""Centralized constants for the multi-page audit orchestrator.

This module contains limits, timeouts and weights used across multiple
modules. For user-configurable values, see config.py and Config.
"""

# =============================================================================
# Request Limits
# =============================================================================

# Maximum number of page paths accepted in a single audit request
MAX_PATHS_PER_AUDIT = 5

# Minimum number of page paths accepted in a single audit request
MIN_PATHS_PER_AUDIT = 1


# =============================================================================
# Timeouts (seconds)
# =============================================================================

# Per-page analysis timeout (2 minutes per page for multi-page audits)
DEFAULT_PAGE_TIMEOUT_SECONDS = 120.0

# Reachability probe timeout
DEFAULT_PROBE_TIMEOUT_SECONDS = 5.0

# How long cancellation waits for in-flight analyses to unwind
DEFAULT_CANCEL_GRACE_SECONDS = 5.0

# Session inactivity expiry (30 minutes)
DEFAULT_SESSION_TTL_SECONDS = 1800.0


# =============================================================================
# Scheduling
# =============================================================================

# Pages analyzed at once; 1 means one page at a time
DEFAULT_MAX_CONCURRENCY = 1


# =============================================================================
# Scoring
# =============================================================================

# Category weights for the overall page score (must sum to 1.0)
CATEGORY_WEIGHTS = {
    "ai_llm_visibility": 0.25,
    "technical": 0.20,
    "content": 0.25,
    "accessibility": 0.10,
    "authority": 0.20,
}

MIN_SCORE = 0.0
MAX_SCORE = 100.0


# =============================================================================
# Failure Messages
# =============================================================================

TIMEOUT_MESSAGE = "Analysis timed out - website may be slow to respond"
NETWORK_MESSAGE = "Network connection issue - please check the site is reachable and try again"
FORBIDDEN_MESSAGE = "Access denied - website may be blocking automated requests"
NOT_FOUND_MESSAGE = "Page not found - please check the URL"
QUOTA_MESSAGE = "Service quota exceeded - please try again later"
CANCELLED_MESSAGE = "Analysis cancelled"
GENERIC_FAILURE_MESSAGE = "Analysis failed"

DNS_FAILURE_MESSAGE = "Domain not found - please check the URL is correct"

# Substrings in transport errors that indicate the host does not resolve
DNS_ERROR_MARKERS = (
    "enotfound",
    "getaddrinfo",
    "name not found",
    "no such host",
    "name or service not known",
    "nodename nor servname",
    "temporary failure in name resolution",
)

DEFAULT_USER_AGENT = "Mozilla/5.0 (compatible; SiteAudit-URLValidator/1.0)"
