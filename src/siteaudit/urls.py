"""URL composition and domain syntax checks."""

import ipaddress
import re
from urllib.parse import urlsplit

_HOST_LABEL = re.compile(r"^(?!-)[a-zA-Z0-9-]{1,63}(?<!-)$")
_TLD = re.compile(r"^[a-zA-Z][a-zA-Z0-9-]{0,62}$")


def is_valid_domain(domain: str) -> bool:
    """Check that a string is an absolute http/https origin.

    Accepts an optional port and a single trailing slash. Rejects anything
    with a path, query, fragment or credentials.

    Args:
        domain: Candidate domain, e.g. "https://example.com"

    Returns:
        True if the domain is usable as an audit origin
    """
    if not domain or domain != domain.strip():
        return False

    try:
        parts = urlsplit(domain)
        port = parts.port  # raises ValueError on a malformed port
    except ValueError:
        return False

    if parts.scheme.lower() not in ("http", "https"):
        return False
    if parts.path not in ("", "/") or parts.query or parts.fragment:
        return False
    if parts.username is not None or parts.password is not None:
        return False
    if port is not None and port == 0:
        return False

    host = parts.hostname
    if not host:
        return False
    return _is_valid_host(host)


def _is_valid_host(host: str) -> bool:
    if host == "localhost":
        return True
    try:
        ipaddress.ip_address(host)
        return True
    except ValueError:
        pass

    labels = host.rstrip(".").split(".")
    if len(labels) < 2 or len(host) > 253:
        return False
    if not all(_HOST_LABEL.match(label) for label in labels):
        return False
    return bool(_TLD.match(labels[-1]))


def normalize_path(path: str) -> str:
    """Normalize a page path to exactly one leading slash.

    Repeated trailing slashes collapse to one; an empty path becomes "/".
    """
    path = path.strip()
    if path.endswith("//"):
        path = path.rstrip("/") + "/"
    return "/" + path.lstrip("/")


def compose(domain: str, path: str) -> str:
    """Combine an accepted domain and a relative path into an absolute URL.

    The domain must already have passed is_valid_domain(); malformed
    domains are rejected by request validation, not here.

    Args:
        domain: Validated origin, trailing slash optional
        path: Page path, leading slash optional

    Returns:
        Absolute URL such as "https://example.com/about"
    """
    return domain.strip().rstrip("/") + normalize_path(path)
