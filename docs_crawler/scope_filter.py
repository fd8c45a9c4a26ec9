"""
Scope Filter
=============
Decides whether a discovered URL may join the crawl frontier.

A candidate is in scope when it

- shares the seed's origin (scheme, host, port),
- has a path that starts with the seed's path (plain string prefix),
- contains the optional path filter as a substring of its path,
- does not hit the deny-list of non-documentation routes and archives,
- does not end in a short non-HTML file extension (``.png``, ``.json`` ...).

Every check is pure; malformed URLs are rejected rather than raising.

Public API
----------
- ``in_scope(url, base_url, path_filter)`` — one-shot boolean check
- ``ScopeFilter``                          — seed + filter bound once per crawl
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import NamedTuple, Optional, Tuple
from urllib.parse import urlsplit

logger = logging.getLogger(__name__)


# -----------------------------------------------------------------------
# Deny-list and extension heuristic
# -----------------------------------------------------------------------

SKIP_PATTERNS: Tuple[str, ...] = (
    "/api/", "/auth/", "/login", "/logout", "/signup",
    "/search", "/404", "/500", ".pdf", ".zip", ".tar",
    "/cdn-cgi/", "/_next/", "/static/", "/assets/",
    "/samples/", "/quickstarts/", "/codelabs/",
)

_PAGE_EXTENSIONS = frozenset({"html", "htm"})

# Anything longer is more likely a dotted slug ("v1.somefeature") than a file type
_MAX_BINARY_EXT_LEN = 5

_DEFAULT_PORTS = {"http": 80, "https": 443}


class _Origin(NamedTuple):
    scheme: str
    host: str
    port: int


def _split(url: str) -> Optional[Tuple[_Origin, str]]:
    """Origin and path of *url*, or None when it cannot be parsed."""
    if not url or not isinstance(url, str):
        return None
    try:
        p = urlsplit(url.strip())
        host = p.hostname
        port = p.port
    except ValueError:
        return None

    scheme = p.scheme.lower()
    if scheme not in _DEFAULT_PORTS or not host:
        return None

    origin = _Origin(scheme, host, port if port is not None else _DEFAULT_PORTS[scheme])
    return origin, p.path or "/"


def _file_extension(path: str) -> str:
    """Lower-cased extension of the last path segment ("" when there is none)."""
    last_segment = path.rsplit("/", 1)[-1]
    if "." not in last_segment:
        return ""
    return last_segment.rsplit(".", 1)[-1].lower()


def is_denied_path(path: str) -> bool:
    """True when *path* hits the deny-list or looks like a binary download."""
    lower_path = path.lower()
    if any(pattern in lower_path for pattern in SKIP_PATTERNS):
        return True

    ext = _file_extension(path)
    if ext and ext not in _PAGE_EXTENSIONS and len(ext) <= _MAX_BINARY_EXT_LEN:
        return True

    return False


# -----------------------------------------------------------------------
# Standalone helper
# -----------------------------------------------------------------------

def in_scope(url: str, base_url: str, path_filter: str = "") -> bool:
    """
    Check whether *url* may be crawled for a crawl seeded at *base_url*.

    Parameters
    ----------
    url : str
        Candidate URL (normally already canonicalized).
    base_url : str
        The crawl seed; its origin and path define the scope.
    path_filter : str
        Optional substring the candidate path must contain.
    """
    cand = _split(url)
    base = _split(base_url)
    if cand is None or base is None:
        return False

    cand_origin, cand_path = cand
    base_origin, base_path = base

    if cand_origin != base_origin:
        return False

    if not cand_path.startswith(base_path):
        return False

    if path_filter and path_filter not in cand_path:
        return False

    if is_denied_path(cand_path):
        return False

    return True


# -----------------------------------------------------------------------
# ScopeFilter: bound once per crawl
# -----------------------------------------------------------------------

@dataclass
class ScopeFilter:
    """
    Reusable scope enforcer for a single crawl session.

    Parameters
    ----------
    root_url : str
        The (canonical) seed URL that defines origin and path prefix.
    path_filter : str
        Optional path substring every accepted URL must contain.
    """

    root_url: str = ""
    path_filter: str = ""

    _root: Optional[Tuple[_Origin, str]] = field(init=False, repr=False, default=None)
    rejected: int = field(init=False, default=0)

    def __post_init__(self):
        self._root = _split(self.root_url)
        if self._root is None and self.root_url:
            logger.warning(f"[SCOPE] Could not parse root URL: {self.root_url}")

    def accept(self, candidate_url: str) -> bool:
        """Return True if *candidate_url* passes every scope check."""
        if self._root is None:
            return False
        ok = in_scope(candidate_url, self.root_url, self.path_filter)
        if not ok:
            self.rejected += 1
        return ok

    # ------------------------------------------------------------------
    # Logging / introspection
    # ------------------------------------------------------------------

    def log_scope(self) -> None:
        """Emit scope information to the logger."""
        logger.info(f"[SCOPE] {self.scope_description}")
        if self.path_filter:
            logger.info(f"[SCOPE] Path filter: *{self.path_filter}*")

    @property
    def scope_description(self) -> str:
        if self._root is None:
            return "(unknown)"
        origin, path = self._root
        host = origin.host
        if origin.port != _DEFAULT_PORTS[origin.scheme]:
            host = f"{host}:{origin.port}"
        if path == "/":
            return f"Entire domain: {host}"
        return f"Prefix: {host}{path}*"
