"""
Utility Functions
URL canonicalization and small text helpers shared by the crawler,
the exporters and the CLI.
"""

import logging
import re
from typing import Iterable, Optional
from urllib.parse import parse_qsl, quote, urlencode, urljoin, urlsplit, urlunsplit

logger = logging.getLogger(__name__)

_DEFAULT_PORTS = {'http': 80, 'https': 443}
_WHITESPACE = re.compile(r'\s')


class URLNormalizer:
    """
    Turns a raw (possibly relative) link into the canonical string used as
    the dedup key for a crawl.

    - resolves against a base URL
    - only absolute http/https URLs with a host survive
    - lower-cases scheme and host, drops default ports
    - resolves ``.`` / ``..`` path segments
    - drops the fragment
    - removes tracking query parameters (other params keep their order)
    - strips trailing slashes, except for the bare origin ``https://host/``
    - percent-encodes literal whitespace left in the path or query

    Path case, ``www.`` prefixes and query order are left untouched.
    """

    TRACKING_PARAMS = frozenset({'utm_source', 'utm_medium', 'utm_campaign', 'hl'})

    def __init__(self, tracking_params: Optional[Iterable[str]] = None):
        if tracking_params is not None:
            self.tracking_params = frozenset(tracking_params)
        else:
            self.tracking_params = self.TRACKING_PARAMS

    def normalize(self, url: str, base_url: str = None) -> Optional[str]:
        """
        Normalize a URL for consistent comparison.

        Args:
            url: The URL to normalize
            base_url: Optional base URL for resolving relative URLs

        Returns:
            Canonical URL string or None if the link is unusable
        """
        if not url or not isinstance(url, str):
            return None

        url = url.strip()
        if not url:
            return None

        try:
            # urljoin drops empty ";" params, so absolute links skip it
            if base_url and not urlsplit(url).scheme:
                url = urljoin(base_url, url)
            parsed = urlsplit(url)
            # .port raises ValueError for out-of-range / non-numeric ports
            port = parsed.port
            host = parsed.hostname
        except ValueError:
            return None

        scheme = parsed.scheme.lower()
        if scheme not in _DEFAULT_PORTS:
            return None
        if not host:
            return None

        netloc = f"[{host}]" if ':' in host else host
        if port is not None and port != _DEFAULT_PORTS[scheme]:
            netloc = f"{netloc}:{port}"
        if parsed.username is not None:
            userinfo = parsed.username
            if parsed.password is not None:
                userinfo = f"{userinfo}:{parsed.password}"
            netloc = f"{userinfo}@{netloc}"

        path = _remove_dot_segments(parsed.path or '/')
        if path != '/':
            path = path.rstrip('/') or '/'

        query = self._strip_tracking(parsed.query)

        # Literal whitespace would be trimmed on the next pass
        path = _quote_whitespace(path)
        query = _quote_whitespace(query)

        return urlunsplit((scheme, netloc, path, query, ''))

    def _strip_tracking(self, query: str) -> str:
        if not query:
            return ''
        pairs = parse_qsl(query, keep_blank_values=True)
        if not any(key in self.tracking_params for key, _ in pairs):
            return query
        return urlencode([(k, v) for k, v in pairs if k not in self.tracking_params])


def _quote_whitespace(text: str) -> str:
    return _WHITESPACE.sub(lambda m: quote(m.group()), text)


def _remove_dot_segments(path: str) -> str:
    """Resolve ``.`` and ``..`` segments of an absolute path (RFC 3986 §5.2.4)."""
    if not path.startswith('/'):
        path = '/' + path
    if '.' not in path:
        return path

    output = []
    segments = path.split('/')[1:]
    for seg in segments:
        if seg == '.':
            continue
        if seg == '..':
            if output:
                output.pop()
            continue
        output.append(seg)
    # "/a/b/.." keeps its directory form
    if segments and segments[-1] in ('.', '..'):
        output.append('')
    return '/' + '/'.join(output)


_default_normalizer = URLNormalizer()


def canonicalize(raw: str, base: str = None) -> Optional[str]:
    """Canonical form of *raw* resolved against *base*, or None if unusable."""
    return _default_normalizer.normalize(raw, base)


def is_valid_url(url: str) -> bool:
    """Check if a URL can be crawled at all (absolute http/https with a host)."""
    return canonicalize(url) is not None


def clean_text(text: str) -> str:
    """Clean and normalize text content."""
    if not text:
        return ""

    # Replace multiple whitespace with single space
    text = re.sub(r'\s+', ' ', text)

    return text.strip()


def truncate(text: str, limit: int) -> str:
    """First *limit* characters of *text* (empty string for None)."""
    if not text:
        return ""
    return text[:limit]
