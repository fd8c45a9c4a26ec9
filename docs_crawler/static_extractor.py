"""
Static HTML render targets: requests + BeautifulSoup, no JavaScript.

Same selector policy as the browser path, applied to the server-rendered
HTML.  Useful for plain documentation sites and for environments without
a Chromium install.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urljoin

import requests
from bs4 import BeautifulSoup

from .browser import (
    ExtractionPolicy,
    PageContentExtractor,
    PageLoadError,
    PageLoadTimeout,
    RenderedContent,
    _consume_result,
    dedupe_links,
)
from .utils import clean_text

logger = logging.getLogger(__name__)

_BS_PARSER = "html.parser"


@dataclass
class _StaticTarget:
    url: str
    response: "asyncio.Future"
    html: Optional[str] = None
    final_url: Optional[str] = None


class StaticHTMLExtractor(PageContentExtractor):
    """Fetches pages with a shared ``requests.Session``."""

    name = "static"

    def __init__(self, user_agent: str = None, request_timeout: float = 20.0):
        self.user_agent = user_agent
        self.request_timeout = request_timeout
        self._session: Optional[requests.Session] = None

    async def start(self) -> None:
        self._session = requests.Session()
        headers = {
            'Accept': 'text/html,application/xhtml+xml',
            'Accept-Language': 'en-US,en;q=0.9',
        }
        if self.user_agent:
            headers['User-Agent'] = self.user_agent
        self._session.headers.update(headers)

    async def stop(self) -> None:
        if self._session is not None:
            self._session.close()
            self._session = None

    async def open_render_target(self, url: str) -> _StaticTarget:
        if self._session is None:
            await self.start()
        session = self._session
        future = asyncio.ensure_future(
            asyncio.to_thread(session.get, url, timeout=self.request_timeout)
        )
        future.add_done_callback(_consume_result)
        return _StaticTarget(url=url, response=future)

    async def await_load_complete(self, handle: _StaticTarget, timeout_ms: int) -> None:
        try:
            response = await asyncio.wait_for(asyncio.shield(handle.response), timeout=timeout_ms / 1000)
        except (asyncio.TimeoutError, requests.Timeout):
            raise PageLoadTimeout(f"Timeout after {timeout_ms / 1000:.0f}s loading {handle.url}") from None
        except requests.RequestException as e:
            raise PageLoadError(str(e)) from e

        if response.status_code >= 400:
            raise PageLoadError(f"HTTP {response.status_code}")
        handle.html = response.text
        handle.final_url = response.url or handle.url

    async def run_extraction(self, handle: _StaticTarget, policy: ExtractionPolicy) -> RenderedContent:
        if handle.html is None:
            raise PageLoadError(f"Page not loaded: {handle.url}")
        return extract_from_html(handle.html, handle.final_url or handle.url, policy)

    async def close_render_target(self, handle: _StaticTarget) -> None:
        if not handle.response.done():
            handle.response.cancel()
        handle.html = None


def extract_from_html(html: str, page_url: str, policy: ExtractionPolicy) -> RenderedContent:
    """Apply *policy* to a static HTML document."""
    soup = BeautifulSoup(html, _BS_PARSER)

    title = ""
    if soup.title and soup.title.string:
        title = soup.title.string.strip()

    base_href = page_url
    base_tag = soup.find('base', href=True)
    if base_tag:
        base_href = urljoin(page_url, base_tag['href'])

    hrefs = []
    for a in soup.find_all('a', href=True):
        href = a['href'].strip()
        if not href or href.lower().startswith(('javascript:', 'mailto:', '#')):
            continue
        hrefs.append(urljoin(base_href, href))

    root = None
    for sel in policy.content_selectors:
        el = soup.select_one(sel)
        if el is not None and len(el.get_text(" ", strip=True)) > policy.min_content_chars:
            root = el
            break
    if root is None:
        root = soup.body or soup

    for sel in policy.remove_selectors:
        for node in root.select(sel):
            # nested matches may already be gone with their parent
            if not node.decomposed:
                node.decompose()

    return RenderedContent(
        title=title,
        content=clean_text(root.get_text(" ")),
        links=dedupe_links(hrefs),
    )
