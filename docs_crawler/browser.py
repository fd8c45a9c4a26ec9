"""
Render Targets
==============
The browser-automation boundary of the crawler.

``PageContentExtractor`` is the capability the fetcher depends on: open a
render target for a URL, wait until it has loaded, run the content
extraction against it, and close it again.  ``PlaywrightExtractor`` renders
pages in headless Chromium (one tab per page inside a single shared
context); ``static_extractor.StaticHTMLExtractor`` implements the same four
operations over plain HTTP for sites that do not need JavaScript.

``ExtractionPolicy`` carries the selector lists that decide which element
holds the documentation text and which sub-trees are page chrome.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, List

from playwright.async_api import async_playwright
from playwright.async_api import Error as PlaywrightError

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

class PageLoadError(Exception):
    """A render target could not be loaded or extracted."""


class PageLoadTimeout(PageLoadError):
    """The render target did not reach load-complete in time."""


# ---------------------------------------------------------------------------
# Extraction policy
# ---------------------------------------------------------------------------

DEFAULT_CONTENT_SELECTORS = [
    'article', 'main', '[role="main"]',
    '.devsite-article-body', '.documentation-content',
    '.markdown-body', '.content', '#content',
    '.docs-content', '.page-content', '.post-content',
]

DEFAULT_REMOVE_SELECTORS = [
    'nav', 'footer', 'header', 'aside',
    '.sidebar', '.navigation', '.toc', '.table-of-contents',
    '.breadcrumb', '.breadcrumbs', '.feedback', '.rating',
    '.share-buttons', '.social-share', '.related-content',
    '.cookie-banner', '.popup', '.modal', '.ads',
    'script', 'style', 'noscript', 'iframe',
    '[role="navigation"]', '[role="banner"]', '[role="contentinfo"]',
    '.devsite-banner', '.devsite-book-nav', '.devsite-page-rating',
]

_IGNORED_LINK_PREFIXES = ('javascript:', 'mailto:', '#')


@dataclass
class ExtractionPolicy:
    """Where to look for the main text and what to strip from it."""
    content_selectors: List[str] = field(default_factory=lambda: list(DEFAULT_CONTENT_SELECTORS))
    remove_selectors: List[str] = field(default_factory=lambda: list(DEFAULT_REMOVE_SELECTORS))
    # A container must hold more than this many characters to win over <body>
    min_content_chars: int = 200

    def to_js_args(self) -> dict:
        return {
            'contentSelectors': list(self.content_selectors),
            'removeSelectors': list(self.remove_selectors),
            'minChars': self.min_content_chars,
        }


@dataclass
class RenderedContent:
    """Raw output of one extraction run."""
    title: str = ""
    content: str = ""
    links: List[str] = field(default_factory=list)

    @classmethod
    def from_mapping(cls, data: Any) -> "RenderedContent":
        if not isinstance(data, dict):
            raise PageLoadError(f"Extraction returned {type(data).__name__}, expected an object")
        return cls(
            title=str(data.get('title') or ''),
            content=str(data.get('content') or ''),
            links=dedupe_links(data.get('links') or []),
        )


def dedupe_links(hrefs) -> List[str]:
    """Absolute hrefs in first-seen order, minus javascript:/mailto:/fragment-only links."""
    seen = set()
    links = []
    for href in hrefs:
        if not isinstance(href, str):
            continue
        href = href.strip()
        if not href or href.lower().startswith(_IGNORED_LINK_PREFIXES):
            continue
        if href in seen:
            continue
        seen.add(href)
        links.append(href)
    return links


# ---------------------------------------------------------------------------
# Capability interface
# ---------------------------------------------------------------------------

class PageContentExtractor(ABC):
    """
    Abstract render-target driver.

    Callers use the four per-page operations in strict sequence and must
    call ``close_render_target`` even when an earlier step failed.
    ``start``/``stop`` bracket a whole crawl; the object is also an async
    context manager doing exactly that.
    """

    name: str = "base"

    async def start(self) -> None:
        """Acquire crawl-wide resources (browser, HTTP session)."""

    async def stop(self) -> None:
        """Release crawl-wide resources."""

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.stop()

    @abstractmethod
    async def open_render_target(self, url: str) -> Any:
        """Begin loading *url* in a fresh target and return its handle."""

    @abstractmethod
    async def await_load_complete(self, handle: Any, timeout_ms: int) -> None:
        """Block until the target has loaded; raise ``PageLoadTimeout`` after *timeout_ms*."""

    @abstractmethod
    async def run_extraction(self, handle: Any, policy: ExtractionPolicy) -> RenderedContent:
        """Run the content extraction inside the loaded target."""

    @abstractmethod
    async def close_render_target(self, handle: Any) -> None:
        """Tear the target down."""


# ---------------------------------------------------------------------------
# Playwright implementation
# ---------------------------------------------------------------------------

# Runs inside the page. Picks the first container with enough text, strips
# chrome from a clone of it, and returns the collapsed text plus every anchor.
_EXTRACT_JS = """
(opts) => {
    let root = null;
    for (const sel of opts.contentSelectors) {
        let el = null;
        try { el = document.querySelector(sel); } catch (e) { el = null; }
        if (el && (el.innerText || '').trim().length > opts.minChars) {
            root = el;
            break;
        }
    }
    if (!root) root = document.body;

    let text = '';
    if (root) {
        const clone = root.cloneNode(true);
        for (const sel of opts.removeSelectors) {
            try { clone.querySelectorAll(sel).forEach(n => n.remove()); } catch (e) {}
        }
        text = clone.innerText || clone.textContent || '';
    }

    const seen = new Set();
    const links = [];
    document.querySelectorAll('a[href]').forEach(a => {
        const href = a.href;
        if (!href || seen.has(href)) return;
        if (href.startsWith('javascript:') || href.startsWith('mailto:') || href.startsWith('#')) return;
        seen.add(href);
        links.push(href);
    });

    return {
        title: document.title || '',
        content: text.replace(/\\s+/g, ' ').trim(),
        links: links,
    };
}
"""

_CHROMIUM_ARGS = [
    '--disable-gpu',
    '--no-sandbox',
    '--disable-dev-shm-usage',
    '--disable-background-networking',
    '--disable-default-apps',
    '--disable-extensions',
    '--disable-sync',
    '--disable-translate',
    '--no-first-run',
]

_DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
    "AppleWebKit/537.36 (KHTML, like Gecko) Chrome/122.0.0.0 Safari/537.36"
)


@dataclass
class _Tab:
    url: str
    page: Any
    navigation: asyncio.Task


def _consume_result(task: asyncio.Task) -> None:
    # Navigation errors are re-raised from await_load_complete; this keeps an
    # abandoned task from being reported as "exception never retrieved".
    if not task.cancelled():
        task.exception()


class PlaywrightExtractor(PageContentExtractor):
    """Headless Chromium via async Playwright. One context per crawl, one tab per page."""

    name = "playwright"

    def __init__(
        self,
        headless: bool = True,
        user_agent: str = _DEFAULT_USER_AGENT,
        viewport_width: int = 1920,
        viewport_height: int = 1080,
    ):
        self.headless = headless
        self.user_agent = user_agent
        self.viewport_width = viewport_width
        self.viewport_height = viewport_height

        self._playwright = None
        self._browser = None
        self._context = None

    async def start(self) -> None:
        self._playwright = await async_playwright().start()
        self._browser = await self._playwright.chromium.launch(
            headless=self.headless,
            args=_CHROMIUM_ARGS,
        )
        self._context = await self._browser.new_context(
            user_agent=self.user_agent,
            viewport={'width': self.viewport_width, 'height': self.viewport_height},
            locale='en-US',
        )
        logger.info(f"Playwright browser initialized (headless={self.headless})")

    async def stop(self) -> None:
        if self._context:
            try:
                await self._context.close()
            except Exception as e:
                logger.debug(f"Context close failed: {e}")
            self._context = None
        if self._browser:
            try:
                await self._browser.close()
            except Exception as e:
                logger.debug(f"Browser close failed: {e}")
            self._browser = None
        if self._playwright:
            try:
                await self._playwright.stop()
            except Exception as e:
                logger.debug(f"Playwright stop failed: {e}")
            self._playwright = None

    async def open_render_target(self, url: str) -> _Tab:
        if self._context is None:
            raise PageLoadError("Browser not started")
        page = await self._context.new_page()
        # Load in the background; await_load_complete applies the deadline
        navigation = asyncio.ensure_future(page.goto(url, wait_until='load', timeout=0))
        navigation.add_done_callback(_consume_result)
        return _Tab(url=url, page=page, navigation=navigation)

    async def await_load_complete(self, handle: _Tab, timeout_ms: int) -> None:
        try:
            await asyncio.wait_for(asyncio.shield(handle.navigation), timeout=timeout_ms / 1000)
        except asyncio.TimeoutError:
            raise PageLoadTimeout(f"Timeout after {timeout_ms / 1000:.0f}s loading {handle.url}") from None
        except PlaywrightError as e:
            raise PageLoadError(_first_line(str(e))) from e

    async def run_extraction(self, handle: _Tab, policy: ExtractionPolicy) -> RenderedContent:
        try:
            data = await handle.page.evaluate(_EXTRACT_JS, policy.to_js_args())
        except PlaywrightError as e:
            raise PageLoadError(f"Extraction failed: {_first_line(str(e))}") from e
        return RenderedContent.from_mapping(data)

    async def close_render_target(self, handle: _Tab) -> None:
        if not handle.navigation.done():
            handle.navigation.cancel()
        await handle.page.close()


def _first_line(message: str) -> str:
    return message.strip().splitlines()[0] if message.strip() else "Unknown error"
