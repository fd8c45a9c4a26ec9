"""
Documentation Crawler
=====================
Breadth-first, single-worker crawl of one documentation subtree.

Architecture:
- ``CrawlSession`` owns all per-run state: FIFO frontier, visited set,
  page map (discovery order) and stats.  A new crawl always starts from a
  fresh session.
- ``DocsCrawler`` runs the loop: one page at a time through
  ``PageFetcher`` (render target) and ``ExtractionPipeline`` (LLM rewrite),
  then feeds the page's links through canonicalization and the scope
  filter back into the frontier.
- Pause/resume/abort are cooperative and only take effect between pages.
  They may be called from another thread (e.g. a UI); the requests are
  handed to the crawl's event loop.

Per-page lifecycle: pending → crawling → processing → done, or
crawling → failed.  A failed page never stops the crawl and its links are
never followed.
"""

from __future__ import annotations

import asyncio
import copy
import logging
import threading
import time
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Deque, Dict, List, Optional, Set

from .browser import ExtractionPolicy, PageContentExtractor, PageLoadError, PlaywrightExtractor
from .exporter import to_json, to_markdown
from .extraction import ExtractionPipeline
from .fetcher import DEFAULT_SETTLE_DELAY, DEFAULT_TIMEOUT_MS, PageFetcher
from .llm import TextGenerator
from .models import CrawlConfig, CrawlStats, ExtractionMode, FrontierEntry, Page, PageStatus
from .scope_filter import ScopeFilter
from .utils import canonicalize

logger = logging.getLogger(__name__)

DEFAULT_PAGE_DELAY = 0.3

ProgressCallback = Callable[[Optional[Page], CrawlStats, str], None]


def resolve_seed(config: CrawlConfig) -> str:
    """Canonical seed URL of *config*; ``ValueError`` when it is unusable."""
    seed = canonicalize(config.seed_url)
    if seed is None:
        raise ValueError(f"Invalid start URL: {config.seed_url!r}")
    return seed


# ---------------------------------------------------------------------------
# Session state
# ---------------------------------------------------------------------------

@dataclass
class CrawlSession:
    """Frontier, visited set, page map and stats of one crawl."""
    config: CrawlConfig
    base_url: str
    scope: ScopeFilter
    frontier: Deque[FrontierEntry] = field(default_factory=deque)
    visited: Set[str] = field(default_factory=set)
    pages: Dict[str, Page] = field(default_factory=dict)
    stats: CrawlStats = field(default_factory=CrawlStats)

    @classmethod
    def create(cls, config: CrawlConfig) -> "CrawlSession":
        base_url = resolve_seed(config)
        session = cls(
            config=config,
            base_url=base_url,
            scope=ScopeFilter(root_url=base_url, path_filter=config.path_filter),
        )
        session.visited.add(base_url)
        session.frontier.append(FrontierEntry(base_url, 0))
        session.stats.discovered = 1
        return session

    def refresh_stats(self) -> CrawlStats:
        self.stats = CrawlStats.from_pages(self.pages.values(), discovered=len(self.visited))
        return self.stats

    def enqueue_links(self, page: Page) -> int:
        """Queue the in-scope, unseen links of *page* at ``depth + 1``."""
        added = 0
        for link in page.links:
            url = canonicalize(link, page.url)
            if url is None:
                continue
            if url in self.visited:
                continue
            if not self.scope.accept(url):
                continue
            self.visited.add(url)
            self.frontier.append(FrontierEntry(url, page.depth + 1))
            added += 1
        self.stats.discovered = len(self.visited)
        return added

    def pending_urls(self) -> List[str]:
        return [entry.url for entry in list(self.frontier)]


@dataclass
class CrawlResult:
    config: CrawlConfig
    base_url: str
    pages: List[Page]
    stats: CrawlStats
    stop_reason: str
    started_at: datetime
    finished_at: datetime
    pending: List[str] = field(default_factory=list)

    @property
    def elapsed(self) -> float:
        return (self.finished_at - self.started_at).total_seconds()

    @property
    def done_pages(self) -> List[Page]:
        return [p for p in self.pages if p.status is PageStatus.DONE]

    @property
    def failed_pages(self) -> List[Page]:
        return [p for p in self.pages if p.status is PageStatus.FAILED]

    def export_markdown(self) -> str:
        return to_markdown(self.pages, source_url=self.config.seed_url, mode=self.config.mode)

    def export_json(self) -> str:
        return to_json(self.pages, source_url=self.config.seed_url, mode=self.config.mode)

    def export_docx(self, filepath: str) -> str:
        from .word_exporter import export_docx
        return export_docx(
            self.pages, filepath,
            source_url=self.config.seed_url, mode=self.config.mode, stats=self.stats,
        )


# ---------------------------------------------------------------------------
# Crawler
# ---------------------------------------------------------------------------

class DocsCrawler:
    """
    Crawl a documentation subtree and collect its pages.

    Usage::

        crawler = DocsCrawler(PlaywrightExtractor(), OpenAIGenerator())
        result = await crawler.crawl(CrawlConfig("https://docs.example.com/guide"))

        # Or from sync code:
        result = crawler.run(CrawlConfig("https://docs.example.com/guide", mode="raw"))
    """

    def __init__(
        self,
        extractor: Optional[PageContentExtractor] = None,
        generator: Optional[TextGenerator] = None,
        *,
        policy: Optional[ExtractionPolicy] = None,
        model: Optional[str] = None,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        settle_delay: float = DEFAULT_SETTLE_DELAY,
        page_delay: float = DEFAULT_PAGE_DELAY,
    ):
        self.extractor = extractor or PlaywrightExtractor()
        self.fetcher = PageFetcher(
            self.extractor, policy, timeout_ms=timeout_ms, settle_delay=settle_delay,
        )
        self.pipeline = ExtractionPipeline(generator, model=model)
        self.page_delay = page_delay

        self._session: Optional[CrawlSession] = None
        self._progress_callback: Optional[ProgressCallback] = None
        self._current_action = "Idle"
        self._running = False
        # Set between start_background() and the loop taking over
        self._starting = False
        self._paused = False
        self._abort_requested = False

        # Bound to the crawl's event loop while a crawl runs
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._wake_event: Optional[asyncio.Event] = None
        self._abort_event: Optional[asyncio.Event] = None

        # Background-thread runs (UI)
        self._thread: Optional[threading.Thread] = None
        self.last_result: Optional[CrawlResult] = None
        self.last_error: Optional[BaseException] = None

    def set_progress_callback(self, callback: ProgressCallback) -> None:
        """Set callback: callback(page, stats, current_action), called after every state change."""
        self._progress_callback = callback

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def is_running(self) -> bool:
        """True while a crawl loop runs (or its background thread is still starting up)."""
        return (
            self._running
            or self._starting
            or (self._thread is not None and self._thread.is_alive())
        )

    @property
    def is_paused(self) -> bool:
        return self._paused

    @property
    def current_action(self) -> str:
        return self._current_action

    @property
    def current_stats(self) -> CrawlStats:
        if self._session is None:
            return CrawlStats()
        return copy.copy(self._session.stats)

    @property
    def pages(self) -> List[Page]:
        """Snapshot of the page map in discovery order."""
        if self._session is None:
            return []
        return [copy.copy(p) for p in list(self._session.pages.values())]

    @property
    def queue(self) -> List[str]:
        """URLs still waiting in the frontier."""
        if self._session is None:
            return []
        return self._session.pending_urls()

    @property
    def config(self) -> Optional[CrawlConfig]:
        return self._session.config if self._session else None

    # ------------------------------------------------------------------
    # Control surface
    # ------------------------------------------------------------------

    def pause(self) -> None:
        if self.is_running and not self._paused:
            self._paused = True
            logger.info("Pause requested")

    def resume(self) -> None:
        if self._paused:
            self._paused = False
            logger.info("Resume requested")
            self._signal(self._wake)

    def toggle_pause(self) -> None:
        if self._paused:
            self.resume()
        else:
            self.pause()

    def abort(self) -> None:
        """
        Request a stop after the page in flight.

        A request made before the loop starts is kept and honoured at the
        first iteration.
        """
        if not self.is_running:
            return
        self._abort_requested = True
        self._paused = False
        logger.info("Abort requested")
        self._signal(self._wake_all)

    def clear(self) -> None:
        """Forget the results of the last crawl."""
        if self.is_running:
            raise RuntimeError("Cannot clear results while a crawl is running")
        self._session = None
        self.last_result = None
        self.last_error = None
        self._current_action = "Idle"

    def export_markdown(self) -> str:
        session = self._require_session()
        return to_markdown(self.pages, source_url=session.config.seed_url, mode=session.config.mode)

    def export_json(self) -> str:
        session = self._require_session()
        return to_json(self.pages, source_url=session.config.seed_url, mode=session.config.mode)

    def _require_session(self) -> CrawlSession:
        if self._session is None:
            raise RuntimeError("No crawl results to export")
        return self._session

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def run(self, config: CrawlConfig) -> CrawlResult:
        """Sync wrapper: run the async crawl from synchronous code."""
        self._reset_controls()
        return asyncio.run(self.crawl(config))

    def start_background(self, config: CrawlConfig) -> threading.Thread:
        """
        Run the crawl in a daemon thread and return immediately.

        The seed is validated before the thread starts, so a bad URL raises
        ``ValueError`` here.  The outcome lands in ``last_result`` /
        ``last_error``.
        """
        if self.is_running:
            raise RuntimeError("A crawl is already running")
        resolve_seed(config)
        self.last_result = None
        self.last_error = None
        self._reset_controls()
        self._starting = True

        def _target():
            try:
                self.last_result = asyncio.run(self.crawl(config))
            except Exception as e:
                logger.error(f"Crawl failed: {e}", exc_info=True)
                self.last_error = e
                self._current_action = f"Error: {e}"
            finally:
                self._starting = False

        self._thread = threading.Thread(target=_target, name="docs-crawler", daemon=True)
        try:
            self._thread.start()
        except RuntimeError:
            self._starting = False
            raise
        return self._thread

    def _reset_controls(self) -> None:
        self._paused = False
        self._abort_requested = False

    async def crawl(self, config: CrawlConfig) -> CrawlResult:
        """
        BFS crawl from ``config.seed_url``.

        1. Build a fresh session (raises ``ValueError`` for an unusable seed)
        2. Start the render-target driver
        3. Loop until the frontier is empty, the page cap is hit or abort
        4. Stop the driver and return the collected pages
        """
        if self._running:
            raise RuntimeError("A crawl is already running")

        session = CrawlSession.create(config)
        self._session = session
        self._loop = asyncio.get_running_loop()
        self._wake_event = asyncio.Event()
        self._abort_event = asyncio.Event()
        # Pause/abort requests made while starting carry over
        self._running = True
        self._starting = False
        self.pipeline.fallbacks = 0

        session.scope.log_scope()
        logger.info("=" * 60)
        logger.info("DOCS CRAWL STARTED")
        logger.info(f"Start URL: {session.base_url}")
        logger.info(f"Limits: max_pages={config.max_pages}, max_depth={config.max_depth}")
        logger.info(f"Extraction: {config.mode.label}")
        logger.info(f"Driver: {self.extractor.name}")
        logger.info("=" * 60)

        started_at = datetime.now()
        start = time.time()
        stop_reason = "error"
        try:
            self._set_action("Starting browser...")
            await self.extractor.start()
            stop_reason = await self._crawl_loop(session)
        finally:
            self._running = False
            self._reset_controls()
            try:
                await self.extractor.stop()
            except Exception as e:
                logger.warning(f"Driver shutdown failed: {e}")
            self._loop = None

        stats = session.refresh_stats()
        elapsed = time.time() - start
        self._set_action(
            f"Aborted: {stats.processed} pages processed"
            if stop_reason == "aborted"
            else f"Complete: {stats.processed} pages processed"
        )

        logger.info("=" * 60)
        logger.info("DOCS CRAWL FINISHED")
        logger.info(f"Processed: {stats.processed} | Failed: {stats.failed} | Discovered: {stats.discovered}")
        logger.info(f"Characters: {stats.total_chars:,} | Time: {elapsed:.1f}s")
        logger.info(f"Stop reason: {stop_reason}")
        logger.info("=" * 60)

        return CrawlResult(
            config=config,
            base_url=session.base_url,
            pages=list(session.pages.values()),
            stats=copy.copy(stats),
            stop_reason=stop_reason,
            started_at=started_at,
            finished_at=datetime.now(),
            pending=session.pending_urls(),
        )

    # ------------------------------------------------------------------
    # Loop
    # ------------------------------------------------------------------

    async def _crawl_loop(self, session: CrawlSession) -> str:
        config = session.config
        while True:
            if self._abort_requested:
                return "aborted"

            if self._paused:
                await self._wait_while_paused()
                continue

            if len(session.pages) >= config.max_pages:
                logger.info(f"STOPPING: max_pages limit reached ({config.max_pages})")
                return "max_pages"

            if not session.frontier:
                return "completed"

            entry = session.frontier.popleft()
            if entry.url in session.pages:
                # visited-set gating should make this unreachable
                logger.debug(f"[FRONTIER] Skipping already crawled {entry.url}")
                continue

            page = Page(url=entry.url, depth=entry.depth)
            session.pages[entry.url] = page
            await self._process_page(session, page)

            session.refresh_stats()
            if page.status is PageStatus.DONE and page.depth < config.max_depth:
                added = session.enqueue_links(page)
                if added:
                    logger.info(
                        f"[FRONTIER] +{added} from {page.url} "
                        f"(depth {page.depth + 1}, queue {len(session.frontier)})"
                    )
            self._notify(page)

            await self._delay_between_pages()

    async def _process_page(self, session: CrawlSession, page: Page) -> None:
        mode = session.config.mode
        n = len(session.pages)

        page.mark_crawling()
        self._set_action(f"Crawling: {page.url}")
        logger.info(f"[Page {n}/{session.config.max_pages}] depth={page.depth} {page.url}")
        self._notify(page)

        try:
            fetched = await self.fetcher.fetch(page.url)
        except PageLoadError as e:
            page.mark_failed(str(e) or type(e).__name__)
            logger.warning(f"[FETCH] Failed {page.url}: {page.error}")
            return

        page.mark_fetched(fetched.title, fetched.raw_content, fetched.links)
        self._set_action(f"Extracting ({mode.label}): {page.title}")
        self._notify(page)

        if mode is ExtractionMode.RAW:
            content = fetched.raw_content
        else:
            content = await self.pipeline.extract_async(fetched.raw_content, fetched.title, page.url, mode)
        page.mark_done(content)

    async def _wait_while_paused(self) -> None:
        self._set_action("Paused")
        self._notify(None)
        logger.info("Crawl paused")
        while self._paused and not self._abort_requested:
            self._wake_event.clear()
            await self._wake_event.wait()
        if not self._abort_requested:
            logger.info("Crawl resumed")

    async def _delay_between_pages(self) -> None:
        if self.page_delay <= 0 or self._abort_requested:
            return
        try:
            await asyncio.wait_for(self._abort_event.wait(), timeout=self.page_delay)
        except asyncio.TimeoutError:
            pass

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _wake(self) -> None:
        if self._wake_event is not None:
            self._wake_event.set()

    def _wake_all(self) -> None:
        self._wake()
        if self._abort_event is not None:
            self._abort_event.set()

    def _signal(self, fn: Callable[[], None]) -> None:
        """Run *fn* on the crawl's event loop, whichever thread we are on."""
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is loop:
            fn()
        else:
            loop.call_soon_threadsafe(fn)

    def _set_action(self, action: str) -> None:
        self._current_action = action

    def _notify(self, page: Optional[Page]) -> None:
        if not self._progress_callback:
            return
        stats = self._session.stats if self._session else CrawlStats()
        try:
            self._progress_callback(page, copy.copy(stats), self._current_action)
        except Exception as e:
            logger.debug(f"Progress callback raised: {e}")
