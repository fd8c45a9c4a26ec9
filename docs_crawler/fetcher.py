"""
Page Fetcher
Drives a ``PageContentExtractor`` through open → load → extract → close for
a single URL and normalises every failure into ``PageLoadError``.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import List, Optional

from .browser import (
    ExtractionPolicy,
    PageContentExtractor,
    PageLoadError,
    PageLoadTimeout,
)

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_MS = 20_000
DEFAULT_SETTLE_DELAY = 1.5


@dataclass
class FetchResult:
    url: str
    title: str
    raw_content: str
    links: List[str] = field(default_factory=list)


class PageFetcher:
    """
    Fetch one page through the render-target collaborator.

    Usage::

        fetcher = PageFetcher(PlaywrightExtractor())
        result = await fetcher.fetch("https://docs.example.com/guide")

    The render target is always closed, also when loading or extraction
    fails.  A target that never finishes loading raises ``PageLoadTimeout``;
    every other problem raises ``PageLoadError``.
    """

    def __init__(
        self,
        extractor: PageContentExtractor,
        policy: Optional[ExtractionPolicy] = None,
        *,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        settle_delay: float = DEFAULT_SETTLE_DELAY,
    ):
        self.extractor = extractor
        self.policy = policy or ExtractionPolicy()
        self.timeout_ms = timeout_ms
        # Late client-side rendering gets this long after "load" before we read the DOM
        self.settle_delay = settle_delay

    async def fetch(self, url: str) -> FetchResult:
        try:
            handle = await self.extractor.open_render_target(url)
        except PageLoadError:
            raise
        except Exception as e:
            raise PageLoadError(f"Could not open {url}: {e}") from e

        try:
            try:
                await self.extractor.await_load_complete(handle, self.timeout_ms)
            except asyncio.TimeoutError:
                raise PageLoadTimeout(f"Timeout after {self.timeout_ms / 1000:.0f}s loading {url}") from None

            if self.settle_delay > 0:
                await asyncio.sleep(self.settle_delay)

            data = await self.extractor.run_extraction(handle, self.policy)
        except PageLoadError:
            raise
        except Exception as e:
            raise PageLoadError(str(e) or type(e).__name__) from e
        finally:
            await self._close_quietly(handle, url)

        logger.debug(f"[FETCH] {url} → {len(data.content)} chars, {len(data.links)} links")
        return FetchResult(
            url=url,
            title=data.title or url,
            raw_content=data.content,
            links=list(data.links),
        )

    async def _close_quietly(self, handle, url: str) -> None:
        try:
            await self.extractor.close_render_target(handle)
        except Exception as e:
            logger.debug(f"[FETCH] Closing render target for {url} failed: {e}")
