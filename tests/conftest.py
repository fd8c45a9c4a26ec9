"""
Shared fakes for the crawler tests: an in-memory site standing in for the
browser, and scripted text generators standing in for the LLM.
"""

from typing import Dict, List, Optional, Sequence, Tuple

import pytest

from docs_crawler.browser import (
    ExtractionPolicy,
    PageContentExtractor,
    PageLoadError,
    PageLoadTimeout,
    RenderedContent,
)


class FakeSite(PageContentExtractor):
    """
    Serves pages from a dict ``{url: (title, content, links)}``.

    URLs in ``timeouts`` never finish loading; unknown URLs fail like a 404.
    Every call is recorded so tests can check the open/load/extract/close order.
    """

    name = "fake"

    def __init__(
        self,
        pages: Dict[str, Tuple[str, str, Sequence[str]]],
        timeouts: Sequence[str] = (),
        broken_extraction: Sequence[str] = (),
    ):
        self.pages = dict(pages)
        self.timeouts = set(timeouts)
        self.broken_extraction = set(broken_extraction)
        self.calls: List[Tuple[str, str]] = []
        self.started = False
        self.stopped = False

    async def start(self) -> None:
        self.started = True

    async def stop(self) -> None:
        self.stopped = True

    async def open_render_target(self, url: str):
        self.calls.append(("open", url))
        return url

    async def await_load_complete(self, handle, timeout_ms: int) -> None:
        self.calls.append(("load", handle))
        if handle in self.timeouts:
            raise PageLoadTimeout(f"Timeout after {timeout_ms / 1000:.0f}s loading {handle}")
        if handle not in self.pages:
            raise PageLoadError("HTTP 404")

    async def run_extraction(self, handle, policy: ExtractionPolicy) -> RenderedContent:
        self.calls.append(("extract", handle))
        if handle in self.broken_extraction:
            raise RuntimeError("script injection failed")
        title, content, links = self.pages[handle]
        return RenderedContent(title=title, content=content, links=list(links))

    async def close_render_target(self, handle) -> None:
        self.calls.append(("close", handle))

    @property
    def fetched(self) -> List[str]:
        return [url for op, url in self.calls if op == "open"]

    @property
    def closed(self) -> List[str]:
        return [url for op, url in self.calls if op == "close"]


class EchoGenerator:
    """Returns a deterministic rewrite and remembers every call."""

    def __init__(self, reply: Optional[str] = None):
        self.reply = reply
        self.calls = []

    def generate(self, prompt: str, system_instruction: str, *, model: Optional[str] = None):
        self.calls.append({"prompt": prompt, "system": system_instruction, "model": model})
        if self.reply is not None:
            return self.reply
        return f"EXTRACTED({len(prompt)})"


class FailingGenerator:
    def __init__(self, exc: Exception = None):
        self.exc = exc or ConnectionError("LLM service unavailable")
        self.calls = 0

    def generate(self, prompt: str, system_instruction: str, *, model: Optional[str] = None):
        self.calls += 1
        raise self.exc


@pytest.fixture
def fake_site():
    return FakeSite


@pytest.fixture
def echo_generator():
    return EchoGenerator()


@pytest.fixture
def failing_generator():
    return FailingGenerator()


def body(n: int, word: str = "doc") -> str:
    """Page text of exactly *n* characters."""
    text = (word + " ") * (n // (len(word) + 1) + 1)
    return text[:n]


@pytest.fixture
def make_body():
    return body
