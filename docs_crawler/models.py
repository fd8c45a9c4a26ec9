"""
Crawl Data Model
================
Value objects shared by the fetcher, the orchestrator and the exporters.

- ``ExtractionMode`` — how fetched text becomes stored content
- ``CrawlConfig``    — immutable per-run settings (validated on construction)
- ``FrontierEntry``  — one ``(url, depth)`` waiting in the BFS queue
- ``Page``           — per-URL record with a forward-only status lifecycle
- ``CrawlStats``     — counters derived from the page map
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, Iterable, List, Optional

from .utils import canonicalize


class ExtractionMode(str, Enum):
    SMART = "smart"
    STRUCTURED = "structured"
    SUMMARY = "summary"
    RAW = "raw"

    @property
    def label(self) -> str:
        return _MODE_LABELS[self]

    @property
    def description(self) -> str:
        return _MODE_DESCRIPTIONS[self]

    @property
    def uses_llm(self) -> bool:
        return self is not ExtractionMode.RAW


_MODE_LABELS = {
    ExtractionMode.SMART: "Smart Extract",
    ExtractionMode.STRUCTURED: "Structured",
    ExtractionMode.SUMMARY: "Summary Only",
    ExtractionMode.RAW: "Raw Text",
}

_MODE_DESCRIPTIONS = {
    ExtractionMode.SMART: "AI extracts key concepts, code examples, and important details",
    ExtractionMode.STRUCTURED: "Organized into sections: Overview, Key Points, Code, API Reference",
    ExtractionMode.SUMMARY: "Concise summary of each page (fastest, smallest output)",
    ExtractionMode.RAW: "Full text extraction without AI processing",
}


class PageStatus(str, Enum):
    PENDING = "pending"
    CRAWLING = "crawling"
    PROCESSING = "processing"
    DONE = "done"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (PageStatus.DONE, PageStatus.FAILED)


# Forward-only lifecycle: pending → crawling → processing → done, crawling → failed
_TRANSITIONS = {
    PageStatus.PENDING: frozenset({PageStatus.CRAWLING}),
    PageStatus.CRAWLING: frozenset({PageStatus.PROCESSING, PageStatus.FAILED}),
    PageStatus.PROCESSING: frozenset({PageStatus.DONE}),
    PageStatus.DONE: frozenset(),
    PageStatus.FAILED: frozenset(),
}


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class CrawlConfig:
    """Settings for one crawl run. Never mutated once created."""
    seed_url: str
    path_filter: str = ""
    max_pages: int = 50
    max_depth: int = 3
    mode: ExtractionMode = ExtractionMode.SMART

    def __post_init__(self):
        if not self.seed_url or not isinstance(self.seed_url, str):
            raise ValueError("A seed URL is required")
        if self.max_pages < 1:
            raise ValueError(f"max_pages must be >= 1 (got {self.max_pages})")
        if self.max_depth < 0:
            raise ValueError(f"max_depth must be >= 0 (got {self.max_depth})")
        try:
            mode = ExtractionMode(self.mode)
        except ValueError:
            choices = ", ".join(m.value for m in ExtractionMode)
            raise ValueError(f"Unknown extraction mode '{self.mode}' (expected one of: {choices})") from None
        object.__setattr__(self, "mode", mode)
        object.__setattr__(self, "path_filter", self.path_filter or "")

    @property
    def canonical_seed(self) -> Optional[str]:
        return canonicalize(self.seed_url)


@dataclass(frozen=True)
class FrontierEntry:
    url: str
    depth: int


# ---------------------------------------------------------------------------
# Page
# ---------------------------------------------------------------------------

@dataclass
class Page:
    """One discovered URL and everything learned about it."""
    url: str
    depth: int
    title: str = ""
    raw_content: str = ""
    extracted_content: Optional[str] = None
    links: List[str] = field(default_factory=list)
    status: PageStatus = PageStatus.PENDING
    error: Optional[str] = None
    timestamp: Optional[datetime] = None

    @property
    def content(self) -> str:
        """Extracted content when present, raw text otherwise."""
        return self.extracted_content or self.raw_content

    def transition(self, new_status: PageStatus) -> None:
        new_status = PageStatus(new_status)
        if new_status not in _TRANSITIONS[self.status]:
            raise ValueError(
                f"Illegal page transition {self.status.value} -> {new_status.value} for {self.url}"
            )
        self.status = new_status

    def mark_crawling(self) -> None:
        self.transition(PageStatus.CRAWLING)

    def mark_fetched(self, title: str, raw_content: str, links: Iterable[str]) -> None:
        """Record fetch output and move to ``processing``."""
        self.transition(PageStatus.PROCESSING)
        self.title = title
        self.raw_content = raw_content
        self.links = list(dict.fromkeys(links))

    def mark_done(self, extracted_content: str, timestamp: datetime = None) -> None:
        self.transition(PageStatus.DONE)
        self.extracted_content = extracted_content
        self.timestamp = timestamp or datetime.now()

    def mark_failed(self, error: str) -> None:
        self.transition(PageStatus.FAILED)
        self.error = error or "Unknown error"

    def to_dict(self) -> dict:
        return {
            "url": self.url,
            "title": self.title,
            "depth": self.depth,
            "status": self.status.value,
            "error": self.error,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
            "chars": len(self.content),
            "links": list(self.links),
            "raw_content": self.raw_content,
            "extracted_content": self.extracted_content,
        }


# ---------------------------------------------------------------------------
# Stats
# ---------------------------------------------------------------------------

@dataclass
class CrawlStats:
    discovered: int = 0
    crawled: int = 0
    processed: int = 0
    failed: int = 0
    total_chars: int = 0

    @classmethod
    def from_pages(cls, pages: Iterable[Page], discovered: int) -> "CrawlStats":
        stats = cls(discovered=discovered)
        for page in pages:
            if page.status is PageStatus.DONE:
                stats.processed += 1
                stats.total_chars += len(page.content)
            elif page.status is PageStatus.FAILED:
                stats.failed += 1
        stats.crawled = stats.processed + stats.failed
        return stats

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)
