"""
Unified Run Configuration
=========================
Single source of truth for crawler defaults and runtime limits.

The CLI and the Streamlit app both build a ``CrawlerRunConfig`` (from flags,
form fields and environment variables) and turn it into the runtime
objects: ``CrawlConfig`` for the crawl itself, the render-target driver and
the text generator.

Environment (``.env`` is loaded by the entry points):
    OPENAI_API_KEY          API key for the LLM extraction modes
    OPENAI_BASE_URL         optional OpenAI-compatible endpoint
    DOCS_CRAWLER_MODEL      model name (default ``gpt-4o-mini``)
    DOCS_CRAWLER_HEADLESS   ``0``/``false`` to watch the browser
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Optional

from .models import CrawlConfig, ExtractionMode

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Canonical defaults: the ONLY place these numbers live
# ---------------------------------------------------------------------------
_DEFAULTS = {
    "max_depth": 3,
    "max_pages": 50,
    "mode": "smart",
    "path_filter": "",
    "timeout_seconds": 20,           # per-page load timeout
    "settle_delay": 1.5,             # seconds after load before reading the DOM
    "page_delay": 0.3,               # seconds between pages
    "headless": True,
    "enable_js": True,
    "output_md": None,
    "output_json": None,
    "output_docx": None,
    "user_agent": (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
        "AppleWebKit/537.36 (KHTML, like Gecko) Chrome/122.0.0.0 Safari/537.36"
    ),
    # LLM extraction
    "model": "gpt-4o-mini",
    "temperature": 0.2,
    "max_tokens": 4096,
    "llm_timeout": 60.0,
}

_FALSE_VALUES = {"0", "false", "no", "off"}


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None or not value.strip():
        return default
    return value.strip().lower() not in _FALSE_VALUES


@dataclass
class CrawlerRunConfig:
    """
    Unified configuration consumed by every entry point.

    Populate via:
      - ``CrawlerRunConfig()``                 → all defaults
      - ``CrawlerRunConfig(max_pages=10)``     → override one value
      - ``CrawlerRunConfig.from_env()``        → defaults + environment
      - ``CrawlerRunConfig.from_cli_args(ns)`` → from argparse Namespace
    """

    # ---- Crawl limits ----
    max_depth: int = _DEFAULTS["max_depth"]
    max_pages: int = _DEFAULTS["max_pages"]
    path_filter: str = _DEFAULTS["path_filter"]
    mode: str = _DEFAULTS["mode"]

    # ---- Timing ----
    timeout_seconds: float = _DEFAULTS["timeout_seconds"]
    settle_delay: float = _DEFAULTS["settle_delay"]
    page_delay: float = _DEFAULTS["page_delay"]

    # ---- Rendering ----
    headless: bool = _DEFAULTS["headless"]
    enable_js: bool = _DEFAULTS["enable_js"]
    user_agent: str = _DEFAULTS["user_agent"]

    # ---- Output paths (None = skip) ----
    output_md: Optional[str] = _DEFAULTS["output_md"]
    output_json: Optional[str] = _DEFAULTS["output_json"]
    output_docx: Optional[str] = _DEFAULTS["output_docx"]

    # ---- LLM ----
    model: str = _DEFAULTS["model"]
    temperature: float = _DEFAULTS["temperature"]
    max_tokens: int = _DEFAULTS["max_tokens"]
    llm_timeout: float = _DEFAULTS["llm_timeout"]
    api_key: Optional[str] = field(default=None, repr=False)
    base_url: Optional[str] = None

    # -----------------------------------------------------------------------
    # Factory helpers
    # -----------------------------------------------------------------------
    @classmethod
    def from_env(cls, **overrides) -> "CrawlerRunConfig":
        """Defaults, then environment variables, then explicit *overrides*."""
        values = dict(
            api_key=os.environ.get("OPENAI_API_KEY") or None,
            base_url=os.environ.get("OPENAI_BASE_URL") or None,
            model=os.environ.get("DOCS_CRAWLER_MODEL") or _DEFAULTS["model"],
            headless=_env_bool("DOCS_CRAWLER_HEADLESS", _DEFAULTS["headless"]),
        )
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)

    @classmethod
    def from_cli_args(cls, args) -> "CrawlerRunConfig":
        """Build config from an argparse Namespace (``__main__.py``)."""
        return cls.from_env(
            max_depth=getattr(args, "max_depth", None),
            max_pages=getattr(args, "max_pages", None),
            path_filter=getattr(args, "path_filter", None),
            mode=getattr(args, "mode", None),
            timeout_seconds=getattr(args, "timeout", None),
            page_delay=getattr(args, "delay", None),
            headless=False if getattr(args, "headed", False) else None,
            enable_js=False if getattr(args, "no_js", False) else None,
            model=getattr(args, "model", None),
            output_md=getattr(args, "output_md", None),
            output_json=getattr(args, "output_json", None),
            output_docx=getattr(args, "output_docx", None),
        )

    # -----------------------------------------------------------------------
    # Converters to runtime objects
    # -----------------------------------------------------------------------
    def to_crawl_config(self, url: str) -> CrawlConfig:
        """Return the immutable ``CrawlConfig`` for *url* (validates limits and mode)."""
        return CrawlConfig(
            seed_url=url,
            path_filter=self.path_filter or "",
            max_pages=int(self.max_pages),
            max_depth=int(self.max_depth),
            mode=self.mode,
        )

    def build_extractor(self):
        """Render-target driver: Playwright, or requests + BeautifulSoup when JS is off."""
        if self.enable_js:
            from .browser import PlaywrightExtractor
            return PlaywrightExtractor(headless=self.headless, user_agent=self.user_agent)
        from .static_extractor import StaticHTMLExtractor
        return StaticHTMLExtractor(user_agent=self.user_agent, request_timeout=self.timeout_seconds)

    def build_generator(self):
        """OpenAI-compatible generator (fails fast per call when no key is set)."""
        from .llm import OpenAIGenerator
        return OpenAIGenerator(
            api_key=self.api_key or "",
            model=self.model,
            base_url=self.base_url,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
            timeout=self.llm_timeout,
        )

    def build_crawler(self):
        """Fully wired ``DocsCrawler``."""
        from .crawler import DocsCrawler
        return DocsCrawler(
            self.build_extractor(),
            self.build_generator(),
            model=self.model,
            timeout_ms=int(self.timeout_seconds * 1000),
            settle_delay=self.settle_delay if self.enable_js else 0.0,
            page_delay=self.page_delay,
        )

    # -----------------------------------------------------------------------
    # Logging helper
    # -----------------------------------------------------------------------
    def log_summary(self, url: str) -> None:
        """Emit a structured summary to the logger."""
        logger.info("=" * 60)
        logger.info("CRAWL RUN CONFIG")
        logger.info("=" * 60)
        logger.info(f"  URL:              {url}")
        logger.info(f"  Mode:             {self.mode}")
        logger.info(f"  Max Depth:        {self.max_depth}")
        logger.info(f"  Max Pages:        {self.max_pages}")
        if self.path_filter:
            logger.info(f"  Path Filter:      {self.path_filter}")
        logger.info(f"  Timeout:          {self.timeout_seconds}s per page")
        logger.info(f"  Page Delay:       {self.page_delay}s between pages")
        if not self.enable_js:
            renderer = "static HTML (requests + BeautifulSoup)"
        else:
            renderer = f"Playwright ({'headless' if self.headless else 'headed'})"
        logger.info(f"  Renderer:         {renderer}")
        if self.mode != ExtractionMode.RAW.value:
            logger.info(f"  Model:            {self.model}")
            if not self.api_key:
                logger.warning("  API key:          not set - pages will fall back to truncated raw text")
        logger.info("=" * 60)
