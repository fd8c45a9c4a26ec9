"""
Docs Crawler Package
Scoped documentation crawler: renders pages of one documentation subtree,
optionally rewrites them with an LLM, and exports the corpus for use as
model context.

CLI Usage:
    python -m docs_crawler <url> [options]

    Options:
        --path-filter   Only follow URLs whose path contains this text
        --max-pages     Maximum pages to crawl (default: 50)
        --max-depth     Maximum link depth (default: 3)
        --mode          smart | structured | summary | raw (default: smart)
        --no-js         Static HTML fetching instead of Chromium
        --output-md     Export to Markdown file
        --output-json   Export to JSON file
        --output-docx   Export to DOCX file
"""

from .browser import (
    ExtractionPolicy,
    PageContentExtractor,
    PageLoadError,
    PageLoadTimeout,
    PlaywrightExtractor,
    RenderedContent,
)
from .crawler import CrawlResult, CrawlSession, DocsCrawler
from .exporter import export_filename, to_json, to_markdown
from .extraction import ExtractionPipeline
from .fetcher import FetchResult, PageFetcher
from .llm import GenerationError, OpenAIGenerator, TextGenerator
from .models import CrawlConfig, CrawlStats, ExtractionMode, FrontierEntry, Page, PageStatus
from .run_config import CrawlerRunConfig
from .scope_filter import ScopeFilter, in_scope
from .static_extractor import StaticHTMLExtractor
from .utils import URLNormalizer, canonicalize

__all__ = [
    'DocsCrawler',
    'CrawlSession',
    'CrawlResult',
    'CrawlConfig',
    'CrawlStats',
    'ExtractionMode',
    'FrontierEntry',
    'Page',
    'PageStatus',
    # Fetching
    'PageContentExtractor',
    'PlaywrightExtractor',
    'StaticHTMLExtractor',
    'ExtractionPolicy',
    'RenderedContent',
    'PageFetcher',
    'FetchResult',
    'PageLoadError',
    'PageLoadTimeout',
    # Extraction
    'ExtractionPipeline',
    'TextGenerator',
    'OpenAIGenerator',
    'GenerationError',
    # URLs and scope
    'URLNormalizer',
    'canonicalize',
    'ScopeFilter',
    'in_scope',
    # Export
    'to_markdown',
    'to_json',
    'export_filename',
    'CrawlerRunConfig',
]

__version__ = '1.0.0'
