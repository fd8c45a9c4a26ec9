#!/usr/bin/env python3
"""
Command-line Docs Crawler
=========================
Crawl a documentation subtree and export it as Markdown / JSON / DOCX.

All configuration flows through ``CrawlerRunConfig``, the single source of
truth for defaults, CLI overrides and environment variables.

Run with: python -m docs_crawler <url> [options]
"""

import argparse
import asyncio
import logging
import signal
import sys
from pathlib import Path

from dotenv import load_dotenv

from .crawler import CrawlResult, DocsCrawler, resolve_seed
from .exporter import export_filename
from .models import ExtractionMode
from .run_config import CrawlerRunConfig, _DEFAULTS

logger = logging.getLogger(__name__)


def _load_env() -> None:
    """Load .env from the project root, falling back to the working directory."""
    env_path = Path(__file__).resolve().parent.parent / '.env'
    if env_path.exists():
        load_dotenv(env_path)
    else:
        load_dotenv()


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format='%(asctime)s | %(levelname)s | %(message)s',
        datefmt='%H:%M:%S'
    )


# ---------------------------------------------------------------------------
# Execution
# ---------------------------------------------------------------------------

def _run_crawl(url: str, cfg: CrawlerRunConfig) -> CrawlResult:
    crawl_config = cfg.to_crawl_config(url)
    crawler = cfg.build_crawler()

    def progress_cb(page, stats, action):
        if page is not None and page.status.is_terminal:
            marker = "OK " if page.status.value == "done" else "ERR"
            print(f"  [{marker}] {stats.crawled}/{crawl_config.max_pages}  {page.url[:80]}")

    crawler.set_progress_callback(progress_cb)
    return asyncio.run(_crawl_with_interrupt(crawler, crawl_config))


async def _crawl_with_interrupt(crawler: DocsCrawler, crawl_config) -> CrawlResult:
    """Ctrl+C aborts after the current page so the finished pages still get exported."""
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, crawler.abort)
    except (NotImplementedError, RuntimeError):
        # Windows event loops have no signal handlers; Ctrl+C then just interrupts
        pass
    try:
        return await crawler.crawl(crawl_config)
    finally:
        try:
            loop.remove_signal_handler(signal.SIGINT)
        except (NotImplementedError, RuntimeError):
            pass


def _export(result: CrawlResult, cfg: CrawlerRunConfig) -> list:
    exported = []
    if cfg.output_md:
        _write_text(cfg.output_md, result.export_markdown())
        exported.append(cfg.output_md)
    if cfg.output_json:
        _write_text(cfg.output_json, result.export_json())
        exported.append(cfg.output_json)
    if cfg.output_docx:
        exported.append(result.export_docx(cfg.output_docx))
    return exported


def _write_text(filepath: str, text: str) -> None:
    path = Path(filepath)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding='utf-8')


def print_summary(result: CrawlResult) -> None:
    """Print crawl summary."""
    stats = result.stats
    print("\n" + "=" * 60)
    print("CRAWL COMPLETE")
    print("=" * 60)
    print(f"  Pages discovered:    {stats.discovered}")
    print(f"  Pages crawled:       {stats.crawled}")
    print(f"  Pages processed:     {stats.processed}")
    print(f"  Failed pages:        {stats.failed}")
    print(f"  Total characters:    {stats.total_chars:,}")
    if result.pending:
        print(f"  Still queued:        {len(result.pending)}")
    print(f"  Total time:          {result.elapsed:.1f}s")
    print(f"  Stop reason:         {result.stop_reason}")
    print("=" * 60)


# ---------------------------------------------------------------------------
# Flag-driven entry point
# ---------------------------------------------------------------------------

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='docs-crawler',
        description='Crawl a documentation site and export it for LLM context',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m docs_crawler https://docs.example.com/guide
  python -m docs_crawler https://docs.example.com/guide --mode raw --max-pages 20
  python -m docs_crawler https://developer.example.com/docs --path-filter /reference --output-json ref.json
  python -m docs_crawler https://example.com/docs --no-js --output-md docs.md --output-docx docs.docx
        """
    )

    parser.add_argument('url', help='Documentation URL to start from (defines the crawl scope)')
    parser.add_argument('--path-filter', type=str, default='',
                        help='Only follow URLs whose path contains this text')
    parser.add_argument('--max-pages', type=int, default=_DEFAULTS['max_pages'],
                        help=f"Maximum pages to crawl (default: {_DEFAULTS['max_pages']})")
    parser.add_argument('--max-depth', type=int, default=_DEFAULTS['max_depth'],
                        help=f"Maximum link depth from the start URL (default: {_DEFAULTS['max_depth']})")
    parser.add_argument('--mode', choices=[m.value for m in ExtractionMode], default=_DEFAULTS['mode'],
                        help='Extraction mode: smart, structured, summary (LLM) or raw (default: smart)')
    parser.add_argument('--timeout', type=float, default=_DEFAULTS['timeout_seconds'],
                        help=f"Page load timeout in seconds (default: {_DEFAULTS['timeout_seconds']})")
    parser.add_argument('--delay', type=float, default=_DEFAULTS['page_delay'],
                        help=f"Delay between pages in seconds (default: {_DEFAULTS['page_delay']})")
    parser.add_argument('--no-js', action='store_true',
                        help='Fetch static HTML with requests instead of rendering in Chromium')
    parser.add_argument('--headed', action='store_true', help='Show the browser window')
    parser.add_argument('--model', type=str, default=None,
                        help='LLM model for the extraction modes (default: $DOCS_CRAWLER_MODEL or gpt-4o-mini)')
    parser.add_argument('--output-md', type=str, help='Markdown output file path')
    parser.add_argument('--output-json', type=str, help='JSON output file path')
    parser.add_argument('--output-docx', type=str, help='DOCX output file path')
    parser.add_argument('-v', '--verbose', action='store_true', help='Debug logging')
    return parser


def run_cli_with_args(argv=None) -> int:
    """Parse argv, build CrawlerRunConfig, run, export. Returns the exit status."""
    args = build_parser().parse_args(argv)
    _load_env()
    _configure_logging(args.verbose)

    url = args.url.strip()
    if not url.startswith(('http://', 'https://')):
        url = 'https://' + url

    cfg = CrawlerRunConfig.from_cli_args(args)
    if not (cfg.output_md or cfg.output_json or cfg.output_docx):
        cfg.output_md = export_filename(url, 'md')

    try:
        resolve_seed(cfg.to_crawl_config(url))
    except ValueError as e:
        logger.error(f"Configuration error: {e}")
        return 1

    cfg.log_summary(url)
    print("\nStarting crawl... (Ctrl+C stops after the current page)\n")

    result = _run_crawl(url, cfg)

    if not result.done_pages:
        logger.warning("No pages were processed, skipping export")
    else:
        try:
            exported = _export(result, cfg)
        except Exception as exc:
            logger.error(f"Export failed: {exc}", exc_info=True)
            return 1
        print("\n" + "-" * 40)
        for path in exported:
            print(f"  Exported: {path}")
        print("-" * 40)

    print_summary(result)
    return 0


def main() -> None:
    sys.exit(run_cli_with_args())


if __name__ == '__main__':
    main()
