"""
Tests for the Markdown / JSON exporters and download filenames.
"""

import json
from datetime import date, datetime

from docs_crawler.exporter import export_filename, exportable_pages, to_json, to_markdown
from docs_crawler.models import ExtractionMode, Page, PageStatus

SOURCE = "https://example.com/docs"
WHEN = datetime(2024, 5, 1, 9, 30, 0)


def _done(url, depth, title, content):
    page = Page(url=url, depth=depth)
    page.mark_crawling()
    page.mark_fetched(title, content, [])
    page.mark_done(content)
    return page


def _failed(url, depth):
    page = Page(url=url, depth=depth)
    page.mark_crawling()
    page.mark_failed("HTTP 404")
    return page


def _pages():
    return [
        _done("https://example.com/docs", 0, "Docs", "Welcome."),
        _done("https://example.com/docs/b", 1, "B", "Bee."),
        _failed("https://example.com/docs/broken", 1),
        _done("https://example.com/docs/a", 1, "", "Ay."),
    ]


class TestExportablePages:

    def test_only_done_sorted_by_depth_then_url(self):
        urls = [p.url for p in exportable_pages(_pages())]
        assert urls == [
            "https://example.com/docs",
            "https://example.com/docs/a",
            "https://example.com/docs/b",
        ]

    def test_in_flight_pages_excluded(self):
        page = Page(url="u", depth=0)
        page.mark_crawling()
        assert exportable_pages([page]) == []


class TestMarkdown:

    def test_exact_layout(self):
        md = to_markdown(_pages(), source_url=SOURCE, mode=ExtractionMode.RAW, exported_at=WHEN)
        expected = (
            "# example.com Documentation\n\n"
            "**Source:** https://example.com/docs\n"
            "**Exported:** 2024-05-01 09:30:00\n"
            "**Pages:** 3\n"
            "**Extraction Mode:** Raw Text\n\n"
            "---\n\n## Table of Contents\n\n"
            "- [Docs](#page-0)\n"
            "  - [Untitled](#page-1)\n"
            "  - [B](#page-2)\n"
            "\n---\n\n"
            '<a id="page-0"></a>\n\n'
            "# Docs\n\n"
            "> **Source:** [https://example.com/docs](https://example.com/docs)\n\n"
            "Welcome.\n\n"
            "---\n\n"
            '<a id="page-1"></a>\n\n'
            "# Untitled\n\n"
            "> **Source:** [https://example.com/docs/a](https://example.com/docs/a)\n\n"
            "Ay.\n\n"
            "---\n\n"
            '<a id="page-2"></a>\n\n'
            "# B\n\n"
            "> **Source:** [https://example.com/docs/b](https://example.com/docs/b)\n\n"
            "Bee.\n\n"
            "---\n\n"
        )
        assert md == expected

    def test_failed_pages_left_out(self):
        md = to_markdown(_pages(), source_url=SOURCE, mode="smart", exported_at=WHEN)
        assert "broken" not in md
        assert "**Extraction Mode:** Smart Extract" in md

    def test_empty(self):
        md = to_markdown([], source_url=SOURCE, mode="raw", exported_at=WHEN)
        assert "**Pages:** 0" in md
        assert "page-0" not in md


class TestJson:

    def test_document(self):
        data = json.loads(to_json(_pages(), source_url=SOURCE, mode="summary", exported_at=WHEN))
        assert data["source"] == SOURCE
        assert data["exported"] == "2024-05-01T09:30:00"
        assert data["extractionMode"] == "summary"
        assert data["pageCount"] == 3
        assert data["pages"][0] == {
            "url": "https://example.com/docs", "title": "Docs", "content": "Welcome.", "depth": 0,
        }
        assert [p["url"] for p in data["pages"]][1:] == [
            "https://example.com/docs/a", "https://example.com/docs/b",
        ]

    def test_pretty_and_unicode(self):
        pages = [_done("https://example.com/docs", 0, "Überblick", "naïve café")]
        text = to_json(pages, source_url=SOURCE, mode="raw", exported_at=WHEN)
        assert "naïve café" in text
        assert '\n  "source"' in text


class TestFilename:

    def test_format(self):
        assert export_filename("https://docs.example.com/guide", "md", today=date(2024, 5, 1)) == \
            "docs-example-com-docs-2024-05-01.md"

    def test_port_and_dotted_ext(self):
        assert export_filename("http://localhost:8000/d", ".json", today=date(2024, 1, 2)) == \
            "localhost-docs-2024-01-02.json"
