"""
Tests for PageFetcher: operation order, error normalisation and the
always-close guarantee.
"""

import asyncio

import pytest

from docs_crawler.browser import (
    ExtractionPolicy,
    PageContentExtractor,
    PageLoadError,
    PageLoadTimeout,
    RenderedContent,
    dedupe_links,
)
from docs_crawler.fetcher import PageFetcher

from conftest import FakeSite

URL = "https://example.com/docs"


def _fetch(site, url=URL, **kwargs):
    kwargs.setdefault("settle_delay", 0)
    return asyncio.run(PageFetcher(site, **kwargs).fetch(url))


class TestFetch:

    def test_success(self):
        site = FakeSite({URL: ("Docs", "hello", ["https://example.com/docs/a"])})
        result = _fetch(site)
        assert result.url == URL
        assert result.title == "Docs"
        assert result.raw_content == "hello"
        assert result.links == ["https://example.com/docs/a"]

    def test_operation_order(self):
        site = FakeSite({URL: ("Docs", "hello", [])})
        _fetch(site)
        assert [op for op, _ in site.calls] == ["open", "load", "extract", "close"]

    def test_title_defaults_to_url(self):
        site = FakeSite({URL: ("", "hello", [])})
        assert _fetch(site).title == URL


class TestFailures:

    def test_timeout_closes_target(self):
        site = FakeSite({URL: ("Docs", "hello", [])}, timeouts=[URL])
        with pytest.raises(PageLoadTimeout, match="Timeout"):
            _fetch(site)
        assert site.closed == [URL]
        assert ("extract", URL) not in site.calls

    def test_http_error(self):
        site = FakeSite({})
        with pytest.raises(PageLoadError, match="404"):
            _fetch(site)
        assert site.closed == [URL]

    def test_extraction_error_wrapped(self):
        site = FakeSite({URL: ("Docs", "hello", [])}, broken_extraction=[URL])
        with pytest.raises(PageLoadError, match="script injection failed"):
            _fetch(site)
        assert site.closed == [URL]

    def test_asyncio_timeout_becomes_page_load_timeout(self):
        class Hanging(FakeSite):
            async def await_load_complete(self, handle, timeout_ms):
                await asyncio.wait_for(asyncio.sleep(10), timeout_ms / 1000)

        site = Hanging({URL: ("Docs", "hello", [])})
        with pytest.raises(PageLoadTimeout):
            _fetch(site, timeout_ms=10)
        assert site.closed == [URL]

    def test_open_failure(self):
        class NoOpen(FakeSite):
            async def open_render_target(self, url):
                raise OSError("browser crashed")

        with pytest.raises(PageLoadError, match="browser crashed"):
            _fetch(NoOpen({}))

    def test_close_failure_does_not_mask_result(self):
        class BadClose(FakeSite):
            async def close_render_target(self, handle):
                raise RuntimeError("already closed")

        site = BadClose({URL: ("Docs", "hello", [])})
        assert _fetch(site).raw_content == "hello"


class TestRenderedContent:

    def test_from_mapping(self):
        data = {"title": "T", "content": "c", "links": ["https://a/", "https://a/", "mailto:x", "#top", 5]}
        rc = RenderedContent.from_mapping(data)
        assert rc.title == "T"
        assert rc.links == ["https://a/"]

    def test_from_non_mapping(self):
        with pytest.raises(PageLoadError):
            RenderedContent.from_mapping(None)

    def test_dedupe_links_case_insensitive_scheme(self):
        assert dedupe_links(["JavaScript:void(0)", " https://b/ "]) == ["https://b/"]


class TestExtractorContextManager:

    def test_start_and_stop(self):
        site = FakeSite({})

        async def run():
            async with site as s:
                assert s is site
                assert site.started
            assert site.stopped

        asyncio.run(run())

    def test_policy_js_args(self):
        policy = ExtractionPolicy(content_selectors=["main"], remove_selectors=["nav"], min_content_chars=10)
        assert policy.to_js_args() == {"contentSelectors": ["main"], "removeSelectors": ["nav"], "minChars": 10}

    def test_abstract(self):
        with pytest.raises(TypeError):
            PageContentExtractor()
