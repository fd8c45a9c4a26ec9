"""
Tests for the command-line entry point. Crawls run against the in-memory
site by swapping the extractor the run config builds.
"""

import json

import pytest

import docs_crawler.__main__ as cli
from docs_crawler.run_config import CrawlerRunConfig

from conftest import FakeSite

SEED = "https://example.com/docs"


@pytest.fixture(autouse=True)
def offline(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    monkeypatch.setattr(cli, "_load_env", lambda: None)


@pytest.fixture
def site(monkeypatch):
    fake = FakeSite({
        SEED: ("Docs", "Welcome to the docs.", ["/docs/a", "https://other.com/x"]),
        f"{SEED}/a": ("A", "Page A.", []),
    })
    monkeypatch.setattr(CrawlerRunConfig, "build_extractor", lambda self: fake)
    return fake


class TestParser:

    def test_defaults(self):
        args = cli.build_parser().parse_args(["https://example.com/docs"])
        assert args.max_pages == 50
        assert args.max_depth == 3
        assert args.mode == "smart"
        assert args.path_filter == ""
        assert not args.no_js

    def test_rejects_unknown_mode(self):
        with pytest.raises(SystemExit):
            cli.build_parser().parse_args(["https://example.com/docs", "--mode", "poetry"])


class TestRun:

    def test_exports_markdown_and_json(self, tmp_path, site):
        md = tmp_path / "docs.md"
        js = tmp_path / "out" / "docs.json"
        code = cli.run_cli_with_args([
            SEED, "--mode", "raw", "--delay", "0", "--no-js",
            "--output-md", str(md), "--output-json", str(js),
        ])
        assert code == 0
        assert md.read_text(encoding="utf-8").startswith("# example.com Documentation")
        data = json.loads(js.read_text(encoding="utf-8"))
        assert data["pageCount"] == 2
        assert site.fetched == [SEED, f"{SEED}/a"]

    def test_scheme_added(self, tmp_path, site):
        out = tmp_path / "docs.json"
        code = cli.run_cli_with_args(["example.com/docs", "--mode", "raw", "--delay", "0", "--no-js", "--output-json", str(out)])
        assert code == 0
        assert json.loads(out.read_text(encoding="utf-8"))["source"] == SEED

    def test_default_output_name(self, tmp_path, site, monkeypatch):
        monkeypatch.chdir(tmp_path)
        assert cli.run_cli_with_args([SEED, "--mode", "raw", "--delay", "0", "--no-js"]) == 0
        written = list(tmp_path.glob("example-com-docs-*.md"))
        assert len(written) == 1

    def test_llm_mode_without_key_falls_back(self, tmp_path, site):
        out = tmp_path / "docs.json"
        assert cli.run_cli_with_args([SEED, "--delay", "0", "--no-js", "--output-json", str(out)]) == 0
        contents = [p["content"] for p in json.loads(out.read_text(encoding="utf-8"))["pages"]]
        assert contents == ["Welcome to the docs.", "Page A."]

    def test_invalid_url(self, site):
        assert cli.run_cli_with_args(["http://[::1", "--mode", "raw"]) == 1
        assert site.fetched == []

    def test_invalid_limits(self, site):
        assert cli.run_cli_with_args([SEED, "--max-pages", "0"]) == 1

    def test_nothing_processed_skips_export(self, tmp_path, monkeypatch):
        monkeypatch.setattr(CrawlerRunConfig, "build_extractor", lambda self: FakeSite({}))
        out = tmp_path / "docs.md"
        assert cli.run_cli_with_args([SEED, "--mode", "raw", "--delay", "0", "--no-js", "--output-md", str(out)]) == 0
        assert not out.exists()

    def test_summary_printed(self, tmp_path, site, capsys):
        cli.run_cli_with_args([SEED, "--mode", "raw", "--delay", "0", "--no-js", "--output-md", str(tmp_path / "d.md")])
        out = capsys.readouterr().out
        assert "CRAWL COMPLETE" in out
        assert "Pages processed:     2" in out
