"""
Docs Crawler - Streamlit Frontend
Crawl a documentation subtree, watch pages arrive, pause/resume/stop, and
download the corpus as Markdown, JSON or Word.
"""

import logging
import os
import subprocess
import tempfile
import time
from pathlib import Path

import pandas as pd
import streamlit as st
from dotenv import load_dotenv

load_dotenv(Path(__file__).resolve().parent / '.env')

from docs_crawler.crawler import DocsCrawler
from docs_crawler.exporter import export_filename
from docs_crawler.models import CrawlConfig, ExtractionMode, PageStatus
from docs_crawler.run_config import CrawlerRunConfig, _DEFAULTS
from docs_crawler.scope_filter import ScopeFilter
from docs_crawler.utils import canonicalize
from docs_crawler.word_exporter import export_docx


# Install Playwright browsers on first run (for Streamlit Cloud)
@st.cache_resource
def install_playwright_browsers() -> bool:
    """Install Playwright Chromium browser on first run."""
    try:
        result = subprocess.run(
            ["playwright", "install", "chromium"],
            capture_output=True,
            text=True,
            timeout=300
        )
    except (OSError, subprocess.SubprocessError) as e:
        logger.warning(f"Playwright install failed: {e}")
        return False
    return result.returncode == 0


# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s | %(levelname)s | %(message)s',
    datefmt='%H:%M:%S'
)
logger = logging.getLogger(__name__)

# Page configuration
st.set_page_config(
    page_title="Docs Crawler",
    page_icon="📚",
    layout="wide",
    initial_sidebar_state="expanded"
)

st.markdown("""
<style>
    .main-header {
        font-size: 2.5rem;
        font-weight: 700;
        color: #1E293B;
        margin-bottom: 0.5rem;
    }
    .sub-header {
        font-size: 1rem;
        color: #64748B;
        margin-bottom: 2rem;
    }
    [data-testid="stMetric"] {
        background-color: #F8F9FB;
        border: 1px solid #E2E8F0;
        border-radius: 10px;
        padding: 0.75rem;
    }
    [data-testid="stMetricValue"] {
        color: #2563EB;
    }
</style>
""", unsafe_allow_html=True)

_STATUS_ICONS = {
    PageStatus.PENDING: "⏳",
    PageStatus.CRAWLING: "🔄",
    PageStatus.PROCESSING: "🧠",
    PageStatus.DONE: "✅",
    PageStatus.FAILED: "❌",
}


def init_session_state():
    """Initialize session state variables."""
    if 'crawler_instance' not in st.session_state:
        st.session_state.crawler_instance = None
    if 'crawl_config' not in st.session_state:
        st.session_state.crawl_config = None


def render_sidebar() -> dict:
    """Render the sidebar with configuration options."""
    st.sidebar.markdown("## ⚙️ Crawler Settings")

    mode = st.sidebar.selectbox(
        "Extraction Mode",
        options=[m.value for m in ExtractionMode],
        format_func=lambda v: ExtractionMode(v).label,
        help="How page text is turned into stored content",
    )
    st.sidebar.caption(ExtractionMode(mode).description)

    max_pages = st.sidebar.number_input(
        "Max Pages", min_value=1, max_value=500, value=_DEFAULTS["max_pages"],
    )
    max_depth = st.sidebar.slider(
        "Max Depth", min_value=0, max_value=10, value=_DEFAULTS["max_depth"],
        help="0 = only the start page",
    )
    path_filter = st.sidebar.text_input(
        "Path Filter", value="", placeholder="/reference",
        help="Only follow URLs whose path contains this text",
    )

    st.sidebar.markdown("---")
    st.sidebar.markdown("## 🔧 Advanced Options")
    enable_js = st.sidebar.checkbox(
        "Render JavaScript (Chromium)", value=True,
        help="Turn off for static sites: faster, no browser needed",
    )

    if mode != ExtractionMode.RAW.value and not os.environ.get("OPENAI_API_KEY"):
        st.sidebar.warning("OPENAI_API_KEY is not set - pages fall back to truncated raw text.")

    return {
        "mode": mode,
        "max_pages": int(max_pages),
        "max_depth": int(max_depth),
        "path_filter": path_filter.strip(),
        "enable_js": enable_js,
    }


def start_crawl(url: str, options: dict) -> None:
    """Validate the form and start a crawl in a background thread."""
    run_cfg = CrawlerRunConfig.from_env(**options)
    crawl_config = run_cfg.to_crawl_config(url)
    if run_cfg.enable_js:
        install_playwright_browsers()
    crawler: DocsCrawler = run_cfg.build_crawler()
    crawler.start_background(crawl_config)
    st.session_state.crawler_instance = crawler
    st.session_state.crawl_config = crawl_config


def render_controls(crawler: DocsCrawler) -> None:
    col1, col2, col3 = st.columns([1, 1, 4])
    with col1:
        label = "▶️ Resume" if crawler.is_paused else "⏸️ Pause"
        if st.button(label, disabled=not crawler.is_running):
            crawler.toggle_pause()
            st.rerun()
    with col2:
        if st.button("⏹️ Stop", disabled=not crawler.is_running):
            crawler.abort()
            st.rerun()
    with col3:
        st.caption(crawler.current_action)


def render_metrics(crawler: DocsCrawler) -> None:
    stats = crawler.current_stats
    cols = st.columns(5)
    cols[0].metric("Discovered", stats.discovered)
    cols[1].metric("Crawled", stats.crawled)
    cols[2].metric("Processed", stats.processed)
    cols[3].metric("Failed", stats.failed)
    cols[4].metric("Characters", f"{stats.total_chars:,}")


def render_pages(crawler: DocsCrawler) -> None:
    pages = crawler.pages
    if not pages:
        return

    st.markdown("### 📄 Pages")
    df = pd.DataFrame([
        {
            "Status": f"{_STATUS_ICONS[p.status]} {p.status.value}",
            "Depth": p.depth,
            "Title": p.title,
            "Chars": len(p.content),
            "URL": p.url,
            "Error": p.error or "",
        }
        for p in pages
    ])
    st.dataframe(df, width="stretch", hide_index=True)

    queued = crawler.queue
    if queued:
        with st.expander(f"⏳ Queue ({len(queued)})", expanded=False):
            st.code("\n".join(queued[:200]), language=None)

    done = [p for p in pages if p.status is PageStatus.DONE]
    if done and not crawler.is_running:
        with st.expander("📝 Content Preview", expanded=False):
            choice = st.selectbox("Page", options=range(len(done)), format_func=lambda i: done[i].title or done[i].url)
            st.markdown(done[choice].content[:5000])


def render_downloads(crawler: DocsCrawler, crawl_config: CrawlConfig) -> None:
    done = [p for p in crawler.pages if p.status is PageStatus.DONE]
    if not done or crawler.is_running:
        return

    st.markdown("### 📥 Download")
    col1, col2, col3, col4 = st.columns(4)
    with col1:
        st.download_button(
            "⬇️ Markdown",
            data=crawler.export_markdown(),
            file_name=export_filename(crawl_config.seed_url, "md"),
            mime="text/markdown",
        )
    with col2:
        st.download_button(
            "⬇️ JSON",
            data=crawler.export_json(),
            file_name=export_filename(crawl_config.seed_url, "json"),
            mime="application/json",
        )
    with col3:
        st.download_button(
            "⬇️ Word",
            data=_docx_bytes(crawler, crawl_config),
            file_name=export_filename(crawl_config.seed_url, "docx"),
            mime="application/vnd.openxmlformats-officedocument.wordprocessingml.document",
        )
    with col4:
        if st.button("🗑️ Clear Results"):
            crawler.clear()
            st.session_state.crawler_instance = None
            st.session_state.crawl_config = None
            st.rerun()


def _docx_bytes(crawler: DocsCrawler, crawl_config: CrawlConfig) -> bytes:
    tmp = tempfile.NamedTemporaryFile(suffix='.docx', delete=False)
    tmp.close()
    try:
        export_docx(
            crawler.pages, tmp.name,
            source_url=crawl_config.seed_url,
            mode=crawl_config.mode,
            stats=crawler.current_stats,
        )
        with open(tmp.name, 'rb') as f:
            return f.read()
    finally:
        os.unlink(tmp.name)


def main():
    init_session_state()

    st.markdown('<p class="main-header">📚 Docs Crawler</p>', unsafe_allow_html=True)
    st.markdown(
        '<p class="sub-header">Crawl a documentation site and turn it into clean context for LLMs</p>',
        unsafe_allow_html=True
    )

    options = render_sidebar()
    crawler: DocsCrawler = st.session_state.crawler_instance
    running = crawler is not None and crawler.is_running

    col1, col2 = st.columns([4, 1])
    with col1:
        url = st.text_input(
            "Documentation URL",
            placeholder="https://docs.example.com/guide",
            label_visibility="collapsed",
        )
    with col2:
        crawl_button = st.button("🚀 Start Crawl", type="primary", disabled=running)

    seed = canonicalize(url.strip()) if url else None
    if seed:
        scope = ScopeFilter(root_url=seed, path_filter=options["path_filter"])
        st.info(f"📂 **Scope:** {scope.scope_description}")

    if crawl_button:
        if not url:
            st.error("Please enter a URL to crawl")
        else:
            try:
                start_crawl(url.strip(), options)
            except ValueError as e:
                st.error(f"Cannot start crawl: {e}")
            else:
                st.rerun()

    crawler = st.session_state.crawler_instance
    if crawler is None:
        return

    if crawler.last_error is not None:
        st.error(f"Crawl failed: {crawler.last_error}")

    render_controls(crawler)
    render_metrics(crawler)
    render_pages(crawler)
    render_downloads(crawler, st.session_state.crawl_config)

    # Poll while the background crawl is alive
    if crawler.is_running:
        time.sleep(1.0)
        st.rerun()


if __name__ == "__main__":
    main()
