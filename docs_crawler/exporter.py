"""
Corpus Exporters
================
Pure functions that serialize the finished pages of a crawl.

Only ``done`` pages are exported, ordered by depth and then URL, so the
table of contents reads top-down from the seed.
"""

from __future__ import annotations

import json
from datetime import date, datetime
from typing import Iterable, List, Optional
from urllib.parse import urlsplit

from .models import ExtractionMode, Page, PageStatus


def exportable_pages(pages: Iterable[Page]) -> List[Page]:
    """Done pages sorted by ``(depth, url)``."""
    done = [p for p in pages if p.status is PageStatus.DONE]
    return sorted(done, key=lambda p: (p.depth, p.url))


def _hostname(source_url: str) -> str:
    try:
        host = urlsplit(source_url).hostname
    except ValueError:
        host = None
    return host or source_url


def to_markdown(
    pages: Iterable[Page],
    *,
    source_url: str,
    mode: ExtractionMode,
    exported_at: Optional[datetime] = None,
) -> str:
    """Single Markdown document with a depth-indented table of contents."""
    mode = ExtractionMode(mode)
    exported_at = exported_at or datetime.now()
    ordered = exportable_pages(pages)

    parts = [
        f"# {_hostname(source_url)} Documentation\n\n",
        f"**Source:** {source_url}\n",
        f"**Exported:** {exported_at.strftime('%Y-%m-%d %H:%M:%S')}\n",
        f"**Pages:** {len(ordered)}\n",
        f"**Extraction Mode:** {mode.label}\n\n",
        "---\n\n## Table of Contents\n\n",
    ]
    for idx, page in enumerate(ordered):
        indent = "  " * page.depth
        parts.append(f"{indent}- [{page.title or 'Untitled'}](#page-{idx})\n")

    parts.append("\n---\n\n")

    for idx, page in enumerate(ordered):
        parts.append(f'<a id="page-{idx}"></a>\n\n')
        parts.append(f"# {page.title or 'Untitled'}\n\n")
        parts.append(f"> **Source:** [{page.url}]({page.url})\n\n")
        parts.append(f"{page.content}\n\n")
        parts.append("---\n\n")

    return "".join(parts)


def to_json(
    pages: Iterable[Page],
    *,
    source_url: str,
    mode: ExtractionMode,
    exported_at: Optional[datetime] = None,
) -> str:
    """JSON document: crawl metadata plus ``pages: [{url, title, content, depth}]``."""
    mode = ExtractionMode(mode)
    exported_at = exported_at or datetime.now()
    ordered = exportable_pages(pages)

    data = {
        "source": source_url,
        "exported": exported_at.isoformat(),
        "extractionMode": mode.value,
        "pageCount": len(ordered),
        "pages": [
            {
                "url": p.url,
                "title": p.title,
                "content": p.content,
                "depth": p.depth,
            }
            for p in ordered
        ],
    }
    return json.dumps(data, indent=2, ensure_ascii=False)


def export_filename(source_url: str, ext: str, today: Optional[date] = None) -> str:
    """``docs-example-com-docs-2024-05-01.md`` style name for a download."""
    today = today or date.today()
    host = _hostname(source_url).replace(".", "-").replace(":", "-")
    return f"{host}-docs-{today.isoformat()}.{ext.lstrip('.')}"
