"""
Word Document Exporter
======================
Writes the exported page set of a crawl as a DOCX file.

Layout:
- Cover page with the crawl summary (source, mode, page counts, characters)
- Table of Contents field (filled in when Word updates fields)
- One section per page: title heading, source URL, content

Content is rendered line by line so markdown produced by the LLM modes keeps
its shape: ``#`` headings become Word headings, ```` ``` ```` fences become
monospace shaded blocks, ``-``/``*`` items become bullets.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, List, Optional

from .exporter import _hostname, exportable_pages
from .models import CrawlStats, ExtractionMode, Page

logger = logging.getLogger(__name__)


def export_docx(
    pages: Iterable[Page],
    filepath: str,
    *,
    source_url: str,
    mode: ExtractionMode,
    stats: Optional[CrawlStats] = None,
    include_toc: bool = True,
    max_content_chars: int = 20_000,
) -> str:
    """
    Export the done pages of a crawl to a Word document.

    Args:
        pages: Pages of the crawl (any status; only ``done`` pages are written)
        filepath: Output .docx path
        source_url: The crawl seed, shown on the cover
        mode: Extraction mode the content was produced with
        stats: Optional crawl stats for the cover table
        include_toc: Whether to insert a TOC field
        max_content_chars: Max chars per page section

    Returns:
        Absolute path to the created file
    """
    from docx import Document
    from docx.enum.table import WD_TABLE_ALIGNMENT
    from docx.enum.text import WD_ALIGN_PARAGRAPH
    from docx.shared import Pt

    mode = ExtractionMode(mode)
    ordered = exportable_pages(pages)
    output_path = Path(filepath)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    doc = Document()
    normal = doc.styles["Normal"]
    normal.font.name = "Calibri"
    normal.font.size = Pt(10)
    normal.paragraph_format.space_after = Pt(4)

    # Cover
    heading = doc.add_heading(f"{_hostname(source_url)} Documentation", level=0)
    heading.alignment = WD_ALIGN_PARAGRAPH.CENTER

    cover_rows = _cover_rows(source_url, mode, ordered, stats)
    table = doc.add_table(rows=len(cover_rows), cols=2)
    table.alignment = WD_TABLE_ALIGNMENT.CENTER
    for row, (label, value) in zip(table.rows, cover_rows):
        _fill_summary_cell(row.cells[0], label, bold=True)
        _fill_summary_cell(row.cells[1], value)
    doc.add_page_break()

    if include_toc:
        doc.add_heading("Table of Contents", level=1)
        _add_toc_field(doc)
        doc.add_page_break()

    for idx, page in enumerate(ordered):
        if idx:
            doc.add_page_break()
        _render_page(doc, page, max_content_chars)

    doc.save(str(output_path))
    written = str(output_path.resolve())
    logger.info(f"[EXPORT] DOCX with {len(ordered)} pages written to {written}")
    return written


def _cover_rows(source_url: str, mode: ExtractionMode, ordered: List[Page], stats: Optional[CrawlStats]):
    rows = [
        ("Source", source_url),
        ("Extraction Mode", mode.label),
        ("Pages Exported", str(len(ordered))),
        ("Total Characters", f"{sum(len(p.content) for p in ordered):,}"),
    ]
    if stats is not None:
        rows.append(("Pages Discovered", str(stats.discovered)))
        rows.append(("Pages Failed", str(stats.failed)))
    return rows


# ---------------------------------------------------------------------------
# Per-page rendering
# ---------------------------------------------------------------------------

def _render_page(doc, page: Page, max_content_chars: int) -> None:
    from docx.shared import Pt, RGBColor

    doc.add_heading((page.title or page.url)[:120], level=1)

    url_para = doc.add_paragraph()
    url_run = url_para.add_run(page.url)
    url_run.font.color.rgb = RGBColor(0x25, 0x63, 0xEB)
    url_run.font.size = Pt(9)

    content = page.content
    if len(content) > max_content_chars:
        content = content[:max_content_chars] + "\n\n[... content truncated ...]"

    _render_markdown(doc, content)


def _render_markdown(doc, text: str) -> None:
    """Minimal markdown → Word: headings, fenced code, bullets, paragraphs."""
    from docx.shared import Pt

    code_lines: List[str] = []
    in_code = False
    paragraph: List[str] = []

    def flush_paragraph():
        if paragraph:
            p = doc.add_paragraph(" ".join(paragraph))
            for run in p.runs:
                run.font.size = Pt(10)
            paragraph.clear()

    for line in text.splitlines():
        stripped = line.strip()

        if stripped.startswith("```"):
            if in_code:
                _render_code_block(doc, "\n".join(code_lines))
                code_lines = []
                in_code = False
            else:
                flush_paragraph()
                in_code = True
            continue
        if in_code:
            code_lines.append(line)
            continue

        if not stripped:
            flush_paragraph()
        elif stripped.startswith("#"):
            flush_paragraph()
            hashes = len(stripped) - len(stripped.lstrip("#"))
            heading = stripped[hashes:].strip()
            if heading:
                # H1 is the page title
                doc.add_heading(heading[:100], level=min(hashes + 1, 6))
        elif stripped.startswith(("- ", "* ")):
            flush_paragraph()
            doc.add_paragraph(stripped[2:], style="List Bullet")
        else:
            paragraph.append(stripped)

    if in_code and code_lines:
        _render_code_block(doc, "\n".join(code_lines))
    flush_paragraph()


def _render_code_block(doc, code: str) -> None:
    """Render a code block with monospace font and shading."""
    from docx.shared import Pt
    from docx.oxml.ns import qn
    from docx.oxml import OxmlElement

    if not code.strip():
        return

    p = doc.add_paragraph()
    run = p.add_run(code[:5000])
    run.font.name = "Consolas"
    run.font.size = Pt(8)

    shading = OxmlElement("w:shd")
    shading.set(qn("w:fill"), "F5F5F5")
    shading.set(qn("w:val"), "clear")
    p.paragraph_format.element.get_or_add_pPr().append(shading)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _fill_summary_cell(cell, text: str, *, bold: bool = False) -> None:
    from docx.shared import Pt

    cell.text = text
    for run in (r for para in cell.paragraphs for r in para.runs):
        run.bold = bold
        run.font.size = Pt(10)


def _field_char(kind: str):
    from docx.oxml import OxmlElement
    from docx.oxml.ns import qn

    element = OxmlElement("w:fldChar")
    element.set(qn("w:fldCharType"), kind)
    return element


def _add_toc_field(doc) -> None:
    """TOC field over Heading 1-2; Word renders it when the fields are updated."""
    from docx.oxml import OxmlElement
    from docx.oxml.ns import qn

    paragraph = doc.add_paragraph()
    field_run = paragraph.add_run()

    instruction = OxmlElement("w:instrText")
    instruction.set(qn("xml:space"), "preserve")
    instruction.text = ' TOC \\o "1-2" \\h \\z \\u '

    field_run._element.append(_field_char("begin"))
    field_run._element.append(instruction)
    field_run._element.append(_field_char("separate"))

    hint = paragraph.add_run("Right-click and choose Update Field to build the page list.")
    hint.font.italic = True

    # The end marker must follow the placeholder run
    closing_run = paragraph.add_run()
    closing_run._element.append(_field_char("end"))
