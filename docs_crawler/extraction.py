"""
Extraction Pipeline
===================
Turns the raw text of a rendered page into the content we store.

- ``raw``        — stored as-is
- ``smart``      — cleaned markdown of the essential documentation
- ``structured`` — fixed sections (Overview, Key Concepts, Code Examples,
                   API Reference, Important Notes)
- ``summary``    — 3-5 bullet points

The LLM modes never fail a page: any error (including an empty or
non-string answer) degrades to the first 10,000 characters of raw text.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Dict, Optional

from .llm import TextGenerator
from .models import ExtractionMode

logger = logging.getLogger(__name__)


SYSTEM_INSTRUCTION = (
    "You are a technical documentation specialist. Extract and format documentation "
    "content clearly and accurately. Preserve code examples exactly. Never add "
    "information not present in the source."
)

# Raw characters handed to the model, per mode
INPUT_BUDGETS: Dict[ExtractionMode, int] = {
    ExtractionMode.SMART: 25_000,
    ExtractionMode.STRUCTURED: 25_000,
    ExtractionMode.SUMMARY: 15_000,
}

FALLBACK_CHARS = 10_000


_SMART_TEMPLATE = """Extract the essential documentation content from this page. Focus on:
- Main concepts and explanations
- Code examples (preserve formatting)
- API methods, parameters, and return values
- Important notes, warnings, or tips
- Step-by-step instructions if present

Remove: navigation, footers, breadcrumbs, "Was this helpful?", related links, and repetitive boilerplate.

Page Title: {title}
URL: {url}

Raw Content:
{content}

Return clean, well-formatted markdown documentation. Preserve code blocks with proper syntax highlighting hints."""

_STRUCTURED_TEMPLATE = """Parse this documentation page into a structured format:

## Overview
[1-2 sentence summary of what this page covers]

## Key Concepts
[Bullet points of main concepts explained]

## Code Examples
[Any code snippets, properly formatted in code blocks]

## API Reference
[If applicable: methods, parameters, types]

## Important Notes
[Warnings, tips, gotchas]

Page Title: {title}
URL: {url}

Raw Content:
{content}

Only include sections that have relevant content. Use proper markdown formatting."""

_SUMMARY_TEMPLATE = """Summarize this documentation page in 3-5 bullet points. Focus on:
- What this page teaches/explains
- Key takeaways a developer needs to know
- Any important code patterns or methods mentioned

Page Title: {title}
URL: {url}

Raw Content:
{content}

Return only the bullet points, be concise."""

PROMPT_TEMPLATES: Dict[ExtractionMode, str] = {
    ExtractionMode.SMART: _SMART_TEMPLATE,
    ExtractionMode.STRUCTURED: _STRUCTURED_TEMPLATE,
    ExtractionMode.SUMMARY: _SUMMARY_TEMPLATE,
}


def build_prompt(raw_content: str, title: str, url: str, mode: ExtractionMode) -> str:
    """Fill the mode's template with the page, truncated to the mode's budget."""
    mode = ExtractionMode(mode)
    if mode not in PROMPT_TEMPLATES:
        raise ValueError(f"Mode '{mode.value}' does not use a prompt")
    budget = INPUT_BUDGETS[mode]
    return PROMPT_TEMPLATES[mode].format(
        title=title,
        url=url,
        content=(raw_content or "")[:budget],
    )


class ExtractionPipeline:
    """
    Rewrites page text through a ``TextGenerator``.

    ``extract`` is synchronous (the generator is a blocking client);
    ``extract_async`` runs it in a worker thread for the crawl loop.
    """

    def __init__(self, generator: Optional[TextGenerator] = None, model: Optional[str] = None):
        self.generator = generator
        self.model = model
        self.fallbacks = 0

    def extract(self, raw_content: str, title: str, url: str, mode: ExtractionMode) -> str:
        mode = ExtractionMode(mode)
        raw_content = raw_content or ""
        if mode is ExtractionMode.RAW:
            return raw_content

        if self.generator is None:
            return self._fallback(raw_content, url, "no text generator configured")

        prompt = build_prompt(raw_content, title, url, mode)
        try:
            result = self.generator.generate(prompt, SYSTEM_INSTRUCTION, model=self.model)
        except Exception as e:
            return self._fallback(raw_content, url, f"{type(e).__name__}: {e}")

        if not isinstance(result, str):
            try:
                result = json.dumps(result)
            except (TypeError, ValueError):
                return self._fallback(raw_content, url, f"unusable {type(result).__name__} result")
        if not result.strip():
            return self._fallback(raw_content, url, "empty result")

        logger.debug(f"[EXTRACT] {mode.value}: {url} ({len(raw_content)} → {len(result)} chars)")
        return result

    async def extract_async(self, raw_content: str, title: str, url: str, mode: ExtractionMode) -> str:
        if ExtractionMode(mode) is ExtractionMode.RAW:
            return raw_content or ""
        return await asyncio.to_thread(self.extract, raw_content, title, url, mode)

    def _fallback(self, raw_content: str, url: str, reason: str) -> str:
        self.fallbacks += 1
        if self.fallbacks == 1:
            logger.warning(f"[EXTRACT] AI extraction failed for {url} ({reason}) - using truncated raw text")
        else:
            logger.debug(f"[EXTRACT] Fallback for {url}: {reason}")
        return raw_content[:FALLBACK_CHARS]
