"""Markup-aware text preparation: normalize, split, repair, degrade."""

from kagami.markdown.balance import is_markdown_balanced, repair_markdown, scan_tokens
from kagami.markdown.chunk import chunk_spans, chunk_text, find_fences
from kagami.markdown.normalize import normalize_text
from kagami.markdown.sanitize import escape_markdown_v2, sanitize_markdown, strip_markdown

__all__ = [
    "chunk_spans",
    "chunk_text",
    "escape_markdown_v2",
    "find_fences",
    "is_markdown_balanced",
    "normalize_text",
    "repair_markdown",
    "sanitize_markdown",
    "scan_tokens",
    "strip_markdown",
]
