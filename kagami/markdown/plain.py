"""Markdown to plain text conversion.

Walks the markdown-it token stream and keeps only what a reader sees:
emphasis markers disappear, links keep their label, code keeps its content.
"""

from __future__ import annotations

import re

from markdown_it import MarkdownIt

from kagami.markdown.chunk import find_fences

_BLANK_RUN_RE = re.compile(r"\n{3,}")
# "[label]: url" lines, which markdown-it would consume as link definitions
_REFERENCE_DEF_RE = re.compile(r"^( {0,3})\[(?=[^\]\n]+\]:)", re.MULTILINE)


def markdown_to_plain(md: str) -> str:
    """Render markdown as undecorated text."""
    parser = MarkdownIt("commonmark", {"typographer": False})
    parser.enable("strikethrough")
    tokens = parser.parse(_keep_reference_lines(md))

    parts: list[str] = []
    _walk_tokens(tokens, parts)
    return _BLANK_RUN_RE.sub("\n\n", "".join(parts)).strip()


def _keep_reference_lines(md: str) -> str:
    """Escape reference definitions outside code fences so they stay as text."""
    out: list[str] = []
    pos = 0
    for start, end in find_fences(md):
        out.append(_REFERENCE_DEF_RE.sub(r"\1\\[", md[pos:start]))
        out.append(md[start:end])
        pos = end
    out.append(_REFERENCE_DEF_RE.sub(r"\1\\[", md[pos:]))
    return "".join(out)


def _walk_tokens(tokens: list, parts: list[str]) -> None:
    """Walk block-level tokens, appending visible text to *parts*."""
    for tok in tokens:
        ttype = tok.type

        # --- List item: keep the marker readers expect ---
        if ttype == "list_item_open":
            parts.append(f"{tok.info}{tok.markup} " if tok.info else "• ")
            continue

        # --- Inline container ---
        if ttype == "inline":
            _walk_inline(tok.children or [], parts)
            continue

        # --- Code, raw HTML ---
        if ttype in ("fence", "code_block", "html_block"):
            parts.append(tok.content.rstrip("\n"))
            _end_block(tok, parts)
            continue

        # Thematic breaks only separate blocks
        if ttype == "hr":
            _end_block(tok, parts)
            continue

        if ttype in ("paragraph_close", "heading_close"):
            _end_block(tok, parts)
            continue

        # Containers (lists, blockquotes, headings) carry no text of their own


def _walk_inline(children: list, parts: list[str]) -> None:
    """Process inline-level tokens; style and link tokens only wrap text."""
    for tok in children:
        ttype = tok.type
        if ttype in ("text", "text_special", "code_inline", "html_inline"):
            parts.append(tok.content)
        elif ttype in ("softbreak", "hardbreak"):
            parts.append("\n")
        elif ttype == "image":
            parts.append(tok.content or "image")


def _end_block(tok, parts: list[str]) -> None:
    # Hidden paragraphs belong to tight list items
    parts.append("\n" if tok.hidden else "\n\n")
