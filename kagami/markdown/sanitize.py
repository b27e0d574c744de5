"""Progressively stricter rewrites of a chunk for the delivery fallbacks."""

from __future__ import annotations

import re

from kagami.markdown.balance import TokenClass, repair_markdown, scan_tokens
from kagami.markdown.plain import markdown_to_plain

_ZERO_WIDTH_RE = re.compile("[\u200b\u200c\u200d\u2060\ufeff]")
_EMPHASIS_RUN_RE = re.compile(r"([*_~])\1{2,}")
_BACKTICK_RUN_RE = re.compile(r"`{4,}")

_SPACED_LINK_RE = re.compile(r"\[([^\[\]\n]*)\][ \t]+\(([^()\s]*)\)")
_EMPTY_URL_LINK_RE = re.compile(r"\[([^\[\]\n]+)\]\(\s*\)")
_EMPTY_LABEL_LINK_RE = re.compile(r"\[\s*\]\(([^()\s]+)\)")
_UNTERMINATED_LINK_RE = re.compile(r"\[([^\[\]\n]*)\]\(([^()\s]+)(?=\s|$)")
_ANY_LINK_RE = re.compile(r"\[([^\[\]\n]*)\]\s*\(([^()\s]*)\)?")

_LONE_UNDERSCORE_RE = re.compile(r"(?<![_\\])_(?!_)")
_RESIDUAL_MARKUP_RE = re.compile(r"[*_~`]")

MARKDOWN_V2_SPECIALS = "_*[]()~`>#+-=|{}.!\\"
_MARKDOWN_V2_ESCAPE_RE = re.compile(f"([{re.escape(MARKDOWN_V2_SPECIALS)}])")


def sanitize_markdown(text: str) -> str:
    """Clean up markup the transport tends to reject, then rebalance."""
    text = _ZERO_WIDTH_RE.sub("", text)
    text = _EMPHASIS_RUN_RE.sub(r"\1\1", text)
    text = _BACKTICK_RUN_RE.sub("```", text)
    text = fix_links(text)
    text = _escape_trailing_unpaired(text)
    return repair_markdown(text)


def fix_links(text: str) -> str:
    """Repair common malformations of ``[label](url)`` links."""
    text = _SPACED_LINK_RE.sub(r"[\1](\2)", text)
    text = _EMPTY_URL_LINK_RE.sub(r"\1", text)
    text = _EMPTY_LABEL_LINK_RE.sub(r"\1", text)
    return _UNTERMINATED_LINK_RE.sub(r"[\1](\2)", text)


def escape_markdown_v2(text: str) -> str:
    """Escape every MarkdownV2 reserved character so the text renders literally."""
    return _MARKDOWN_V2_ESCAPE_RE.sub(r"\\\1", text)


def strip_markdown(text: str) -> str:
    """Remove all markup, keeping link labels and the text inside paired tokens."""
    text = _ANY_LINK_RE.sub(lambda m: m.group(1) or m.group(2), text)
    text = markdown_to_plain(text)
    return _RESIDUAL_MARKUP_RE.sub("", text)


def _escape_trailing_unpaired(text: str) -> str:
    underscores = list(_LONE_UNDERSCORE_RE.finditer(text))
    if len(underscores) % 2:
        pos = underscores[-1].start()
        text = text[:pos] + "\\" + text[pos:]

    italics = [hit for hit in scan_tokens(text) if hit.token is TokenClass.ITALIC]
    if len(italics) % 2:
        pos = italics[-1].start
        text = text[:pos] + "\\" + text[pos:]
    return text
