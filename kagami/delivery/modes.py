"""Rendering modes walked by the delivery cascade."""

from __future__ import annotations

from enum import Enum

from kagami.markdown.sanitize import escape_markdown_v2, sanitize_markdown, strip_markdown


class RenderMode(str, Enum):
    """Rendering strictness, from richest markup to none."""

    RICH = "rich"
    SANITIZED = "sanitized"
    STRICT_ESCAPED = "strict_escaped"
    PLAIN = "plain"

    def advance(self) -> RenderMode | None:
        """Return the next weaker mode, or None after PLAIN."""
        members = list(RenderMode)
        index = members.index(self)
        return members[index + 1] if index + 1 < len(members) else None

    @property
    def parse_mode(self) -> str | None:
        """Telegram parse mode declared when sending under this mode."""
        return _PARSE_MODES[self]

    def render(self, chunk: str) -> str:
        """Rewrite a repaired chunk for this mode."""
        if self is RenderMode.RICH:
            return chunk
        if self is RenderMode.SANITIZED:
            return sanitize_markdown(chunk)
        if self is RenderMode.STRICT_ESCAPED:
            return escape_markdown_v2(strip_markdown(chunk))
        return strip_markdown(chunk)


_PARSE_MODES: dict[RenderMode, str | None] = {
    RenderMode.RICH: "Markdown",
    RenderMode.SANITIZED: "Markdown",
    RenderMode.STRICT_ESCAPED: "MarkdownV2",
    RenderMode.PLAIN: None,
}
