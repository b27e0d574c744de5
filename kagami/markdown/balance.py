"""Markup token scanning and balance repair for a single chunk.

Token classes are found by one left-to-right scan with longest match first,
so ``**`` is never also counted as two ``*``. A backslash escapes the
following character.
"""

from __future__ import annotations

import re
from collections import Counter
from dataclasses import dataclass
from enum import Enum

from loguru import logger


class TokenClass(Enum):
    """Paired markup delimiters, valued by their symbol."""

    CODE_BLOCK = "```"
    BOLD = "**"
    UNDERLINE = "__"
    STRIKETHROUGH = "~~"
    INLINE_CODE = "`"
    ITALIC = "*"

    @property
    def symbol(self) -> str:
        return self.value


@dataclass(frozen=True)
class TokenHit:
    token: TokenClass
    start: int

    @property
    def end(self) -> int:
        return self.start + len(self.token.symbol)


# Longest match first; also the repair order (multi-char before single-char)
_TOKEN_ORDER = (
    TokenClass.CODE_BLOCK,
    TokenClass.BOLD,
    TokenClass.UNDERLINE,
    TokenClass.STRIKETHROUGH,
    TokenClass.INLINE_CODE,
    TokenClass.ITALIC,
)
_MARKUP_CHARS = frozenset("*_~`")
_MARKUP_CHARS_RE = re.compile(r"[*_~`]")
_BRACKET_PAIRS = (("[", "]"), ("(", ")"))
_FENCE_TAIL_LINES = 3
_MAX_PASSES = 4


def scan_tokens(text: str) -> list[TokenHit]:
    """Return every markup token occurrence in *text*, in order."""
    hits: list[TokenHit] = []
    i = 0
    n = len(text)
    while i < n:
        ch = text[i]
        if ch == "\\":
            i += 2
            continue
        if ch not in _MARKUP_CHARS:
            i += 1
            continue
        for token in _TOKEN_ORDER:
            if text.startswith(token.symbol, i):
                hits.append(TokenHit(token, i))
                i += len(token.symbol)
                break
        else:
            # lone "_" or "~"
            i += 1
    return hits


def count_tokens(text: str) -> Counter[TokenClass]:
    return Counter(hit.token for hit in scan_tokens(text))


def is_markdown_balanced(text: str) -> bool:
    """Check that every token class pairs up and brackets/parens counts match."""
    if not _tokens_balanced(text):
        return False
    return all(text.count(opener) == text.count(closer) for opener, closer in _BRACKET_PAIRS)


def repair_markdown(chunk: str) -> str:
    """Make *chunk* self-contained so it parses on its own.

    Odd multi-character tokens lose their last occurrence, odd single-character
    tokens get a closing symbol appended, an unterminated code fence is closed
    when it opened near the end and dropped otherwise, and missing ``]``/``)``
    are appended. Balanced input is returned unchanged.
    """
    if is_markdown_balanced(chunk):
        return chunk

    fixed = chunk
    for _ in range(_MAX_PASSES):
        if is_markdown_balanced(fixed):
            return fixed
        fixed = _balance_brackets(fixed, drop=True)
        for token in _TOKEN_ORDER:
            fixed = _repair_token(fixed, token)
        fixed = _balance_brackets(fixed, drop=False)

    if is_markdown_balanced(fixed):
        return fixed
    logger.debug("Markup still unbalanced after repair passes, stripping symbols")
    fixed = _MARKUP_CHARS_RE.sub("", fixed)
    return _balance_brackets(_balance_brackets(fixed, drop=True), drop=False)


def _tokens_balanced(text: str) -> bool:
    return all(count % 2 == 0 for count in count_tokens(text).values())


def _repair_token(text: str, token: TokenClass) -> str:
    hits = [hit for hit in scan_tokens(text) if hit.token is token]
    if len(hits) % 2 == 0:
        return text

    if token is TokenClass.CODE_BLOCK:
        return _repair_fence(text, hits[-1])
    if len(token.symbol) > 1:
        last = hits[-1]
        return text[:last.start] + text[last.end:]
    if text.endswith(token.symbol):
        # "*" after a trailing "*" would scan as "**"
        return text + " " + token.symbol
    return text + token.symbol


def _repair_fence(text: str, last: TokenHit) -> str:
    lines = text.split("\n")
    open_line: int | None = None
    for i, line in enumerate(lines):
        if line.strip().startswith("```"):
            open_line = i if open_line is None else None

    if open_line is None:
        return text[:last.start] + text[last.end:]
    if open_line >= len(lines) - _FENCE_TAIL_LINES:
        return text + "\n```"
    del lines[open_line]
    return "\n".join(lines)


def _drop_excess_closers(text: str, opener: str, closer: str) -> str:
    """Remove the earliest closers that have no opener before them."""
    excess = text.count(closer) - text.count(opener)
    if excess <= 0:
        return text

    out: list[str] = []
    depth = 0
    for ch in text:
        if ch == opener:
            depth += 1
        elif ch == closer:
            if depth == 0 and excess:
                excess -= 1
                continue
            depth = max(depth - 1, 0)
        out.append(ch)
    return "".join(out)


def _balance_brackets(text: str, drop: bool) -> str:
    """Drop surplus closers (``drop=True``) or append missing ones."""
    for opener, closer in _BRACKET_PAIRS:
        if drop:
            text = _drop_excess_closers(text, opener, closer)
        else:
            missing = text.count(opener) - text.count(closer)
            if missing > 0:
                text += closer * missing
    return text
