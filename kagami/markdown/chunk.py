"""Fence-aware splitting of normalized text into size-bounded chunks.

Splitting escalates through :class:`SplitTier` from code-block boundaries down
to a forced cut. Every chunk is a whitespace-trimmed slice of the input, so
joining the chunks with the original gaps between them gives the input back.
"""

from __future__ import annotations

import re
from enum import IntEnum

from kagami.errors import StructuralViolation

Span = tuple[int, int]

DEFAULT_LOOKBACK = 100

_FENCE_RE = re.compile(r"```[\s\S]*?```")
_PARAGRAPH_BREAK_RE = re.compile(r"\n\s*\n")
_SENTENCE_END_RE = re.compile(r"[.!?]+(?=\s|$)")
_LINE_BREAK_RE = re.compile(r"\n")
_BREAK_CHARS = frozenset(" \n,.;:")


class SplitTier(IntEnum):
    """Splitting strategies, coarsest first."""

    CODE_BLOCK = 0
    PARAGRAPH = 1
    SENTENCE = 2
    LINE = 3
    FORCED = 4

    def advance(self) -> SplitTier:
        """Return the next finer tier. FORCED is terminal."""
        if self is SplitTier.FORCED:
            return self
        return SplitTier(self + 1)


def find_fences(text: str) -> list[Span]:
    """Detect ``` fence regions in text, returning (start, end) positions."""
    return [(m.start(), m.end()) for m in _FENCE_RE.finditer(text)]


def chunk_text(text: str, limit: int, lookback: int = DEFAULT_LOOKBACK) -> list[str]:
    """Split text into chunks of at most *limit* characters.

    Split priority: code block > paragraph > sentence > line > hard cut.
    A fenced code block is never cut; one longer than *limit* becomes a
    chunk of its own.
    """
    return [text[start:end] for start, end in chunk_spans(text, limit, lookback)]


def chunk_spans(text: str, limit: int, lookback: int = DEFAULT_LOOKBACK) -> list[Span]:
    """Like :func:`chunk_text` but return ``(start, end)`` offsets into *text*."""
    if limit < 1:
        raise ValueError(f"limit must be positive, got {limit}")
    if len(text) <= limit:
        return [(0, len(text))]

    start, end = _trim(text, 0, len(text))
    spans = _split_range(text, start, end, limit, SplitTier.CODE_BLOCK, lookback)

    fences = set(find_fences(text))
    for span in spans:
        if span[1] - span[0] > limit and span not in fences:
            raise StructuralViolation(
                f"chunk {span} is {span[1] - span[0]} chars, limit is {limit}"
            )
    return spans


# ---------------------------------------------------------------------------
# Tiers
# ---------------------------------------------------------------------------

def _split_range(
    text: str,
    start: int,
    end: int,
    limit: int,
    tier: SplitTier,
    lookback: int,
) -> list[Span]:
    if end <= start:
        return []
    if end - start <= limit:
        return [(start, end)]
    if tier is SplitTier.FORCED:
        return _force_split(text, start, end, limit, lookback)

    pieces: list[Span] = []
    if tier is SplitTier.CODE_BLOCK:
        pos = start
        for m in _FENCE_RE.finditer(text, start, end):
            gap_start, gap_end = _trim(text, pos, m.start())
            pieces.extend(
                _split_range(text, gap_start, gap_end, limit, tier.advance(), lookback)
            )
            # Code blocks are atomic, even when oversized
            pieces.append((m.start(), m.end()))
            pos = m.end()
        gap_start, gap_end = _trim(text, pos, end)
        pieces.extend(_split_range(text, gap_start, gap_end, limit, tier.advance(), lookback))
        return _pack(pieces, limit)

    for unit_start, unit_end in _units(text, start, end, tier):
        if unit_end - unit_start > limit:
            pieces.extend(
                _split_range(text, unit_start, unit_end, limit, tier.advance(), lookback)
            )
        else:
            pieces.append((unit_start, unit_end))
    return _pack(pieces, limit)


def _units(text: str, start: int, end: int, tier: SplitTier) -> list[Span]:
    """Cut [start, end) into the structural units of *tier*."""
    raw: list[Span] = []
    pos = start
    if tier is SplitTier.SENTENCE:
        # The terminator stays with its sentence
        for m in _SENTENCE_END_RE.finditer(text, start, end):
            raw.append((pos, m.end()))
            pos = m.end()
    else:
        pattern = _PARAGRAPH_BREAK_RE if tier is SplitTier.PARAGRAPH else _LINE_BREAK_RE
        for m in pattern.finditer(text, start, end):
            raw.append((pos, m.start()))
            pos = m.end()
    raw.append((pos, end))

    units = []
    for unit_start, unit_end in raw:
        unit_start, unit_end = _trim(text, unit_start, unit_end)
        if unit_end > unit_start:
            units.append((unit_start, unit_end))
    return units


def _force_split(text: str, start: int, end: int, limit: int, lookback: int) -> list[Span]:
    """Cut at the last break character within *lookback* of the limit, else at the limit."""
    spans: list[Span] = []
    while end - start > limit:
        cut = start + limit
        floor = start + max(0, limit - lookback)
        for i in range(start + limit - 1, floor - 1, -1):
            if text[i] in _BREAK_CHARS:
                cut = i + 1
                break

        piece_start, piece_end = _trim(text, start, cut)
        if piece_end > piece_start:
            spans.append((piece_start, piece_end))
        start, end = _trim(text, cut, end)

    if end > start:
        spans.append((start, end))
    return spans


def _pack(pieces: list[Span], limit: int) -> list[Span]:
    """Greedily merge consecutive pieces while the merged slice fits *limit*."""
    packed: list[Span] = []
    current: Span | None = None
    for piece in pieces:
        if current is None:
            current = piece
        elif piece[1] - current[0] <= limit:
            current = (current[0], piece[1])
        else:
            packed.append(current)
            current = piece
    if current is not None:
        packed.append(current)
    return packed


def _trim(text: str, start: int, end: int) -> Span:
    while start < end and text[start].isspace():
        start += 1
    while end > start and text[end - 1].isspace():
        end -= 1
    return start, end
