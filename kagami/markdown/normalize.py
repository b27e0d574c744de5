"""Whitespace normalization applied before splitting."""

from __future__ import annotations

import re

_HSPACE_RE = re.compile(r"[ \t\f\v]+")
_BLANK_RUN_RE = re.compile(r"\n{3,}")


def normalize_text(text: str) -> str:
    """Canonicalize line endings and whitespace.

    Line endings become ``\\n``, horizontal whitespace runs become one space,
    every line is trimmed and at most one empty line is kept between
    paragraphs. Lines are trimmed before blank runs are collapsed so the
    result is stable under a second pass.
    """
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    text = _HSPACE_RE.sub(" ", text)
    text = "\n".join(line.strip() for line in text.split("\n"))
    text = _BLANK_RUN_RE.sub("\n\n", text)
    return text.strip()
