"""Tests for kagami.markdown.balance - token scanning and chunk repair."""

import random

import pytest

from kagami.markdown.balance import (
    TokenClass,
    count_tokens,
    is_markdown_balanced,
    repair_markdown,
    scan_tokens,
)


class TestScanTokens:
    def test_longest_match_first(self):
        counts = count_tokens("***x***")
        assert counts[TokenClass.BOLD] == 2
        assert counts[TokenClass.ITALIC] == 2

    def test_fence_is_not_inline_code(self):
        counts = count_tokens("```\ncode\n```")
        assert counts[TokenClass.CODE_BLOCK] == 2
        assert counts[TokenClass.INLINE_CODE] == 0

    def test_backslash_escapes(self):
        hits = scan_tokens(r"\*not\* *yes*")
        assert [h.token for h in hits] == [TokenClass.ITALIC, TokenClass.ITALIC]
        assert hits[0].start == 8

    def test_lone_underscore_and_tilde_ignored(self):
        counts = count_tokens("snake_case ~ __under__ ~~gone~~")
        assert counts[TokenClass.UNDERLINE] == 2
        assert counts[TokenClass.STRIKETHROUGH] == 2
        assert sum(counts.values()) == 4

    def test_hit_end(self):
        (hit,) = scan_tokens("a**")
        assert (hit.start, hit.end) == (1, 3)


class TestIsMarkdownBalanced:
    @pytest.mark.parametrize("text", [
        "",
        "plain words",
        "**bold** and `code` and _x_",
        "[label](http://example.com)",
        "```\nfenced\n```",
    ])
    def test_balanced(self, text):
        assert is_markdown_balanced(text)

    @pytest.mark.parametrize("text", [
        "**bold",
        "`code",
        "[label](http://example.com",
        "oops)",
        "```\nopen fence",
    ])
    def test_unbalanced(self, text):
        assert not is_markdown_balanced(text)


class TestRepairMarkdown:
    def test_balanced_input_unchanged(self):
        text = "**bold** _it_ `code` [a](b)"
        assert repair_markdown(text) == text

    def test_odd_bold_loses_last_occurrence(self):
        chunk = "a" * 43 + "**hello"
        assert len(chunk) == 50
        fixed = repair_markdown(chunk)
        assert fixed == "a" * 43 + "hello"
        assert is_markdown_balanced(fixed)

    def test_odd_italic_gets_closer(self):
        chunk = ("lorem ipsum " * 250)[:2992] + " *almost"
        assert len(chunk) == 3000
        fixed = repair_markdown(chunk)
        assert fixed == chunk + "*"
        assert is_markdown_balanced(fixed)

    def test_multi_char_repaired_before_single_char(self):
        assert repair_markdown("**a** *b **c") == "**a** *b c*"

    def test_odd_inline_code_closed(self):
        assert repair_markdown("run `ls -la") == "run `ls -la`"

    def test_appended_italic_does_not_merge_with_trailing_star(self):
        fixed = repair_markdown("*a* b*")
        assert fixed == "*a* b* *"
        assert count_tokens(fixed)[TokenClass.ITALIC] == 4
        assert count_tokens(fixed)[TokenClass.BOLD] == 0

    def test_appended_backtick_does_not_merge(self):
        assert repair_markdown("`a` b`") == "`a` b` `"

    def test_odd_strikethrough_dropped(self):
        assert repair_markdown("~~gone and ~~back ~~again") == "~~gone and ~~back again"

    def test_fence_opened_near_end_is_closed(self):
        chunk = "Intro\n```python\nx = 1"
        assert repair_markdown(chunk) == "Intro\n```python\nx = 1\n```"

    def test_fence_opened_far_from_end_is_dropped(self):
        chunk = "```\nl1\nl2\nl3\nl4\nl5"
        assert repair_markdown(chunk) == "l1\nl2\nl3\nl4\nl5"

    def test_missing_paren_appended(self):
        assert repair_markdown("see [link](http://x") == "see [link](http://x)"

    def test_missing_bracket_appended(self):
        assert repair_markdown("see [link") == "see [link]"

    def test_unmatched_closer_dropped(self):
        assert repair_markdown("oops) fine") == "oops fine"


class TestRepairProperties:
    ALPHABET = "ab *_~`[]()\n\\"

    @pytest.mark.parametrize("seed", range(60))
    def test_result_balanced_and_idempotent(self, seed):
        rng = random.Random(seed)
        chunk = "".join(rng.choice(self.ALPHABET) for _ in range(rng.randint(0, 120)))
        fixed = repair_markdown(chunk)
        assert is_markdown_balanced(fixed)
        assert repair_markdown(fixed) == fixed

    @pytest.mark.parametrize("seed", range(10))
    def test_fence_heavy_input(self, seed):
        rng = random.Random(1000 + seed)
        lines = [rng.choice(["```", "```py", "code", "**x", "text"]) for _ in range(rng.randint(1, 12))]
        fixed = repair_markdown("\n".join(lines))
        assert is_markdown_balanced(fixed)
        assert repair_markdown(fixed) == fixed
