"""Tests for the fallback rewrites in kagami.markdown.sanitize and plain."""

from kagami.markdown.balance import is_markdown_balanced
from kagami.markdown.plain import markdown_to_plain
from kagami.markdown.sanitize import (
    MARKDOWN_V2_SPECIALS,
    escape_markdown_v2,
    fix_links,
    sanitize_markdown,
    strip_markdown,
)


class TestSanitizeMarkdown:
    def test_zero_width_removed(self):
        assert sanitize_markdown("hello\u200bworld\ufeff") == "helloworld"

    def test_emphasis_runs_collapsed(self):
        assert sanitize_markdown("***wow***") == "**wow**"

    def test_backtick_runs_collapsed(self):
        assert sanitize_markdown("````code````") == "```code```"

    def test_lone_underscore_escaped(self):
        assert sanitize_markdown("use snake_case here") == "use snake\\_case here"

    def test_unpaired_italic_escaped(self):
        assert sanitize_markdown("*unclosed") == "\\*unclosed"

    def test_clean_text_unchanged(self):
        text = "**bold** and `code` and [docs](http://x)"
        assert sanitize_markdown(text) == text

    def test_output_balanced(self):
        for text in ["**a *b", "[x](y", "```\nopen", "a_b_c_d_e"]:
            assert is_markdown_balanced(sanitize_markdown(text))


class TestFixLinks:
    def test_space_between_label_and_url(self):
        assert fix_links("[docs] (http://x)") == "[docs](http://x)"

    def test_empty_url_keeps_label(self):
        assert fix_links("see [docs]()") == "see docs"

    def test_empty_label_keeps_url(self):
        assert fix_links("[](http://x)") == "http://x"

    def test_unterminated_url_closed(self):
        assert fix_links("[docs](http://x more") == "[docs](http://x) more"

    def test_valid_link_untouched(self):
        assert fix_links("[docs](http://x)") == "[docs](http://x)"


class TestEscapeMarkdownV2:
    def test_every_special_escaped(self):
        escaped = escape_markdown_v2(MARKDOWN_V2_SPECIALS)
        assert escaped == "".join("\\" + ch for ch in MARKDOWN_V2_SPECIALS)

    def test_plain_text_untouched(self):
        assert escape_markdown_v2("hello world 42") == "hello world 42"

    def test_mixed(self):
        assert escape_markdown_v2("a_b*c.d!") == "a\\_b\\*c\\.d\\!"


class TestStripMarkdown:
    def test_emphasis_and_link(self):
        assert strip_markdown("**bold** and [link](http://x)") == "bold and link"

    def test_code_keeps_content(self):
        assert strip_markdown("`code` _it_") == "code it"

    def test_empty_label_uses_url(self):
        assert strip_markdown("[](http://x)") == "http://x"

    def test_unpaired_symbols_removed(self):
        assert strip_markdown("a *dangling ~ thing") == "a dangling  thing"

    def test_reference_definition_kept(self):
        assert strip_markdown("[x]: http://a") == "[x]: http://a"

    def test_thematic_break_not_invented(self):
        assert strip_markdown("***") == ""
        assert strip_markdown("___") == ""

    def test_no_markup_symbols_left(self):
        out = strip_markdown("~~del~~ __u__ ```\nblock\n``` **x")
        assert not set(out) & set("*_~`")


class TestMarkdownToPlain:
    def test_reference_definition_kept(self):
        md = "See [docs][1].\n\n[1]: https://example.com"
        assert markdown_to_plain(md) == "See [docs][1].\n\n[1]: https://example.com"

    def test_reference_definition_in_fence_untouched(self):
        assert markdown_to_plain("```\n[x]: y\n```") == "[x]: y"

    def test_thematic_break_adds_no_text(self):
        assert markdown_to_plain("a\n\n***\n\nb") == "a\n\nb"

    def test_heading_and_paragraph(self):
        assert markdown_to_plain("# Title\n\nSome *text*.") == "Title\n\nSome text."

    def test_fenced_code_content_kept(self):
        assert markdown_to_plain("```python\nx = 1\n```") == "x = 1"

    def test_bullet_list(self):
        assert markdown_to_plain("- one\n- two") == "• one\n• two"

    def test_ordered_list(self):
        assert markdown_to_plain("1. one\n2. two") == "1. one\n2. two"

    def test_strikethrough_removed(self):
        assert markdown_to_plain("~~gone~~ kept") == "gone kept"
