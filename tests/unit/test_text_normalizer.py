"""Unit tests for storyswap.utils.text_normalizer."""

from __future__ import annotations

from storyswap.utils.text_normalizer import (
    build_snippet,
    count_words,
    normalize_tag_name,
    sanitize_text,
    tag_display_name,
)


class TestSanitizeText:
    def test_strips_html_tags(self):
        result = sanitize_text("<script>alert('xss')</script>Hello <b>world</b>")
        assert "<script>" not in result
        assert "<b>" not in result
        assert "Hello" in result
        assert "world" in result

    def test_strips_whitespace(self):
        assert sanitize_text("  text with whitespace  ") == "text with whitespace"

    def test_keeps_plain_ampersand(self):
        assert sanitize_text("Fish & chips") == "Fish & chips"


class TestCountWords:
    def test_counts_whitespace_separated_words(self):
        assert count_words("  one two\n\tthree  ") == 3

    def test_empty(self):
        assert count_words(None) == 0
        assert count_words("   ") == 0


class TestBuildSnippet:
    def test_short_text_unchanged(self):
        assert build_snippet("A short note.") == "A short note."

    def test_truncates_to_25_words(self):
        text = " ".join(f"w{i}" for i in range(30))
        snippet = build_snippet(text)
        assert snippet.endswith("...")
        assert snippet.split()[-1] == "w24..."
        assert len(snippet.split()) == 25

    def test_never_exceeds_150_characters(self):
        text = " ".join(["abcdefghij"] * 25)
        snippet = build_snippet(text)
        assert len(snippet) <= 150
        assert snippet.endswith("...")

    def test_empty_text(self):
        assert build_snippet(None) is None
        assert build_snippet("  ") is None


class TestTagNames:
    def test_normalize_lowercases_and_collapses(self):
        assert normalize_tag_name("  Street   ART ") == "street art"

    def test_normalize_truncates(self):
        assert len(normalize_tag_name("x" * 80)) == 30

    def test_display_name_title_cases_words(self):
        assert tag_display_name("street  art") == "Street Art"
