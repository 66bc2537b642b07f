"""Tests for text sanitization."""

from gridmatch.core.sanitizer import sanitize_name, sanitize_text


class TestSanitizeText:
    def test_strips_control_chars(self):
        assert sanitize_text("a\x00b\x07c") == "abc"

    def test_keeps_whitespace_controls(self):
        assert sanitize_text("a\tb\nc\r") == "a\tb\nc\r"

    def test_strips_zero_width(self):
        assert sanitize_text("a\u200bb\ufeffc") == "abc"

    def test_preserves_unicode(self):
        assert sanitize_text("héllo ✓") == "héllo ✓"


class TestSanitizeName:
    def test_single_line_and_trimmed(self):
        assert sanitize_name("  Ali\nce\x00 ") == "Ali ce"

    def test_bounded_length(self):
        assert len(sanitize_name("x" * 500)) == 64
