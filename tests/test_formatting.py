"""Tests for outbound text helpers."""

from seabot.formatting import clean_text, format_number, split_message


class TestSplitMessage:
    def test_short_message_untouched(self):
        assert split_message("hello", max_length=10) == ["hello"]

    def test_prefers_newlines(self):
        assert split_message("aaaa\nbbbb\ncccc", max_length=10) == ["aaaa\nbbbb", "cccc"]

    def test_falls_back_to_spaces(self):
        assert split_message("aaaa bbbb cccc", max_length=10) == ["aaaa bbbb", "cccc"]

    def test_hard_cut(self):
        assert split_message("a" * 25, max_length=10) == ["a" * 10, "a" * 10, "a" * 5]

    def test_chunks_within_limit(self):
        text = "\n".join(f"line {i} " + "x" * 50 for i in range(200))
        assert all(len(c) <= 4096 for c in split_message(text))


class TestHelpers:
    def test_format_number(self):
        assert format_number(1234567) == "1,234,567"
        assert format_number("n/a") == "n/a"

    def test_clean_text(self):
        assert clean_text("  a\n\n\n\nb  ") == "a\n\nb"
        assert clean_text(None) == ""
