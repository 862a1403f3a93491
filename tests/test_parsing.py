"""Tests for command parsing."""

from seabot.dispatcher import parse_command

PREFIXES = [".", "!", "#", "/"]


class TestParseCommand:
    def test_name_and_args(self):
        parsed = parse_command(".ping extra args", PREFIXES)
        assert parsed.name == "ping"
        assert parsed.args == ["extra", "args"]
        assert parsed.prefix == "."

    def test_no_prefix(self):
        assert parse_command("ping", PREFIXES) is None

    def test_prefix_only(self):
        assert parse_command(".", PREFIXES) is None
        assert parse_command("!   ", PREFIXES) is None

    def test_empty_text(self):
        assert parse_command("", PREFIXES) is None

    def test_name_is_lowercased(self):
        assert parse_command("!PiNg", PREFIXES).name == "ping"

    def test_args_keep_case(self):
        assert parse_command("#brat Hello World", PREFIXES).args == ["Hello", "World"]

    def test_whitespace_collapsed(self):
        parsed = parse_command("/stalkml   123 \t 456 ", PREFIXES)
        assert parsed.name == "stalkml"
        assert parsed.args == ["123", "456"]

    def test_first_matching_prefix_wins(self):
        parsed = parse_command("!!ping", ["!!", "!"])
        assert parsed.prefix == "!!"
        assert parsed.name == "ping"

    def test_order_matters(self):
        parsed = parse_command("!!ping", ["!", "!!"])
        assert parsed.prefix == "!"
        assert parsed.name == "!ping"

    def test_no_quoting_support(self):
        assert parse_command('.brat "two words"', PREFIXES).args == ['"two', 'words"']

    def test_space_after_prefix(self):
        parsed = parse_command(". ping", PREFIXES)
        assert parsed.name == "ping"
