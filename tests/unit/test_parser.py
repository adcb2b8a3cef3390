"""Tests for the tree-sitter parsing layer."""

from __future__ import annotations

from stubsmith.parser import ParsedSource, Parser


class TestParse:
    def test_returns_tree_and_encoded_source(self):
        parsed = Parser().parse("class Pinger:\n    pass\n")
        assert isinstance(parsed, ParsedSource)
        assert parsed.source == b"class Pinger:\n    pass\n"
        assert parsed.root.type == "module"
        assert not parsed.has_errors

    def test_grammar_is_loaded_once_per_instance(self):
        parser = Parser()
        parser.parse("x = 1\n")
        first = parser._parser_for("python")
        parser.parse("y = 2\n")
        assert parser._parser_for("python") is first

    def test_offsets_refer_to_utf8_bytes(self):
        parsed = Parser().parse('name = "héllo"\n')
        string = parsed.root.children[0].children[0].child_by_field_name("right")
        assert parsed.source[string.start_byte : string.end_byte].decode("utf-8") == '"héllo"'


class TestErrorLines:
    def test_clean_source_has_none(self):
        assert Parser().parse("def ping(self) -> None: ...\n").error_lines() == []

    def test_reports_lines_of_broken_statements(self):
        parsed = Parser().parse("class Ok:\n    pass\n\ndef broken(:\n    pass\n")
        assert parsed.has_errors
        lines = parsed.error_lines()
        assert lines
        assert all(line >= 4 for line in lines)
