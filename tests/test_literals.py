"""Tests for embedded literal values."""

from __future__ import annotations

import sys

import pytest

from crucible.errors import CompileError
from crucible.lexer import ParseError
from crucible.literals import parse_literal


def value(text: str):
    """Helper: parse a literal that spans the whole text."""
    result, rest = parse_literal(text)
    assert rest.strip() == ""
    return result


class TestScalars:
    def test_null_and_booleans(self):
        assert value("null") is None
        assert value("true") is True
        assert value("false") is False

    def test_word_boundary(self):
        with pytest.raises(ParseError):
            parse_literal("nullable")

    def test_integers(self):
        assert value("42") == 42
        assert value("-7") == -7
        assert value("+3") == 3

    def test_floats(self):
        assert value("2.5") == 2.5
        assert value("-3e2") == -300.0
        assert isinstance(value("1E+1"), float)

    def test_number_glued_to_identifier(self):
        with pytest.raises(ParseError):
            parse_literal("12abc")

    def test_only_ascii_digits(self):
        with pytest.raises(ParseError):
            parse_literal("\u00b2")
        with pytest.raises(ParseError):
            parse_literal("-\u0663")

    @pytest.mark.skipif(sys.get_int_max_str_digits() == 0, reason="no int conversion limit")
    def test_integer_over_conversion_limit(self):
        with pytest.raises(ParseError) as exc_info:
            parse_literal("1" * (sys.get_int_max_str_digits() + 1))
        assert "digits" in exc_info.value.expected

    def test_string(self):
        assert value('"a \\"quoted\\" word"') == 'a "quoted" word'


class TestCompound:
    def test_array(self):
        assert value('[1, "two", [true], null]') == [1, "two", [True], None]

    def test_empty_collections(self):
        assert value("[]") == []
        assert value("{ }") == {}

    def test_object_with_bare_keys(self):
        assert value('{"image": "end.png", anim: "DramaticLight"}') == {
            "image": "end.png",
            "anim": "DramaticLight",
        }

    def test_object_spanning_lines(self):
        assert value('{\n  "a": 1,\n  "b": [\n    2\n  ]\n}') == {"a": 1, "b": [2]}

    def test_duplicate_key_rejected(self):
        with pytest.raises(CompileError) as exc_info:
            parse_literal('{"a": 1, "a": 2}')
        (diag,) = exc_info.value.diagnostics
        assert diag.code == "E200"
        assert "'a'" in diag.message

    def test_keys_are_case_sensitive(self):
        assert value('{"a": 1, "A": 2}') == {"a": 1, "A": 2}

    def test_remainder(self):
        result, rest = parse_literal('[1, 2] trailing')
        assert result == [1, 2]
        assert rest == " trailing"

    def test_missing_comma(self):
        with pytest.raises(ParseError):
            parse_literal("[1 2]")

    def test_not_a_literal(self):
        with pytest.raises(ParseError):
            parse_literal("}")
