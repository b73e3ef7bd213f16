"""Tests for the Crucible lexical primitives."""

from __future__ import annotations

import sys

import pytest

from crucible.errors import CompileError
from crucible.ir import DefKey, Probability
from crucible.lexer import Lexer, ParseError


class TestDefKey:
    def test_simple(self):
        assert Lexer("lantern").defkey() == DefKey("lantern")

    def test_allowed_characters(self):
        assert Lexer("mod.ns-1_$x rest").defkey() == "mod.ns-1_$x"

    def test_stops_before_arrow(self):
        lx = Lexer("cat->target")
        assert lx.defkey() == "cat"
        lx.symbol("->")
        assert lx.defkey() == "target"

    def test_empty_is_error(self):
        with pytest.raises(ParseError):
            Lexer("{").defkey()

    def test_is_str(self):
        key = Lexer("a.b").defkey()
        assert isinstance(key, str)
        assert isinstance(key, DefKey)


class TestKeyword:
    def test_case_insensitive(self):
        assert Lexer("ASPECT x").keyword("aspect") == "aspect"

    def test_whole_word_only(self):
        with pytest.raises(ParseError):
            Lexer("aspects").keyword("aspect")

    def test_followed_by_punctuation(self):
        lx = Lexer("table:3")
        assert lx.keyword("table") == "table"
        assert lx.peek() == ":"

    def test_try_keyword_rewinds(self):
        lx = Lexer("card")
        assert not lx.try_keyword("aspect")
        assert lx.pos == 0


class TestStrings:
    def test_plain(self):
        assert Lexer('"The Lantern"').string() == "The Lantern"

    def test_escapes(self):
        assert Lexer(r'"a\"b\\c\/d\n\t"').string() == 'a"b\\c/d\n\t'

    def test_unicode_escape(self):
        assert Lexer(r'"\u0041\u00e9"').string() == "A\u00e9"

    def test_unterminated(self):
        with pytest.raises(ParseError):
            Lexer('"open').string()

    def test_bad_escape(self):
        with pytest.raises(ParseError):
            Lexer(r'"\q"').string()


class TestNumbers:
    def test_unsigned(self):
        assert Lexer("42").unsigned() == 42

    def test_unsigned_rejects_identifier(self):
        with pytest.raises(ParseError):
            Lexer("12abc").unsigned()

    def test_unsigned_before_arrow(self):
        assert Lexer("30->x").unsigned() == 30

    def test_unsigned_ascii_only(self):
        with pytest.raises(ParseError):
            Lexer("\u00b2").unsigned()
        with pytest.raises(ParseError):
            Lexer("-\u00b3").signed()

    @pytest.mark.skipif(sys.get_int_max_str_digits() == 0, reason="no int conversion limit")
    def test_unsigned_over_conversion_limit(self):
        lx = Lexer("9" * (sys.get_int_max_str_digits() + 1))
        with pytest.raises(ParseError):
            lx.unsigned()
        assert lx.pos == 0

    def test_signed(self):
        assert Lexer("-3").signed() == -3
        assert Lexer("+4").signed() == 4
        assert Lexer("5").signed() == 5

    def test_percentage_with_sign(self):
        assert Lexer("50%").percentage() == Probability(50)

    def test_percentage_bare(self):
        assert Lexer("100").percentage() == Probability(100)

    def test_percentage_out_of_range(self):
        with pytest.raises(CompileError) as exc_info:
            Lexer("101%").percentage()
        assert exc_info.value.diagnostics[0].code == "E209"

    def test_try_percentage_missing(self):
        lx = Lexer("target")
        assert lx.try_percentage() is None
        assert lx.pos == 0


class TestTrivia:
    def test_line_comment(self):
        lx = Lexer("// note\nx")
        assert lx.defkey() == "x"

    def test_block_comment(self):
        lx = Lexer("(* a\nmultiline comment *) x")
        assert lx.defkey() == "x"

    def test_block_comment_closes_at_first_end(self):
        lx = Lexer("(* outer (* inner *) x")
        assert lx.defkey() == "x"

    def test_unterminated_block_comment(self):
        with pytest.raises(ParseError):
            Lexer("(* never closed").defkey()

    def test_inline_mode_stops_at_newline(self):
        lx = Lexer("a\nb")
        with lx.inline():
            lx.defkey()
            with pytest.raises(ParseError):
                lx.defkey()

    def test_free_mode_crosses_newline(self):
        lx = Lexer("a\nb")
        lx.defkey()
        assert lx.defkey() == "b"

    def test_newline_required(self):
        lx = Lexer("a b")
        with lx.inline():
            lx.defkey()
            with pytest.raises(ParseError):
                lx.newline()

    def test_newline_skips_blank_lines(self):
        lx = Lexer("a\n\n  // c\n  b")
        with lx.inline():
            lx.defkey()
            lx.newline()
            assert lx.defkey() == "b"

    def test_end(self):
        lx = Lexer("x  // trailing\n")
        lx.defkey()
        assert lx.end()


class TestBacktracking:
    def test_attempt_rewinds(self):
        lx = Lexer("abc 12")
        assert lx.attempt(lx.unsigned) is None
        assert lx.pos == 0

    def test_choice_takes_first_match(self):
        lx = Lexer("42")
        assert lx.choice(lx.unsigned, lx.defkey) == 42

    def test_choice_falls_through(self):
        lx = Lexer("abc")
        assert lx.choice(lx.unsigned, lx.defkey) == "abc"

    def test_choice_all_fail(self):
        lx = Lexer("{")
        with pytest.raises(ParseError):
            lx.choice(lx.unsigned, lx.defkey)

    def test_furthest_failure_recorded(self):
        lx = Lexer("abc {")
        lx.attempt(lambda: (lx.defkey(), lx.string()))
        assert lx.furthest_pos == 4
        assert "a string" in lx.furthest_expected

    def test_semantic_error_not_caught(self):
        lx = Lexer("150")
        with pytest.raises(CompileError):
            lx.attempt(lx.percentage)

    def test_span(self):
        lx = Lexer("ab\ncd", "f.crucible")
        span = lx.span(3, 5)
        assert (span.file, span.start_line, span.start_col) == ("f.crucible", 2, 1)
        assert (span.end_line, span.end_col) == (2, 2)
