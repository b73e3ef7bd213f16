"""Embedded literal values: null, booleans, numbers, strings, arrays, objects.

Literals appear on the right of ``set`` statements, in attributes, and as
the body of an ``ending``.  The syntax is JSON, with two relaxations:
numbers may carry a leading ``+``, and object keys may be bare
identifiers.  Newlines inside a literal are always whitespace.
"""

from __future__ import annotations

import sys

from crucible.ir import Literal
from crucible.lexer import Lexer
from crucible.tokens import DEFKEY_CHARS, DIGITS

_WORDS: dict[str, Literal] = {"null": None, "true": True, "false": False}


def parse_literal(text: str, filename: str = "<literal>") -> tuple[Literal, str]:
    """Parse one literal from the start of *text*.

    Returns the value and the unconsumed remainder.  Raises
    :class:`crucible.lexer.ParseError` (carrying the offending offset)
    when *text* does not start with a literal, and
    :class:`crucible.errors.CompileError` on a repeated object key.
    """
    lexer = Lexer(text, filename)
    value = literal(lexer)
    return value, text[lexer.pos:]


def literal(lexer: Lexer) -> Literal:
    """Parse a literal at the lexer's position."""
    with lexer.free():
        lexer.skip_trivia()
        ch = lexer.peek()
        if ch == '"':
            return lexer.string()
        if ch == '[':
            return _array(lexer)
        if ch == '{':
            return _object(lexer)
        if ch in DIGITS or (ch in '+-' and lexer.peek(1) in DIGITS):
            return _number(lexer)
        for word, value in _WORDS.items():
            end = lexer.pos + len(word)
            if lexer.source.startswith(word, lexer.pos) and (
                end >= len(lexer.source) or lexer.source[end] not in DEFKEY_CHARS
            ):
                lexer.pos = end
                return value
        raise lexer.fail("a literal value")


def _number(lexer: Lexer) -> int | float:
    src = lexer.source
    start = lexer.pos
    if src[lexer.pos] in '+-':
        lexer.pos += 1
    _digits(lexer)
    is_float = False
    if lexer.peek() == '.' and lexer.peek(1) in DIGITS:
        is_float = True
        lexer.pos += 1
        _digits(lexer)
    if lexer.peek() in 'eE':
        mark = lexer.pos
        lexer.pos += 1
        if lexer.peek() in '+-':
            lexer.pos += 1
        if lexer.peek() in DIGITS:
            is_float = True
            _digits(lexer)
        else:
            lexer.pos = mark
    if lexer.pos < len(src) and src[lexer.pos] in DEFKEY_CHARS:
        raise lexer.fail("a number", start)
    text = src[start:lexer.pos]
    try:
        return float(text) if is_float else int(text)
    except ValueError:
        limit = sys.get_int_max_str_digits()
        raise lexer.fail(f"a number of at most {limit} digits", start) from None


def _digits(lexer: Lexer) -> None:
    while lexer.peek() in DIGITS:
        lexer.pos += 1


def _array(lexer: Lexer) -> list[Literal]:
    lexer.symbol('[')
    items: list[Literal] = []
    if lexer.try_symbol(']'):
        return items
    while True:
        items.append(literal(lexer))
        if lexer.try_symbol(']'):
            return items
        lexer.symbol(',')


def _object(lexer: Lexer) -> dict[str, Literal]:
    lexer.symbol('{')
    members: dict[str, Literal] = {}
    if lexer.try_symbol('}'):
        return members
    while True:
        lexer.skip_trivia()
        start = lexer.pos
        key = lexer.string() if lexer.peek() == '"' else str(lexer.defkey())
        if key in members:
            raise lexer.semantic_error(
                "E200", f"key '{key}' is assigned more than once in this object", start,
            )
        lexer.symbol(':')
        members[key] = literal(lexer)
        if lexer.try_symbol('}'):
            return members
        lexer.symbol(',')
