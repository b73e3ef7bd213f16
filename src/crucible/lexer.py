"""Lexical primitives for the Crucible language.

The grammar is context sensitive (a DefKey may contain digits, dashes
and dots, percentages and amounts share digits with identifiers), so
there is no separate token stream.  :class:`Lexer` is a cursor over the
raw source that the parser drives directly, saving and restoring its
position to try ordered alternatives.

Every primitive skips leading trivia first.  Whether a newline counts as
trivia depends on the current mode: inside a statement only horizontal
whitespace is skipped (newlines separate statements), everywhere else
newlines are whitespace too.
"""

from __future__ import annotations

import sys
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import TypeVar

from crucible.errors import CompileError, InvalidProbability, error
from crucible.ir import DefKey, Probability
from crucible.source import LineIndex, Span
from crucible.tokens import DEFKEY_CHARS, DIGITS

T = TypeVar("T")

_ESCAPES = {
    '"': '"', '\\': '\\', '/': '/', 'b': '\b',
    'f': '\f', 'n': '\n', 'r': '\r', 't': '\t',
}


class ParseError(Exception):
    """A grammar mismatch. Callers may recover by trying another alternative."""

    def __init__(self, pos: int, expected: str) -> None:
        self.pos = pos
        self.expected = expected
        super().__init__(f"expected {expected} at offset {pos}")


class Lexer:
    """A backtracking cursor over Crucible source text."""

    def __init__(self, source: str, filename: str = "<stdin>") -> None:
        self.source = source
        self.filename = filename
        self.pos = 0
        self.multiline = True
        self._index = LineIndex(source)
        self.furthest_pos = -1
        self.furthest_expected: list[str] = []

    # ── Position ─────────────────────────────────────────────────

    def at_end(self) -> bool:
        return self.pos >= len(self.source)

    def peek(self, offset: int = 0) -> str:
        idx = self.pos + offset
        if idx < len(self.source):
            return self.source[idx]
        return '\0'

    def span(self, start: int, end: int | None = None) -> Span:
        """Span covering source offsets ``start`` up to (excluding) ``end``."""
        end = self.pos if end is None else end
        line, col = self._index.position(start)
        end_line, end_col = self._index.position(max(start, end - 1))
        return Span(self.filename, line, col, end_line, end_col)

    def fail(self, expected: str, pos: int | None = None) -> ParseError:
        """Record a mismatch and return the exception for the caller to raise."""
        pos = self.pos if pos is None else pos
        if pos > self.furthest_pos:
            self.furthest_pos = pos
            self.furthest_expected = [expected]
        elif pos == self.furthest_pos and expected not in self.furthest_expected:
            self.furthest_expected.append(expected)
        return ParseError(pos, expected)

    def semantic_error(self, code: str, message: str, start: int, end: int | None = None) -> CompileError:
        """A non-recoverable failure: the grammar matched but is invalid."""
        return CompileError([error(code, message, self.span(start, end))])

    def attempt(self, parser: Callable[..., T], *args: object) -> T | None:
        """Run *parser*; on a syntax mismatch rewind and return None."""
        saved_pos, saved_mode = self.pos, self.multiline
        try:
            return parser(*args)
        except ParseError:
            self.pos, self.multiline = saved_pos, saved_mode
            return None

    def choice(self, *parsers: Callable[[], T]) -> T:
        """Try *parsers* in order; the first one that matches wins."""
        start = self.pos
        last: ParseError | None = None
        for parser in parsers:
            saved_mode = self.multiline
            try:
                return parser()
            except ParseError as e:
                self.pos, self.multiline = start, saved_mode
                last = e
        assert last is not None
        raise last

    # ── Trivia ───────────────────────────────────────────────────

    @contextmanager
    def inline(self) -> Iterator[None]:
        """Within this block, newlines are significant."""
        saved = self.multiline
        self.multiline = False
        try:
            yield
        finally:
            self.multiline = saved

    @contextmanager
    def free(self) -> Iterator[None]:
        """Within this block, newlines are whitespace."""
        saved = self.multiline
        self.multiline = True
        try:
            yield
        finally:
            self.multiline = saved

    def skip_trivia(self, *, newlines: bool | None = None) -> bool:
        """Skip whitespace and comments. Returns True if a newline was crossed."""
        if newlines is None:
            newlines = self.multiline
        crossed = False
        src = self.source
        while self.pos < len(src):
            ch = src[self.pos]
            if ch in ' \t':
                self.pos += 1
            elif ch in '\r\n':
                if not newlines:
                    break
                crossed = True
                self.pos += 1
            elif ch == '/' and self.peek(1) == '/':
                while self.pos < len(src) and src[self.pos] not in '\r\n':
                    self.pos += 1
            elif ch == '(' and self.peek(1) == '*':
                start = self.pos
                end = src.find('*)', self.pos + 2)
                if end < 0:
                    raise self.fail("'*)' to close block comment", start)
                self.pos = end + 2
            else:
                break
        return crossed

    def newline(self) -> None:
        """Require a statement separator: at least one line ending."""
        self.skip_trivia(newlines=False)
        if self.peek() not in '\r\n':
            raise self.fail("a newline")
        self.skip_trivia(newlines=True)

    def at(self, text: str) -> bool:
        """Lookahead for *text* after trivia, without consuming anything."""
        saved = self.pos
        self.skip_trivia()
        found = self.source.startswith(text, self.pos)
        self.pos = saved
        return found

    def end(self) -> bool:
        """True if only trivia remains."""
        saved = self.pos
        self.skip_trivia(newlines=True)
        done = self.at_end()
        self.pos = saved
        return done

    # ── Primitives ───────────────────────────────────────────────

    def symbol(self, text: str) -> str:
        self.skip_trivia()
        if not self.source.startswith(text, self.pos):
            raise self.fail(f"'{text}'")
        self.pos += len(text)
        return text

    def keyword(self, word: str) -> str:
        """Match *word* case-insensitively as a whole word."""
        self.skip_trivia()
        end = self.pos + len(word)
        if self.source[self.pos:end].lower() != word or (
            end < len(self.source) and self.source[end] in DEFKEY_CHARS
        ):
            raise self.fail(f"'{word}'")
        self.pos = end
        return word

    def try_symbol(self, text: str) -> bool:
        return self.attempt(self.symbol, text) is not None

    def try_keyword(self, word: str) -> bool:
        return self.attempt(self.keyword, word) is not None

    def defkey(self) -> DefKey:
        """One or more of ``[A-Za-z0-9_-$.]``, greedy, stopping before ``->``."""
        self.skip_trivia()
        start = self.pos
        src = self.source
        while self.pos < len(src) and src[self.pos] in DEFKEY_CHARS:
            if src[self.pos] == '-' and self.peek(1) == '>':
                break
            self.pos += 1
        if self.pos == start:
            raise self.fail("an identifier")
        return DefKey(src[start:self.pos])

    def string(self) -> str:
        """A double-quoted string with JSON escapes."""
        self.skip_trivia()
        start = self.pos
        if self.peek() != '"':
            raise self.fail("a string")
        self.pos += 1
        text: list[str] = []
        src = self.source
        while self.pos < len(src) and src[self.pos] != '"':
            ch = src[self.pos]
            if ch == '\\':
                text.append(self._escape())
            else:
                text.append(ch)
                self.pos += 1
        if self.pos >= len(src):
            raise self.fail("'\"' to close string", start)
        self.pos += 1
        return ''.join(text)

    def _escape(self) -> str:
        self.pos += 1  # backslash
        ch = self.peek()
        if ch in _ESCAPES:
            self.pos += 1
            return _ESCAPES[ch]
        if ch == 'u':
            digits = self.source[self.pos + 1:self.pos + 5]
            if len(digits) == 4 and all(c in '0123456789abcdefABCDEF' for c in digits):
                self.pos += 5
                return chr(int(digits, 16))
        raise self.fail("a valid escape sequence")

    def unsigned(self) -> int:
        """A run of decimal digits not followed by identifier characters."""
        self.skip_trivia()
        start = self.pos
        src = self.source
        while self.pos < len(src) and src[self.pos] in DIGITS:
            self.pos += 1
        if self.pos == start or (
            self.pos < len(src) and src[self.pos] in DEFKEY_CHARS
            and not (src[self.pos] == '-' and self.peek(1) == '>')
        ):
            self.pos = start
            raise self.fail("an unsigned integer")
        try:
            return int(src[start:self.pos])
        except ValueError:
            self.pos = start
            limit = sys.get_int_max_str_digits()
            raise self.fail(f"an integer of at most {limit} digits") from None

    def signed(self) -> int:
        self.skip_trivia()
        sign = 1
        if self.peek() in '+-' and self.peek(1) in DIGITS:
            sign = -1 if self.peek() == '-' else 1
            self.pos += 1
        return sign * self.unsigned()

    def percentage(self) -> Probability:
        """An integer in 0..=100, optionally followed by ``%``."""
        self.skip_trivia()
        start = self.pos
        value = self.unsigned()
        if self.peek() == '%':
            self.pos += 1
        try:
            return Probability(value)
        except InvalidProbability as e:
            raise self.semantic_error("E209", str(e), start) from e

    def try_percentage(self) -> Probability | None:
        return self.attempt(self.percentage)
