"""Pygments lexer for the Crucible language."""

from __future__ import annotations

from pygments import highlight
from pygments.formatters import TerminalFormatter
from pygments.lexer import RegexLexer, words
from pygments.token import (
    Comment,
    Keyword,
    Name,
    Number,
    Operator,
    Punctuation,
    String,
    Text,
)

from crucible.tokens import (
    COMPONENT_KEYWORDS,
    MODIFIER_KEYWORDS,
    STATEMENT_KEYWORDS,
    STRUCTURE_KEYWORDS,
)


class CrucibleLexer(RegexLexer):
    """Pygments lexer for Crucible content definitions."""

    name = "Crucible"
    aliases = ["crucible"]
    filenames = ["*.crucible"]
    mimetypes = ["text/x-crucible"]

    tokens = {
        "root": [
            (r"\s+", Text),
            (r"//.*$", Comment.Single),
            (r"\(\*", Comment.Multiline, "comment"),
            # Attributes: #![...] and #[...]
            (r"#!?\[", Name.Decorator, "attribute"),
            (r'"', String, "string"),
            (r"[0-9]+%", Number.Integer),
            (r"[+-]?[0-9]+\.[0-9]+([eE][+-]?[0-9]+)?\b", Number.Float),
            (r"[+-]?[0-9]+\b", Number.Integer),
            (r"(?i)\b(true|false|null)\b", Keyword.Constant),
            (words(COMPONENT_KEYWORDS, prefix=r"(?i)\b", suffix=r"\b"), Keyword.Declaration),
            (words(STRUCTURE_KEYWORDS, prefix=r"(?i)\b", suffix=r"\b"), Keyword.Namespace),
            (words(MODIFIER_KEYWORDS, prefix=r"(?i)\b", suffix=r"\b"), Keyword.Pseudo),
            (words(STATEMENT_KEYWORDS, prefix=r"(?i)\b", suffix=r"\b"), Keyword),
            (r"->", Operator),
            (r"[=:!?]", Operator),
            (r"[A-Za-z0-9_$][A-Za-z0-9_$.]*(-(?!>)[A-Za-z0-9_$.]*)*", Name),
            (r"[(),\[\]{}]", Punctuation),
        ],
        "string": [
            (r'\\(["\\/bfnrt]|u[0-9a-fA-F]{4})', String.Escape),
            (r'[^"\\]+', String),
            (r'"', String, "#pop"),
        ],
        "comment": [
            (r"[^*]+", Comment.Multiline),
            (r"\*\)", Comment.Multiline, "#pop"),
            (r"\*", Comment.Multiline),
        ],
        "attribute": [
            (r"\]", Name.Decorator, "#pop"),
            (r'"', String, "string"),
            (r"=", Operator),
            (r"\s+", Text),
            (r"[^\]\"=\s]+", Name.Decorator),
        ],
    }


def highlight_line(line: str) -> str:
    """Colour one line of Crucible source for a terminal."""
    return highlight(line, CrucibleLexer(), TerminalFormatter()).rstrip("\n")
