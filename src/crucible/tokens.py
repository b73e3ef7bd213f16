"""Keyword tables for the Crucible language."""

from __future__ import annotations

# Decimal digits, ASCII only.
DIGITS: frozenset[str] = frozenset("0123456789")

# Characters that may appear in a DefKey.
DEFKEY_CHARS: frozenset[str] = frozenset(
    "abcdefghijklmnopqrstuvwxyz"
    "ABCDEFGHIJKLMNOPQRSTUVWXYZ"
    "0123456789"
    "_-$."
)

COMPONENT_KEYWORDS: tuple[str, ...] = (
    "aspect", "card", "deck", "verb", "recipe", "legacy", "ending",
)

STRUCTURE_KEYWORDS: tuple[str, ...] = ("namespace", "from")

STATEMENT_KEYWORDS: tuple[str, ...] = (
    "set", "induce", "xtrigger", "unique", "slot",
    "spawn", "mutate", "require", "effect", "purge", "draw",
    "halt", "delete", "ending", "link", "goto", "expel",
    "table", "extant", "status", "exclude",
)

MODIFIER_KEYWORDS: tuple[str, ...] = ("hidden", "consume", "greedy", "default")

# Keys that only a component's signature may assign.
SIGNATURE_KEYS: frozenset[str] = frozenset({"id", "label", "description"})
