"""Syntax nodes produced while parsing a single Crucible file."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Union

from crucible.ir import (
    Attribute,
    Branch,
    Component,
    DefKey,
    Literal,
    Mutation,
    Probability,
    Requirement,
    Slot,
    ValueOperation,
    Xtrigger,
)
from crucible.source import Span

# ── Units ────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Namespace:
    """``namespace <id> { ... }``: a lexical scope prefixing its descendants."""

    id: DefKey
    attrs: list[Attribute]
    units: list[Unit]
    span: Span


@dataclass(frozen=True)
class ComponentUnit:
    """A component declaration with its attributes and inheritance clause."""

    id: DefKey
    attrs: list[Attribute]
    component: Component
    inherits: DefKey | None
    span: Span


Unit = Union[Namespace, ComponentUnit]


@dataclass(frozen=True)
class FileTree:
    """Everything declared in one source file."""

    filename: str
    attributes: list[Attribute] = field(default_factory=list)
    units: list[Unit] = field(default_factory=list)


# ── Statements ───────────────────────────────────────────────────


@dataclass(frozen=True)
class SetStmt:
    key: DefKey
    value: Literal
    span: Span


@dataclass(frozen=True)
class InduceStmt:
    recipe: DefKey
    chance: Probability
    span: Span


@dataclass(frozen=True)
class XtriggerStmt:
    xtrigger: Xtrigger
    span: Span


@dataclass(frozen=True)
class UniqueStmt:
    group: DefKey | None
    span: Span


@dataclass(frozen=True)
class SlotStmt:
    verb: DefKey | None  # None for a recipe's own slot
    slot: Slot
    span: Span


@dataclass(frozen=True)
class DeckEntry:
    card: DefKey
    description: str | None
    is_default: bool
    span: Span


@dataclass(frozen=True)
class RequireStmt:
    requirement: Requirement
    span: Span


@dataclass(frozen=True)
class QuantityStmt:
    """``effect``, ``aspect``, ``purge``, ``draw``, ``halt`` or ``delete``."""

    keyword: str
    element: DefKey
    amount: int | ValueOperation
    span: Span


@dataclass(frozen=True)
class MutateStmt:
    mutation: Mutation
    span: Span


@dataclass(frozen=True)
class ReferenceStmt:
    """A keyword naming one other component: ``ending``, ``verb``, ``status``, ``exclude``."""

    keyword: str
    target: DefKey
    span: Span


@dataclass(frozen=True)
class StartingCardStmt:
    card: DefKey
    amount: int
    span: Span


@dataclass(frozen=True)
class BranchStmt:
    branch: Branch
    span: Span


Stmt = Union[
    SetStmt, InduceStmt, XtriggerStmt, UniqueStmt, SlotStmt, DeckEntry,
    RequireStmt, QuantityStmt, MutateStmt, ReferenceStmt, StartingCardStmt,
    BranchStmt,
]
