"""Corpus merge engine: the sequential second phase of a compilation run.

Parsed files are merged one at a time into a :class:`DefinitionTable`
under their fully-qualified keys.  Inheritance is resolved only once
every file has been merged, so a ``from`` clause may name a component
defined later or in another file.  Problems are collected, never raised
mid-run; :meth:`Merger.finish` either returns the whole Corpus or raises
one :class:`CompileError` carrying every diagnostic.
"""

from __future__ import annotations

import logging
from dataclasses import MISSING, Field, fields, replace
from typing import Any

from crucible.ast_nodes import ComponentUnit, FileTree, Namespace, Unit
from crucible.errors import CompileError, Diagnostic, DiagnosticLabel, Severity
from crucible.ir import (
    COLLECTIONS,
    Attribute,
    Component,
    Corpus,
    DefKey,
    NamespaceMeta,
)
from crucible.symbols import Definition, DefinitionTable

logger = logging.getLogger(__name__)

_SINGULAR = {
    "aspects": "aspect",
    "cards": "card",
    "decks": "deck",
    "recipes": "recipe",
    "verbs": "verb",
    "legacies": "legacy",
    "endings": "ending",
}

# Mutually exclusive record fields.
_EXCLUSIVE: tuple[tuple[str, ...], ...] = (
    ("unique", "uniqueness_group"),
)


def _field_default(f: Field, value: Any) -> Any:
    if f.default is not MISSING:
        return f.default
    if f.default_factory is not MISSING:
        return f.default_factory()
    return type(value)()


def inherit(child: Component, parent: Component) -> Component:
    """Copy every field the child left at its default from *parent*.

    ``id`` is never inherited.  A parent field that is itself at its
    default leaves the child untouched.  Fields of an exclusive group are
    inherited together: if the child set any of them, none is copied.
    """
    unset: dict[str, Any] = {}
    for f in fields(child):
        if f.name == "id":
            continue
        value = getattr(child, f.name)
        default = _field_default(f, value)
        if value == default:
            unset[f.name] = default

    for group in _EXCLUSIVE:
        if any(name in unset for name in group) and not all(name in unset for name in group):
            for name in group:
                unset.pop(name, None)

    changes: dict[str, Any] = {}
    for name, default in unset.items():
        inherited = getattr(parent, name)
        if inherited != default:
            changes[name] = inherited
    return replace(child, **changes) if changes else child


class Merger:
    """Accumulates parsed files into one Corpus."""

    def __init__(self) -> None:
        self.table = DefinitionTable()
        self.diagnostics: list[Diagnostic] = []
        self._attributes: list[Attribute] = []
        self._namespaces: dict[DefKey, tuple[list[DefKey], list[Attribute]]] = {}
        self._resolved: dict[tuple[str, DefKey], Component] = {}
        self._resolving: list[Definition] = []
        self._files = 0

    # ── Phase 2a: definitions ────────────────────────────────────

    def merge(self, tree: FileTree) -> None:
        """Merge one parsed file under its qualified keys."""
        logger.debug("merging %s (%d units)", tree.filename, len(tree.units))
        self._files += 1
        self._attributes.extend(tree.attributes)
        self._merge_units(tree.units, DefKey(""))

    def _merge_units(self, units: list[Unit], namespace: DefKey) -> None:
        for unit in units:
            match unit:
                case Namespace():
                    key = namespace.child(unit.id)
                    _, attributes = self._namespaces.setdefault(key, ([], []))
                    attributes.extend(unit.attrs)
                    self._merge_units(unit.units, key)
                case ComponentUnit():
                    self._define(unit, namespace)

    def _define(self, unit: ComponentUnit, namespace: DefKey) -> None:
        key = namespace.child(unit.id)
        definition = Definition(
            key=key,
            component=replace(unit.component, id=key),
            span=unit.span,
            namespace=namespace,
            inherits=unit.inherits,
            attributes=list(unit.attrs),
        )
        existing = self.table.define(definition)
        if existing is not None:
            self._duplicate(definition, existing)
            return
        if namespace:
            self._namespaces[namespace][0].append(key)

    def _duplicate(self, definition: Definition, existing: Definition) -> None:
        kind = _SINGULAR[definition.kind]
        if existing.file == definition.file:
            where = f"twice in {definition.file}"
        else:
            where = f"in both {existing.file} and {definition.file}"
        self.diagnostics.append(Diagnostic(
            severity=Severity.ERROR,
            code="E300",
            message=f"duplicate definition of {kind} '{definition.key}': defined {where}",
            labels=[
                DiagnosticLabel(span=definition.span, message="redefined here"),
                DiagnosticLabel(
                    span=existing.span, message="first defined here", style="secondary",
                ),
            ],
        ))

    # ── Phase 2b: inheritance ────────────────────────────────────

    def resolve_inheritance(self) -> None:
        """Apply every ``from`` clause, parents before children."""
        for definition in self.table.all_definitions():
            self._resolve(definition)

    def _resolve(self, definition: Definition) -> Component:
        ident = (definition.kind, definition.key)
        done = self._resolved.get(ident)
        if done is not None:
            return done
        if definition.inherits is None:
            self._resolved[ident] = definition.component
            return definition.component

        if definition in self._resolving:
            self._cycle(definition)
            return definition.component

        parent = self.table.resolve(definition.kind, definition.inherits, definition.namespace)
        if parent is None:
            self._unresolved(definition)
            self._resolved[ident] = definition.component
            return definition.component

        self._resolving.append(definition)
        try:
            parent_component = self._resolve(parent)
        finally:
            self._resolving.pop()
        result = inherit(definition.component, parent_component)
        self._resolved[ident] = result
        return result

    def _unresolved(self, definition: Definition) -> None:
        kind = _SINGULAR[definition.kind]
        self.diagnostics.append(Diagnostic(
            severity=Severity.ERROR,
            code="E301",
            message=(
                f"{kind} '{definition.key}' inherits from '{definition.inherits}', "
                f"but no {kind} with that id is defined"
            ),
            labels=[DiagnosticLabel(span=definition.span, message="")],
        ))

    def _cycle(self, definition: Definition) -> None:
        start = self._resolving.index(definition)
        chain = [str(d.key) for d in self._resolving[start:]] + [str(definition.key)]
        self.diagnostics.append(Diagnostic(
            severity=Severity.ERROR,
            code="E302",
            message=f"inheritance cycle: {' -> '.join(chain)}",
            labels=[DiagnosticLabel(span=definition.span, message="")],
        ))

    # ── Result ───────────────────────────────────────────────────

    def finish(self) -> Corpus:
        """Resolve inheritance and build the Corpus, or raise every error."""
        self.resolve_inheritance()
        if self.diagnostics:
            raise CompileError(list(self.diagnostics))

        collections: dict[str, dict[DefKey, Component]] = {
            name: {} for name in COLLECTIONS.values()
        }
        component_attributes: dict[DefKey, tuple[Attribute, ...]] = {}
        for definition in self.table.all_definitions():
            component = self._resolved[(definition.kind, definition.key)]
            collections[definition.kind][definition.key] = component
            if definition.attributes:
                component_attributes[definition.key] = tuple(definition.attributes)

        corpus = Corpus(
            attributes=tuple(self._attributes),
            namespaces={
                key: NamespaceMeta(components=members, attributes=attributes)
                for key, (members, attributes) in self._namespaces.items()
            },
            component_attributes=component_attributes,
            **collections,
        )
        logger.info(
            "merged %d component(s) from %d file(s)", len(corpus), self._files,
        )
        return corpus


def merge_trees(trees: list[FileTree]) -> Corpus:
    """Merge parsed files in order. Raises CompileError with all problems."""
    merger = Merger()
    for tree in trees:
        merger.merge(tree)
    return merger.finish()
