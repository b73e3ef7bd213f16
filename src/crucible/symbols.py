"""Definition table for the Crucible merge phase."""

from __future__ import annotations

from dataclasses import dataclass, field

from crucible.ir import Attribute, Component, DefKey, collection_of
from crucible.source import Span


@dataclass
class Definition:
    """A component as it was declared, before inheritance is applied."""

    key: DefKey
    component: Component
    span: Span
    namespace: DefKey = DefKey("")
    inherits: DefKey | None = None
    attributes: list[Attribute] = field(default_factory=list)

    @property
    def kind(self) -> str:
        return collection_of(self.component)

    @property
    def file(self) -> str:
        return self.span.file


class DefinitionTable:
    """Qualified definitions, one map per component kind."""

    def __init__(self) -> None:
        self._kinds: dict[str, dict[DefKey, Definition]] = {}

    def define(self, definition: Definition) -> Definition | None:
        """Record a definition. Returns the existing one if the key is taken."""
        table = self._kinds.setdefault(definition.kind, {})
        existing = table.get(definition.key)
        if existing is not None:
            return existing
        table[definition.key] = definition
        return None

    def lookup(self, kind: str, key: str) -> Definition | None:
        return self._kinds.get(kind, {}).get(key)

    def resolve(self, kind: str, name: DefKey, namespace: DefKey) -> Definition | None:
        """Find *name* relative to *namespace* first, then as an absolute key."""
        if namespace:
            found = self.lookup(kind, namespace.child(name))
            if found is not None:
                return found
        return self.lookup(kind, name)

    def all_definitions(self) -> list[Definition]:
        return [d for table in self._kinds.values() for d in table.values()]

    def __len__(self) -> int:
        return sum(len(table) for table in self._kinds.values())
