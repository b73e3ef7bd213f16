"""Parser for the Crucible language.

Recursive descent over a backtracking :class:`Lexer`.  Ordered
alternatives are tried with :meth:`Lexer.choice`; only a syntax mismatch
(:class:`ParseError`) falls through to the next alternative.  Semantic
construction failures raise :class:`CompileError` and abort the file.
"""

from __future__ import annotations

from collections.abc import Callable
from functools import partial
from typing import TypeVar

from crucible import components
from crucible.ast_nodes import (
    BranchStmt,
    ComponentUnit,
    DeckEntry,
    FileTree,
    InduceStmt,
    MutateStmt,
    Namespace,
    QuantityStmt,
    ReferenceStmt,
    RequireStmt,
    SetStmt,
    SlotStmt,
    StartingCardStmt,
    Stmt,
    UniqueStmt,
    Unit,
    XtriggerStmt,
)
from crucible.errors import CompileError, Diagnostic, DiagnosticLabel, Severity
from crucible.ir import (
    CERTAIN,
    Attribute,
    Branch,
    Component,
    DefKey,
    Mutation,
    Probability,
    Requirement,
    RequirementKind,
    Slot,
    SlotFilter,
    SlotFilterKind,
    ValueOperation,
    Xtrigger,
    XtriggerMutate,
    XtriggerSpawn,
    XtriggerTransform,
)
from crucible.lexer import Lexer, ParseError
from crucible.literals import literal
from crucible.source import Span

T = TypeVar("T")

_QUANTITY_KEYWORDS = ("effect", "aspect", "purge", "draw", "halt", "delete")
_SIGNED_QUANTITIES = frozenset({"effect", "aspect"})


class Parser:
    """Parses Crucible source text into a :class:`FileTree`."""

    def __init__(self, source: str, filename: str = "<stdin>") -> None:
        self.filename = filename
        self.lexer = Lexer(source, filename)

    # ── Top level ────────────────────────────────────────────────

    def parse(self) -> FileTree:
        """Parse the whole file. Raises CompileError on any failure."""
        lx = self.lexer
        attributes = self._many(self._global_attribute)
        units = self._units()
        if not lx.end():
            raise CompileError([self._leftover_diagnostic()])
        return FileTree(filename=self.filename, attributes=attributes, units=units)

    def _leftover_diagnostic(self) -> Diagnostic:
        lx = self.lexer
        lx.skip_trivia(newlines=True)
        labels = [DiagnosticLabel(span=lx.span(lx.pos, lx.pos + 1), message="")]
        notes: list[str] = []
        if lx.furthest_pos >= lx.pos and lx.furthest_expected:
            expected = " or ".join(lx.furthest_expected)
            furthest = lx.span(lx.furthest_pos, lx.furthest_pos + 1)
            if lx.furthest_pos > lx.pos:
                labels.append(DiagnosticLabel(
                    span=furthest, message=f"expected {expected}", style="secondary",
                ))
            notes.append(f"parsing stopped at {furthest}: expected {expected}")
        return Diagnostic(
            severity=Severity.ERROR,
            code="E101",
            message="unparsed input after the last declaration",
            labels=labels,
            notes=notes,
        )

    def _many(self, parser: Callable[[], T]) -> list[T]:
        items: list[T] = []
        while (item := self.lexer.attempt(parser)) is not None:
            items.append(item)
        return items

    def _start(self) -> int:
        self.lexer.skip_trivia()
        return self.lexer.pos

    def _delimited(self, item: Callable[[], T], close: str = ")") -> list[T]:
        """Comma-separated items up to *close*; the opener is already consumed."""
        lx = self.lexer
        items: list[T] = []
        with lx.free():
            if lx.try_symbol(close):
                return items
            while True:
                items.append(item())
                if lx.try_symbol(close):
                    return items
                lx.symbol(',')

    # ── Attributes ───────────────────────────────────────────────

    def _attribute(self) -> Attribute:
        lx = self.lexer
        lx.symbol('[')
        key = lx.defkey()
        value = literal(lx) if lx.try_symbol('=') else None
        lx.symbol(']')
        return Attribute(key=key, value=value)

    def _global_attribute(self) -> Attribute:
        self.lexer.symbol('#!')
        return self._attribute()

    def _local_attribute(self) -> Attribute:
        self.lexer.symbol('#')
        return self._attribute()

    # ── Units ────────────────────────────────────────────────────

    def _units(self) -> list[Unit]:
        return self._many(self._unit)

    def _unit(self) -> Unit:
        return self.lexer.choice(self._namespace, self._component_unit)

    def _namespace(self) -> Namespace:
        lx = self.lexer
        start = self._start()
        attrs = self._many(self._local_attribute)
        lx.keyword("namespace")
        key = lx.defkey()
        lx.symbol('{')
        units = self._units()
        lx.symbol('}')
        return Namespace(id=key, attrs=attrs, units=units, span=lx.span(start))

    def _component_unit(self) -> ComponentUnit:
        lx = self.lexer
        start = self._start()
        attrs = self._many(self._local_attribute)
        inherits = lx.defkey() if lx.try_keyword("from") else None
        component: Component = lx.choice(
            self._aspect, self._card, self._deck, self._verb,
            self._recipe, self._legacy, self._ending,
        )
        return ComponentUnit(
            id=component.id, attrs=attrs, component=component,
            inherits=inherits, span=lx.span(start),
        )

    # ── Statement blocks ─────────────────────────────────────────

    def _block(self, *alternatives: Callable[[], T]) -> list[T]:
        """``{`` newline-separated statements ``}``."""
        lx = self.lexer
        lx.symbol('{')
        items: list[T] = []
        statement = partial(lx.choice, *(partial(self._terminated, alt) for alt in alternatives))
        with lx.inline():
            lx.skip_trivia(newlines=True)
            while not lx.at('}'):
                items.append(statement())
                if lx.at('}'):
                    break
                lx.newline()
        lx.symbol('}')
        return items

    def _terminated(self, parser: Callable[[], T]) -> T:
        """Run *parser* and require the statement to end there."""
        lx = self.lexer
        result = parser()
        lx.skip_trivia(newlines=False)
        if not (lx.at_end() or lx.peek() in '\r\n}'):
            raise lx.fail("end of statement")
        return result

    def _set(self) -> SetStmt:
        lx = self.lexer
        start = self._start()
        lx.keyword("set")
        key = lx.defkey()
        lx.symbol('=')
        value = literal(lx)
        return SetStmt(key=key, value=value, span=lx.span(start))

    def _induce(self) -> InduceStmt:
        lx = self.lexer
        start = self._start()
        lx.keyword("induce")
        recipe = lx.defkey()
        chance = lx.percentage()
        return InduceStmt(recipe=recipe, chance=chance, span=lx.span(start))

    # ── Xtriggers ────────────────────────────────────────────────

    def _xtrigger(self) -> XtriggerStmt:
        lx = self.lexer
        start = self._start()
        lx.keyword("xtrigger")
        catalyst = lx.defkey()
        lx.symbol('->')
        xtrigger: Xtrigger = lx.choice(
            partial(self._xtrigger_spawn, catalyst),
            partial(self._xtrigger_mutate, catalyst),
            partial(self._xtrigger_transform, catalyst),
            partial(self._xtrigger_bare_transform, catalyst),
        )
        return XtriggerStmt(xtrigger=xtrigger, span=lx.span(start))

    def _chance(self) -> Probability:
        chance = self.lexer.try_percentage()
        return CERTAIN if chance is None else chance

    def _xtrigger_spawn(self, catalyst: DefKey) -> XtriggerSpawn:
        lx = self.lexer
        lx.keyword("spawn")
        target = lx.defkey()
        lx.symbol(':')
        amount = lx.unsigned()
        return XtriggerSpawn(catalyst, target, amount, self._chance())

    def _xtrigger_mutate(self, catalyst: DefKey) -> XtriggerMutate:
        lx = self.lexer
        lx.keyword("mutate")
        target = lx.defkey()
        lx.symbol(':')
        amount = lx.signed()
        return XtriggerMutate(catalyst, target, amount, self._chance())

    def _xtrigger_transform(self, catalyst: DefKey) -> XtriggerTransform:
        lx = self.lexer
        target = lx.defkey()
        lx.symbol(':')
        amount = lx.unsigned()
        return XtriggerTransform(catalyst, target, amount, self._chance())

    def _xtrigger_bare_transform(self, catalyst: DefKey) -> XtriggerTransform:
        target = self.lexer.defkey()
        return XtriggerTransform(catalyst, target, 1, self._chance())

    # ── Slots ────────────────────────────────────────────────────

    def _slot(self) -> Slot:
        lx = self.lexer
        modifiers: list[tuple[str, int]] = []
        while True:
            pos = self._start()
            if lx.try_symbol('!') or lx.try_keyword("consume"):
                modifiers.append(("consume", pos))
            elif lx.try_symbol('?') or lx.try_keyword("greedy"):
                modifiers.append(("greedy", pos))
            else:
                break
        lx.keyword("slot")
        seen: set[str] = set()
        for name, pos in modifiers:
            if name in seen:
                raise lx.semantic_error(
                    "E210", f"slot modifier '{name}' may only be given once", pos, pos + 1,
                )
            seen.add(name)

        key = lx.defkey()
        label = lx.string()
        description = lx.string()
        requirements: list[SlotFilter] = []
        if lx.try_symbol('('):
            requirements = self._delimited(self._slot_filter)
        return Slot(
            id=key, label=label, description=description,
            consumes="consume" in seen, greedy="greedy" in seen,
            requirements=requirements,
        )

    def _slot_filter(self) -> SlotFilter:
        lx = self.lexer
        kind = SlotFilterKind.FORBID if lx.try_symbol('!') else SlotFilterKind.ACCEPT
        element = lx.defkey()
        amount = lx.unsigned() if lx.try_symbol(':') else 1
        return SlotFilter(kind=kind, element=element, amount=amount)

    def _recipe_slot(self) -> SlotStmt:
        start = self._start()
        slot = self._slot()
        return SlotStmt(verb=None, slot=slot, span=self.lexer.span(start))

    # ── Aspect ───────────────────────────────────────────────────

    def _aspect(self) -> Component:
        lx = self.lexer
        hidden = lx.try_keyword("hidden")
        lx.keyword("aspect")
        key = lx.defkey()
        label = lx.string()
        description = lx.string()
        decays_to = lx.defkey() if lx.try_symbol('->') else None
        statements = self._block(self._set, self._induce, self._xtrigger)
        return components.build_aspect(
            key, label, description, statements, hidden=hidden, decays_to=decays_to,
        )

    # ── Card ─────────────────────────────────────────────────────

    def _card(self) -> Component:
        lx = self.lexer
        hidden = lx.try_keyword("hidden")
        lx.keyword("card")
        key = lx.defkey()
        label = lx.string()
        description = lx.attempt(lx.string) or ""
        aspects = []
        if lx.try_symbol('('):
            aspects = self._delimited(self._card_aspect)
        decays_to = lifetime = None
        if lx.try_symbol('->'):
            decays_to, lifetime = self._card_decay()
        statements = self._block(
            self._set, self._induce, self._unique, self._card_slot, self._xtrigger,
        )
        return components.build_card(
            key, label, description, statements,
            aspects=aspects, hidden=hidden, decays_to=decays_to, lifetime=lifetime,
        )

    def _card_aspect(self) -> tuple[DefKey, int, Span]:
        lx = self.lexer
        start = self._start()
        key = lx.defkey()
        amount = lx.unsigned() if lx.try_symbol(':') else 1
        return key, amount, lx.span(start)

    def _card_decay(self) -> tuple[DefKey | None, int | None]:
        lx = self.lexer
        lifetime = lx.attempt(lx.unsigned)
        if lifetime is not None:
            return None, lifetime
        decays_to = lx.attempt(lx.defkey)
        if decays_to is None:
            raise lx.fail("a decay target or lifetime")
        return decays_to, lx.attempt(lx.unsigned)

    def _unique(self) -> UniqueStmt:
        lx = self.lexer
        start = self._start()
        lx.keyword("unique")
        group = lx.attempt(lx.defkey)
        return UniqueStmt(group=group, span=lx.span(start))

    def _card_slot(self) -> SlotStmt:
        lx = self.lexer
        start = self._start()
        verb = lx.defkey()
        lx.symbol('->')
        slot = self._slot()
        return SlotStmt(verb=verb, slot=slot, span=lx.span(start))

    # ── Deck ─────────────────────────────────────────────────────

    def _deck(self) -> Component:
        lx = self.lexer
        lx.keyword("deck")
        key = lx.defkey()
        label = lx.attempt(lx.string)
        description = lx.attempt(lx.string) if label is not None else None
        entries = self._block(self._default_deck_entry, self._deck_entry)
        return components.build_deck(key, label, description, entries)

    def _default_deck_entry(self) -> DeckEntry:
        lx = self.lexer
        start = self._start()
        if not lx.try_symbol('!'):
            lx.keyword("default")
        return self._deck_card(start, is_default=True)

    def _deck_entry(self) -> DeckEntry:
        return self._deck_card(self._start(), is_default=False)

    def _deck_card(self, start: int, *, is_default: bool) -> DeckEntry:
        lx = self.lexer
        card = lx.defkey()
        description = lx.attempt(lx.string)
        return DeckEntry(
            card=card, description=description, is_default=is_default, span=lx.span(start),
        )

    # ── Verb ─────────────────────────────────────────────────────

    def _verb(self) -> Component:
        lx = self.lexer
        lx.keyword("verb")
        key = lx.defkey()
        label = lx.string()
        description = lx.string()
        slot = None
        if lx.try_symbol('('):
            with lx.free():
                slot = self._slot()
                lx.symbol(')')
        statements = self._block(self._set) if lx.at('{') else []
        return components.build_verb(key, label, description, statements, slot=slot)

    # ── Recipe ───────────────────────────────────────────────────

    def _recipe(self) -> Component:
        lx = self.lexer
        lx.keyword("recipe")
        key = lx.defkey()
        verb = lx.defkey()
        label = lx.string()
        description = lx.attempt(lx.string)
        end_description = lx.attempt(lx.string) if description is not None else None
        statements: list[Stmt] = self._block(
            self._set, self._require, self._quantity, self._recipe_mutate,
            partial(self._reference, "ending"), self._branch, self._recipe_slot,
        )
        return components.build_recipe(
            key, verb, label, description, end_description, statements,
        )

    def _require(self) -> RequireStmt:
        lx = self.lexer
        start = self._start()
        lx.keyword("require")
        requirement = self._requirement()
        return RequireStmt(requirement=requirement, span=lx.span(start))

    def _requirement(self) -> Requirement:
        return self.lexer.choice(
            partial(self._qualified_requirement, RequirementKind.TABLE),
            partial(self._qualified_requirement, RequirementKind.EXTANT),
            partial(self._requirement_body, RequirementKind.BASIC),
        )

    def _qualified_requirement(self, kind: RequirementKind) -> Requirement:
        self.lexer.keyword(kind.value)
        return self._requirement_body(kind)

    def _requirement_body(self, kind: RequirementKind) -> Requirement:
        lx = self.lexer
        element = lx.defkey()
        lx.symbol(':')
        amount = lx.attempt(lx.signed)
        if amount is None:
            amount = lx.defkey()
        return Requirement(kind=kind, element=element, amount=amount)

    def _value_operation(self) -> ValueOperation:
        lx = self.lexer
        if lx.try_symbol('='):
            return ValueOperation(amount=lx.unsigned(), is_set=True)
        return ValueOperation(amount=lx.signed())

    def _quantity(self) -> QuantityStmt:
        lx = self.lexer
        start = self._start()
        keyword = lx.choice(*(partial(lx.keyword, k) for k in _QUANTITY_KEYWORDS))
        element = lx.defkey()
        lx.symbol(':')
        amount: int | ValueOperation
        if keyword in _SIGNED_QUANTITIES:
            amount = self._value_operation()
        else:
            amount = lx.unsigned()
        return QuantityStmt(keyword=keyword, element=element, amount=amount, span=lx.span(start))

    def _recipe_mutate(self) -> MutateStmt:
        lx = self.lexer
        start = self._start()
        lx.keyword("mutate")
        target = lx.defkey()
        aspect = lx.defkey()
        lx.symbol(':')
        operation = self._value_operation()
        return MutateStmt(
            mutation=Mutation(id=target, aspect=aspect, operation=operation),
            span=lx.span(start),
        )

    def _reference(self, keyword: str) -> ReferenceStmt:
        lx = self.lexer
        start = self._start()
        lx.keyword(keyword)
        target = lx.defkey()
        return ReferenceStmt(keyword=keyword, target=target, span=lx.span(start))

    def _branch(self) -> BranchStmt:
        lx = self.lexer
        start = self._start()
        kind = "link" if lx.try_keyword("link") else lx.keyword("goto")
        target = lx.defkey()
        chance = lx.try_percentage()
        requirements: list[Requirement] = []
        if lx.try_symbol('('):
            requirements = self._delimited(self._requirement)
        spawn = False
        expel = None
        if kind == "goto":
            if lx.try_keyword("spawn"):
                spawn = True
            elif lx.try_keyword("expel"):
                lx.symbol('(')
                expel = components.build_expulsion(self._delimited(self._card_aspect))
        branch = Branch(
            kind=kind, target=target, chance=chance,
            requirements=requirements, spawn=spawn, expel=expel,
        )
        return BranchStmt(branch=branch, span=lx.span(start))

    # ── Legacy ───────────────────────────────────────────────────

    def _legacy(self) -> Component:
        lx = self.lexer
        lx.keyword("legacy")
        key = lx.defkey()
        label = lx.string()
        description = lx.string()
        start_description = lx.attempt(lx.string)
        statements: list[Stmt] = self._block(
            self._set,
            partial(self._reference, "verb"),
            partial(self._reference, "ending"),
            partial(self._reference, "status"),
            partial(self._reference, "exclude"),
            self._starting_card,
        )
        return components.build_legacy(key, label, description, start_description, statements)

    def _starting_card(self) -> StartingCardStmt:
        lx = self.lexer
        start = self._start()
        lx.keyword("card")
        card = lx.defkey()
        amount = lx.unsigned() if lx.try_symbol(':') else 1
        return StartingCardStmt(card=card, amount=amount, span=lx.span(start))

    # ── Ending ───────────────────────────────────────────────────

    def _ending(self) -> Component:
        lx = self.lexer
        lx.keyword("ending")
        key = lx.defkey()
        label = lx.string()
        description = lx.string()
        if not lx.at('{'):
            raise lx.fail("'{'")
        start = self._start()
        content = literal(lx)
        return components.build_ending(key, label, description, content, lx.span(start))


def parse(source: str, filename: str = "<stdin>") -> FileTree:
    """Parse *source* into a FileTree. Raises CompileError."""
    return Parser(source, filename).parse()


__all__ = ["ParseError", "Parser", "parse"]
