"""Semantic construction of component records from parsed statements.

Each ``build_*`` function starts from the record's defaults, folds the
statements in source order, and enforces the construction invariants
(single assignment, reserved signature keys, literal types, duplicate
entries).  A violation raises :class:`CompileError` immediately; no
partial record is ever returned.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from crucible.ast_nodes import (
    BranchStmt,
    DeckEntry,
    InduceStmt,
    MutateStmt,
    QuantityStmt,
    ReferenceStmt,
    RequireStmt,
    SetStmt,
    SlotStmt,
    StartingCardStmt,
    Stmt,
    UniqueStmt,
    XtriggerStmt,
)
from crucible.errors import CompileError, Diagnostic, DiagnosticLabel, Severity
from crucible.ir import (
    NO_ACHIEVEMENT,
    Aspect,
    Card,
    Deck,
    DefKey,
    Ending,
    EndingAnimationKind,
    EndingMusicKind,
    Expulsion,
    Induction,
    Legacy,
    Literal,
    Recipe,
    Slot,
    Verb,
    WarmupStyle,
    Xtrigger,
)
from crucible.source import Span
from crucible.tokens import SIGNATURE_KEYS

MAX_STATUS_BAR_ELEMS = 4


def _fail(code: str, message: str, span: Span, *, first: Span | None = None) -> CompileError:
    labels = [DiagnosticLabel(span=span, message="")]
    if first is not None:
        labels.append(DiagnosticLabel(span=first, message="first set here", style="secondary"))
    return CompileError([
        Diagnostic(severity=Severity.ERROR, code=code, message=message, labels=labels)
    ])


def _literal_type(value: Literal) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list):
        return "array"
    return "object"


class _Mismatch(Exception):
    def __init__(self, expected: str) -> None:
        self.expected = expected
        super().__init__(expected)


# ── Literal converters for known ``set`` keys ────────────────────


def _string(value: Literal) -> str:
    if not isinstance(value, str):
        raise _Mismatch("string")
    return value


def _boolean(value: Literal) -> bool:
    if not isinstance(value, bool):
        raise _Mismatch("boolean")
    return value


def _count(value: Literal) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise _Mismatch("non-negative integer")
    return value


def _choice(enum: type) -> Callable[[Literal], Any]:
    def convert(value: Literal) -> Any:
        if not isinstance(value, str):
            raise _Mismatch("string")
        return _enum_value(enum, value)
    return convert


class _BadEnum(Exception):
    def __init__(self, allowed: list[str]) -> None:
        self.allowed = allowed
        super().__init__(", ".join(allowed))


def _enum_value(enum: type, text: str) -> Any:
    lowered = text.lower()
    for member in enum:
        if member.value == lowered:
            return member
    raise _BadEnum([m.value for m in enum])


Converter = Callable[[Literal], Any]

_ASPECT_KEYS: dict[str, tuple[str, Converter]] = {
    "icon": ("icon", _string),
    "verbicon": ("verbicon", _string),
}

_CARD_KEYS: dict[str, tuple[str, Converter]] = {
    **_ASPECT_KEYS,
    "resaturate": ("resaturate", _boolean),
}

_RECIPE_KEYS: dict[str, tuple[str, Converter]] = {
    "warmup": ("warmup", _count),
    "maxexecutions": ("max_executions", _count),
    "craftable": ("craftable", _boolean),
    "hintonly": ("hint_only", _boolean),
    "burn": ("burn", _string),
    "portal": ("portal", _string),
    "style": ("style", _choice(WarmupStyle)),
}

_LEGACY_KEYS: dict[str, tuple[str, Converter]] = {
    "image": ("image", _string),
    "newstart": ("new_start", _boolean),
    "availablewithoutendingmatch": ("available_without_ending_match", _boolean),
}


class _Builder:
    """Default-initialised field values plus single-assignment bookkeeping."""

    def __init__(self, kind: str, known: dict[str, tuple[str, Converter]]) -> None:
        self.kind = kind
        self.known = known
        self.values: dict[str, Any] = {}
        self.others: dict[DefKey, Literal] = {}
        self._assigned: dict[str, Span] = {}
        self._used: dict[str, Span] = {}

    def once(self, name: str, span: Span) -> None:
        """Claim a statement that may appear at most once."""
        first = self._used.get(name)
        if first is not None:
            raise _fail(
                "E205", f"'{name}' may only appear once in a {self.kind}", span, first=first,
            )
        self._used[name] = span

    def set(self, stmt: SetStmt) -> None:
        key = str(stmt.key)
        if key in SIGNATURE_KEYS:
            raise _fail(
                "E201",
                f"'{key}' cannot be set outside of the {self.kind} signature",
                stmt.span,
            )
        first = self._assigned.get(key)
        if first is not None:
            raise _fail(
                "E200",
                f"key '{key}' is already assigned with set for this {self.kind}",
                stmt.span, first=first,
            )
        self._assigned[key] = stmt.span
        if key not in self.known:
            self.others[stmt.key] = stmt.value
            return
        name, convert = self.known[key]
        try:
            self.values[name] = convert(stmt.value)
        except _Mismatch as e:
            raise _fail(
                "E202",
                f"key '{key}' must be of type {e.expected}, "
                f"got {_literal_type(stmt.value)}",
                stmt.span,
            ) from None
        except _BadEnum as e:
            raise _fail(
                "E207",
                f"value {stmt.value!r} for key '{key}' must be one of: {', '.join(e.allowed)}",
                stmt.span,
            ) from None

    def induce(self, stmt: InduceStmt) -> None:
        self.once("induce", stmt.span)
        self.values["induces"] = Induction(stmt.recipe, stmt.chance)

    def unexpected(self, stmt: Stmt) -> CompileError:
        return _fail("E100", f"statement not allowed in a {self.kind}", stmt.span)


def _keyed(entries: dict, key: DefKey, value: Any, what: str, span: Span) -> None:
    if key in entries:
        raise _fail("E203", f"duplicate {what} '{key}'", span)
    entries[key] = value


# ── Aspect ───────────────────────────────────────────────────────


def build_aspect(
    id: DefKey,
    label: str,
    description: str,
    statements: list[Stmt],
    *,
    hidden: bool = False,
    decays_to: DefKey | None = None,
) -> Aspect:
    b = _Builder("aspect", _ASPECT_KEYS)
    xtriggers: list[Xtrigger] = []
    for st in statements:
        match st:
            case SetStmt():
                b.set(st)
            case InduceStmt():
                b.induce(st)
            case XtriggerStmt():
                xtriggers.append(st.xtrigger)
            case _:
                raise b.unexpected(st)
    return Aspect(
        id=id, label=label, description=description,
        decays_to=decays_to, hidden=hidden, xtriggers=xtriggers,
        others=b.others, **b.values,
    )


# ── Card ─────────────────────────────────────────────────────────


def build_card(
    id: DefKey,
    label: str,
    description: str,
    statements: list[Stmt],
    *,
    aspects: list[tuple[DefKey, int, Span]] | None = None,
    hidden: bool = False,
    decays_to: DefKey | None = None,
    lifetime: int | None = None,
) -> Card:
    b = _Builder("card", _CARD_KEYS)
    aspect_map: dict[DefKey, int] = {}
    for key, amount, span in aspects or []:
        if key in aspect_map:
            raise _fail(
                "E203",
                f"duplicate aspect assignment: the aspect '{key}' "
                "has already been declared on the card",
                span,
            )
        aspect_map[key] = amount

    unique_span: Span | None = None
    group_span: Span | None = None
    slots: dict[DefKey, list[Slot]] = {}
    xtriggers: list[Xtrigger] = []

    for st in statements:
        match st:
            case SetStmt():
                b.set(st)
            case InduceStmt():
                b.induce(st)
            case UniqueStmt(group=None):
                if unique_span is not None:
                    raise _fail("E204", "'unique' may only appear once", st.span, first=unique_span)
                if group_span is not None:
                    raise _fail(
                        "E204", "a card cannot be both 'unique' and in a uniqueness group",
                        st.span, first=group_span,
                    )
                unique_span = st.span
                b.values["unique"] = True
            case UniqueStmt():
                if group_span is not None:
                    raise _fail(
                        "E204", "'unique <group>' may only appear once", st.span, first=group_span,
                    )
                if unique_span is not None:
                    raise _fail(
                        "E204", "a card cannot be both 'unique' and in a uniqueness group",
                        st.span, first=unique_span,
                    )
                group_span = st.span
                b.values["uniqueness_group"] = st.group
            case SlotStmt(verb=verb) if verb is not None:
                slots.setdefault(verb, []).append(st.slot)
            case XtriggerStmt():
                xtriggers.append(st.xtrigger)
            case _:
                raise b.unexpected(st)

    return Card(
        id=id, label=label, description=description,
        decays_to=decays_to, hidden=hidden, aspects=aspect_map,
        lifetime=lifetime, slots=slots, xtriggers=xtriggers,
        others=b.others, **b.values,
    )


# ── Deck ─────────────────────────────────────────────────────────


def build_deck(
    id: DefKey,
    label: str | None,
    description: str | None,
    entries: list[DeckEntry],
) -> Deck:
    default: DefKey | None = None
    default_span: Span | None = None
    cards: list[tuple[DefKey, str | None]] = []
    is_portal_deck = False

    for entry in entries:
        if entry.is_default:
            if default_span is not None:
                raise _fail(
                    "E206", "cannot set more than one default card in a deck",
                    entry.span, first=default_span,
                )
            default, default_span = entry.card, entry.span
        if entry.description is not None:
            is_portal_deck = True
        cards.append((entry.card, entry.description))

    return Deck(
        id=id, label=label or "", description=description or "",
        default=default, cards=cards, is_portal_deck=is_portal_deck,
    )


# ── Verb ─────────────────────────────────────────────────────────


def build_verb(
    id: DefKey,
    label: str,
    description: str,
    statements: list[Stmt],
    *,
    slot: Slot | None = None,
) -> Verb:
    b = _Builder("verb", {})
    for st in statements:
        if not isinstance(st, SetStmt):
            raise b.unexpected(st)
        b.set(st)
    return Verb(id=id, label=label, description=description, slot=slot, others=b.others)


# ── Recipe ───────────────────────────────────────────────────────

_RECIPE_QUANTITIES = {
    "effect": ("effects", "effect"),
    "aspect": ("aspects", "aspect"),
    "purge": ("purge", "purge"),
    "draw": ("draws", "draw"),
    "halt": ("halt", "halted verb"),
    "delete": ("delete", "deleted verb"),
}


def build_expulsion(entries: list[tuple[DefKey, int, Span]]) -> Expulsion:
    """``expel (<element>:<n>, ...)`` on a goto branch."""
    elements: dict[DefKey, int] = {}
    for key, amount, span in entries:
        _keyed(elements, key, amount, "expelled element", span)
    return Expulsion(elements=elements)


def build_recipe(
    id: DefKey,
    verb: DefKey,
    label: str,
    description: str | None,
    end_description: str | None,
    statements: list[Stmt],
) -> Recipe:
    b = _Builder("recipe", _RECIPE_KEYS)
    quantities: dict[str, dict] = {name: {} for name, _ in _RECIPE_QUANTITIES.values()}
    requirements = []
    mutations = []
    branches = []

    for st in statements:
        match st:
            case SetStmt():
                b.set(st)
            case RequireStmt():
                requirements.append(st.requirement)
            case QuantityStmt(keyword=keyword) if keyword in _RECIPE_QUANTITIES:
                name, what = _RECIPE_QUANTITIES[keyword]
                _keyed(quantities[name], st.element, st.amount, what, st.span)
            case MutateStmt():
                mutations.append(st.mutation)
            case ReferenceStmt(keyword="ending"):
                b.once("ending", st.span)
                b.values["ending"] = st.target
            case SlotStmt(verb=None):
                b.once("slot", st.span)
                b.values["slot"] = st.slot
            case BranchStmt():
                branches.append(st.branch)
            case _:
                raise b.unexpected(st)

    return Recipe(
        id=id, verb=verb, label=label,
        description=description or "", end_description=end_description or "",
        requirements=requirements, mutations=mutations, branches=branches,
        others=b.others, **quantities, **b.values,
    )


# ── Legacy ───────────────────────────────────────────────────────


def build_legacy(
    id: DefKey,
    label: str,
    description: str,
    start_description: str | None,
    statements: list[Stmt],
) -> Legacy:
    b = _Builder("legacy", _LEGACY_KEYS)
    starting_cards: dict[DefKey, int] = {}
    status: list[DefKey] = []
    excluded: list[DefKey] = []

    for st in statements:
        match st:
            case SetStmt():
                b.set(st)
            case ReferenceStmt(keyword="verb"):
                b.once("verb", st.span)
                b.values["starting_verb"] = st.target
            case ReferenceStmt(keyword="ending"):
                b.once("ending", st.span)
                b.values["from_ending"] = st.target
            case ReferenceStmt(keyword="status"):
                if st.target in status:
                    raise _fail("E203", f"duplicate status bar element '{st.target}'", st.span)
                if len(status) == MAX_STATUS_BAR_ELEMS:
                    raise _fail(
                        "E211",
                        f"a legacy may show at most {MAX_STATUS_BAR_ELEMS} status bar elements",
                        st.span,
                    )
                status.append(st.target)
            case ReferenceStmt(keyword="exclude"):
                if st.target in excluded:
                    raise _fail("E203", f"duplicate excluded legacy '{st.target}'", st.span)
                excluded.append(st.target)
            case StartingCardStmt():
                _keyed(starting_cards, st.card, st.amount, "starting card", st.span)
            case _:
                raise b.unexpected(st)

    return Legacy(
        id=id, label=label, description=description,
        start_description=start_description or "",
        starting_cards=starting_cards, status_bar_elems=status,
        exclude_after_legacies=excluded, others=b.others, **b.values,
    )


# ── Ending ───────────────────────────────────────────────────────


def build_ending(
    id: DefKey,
    label: str,
    description: str,
    content: Literal,
    span: Span,
) -> Ending:
    """Extract the recognised keys of an ending's object body."""
    if not isinstance(content, dict):
        raise _fail(
            "E202",
            f"the content of an ending must be an object, got {_literal_type(content)}",
            span,
        )

    members: dict[str, tuple[str, Literal]] = {}
    for key, value in content.items():
        lowered = key.lower()
        if lowered in members:
            raise _fail(
                "E200", f"key '{key}' is assigned more than once in this ending", span,
            )
        members[lowered] = (key, value)

    def take_string(key: str) -> str | None:
        if key not in members:
            return None
        _, value = members.pop(key)
        if not isinstance(value, str):
            raise _fail(
                "E202",
                f"key '{key}' must have a value of type string, got {_literal_type(value)}",
                span,
            )
        return value

    def take_enum(key: str, enum: type, default: Any) -> Any:
        value = take_string(key)
        if value is None:
            return default
        try:
            return _enum_value(enum, value)
        except _BadEnum as e:
            raise _fail(
                "E207",
                f"value {value!r} for key '{key}' must be one of: {', '.join(e.allowed)}",
                span,
            ) from None

    image = take_string("image")
    if image is None:
        raise _fail("E208", "key 'image' is required in an ending", span)
    music = take_enum("flavour", EndingMusicKind, EndingMusicKind.GRAND)
    animation = take_enum("anim", EndingAnimationKind, EndingAnimationKind.DRAMATIC_LIGHT)
    achievement = take_string("achievementid")

    return Ending(
        id=id, label=label, description=description, image=image,
        music=music, animation=animation,
        achievement=NO_ACHIEVEMENT if achievement is None else achievement,
        others={DefKey(original): value for original, value in members.values()},
    )
