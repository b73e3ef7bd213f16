"""Crucible intermediate representation: the typed records a compilation produces.

Every component record is a frozen dataclass whose ``id`` is a
namespace-qualified :class:`DefKey`.  Cross-references between records
(``decays_to``, xtrigger targets, recipe verbs, ...) are plain DefKeys;
they are looked up in the :class:`Corpus` by consumers and never own the
record they name.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Union

from crucible.errors import InvalidProbability

# A parsed literal value: None, bool, int, float, str, list or dict.
Literal = Any


class DefKey(str):
    """An identifier referencing a component, namespace or attribute."""

    __slots__ = ()

    def __repr__(self) -> str:
        return f"DefKey({str.__repr__(self)})"

    def child(self, name: str) -> DefKey:
        """Qualify *name* with this key as its namespace prefix."""
        if not self:
            return DefKey(name)
        return DefKey(f"{self}.{name}")


@dataclass(frozen=True, order=True)
class Probability:
    """An integer percentage clamped to 0..=100."""

    value: int

    def __post_init__(self) -> None:
        if isinstance(self.value, bool) or not isinstance(self.value, int):
            raise InvalidProbability(self.value)
        if not 0 <= self.value <= 100:
            raise InvalidProbability(self.value)

    def __int__(self) -> int:
        return self.value

    def __str__(self) -> str:
        return f"{self.value}%"


CERTAIN = Probability(100)


# ── Enumerations ─────────────────────────────────────────────────


class EndingMusicKind(Enum):
    GRAND = "grand"
    MELANCHOLY = "melancholy"
    VILE = "vile"


class EndingAnimationKind(Enum):
    DRAMATIC_LIGHT = "dramaticlight"
    DRAMATIC_LIGHT_COOL = "dramaticlightcool"
    DRAMATIC_LIGHT_EVIL = "dramaticlightevil"


class WarmupStyle(Enum):
    """Colour of a recipe's warmup circle."""

    NONE = "none"
    GRAND = "grand"
    MELANCHOLY = "melancholy"
    PALE = "pale"
    VILE = "vile"
    IMPORTANT = "important"


class RequirementKind(Enum):
    BASIC = "basic"
    TABLE = "table"
    EXTANT = "extant"


class SlotFilterKind(Enum):
    ACCEPT = "accept"
    FORBID = "forbid"


# ── Shared building blocks ───────────────────────────────────────


@dataclass(frozen=True)
class Attribute:
    """Free-form metadata attached to the corpus, a namespace or a component."""

    key: DefKey
    value: Literal = None


@dataclass(frozen=True)
class Induction:
    recipe: DefKey
    chance: Probability


@dataclass(frozen=True)
class SlotFilter:
    kind: SlotFilterKind
    element: DefKey
    amount: int


@dataclass(frozen=True)
class Slot:
    id: DefKey
    label: str
    description: str
    consumes: bool = False
    greedy: bool = False
    requirements: list[SlotFilter] = field(default_factory=list)


@dataclass(frozen=True)
class XtriggerTransform:
    """The catalyst turns into ``transforms_to``."""

    catalyst: DefKey
    transforms_to: DefKey
    amount: int = 1
    chance: Probability = CERTAIN


@dataclass(frozen=True)
class XtriggerSpawn:
    """``amount`` new ``creates`` cards appear alongside the catalyst."""

    catalyst: DefKey
    creates: DefKey
    amount: int = 1
    chance: Probability = CERTAIN


@dataclass(frozen=True)
class XtriggerMutate:
    """A signed amount of an aspect is added to the catalyst."""

    catalyst: DefKey
    adds_to_catalyst: DefKey
    amount: int = 1
    chance: Probability = CERTAIN


Xtrigger = Union[XtriggerTransform, XtriggerSpawn, XtriggerMutate]


@dataclass(frozen=True)
class ValueOperation:
    """``=n`` sets a quantity, a signed integer adds to it."""

    amount: int
    is_set: bool = False


@dataclass(frozen=True)
class Requirement:
    kind: RequirementKind
    element: DefKey
    amount: int | DefKey


@dataclass(frozen=True)
class Mutation:
    id: DefKey
    aspect: DefKey
    operation: ValueOperation


@dataclass(frozen=True)
class Expulsion:
    """Elements an expelled spawn takes from its parent recipe."""

    elements: dict[DefKey, int] = field(default_factory=dict)


@dataclass(frozen=True)
class Branch:
    """A ``link`` (follow-on recipe) or ``goto`` (interrupting recipe)."""

    kind: str  # "link" or "goto"
    target: DefKey
    chance: Probability | None = None
    requirements: list[Requirement] = field(default_factory=list)
    spawn: bool = False
    expel: Expulsion | None = None


# ── Component records ────────────────────────────────────────────


@dataclass(frozen=True)
class Aspect:
    id: DefKey
    label: str
    description: str
    icon: str | None = None
    verbicon: str | None = None
    induces: Induction | None = None
    decays_to: DefKey | None = None
    hidden: bool = False
    xtriggers: list[Xtrigger] = field(default_factory=list)
    others: dict[DefKey, Literal] = field(default_factory=dict)


@dataclass(frozen=True)
class Card:
    id: DefKey
    label: str
    description: str = ""
    icon: str | None = None
    verbicon: str | None = None
    induces: Induction | None = None
    decays_to: DefKey | None = None
    hidden: bool = False
    aspects: dict[DefKey, int] = field(default_factory=dict)
    lifetime: int | None = None
    resaturate: bool = False
    unique: bool = False
    uniqueness_group: DefKey | None = None
    slots: dict[DefKey, list[Slot]] = field(default_factory=dict)
    xtriggers: list[Xtrigger] = field(default_factory=list)
    others: dict[DefKey, Literal] = field(default_factory=dict)


@dataclass(frozen=True)
class Deck:
    id: DefKey
    label: str = ""
    description: str = ""
    default: DefKey | None = None
    cards: list[tuple[DefKey, str | None]] = field(default_factory=list)
    is_portal_deck: bool = False

    @property
    def resets_on_exhaustion(self) -> bool:
        return self.default is None


@dataclass(frozen=True)
class Verb:
    id: DefKey
    label: str
    description: str
    slot: Slot | None = None
    others: dict[DefKey, Literal] = field(default_factory=dict)


@dataclass(frozen=True)
class Recipe:
    id: DefKey
    verb: DefKey
    label: str
    description: str = ""
    end_description: str = ""
    burn: str | None = None
    portal: str | None = None
    requirements: list[Requirement] = field(default_factory=list)
    max_executions: int = 0
    warmup: int = 0
    craftable: bool = False
    hint_only: bool = False
    slot: Slot | None = None
    effects: dict[DefKey, ValueOperation] = field(default_factory=dict)
    purge: dict[DefKey, int] = field(default_factory=dict)
    aspects: dict[DefKey, ValueOperation] = field(default_factory=dict)
    draws: dict[DefKey, int] = field(default_factory=dict)
    mutations: list[Mutation] = field(default_factory=list)
    halt: dict[DefKey, int] = field(default_factory=dict)
    delete: dict[DefKey, int] = field(default_factory=dict)
    ending: DefKey | None = None
    style: WarmupStyle = WarmupStyle.NONE
    branches: list[Branch] = field(default_factory=list)
    others: dict[DefKey, Literal] = field(default_factory=dict)


@dataclass(frozen=True)
class Legacy:
    id: DefKey
    label: str
    description: str
    start_description: str = ""
    image: str = ""
    starting_verb: DefKey | None = None
    starting_cards: dict[DefKey, int] = field(default_factory=dict)
    status_bar_elems: list[DefKey] = field(default_factory=list)
    exclude_after_legacies: list[DefKey] = field(default_factory=list)
    new_start: bool = False
    from_ending: DefKey | None = None
    available_without_ending_match: bool = True
    others: dict[DefKey, Literal] = field(default_factory=dict)


NO_ACHIEVEMENT = "XXX"


@dataclass(frozen=True)
class Ending:
    id: DefKey
    label: str
    description: str
    image: str
    music: EndingMusicKind = EndingMusicKind.GRAND
    animation: EndingAnimationKind = EndingAnimationKind.DRAMATIC_LIGHT
    achievement: str = NO_ACHIEVEMENT
    others: dict[DefKey, Literal] = field(default_factory=dict)


Component = Union[Aspect, Card, Deck, Recipe, Verb, Legacy, Ending]

# Corpus collection name for each component type.
COLLECTIONS: dict[type, str] = {
    Aspect: "aspects",
    Card: "cards",
    Deck: "decks",
    Recipe: "recipes",
    Verb: "verbs",
    Legacy: "legacies",
    Ending: "endings",
}


def collection_of(component: Component) -> str:
    return COLLECTIONS[type(component)]


# ── Corpus ───────────────────────────────────────────────────────


@dataclass(frozen=True)
class NamespaceMeta:
    components: list[DefKey] = field(default_factory=list)
    attributes: list[Attribute] = field(default_factory=list)


@dataclass(frozen=True)
class Corpus:
    """The fully merged IR of one compilation run. Read-only."""

    attributes: tuple[Attribute, ...] = ()
    namespaces: Mapping[DefKey, NamespaceMeta] = field(default_factory=dict)
    aspects: Mapping[DefKey, Aspect] = field(default_factory=dict)
    cards: Mapping[DefKey, Card] = field(default_factory=dict)
    decks: Mapping[DefKey, Deck] = field(default_factory=dict)
    recipes: Mapping[DefKey, Recipe] = field(default_factory=dict)
    verbs: Mapping[DefKey, Verb] = field(default_factory=dict)
    legacies: Mapping[DefKey, Legacy] = field(default_factory=dict)
    endings: Mapping[DefKey, Ending] = field(default_factory=dict)
    component_attributes: Mapping[DefKey, tuple[Attribute, ...]] = field(default_factory=dict)

    def __post_init__(self) -> None:
        for name in (
            "namespaces", "component_attributes", *COLLECTIONS.values(),
        ):
            value = getattr(self, name)
            if not isinstance(value, MappingProxyType):
                object.__setattr__(self, name, MappingProxyType(dict(value)))
        object.__setattr__(self, "attributes", tuple(self.attributes))

    def collection(self, name: str) -> Mapping[DefKey, Component]:
        if name not in COLLECTIONS.values():
            raise KeyError(name)
        return getattr(self, name)

    def components(self) -> Iterator[Component]:
        for name in COLLECTIONS.values():
            yield from getattr(self, name).values()

    def get(self, key: str) -> Component | None:
        """Find a component of any kind by its qualified id."""
        for name in COLLECTIONS.values():
            found = getattr(self, name).get(key)
            if found is not None:
                return found
        return None

    def __len__(self) -> int:
        return sum(len(getattr(self, name)) for name in COLLECTIONS.values())
