"""Tests for the Crucible IR records."""

from __future__ import annotations

import pytest

from crucible.errors import InvalidProbability
from crucible.ir import (
    CERTAIN,
    Aspect,
    Card,
    Corpus,
    Deck,
    DefKey,
    NamespaceMeta,
    Probability,
    collection_of,
)


class TestProbability:
    @pytest.mark.parametrize("p", [0, 1, 37, 99, 100])
    def test_valid(self, p):
        assert int(Probability(p)) == p

    @pytest.mark.parametrize("p", [-1, 101, 1000])
    def test_out_of_range(self, p):
        with pytest.raises(InvalidProbability):
            Probability(p)

    def test_rejects_non_integers(self):
        with pytest.raises(InvalidProbability):
            Probability(True)
        with pytest.raises(InvalidProbability):
            Probability(0.5)

    def test_is_value_error(self):
        with pytest.raises(ValueError):
            Probability(200)

    def test_str(self):
        assert str(Probability(50)) == "50%"

    def test_ordering(self):
        assert Probability(10) < Probability(90)
        assert CERTAIN == Probability(100)


class TestDefKey:
    def test_child_of_root(self):
        assert DefKey("").child("a") == "a"

    def test_child_of_namespace(self):
        assert DefKey("ns.inner").child("card") == "ns.inner.card"

    def test_hashes_like_str(self):
        assert {DefKey("a"): 1}["a"] == 1


class TestDeck:
    def test_reset_policy_follows_default(self):
        assert Deck(id=DefKey("d")).resets_on_exhaustion
        assert not Deck(id=DefKey("d"), default=DefKey("c")).resets_on_exhaustion


class TestCorpus:
    def _corpus(self) -> Corpus:
        aspect = Aspect(id=DefKey("heat"), label="Heat", description="")
        card = Card(id=DefKey("ns.candle"), label="Candle")
        return Corpus(
            aspects={aspect.id: aspect},
            cards={card.id: card},
            namespaces={DefKey("ns"): NamespaceMeta(components=[card.id])},
        )

    def test_get_any_kind(self):
        corpus = self._corpus()
        assert isinstance(corpus.get("heat"), Aspect)
        assert isinstance(corpus.get("ns.candle"), Card)
        assert corpus.get("missing") is None

    def test_len_and_components(self):
        corpus = self._corpus()
        assert len(corpus) == 2
        assert {c.id for c in corpus.components()} == {"heat", "ns.candle"}

    def test_maps_are_read_only(self):
        corpus = self._corpus()
        with pytest.raises(TypeError):
            corpus.cards["other"] = Card(id=DefKey("other"), label="Other")

    def test_collection_by_name(self):
        corpus = self._corpus()
        assert list(corpus.collection("cards")) == ["ns.candle"]
        with pytest.raises(KeyError):
            corpus.collection("spells")

    def test_collection_of(self):
        assert collection_of(Card(id=DefKey("c"), label="C")) == "cards"
