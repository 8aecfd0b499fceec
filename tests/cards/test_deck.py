"""Unit tests for card_chess/cards/deck.py"""

import random
from collections import Counter

import pytest

from card_chess.cards.card import Card
from card_chess.cards.deck import (
    CARDS_PER_BATCH,
    LOW_WATER_MARK,
    cards_remaining,
    create_deck,
    draw,
    fresh_batch,
    replenish,
    shuffle_deck,
)
from card_chess.core.exceptions import EmptyDeckError
from card_chess.core.shared_types import CardColor, Rank, Suit


# -- BUILDING A DECK --
def test_fresh_batch_composition() -> None:
    """13 ranks of each suit and two jokers (one of each color), every card exactly once."""
    batch = fresh_batch()
    assert len(batch) == CARDS_PER_BATCH == 54
    assert len(set(batch)) == 54

    per_suit = Counter(card.suit for card in batch)
    assert per_suit == {
        Suit.HEARTS: 13,
        Suit.DIAMONDS: 13,
        Suit.CLUBS: 13,
        Suit.SPADES: 13,
        Suit.JOKER: 2,
    }
    jokers = {card.color for card in batch if card.is_joker}
    assert jokers == {CardColor.RED, CardColor.BLACK}


def test_create_deck_is_a_shuffled_batch(rng: random.Random) -> None:
    deck = create_deck(rng)
    assert Counter(deck) == Counter(fresh_batch())
    assert deck != fresh_batch()


def test_shuffle_leaves_input_untouched(rng: random.Random) -> None:
    deck = fresh_batch()
    shuffled = shuffle_deck(deck, rng)
    assert deck == fresh_batch()
    assert Counter(shuffled) == Counter(deck)


def test_shuffle_is_reproducible_with_a_seed() -> None:
    first = shuffle_deck(fresh_batch(), random.Random(42))
    second = shuffle_deck(fresh_batch(), random.Random(42))
    assert first == second


def test_shuffle_without_rng_uses_system_entropy() -> None:
    """No rng given: still a permutation of the input."""
    deck = fresh_batch()
    assert Counter(shuffle_deck(deck)) == Counter(deck)


def test_shuffle_small_decks() -> None:
    assert shuffle_deck([]) == []
    single = [Card.of(Rank.ACE, Suit.SPADES)]
    assert shuffle_deck(single) == single


# -- DRAWING --
def test_draw_takes_the_top_card() -> None:
    """Top of the deck is the end of the list."""
    deck = fresh_batch()
    top = deck[-1]
    card = draw(deck)
    assert card == top
    assert cards_remaining(deck) == 53


def test_draw_from_empty_deck() -> None:
    with pytest.raises(EmptyDeckError):
        draw([])


# -- REPLENISH --
def test_no_replenish_above_low_water_mark(rng: random.Random) -> None:
    deck = create_deck(rng)[:LOW_WATER_MARK]
    before = list(deck)
    assert replenish(deck, rng) is deck
    assert deck == before


def test_replenish_below_low_water_mark(rng: random.Random) -> None:
    """Remaining cards keep their order at the front, the fresh batch is appended (and drawn next)."""
    remaining = create_deck(rng)[: LOW_WATER_MARK - 1]
    deck = list(remaining)
    replenish(deck, rng)

    assert len(deck) == len(remaining) + CARDS_PER_BATCH
    assert deck[: len(remaining)] == remaining
    assert Counter(deck[len(remaining) :]) == Counter(fresh_batch())


def test_replenish_empty_deck(rng: random.Random) -> None:
    deck: list[Card] = []
    replenish(deck, rng)
    assert len(deck) == CARDS_PER_BATCH


def test_deck_never_runs_dry(rng: random.Random) -> None:
    """Drawing and replenishing over many turns: never empty, never below the low water mark after a turn."""
    deck = create_deck(rng)
    for _ in range(500):
        draw(deck)
        replenish(deck, rng)
        assert cards_remaining(deck) >= LOW_WATER_MARK
