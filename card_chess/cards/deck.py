"""
Deck Manager: build, shuffle, draw and replenish the deck of cards.
----

The deck is a plain list of Cards. The top of the deck is the END of the list (draw == pop).

NOTE Shuffling uses the operating system's entropy source by default (secrets.SystemRandom):
the order of the deck decides which pieces may move, so it should not be predictable for the opponent.
Tests inject a seeded random.Random instead.
"""

import logging
import random
import secrets
from typing import Optional

from card_chess.cards.card import RANKED_SUITS, RANKS, Card
from card_chess.core.exceptions import EmptyDeckError
from card_chess.core.shared_types import CardColor

logger = logging.getLogger(__name__)

# 13 ranks x 4 suits + red joker + black joker
CARDS_PER_BATCH = len(RANKS) * len(RANKED_SUITS) + 2

# Once fewer cards remain, a fresh batch is put underneath the remaining cards
LOW_WATER_MARK = 5

_system_random = secrets.SystemRandom()


def fresh_batch() -> list[Card]:
    """All 54 cards in canonical (unshuffled) order."""
    cards = [Card.of(rank, suit) for suit in RANKED_SUITS for rank in RANKS]
    cards.append(Card.joker(CardColor.RED))
    cards.append(Card.joker(CardColor.BLACK))
    return cards


def shuffle_deck(deck: list[Card], rng: Optional[random.Random] = None) -> list[Card]:
    """Return a shuffled copy of the deck (Fisher-Yates). The input list is left untouched."""
    rng = rng or _system_random
    shuffled = list(deck)
    for i in range(len(shuffled) - 1, 0, -1):
        j = rng.randrange(i + 1)
        shuffled[i], shuffled[j] = shuffled[j], shuffled[i]
    return shuffled


def create_deck(rng: Optional[random.Random] = None) -> list[Card]:
    """A fresh, shuffled deck of 54 cards."""
    return shuffle_deck(fresh_batch(), rng)


def draw(deck: list[Card]) -> Card:
    """Remove and return the top card (last element) of the deck."""
    if not deck:
        raise EmptyDeckError("Cannot draw from an empty deck.")
    return deck.pop()


def replenish(deck: list[Card], rng: Optional[random.Random] = None) -> list[Card]:
    """
    Append a fresh shuffled batch when the deck runs low.
    ----

    The remaining cards are kept (in the same order) instead of rebuilding the deck,
    so the order in which cards were discarded is never reused.
    Returns the same list object (mutated in place), for convenience.
    """
    if len(deck) < LOW_WATER_MARK:
        logger.debug("Deck down to %d cards, adding a fresh batch.", len(deck))
        deck.extend(create_deck(rng))
    return deck


def cards_remaining(deck: list[Card]) -> int:
    return len(deck)
