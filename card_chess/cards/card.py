"""A single playing card. Immutable once drawn."""

from dataclasses import dataclass
from typing import Self

from card_chess.core.exceptions import InvalidCardError
from card_chess.core.shared_types import CardColor, Rank, Suit

RED_SUITS: tuple[Suit, ...] = (Suit.HEARTS, Suit.DIAMONDS)
BLACK_SUITS: tuple[Suit, ...] = (Suit.CLUBS, Suit.SPADES)
RANKED_SUITS: tuple[Suit, ...] = RED_SUITS + BLACK_SUITS

# Ranks in the order they appear in a fresh batch
RANKS: tuple[Rank, ...] = tuple(rank for rank in Rank if rank != Rank.JOKER)


def suit_color(suit: Suit) -> CardColor:
    """Hearts and diamonds are red, clubs and spades black. (A joker's color is not implied by its suit)"""
    if suit == Suit.JOKER:
        raise InvalidCardError("A joker's color cannot be derived from its suit.")
    return CardColor.RED if suit in RED_SUITS else CardColor.BLACK


@dataclass(frozen=True)
class Card:
    suit: Suit
    rank: Rank
    color: CardColor

    def __post_init__(self) -> None:
        is_joker_suit = self.suit == Suit.JOKER
        is_joker_rank = self.rank == Rank.JOKER
        if is_joker_suit != is_joker_rank:
            raise InvalidCardError(
                f"Jokers (and only jokers) have rank {Rank.JOKER!r}: got {self.rank!r} of {self.suit!r}."
            )
        if not is_joker_suit and self.color != suit_color(self.suit):
            raise InvalidCardError(f"{self.suit} cannot be {self.color}.")

    @classmethod
    def of(cls, rank: Rank | str, suit: Suit | str) -> Self:
        """Ranked card with its color derived from the suit."""
        suit = Suit(suit)
        return cls(suit=suit, rank=Rank(rank), color=suit_color(suit))

    @classmethod
    def joker(cls, color: CardColor | str) -> Self:
        return cls(suit=Suit.JOKER, rank=Rank.JOKER, color=CardColor(color))

    @property
    def is_joker(self) -> bool:
        return self.suit == Suit.JOKER

    # -- Wire format: {"suit": ..., "value": ..., "color": ...} --
    @classmethod
    def from_dict(cls, data: dict[str, str]) -> Self:
        try:
            return cls(
                suit=Suit(data["suit"]),
                rank=Rank(data["value"]),
                color=CardColor(data["color"]),
            )
        except (KeyError, ValueError) as e:
            raise InvalidCardError(f"Cannot interpret {data!r} as a card.") from e

    def to_dict(self) -> dict[str, str]:
        return {"suit": self.suit.value, "value": self.rank.value, "color": self.color.value}

    def __str__(self) -> str:
        if self.is_joker:
            return f"{self.color} joker"
        return f"{self.rank} of {self.suit}"
