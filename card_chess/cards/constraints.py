"""
Card-Constraint Resolver
----

Which move does a card allow?

* Joker: any piece, any move.
* 2 - 9: the pawn that starts on the file matching the rank (a -> 2, b -> 3, ..., h -> 9).
* 10: knight, A: rook, J: bishop, Q: queen, K: king.
"""

from card_chess.cards.card import Card
from card_chess.core.shared_types import PieceType, Rank
from card_chess.rules.oracle import OracleMove

FILE_TO_RANK: dict[str, Rank] = {
    "a": Rank.TWO,
    "b": Rank.THREE,
    "c": Rank.FOUR,
    "d": Rank.FIVE,
    "e": Rank.SIX,
    "f": Rank.SEVEN,
    "g": Rank.EIGHT,
    "h": Rank.NINE,
}

RANK_TO_FILE: dict[Rank, str] = {value: key for key, value in FILE_TO_RANK.items()}

PIECE_RANKS: dict[Rank, PieceType] = {
    Rank.ACE: PieceType.ROOK,
    Rank.TEN: PieceType.KNIGHT,
    Rank.JACK: PieceType.BISHOP,
    Rank.QUEEN: PieceType.QUEEN,
    Rank.KING: PieceType.KING,
}


def satisfies(move: OracleMove, card: Card) -> bool:
    """Does the card allow this (otherwise legal) move? No side effects."""
    if card.is_joker:
        return True

    if card.rank in RANK_TO_FILE:
        return (
            move.piece_type == PieceType.PAWN
            and FILE_TO_RANK.get(move.from_square[0]) == card.rank
        )

    if card.rank in PIECE_RANKS:
        return move.piece_type == PIECE_RANKS[card.rank]

    return False


def card_meaning(card: Card) -> str:
    """Rule text shown next to a drawn card."""
    if card.is_joker:
        return "Move Any Piece!"
    if card.rank in RANK_TO_FILE:
        return f"Move Pawn at {RANK_TO_FILE[card.rank]}"
    if card.rank in PIECE_RANKS:
        return f"Move {PIECE_RANKS[card.rank].value.capitalize()}"
    return "No move"
