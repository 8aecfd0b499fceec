"""
Move Candidate Filter
----

Combines the legal moves of the rules oracle with the card constraint:

* moves_for_origin: the moves of one selected piece (used to highlight destinations / validate a drop)
* any_moves_for_card: the moves of the whole side to move (used right after a draw: is this card playable at all?)
"""

from typing import Optional

from card_chess.cards.card import Card
from card_chess.cards.constraints import satisfies
from card_chess.core.shared_types import Color
from card_chess.rules.oracle import OracleMove, RulesOracle, is_square


def moves_for_origin(
    oracle: RulesOracle, square: str, card: Optional[Card], player: Color
) -> list[OracleMove]:
    """
    Legal moves from `square` that the card allows.

    NOTE An empty square, an opponent's piece or a missing card simply yield no moves (not an error).
    """
    if card is None or not is_square(square):
        return []

    piece = oracle.piece_at(square)
    if piece is None or piece.color != player:
        return []

    return [move for move in oracle.legal_moves(square) if satisfies(move, card)]


def any_moves_for_card(oracle: RulesOracle, card: Optional[Card]) -> list[OracleMove]:
    """All legal moves of the side to move that the card allows."""
    if card is None:
        return []

    side_to_move = oracle.side_to_move()
    return [
        move
        for move in oracle.legal_moves()
        if move.color == side_to_move and satisfies(move, card)
    ]
