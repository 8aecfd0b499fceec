"""Unit tests for card_chess/rules/candidates.py"""

from card_chess.cards.card import Card
from card_chess.cards.constraints import satisfies
from card_chess.core.shared_types import CardColor, Color, PieceType, Rank, Suit
from card_chess.rules.candidates import any_moves_for_card, moves_for_origin
from card_chess.rules.oracle import ChessOracle, OracleMove

A_PAWN = Card.of(Rank.TWO, Suit.HEARTS)
KNIGHT = Card.of(Rank.TEN, Suit.SPADES)
BISHOP = Card.of(Rank.JACK, Suit.CLUBS)


def test_pawn_card_in_starting_position() -> None:
    """A '2' only allows the a-pawn: a2-a3 and a2-a4."""
    oracle = ChessOracle()
    moves = any_moves_for_card(oracle, A_PAWN)
    assert {(move.from_square, move.to_square) for move in moves} == {
        ("a2", "a3"),
        ("a2", "a4"),
    }
    assert moves == moves_for_origin(oracle, "a2", A_PAWN, Color.WHITE)


def test_pawn_card_rejects_other_pieces() -> None:
    oracle = ChessOracle()
    knight_move = OracleMove("b1", "c3", PieceType.KNIGHT, Color.WHITE)
    bishop_move = OracleMove("c1", "d2", PieceType.BISHOP, Color.WHITE)
    assert not satisfies(knight_move, A_PAWN)
    assert not satisfies(bishop_move, A_PAWN)
    assert moves_for_origin(oracle, "b1", A_PAWN, Color.WHITE) == []


def test_card_without_moves() -> None:
    """Bishops are locked in at the start."""
    assert any_moves_for_card(ChessOracle(), BISHOP) == []


def test_joker_allows_all_legal_moves() -> None:
    oracle = ChessOracle()
    joker = Card.joker(CardColor.RED)
    assert any_moves_for_card(oracle, joker) == oracle.legal_moves()


def test_only_moves_of_the_side_to_move() -> None:
    oracle = ChessOracle()
    oracle.apply("e2", "e4")
    moves = any_moves_for_card(oracle, KNIGHT)
    assert moves
    assert all(move.color == Color.BLACK for move in moves)


def test_no_card_no_moves() -> None:
    oracle = ChessOracle()
    assert any_moves_for_card(oracle, None) == []
    assert moves_for_origin(oracle, "g1", None, Color.WHITE) == []


def test_origin_not_yours() -> None:
    """Opponent's piece, empty square or not a square at all: no moves, no error."""
    oracle = ChessOracle()
    assert moves_for_origin(oracle, "g8", KNIGHT, Color.WHITE) == []
    assert moves_for_origin(oracle, "e4", KNIGHT, Color.WHITE) == []
    assert moves_for_origin(oracle, "x0", KNIGHT, Color.WHITE) == []


def test_knight_moves_from_origin() -> None:
    oracle = ChessOracle()
    moves = moves_for_origin(oracle, "b1", KNIGHT, Color.WHITE)
    assert {move.to_square for move in moves} == {"a3", "c3"}
