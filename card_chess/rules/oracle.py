"""
Rules Oracle: chess legality is not implemented here, it is delegated to python-chess.
----

RulesOracle is the contract the game lifecycle depends on (so it can be swapped for a fake in tests),
ChessOracle the implementation wrapping a chess.Board.
Squares are always passed around in algebraic notation ('a1' - 'h8'), positions as FEN strings.
"""

from dataclasses import dataclass
from typing import Optional, Protocol

import chess

from card_chess.core.exceptions import IllegalMoveError, InvalidFENError
from card_chess.core.shared_types import Color, PieceType

PIECE_TYPES: dict[int, PieceType] = {
    chess.PAWN: PieceType.PAWN,
    chess.KNIGHT: PieceType.KNIGHT,
    chess.BISHOP: PieceType.BISHOP,
    chess.ROOK: PieceType.ROOK,
    chess.QUEEN: PieceType.QUEEN,
    chess.KING: PieceType.KING,
}

CHESS_PIECE_TYPES: dict[PieceType, int] = {value: key for key, value in PIECE_TYPES.items()}

STARTING_FEN = chess.STARTING_FEN


@dataclass(frozen=True)
class Piece:
    type: PieceType
    color: Color


@dataclass(frozen=True)
class OracleMove:
    """A legal move as reported by the oracle, with the moving piece attached."""

    from_square: str
    to_square: str
    piece_type: PieceType
    color: Color
    promotion: Optional[PieceType] = None

    def to_uci(self) -> str:
        promotion = (
            chess.piece_symbol(CHESS_PIECE_TYPES[self.promotion])
            if self.promotion
            else ""
        )
        return f"{self.from_square}{self.to_square}{promotion}"


class RulesOracle(Protocol):
    """Chess legal-move generation and end of game detection."""

    def load(self, fen: str) -> None:
        """Replace the current position."""
        ...

    def fen(self) -> str:
        """Current position."""
        ...

    def legal_moves(self, square: Optional[str] = None) -> list[OracleMove]:
        """Legal moves for the side to move, optionally only those starting on `square`."""
        ...

    def piece_at(self, square: str) -> Optional[Piece]: ...

    def apply(
        self, from_square: str, to_square: str, promotion: Optional[PieceType] = None
    ) -> OracleMove:
        """Play a move. Raises IllegalMoveError (and leaves the position untouched) if it is not legal."""
        ...

    def is_in_check(self) -> bool: ...

    def is_checkmate(self) -> bool: ...

    def is_stalemate(self) -> bool: ...

    def is_draw(self) -> bool: ...

    def is_threefold_repetition(self) -> bool: ...

    def side_to_move(self) -> Color: ...


def is_square(square: str) -> bool:
    return square in chess.SQUARE_NAMES


def _parse_square(square: str) -> chess.Square:
    try:
        return chess.parse_square(square)
    except ValueError as e:
        raise IllegalMoveError(f"Not a square: {square!r}") from e


def _to_color(chess_color: chess.Color) -> Color:
    return Color.WHITE if chess_color == chess.WHITE else Color.BLACK


class ChessOracle:
    """RulesOracle backed by python-chess."""

    def __init__(self, fen: Optional[str] = None) -> None:
        self.board = chess.Board()
        if fen is not None:
            self.load(fen)

    def load(self, fen: str) -> None:
        # NOTE loading a position drops the move stack, so repetitions only count from here on.
        try:
            self.board = chess.Board(fen)
        except ValueError as e:
            raise InvalidFENError(f"Cannot load position {fen!r}: {e}") from e

    def fen(self) -> str:
        return self.board.fen()

    def legal_moves(self, square: Optional[str] = None) -> list[OracleMove]:
        origin = _parse_square(square) if square is not None else None
        return [
            self._to_oracle_move(move)
            for move in self.board.legal_moves
            if origin is None or move.from_square == origin
        ]

    def piece_at(self, square: str) -> Optional[Piece]:
        piece = self.board.piece_at(_parse_square(square))
        if piece is None:
            return None
        return Piece(PIECE_TYPES[piece.piece_type], _to_color(piece.color))

    def apply(
        self, from_square: str, to_square: str, promotion: Optional[PieceType] = None
    ) -> OracleMove:
        move = chess.Move(
            _parse_square(from_square),
            _parse_square(to_square),
            promotion=CHESS_PIECE_TYPES[promotion] if promotion else None,
        )
        if move not in self.board.legal_moves:
            raise IllegalMoveError(f"Move not allowed: {move.uci()}")

        # snapshot the moving piece BEFORE pushing the move
        oracle_move = self._to_oracle_move(move)
        self.board.push(move)
        return oracle_move

    def is_in_check(self) -> bool:
        return self.board.is_check()

    def is_checkmate(self) -> bool:
        return self.board.is_checkmate()

    def is_stalemate(self) -> bool:
        return self.board.is_stalemate()

    def is_draw(self) -> bool:
        """Any drawn position: stalemate, insufficient material, 50 move rule or repetition."""
        return (
            self.board.is_stalemate()
            or self.board.is_insufficient_material()
            or self.board.is_fifty_moves()
            or self.is_threefold_repetition()
        )

    def is_threefold_repetition(self) -> bool:
        return self.board.is_repetition(3)

    def side_to_move(self) -> Color:
        return _to_color(self.board.turn)

    def _to_oracle_move(self, move: chess.Move) -> OracleMove:
        piece = self.board.piece_at(move.from_square)

        # for the type checker: a legal move always starts on an occupied square
        assert piece is not None

        return OracleMove(
            from_square=chess.square_name(move.from_square),
            to_square=chess.square_name(move.to_square),
            piece_type=PIECE_TYPES[piece.piece_type],
            color=_to_color(piece.color),
            promotion=PIECE_TYPES[move.promotion] if move.promotion else None,
        )
