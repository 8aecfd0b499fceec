"""
Domain level game state, and its conversion from/to the boundary GameStateModel.
----

GameState is the authoritative record both players read and write through the persistence service.
Selection is transient and only ever lives in one client.
"""

from dataclasses import dataclass, field
from typing import Any, Optional, Self

from card_chess.cards.card import Card
from card_chess.core.exceptions import GameStateError, InvalidCardError
from card_chess.core.models import GameStateModel
from card_chess.core.shared_types import Color, PieceType, Status, Winner
from card_chess.rules.oracle import OracleMove


@dataclass(frozen=True)
class PlayedMove:
    from_square: str
    to_square: str
    piece: PieceType

    @classmethod
    def from_oracle_move(cls, move: OracleMove) -> Self:
        return cls(move.from_square, move.to_square, move.piece_type)

    @classmethod
    def from_dict(cls, data: dict[str, str]) -> Self:
        return cls(data["from"], data["to"], PieceType(data["piece"]))

    def to_dict(self) -> dict[str, str]:
        return {"from": self.from_square, "to": self.to_square, "piece": self.piece.value}


@dataclass(frozen=True)
class MoveRecord:
    """One entry in the (append-only) move history: a played card, and the move it allowed (if any)."""

    card: Card
    player: Color
    move: Optional[PlayedMove] = None
    failed_attempt: bool = False

    @classmethod
    def failed(cls, card: Card, player: Color) -> Self:
        """A drawn card that did not allow a single legal move."""
        return cls(card=card, player=player, move=None, failed_attempt=True)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        move = data.get("move")
        return cls(
            card=Card.from_dict(data["card"]),
            player=Color(data["player"]),
            move=PlayedMove.from_dict(move) if move else None,
            failed_attempt=bool(data.get("failed_attempt", False)),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "card": self.card.to_dict(),
            "move": self.move.to_dict() if self.move else None,
            "player": self.player.value,
            "failed_attempt": self.failed_attempt,
        }


@dataclass
class Selection:
    """The piece a player clicked on, and the moves the current card allows it to make."""

    from_square: Optional[str] = None
    candidate_moves: list[OracleMove] = field(default_factory=list)

    @property
    def destinations(self) -> list[str]:
        return [move.to_square for move in self.candidate_moves]

    def clear(self) -> None:
        self.from_square = None
        self.candidate_moves = []


@dataclass
class GameState:
    fen: str
    turn: Color
    current_card: Optional[Card]
    deck: list[Card]
    check_attempts: int
    status: Status
    winner: Optional[Winner]
    moves: list[MoveRecord]

    @classmethod
    def from_model(cls, model: GameStateModel) -> Self:
        """Define how to construct a GameState from the information the Service layer actually has"""
        try:
            return cls(
                fen=model.fen,
                turn=Color(model.turn),
                current_card=(
                    Card.from_dict(model.current_card) if model.current_card else None
                ),
                deck=[Card.from_dict(card) for card in model.cards_deck],
                check_attempts=model.check_attempts,
                status=Status(model.status),
                winner=Winner(model.winner) if model.winner else None,
                moves=[MoveRecord.from_dict(record) for record in model.moves],
            )
        except (ValueError, KeyError, InvalidCardError) as e:
            raise GameStateError(f"Invalid game state record: {e}") from e

    def to_model(self) -> GameStateModel:
        """Encode back into a format the Service layer uses"""
        return GameStateModel(
            fen=self.fen,
            turn=self.turn.value,
            status=self.status.value,
            winner=self.winner.value if self.winner else None,
            moves=[record.to_dict() for record in self.moves],
            check_attempts=self.check_attempts,
            current_card=self.current_card.to_dict() if self.current_card else None,
            cards_deck=[card.to_dict() for card in self.deck],
        )

    @property
    def is_over(self) -> bool:
        return self.status != Status.ACTIVE
