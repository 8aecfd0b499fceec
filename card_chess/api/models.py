"""Requests and Response models (shared by the backend routes and the client)"""

from dataclasses import asdict
from datetime import datetime
from typing import Any, Generic, Optional, Self, TypeVar
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from card_chess.cards.card import Card
from card_chess.core.exceptions import InvalidCardError, InvalidRequestError
from card_chess.core.models import GameStateModel
from card_chess.core.shared_types import (
    CardColor,
    Color,
    PieceType,
    Rank,
    Status,
    Suit,
    Winner,
)
from card_chess.game.check_escape import MAX_CHECK_ATTEMPTS
from card_chess.rules.oracle import is_square

PieceColor = str
PlayerName = str

T = TypeVar("T")


def _validate_fen(value: Optional[str]) -> Optional[str]:
    if value is None:
        return value

    parts = value.strip().split(" ")
    if len(parts) != 6:
        raise InvalidRequestError("FEN string must contain 6 space-separated parts.")
    return value


def _validate_square(value: str) -> str:
    if not is_square(value):
        raise InvalidRequestError(f"Cannot interpret {value!r} as a valid square name.")
    return value


# --- GAME STATE PAYLOADS ---
class CardPayload(BaseModel):
    suit: Suit
    value: Rank
    color: CardColor

    @model_validator(mode="after")
    def validate_card(self) -> Self:
        try:
            Card(suit=self.suit, rank=self.value, color=self.color)
        except InvalidCardError as e:
            raise InvalidRequestError(str(e)) from e
        return self


class MovePayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    from_square: str = Field(alias="from")
    to_square: str = Field(alias="to")
    piece: PieceType

    @field_validator(*["from_square", "to_square"])
    @classmethod
    def validate_square(cls, value: str) -> str:
        return _validate_square(value)


class MoveRecordPayload(BaseModel):
    card: CardPayload
    move: Optional[MovePayload] = None
    player: Color
    failed_attempt: bool = False


class GameStatePayload(BaseModel):
    fen: str
    turn: Color
    status: Status
    winner: Optional[Winner] = None
    moves: list[MoveRecordPayload] = []
    check_attempts: int = Field(default=0, ge=0, le=MAX_CHECK_ATTEMPTS)
    current_card: Optional[CardPayload] = None
    cards_deck: list[CardPayload] = []

    @field_validator("fen")
    @classmethod
    def validate_fen(cls, value: str) -> str:
        return _validate_fen(value)

    @classmethod
    def from_model(cls, model: GameStateModel) -> Self:
        return cls.model_validate(asdict(model))

    def to_model(self) -> GameStateModel:
        return GameStateModel(**self.model_dump(mode="json", by_alias=True))


# --- REQUEST MODELS ---
class CreateGameRequest(BaseModel):
    player_name: str
    color: Color


class JoinGameRequest(BaseModel):
    player_name: str


class UpdateGameStateRequest(BaseModel):
    """Partial game state: only the fields that were explicitly set get written."""

    expected_version: int
    fen: Optional[str] = None
    turn: Optional[Color] = None
    status: Optional[Status] = None
    winner: Optional[Winner] = None
    moves: Optional[list[MoveRecordPayload]] = None
    check_attempts: Optional[int] = Field(default=None, ge=0, le=MAX_CHECK_ATTEMPTS)
    current_card: Optional[CardPayload] = None
    cards_deck: Optional[list[CardPayload]] = None

    @field_validator("fen")
    @classmethod
    def validate_fen(cls, value: Optional[str]) -> Optional[str]:
        return _validate_fen(value)

    @classmethod
    def from_state(cls, state: GameStateModel, expected_version: int) -> Self:
        """Full update carrying every field of the game state."""
        return cls.model_validate({**asdict(state), "expected_version": expected_version})

    def state_fields(self) -> dict[str, Any]:
        """The game state fields set in this request (JSON compatible)."""
        fields = self.model_fields_set - {"expected_version"}
        return self.model_dump(mode="json", by_alias=True, include=fields)


class EndGameRequest(BaseModel):
    winner: Winner


# --- RESPONSE MODELS ---
class GameResponse(BaseModel):
    game_id: UUID
    players: dict[PieceColor, Optional[PlayerName]]
    game_state: GameStatePayload
    version: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ApiResponse(BaseModel, Generic[T]):
    """Every endpoint wraps its data with a human readable message."""

    message: str
    data: T
