"""
Boundary layer data model(s).

These objects can be used to communicate with the Service.
Hence, both the API layer (higher) and domain/db layers (lower) will use model(s) defined here to send to/receive from the Service
(Decouples the data model specific to the DB layer, API layer, or domain layer from the information needed to send across boundaries)

NOTE Cards and move records travel as plain JSON-like dicts here. Their shape is owned by the domain (card_chess/game/state.py) and
validated at the API layer (card_chess/api/models.py).
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

# Type aliases to make GameModel easier to read
PieceColor = str
PlayerName = str
CardData = dict[str, str]
MoveRecordData = dict[str, Any]


@dataclass
class GameStateModel:
    """The part of a game record that both players read and write."""

    fen: str
    turn: str
    status: str
    winner: Optional[str]
    moves: list[MoveRecordData]
    check_attempts: int
    current_card: Optional[CardData]
    cards_deck: list[CardData]


@dataclass
class GameModel:
    """Transport-safe representation of a card chess game used between API, Service, DB, and client layers."""

    registered_players: dict[PieceColor, Optional[PlayerName]]
    game_state: GameStateModel
    version: int = 0
    created_at: Optional[datetime] = field(default=None, compare=False)
    updated_at: Optional[datetime] = field(default=None, compare=False)
