"""Orchestration of communication from API router to business logic and persistence layers (and the reverse direction)."""

import logging
from dataclasses import replace
from typing import Optional
from uuid import UUID

from card_chess.api.models import (
    CreateGameRequest,
    EndGameRequest,
    GameResponse,
    GameStatePayload,
    JoinGameRequest,
    UpdateGameStateRequest,
)
from card_chess.core.exceptions import GameStateError, RepositoryError
from card_chess.core.models import GameModel
from card_chess.core.shared_types import Color, Status
from card_chess.db.repository import GameRepository
from card_chess.game.lifecycle import CardChessGame

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_LIMIT = 10


class GameService:
    """Orchestration of layers for card chess games."""

    def __init__(self, repository: GameRepository) -> None:
        self.repo = repository

    # -- API routes logic ---
    def create_game(self, request: CreateGameRequest) -> GameResponse:
        """First player requested to create a new game."""

        # Fresh game: starting position, shuffled deck, white to draw
        new_game = CardChessGame.new_game()
        created_game_data = GameModel(
            registered_players={
                color.value: request.player_name if color == request.color else None
                for color in Color
            },
            game_state=new_game.state.to_model(),
        )

        # Store the GameModel in the repository
        stored_game, game_id = self.repo.create_game(created_game_data)
        logger.info("Created game %s for %s (%s).", game_id, request.player_name, request.color)

        return self._create_game_response(game_id, stored_game)

    def get_game(self, game_id: UUID) -> GameResponse:
        """
        Retrieve current game state.
        ----
        Used in the "polling" loop of the clients to pick up the opponent's draws and moves.
        """
        game_model = self._fetch_game(game_id)
        return self._create_game_response(game_id, game_model)

    def join_game(self, game_id: UUID, request: JoinGameRequest) -> GameResponse:
        """Second player requested to join a game."""

        stored_model = self._fetch_game(game_id)
        self._assert_active(game_id, stored_model)

        players = dict(stored_model.registered_players)
        if request.player_name in players.values():
            # joining twice is harmless
            return self._create_game_response(game_id, stored_model)

        open_seats = [color for color, player in players.items() if player is None]
        if not open_seats:
            raise GameStateError(
                f"Cannot join game {game_id}. Game is not accepting new players."
            )
        players[open_seats[0]] = request.player_name

        with_player_registered = GameModel(
            registered_players=players, game_state=stored_model.game_state
        )
        updated = self._store(game_id, with_player_registered, stored_model.version)
        logger.info("%s joined game %s as %s.", request.player_name, game_id, open_seats[0])
        return self._create_game_response(game_id, updated)

    def update_game_state(
        self, game_id: UUID, request: UpdateGameStateRequest
    ) -> GameResponse:
        """
        Write (part of) the game state, as computed by one of the clients.
        ----

        1. the game must still be in progress
        2. merge the fields in the request into the stored state, and validate the result
        3. store, if nobody else wrote since the client last read the game (expected_version)
        """
        stored_model = self._fetch_game(game_id)
        self._assert_active(game_id, stored_model)

        stored_state = GameStatePayload.from_model(stored_model.game_state)
        merged_state = GameStatePayload.model_validate(
            {
                **stored_state.model_dump(mode="json", by_alias=True),
                **request.state_fields(),
            }
        )

        after_update = GameModel(
            registered_players=stored_model.registered_players,
            game_state=merged_state.to_model(),
        )
        updated = self._store(game_id, after_update, request.expected_version)
        return self._create_game_response(game_id, updated)

    def end_game(self, game_id: UUID, request: EndGameRequest) -> GameResponse:
        """Record the result of a game."""
        return self._close_game(game_id, Status.COMPLETED, request.winner.value)

    def abandon_game(self, game_id: UUID) -> GameResponse:
        """A player left the game before it was decided."""
        return self._close_game(game_id, Status.ABANDONED, None)

    def list_active_games(self, player_name: Optional[str] = None) -> list[GameResponse]:
        """Games still in progress (optionally only those the player takes part in)."""
        games = self.repo.list_games([Status.ACTIVE.value])
        return self._to_responses(games, player_name)

    def get_history(
        self, limit: int = DEFAULT_HISTORY_LIMIT, player_name: Optional[str] = None
    ) -> list[GameResponse]:
        """Finished games, most recent first."""
        games = self.repo.list_games(
            [Status.COMPLETED.value, Status.ABANDONED.value],
            limit=None if player_name else limit,
        )
        return self._to_responses(games, player_name)[:limit]

    # -- Internal helpers --
    def _close_game(
        self, game_id: UUID, status: Status, winner: Optional[str]
    ) -> GameResponse:
        stored_model = self._fetch_game(game_id)
        self._assert_active(game_id, stored_model)

        state = replace(
            stored_model.game_state,
            status=status.value,
            winner=winner,
            current_card=None,
        )

        updated = self._store(
            game_id,
            GameModel(registered_players=stored_model.registered_players, game_state=state),
            stored_model.version,
        )
        logger.info("Game %s closed. status: %s, winner: %s", game_id, status, winner)
        return self._create_game_response(game_id, updated)

    def _store(self, game_id: UUID, model: GameModel, expected_version: int) -> GameModel:
        updated = self.repo.update_game(game_id, model, expected_version)
        if updated is None:
            raise RepositoryError(f"Game with {game_id=} not found.")
        return updated

    def _assert_active(self, game_id: UUID, model: GameModel) -> None:
        if model.game_state.status != Status.ACTIVE:
            raise GameStateError(
                f"Game {game_id} is not in progress. status: {model.game_state.status}"
            )

    def _to_responses(
        self, games: list[tuple[GameModel, UUID]], player_name: Optional[str]
    ) -> list[GameResponse]:
        return [
            self._create_game_response(game_id, model)
            for model, game_id in games
            if player_name is None or player_name in model.registered_players.values()
        ]

    def _create_game_response(self, game_id: UUID, model: GameModel) -> GameResponse:
        """Convert info in GameModel to a GameResponse (for game with given ID.)"""
        return GameResponse(
            game_id=game_id,
            players=model.registered_players,
            game_state=GameStatePayload.from_model(model.game_state),
            version=model.version,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )

    def _fetch_game(self, game_id: UUID) -> GameModel:
        """Attempt to find the game in the repository and raise error if it fails."""
        game_model = self.repo.get_game(game_id)
        if game_model is None:
            raise RepositoryError(f"Game with {game_id=} not found.")
        return game_model
