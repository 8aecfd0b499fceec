"""Implementation of (Game)Repository using SQLAlchemy"""

import logging
from typing import Any, Optional
from uuid import UUID, uuid4

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from card_chess.core.exceptions import VersionConflictError
from card_chess.core.models import GameModel, GameStateModel
from card_chess.db.schema import DBGame

logger = logging.getLogger(__name__)


class SQLGameRepository:
    """Data stored using SQL / methods implemented using SQLAlchemy"""

    def __init__(self, db_session: Session) -> None:
        self.db = db_session

    def get_game(self, game_id: UUID) -> GameModel | None:
        """Get game by ID, if record exists."""
        game_db = self._fetch_game(game_id)
        if game_db:
            return self._to_model(game_db)
        return None

    def create_game(self, game: GameModel) -> tuple[GameModel, UUID]:
        """Store new game and return the stored data + newly created game ID."""

        new_id = uuid4()
        game_db = DBGame(
            id=new_id,
            registered_players=game.registered_players,
            version=0,
            **_state_columns(game.game_state),
        )
        self.db.add(game_db)
        self.db.commit()
        self.db.refresh(game_db)
        return self._to_model(game_db), new_id

    def update_game(
        self, game_id: UUID, game: GameModel, expected_version: int
    ) -> GameModel | None:
        """
        Overwrite existing record (compare-and-set on the version).
        NOTE the version check and the write are one conditional UPDATE.
        """
        result = self.db.execute(
            update(DBGame)
            .where(DBGame.id == game_id, DBGame.version == expected_version)
            .values(
                registered_players=game.registered_players,
                version=expected_version + 1,
                **_state_columns(game.game_state),
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            self.db.rollback()
            game_db = self._fetch_game(game_id)
            if not game_db:
                return None
            logger.warning(
                "Rejected write to game %s: expected version %d, stored version %d.",
                game_id,
                expected_version,
                game_db.version,
            )
            raise VersionConflictError(
                f"Game {game_id} is at version {game_db.version}, not {expected_version}."
            )
        self.db.commit()
        game_db = self._fetch_game(game_id)
        assert game_db is not None
        return self._to_model(game_db)

    def list_games(
        self, statuses: list[str], limit: Optional[int] = None
    ) -> list[tuple[GameModel, UUID]]:
        """Games with one of the given statuses, most recently updated first."""
        query = (
            select(DBGame)
            .where(DBGame.status.in_(statuses))
            .order_by(DBGame.updated_at.desc())
        )
        if limit is not None:
            query = query.limit(limit)
        return [(self._to_model(game_db), game_db.id) for game_db in self.db.scalars(query)]

    def _fetch_game(self, game_id: UUID) -> DBGame | None:
        query = select(DBGame).where(DBGame.id == game_id)
        return self.db.scalar(query)

    def _to_model(self, game_db: DBGame) -> GameModel:
        """Convert SQLAlchemy model to data transfer model."""
        return GameModel(
            registered_players=game_db.registered_players,
            game_state=GameStateModel(
                fen=game_db.fen,
                turn=game_db.turn,
                status=game_db.status,
                winner=game_db.winner,
                moves=game_db.moves,
                check_attempts=game_db.check_attempts,
                current_card=game_db.current_card,
                cards_deck=game_db.cards_deck,
            ),
            version=game_db.version,
            created_at=game_db.created_at,
            updated_at=game_db.updated_at,
        )


def _state_columns(state: GameStateModel) -> dict[str, Any]:
    return {
        "fen": state.fen,
        "turn": state.turn,
        "status": state.status,
        "winner": state.winner,
        "moves": state.moves,
        "check_attempts": state.check_attempts,
        "current_card": state.current_card,
        "cards_deck": state.cards_deck,
    }
