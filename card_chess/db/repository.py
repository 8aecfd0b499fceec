"""Protocol repository (SQLAlchemy implementation in sql_repository.py, an in-memory one is used in the service tests)"""

from typing import Optional, Protocol
from uuid import UUID

from card_chess.core.models import GameModel


class GameRepository(Protocol):
    """Persistence layer orchestration"""

    def get_game(self, game_id: UUID) -> GameModel | None:
        """Get game by ID, if record exists."""
        ...

    def create_game(self, game: GameModel) -> tuple[GameModel, UUID]:
        """Store new game and return the stored data + newly created game ID."""
        ...

    def update_game(
        self, game_id: UUID, game: GameModel, expected_version: int
    ) -> GameModel | None:
        """
        Overwrite an existing record, if it is still at `expected_version`. Returns the stored data (with its version bumped).
        Raises VersionConflictError if someone else wrote in the meantime.
        """
        ...

    def list_games(
        self, statuses: list[str], limit: Optional[int] = None
    ) -> list[tuple[GameModel, UUID]]:
        """Games with one of the given statuses, most recently updated first."""
        ...
