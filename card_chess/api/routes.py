"""REST endpoints of the persistence service. All logic lives in GameService, the routes only wrap the results."""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from card_chess.api.models import (
    ApiResponse,
    CreateGameRequest,
    EndGameRequest,
    GameResponse,
    JoinGameRequest,
    UpdateGameStateRequest,
)
from card_chess.db.database import get_db
from card_chess.db.sql_repository import SQLGameRepository
from card_chess.services.game_service import DEFAULT_HISTORY_LIMIT, GameService

router = APIRouter(prefix="/chess", tags=["card-chess"])


def get_service(db: Session = Depends(get_db)) -> GameService:
    return GameService(SQLGameRepository(db))


@router.post("/create", response_model=ApiResponse[GameResponse])
def create_game(
    request: CreateGameRequest, service: GameService = Depends(get_service)
) -> ApiResponse[GameResponse]:
    return ApiResponse(message="Game created", data=service.create_game(request))


@router.get("/game/{game_id}", response_model=ApiResponse[GameResponse])
def get_game(
    game_id: UUID, service: GameService = Depends(get_service)
) -> ApiResponse[GameResponse]:
    return ApiResponse(message="Game found", data=service.get_game(game_id))


@router.put("/game/{game_id}/join", response_model=ApiResponse[GameResponse])
def join_game(
    game_id: UUID,
    request: JoinGameRequest,
    service: GameService = Depends(get_service),
) -> ApiResponse[GameResponse]:
    return ApiResponse(message="Joined game", data=service.join_game(game_id, request))


@router.put("/game/{game_id}/state", response_model=ApiResponse[GameResponse])
def update_game_state(
    game_id: UUID,
    request: UpdateGameStateRequest,
    service: GameService = Depends(get_service),
) -> ApiResponse[GameResponse]:
    return ApiResponse(
        message="Game state updated", data=service.update_game_state(game_id, request)
    )


@router.put("/game/{game_id}/end", response_model=ApiResponse[GameResponse])
def end_game(
    game_id: UUID,
    request: EndGameRequest,
    service: GameService = Depends(get_service),
) -> ApiResponse[GameResponse]:
    return ApiResponse(message="Game ended", data=service.end_game(game_id, request))


@router.put("/game/{game_id}/abandon", response_model=ApiResponse[GameResponse])
def abandon_game(
    game_id: UUID, service: GameService = Depends(get_service)
) -> ApiResponse[GameResponse]:
    return ApiResponse(message="Game abandoned", data=service.abandon_game(game_id))


@router.get("/active", response_model=ApiResponse[list[GameResponse]])
def list_active_games(
    player: Optional[str] = None, service: GameService = Depends(get_service)
) -> ApiResponse[list[GameResponse]]:
    return ApiResponse(message="Active games", data=service.list_active_games(player))


@router.get("/history", response_model=ApiResponse[list[GameResponse]])
def get_history(
    limit: int = DEFAULT_HISTORY_LIMIT,
    player: Optional[str] = None,
    service: GameService = Depends(get_service),
) -> ApiResponse[list[GameResponse]]:
    return ApiResponse(message="Game history", data=service.get_history(limit, player))
