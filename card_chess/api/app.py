"""FastAPI application of the persistence service."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from card_chess.api.routes import router
from card_chess.core.config import settings
from card_chess.core.exceptions import (
    GameError,
    RepositoryError,
    VersionConflictError,
)
from card_chess.core.logging import configure_logging
from card_chess.db.database import init_db

logger = logging.getLogger(__name__)

# Everything else derived from GameError is a bad request
ERROR_STATUS_CODES: dict[type[GameError], int] = {
    RepositoryError: 404,
    VersionConflictError: 409,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup: logging and tables"""
    configure_logging(settings.log_level)
    init_db()
    logger.info("Card chess persistence service started.")
    yield


async def handle_game_error(request: Request, exc: GameError) -> JSONResponse:
    status_code = next(
        (code for error, code in ERROR_STATUS_CODES.items() if isinstance(exc, error)),
        400,
    )
    if status_code != 409:
        logger.warning("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=status_code,
        content={"message": str(exc), "code": type(exc).__name__},
    )


def create_app() -> FastAPI:
    app = FastAPI(title="Card Chess", lifespan=lifespan)
    app.include_router(router)
    app.add_exception_handler(GameError, handle_game_error)
    return app
