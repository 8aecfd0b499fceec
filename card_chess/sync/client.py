"""
Client of the persistence service (async, httpx)
----

* every call has a bounded timeout
* timeouts, transport errors and overloaded servers (408, 429, 5xx) are retried with an increasing delay,
  up to `max_retries` times --> NetworkError
* 401: refresh the token once and replay the call. Still 401? --> clear the session, AuthExpiredError
* 409 --> VersionConflictError, 404 --> RepositoryError, other 4xx --> InvalidRequestError
* a 2xx response without a valid game record --> InvalidRequestError
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Self
from uuid import UUID

import httpx
from pydantic import ValidationError

from card_chess.api.models import (
    CreateGameRequest,
    EndGameRequest,
    GameResponse,
    JoinGameRequest,
    UpdateGameStateRequest,
)
from card_chess.core.config import Settings, settings
from card_chess.core.exceptions import (
    AuthExpiredError,
    GameError,
    InvalidRequestError,
    NetworkError,
    RepositoryError,
    VersionConflictError,
)
from card_chess.core.models import GameStateModel
from card_chess.core.shared_types import Color, Winner

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = frozenset({408, 429, 500, 502, 503, 504})


@dataclass
class AuthSession:
    """Tokens of the logged in user."""

    access_token: Optional[str] = None
    refresh_token: Optional[str] = None

    @property
    def is_authenticated(self) -> bool:
        return self.access_token is not None

    def clear(self) -> None:
        self.access_token = None
        self.refresh_token = None


# Exchanges the refresh token of a session for a new session
TokenRefresher = Callable[[AuthSession], Awaitable[AuthSession]]


class PersistenceClient:
    """Async client for the /chess endpoints."""

    def __init__(
        self,
        config: Settings = settings,
        session: Optional[AuthSession] = None,
        token_refresher: Optional[TokenRefresher] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """transport: injected by tests (httpx.MockTransport / httpx.ASGITransport)"""
        self.config = config
        self.session = session or AuthSession()
        self._token_refresher = token_refresher
        self._http = httpx.AsyncClient(
            base_url=config.api_base_url,
            timeout=config.request_timeout,
            transport=transport,
            headers={"Content-Type": "application/json"},
        )

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    # -- Persistence service contract --
    async def create_game(self, player_name: str, color: Color) -> GameResponse:
        request = CreateGameRequest(player_name=player_name, color=color)
        data = await self._request(
            "POST", "/chess/create", operation="create game", json=request.model_dump(mode="json")
        )
        return self._to_record(data, "create game")

    async def get_game(self, game_id: UUID) -> GameResponse:
        data = await self._request(
            "GET", f"/chess/game/{game_id}", operation="get game", game_id=game_id
        )
        return self._to_record(data, "get game", game_id)

    async def join_game(self, game_id: UUID, player_name: str) -> GameResponse:
        request = JoinGameRequest(player_name=player_name)
        data = await self._request(
            "PUT",
            f"/chess/game/{game_id}/join",
            operation="join game",
            game_id=game_id,
            json=request.model_dump(mode="json"),
        )
        return self._to_record(data, "join game", game_id)

    async def update_game_state(
        self, game_id: UUID, state: GameStateModel, expected_version: int
    ) -> GameResponse:
        request = UpdateGameStateRequest.from_state(state, expected_version)
        data = await self._request(
            "PUT",
            f"/chess/game/{game_id}/state",
            operation="update game state",
            game_id=game_id,
            json=request.model_dump(mode="json", by_alias=True),
        )
        return self._to_record(data, "update game state", game_id)

    async def end_game(self, game_id: UUID, winner: Winner) -> GameResponse:
        request = EndGameRequest(winner=winner)
        data = await self._request(
            "PUT",
            f"/chess/game/{game_id}/end",
            operation="end game",
            game_id=game_id,
            json=request.model_dump(mode="json"),
        )
        return self._to_record(data, "end game", game_id)

    async def abandon_game(self, game_id: UUID) -> GameResponse:
        data = await self._request(
            "PUT", f"/chess/game/{game_id}/abandon", operation="abandon game", game_id=game_id
        )
        return self._to_record(data, "abandon game", game_id)

    async def list_active_games(self, player_name: Optional[str] = None) -> list[GameResponse]:
        params = {"player": player_name} if player_name else None
        data = await self._request("GET", "/chess/active", operation="list active games", params=params)
        return self._to_records(data, "list active games")

    async def get_history(
        self, limit: int = 10, player_name: Optional[str] = None
    ) -> list[GameResponse]:
        params: dict[str, Any] = {"limit": limit}
        if player_name:
            params["player"] = player_name
        data = await self._request("GET", "/chess/history", operation="get history", params=params)
        return self._to_records(data, "get history")

    # -- Internal helpers --
    async def _request(
        self,
        method: str,
        url: str,
        *,
        operation: str,
        game_id: Optional[UUID] = None,
        json: Optional[dict[str, Any]] = None,
        params: Optional[dict[str, Any]] = None,
    ) -> Any:
        """Send the request (with retries / token refresh) and unwrap the `data` of the response envelope."""
        attempt = 0
        refreshed = False
        while True:
            try:
                response = await self._http.request(
                    method, url, json=json, params=params, headers=self._auth_headers()
                )
            except httpx.TransportError as e:
                # NOTE timeouts are transport errors too
                failure: str = f"{type(e).__name__}: {e}"
                cause: Optional[Exception] = e
            else:
                if response.status_code == 401:
                    if not refreshed and await self._refresh_session(operation):
                        refreshed = True
                        continue
                    self.session.clear()
                    logger.warning(
                        "Session expired during %s (game %s). Please log in again.",
                        operation,
                        game_id,
                    )
                    raise AuthExpiredError(
                        "Your session has expired. Please log in again."
                    )

                if response.status_code not in RETRYABLE_STATUS_CODES:
                    if response.is_success:
                        return self._unwrap(response, operation, game_id)
                    raise self._to_error(response, operation, game_id)

                failure = f"HTTP {response.status_code}"
                cause = None

            attempt += 1
            if attempt > self.config.max_retries:
                logger.error(
                    "%s failed (game %s) after %d attempts: %s",
                    operation,
                    game_id,
                    attempt,
                    failure,
                )
                raise NetworkError(f"{operation} failed: {failure}") from cause

            delay = self.config.retry_delay * attempt
            logger.warning(
                "%s failed (game %s): %s. Retry %d/%d in %.1fs.",
                operation,
                game_id,
                failure,
                attempt,
                self.config.max_retries,
                delay,
            )
            await asyncio.sleep(delay)

    def _auth_headers(self) -> dict[str, str]:
        if self.session.access_token is None:
            return {}
        return {"Authorization": f"Bearer {self.session.access_token}"}

    async def _refresh_session(self, operation: str) -> bool:
        """One attempt at getting a new access token. False if that is not possible."""
        if self._token_refresher is None or self.session.refresh_token is None:
            return False
        try:
            self.session = await self._token_refresher(self.session)
        except (GameError, httpx.HTTPError) as e:
            logger.warning("Token refresh during %s failed: %s", operation, e)
            return False
        return self.session.is_authenticated

    def _unwrap(self, response: httpx.Response, operation: str, game_id: Optional[UUID]) -> Any:
        try:
            return response.json()["data"]
        except (ValueError, KeyError, TypeError) as e:
            raise _malformed(operation, game_id, e) from e

    def _to_record(
        self, data: Any, operation: str, game_id: Optional[UUID] = None
    ) -> GameResponse:
        try:
            return GameResponse.model_validate(data)
        except ValidationError as e:
            raise _malformed(operation, game_id, e) from e

    def _to_records(self, data: Any, operation: str) -> list[GameResponse]:
        if not isinstance(data, list):
            raise _malformed(operation, None, TypeError(f"expected a list, got {type(data).__name__}"))
        return [self._to_record(item, operation) for item in data]

    def _to_error(
        self, response: httpx.Response, operation: str, game_id: Optional[UUID]
    ) -> GameError:
        try:
            message = response.json().get("message", response.text)
        except ValueError:
            message = response.text
        detail = f"{operation} (game {game_id}) rejected with HTTP {response.status_code}: {message}"

        if response.status_code == 409:
            return VersionConflictError(detail)
        if response.status_code == 404:
            return RepositoryError(detail)
        logger.warning(detail)
        return InvalidRequestError(detail)


def _malformed(operation: str, game_id: Optional[UUID], cause: Exception) -> InvalidRequestError:
    """A 2xx response that is not a valid response envelope / game record."""
    logger.error("%s (game %s) returned a malformed response: %s", operation, game_id, cause)
    return InvalidRequestError(f"{operation} returned a malformed response: {cause}")
