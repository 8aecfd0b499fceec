"""
Keeps the local game session and the authoritative game record in line.
----

Three tasks, one event loop:

* mailbox: the ONLY place the game session and the tracked version get changed.
  User actions, applied pushes and poll results queue up here and are applied one at a time.
* outbox: sends the state snapshots produced by user actions, in order, each one conditional
  on the version of the record this client last saw.
* polling: fetches the game record every `poll_interval` seconds, and hands it to the mailbox.

A poll result gets thrown away if the player did something while it was in flight, or while a snapshot is
still waiting to be sent (the record it carries is already outdated).
A failed push marks the local copy as stale --> the next poll overwrites it.
A poll result is always compared with the local state, whatever its version
(a failed push leaves the local state ahead of a record with the same version).
"""

import asyncio
import logging
from typing import Any, Callable, Optional, Self, TypeVar
from uuid import UUID

from card_chess.api.models import GameResponse
from card_chess.core.config import settings
from card_chess.core.exceptions import GameError, GameStateError, VersionConflictError
from card_chess.core.models import GameStateModel
from card_chess.core.shared_types import Color, PieceType
from card_chess.game.lifecycle import CardChessGame, DrawResult
from card_chess.game.state import GameState, MoveRecord
from card_chess.sync.client import PersistenceClient

logger = logging.getLogger(__name__)

T = TypeVar("T")

ChangeListener = Callable[[CardChessGame], None]
ErrorListener = Callable[[Exception], None]


class GameReconciler:
    def __init__(
        self,
        game: CardChessGame,
        client: PersistenceClient,
        game_id: UUID,
        version: int,
        poll_interval: Optional[float] = None,
        on_change: Optional[ChangeListener] = None,
        on_error: Optional[ErrorListener] = None,
    ) -> None:
        """
        version: version of the record `game` was loaded from.
        on_change: called after every change of the local game (re-render).
        on_error: called with the failures that do not stop the game (failed pushes / polls).
        """
        self.game = game
        self.client = client
        self.game_id = game_id
        self.version = version
        self.poll_interval = poll_interval if poll_interval is not None else settings.poll_interval
        self.on_change = on_change
        self.on_error = on_error

        self._mailbox: asyncio.Queue[tuple[Callable[[], Any], asyncio.Future]] = asyncio.Queue()
        self._outbox: asyncio.Queue[GameStateModel] = asyncio.Queue()
        self._tasks: list[asyncio.Task] = []
        # bumped by every user action that changed the game
        self._generation = 0
        # snapshots queued or being sent
        self._pending_pushes = 0
        self._stale = False

    @classmethod
    async def open(
        cls,
        client: PersistenceClient,
        game_id: UUID,
        player_name: Optional[str] = None,
        **kwargs: Any,
    ) -> Self:
        """
        Load a game record and build the session around it.
        player_name: the player this session plays for. None --> both sides are played on this device.
        """
        record = await client.get_game(game_id)

        player_color: Optional[Color] = None
        if player_name is not None:
            player_color = next(
                (Color(color) for color, name in record.players.items() if name == player_name),
                None,
            )
            if player_color is None:
                raise GameStateError(f"{player_name} is not registered in game {game_id}.")

        game = CardChessGame.from_state(
            _to_game_state(record), player_color=player_color, game_id=str(game_id)
        )
        return cls(game, client, game_id, record.version, **kwargs)

    # -- Lifecycle --
    @property
    def running(self) -> bool:
        return bool(self._tasks)

    @property
    def is_stale(self) -> bool:
        return self._stale

    @property
    def pending_pushes(self) -> int:
        return self._pending_pushes

    async def start(self, poll: bool = True) -> None:
        """poll: False leaves polling to the caller (poll_once)"""
        if self.running:
            return
        self._tasks = [
            asyncio.create_task(self._process_mailbox(), name=f"mailbox-{self.game_id}"),
            asyncio.create_task(self._process_outbox(), name=f"outbox-{self.game_id}"),
        ]
        if poll:
            self._tasks.append(
                asyncio.create_task(self._poll_forever(), name=f"polling-{self.game_id}")
            )
        logger.debug("Game %s: reconciler started (version %d).", self.game_id, self.version)

    async def stop(self) -> None:
        tasks, self._tasks = self._tasks, []
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        logger.debug("Game %s: reconciler stopped (version %d).", self.game_id, self.version)

    async def __aenter__(self) -> Self:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.stop()

    async def flush(self) -> None:
        """Wait until every queued mutation has been applied and every snapshot has been sent."""
        await self._mailbox.join()
        await self._outbox.join()

    # -- Player actions --
    async def draw_card(self) -> DrawResult:
        return await self._local_action(self.game.draw_card)

    async def reshuffle_deck(self) -> None:
        await self._local_action(self.game.reshuffle_deck)

    async def select_square(self, square: str) -> Optional[MoveRecord]:
        return await self._local_action(lambda: self.game.select_square(square))

    async def drop_piece(
        self, from_square: str, to_square: str, promotion: PieceType = PieceType.QUEEN
    ) -> MoveRecord:
        return await self._local_action(
            lambda: self.game.drop_piece(from_square, to_square, promotion=promotion)
        )

    async def abandon(self) -> None:
        """Leave the game. Goes straight to the service, the returned record replaces the local state."""
        record = await self.client.abandon_game(self.game_id)
        await self._submit(lambda: self._apply_record(record))

    # -- Polling --
    async def poll_once(self) -> bool:
        """
        Fetch the record and reconcile. True if the local game changed.
        Failures are reported to on_error, the next poll simply tries again.
        """
        generation = self._generation
        try:
            record = await self.client.get_game(self.game_id)
        except GameError as e:
            logger.warning("Game %s: poll failed: %s", self.game_id, e)
            self._report(e)
            return False
        return await self._submit(lambda: self._reconcile(record, generation))

    async def _poll_forever(self) -> None:
        while True:
            await asyncio.sleep(self.poll_interval)
            await self.poll_once()

    # -- Mailbox --
    async def _submit(self, mutation: Callable[[], T]) -> T:
        if not self.running:
            raise GameStateError(f"Reconciler of game {self.game_id} is not running.")
        future: asyncio.Future = asyncio.get_running_loop().create_future()
        await self._mailbox.put((mutation, future))
        return await future

    async def _process_mailbox(self) -> None:
        while True:
            mutation, future = await self._mailbox.get()
            try:
                result = mutation()
            except Exception as e:
                # NOTE re-raised in the task that submitted the mutation
                if not future.cancelled():
                    future.set_exception(e)
            else:
                if not future.cancelled():
                    future.set_result(result)
            finally:
                self._mailbox.task_done()

    async def _local_action(self, action: Callable[[], T]) -> T:
        def mutation() -> T:
            before = self.game.state.to_model()
            selected = self.game.selection.from_square
            result = action()
            after = self.game.state.to_model()

            if after != before:
                self._generation += 1
                self._pending_pushes += 1
                self._outbox.put_nowait(after)
            if after != before or self.game.selection.from_square != selected:
                self._notify_change()
            return result

        return await self._submit(mutation)

    def _reconcile(self, record: GameResponse, generation: int) -> bool:
        if generation != self._generation or self._pending_pushes:
            logger.debug(
                "Game %s: poll result (version %d) superseded by local actions, discarded.",
                self.game_id,
                record.version,
            )
            return False
        return self._apply_record(record)

    def _apply_record(self, record: GameResponse) -> bool:
        """Take over the authoritative record. True if the local game changed."""
        authoritative = _to_game_state(record)
        self.version = record.version
        self._stale = False

        if authoritative.to_model() == self.game.state.to_model():
            return False

        position_changed = authoritative.fen != self.game.oracle.fen()
        self.game.resync(authoritative)
        logger.info(
            "Game %s: local state replaced by version %d%s.",
            self.game_id,
            record.version,
            " (new position)" if position_changed else "",
        )
        self._notify_change()
        return True

    # -- Outbox --
    async def _process_outbox(self) -> None:
        while True:
            snapshot = await self._outbox.get()
            try:
                await self._push(snapshot)
            finally:
                self._outbox.task_done()

    async def _push(self, snapshot: GameStateModel) -> None:
        try:
            record = await self.client.update_game_state(self.game_id, snapshot, self.version)
        except VersionConflictError as e:
            logger.warning(
                "Game %s: update rejected, version %d is outdated. Waiting for the next poll.",
                self.game_id,
                self.version,
            )
            await self._submit(self._mark_stale)
            self._report(e)
        except GameError as e:
            logger.error(
                "Game %s: failed to save the game state (version %d): %s",
                self.game_id,
                self.version,
                e,
            )
            await self._submit(lambda: self._finish_push(failed=True))
            self._report(e)
        except Exception as e:
            logger.exception(
                "Game %s: unexpected failure while saving the game state (version %d).",
                self.game_id,
                self.version,
            )
            await self._submit(lambda: self._finish_push(failed=True))
            self._report(e)
        else:
            await self._submit(lambda: self._finish_push(record.version))

    def _finish_push(self, version: Optional[int] = None, failed: bool = False) -> None:
        self._pending_pushes -= 1
        if failed:
            self._stale = True
        if version is not None:
            self.version = version

    def _mark_stale(self) -> None:
        """Drop the failed snapshot and everything queued after it: they were all built on the outdated record."""
        self._pending_pushes -= 1
        while not self._outbox.empty():
            self._outbox.get_nowait()
            self._outbox.task_done()
            self._pending_pushes -= 1
        self._stale = True

    # -- Listeners --
    def _notify_change(self) -> None:
        if self.on_change is not None:
            self.on_change(self.game)

    def _report(self, error: Exception) -> None:
        if self.on_error is not None:
            self.on_error(error)


def _to_game_state(record: GameResponse) -> GameState:
    return GameState.from_model(record.game_state.to_model())


