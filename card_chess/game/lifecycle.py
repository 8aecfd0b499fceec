"""
The CardChessGame class is the game-session object: the entrypoint into the domain layer for the reconciliation layer
and for whatever presents the game to a player.
It is responsible for orchestrating all the business logic required to play a card turn -->
draw a card, select a piece, apply the move, pass the turn, detect the end of the game.

Phases of a card turn:

    AWAITING_CARD --draw--> CARD_PENDING --select--> PIECE_SELECTED --move--> AWAITING_CARD (opponent)
          |                                                   |
          +--draw (no legal move for the card)--> DEAD_CARD --+--> draw again / reshuffle (same player)

GAME_OVER can be reached from any phase (checkmate, draw, check escape attempts exhausted) and is terminal.

NOTE Every public method either raises before touching anything, or commits all its changes at once.
(The reconciliation layer relies on that: it never sees a half-played card turn)
"""

import logging
import random
from dataclasses import dataclass
from enum import Enum, auto
from typing import Optional, Self

from card_chess.cards.card import Card
from card_chess.cards.deck import create_deck, draw, replenish
from card_chess.core.exceptions import (
    EmptyDeckError,
    GameStateError,
    IllegalMoveError,
    NotYourTurnError,
)
from card_chess.core.shared_types import Color, PieceType, Status, Winner
from card_chess.game.check_escape import CheckEscapeTracker
from card_chess.game.state import GameState, MoveRecord, PlayedMove, Selection
from card_chess.rules.candidates import any_moves_for_card, moves_for_origin
from card_chess.rules.oracle import ChessOracle, OracleMove, RulesOracle, is_square

logger = logging.getLogger(__name__)


class GamePhase(Enum):
    AWAITING_CARD = auto()
    DEAD_CARD = auto()
    CARD_PENDING = auto()
    PIECE_SELECTED = auto()
    GAME_OVER = auto()


@dataclass(frozen=True)
class DrawResult:
    card: Card
    candidate_moves: list[OracleMove]
    check_attempts: int
    game_over: bool

    @property
    def playable(self) -> bool:
        return bool(self.candidate_moves)


class CardChessGame:
    # --- DOMAIN LAYER API CALLED BY RECONCILER / PRESENTATION ---

    def __init__(
        self,
        oracle: RulesOracle,
        state: GameState,
        player_color: Optional[Color] = None,
        rng: Optional[random.Random] = None,
        tracker: Optional[CheckEscapeTracker] = None,
        game_id: Optional[str] = None,
    ) -> None:
        """
        player_color: the side this session plays. None --> the session plays both sides (local game on one device).
        rng: only injected by tests, decks are shuffled from the system's entropy source otherwise.
        """
        self.oracle = oracle
        self.state = state
        self.selection = Selection()
        self.player_color = player_color
        self.rng = rng
        self.tracker = tracker or CheckEscapeTracker()
        self.game_id = game_id

        if self.oracle.fen() != state.fen:
            self.oracle.load(state.fen)

    @classmethod
    def new_game(
        cls,
        oracle: Optional[RulesOracle] = None,
        player_color: Optional[Color] = None,
        rng: Optional[random.Random] = None,
        game_id: Optional[str] = None,
    ) -> Self:
        """Starting position, fresh deck, white to draw the first card."""
        oracle = oracle or ChessOracle()
        state = GameState(
            fen=oracle.fen(),
            turn=oracle.side_to_move(),
            current_card=None,
            deck=create_deck(rng),
            check_attempts=0,
            status=Status.ACTIVE,
            winner=None,
            moves=[],
        )
        return cls(oracle, state, player_color=player_color, rng=rng, game_id=game_id)

    @classmethod
    def from_state(
        cls,
        state: GameState,
        player_color: Optional[Color] = None,
        rng: Optional[random.Random] = None,
        game_id: Optional[str] = None,
    ) -> Self:
        return cls(
            ChessOracle(state.fen),
            state,
            player_color=player_color,
            rng=rng,
            game_id=game_id,
        )

    @property
    def phase(self) -> GamePhase:
        if self.state.is_over:
            return GamePhase.GAME_OVER
        if self.state.current_card is None:
            return GamePhase.AWAITING_CARD
        if not self.candidate_moves:
            return GamePhase.DEAD_CARD
        if self.selection.from_square is not None:
            return GamePhase.PIECE_SELECTED
        return GamePhase.CARD_PENDING

    @property
    def candidate_moves(self) -> list[OracleMove]:
        """Every move the current card allows the side to move (empty without a card)."""
        if self.state.is_over:
            return []
        return any_moves_for_card(self.oracle, self.state.current_card)

    @property
    def is_in_check(self) -> bool:
        return self.oracle.is_in_check()

    def can_draw(self, player: Optional[Color] = None) -> bool:
        """Your turn, game in progress, and no playable card waiting to be played."""
        player = self._acting_player(player)
        return player == self.state.turn and self.phase in (
            GamePhase.AWAITING_CARD,
            GamePhase.DEAD_CARD,
        )

    def draw_card(self, player: Optional[Color] = None) -> DrawResult:
        """
        Draw the top card of the deck for the side to move.
        ----

        1. make sure the game is (still) in progress, it is your turn and you are not holding a playable card
        2. draw (and top up the deck if it runs low)
        3. find the moves the card allows
        4. update the check escape counter --> may end the game
        5. a card without moves gets logged in the move history as a failed attempt, the turn does NOT pass
        """
        player = self._acting_player(player)
        self._assert_in_progress()
        self._assert_your_turn(player)
        if self.phase in (GamePhase.CARD_PENDING, GamePhase.PIECE_SELECTED):
            raise GameStateError(
                f"Play the {self.state.current_card} before drawing a new card."
            )

        # NOTE a record loaded from the backend may hold a short deck
        deck = replenish(list(self.state.deck), self.rng)
        try:
            card = draw(deck)
        except EmptyDeckError:
            logger.error("Empty deck on draw (game %s, player %s).", self.game_id, player)
            raise
        replenish(deck, self.rng)

        candidates = any_moves_for_card(self.oracle, card)
        outcome = self.tracker.register_draw(
            attempts=self.state.check_attempts,
            in_check=self.oracle.is_in_check(),
            has_candidates=bool(candidates),
        )

        moves = list(self.state.moves)
        if not candidates:
            moves.append(MoveRecord.failed(card, player))
            logger.info(
                "Game %s: %s drew %s without a legal move (check attempts: %d).",
                self.game_id,
                player,
                card,
                outcome.attempts,
            )

        # commit
        self.selection.clear()
        self.state.deck = deck
        self.state.current_card = card
        self.state.check_attempts = outcome.attempts
        self.state.moves = moves

        if outcome.forfeited:
            logger.info(
                "Game %s: %s failed to escape check %d times.",
                self.game_id,
                player,
                outcome.attempts,
            )
            self._finish(Winner(player.opponent.value))

        return DrawResult(
            card=card,
            candidate_moves=candidates,
            check_attempts=outcome.attempts,
            game_over=self.state.is_over,
        )

    def reshuffle_deck(self, player: Optional[Color] = None) -> None:
        """
        Replace the deck by a fresh shuffled one. Only allowed when you are not holding a playable card.
        A dead card gets discarded and the check escape counter starts over.
        """
        player = self._acting_player(player)
        self._assert_in_progress()
        self._assert_your_turn(player)
        if self.phase in (GamePhase.CARD_PENDING, GamePhase.PIECE_SELECTED):
            raise GameStateError(
                f"Cannot reshuffle while holding a playable card ({self.state.current_card})."
            )

        self.selection.clear()
        self.state.deck = create_deck(self.rng)
        self.state.current_card = None
        self.state.check_attempts = 0

    def select_square(
        self, square: str, player: Optional[Color] = None
    ) -> Optional[MoveRecord]:
        """
        A click on the board.
        ----

        * a destination of the selected piece? --> play that move (returns the MoveRecord)
        * one of your own pieces? --> select it and compute what the card allows it to do
        * anything else (empty square, opponent's piece, not a square) --> clear the selection
        """
        player = self._acting_player(player)
        card = self._assert_card_in_hand(player)

        if self.selection.from_square is not None:
            move = _pick_move(self.selection.candidate_moves, square, PieceType.QUEEN)
            if move is not None:
                return self._apply_move(move)

        piece = self.oracle.piece_at(square) if is_square(square) else None
        if piece is None or piece.color != player:
            self.selection.clear()
            return None

        self.selection.from_square = square
        self.selection.candidate_moves = moves_for_origin(
            self.oracle, square, card, player
        )
        return None

    def drop_piece(
        self,
        from_square: str,
        to_square: str,
        player: Optional[Color] = None,
        promotion: PieceType = PieceType.QUEEN,
    ) -> MoveRecord:
        """
        A piece dragged from one square to another.
        Raises IllegalMoveError (and changes nothing) if the card does not allow that move.
        """
        player = self._acting_player(player)
        card = self._assert_card_in_hand(player)

        candidates = moves_for_origin(self.oracle, from_square, card, player)
        move = _pick_move(candidates, to_square, promotion)
        if move is None:
            raise IllegalMoveError(
                f"Move not allowed with the {card}: {from_square}{to_square}"
            )
        return self._apply_move(move)

    def resync(self, state: GameState) -> None:
        """
        Take over an authoritative game state.
        The selection only survives if neither the position nor the card changed.
        """
        keep_selection = (
            self.oracle.fen() == state.fen
            and self.state.current_card == state.current_card
            and not state.is_over
        )
        if self.oracle.fen() != state.fen:
            self.oracle.load(state.fen)
        self.state = state
        if not keep_selection:
            self.selection.clear()

    # -- PRIVATE HELPERS ---
    def _acting_player(self, player: Optional[Color]) -> Color:
        if player is not None:
            return player
        if self.player_color is not None:
            return self.player_color
        return self.state.turn

    def _assert_in_progress(self) -> None:
        if self.state.is_over:
            raise GameStateError(f"Game is over. status: {self.state.status}")

    def _assert_your_turn(self, player: Color) -> None:
        if player != self.state.turn:
            raise NotYourTurnError(
                f"It is not your turn. Waiting for {self.state.turn} to play first."
            )

    def _assert_card_in_hand(self, player: Color) -> Card:
        self._assert_in_progress()
        self._assert_your_turn(player)
        if self.state.current_card is None:
            raise GameStateError("Draw a card first.")
        return self.state.current_card

    def _apply_move(self, move: OracleMove) -> MoveRecord:
        """
        Play the move on the oracle, then update the game state
        ----

        NOTE the oracle raises IllegalMoveError BEFORE anything has been updated.
        """
        card = self.state.current_card
        # for the typechecker: only called with a card in hand
        assert card is not None

        mover = self.state.turn
        played = self.oracle.apply(move.from_square, move.to_square, move.promotion)
        record = MoveRecord(
            card=card, player=mover, move=PlayedMove.from_oracle_move(played)
        )

        self.selection.clear()
        self.state.fen = self.oracle.fen()
        self.state.turn = mover.opponent
        self.state.current_card = None
        self.state.check_attempts = 0
        self.state.moves = [*self.state.moves, record]
        logger.debug("Game %s: %s played %s.", self.game_id, mover, played.to_uci())

        self._update_game_status(mover)
        return record

    def _update_game_status(self, mover: Color) -> None:
        """Checks if the move ended the game. NOTE the oracle's side to move is now the opponent of `mover`."""
        if self.oracle.is_checkmate():
            self._finish(Winner(mover.value))
        elif (
            self.oracle.is_stalemate()
            or self.oracle.is_draw()
            or self.oracle.is_threefold_repetition()
        ):
            self._finish(Winner.DRAW)

    def _finish(self, winner: Winner) -> None:
        self.state.status = Status.COMPLETED
        self.state.winner = winner
        self.state.current_card = None
        self.selection.clear()
        logger.info("Game %s is over. winner: %s", self.game_id, winner)


def _pick_move(
    candidates: list[OracleMove], to_square: str, promotion: PieceType
) -> Optional[OracleMove]:
    """Find the candidate ending on `to_square`. Pawn promotions come as one move per piece type: prefer `promotion`."""
    matching = [move for move in candidates if move.to_square == to_square]
    for move in matching:
        if move.promotion is None or move.promotion == promotion:
            return move
    return matching[0] if matching else None
