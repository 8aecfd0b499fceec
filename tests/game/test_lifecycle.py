"""Unit tests for card_chess/game/lifecycle.py"""

import random
from typing import Optional

import pytest

from card_chess.cards.card import Card
from card_chess.cards.deck import CARDS_PER_BATCH
from card_chess.core.exceptions import (
    GameStateError,
    IllegalMoveError,
    NotYourTurnError,
)
from card_chess.core.shared_types import CardColor, Color, PieceType, Rank, Status, Suit, Winner
from card_chess.game.check_escape import MAX_CHECK_ATTEMPTS
from card_chess.game.lifecycle import CardChessGame, GamePhase
from card_chess.game.state import GameState, MoveRecord, PlayedMove
from card_chess.rules.oracle import STARTING_FEN, Piece

# White king on e1 in check from the rook on e8. Only the king can do something about it.
IN_CHECK_FEN = "4r2k/8/8/8/8/8/P7/4K3 w - - 0 1"
# White to move, mate in one with the queen (Qxf7#)
SCHOLARS_MATE_FEN = "r1bqkb1r/pppp1ppp/2n2n2/4p2Q/2B1P3/8/PPPP1PPP/RNB1K1NR w KQkq - 4 4"
# White to move, Qf1-f7 leaves black without a legal move
STALEMATE_IN_ONE_FEN = "7k/8/6K1/8/8/8/8/5Q2 w - - 0 1"
# White pawn one step away from promotion
PROMOTION_FEN = "8/P6k/8/8/8/8/8/K7 w - - 0 1"

A_PAWN = Card.of(Rank.TWO, Suit.HEARTS)
E_PAWN = Card.of(Rank.SIX, Suit.CLUBS)
KNIGHT = Card.of(Rank.TEN, Suit.SPADES)
BISHOP = Card.of(Rank.JACK, Suit.DIAMONDS)
QUEEN = Card.of(Rank.QUEEN, Suit.HEARTS)

# Bottom of every test deck: keeps the deck above the low water mark
FILLER = [Card.of(rank, Suit.SPADES) for rank in (Rank.THREE, Rank.FOUR, Rank.FIVE, Rank.SEVEN, Rank.EIGHT)]


def _game(
    top_cards: list[Card],
    fen: str = STARTING_FEN,
    turn: Color = Color.WHITE,
    current_card: Optional[Card] = None,
    check_attempts: int = 0,
    player_color: Optional[Color] = None,
) -> CardChessGame:
    """A game whose deck draws `top_cards` in the given order."""
    state = GameState(
        fen=fen,
        turn=turn,
        current_card=current_card,
        deck=FILLER + list(reversed(top_cards)),
        check_attempts=check_attempts,
        status=Status.ACTIVE,
        winner=None,
        moves=[],
    )
    return CardChessGame.from_state(state, player_color=player_color, rng=random.Random(7))


# -- CREATION --
def test_new_game(rng: random.Random) -> None:
    game = CardChessGame.new_game(rng=rng)
    assert game.state.fen == STARTING_FEN
    assert game.state.turn == Color.WHITE
    assert game.state.status == Status.ACTIVE
    assert game.state.current_card is None
    assert len(game.state.deck) == CARDS_PER_BATCH
    assert game.state.moves == []
    assert game.phase == GamePhase.AWAITING_CARD
    assert game.can_draw()


def test_from_state_loads_position() -> None:
    game = _game([], fen=SCHOLARS_MATE_FEN)
    assert game.oracle.fen() == SCHOLARS_MATE_FEN


# -- DRAWING --
def test_draw_playable_card() -> None:
    game = _game([A_PAWN])
    deck_size = len(game.state.deck)

    result = game.draw_card()

    assert result.card == A_PAWN
    assert result.playable
    assert {move.to_square for move in result.candidate_moves} == {"a3", "a4"}
    assert not result.game_over
    assert game.state.current_card == A_PAWN
    assert len(game.state.deck) == deck_size - 1
    assert game.state.turn == Color.WHITE
    assert game.phase == GamePhase.CARD_PENDING
    assert not game.can_draw()


def test_draw_dead_card() -> None:
    """No bishop can move at the start: the draw is logged as a failed attempt and the same player draws again."""
    game = _game([BISHOP, KNIGHT])

    result = game.draw_card()
    assert not result.playable
    assert game.phase == GamePhase.DEAD_CARD
    assert game.state.moves == [MoveRecord.failed(BISHOP, Color.WHITE)]
    assert game.state.turn == Color.WHITE
    assert game.state.check_attempts == 0
    assert game.can_draw()

    second = game.draw_card()
    assert second.card == KNIGHT
    assert game.phase == GamePhase.CARD_PENDING


def test_cannot_draw_while_holding_a_playable_card() -> None:
    game = _game([A_PAWN, KNIGHT])
    game.draw_card()
    before = game.state.to_model()

    with pytest.raises(GameStateError):
        game.draw_card()
    assert game.state.to_model() == before


def test_cannot_draw_on_opponents_turn() -> None:
    game = _game([A_PAWN])
    with pytest.raises(NotYourTurnError):
        game.draw_card(Color.BLACK)


def test_session_plays_one_side() -> None:
    game = _game([A_PAWN], player_color=Color.BLACK)
    assert not game.can_draw()
    with pytest.raises(NotYourTurnError):
        game.draw_card()


def test_short_deck_gets_topped_up() -> None:
    """A record with (almost) no cards left still allows a draw."""
    game = _game([])
    game.state.deck = [A_PAWN]

    game.draw_card()
    # the fresh batch goes on top, the last card of the old deck stays at the bottom
    assert game.state.deck[0] == A_PAWN
    assert len(game.state.deck) == CARDS_PER_BATCH


# -- CHECK ESCAPE --
def test_check_escape_attempts_exhausted() -> None:
    """In check, 5 cards in a row without a single legal move: the side in check loses."""
    dead_cards = [
        A_PAWN,
        Card.of(Rank.THREE, Suit.HEARTS),
        Card.of(Rank.FOUR, Suit.DIAMONDS),
        Card.of(Rank.FIVE, Suit.CLUBS),
        QUEEN,
    ]
    game = _game(dead_cards, fen=IN_CHECK_FEN)
    assert game.is_in_check

    for attempt in range(1, MAX_CHECK_ATTEMPTS):
        result = game.draw_card()
        assert not result.playable
        assert game.state.check_attempts == attempt
        assert game.phase == GamePhase.DEAD_CARD

    result = game.draw_card()
    assert result.game_over
    assert game.state.check_attempts == MAX_CHECK_ATTEMPTS
    assert game.state.status == Status.COMPLETED
    assert game.state.winner == Winner.BLACK
    assert game.phase == GamePhase.GAME_OVER
    assert len(game.state.moves) == MAX_CHECK_ATTEMPTS
    assert all(record.failed_attempt for record in game.state.moves)


def test_playable_card_keeps_check_attempts() -> None:
    king = Card.of(Rank.KING, Suit.SPADES)
    game = _game([A_PAWN, king], fen=IN_CHECK_FEN)
    game.draw_card()
    result = game.draw_card()

    assert result.playable
    assert game.state.check_attempts == 1

    game.drop_piece("e1", "d1")
    assert game.state.check_attempts == 0


def test_game_over_blocks_every_action() -> None:
    game = _game([A_PAWN])
    game.state.status = Status.ABANDONED
    assert game.phase == GamePhase.GAME_OVER
    assert not game.can_draw()
    with pytest.raises(GameStateError):
        game.draw_card()
    with pytest.raises(GameStateError):
        game.reshuffle_deck()
    with pytest.raises(GameStateError):
        game.select_square("a2")


# -- MOVING --
def test_click_to_move() -> None:
    """Select the a-pawn, then click one of its destinations."""
    game = _game([A_PAWN])
    game.draw_card()

    assert game.select_square("a2") is None
    assert game.phase == GamePhase.PIECE_SELECTED
    assert sorted(game.selection.destinations) == ["a3", "a4"]

    record = game.select_square("a4")
    assert record == MoveRecord(
        card=A_PAWN, player=Color.WHITE, move=PlayedMove("a2", "a4", PieceType.PAWN)
    )
    assert game.oracle.piece_at("a4") == Piece(PieceType.PAWN, Color.WHITE)


def test_successful_move_passes_the_turn() -> None:
    game = _game([E_PAWN])
    game.draw_card()
    game.select_square("e2")

    game.drop_piece("e2", "e4")

    assert game.state.turn == Color.BLACK
    assert game.state.current_card is None
    assert game.selection.from_square is None
    assert game.selection.candidate_moves == []
    assert game.state.fen == game.oracle.fen()
    assert game.state.moves[-1].move == PlayedMove("e2", "e4", PieceType.PAWN)
    assert game.phase == GamePhase.AWAITING_CARD
    assert game.can_draw(Color.BLACK)


def test_select_piece_the_card_does_not_allow() -> None:
    """Own piece: selected, but without destinations."""
    game = _game([A_PAWN])
    game.draw_card()
    game.select_square("g1")
    assert game.selection.from_square == "g1"
    assert game.selection.destinations == []


@pytest.mark.parametrize("square", ["e7", "e4", "z9"])
def test_select_anything_else_clears_selection(square: str) -> None:
    game = _game([A_PAWN])
    game.draw_card()
    game.select_square("a2")

    assert game.select_square(square) is None
    assert game.selection.from_square is None
    assert game.phase == GamePhase.CARD_PENDING


def test_select_without_card() -> None:
    game = _game([A_PAWN])
    with pytest.raises(GameStateError):
        game.select_square("a2")


def test_illegal_drop_changes_nothing() -> None:
    """A drop the card/oracle rejects leaves position, turn and card exactly as they were."""
    game = _game([A_PAWN])
    game.draw_card()
    game.select_square("a2")
    before = game.state.to_model()
    fen = game.oracle.fen()

    with pytest.raises(IllegalMoveError):
        game.drop_piece("a2", "a5")

    assert game.state.to_model() == before
    assert game.oracle.fen() == fen
    assert game.state.turn == Color.WHITE
    assert game.state.current_card == A_PAWN


def test_drop_piece_the_card_does_not_allow() -> None:
    game = _game([A_PAWN])
    game.draw_card()
    with pytest.raises(IllegalMoveError):
        game.drop_piece("g1", "f3")
    assert game.state.current_card == A_PAWN


def test_promotion_defaults_to_queen() -> None:
    game = _game([A_PAWN], fen=PROMOTION_FEN)
    game.draw_card()
    game.select_square("a7")
    game.select_square("a8")
    assert game.oracle.piece_at("a8") == Piece(PieceType.QUEEN, Color.WHITE)


def test_underpromotion() -> None:
    game = _game([A_PAWN], fen=PROMOTION_FEN)
    game.draw_card()
    game.drop_piece("a7", "a8", promotion=PieceType.KNIGHT)
    assert game.oracle.piece_at("a8") == Piece(PieceType.KNIGHT, Color.WHITE)


# -- END OF GAME --
def test_checkmate_ends_the_game() -> None:
    game = _game([QUEEN], fen=SCHOLARS_MATE_FEN)
    game.draw_card()
    game.drop_piece("h5", "f7")

    assert game.state.status == Status.COMPLETED
    assert game.state.winner == Winner.WHITE
    assert game.phase == GamePhase.GAME_OVER


def test_stalemate_is_a_draw() -> None:
    game = _game([QUEEN], fen=STALEMATE_IN_ONE_FEN)
    game.draw_card()
    game.drop_piece("f1", "f7")

    assert game.state.status == Status.COMPLETED
    assert game.state.winner == Winner.DRAW


# -- RESHUFFLE --
def test_reshuffle_discards_dead_card() -> None:
    game = _game([BISHOP])
    game.draw_card()

    game.reshuffle_deck()

    assert game.state.current_card is None
    assert len(game.state.deck) == CARDS_PER_BATCH
    assert game.phase == GamePhase.AWAITING_CARD


def test_reshuffle_resets_check_attempts() -> None:
    game = _game([A_PAWN], fen=IN_CHECK_FEN)
    game.draw_card()
    assert game.state.check_attempts == 1

    game.reshuffle_deck()
    assert game.state.check_attempts == 0
    assert not game.state.is_over


def test_cannot_reshuffle_while_holding_a_playable_card() -> None:
    game = _game([A_PAWN])
    game.draw_card()
    with pytest.raises(GameStateError):
        game.reshuffle_deck()


# -- RESYNC --
def test_resync_replaces_state_and_clears_selection() -> None:
    game = _game([A_PAWN])
    game.draw_card()
    game.select_square("a2")

    other = _game([KNIGHT], fen=SCHOLARS_MATE_FEN)
    game.resync(other.state)

    assert game.state is other.state
    assert game.oracle.fen() == SCHOLARS_MATE_FEN
    assert game.selection.from_square is None


def test_resync_keeps_selection_when_position_and_card_match() -> None:
    game = _game([A_PAWN])
    game.draw_card()
    game.select_square("a2")

    update = GameState.from_model(game.state.to_model())
    update.check_attempts = 2
    game.resync(update)

    assert game.state.check_attempts == 2
    assert game.selection.from_square == "a2"


def test_joker_card() -> None:
    game = _game([Card.joker(CardColor.BLACK)])
    result = game.draw_card()
    assert len(result.candidate_moves) == 20
