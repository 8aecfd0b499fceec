"""
Custom exceptions used across layers.

Everything derives from GameError, so the API layer (and the tests) can catch the top-level exception
and leave the specific exception types to the layer that raises them.
"""


class GameError(Exception):
    """Base class for all card chess errors."""


# --- DOMAIN ---
class GameStateError(GameError):
    """Action is not allowed in the current phase of the game (game over, card still pending, ...)."""


class NotYourTurnError(GameError):
    """A player tried to act while it is the opponent's turn."""


class IllegalMoveError(GameError):
    """The rules oracle (or the card filter) rejected a move. Expected user input error: never logged as a failure."""


class InvalidFENError(GameError):
    """Position string the rules oracle cannot parse."""


class EmptyDeckError(GameError):
    """Draw attempted on an empty deck. The replenish policy should make this impossible."""


class InvalidCardError(GameError):
    """Card data with a suit/rank/color combination that does not exist in the deck."""


# --- BOUNDARY ---
class InvalidRequestError(GameError):
    """Malformed request data."""


class RepositoryError(GameError):
    """Requested game record does not exist."""


class VersionConflictError(GameError):
    """State update carried a stale expected version."""


# --- TRANSPORT ---
class NetworkError(GameError):
    """Retryable transport or server failure that survived all retries."""


class AuthExpiredError(GameError):
    """Authenticated call rejected even after refreshing the token. Local session has been cleared."""
