"""
Check-Escape Tracker
----

While in check you keep drawing cards until one lets you move. Every card that does not allow a single legal move
counts as a failed attempt. After MAX_CHECK_ATTEMPTS consecutive failures the player in check loses the game.

NOTE This is a win condition of its own, next to (and independent of) checkmate as detected by the rules oracle.
"""

from dataclasses import dataclass

MAX_CHECK_ATTEMPTS = 5


@dataclass(frozen=True)
class CheckEscapeOutcome:
    attempts: int
    forfeited: bool


class CheckEscapeTracker:
    """Transition rule for the check attempts counter, evaluated on every card draw."""

    def __init__(self, max_attempts: int = MAX_CHECK_ATTEMPTS) -> None:
        self.max_attempts = max_attempts

    def register_draw(
        self, attempts: int, in_check: bool, has_candidates: bool
    ) -> CheckEscapeOutcome:
        """
        1. Not in check? --> counter resets, whatever the card.
        2. In check and the card has no move? --> one more failed attempt.
        3. Reached the maximum? --> the side to move forfeits.
        """
        if not in_check:
            return CheckEscapeOutcome(attempts=0, forfeited=False)

        if has_candidates:
            return CheckEscapeOutcome(attempts=attempts, forfeited=False)

        attempts = min(attempts + 1, self.max_attempts)
        return CheckEscapeOutcome(
            attempts=attempts, forfeited=attempts >= self.max_attempts
        )
