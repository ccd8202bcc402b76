"""Errors raised by the rating engine.

The math module raises ``NumericNonConvergenceError`` when the volatility
solve gives up, and plain ``ValueError`` for a malformed ``GlickoRating``
(non-positive deviation or volatility). The store, season manager and
processor raise the rest on precondition violations; a malformed match
(a player paired with themselves) is an ``InvalidStateError``.

Nothing here is swallowed internally - callers (web handlers, scripts)
decide how to report them.
"""

from __future__ import annotations


class RatingError(Exception):
    """Base class for all rating engine errors."""
    pass


class NotFoundError(RatingError):
    """A referenced tournament or season does not exist."""
    pass


class InvalidStateError(RatingError):
    """An operation is not allowed in the entity's current state."""
    pass


class InvalidSeasonRangeError(RatingError):
    """Season dates are inverted or overlap an existing season."""
    pass


class NumericNonConvergenceError(RatingError):
    """The volatility root-find did not converge within its iteration cap."""

    def __init__(self, message: str, iterations: int):
        super().__init__(message)
        self.iterations = iterations


class PlayerRatingUpdateError(RatingError):
    """Updating one player's ratings failed during tournament processing."""

    def __init__(self, tournament_id: int, user_id: str, cause: Exception):
        super().__init__(
            f"Rating update failed for player {user_id} in tournament {tournament_id}: {cause}"
        )
        self.tournament_id = tournament_id
        self.user_id = user_id
        self.cause = cause
