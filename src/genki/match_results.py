"""Shared match-result definitions and scoring helpers.

This module is the single source of truth for how a reported match result
turns into a Glicko score for each player. Everything that needs to know
"who won" (rating processing, win/loss counters, history rows) goes
through here.

Scores use a lexical convention: of the two player ids in a match, the
lexically smaller one is player "A" when the result is read, regardless
of which table seat they were recorded in. Both players of a match are
always scored from the same recorded result.
"""

from __future__ import annotations

from enum import Enum


class Category(str, Enum):
    """Game categories that carry independent ratings."""

    ONE_PIECE_TCG = "ONE_PIECE_TCG"
    AZUKI_TCG = "AZUKI_TCG"
    RIFTBOUND = "RIFTBOUND"


class TournamentStatus(str, Enum):
    DRAFT = "DRAFT"
    SCHEDULED = "SCHEDULED"
    REGISTRATION_CLOSED = "REGISTRATION_CLOSED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class MatchResult(str, Enum):
    """Final result of a match, read relative to the lexical A/B players."""

    PLAYER_A_WIN = "PLAYER_A_WIN"
    PLAYER_B_WIN = "PLAYER_B_WIN"
    DRAW = "DRAW"
    INTENTIONAL_DRAW = "INTENTIONAL_DRAW"
    DOUBLE_LOSS = "DOUBLE_LOSS"
    PLAYER_A_DQ = "PLAYER_A_DQ"
    PLAYER_B_DQ = "PLAYER_B_DQ"


WIN, DRAW, LOSS = 1.0, 0.5, 0.0


def score_for_player(result: MatchResult | str, player_id: str, opponent_id: str) -> float:
    """Return the Glicko score (1, 0.5 or 0) for ``player_id``.

    The lexically smaller of the two ids is read as player A, whichever
    seat it was recorded in.

    Raises:
        ValueError: if the player is paired against themselves.
    """
    if player_id == opponent_id:
        raise ValueError(f"player {player_id!r} cannot be their own opponent")

    result = MatchResult(result)
    is_player_a = player_id < opponent_id

    if result is MatchResult.PLAYER_A_WIN:
        return WIN if is_player_a else LOSS
    if result is MatchResult.PLAYER_B_WIN:
        return LOSS if is_player_a else WIN
    if result in (MatchResult.DRAW, MatchResult.INTENTIONAL_DRAW):
        return DRAW
    if result is MatchResult.DOUBLE_LOSS:
        return LOSS
    if result is MatchResult.PLAYER_A_DQ:
        return LOSS if is_player_a else WIN
    # PLAYER_B_DQ
    return WIN if is_player_a else LOSS
