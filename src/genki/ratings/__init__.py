"""
Rating engine module.

Implements tournament-based Glicko-2 ratings with:
- Lifetime and seasonal rating tracks per player/category
- Tournament-as-rating-period batch updates, applied exactly once
- Seasonal loss cap for players new to a season
- Tier classification and provisional status
- Season lifecycle administration
"""

from genki.ratings.constants import GLICKO2_DEFAULTS
from genki.ratings.exceptions import (
    InvalidSeasonRangeError,
    InvalidStateError,
    NotFoundError,
    NumericNonConvergenceError,
    PlayerRatingUpdateError,
    RatingError,
)
from genki.ratings.glicko import GlickoParams, GlickoRating, OpponentResult, calculate_new_rating
from genki.ratings.tiers import PlayerTier, TierChange, is_provisional, map_rating_to_tier, tier_change
from genki.ratings.store import RatingStore
from genki.ratings.seasons import SeasonManager, SeasonStatus
from genki.ratings.processor import ProcessingResult, TournamentRatingProcessor

__all__ = [
    "GLICKO2_DEFAULTS",
    "RatingError",
    "NotFoundError",
    "InvalidStateError",
    "InvalidSeasonRangeError",
    "NumericNonConvergenceError",
    "PlayerRatingUpdateError",
    "GlickoParams",
    "GlickoRating",
    "OpponentResult",
    "calculate_new_rating",
    "PlayerTier",
    "TierChange",
    "is_provisional",
    "map_rating_to_tier",
    "tier_change",
    "RatingStore",
    "SeasonManager",
    "SeasonStatus",
    "ProcessingResult",
    "TournamentRatingProcessor",
]
