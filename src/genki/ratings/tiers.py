"""
Tier classification and provisional status.

Tiers are what players see: numeric ratings are an internal/admin detail.
A tier is never stored - it is always recomputed from the current rating
so it cannot drift from the number behind it.

Buckets are inclusive-low / exclusive-high:
    rating < 1300  -> SPROUT
    rating < 1450  -> BRONZE
    rating < 1600  -> SILVER
    rating < 1750  -> GOLD
    rating < 1900  -> PLATINUM
    rating < 2100  -> DIAMOND
    otherwise      -> GENKI
"""

from __future__ import annotations

from enum import Enum

from genki.ratings.constants import (
    PROVISIONAL_MATCH_THRESHOLD,
    PROVISIONAL_RD_THRESHOLD,
    TIER_UPPER_BOUNDS,
    TOP_TIER,
)


class PlayerTier(str, Enum):
    SPROUT = "SPROUT"
    BRONZE = "BRONZE"
    SILVER = "SILVER"
    GOLD = "GOLD"
    PLATINUM = "PLATINUM"
    DIAMOND = "DIAMOND"
    GENKI = "GENKI"

    @property
    def rank(self) -> int:
        """Position in the tier ladder, SPROUT = 0."""
        return _TIER_ORDER.index(self)

    # str's lexical comparisons would order GOLD < SILVER, so all four
    # operators are defined in terms of the ladder rank.
    def __lt__(self, other: "PlayerTier") -> bool:
        if not isinstance(other, PlayerTier):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other: "PlayerTier") -> bool:
        if not isinstance(other, PlayerTier):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other: "PlayerTier") -> bool:
        if not isinstance(other, PlayerTier):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other: "PlayerTier") -> bool:
        if not isinstance(other, PlayerTier):
            return NotImplemented
        return self.rank >= other.rank


_TIER_ORDER: tuple[PlayerTier, ...] = tuple(PlayerTier)


class TierChange(str, Enum):
    UP = "UP"
    DOWN = "DOWN"
    SAME = "SAME"


def map_rating_to_tier(rating: float) -> PlayerTier:
    """Map a public-scale rating to its tier."""
    for upper_bound, tier_name in TIER_UPPER_BOUNDS:
        if rating < upper_bound:
            return PlayerTier(tier_name)
    return PlayerTier(TOP_TIER)


def is_provisional(rating_deviation: float, total_matches: int) -> bool:
    """A rating is provisional if its deviation is high OR it has too few matches."""
    return (
        rating_deviation > PROVISIONAL_RD_THRESHOLD
        or total_matches < PROVISIONAL_MATCH_THRESHOLD
    )


def tier_change(old: PlayerTier | str, new: PlayerTier | str) -> TierChange:
    """Direction of movement between two tiers."""
    old_rank = PlayerTier(old).rank
    new_rank = PlayerTier(new).rank
    if new_rank > old_rank:
        return TierChange.UP
    if new_rank < old_rank:
        return TierChange.DOWN
    return TierChange.SAME
