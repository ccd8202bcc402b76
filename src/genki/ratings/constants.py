"""
Rating system constants.

Glicko-2 defaults follow the reference paper (Glickman, "Example of the
Glicko-2 system"): every unseen player starts at 1500 with a deviation of
350 and a volatility of 0.06. The internal scale divides by 173.7178
(= 400 / ln 10).

Tier thresholds are the public-facing abstraction of a rating. Players
see tiers, not numbers, so the thresholds are fixed here rather than
configurable per environment - changing them changes what every
leaderboard shows.

Two protections exist for players whose rating is not yet reliable:
- Provisional flag: high deviation OR too few matches
- Seasonal loss cap: bounds how much seasonal rating a low-experience
  player can lose in a single tournament
"""

# Conversion factor between the public scale and the Glicko-2 internal scale
GLICKO2_SCALE = 173.7178

# Default starting values for a player never seen in a category
GLICKO2_DEFAULTS = {
    "rating": 1500.0,
    "rating_deviation": 350.0,
    "volatility": 0.06,
}

# Lowest rating deviation a player can reach
MIN_RATING_DEVIATION = 50.0

# Solver defaults (overridable via settings, see config.py)
DEFAULT_TAU = 0.5
DEFAULT_EPSILON = 1e-6
DEFAULT_MAX_ITERATIONS = 100

# Tier thresholds as (exclusive upper bound, tier name), ordered low to high.
# Anything at or above the last bound is GENKI.
TIER_UPPER_BOUNDS: tuple[tuple[float, str], ...] = (
    (1300.0, "SPROUT"),
    (1450.0, "BRONZE"),
    (1600.0, "SILVER"),
    (1750.0, "GOLD"),
    (1900.0, "PLATINUM"),
    (2100.0, "DIAMOND"),
)
TOP_TIER = "GENKI"

# Provisional rating thresholds - either condition alone is enough
PROVISIONAL_RD_THRESHOLD = 120.0
PROVISIONAL_MATCH_THRESHOLD = 15

# Seasonal loss cap: applies while the player has fewer than
# match_threshold seasonal matches before the tournament starts
SEASONAL_LOSS_CAP = {
    "match_threshold": 15,
    "max_loss": 75.0,
}
