"""
Glicko-2 rating calculator.

Implements one Glicko-2 rating-period update for a single player from a
batch of match scores. A tournament is one rating period: every match a
player finished in the tournament is applied in one simultaneous update.

The algorithm (Glickman, "Example of the Glicko-2 system"):
  1. Convert rating/RD to the internal scale:
       mu = (r - 1500) / 173.7178,  phi = RD / 173.7178
  2. For each opponent j:
       g(phi_j) = 1 / sqrt(1 + 3 * phi_j^2 / pi^2)
       E(mu, mu_j, phi_j) = 1 / (1 + exp(-g(phi_j) * (mu - mu_j)))
  3. Estimated variance v = 1 / sum(g^2 * E * (1 - E))
  4. Estimated improvement delta = v * sum(g * (s_j - E))
  5. New volatility sigma' from the Illinois root-find on f(x)
  6. phi* = sqrt(phi^2 + sigma'^2)
  7. phi' = 1 / sqrt(1 / phi*^2 + 1 / v)
     mu'  = mu + phi'^2 * sum(g * (s_j - E))
  8. Convert back to the public scale.

A player with no matches in the period only has their deviation inflated
(phi' = sqrt(phi^2 + sigma^2)); rating and volatility are unchanged.

Note on step 3: the variance sum evaluates E with the player's mu pinned
at 0 rather than their actual mu. Stored ratings were produced this way,
so it is kept for continuity.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional, Sequence

from genki.ratings.constants import (
    DEFAULT_EPSILON,
    DEFAULT_MAX_ITERATIONS,
    DEFAULT_TAU,
    GLICKO2_DEFAULTS,
    GLICKO2_SCALE,
    MIN_RATING_DEVIATION,
)
from genki.ratings.exceptions import NumericNonConvergenceError


@dataclass(frozen=True)
class GlickoRating:
    """A rating triple on the public (Glicko-1) scale."""
    rating: float
    rating_deviation: float
    volatility: float

    def __post_init__(self) -> None:
        if not self.rating_deviation > 0:
            raise ValueError(f"rating_deviation must be > 0, got {self.rating_deviation}")
        if not self.volatility > 0:
            raise ValueError(f"volatility must be > 0, got {self.volatility}")

    @classmethod
    def default(cls) -> "GlickoRating":
        """Starting rating for a player never seen in a category."""
        return cls(
            rating=GLICKO2_DEFAULTS["rating"],
            rating_deviation=GLICKO2_DEFAULTS["rating_deviation"],
            volatility=GLICKO2_DEFAULTS["volatility"],
        )

    def __repr__(self) -> str:
        return (
            f"<GlickoRating(r={self.rating:.1f}, rd={self.rating_deviation:.1f}, "
            f"sigma={self.volatility:.5f})>"
        )


@dataclass(frozen=True)
class OpponentResult:
    """One match from the rated player's perspective."""
    opponent: GlickoRating
    score: float  # 1 win, 0.5 draw, 0 loss


@dataclass(frozen=True)
class GlickoParams:
    """Tunable solver parameters for a rating update."""
    tau: float = DEFAULT_TAU
    epsilon: float = DEFAULT_EPSILON
    max_iterations: int = DEFAULT_MAX_ITERATIONS
    enforce_rd_floor: bool = True
    min_rating_deviation: float = MIN_RATING_DEVIATION

    @classmethod
    def from_settings(cls, settings=None) -> "GlickoParams":
        if settings is None:
            from genki.config import settings
        return cls(
            tau=settings.glicko_tau,
            epsilon=settings.glicko_epsilon,
            max_iterations=settings.glicko_max_iterations,
            enforce_rd_floor=settings.enforce_rd_floor,
        )


# ---------------------------------------------------------------------------
# Scale conversion
# ---------------------------------------------------------------------------

def to_glicko2_rating(rating: float) -> float:
    return (rating - GLICKO2_DEFAULTS["rating"]) / GLICKO2_SCALE


def from_glicko2_rating(mu: float) -> float:
    return mu * GLICKO2_SCALE + GLICKO2_DEFAULTS["rating"]


def to_glicko2_rd(rd: float) -> float:
    return rd / GLICKO2_SCALE


def from_glicko2_rd(phi: float) -> float:
    return phi * GLICKO2_SCALE


# ---------------------------------------------------------------------------
# Core functions (internal scale)
# ---------------------------------------------------------------------------

def g(phi: float) -> float:
    """Dampens the impact of opponents whose rating is uncertain."""
    return 1.0 / math.sqrt(1.0 + 3.0 * phi * phi / (math.pi * math.pi))


def expected_score(mu: float, mu_opponent: float, phi_opponent: float) -> float:
    """Expected score of a player at ``mu`` against an opponent."""
    exponent = -g(phi_opponent) * (mu - mu_opponent)
    # Split on sign so exp() never overflows for extreme rating gaps
    if exponent >= 0.0:
        exp_term = math.exp(-exponent)
        return exp_term / (1.0 + exp_term)
    return 1.0 / (1.0 + math.exp(exponent))


def variance(opponents: Sequence[tuple[float, float]]) -> float:
    """Estimated variance v from (mu_opponent, phi_opponent) pairs."""
    total = 0.0
    for mu_opp, phi_opp in opponents:
        g_phi = g(phi_opp)
        e = expected_score(0.0, mu_opp, phi_opp)
        total += g_phi * g_phi * e * (1.0 - e)
    return 1.0 / total


def improvement_sum(mu: float, matches: Sequence[tuple[float, float, float]]) -> float:
    """sum(g * (score - E)) over (mu_opponent, phi_opponent, score) triples."""
    total = 0.0
    for mu_opp, phi_opp, score in matches:
        total += g(phi_opp) * (score - expected_score(mu, mu_opp, phi_opp))
    return total


def solve_volatility(
    v: float,
    delta: float,
    phi: float,
    sigma: float,
    tau: float = DEFAULT_TAU,
    epsilon: float = DEFAULT_EPSILON,
    max_iterations: int = DEFAULT_MAX_ITERATIONS,
) -> float:
    """
    Find the new volatility with the Illinois variant of regula falsi.

    Args:
        v: Estimated variance of the player's rating from game outcomes
        delta: Estimated improvement (v * sum(g * (s - E)))
        phi: Player's current deviation (internal scale)
        sigma: Player's current volatility
        tau: System constant constraining volatility change
        epsilon: Convergence tolerance on the bracket width
        max_iterations: Cap on bracket expansion and on Illinois steps

    Returns:
        The new volatility sigma'

    Raises:
        NumericNonConvergenceError: if bracketing or convergence needs more
            than ``max_iterations`` steps
    """
    delta_sq = delta * delta
    phi_sq = phi * phi
    tau_sq = tau * tau
    a = math.log(sigma * sigma)

    def f(x: float) -> float:
        ex = math.exp(x)
        denom = phi_sq + v + ex
        return (ex * (delta_sq - phi_sq - v - ex)) / (2.0 * denom * denom) - (x - a) / tau_sq

    big_a = a
    if delta_sq > phi_sq + v:
        big_b = math.log(delta_sq - phi_sq - v)
    else:
        k = 1
        while f(a - k * tau) < 0:
            k += 1
            if k > max_iterations:
                raise NumericNonConvergenceError(
                    "Volatility solver could not bracket the root", iterations=k
                )
        big_b = a - k * tau

    f_a = f(big_a)
    f_b = f(big_b)
    iterations = 0
    while abs(big_b - big_a) > epsilon:
        iterations += 1
        if iterations > max_iterations:
            raise NumericNonConvergenceError(
                f"Volatility solver did not converge after {max_iterations} iterations "
                f"(bracket width {abs(big_b - big_a):.3g})",
                iterations=iterations,
            )
        if f_b == f_a:
            # Degenerate secant; fall back to bisection for this step
            big_c = (big_a + big_b) / 2.0
        else:
            big_c = big_a + (big_a - big_b) * f_a / (f_b - f_a)
        f_c = f(big_c)
        if f_c * f_b < 0:
            big_a, f_a = big_b, f_b
        else:
            f_a = f_a / 2.0
        big_b, f_b = big_c, f_c

    return math.exp(big_a / 2.0)


# ---------------------------------------------------------------------------
# Public entry point
# ---------------------------------------------------------------------------

def calculate_new_rating(
    current: GlickoRating,
    results: Sequence[OpponentResult],
    params: Optional[GlickoParams] = None,
) -> GlickoRating:
    """
    Apply one rating period to ``current`` and return the new rating.

    Args:
        current: Player's rating before the period
        results: Every match the player completed in the period
        params: Solver parameters (defaults if omitted)

    Returns:
        New GlickoRating on the public scale

    Raises:
        NumericNonConvergenceError: if the volatility solve does not converge

    Example:
        new = calculate_new_rating(
            GlickoRating(1500, 200, 0.06),
            [
                OpponentResult(GlickoRating(1400, 30, 0.06), 1.0),
                OpponentResult(GlickoRating(1550, 100, 0.06), 0.0),
                OpponentResult(GlickoRating(1700, 300, 0.06), 0.0),
            ],
        )
    """
    params = params or GlickoParams()

    mu = to_glicko2_rating(current.rating)
    phi = to_glicko2_rd(current.rating_deviation)
    sigma = current.volatility

    if not results:
        phi_star = math.sqrt(phi * phi + sigma * sigma)
        return GlickoRating(
            rating=current.rating,
            rating_deviation=from_glicko2_rd(phi_star),
            volatility=sigma,
        )

    matches = [
        (
            to_glicko2_rating(r.opponent.rating),
            to_glicko2_rd(r.opponent.rating_deviation),
            r.score,
        )
        for r in results
    ]

    v = variance([(mu_opp, phi_opp) for mu_opp, phi_opp, _ in matches])
    score_sum = improvement_sum(mu, matches)
    delta = v * score_sum

    sigma_new = solve_volatility(
        v,
        delta,
        phi,
        sigma,
        tau=params.tau,
        epsilon=params.epsilon,
        max_iterations=params.max_iterations,
    )

    phi_star = math.sqrt(phi * phi + sigma_new * sigma_new)
    phi_new = 1.0 / math.sqrt(1.0 / (phi_star * phi_star) + 1.0 / v)
    mu_new = mu + phi_new * phi_new * score_sum

    new_rd = from_glicko2_rd(phi_new)
    if params.enforce_rd_floor:
        new_rd = max(new_rd, params.min_rating_deviation)

    return GlickoRating(
        rating=from_glicko2_rating(mu_new),
        rating_deviation=new_rd,
        volatility=sigma_new,
    )
