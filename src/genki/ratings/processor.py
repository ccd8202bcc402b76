"""
Tournament rating processor - applies one completed tournament to ratings.

This is the only write path for rating values. A tournament is one
Glicko-2 rating period: every player's matches in it are applied in one
simultaneous update, on both the lifetime track and (when the tournament
resolves to a season) the seasonal track.

Flow for process_tournament_ratings():
1. Check preconditions: tournament exists, is COMPLETED, not yet processed
2. Collect every reported match and group it by player (both sides)
3. Resolve the season
4. Claim the tournament with a compare-and-set on ratings_processed
5. Snapshot every participant's lifetime/seasonal rating once, before any
   write - opponents are always rated at their pre-tournament values
6. Per player: compute new lifetime (and seasonal) ratings, apply the
   seasonal loss cap, write ratings, history rows and the audit row
7. Any per-player failure is raised as PlayerRatingUpdateError; the
   caller's transaction rolls back, including the claim in step 4, so
   the tournament stays unprocessed and can be retried as a whole

Usage:
    processor = TournamentRatingProcessor.from_settings()
    with get_session() as session:
        summary = processor.process_tournament_ratings(session, tournament_id)
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from time import perf_counter
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from genki.db.models import Match, Season, Tournament, TournamentRound, utcnow
from genki.match_results import MatchResult, TournamentStatus, score_for_player
from genki.ratings.constants import SEASONAL_LOSS_CAP
from genki.ratings.exceptions import (
    InvalidStateError,
    NotFoundError,
    PlayerRatingUpdateError,
)
from genki.ratings.glicko import GlickoParams, GlickoRating, OpponentResult, calculate_new_rating
from genki.ratings.seasons import SeasonManager
from genki.ratings.store import PlayerMatch, RatingStore, glicko_of, opponent_rating
from genki.ratings.tiers import map_rating_to_tier, tier_change

logger = logging.getLogger(__name__)


@dataclass
class PlayerUpdateSummary:
    """What processing did to one player."""
    user_id: str
    matches: int
    lifetime_before: float
    lifetime_after: float
    seasonal_before: Optional[float] = None
    seasonal_after: Optional[float] = None
    loss_cap_applied: bool = False
    tier_before: str = ""
    tier_after: str = ""
    tier_change: str = ""


@dataclass
class ProcessingResult:
    """Summary returned by TournamentRatingProcessor.process_tournament_ratings()."""
    tournament_id: int
    season_id: Optional[int]
    players: list[PlayerUpdateSummary] = field(default_factory=list)
    matches_rated: int = 0
    duration_s: float = 0.0

    @property
    def players_updated(self) -> int:
        return len(self.players)

    def to_dict(self) -> dict:
        return {
            "tournament_id": self.tournament_id,
            "season_id": self.season_id,
            "players_updated": self.players_updated,
            "matches_rated": self.matches_rated,
            "duration_s": round(self.duration_s, 3),
        }


def apply_seasonal_loss_cap(
    old_rating: float,
    new_rating: float,
    season_matches_before: int,
    match_threshold: int = SEASONAL_LOSS_CAP["match_threshold"],
    max_loss: float = SEASONAL_LOSS_CAP["max_loss"],
) -> tuple[float, bool]:
    """
    Limit a low-experience player's seasonal rating loss for one tournament.

    Returns:
        (rating, capped) - capped is True when the loss was clamped

    Examples:
        apply_seasonal_loss_cap(1500, 1380, 5)   # -> (1425.0, True)
        apply_seasonal_loss_cap(1500, 1380, 20)  # -> (1380, False)
        apply_seasonal_loss_cap(1500, 1600, 0)   # -> (1600, False)
    """
    if season_matches_before < match_threshold and new_rating - old_rating < -max_loss:
        return old_rating - max_loss, True
    return new_rating, False


def collect_player_matches(matches: list[Match]) -> dict[str, list[PlayerMatch]]:
    """
    Group reported matches by player.

    Byes (no player B) and unreported matches are skipped. Each rated match
    produces one entry for each of its two players, both scored from the
    same recorded result.

    Raises:
        InvalidStateError: a match pairs a player with themselves
    """
    by_player: dict[str, list[PlayerMatch]] = defaultdict(list)
    for match in matches:
        if match.result is None or match.player_b_id is None:
            continue
        a_id, b_id = match.player_a_id, match.player_b_id
        if a_id == b_id:
            raise InvalidStateError(f"Match {match.id} pairs player {a_id} with themselves")
        recorded = MatchResult(match.result)
        by_player[a_id].append(
            PlayerMatch(match.id, b_id, recorded, score_for_player(recorded, a_id, b_id))
        )
        by_player[b_id].append(
            PlayerMatch(match.id, a_id, recorded, score_for_player(recorded, b_id, a_id))
        )
    return dict(by_player)


class TournamentRatingProcessor:
    """
    Applies completed tournaments to lifetime and seasonal ratings, exactly once.

    Usage - single tournament (e.g. triggered when a tournament completes):

        processor = TournamentRatingProcessor.from_settings()
        with get_session() as session:
            processor.process_tournament_ratings(session, tournament_id)

    Usage - catch up on everything pending:

        outcomes = processor.process_pending_tournaments(get_session)
    """

    def __init__(self, params: Optional[GlickoParams] = None) -> None:
        self.params = params or GlickoParams()

    @classmethod
    def from_settings(cls) -> "TournamentRatingProcessor":
        return cls(GlickoParams.from_settings())

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def process_tournament_ratings(self, session: Session, tournament_id: int) -> ProcessingResult:
        """
        Apply one completed tournament to ratings.

        Does not commit; the caller owns the transaction.

        Raises:
            NotFoundError: unknown tournament
            InvalidStateError: tournament not COMPLETED, already processed,
                pairs a player with themselves, or names another org's season
            PlayerRatingUpdateError: a player's update failed (nothing should
                be committed; the tournament stays unprocessed)
        """
        started = perf_counter()
        tournament = session.get(Tournament, tournament_id)
        if tournament is None:
            raise NotFoundError(f"Tournament {tournament_id} not found")
        if tournament.status != TournamentStatus.COMPLETED.value:
            raise InvalidStateError(
                f"Tournament {tournament_id} is {tournament.status}; only COMPLETED tournaments are rated"
            )
        if tournament.ratings_processed:
            raise InvalidStateError(f"Tournament {tournament_id} ratings already processed")

        by_player = collect_player_matches(self._load_matches(session, tournament_id))
        season = SeasonManager(session).resolve_season_for_tournament(tournament)

        store = RatingStore(session)
        processed_at = utcnow()
        if not store.mark_tournament_processed(tournament_id, processed_at):
            raise InvalidStateError(
                f"Tournament {tournament_id} was processed concurrently by another caller"
            )

        if season is None:
            logger.warning(
                "Tournament %s has no season (org %s); updating lifetime ratings only",
                tournament_id, tournament.org_id,
            )
        elif tournament.season_id is None:
            tournament.season_id = season.id

        result = ProcessingResult(tournament_id=tournament_id, season_id=season.id if season else None)
        result.matches_rated = sum(len(m) for m in by_player.values()) // 2

        participants = list(by_player)
        lifetime_snapshots = store.lifetime_snapshots(participants, tournament.org_id, tournament.category)
        # An opponent without a seasonal row would be seeded from their lifetime
        # rating, so that is what they are rated at on the seasonal track
        seasonal_snapshots = (
            {
                **lifetime_snapshots,
                **store.seasonal_snapshots(participants, tournament.org_id, season.id, tournament.category),
            }
            if season is not None
            else {}
        )

        logger.info(
            "Processing tournament %s (%s): %d players, %d matches, season=%s",
            tournament_id, tournament.category, len(participants), result.matches_rated,
            season.id if season else None,
        )

        for user_id in sorted(participants):
            try:
                summary = self._update_player(
                    store,
                    tournament,
                    season,
                    user_id,
                    by_player[user_id],
                    lifetime_snapshots,
                    seasonal_snapshots,
                    processed_at,
                )
            except Exception as exc:
                logger.error(
                    "Rating update failed for player %s in tournament %s",
                    user_id, tournament_id, exc_info=True,
                )
                raise PlayerRatingUpdateError(tournament_id, user_id, exc) from exc
            result.players.append(summary)

        session.flush()
        result.duration_s = perf_counter() - started
        logger.info(
            "Processed tournament %s: %d players updated in %.2fs",
            tournament_id, result.players_updated, result.duration_s,
        )
        return result

    def process_pending_tournaments(self, session_factory, org_id: Optional[str] = None) -> list[dict]:
        """
        Process every COMPLETED, unprocessed tournament in start order.

        Each tournament runs in its own session/transaction from
        ``session_factory`` (a context manager like get_session), so one
        failure does not block the rest.

        Returns:
            One outcome dict per tournament: id, name, success, and either
            the processing summary or the error message.
        """
        with session_factory() as session:
            query = (
                select(Tournament.id, Tournament.name)
                .where(
                    Tournament.status == TournamentStatus.COMPLETED.value,
                    Tournament.ratings_processed.is_(False),
                )
                .order_by(Tournament.start_at.asc(), Tournament.id.asc())
            )
            if org_id is not None:
                query = query.where(Tournament.org_id == org_id)
            pending = session.execute(query).all()

        logger.info("Found %d tournaments pending rating processing", len(pending))
        outcomes = []
        for tournament_id, name in pending:
            try:
                with session_factory() as session:
                    summary = self.process_tournament_ratings(session, tournament_id)
                outcomes.append({"tournament_id": tournament_id, "name": name, "success": True, **summary.to_dict()})
            except Exception as exc:
                logger.error("Failed to process tournament %s (%s): %s", tournament_id, name, exc)
                outcomes.append({"tournament_id": tournament_id, "name": name, "success": False, "error": str(exc)})
        return outcomes

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _load_matches(session: Session, tournament_id: int) -> list[Match]:
        return list(
            session.execute(
                select(Match)
                .join(TournamentRound, Match.round_id == TournamentRound.id)
                .where(TournamentRound.tournament_id == tournament_id, Match.result.is_not(None))
                .order_by(TournamentRound.round_number.asc(), Match.id.asc())
            ).scalars()
        )

    def _rate(
        self, current: GlickoRating, matches: list[PlayerMatch], snapshots: dict[str, GlickoRating]
    ) -> GlickoRating:
        results = [
            OpponentResult(opponent=opponent_rating(snapshots, m.opponent_id), score=m.score)
            for m in matches
        ]
        return calculate_new_rating(current, results, self.params)

    def _update_player(
        self,
        store: RatingStore,
        tournament: Tournament,
        season: Optional[Season],
        user_id: str,
        matches: list[PlayerMatch],
        lifetime_snapshots: dict[str, GlickoRating],
        seasonal_snapshots: dict[str, GlickoRating],
        processed_at,
    ) -> PlayerUpdateSummary:
        org_id, category = tournament.org_id, tournament.category

        lifetime = store.load_or_init_lifetime(user_id, org_id, category)
        lifetime_before = glicko_of(lifetime)

        seasonal = None
        seasonal_before = None
        season_matches_before = 0
        if season is not None:
            seasonal = store.load_or_init_seasonal(user_id, org_id, season.id, category, lifetime=lifetime)
            seasonal_before = glicko_of(seasonal)
            season_matches_before = seasonal.total_rated_matches

        new_lifetime = self._rate(lifetime_before, matches, lifetime_snapshots)

        summary = PlayerUpdateSummary(
            user_id=user_id,
            matches=len(matches),
            lifetime_before=lifetime_before.rating,
            lifetime_after=new_lifetime.rating,
        )

        new_seasonal = None
        if seasonal is not None:
            raw_seasonal = self._rate(seasonal_before, matches, seasonal_snapshots)
            capped_rating, capped = apply_seasonal_loss_cap(
                seasonal_before.rating, raw_seasonal.rating, season_matches_before
            )
            if capped:
                logger.warning(
                    "Seasonal loss cap applied for %s: %.1f -> %.1f (raw %.1f, %d season matches)",
                    user_id, seasonal_before.rating, capped_rating, raw_seasonal.rating,
                    season_matches_before,
                )
            new_seasonal = GlickoRating(
                rating=capped_rating,
                rating_deviation=raw_seasonal.rating_deviation,
                volatility=raw_seasonal.volatility,
            )
            summary.seasonal_before = seasonal_before.rating
            summary.seasonal_after = new_seasonal.rating
            summary.loss_cap_applied = capped

        store.write_lifetime(
            lifetime, new_lifetime, matches, tournament.id, lifetime_snapshots, processed_at
        )
        if seasonal is not None:
            store.write_seasonal(seasonal, new_seasonal, matches, processed_at)

        tier_source_before = seasonal_before.rating if seasonal is not None else lifetime_before.rating
        tier_source_after = new_seasonal.rating if seasonal is not None else new_lifetime.rating
        tier_before = map_rating_to_tier(tier_source_before)
        tier_after = map_rating_to_tier(tier_source_after)
        direction = tier_change(tier_before, tier_after)

        store.record_tournament_update(
            tournament_id=tournament.id,
            season_id=season.id if season is not None else None,
            user_id=user_id,
            org_id=org_id,
            category=category,
            lifetime_rating_before=lifetime_before.rating,
            lifetime_rating_after=new_lifetime.rating,
            lifetime_rating_change=new_lifetime.rating - lifetime_before.rating,
            seasonal_rating_before=summary.seasonal_before,
            seasonal_rating_after=summary.seasonal_after,
            seasonal_rating_change=(
                summary.seasonal_after - summary.seasonal_before if seasonal is not None else None
            ),
            loss_cap_applied=summary.loss_cap_applied,
            tier_before=tier_before.value,
            tier_after=tier_after.value,
            tier_change=direction.value,
            matches_played=len(matches),
            created_at=processed_at,
        )

        summary.tier_before = tier_before.value
        summary.tier_after = tier_after.value
        summary.tier_change = direction.value
        logger.debug(
            "Player %s: lifetime %.1f -> %.1f, seasonal %s -> %s, tier %s -> %s",
            user_id, lifetime_before.rating, new_lifetime.rating,
            summary.seasonal_before, summary.seasonal_after, tier_before.value, tier_after.value,
        )
        return summary
