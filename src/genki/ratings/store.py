"""
Rating persistence: read-or-create, snapshots, and the write path.

RatingStore owns every read and write of the rating tables. It does not
compute ratings - TournamentRatingProcessor hands it finished GlickoRating
values and the matches they came from.

Both tracks go through the same helpers; they differ only in key shape
and in how a missing row is seeded:
- Lifetime: seeded from the global defaults (1500 / 350 / 0.06)
- Seasonal: seeded from the player's *current* lifetime triple

Usage:
    store = RatingStore(session)
    lifetime = store.load_or_init_lifetime("user-1", "org-1", "ONE_PIECE_TCG")
    seasonal = store.load_or_init_seasonal("user-1", "org-1", season.id, "ONE_PIECE_TCG")
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional, Union

from sqlalchemy import delete, select, update
from sqlalchemy.orm import Session

from genki.db.models import (
    LifetimeRating,
    RatingHistoryEntry,
    SeasonalRating,
    Tournament,
    TournamentRatingUpdate,
    utcnow,
)
from genki.match_results import DRAW, LOSS, WIN, MatchResult
from genki.ratings.glicko import GlickoRating

logger = logging.getLogger(__name__)

RatingRecord = Union[LifetimeRating, SeasonalRating]


@dataclass(frozen=True)
class PlayerMatch:
    """One rated match from a single player's point of view."""
    match_id: int
    opponent_id: str
    result: MatchResult  # as recorded
    score: float


def glicko_of(record: RatingRecord) -> GlickoRating:
    """Current rating triple of a stored record."""
    return GlickoRating(
        rating=record.rating,
        rating_deviation=record.rating_deviation,
        volatility=record.volatility,
    )


def opponent_rating(snapshots: dict[str, GlickoRating], opponent_id: str) -> GlickoRating:
    """Snapshot for an opponent, or the default rating if they have never been rated."""
    return snapshots.get(opponent_id) or GlickoRating.default()


class RatingStore:
    """Session-bound access to lifetime/seasonal ratings, history and audit rows."""

    def __init__(self, session: Session):
        self.session = session

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_lifetime(self, user_id: str, org_id: str, category: str) -> Optional[LifetimeRating]:
        return self.session.execute(
            select(LifetimeRating).where(
                LifetimeRating.user_id == user_id,
                LifetimeRating.org_id == org_id,
                LifetimeRating.category == category,
            )
        ).scalar_one_or_none()

    def get_seasonal(
        self, user_id: str, org_id: str, season_id: int, category: str
    ) -> Optional[SeasonalRating]:
        return self.session.execute(
            select(SeasonalRating).where(
                SeasonalRating.user_id == user_id,
                SeasonalRating.org_id == org_id,
                SeasonalRating.season_id == season_id,
                SeasonalRating.category == category,
            )
        ).scalar_one_or_none()

    def lifetime_snapshots(
        self, user_ids: Iterable[str], org_id: str, category: str
    ) -> dict[str, GlickoRating]:
        """
        Bulk-load lifetime ratings for a set of players.

        Players without a row are simply absent from the result; use
        opponent_rating() to fall back to defaults.
        """
        ids = list(set(user_ids))
        if not ids:
            return {}
        rows = self.session.execute(
            select(LifetimeRating).where(
                LifetimeRating.org_id == org_id,
                LifetimeRating.category == category,
                LifetimeRating.user_id.in_(ids),
            )
        ).scalars()
        return {row.user_id: glicko_of(row) for row in rows}

    def seasonal_snapshots(
        self, user_ids: Iterable[str], org_id: str, season_id: int, category: str
    ) -> dict[str, GlickoRating]:
        """Bulk-load seasonal ratings for a set of players (missing rows omitted)."""
        ids = list(set(user_ids))
        if not ids:
            return {}
        rows = self.session.execute(
            select(SeasonalRating).where(
                SeasonalRating.org_id == org_id,
                SeasonalRating.season_id == season_id,
                SeasonalRating.category == category,
                SeasonalRating.user_id.in_(ids),
            )
        ).scalars()
        return {row.user_id: glicko_of(row) for row in rows}

    # ------------------------------------------------------------------
    # Read-or-create
    # ------------------------------------------------------------------

    def load_or_init_lifetime(self, user_id: str, org_id: str, category: str) -> LifetimeRating:
        """Return the lifetime row, creating it with default Glicko values if missing."""
        record = self.get_lifetime(user_id, org_id, category)
        if record is not None:
            return record

        default = GlickoRating.default()
        record = LifetimeRating(
            user_id=user_id,
            org_id=org_id,
            category=category,
            rating=default.rating,
            rating_deviation=default.rating_deviation,
            volatility=default.volatility,
            total_rated_matches=0,
            match_wins=0,
            match_losses=0,
            match_draws=0,
        )
        self.session.add(record)
        self.session.flush()
        logger.debug("Created lifetime rating for %s (%s/%s)", user_id, org_id, category)
        return record

    def load_or_init_seasonal(
        self,
        user_id: str,
        org_id: str,
        season_id: int,
        category: str,
        lifetime: Optional[LifetimeRating] = None,
    ) -> SeasonalRating:
        """
        Return the seasonal row, creating it from the current lifetime triple if missing.

        Args:
            lifetime: The player's lifetime row, if the caller already has it.
                      Loaded (or initialized) otherwise.
        """
        record = self.get_seasonal(user_id, org_id, season_id, category)
        if record is not None:
            return record

        if lifetime is None:
            lifetime = self.load_or_init_lifetime(user_id, org_id, category)

        record = SeasonalRating(
            user_id=user_id,
            org_id=org_id,
            season_id=season_id,
            category=category,
            rating=lifetime.rating,
            rating_deviation=lifetime.rating_deviation,
            volatility=lifetime.volatility,
            total_rated_matches=0,
            match_wins=0,
            match_losses=0,
            match_draws=0,
        )
        self.session.add(record)
        self.session.flush()
        logger.debug(
            "Seeded seasonal rating for %s in season %s from lifetime %.1f",
            user_id, season_id, lifetime.rating,
        )
        return record

    # ------------------------------------------------------------------
    # Write path
    # ------------------------------------------------------------------

    @staticmethod
    def _apply(record: RatingRecord, new: GlickoRating, matches: list[PlayerMatch], played_at: datetime) -> None:
        """Overwrite the rating triple and bump the counters."""
        record.rating = new.rating
        record.rating_deviation = new.rating_deviation
        record.volatility = new.volatility
        record.total_rated_matches += len(matches)
        record.match_wins += sum(1 for m in matches if m.score == WIN)
        record.match_losses += sum(1 for m in matches if m.score == LOSS)
        record.match_draws += sum(1 for m in matches if m.score == DRAW)
        if matches:
            record.last_match_at = played_at

    def write_lifetime(
        self,
        record: LifetimeRating,
        new: GlickoRating,
        matches: list[PlayerMatch],
        tournament_id: Optional[int],
        opponent_snapshots: dict[str, GlickoRating],
        played_at: Optional[datetime] = None,
    ) -> list[RatingHistoryEntry]:
        """
        Persist a lifetime update and append one history row per match.

        Every history row carries the batch-level before/after values:
        Glicko-2 updates once per rating period, not once per match.
        """
        played_at = played_at or utcnow()
        before = glicko_of(record)
        self._apply(record, new, matches, played_at)

        entries = []
        for match in matches:
            entry = RatingHistoryEntry(
                lifetime_rating_id=record.id,
                tournament_id=tournament_id,
                match_id=match.match_id,
                rating_before=before.rating,
                rating_after=new.rating,
                rating_change=new.rating - before.rating,
                rd_before=before.rating_deviation,
                rd_after=new.rating_deviation,
                volatility_before=before.volatility,
                volatility_after=new.volatility,
                opponent_id=match.opponent_id,
                opponent_rating_before=opponent_rating(opponent_snapshots, match.opponent_id).rating,
                match_result=MatchResult(match.result).value,
                calculated_at=played_at,
            )
            self.session.add(entry)
            entries.append(entry)
        return entries

    def write_seasonal(
        self,
        record: SeasonalRating,
        new: GlickoRating,
        matches: list[PlayerMatch],
        played_at: Optional[datetime] = None,
    ) -> None:
        """Persist a seasonal update (no per-match history on this track)."""
        self._apply(record, new, matches, played_at or utcnow())

    def record_tournament_update(self, **fields) -> TournamentRatingUpdate:
        """Append the per-player audit row for a processed tournament."""
        audit = TournamentRatingUpdate(**fields)
        self.session.add(audit)
        return audit

    def mark_tournament_processed(self, tournament_id: int, processed_at: Optional[datetime] = None) -> bool:
        """
        Compare-and-set the tournament's processed flag from false to true.

        Returns:
            True if this call flipped the flag, False if it was already set
            (another caller got there first).
        """
        result = self.session.execute(
            update(Tournament)
            .where(Tournament.id == tournament_id, Tournament.ratings_processed.is_(False))
            .values(ratings_processed=True, ratings_processed_at=processed_at or utcnow())
            .execution_options(synchronize_session="fetch")
        )
        if result.rowcount != 1:
            return False
        # Bring an already-loaded Tournament in line with the row
        tournament = self.session.get(Tournament, tournament_id)
        if tournament is not None:
            self.session.refresh(tournament, ["ratings_processed", "ratings_processed_at"])
        return True

    # ------------------------------------------------------------------
    # Admin
    # ------------------------------------------------------------------

    def reset_category(self, org_id: str, category: str) -> dict[str, int]:
        """
        Delete every rating row of one category in one organization.

        Removes history, audit rows, seasonal and lifetime ratings. Tournament
        processed flags are left untouched.
        """
        lifetime_ids = select(LifetimeRating.id).where(
            LifetimeRating.org_id == org_id,
            LifetimeRating.category == category,
        )
        history = self.session.execute(
            delete(RatingHistoryEntry)
            .where(RatingHistoryEntry.lifetime_rating_id.in_(lifetime_ids))
            .execution_options(synchronize_session=False)
        ).rowcount
        audits = self.session.execute(
            delete(TournamentRatingUpdate)
            .where(
                TournamentRatingUpdate.org_id == org_id,
                TournamentRatingUpdate.category == category,
            )
            .execution_options(synchronize_session=False)
        ).rowcount
        seasonal = self.session.execute(
            delete(SeasonalRating)
            .where(SeasonalRating.org_id == org_id, SeasonalRating.category == category)
            .execution_options(synchronize_session=False)
        ).rowcount
        lifetime = self.session.execute(
            delete(LifetimeRating)
            .where(LifetimeRating.org_id == org_id, LifetimeRating.category == category)
            .execution_options(synchronize_session=False)
        ).rowcount
        self.session.expire_all()

        counts = {
            "lifetime_ratings": lifetime,
            "seasonal_ratings": seasonal,
            "history_entries": history,
            "tournament_updates": audits,
        }
        logger.warning("Reset %s ratings for org %s: %s", category, org_id, counts)
        return counts
