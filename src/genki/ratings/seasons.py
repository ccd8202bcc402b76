"""
Season lifecycle and season-scoped rating initialization.

A season belongs to one organization and moves UPCOMING -> ACTIVE ->
COMPLETED. Season date ranges within an organization never overlap, and
at most one season per organization is ACTIVE at a time.

Tournaments resolve to a season in this order:
1. Their explicit season_id
2. The organization's ACTIVE season
3. No season - only the lifetime track is updated
"""

from __future__ import annotations

import logging
from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import and_, func, or_, select, update
from sqlalchemy.orm import Session

from genki.db.models import LifetimeRating, Season, SeasonalRating, Tournament, utcnow
from genki.ratings.exceptions import InvalidSeasonRangeError, InvalidStateError, NotFoundError

logger = logging.getLogger(__name__)


class SeasonStatus(str, Enum):
    UPCOMING = "UPCOMING"
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"


def initial_season_status(
    start: datetime, end: datetime, auto_activate: bool, now: datetime
) -> SeasonStatus:
    """Status a newly created season starts in."""
    if auto_activate and start <= now <= end:
        return SeasonStatus.ACTIVE
    if start > now:
        return SeasonStatus.UPCOMING
    if end < now:
        return SeasonStatus.COMPLETED
    return SeasonStatus.UPCOMING


class SeasonManager:
    """Season administration and season resolution for tournaments."""

    def __init__(self, session: Session):
        self.session = session

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def get_season(self, season_id: int) -> Season:
        season = self.session.get(Season, season_id)
        if season is None:
            raise NotFoundError(f"Season {season_id} not found")
        return season

    def get_active_season(self, org_id: str) -> Optional[Season]:
        return self.session.execute(
            select(Season)
            .where(Season.org_id == org_id, Season.status == SeasonStatus.ACTIVE.value)
            .order_by(Season.start_date.desc())
            .limit(1)
        ).scalar_one_or_none()

    def list_seasons(self, org_id: str, status: Optional[str] = None) -> list[dict]:
        """All seasons of an organization, newest first, with usage counts."""
        tournament_counts = (
            select(Tournament.season_id, func.count(Tournament.id).label("n"))
            .group_by(Tournament.season_id)
            .subquery()
        )
        rating_counts = (
            select(SeasonalRating.season_id, func.count(SeasonalRating.id).label("n"))
            .group_by(SeasonalRating.season_id)
            .subquery()
        )
        query = (
            select(Season, tournament_counts.c.n, rating_counts.c.n)
            .outerjoin(tournament_counts, tournament_counts.c.season_id == Season.id)
            .outerjoin(rating_counts, rating_counts.c.season_id == Season.id)
            .where(Season.org_id == org_id)
            .order_by(Season.start_date.desc())
        )
        if status:
            query = query.where(Season.status == SeasonStatus(status).value)

        return [
            {
                "season": season,
                "tournament_count": n_tournaments or 0,
                "seasonal_rating_count": n_ratings or 0,
            }
            for season, n_tournaments, n_ratings in self.session.execute(query).all()
        ]

    def resolve_season_for_tournament(self, tournament: Tournament) -> Optional[Season]:
        """
        Season a tournament's results count toward, or None.

        None is a normal outcome: the tournament is rated on the lifetime
        track only.

        Raises:
            NotFoundError: the tournament names a season that does not exist
            InvalidStateError: the named season belongs to another org
        """
        if tournament.season_id is not None:
            season = self.get_season(tournament.season_id)
            if season.org_id != tournament.org_id:
                raise InvalidStateError(
                    f"Tournament {tournament.id} (org {tournament.org_id}) names season "
                    f"{season.id} of org {season.org_id}"
                )
            return season
        return self.get_active_season(tournament.org_id)

    # ------------------------------------------------------------------
    # Administration
    # ------------------------------------------------------------------

    def _find_overlap(self, org_id: str, start: datetime, end: datetime) -> Optional[Season]:
        # Closed intervals: touching endpoints count as overlap
        return self.session.execute(
            select(Season)
            .where(
                Season.org_id == org_id,
                or_(
                    # New season starts inside an existing one
                    and_(Season.start_date <= start, Season.end_date >= start),
                    # New season ends inside an existing one
                    and_(Season.start_date <= end, Season.end_date >= end),
                    # New season encloses an existing one
                    and_(Season.start_date >= start, Season.end_date <= end),
                ),
            )
            .limit(1)
        ).scalar_one_or_none()

    def create_season(
        self,
        org_id: str,
        name: str,
        start: datetime,
        end: datetime,
        auto_activate: bool = False,
        now: Optional[datetime] = None,
    ) -> Season:
        """
        Create a season for an organization.

        Raises:
            InvalidSeasonRangeError: if end <= start or the range overlaps
                an existing season of the same organization
            InvalidStateError: if the season would become ACTIVE while
                another season of the organization is ACTIVE
        """
        if end <= start:
            raise InvalidSeasonRangeError("Season end date must be after its start date")

        overlapping = self._find_overlap(org_id, start, end)
        if overlapping is not None:
            raise InvalidSeasonRangeError(
                f"Season overlaps with existing season: {overlapping.name}"
            )

        status = initial_season_status(start, end, auto_activate, now or utcnow())
        if status is SeasonStatus.ACTIVE:
            self._ensure_no_other_active(org_id)

        season = Season(
            org_id=org_id,
            name=name,
            start_date=start,
            end_date=end,
            status=status.value,
        )
        self.session.add(season)
        self.session.flush()
        logger.info("Created season %r for org %s (%s)", name, org_id, status.value)
        return season

    def _ensure_no_other_active(self, org_id: str, exclude_id: Optional[int] = None) -> None:
        active = self.get_active_season(org_id)
        if active is not None and active.id != exclude_id:
            raise InvalidStateError(
                f"Organization {org_id} already has an active season: {active.name}"
            )

    def update_season_status(self, season_id: int, status: str) -> Season:
        """
        Move a season to a new status.

        Raises:
            NotFoundError: unknown season
            InvalidStateError: activating while another season is ACTIVE
        """
        new_status = SeasonStatus(status)
        season = self.get_season(season_id)
        if new_status is SeasonStatus.ACTIVE:
            self._ensure_no_other_active(season.org_id, exclude_id=season.id)

        previous = season.status
        season.status = new_status.value
        self.session.flush()
        logger.info("Season %s status %s -> %s", season.id, previous, new_status.value)
        return season

    def initialize_season_ratings_for_all_players(self, season_id: int) -> dict:
        """
        Seed a seasonal rating for every lifetime rating in the season's org.

        Existing seasonal rows are overwritten back to the current lifetime
        triple with zeroed counters; re-running is a full re-seed.
        """
        season = self.get_season(season_id)
        lifetimes = self.session.execute(
            select(LifetimeRating).where(LifetimeRating.org_id == season.org_id)
        ).scalars().all()

        existing = {
            (row.user_id, row.category): row
            for row in self.session.execute(
                select(SeasonalRating).where(SeasonalRating.season_id == season.id)
            ).scalars()
        }

        for lifetime in lifetimes:
            seasonal = existing.get((lifetime.user_id, lifetime.category))
            if seasonal is None:
                seasonal = SeasonalRating(
                    user_id=lifetime.user_id,
                    org_id=lifetime.org_id,
                    season_id=season.id,
                    category=lifetime.category,
                )
                self.session.add(seasonal)
            seasonal.rating = lifetime.rating
            seasonal.rating_deviation = lifetime.rating_deviation
            seasonal.volatility = lifetime.volatility
            seasonal.total_rated_matches = 0
            seasonal.match_wins = 0
            seasonal.match_losses = 0
            seasonal.match_draws = 0
            seasonal.last_match_at = None

        self.session.flush()
        logger.info(
            "Initialized %d seasonal ratings for season %s (%s)",
            len(lifetimes), season.id, season.name,
        )
        return {
            "season_id": season.id,
            "season_name": season.name,
            "players_initialized": len(lifetimes),
        }

    def assign_tournaments_to_seasons(self, org_id: str) -> dict:
        """
        Backfill season_id on unassigned tournaments by start date.

        Only tournaments without a season are touched.
        """
        seasons = self.session.execute(
            select(Season).where(Season.org_id == org_id).order_by(Season.start_date.asc())
        ).scalars().all()

        assigned = 0
        for season in seasons:
            result = self.session.execute(
                update(Tournament)
                .where(
                    Tournament.org_id == org_id,
                    Tournament.season_id.is_(None),
                    Tournament.start_at >= season.start_date,
                    Tournament.start_at <= season.end_date,
                )
                .values(season_id=season.id)
                .execution_options(synchronize_session=False)
            )
            assigned += result.rowcount
        self.session.expire_all()

        logger.info("Assigned %d tournaments to seasons for org %s", assigned, org_id)
        return {"tournaments_assigned": assigned}
