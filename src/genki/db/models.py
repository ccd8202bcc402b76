"""
SQLAlchemy ORM models for Genki.

This module defines all database tables and their relationships.
The schema is designed around two independent rating tracks per player
and game category:

- Lifetime ratings: one row per (player, org, category), never reset
- Seasonal ratings: one row per (player, org, season, category), seeded
  from the lifetime rating when the player is first seen in a season

Both tracks share the same columns through RatingTrackMixin so the rating
math and the store treat them as one shape with two key layouts.

Tournament, round and match tables hold the data the surrounding platform
hands to the rating engine. Their only rating-specific columns are the
`ratings_processed` flag and timestamp on tournaments, which guard against
applying one tournament twice.

Tables:
- players: Platform users that can hold ratings
- seasons: Competitive seasons per organization
- tournaments: Events whose completed results feed the ratings
- tournament_rounds: Rounds within a tournament
- matches: Individual pairings and their final result
- lifetime_ratings: Permanent rating per player/category
- seasonal_ratings: Rating per player/category within one season
- rating_history: Append-only per-match lifetime rating trace
- tournament_rating_updates: Per-player audit of each processed tournament
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def utcnow() -> datetime:
    """Naive UTC timestamp, matching the DateTime columns below."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: datetime) -> datetime:
    """Convert an offset-aware datetime to naive UTC; naive values pass through."""
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy models.

    Using the new SQLAlchemy 2.0 style with DeclarativeBase
    for better type hints and modern patterns.
    """
    pass


# =============================================================================
# Platform Models
# =============================================================================

class Player(Base):
    """
    A platform user who can appear in tournaments.

    The id is the platform's user id (a string), so player ordering for
    match scoring is lexical on this column.
    """
    __tablename__ = "players"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    display_name: Mapped[str] = mapped_column(String(200), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    def __repr__(self) -> str:
        return f"<Player(id='{self.id}', name='{self.display_name}')>"


class Season(Base):
    """
    A competitive season for one organization.

    Status lifecycle: UPCOMING -> ACTIVE -> COMPLETED. At most one season
    per organization may be ACTIVE; the partial unique index enforces it
    at the database level as well as in SeasonManager.
    """
    __tablename__ = "seasons"

    id: Mapped[int] = mapped_column(primary_key=True)
    org_id: Mapped[str] = mapped_column(String(64), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    start_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    end_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="UPCOMING")

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)

    tournaments: Mapped[list["Tournament"]] = relationship(back_populates="season")

    __table_args__ = (
        CheckConstraint("end_date > start_date", name="ck_season_dates"),
        Index("idx_seasons_org_start", "org_id", "start_date"),
        Index(
            "uq_seasons_one_active_per_org",
            "org_id",
            unique=True,
            postgresql_where=text("status = 'ACTIVE'"),
            sqlite_where=text("status = 'ACTIVE'"),
        ),
    )

    def __repr__(self) -> str:
        return f"<Season(id={self.id}, org='{self.org_id}', name='{self.name}', status='{self.status}')>"


class Tournament(Base):
    """
    A tournament run by an organization in one game category.

    The rating engine reads its rounds and matches once it is COMPLETED,
    and flips `ratings_processed` exactly once.
    """
    __tablename__ = "tournaments"

    id: Mapped[int] = mapped_column(primary_key=True)
    org_id: Mapped[str] = mapped_column(String(64), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    category: Mapped[str] = mapped_column(String(30), nullable=False)
    status: Mapped[str] = mapped_column(String(30), nullable=False, default="DRAFT")
    start_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    # Explicit season assignment (optional - otherwise resolved at processing time)
    season_id: Mapped[Optional[int]] = mapped_column(ForeignKey("seasons.id"), nullable=True)

    # Idempotency guard: set once, never cleared
    ratings_processed: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=text("false")
    )
    ratings_processed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    season: Mapped[Optional["Season"]] = relationship(back_populates="tournaments")
    rounds: Mapped[list["TournamentRound"]] = relationship(
        back_populates="tournament",
        cascade="all, delete-orphan",
        order_by="TournamentRound.round_number",
    )

    __table_args__ = (
        Index("idx_tournaments_org_status", "org_id", "status"),
        Index("idx_tournaments_pending_ratings", "status", "ratings_processed", "start_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<Tournament(id={self.id}, name='{self.name}', status='{self.status}', "
            f"processed={self.ratings_processed})>"
        )


class TournamentRound(Base):
    """A single round of a tournament."""
    __tablename__ = "tournament_rounds"

    id: Mapped[int] = mapped_column(primary_key=True)
    tournament_id: Mapped[int] = mapped_column(
        ForeignKey("tournaments.id", ondelete="CASCADE"), nullable=False
    )
    round_number: Mapped[int] = mapped_column(Integer, nullable=False)

    tournament: Mapped["Tournament"] = relationship(back_populates="rounds")
    matches: Mapped[list["Match"]] = relationship(
        back_populates="round",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        UniqueConstraint("tournament_id", "round_number", name="uq_round_number"),
    )

    def __repr__(self) -> str:
        return f"<TournamentRound(tournament_id={self.tournament_id}, round={self.round_number})>"


class Match(Base):
    """
    One pairing within a round.

    player_b_id is NULL for a bye. result stays NULL until the match is
    reported; only matches with both players and a result are rated.
    """
    __tablename__ = "matches"

    id: Mapped[int] = mapped_column(primary_key=True)
    round_id: Mapped[int] = mapped_column(
        ForeignKey("tournament_rounds.id", ondelete="CASCADE"), nullable=False
    )
    table_number: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    player_a_id: Mapped[str] = mapped_column(ForeignKey("players.id"), nullable=False)
    player_b_id: Mapped[Optional[str]] = mapped_column(ForeignKey("players.id"), nullable=True)

    # PLAYER_A_WIN | PLAYER_B_WIN | DRAW | INTENTIONAL_DRAW | DOUBLE_LOSS | PLAYER_A_DQ | PLAYER_B_DQ
    result: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)

    round: Mapped["TournamentRound"] = relationship(back_populates="matches")

    __table_args__ = (
        Index("idx_matches_round", "round_id"),
    )

    def __repr__(self) -> str:
        return f"<Match(id={self.id}, a='{self.player_a_id}', b='{self.player_b_id}', result={self.result})>"


# =============================================================================
# Rating Models
# =============================================================================

class RatingTrackMixin:
    """
    Columns shared by the lifetime and seasonal rating tracks.

    Rating values are stored on the public (Glicko-1) scale.
    """

    rating: Mapped[float] = mapped_column(Float, nullable=False)
    rating_deviation: Mapped[float] = mapped_column(Float, nullable=False)
    volatility: Mapped[float] = mapped_column(Float, nullable=False)

    total_rated_matches: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    match_wins: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    match_losses: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    match_draws: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_match_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)

    @property
    def win_rate(self) -> float:
        """Percentage of rated matches won (0.0 when no matches)."""
        if not self.total_rated_matches:
            return 0.0
        return round(self.match_wins / self.total_rated_matches * 100, 1)


class LifetimeRating(RatingTrackMixin, Base):
    """
    A player's permanent rating in one category of one organization.

    Created lazily with default Glicko values the first time the player
    finishes a rated match. Never reset except by an admin category reset.
    """
    __tablename__ = "lifetime_ratings"

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[str] = mapped_column(ForeignKey("players.id"), nullable=False)
    org_id: Mapped[str] = mapped_column(String(64), nullable=False)
    category: Mapped[str] = mapped_column(String(30), nullable=False)

    player: Mapped["Player"] = relationship()
    history: Mapped[list["RatingHistoryEntry"]] = relationship(
        back_populates="lifetime_rating",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        UniqueConstraint("user_id", "org_id", "category", name="uq_lifetime_rating"),
        Index("idx_lifetime_leaderboard", "org_id", "category", "rating"),
    )

    def __repr__(self) -> str:
        return (
            f"<LifetimeRating(user='{self.user_id}', category='{self.category}', "
            f"rating={self.rating:.1f})>"
        )


class SeasonalRating(RatingTrackMixin, Base):
    """
    A player's rating in one category within one season.

    Seeded from the player's lifetime rating (not from defaults), with
    zeroed counters.
    """
    __tablename__ = "seasonal_ratings"

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[str] = mapped_column(ForeignKey("players.id"), nullable=False)
    org_id: Mapped[str] = mapped_column(String(64), nullable=False)
    season_id: Mapped[int] = mapped_column(
        ForeignKey("seasons.id", ondelete="CASCADE"), nullable=False
    )
    category: Mapped[str] = mapped_column(String(30), nullable=False)

    player: Mapped["Player"] = relationship()

    __table_args__ = (
        UniqueConstraint("user_id", "org_id", "season_id", "category", name="uq_seasonal_rating"),
        Index("idx_seasonal_leaderboard", "season_id", "category", "rating"),
    )

    def __repr__(self) -> str:
        return (
            f"<SeasonalRating(user='{self.user_id}', season={self.season_id}, "
            f"category='{self.category}', rating={self.rating:.1f})>"
        )


class RatingHistoryEntry(Base):
    """
    One lifetime-track history row per rated match per player.

    Glicko-2 updates a player once per tournament, so every row written
    for the same tournament carries the same before/after values; the
    rows differ in opponent and result.
    """
    __tablename__ = "rating_history"

    id: Mapped[int] = mapped_column(primary_key=True)
    lifetime_rating_id: Mapped[int] = mapped_column(
        ForeignKey("lifetime_ratings.id", ondelete="CASCADE"), nullable=False
    )
    tournament_id: Mapped[Optional[int]] = mapped_column(ForeignKey("tournaments.id"), nullable=True)
    match_id: Mapped[Optional[int]] = mapped_column(ForeignKey("matches.id"), nullable=True)

    rating_before: Mapped[float] = mapped_column(Float, nullable=False)
    rating_after: Mapped[float] = mapped_column(Float, nullable=False)
    rating_change: Mapped[float] = mapped_column(Float, nullable=False)
    rd_before: Mapped[float] = mapped_column(Float, nullable=False)
    rd_after: Mapped[float] = mapped_column(Float, nullable=False)
    volatility_before: Mapped[float] = mapped_column(Float, nullable=False)
    volatility_after: Mapped[float] = mapped_column(Float, nullable=False)

    opponent_id: Mapped[str] = mapped_column(ForeignKey("players.id"), nullable=False)
    opponent_rating_before: Mapped[float] = mapped_column(Float, nullable=False)
    match_result: Mapped[str] = mapped_column(String(30), nullable=False)

    calculated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    lifetime_rating: Mapped["LifetimeRating"] = relationship(back_populates="history")
    opponent: Mapped["Player"] = relationship()
    tournament: Mapped[Optional["Tournament"]] = relationship()

    __table_args__ = (
        Index("idx_rating_history_rating_date", "lifetime_rating_id", "calculated_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<RatingHistoryEntry(rating_id={self.lifetime_rating_id}, match={self.match_id}, "
            f"{self.rating_before:.0f} -> {self.rating_after:.0f})>"
        )


class TournamentRatingUpdate(Base):
    """
    Audit row: what one tournament did to one player's ratings.

    Seasonal columns are NULL when the tournament had no season. Tiers are
    taken from the seasonal rating when present, else the lifetime rating.
    """
    __tablename__ = "tournament_rating_updates"

    id: Mapped[int] = mapped_column(primary_key=True)
    tournament_id: Mapped[int] = mapped_column(ForeignKey("tournaments.id"), nullable=False)
    season_id: Mapped[Optional[int]] = mapped_column(ForeignKey("seasons.id"), nullable=True)
    user_id: Mapped[str] = mapped_column(ForeignKey("players.id"), nullable=False)
    org_id: Mapped[str] = mapped_column(String(64), nullable=False)
    category: Mapped[str] = mapped_column(String(30), nullable=False)

    lifetime_rating_before: Mapped[float] = mapped_column(Float, nullable=False)
    lifetime_rating_after: Mapped[float] = mapped_column(Float, nullable=False)
    lifetime_rating_change: Mapped[float] = mapped_column(Float, nullable=False)

    seasonal_rating_before: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    seasonal_rating_after: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    seasonal_rating_change: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    loss_cap_applied: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    tier_before: Mapped[str] = mapped_column(String(20), nullable=False)
    tier_after: Mapped[str] = mapped_column(String(20), nullable=False)
    tier_change: Mapped[str] = mapped_column(String(10), nullable=False)

    matches_played: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("tournament_id", "user_id", name="uq_tournament_rating_update"),
        Index("idx_rating_updates_user", "user_id", "org_id", "category"),
    )

    def __repr__(self) -> str:
        return (
            f"<TournamentRatingUpdate(tournament={self.tournament_id}, user='{self.user_id}', "
            f"{self.tier_before} -> {self.tier_after})>"
        )
