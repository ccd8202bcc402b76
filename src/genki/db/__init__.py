"""
Database module for Genki.

Provides SQLAlchemy ORM models and session management.

Usage:
    from genki.db import get_session, LifetimeRating

    with get_session() as session:
        ratings = session.query(LifetimeRating).all()
"""

from genki.db.models import (
    Base,
    Player,
    Season,
    Tournament,
    TournamentRound,
    Match,
    LifetimeRating,
    SeasonalRating,
    RatingHistoryEntry,
    TournamentRatingUpdate,
)
from genki.db.session import get_session, get_engine, SessionLocal

__all__ = [
    # Base
    "Base",
    # Models
    "Player",
    "Season",
    "Tournament",
    "TournamentRound",
    "Match",
    "LifetimeRating",
    "SeasonalRating",
    "RatingHistoryEntry",
    "TournamentRatingUpdate",
    # Session
    "get_session",
    "get_engine",
    "SessionLocal",
]
