"""
Pytest configuration and fixtures.

This file is automatically loaded by pytest and provides
shared fixtures for all tests.
"""

from datetime import datetime, timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from genki.db.models import Base, Match, Player, Season, Tournament, TournamentRound, utcnow


ORG = "org-1"
CATEGORY = "ONE_PIECE_TCG"


@pytest.fixture(scope="session")
def test_engine():
    """
    Create a test database engine.

    Uses SQLite in-memory for fast tests that don't need
    PostgreSQL-specific features.
    """
    engine = create_engine(
        "sqlite:///:memory:",
        echo=False,
    )
    return engine


@pytest.fixture(scope="session")
def tables(test_engine):
    """
    Create all tables for testing.

    This fixture runs once per test session.
    """
    Base.metadata.create_all(test_engine)
    yield
    Base.metadata.drop_all(test_engine)


@pytest.fixture
def db_session(test_engine, tables):
    """
    Create a database session for a test.

    Each test gets its own session with automatic rollback,
    ensuring tests don't affect each other.
    """
    connection = test_engine.connect()
    transaction = connection.begin()

    Session = sessionmaker(bind=connection)
    session = Session()

    yield session

    session.close()
    transaction.rollback()
    connection.close()


@pytest.fixture
def make_players(db_session):
    """Create players by id (display name defaults to the id upper-cased)."""

    def _make(*player_ids: str) -> list[Player]:
        players = [Player(id=pid, display_name=pid.upper()) for pid in player_ids]
        db_session.add_all(players)
        db_session.flush()
        return players

    return _make


@pytest.fixture
def make_tournament(db_session):
    """
    Create a tournament with one round per entry in ``rounds``.

    Each round is a list of (player_a_id, player_b_id, result) tuples;
    player_b_id None is a bye, result None is an unreported match.
    """

    def _make(
        rounds: list[list[tuple]],
        status: str = "COMPLETED",
        org_id: str = ORG,
        category: str = CATEGORY,
        season_id: int | None = None,
        start_at: datetime | None = None,
        name: str = "Weekly",
    ) -> Tournament:
        tournament = Tournament(
            org_id=org_id,
            name=name,
            category=category,
            status=status,
            season_id=season_id,
            start_at=start_at or utcnow(),
        )
        db_session.add(tournament)
        db_session.flush()

        for number, pairings in enumerate(rounds, start=1):
            tournament_round = TournamentRound(tournament_id=tournament.id, round_number=number)
            db_session.add(tournament_round)
            db_session.flush()
            for table, (a_id, b_id, result) in enumerate(pairings, start=1):
                db_session.add(
                    Match(
                        round_id=tournament_round.id,
                        table_number=table,
                        player_a_id=a_id,
                        player_b_id=b_id,
                        result=result,
                    )
                )
        db_session.flush()
        return tournament

    return _make


@pytest.fixture
def active_season(db_session):
    """An ACTIVE season for ORG spanning today."""
    now = utcnow()
    season = Season(
        org_id=ORG,
        name="Current Season",
        start_date=now - timedelta(days=30),
        end_date=now + timedelta(days=60),
        status="ACTIVE",
    )
    db_session.add(season)
    db_session.flush()
    return season
