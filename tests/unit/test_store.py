"""
Tests for RatingStore: seeding rules, the write path and the processed flag.
"""

from datetime import datetime

import pytest
from sqlalchemy import func, select

from genki.db.models import LifetimeRating, Match, RatingHistoryEntry, SeasonalRating, TournamentRatingUpdate
from genki.match_results import MatchResult
from genki.ratings.glicko import GlickoRating
from genki.ratings.store import PlayerMatch, RatingStore, opponent_rating

ORG = "org-1"
CATEGORY = "ONE_PIECE_TCG"


@pytest.fixture
def store(db_session):
    return RatingStore(db_session)


class TestLoadOrInit:
    """Read-or-create semantics for both tracks."""

    def test_lifetime_starts_at_defaults(self, store, make_players):
        make_players("alice")
        record = store.load_or_init_lifetime("alice", ORG, CATEGORY)

        assert (record.rating, record.rating_deviation, record.volatility) == (1500, 350, 0.06)
        assert record.total_rated_matches == 0
        assert record.id is not None

    def test_lifetime_is_loaded_not_recreated(self, store, make_players):
        make_players("alice")
        first = store.load_or_init_lifetime("alice", ORG, CATEGORY)
        first.rating = 1612.0
        second = store.load_or_init_lifetime("alice", ORG, CATEGORY)

        assert second.id == first.id
        assert second.rating == 1612.0

    def test_categories_are_independent(self, store, make_players):
        make_players("alice")
        one_piece = store.load_or_init_lifetime("alice", ORG, "ONE_PIECE_TCG")
        riftbound = store.load_or_init_lifetime("alice", ORG, "RIFTBOUND")
        assert one_piece.id != riftbound.id

    def test_seasonal_seeds_from_current_lifetime(self, store, make_players, active_season):
        """A seasonal row copies the lifetime triple, not the global defaults."""
        make_players("alice")
        lifetime = store.load_or_init_lifetime("alice", ORG, CATEGORY)
        lifetime.rating, lifetime.rating_deviation, lifetime.volatility = 1700.0, 90.0, 0.05
        lifetime.total_rated_matches = 40

        seasonal = store.load_or_init_seasonal("alice", ORG, active_season.id, CATEGORY)

        assert (seasonal.rating, seasonal.rating_deviation, seasonal.volatility) == (1700.0, 90.0, 0.05)
        assert seasonal.total_rated_matches == 0
        assert seasonal.match_wins == seasonal.match_losses == seasonal.match_draws == 0

    def test_seasonal_without_lifetime_creates_both(self, store, make_players, active_season, db_session):
        make_players("alice")
        seasonal = store.load_or_init_seasonal("alice", ORG, active_season.id, CATEGORY)

        assert seasonal.rating == 1500.0
        assert store.get_lifetime("alice", ORG, CATEGORY) is not None


class TestSnapshots:

    def test_missing_players_are_omitted(self, store, make_players):
        make_players("alice", "bob")
        store.load_or_init_lifetime("alice", ORG, CATEGORY)

        snapshots = store.lifetime_snapshots(["alice", "bob"], ORG, CATEGORY)

        assert set(snapshots) == {"alice"}
        assert opponent_rating(snapshots, "bob") == GlickoRating.default()

    def test_empty_input(self, store):
        assert store.lifetime_snapshots([], ORG, CATEGORY) == {}


class TestWritePath:

    def test_write_lifetime_appends_one_history_row_per_match(
        self, store, make_players, make_tournament, db_session
    ):
        make_players("alice", "bob", "carol")
        tournament = make_tournament([[("alice", "bob", "PLAYER_A_WIN")], [("alice", "carol", "DRAW")]])
        record = store.load_or_init_lifetime("alice", ORG, CATEGORY)
        first_id, second_id = db_session.execute(select(Match.id).order_by(Match.id)).scalars().all()
        matches = [
            PlayerMatch(first_id, "bob", MatchResult.PLAYER_A_WIN, 1.0),
            PlayerMatch(second_id, "carol", MatchResult.DRAW, 0.5),
        ]
        new = GlickoRating(1560.0, 280.0, 0.0599)

        entries = store.write_lifetime(record, new, matches, tournament.id, {})
        db_session.flush()

        assert len(entries) == 2
        assert {e.rating_after for e in entries} == {1560.0}
        assert {e.rating_before for e in entries} == {1500.0}
        assert [e.opponent_id for e in entries] == ["bob", "carol"]
        assert record.total_rated_matches == 2
        assert (record.match_wins, record.match_losses, record.match_draws) == (1, 0, 1)
        assert record.last_match_at is not None

    def test_write_seasonal_has_no_history(self, store, make_players, active_season, db_session):
        make_players("alice")
        record = store.load_or_init_seasonal("alice", ORG, active_season.id, CATEGORY)
        store.write_seasonal(
            record,
            GlickoRating(1450.0, 300.0, 0.06),
            [PlayerMatch(1, "bob", MatchResult.PLAYER_B_WIN, 0.0)],
        )
        db_session.flush()

        assert record.rating == 1450.0
        assert record.match_losses == 1
        assert db_session.execute(select(func.count(RatingHistoryEntry.id))).scalar_one() == 0


class TestMarkTournamentProcessed:
    """The processed flag flips false -> true exactly once."""

    def test_compare_and_set(self, store, make_tournament):
        tournament = make_tournament([])

        assert store.mark_tournament_processed(tournament.id) is True
        assert tournament.ratings_processed is True
        assert tournament.ratings_processed_at is not None
        assert store.mark_tournament_processed(tournament.id) is False

    def test_loaded_tournament_sees_the_timestamp(self, store, make_tournament):
        tournament = make_tournament([])
        stamp = datetime(2026, 10, 1, 9, 30)

        store.mark_tournament_processed(tournament.id, processed_at=stamp)

        assert tournament.ratings_processed_at == stamp

    def test_losing_claim_leaves_timestamp_alone(self, store, make_tournament):
        tournament = make_tournament([])
        first = datetime(2026, 10, 1, 9, 30)
        store.mark_tournament_processed(tournament.id, processed_at=first)

        assert store.mark_tournament_processed(tournament.id, processed_at=datetime(2026, 10, 2)) is False
        assert tournament.ratings_processed_at == first


class TestResetCategory:

    def test_deletes_only_the_category(self, store, make_players, make_tournament, active_season, db_session):
        make_players("alice", "bob")
        store.load_or_init_seasonal("alice", ORG, active_season.id, CATEGORY)
        store.load_or_init_lifetime("bob", ORG, CATEGORY)
        kept = store.load_or_init_lifetime("alice", ORG, "RIFTBOUND")
        tournament = make_tournament([])
        store.mark_tournament_processed(tournament.id)

        counts = store.reset_category(ORG, CATEGORY)

        assert counts["lifetime_ratings"] == 2
        assert counts["seasonal_ratings"] == 1
        remaining = db_session.execute(select(LifetimeRating)).scalars().all()
        assert [r.id for r in remaining] == [kept.id]
        assert db_session.execute(select(func.count(SeasonalRating.id))).scalar_one() == 0
        assert db_session.execute(select(func.count(TournamentRatingUpdate.id))).scalar_one() == 0
        # Processing stays one-way
        db_session.refresh(tournament)
        assert tournament.ratings_processed is True
