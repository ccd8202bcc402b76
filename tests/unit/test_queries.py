"""
Tests for leaderboards, rating history and player ranks.
"""

import pytest

from genki.ratings.exceptions import NotFoundError
from genki.ratings.processor import TournamentRatingProcessor
from genki.ratings.queries import (
    get_lifetime_leaderboard,
    get_player_ranks,
    get_player_rating_history,
    get_season_leaderboard,
    reset_category_ratings,
)
from genki.ratings.store import RatingStore

ORG = "org-1"
CATEGORY = "ONE_PIECE_TCG"


@pytest.fixture
def rated_players(db_session, make_players):
    """Four lifetime ratings with known values; dave is established."""
    make_players("alice", "bob", "carol", "dave")
    store = RatingStore(db_session)
    values = {
        "alice": (1620.0, 200.0, 3),
        "bob": (1480.0, 300.0, 1),
        "carol": (2150.0, 110.0, 10),
        "dave": (1760.0, 80.0, 40),
    }
    for user_id, (rating, rd, matches) in values.items():
        record = store.load_or_init_lifetime(user_id, ORG, CATEGORY)
        record.rating, record.rating_deviation = rating, rd
        record.total_rated_matches = matches
        record.match_wins = matches // 2
    db_session.flush()
    return values


class TestLifetimeLeaderboard:

    def test_ordered_by_rating(self, db_session, rated_players):
        page = get_lifetime_leaderboard(db_session, ORG, CATEGORY)

        assert [e["user_id"] for e in page["entries"]] == ["carol", "dave", "alice", "bob"]
        assert [e["rank"] for e in page["entries"]] == [1, 2, 3, 4]
        assert [e["tier"] for e in page["entries"]] == ["GENKI", "PLATINUM", "GOLD", "SILVER"]
        assert page["total"] == 4

    def test_entry_shape(self, db_session, rated_players):
        dave = get_lifetime_leaderboard(db_session, ORG, CATEGORY)["entries"][1]

        assert dave["display_name"] == "DAVE"
        assert dave["is_provisional"] is False
        assert dave["total_rated_matches"] == 40
        assert dave["win_rate"] == 50.0

    def test_provisional_flag_and_filter(self, db_session, rated_players):
        entries = get_lifetime_leaderboard(db_session, ORG, CATEGORY)["entries"]
        assert {e["user_id"] for e in entries if e["is_provisional"]} == {"alice", "bob", "carol"}

        established = get_lifetime_leaderboard(db_session, ORG, CATEGORY, include_provisional=False)
        assert [e["user_id"] for e in established["entries"]] == ["dave"]
        assert established["total"] == 1

    def test_paging(self, db_session, rated_players):
        page = get_lifetime_leaderboard(db_session, ORG, CATEGORY, limit=3, offset=3)

        assert [e["user_id"] for e in page["entries"]] == ["bob"]
        assert page["entries"][0]["rank"] == 4
        assert (page["page"], page["page_size"], page["total_pages"]) == (2, 3, 2)

    def test_search_is_case_insensitive(self, db_session, rated_players):
        page = get_lifetime_leaderboard(db_session, ORG, CATEGORY, search="aRo")
        assert [e["user_id"] for e in page["entries"]] == ["carol"]

    def test_unrated_category_is_empty(self, db_session, rated_players):
        page = get_lifetime_leaderboard(db_session, ORG, "AZUKI_TCG")
        assert page["entries"] == []
        assert page["total"] == 0
        assert page["total_pages"] == 0


class TestSeasonLeaderboard:

    def test_ranks_seasonal_ratings(self, db_session, rated_players, active_season):
        store = RatingStore(db_session)
        for user_id in ("alice", "bob"):
            store.load_or_init_seasonal(user_id, ORG, active_season.id, CATEGORY)

        page = get_season_leaderboard(db_session, active_season.id, CATEGORY)

        assert [e["user_id"] for e in page["entries"]] == ["alice", "bob"]
        assert page["season_name"] == "Current Season"
        # Seasonal counters start at zero, so everyone is provisional
        assert all(e["is_provisional"] for e in page["entries"])

    def test_unknown_season(self, db_session):
        with pytest.raises(NotFoundError):
            get_season_leaderboard(db_session, 999, CATEGORY)


class TestPlayerHistory:

    def test_newest_first(self, db_session, make_players, make_tournament):
        from datetime import datetime

        make_players("alice", "bob")
        processor = TournamentRatingProcessor()
        first = make_tournament([[("alice", "bob", "PLAYER_A_WIN")]], start_at=datetime(2026, 1, 1))
        processor.process_tournament_ratings(db_session, first.id)
        second = make_tournament([[("alice", "bob", "PLAYER_B_WIN")]], start_at=datetime(2026, 1, 8))
        processor.process_tournament_ratings(db_session, second.id)

        page = get_player_rating_history(db_session, "alice", ORG, CATEGORY)

        assert page["total"] == 2
        assert [e["tournament_id"] for e in page["entries"]] == [second.id, first.id]
        assert page["entries"][0]["match_result"] == "PLAYER_B_WIN"
        assert page["entries"][0]["opponent_id"] == "bob"

    def test_never_rated_player_gets_empty_page(self, db_session):
        page = get_player_rating_history(db_session, "ghost", ORG, CATEGORY)
        assert page["entries"] == []
        assert page["total"] == 0


class TestPlayerRanks:

    def test_lifetime_and_active_season(self, db_session, rated_players, active_season):
        store = RatingStore(db_session)
        store.load_or_init_lifetime("alice", ORG, "RIFTBOUND")
        store.load_or_init_seasonal("alice", ORG, active_season.id, CATEGORY)

        ranks = get_player_ranks(db_session, "alice", ORG)

        assert ranks["active_season"] == {"id": active_season.id, "name": "Current Season"}
        by_category = {c["category"]: c for c in ranks["categories"]}
        assert set(by_category) == {"ONE_PIECE_TCG", "RIFTBOUND"}
        assert by_category["ONE_PIECE_TCG"]["lifetime"]["tier"] == "GOLD"
        assert by_category["ONE_PIECE_TCG"]["seasonal"]["tier"] == "GOLD"
        assert by_category["RIFTBOUND"]["seasonal"] is None

    def test_no_active_season(self, db_session, rated_players):
        ranks = get_player_ranks(db_session, "dave", ORG)
        assert ranks["active_season"] is None
        assert ranks["categories"][0]["lifetime"]["is_provisional"] is False
        assert ranks["categories"][0]["seasonal"] is None

    def test_unknown_player(self, db_session):
        assert get_player_ranks(db_session, "ghost", ORG)["categories"] == []


class TestResetCategoryRatings:

    def test_reset(self, db_session, rated_players):
        result = reset_category_ratings(db_session, ORG, CATEGORY)

        assert result["deleted"]["lifetime_ratings"] == 4
        assert get_lifetime_leaderboard(db_session, ORG, CATEGORY)["entries"] == []
