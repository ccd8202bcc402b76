"""
Tests for season lifecycle, season resolution and seasonal seeding.
"""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import select

from genki.db.models import SeasonalRating, to_naive_utc
from genki.ratings.exceptions import InvalidSeasonRangeError, InvalidStateError, NotFoundError
from genki.ratings.seasons import SeasonManager, SeasonStatus, initial_season_status
from genki.ratings.store import RatingStore

ORG = "org-1"
CATEGORY = "ONE_PIECE_TCG"
NOW = datetime(2026, 6, 15, 12, 0)


@pytest.fixture
def manager(db_session):
    return SeasonManager(db_session)


class TestInitialStatus:

    def test_future_season_is_upcoming(self):
        assert initial_season_status(NOW + timedelta(days=1), NOW + timedelta(days=30), True, NOW) \
            is SeasonStatus.UPCOMING

    def test_past_season_is_completed(self):
        assert initial_season_status(NOW - timedelta(days=30), NOW - timedelta(days=1), False, NOW) \
            is SeasonStatus.COMPLETED

    def test_current_season_activates_only_on_request(self):
        start, end = NOW - timedelta(days=1), NOW + timedelta(days=1)
        assert initial_season_status(start, end, True, NOW) is SeasonStatus.ACTIVE
        assert initial_season_status(start, end, False, NOW) is SeasonStatus.UPCOMING


class TestCreateSeason:

    def test_create(self, manager):
        season = manager.create_season(
            ORG, "Summer", NOW + timedelta(days=10), NOW + timedelta(days=100), now=NOW
        )
        assert season.id is not None
        assert season.status == "UPCOMING"

    def test_end_must_be_after_start(self, manager):
        with pytest.raises(InvalidSeasonRangeError):
            manager.create_season(ORG, "Backwards", NOW, NOW - timedelta(days=1), now=NOW)
        with pytest.raises(InvalidSeasonRangeError):
            manager.create_season(ORG, "Empty", NOW, NOW, now=NOW)

    @pytest.mark.parametrize(
        "start_offset,end_offset",
        [
            (5, 20),     # starts inside
            (-5, 5),     # ends inside
            (-10, 40),   # encloses
            (12, 18),    # enclosed
            (30, 45),    # touches the existing end date
        ],
    )
    def test_overlap_rejected(self, manager, start_offset, end_offset):
        manager.create_season(ORG, "Existing", NOW, NOW + timedelta(days=30), now=NOW)
        with pytest.raises(InvalidSeasonRangeError, match="Existing"):
            manager.create_season(
                ORG,
                "New",
                NOW + timedelta(days=start_offset),
                NOW + timedelta(days=end_offset),
                now=NOW,
            )

    def test_adjacent_season_allowed(self, manager):
        manager.create_season(ORG, "First", NOW, NOW + timedelta(days=30), now=NOW)
        second = manager.create_season(
            ORG, "Second", NOW + timedelta(days=30, seconds=1), NOW + timedelta(days=60), now=NOW
        )
        assert second.id is not None

    def test_other_org_does_not_overlap(self, manager):
        manager.create_season(ORG, "Ours", NOW, NOW + timedelta(days=30), now=NOW)
        theirs = manager.create_season("org-2", "Theirs", NOW, NOW + timedelta(days=30), now=NOW)
        assert theirs.org_id == "org-2"

    def test_auto_activate(self, manager):
        season = manager.create_season(
            ORG, "Now", NOW - timedelta(days=1), NOW + timedelta(days=30), auto_activate=True, now=NOW
        )
        assert season.status == "ACTIVE"
        assert manager.get_active_season(ORG).id == season.id


class TestUpdateSeasonStatus:

    def test_complete_then_activate_next(self, manager):
        current = manager.create_season(
            ORG, "S1", NOW - timedelta(days=30), NOW + timedelta(days=1), auto_activate=True, now=NOW
        )
        upcoming = manager.create_season(
            ORG, "S2", NOW + timedelta(days=2), NOW + timedelta(days=60), now=NOW
        )

        with pytest.raises(InvalidStateError):
            manager.update_season_status(upcoming.id, "ACTIVE")

        manager.update_season_status(current.id, "COMPLETED")
        manager.update_season_status(upcoming.id, "ACTIVE")

        assert manager.get_active_season(ORG).id == upcoming.id

    def test_reactivating_the_active_season_is_allowed(self, manager):
        season = manager.create_season(
            ORG, "S1", NOW - timedelta(days=1), NOW + timedelta(days=1), auto_activate=True, now=NOW
        )
        assert manager.update_season_status(season.id, "ACTIVE").status == "ACTIVE"

    def test_unknown_season(self, manager):
        with pytest.raises(NotFoundError):
            manager.update_season_status(999, "ACTIVE")

    def test_unknown_status(self, manager):
        season = manager.create_season(ORG, "S1", NOW, NOW + timedelta(days=1), now=NOW)
        with pytest.raises(ValueError):
            manager.update_season_status(season.id, "ARCHIVED")


class TestResolveSeason:

    def test_explicit_season_wins(self, manager, make_tournament, active_season):
        other = manager.create_season(ORG, "Old", datetime(2020, 1, 1), datetime(2020, 6, 1), now=NOW)
        tournament = make_tournament([], season_id=other.id)
        assert manager.resolve_season_for_tournament(tournament).id == other.id

    def test_falls_back_to_active(self, manager, make_tournament, active_season):
        tournament = make_tournament([])
        assert manager.resolve_season_for_tournament(tournament).id == active_season.id

    def test_no_season(self, manager, make_tournament):
        tournament = make_tournament([])
        assert manager.resolve_season_for_tournament(tournament) is None

    def test_season_of_another_org_rejected(self, manager, make_tournament):
        theirs = manager.create_season("org-2", "Theirs", datetime(2026, 1, 1), datetime(2026, 6, 1), now=NOW)
        tournament = make_tournament([], season_id=theirs.id)
        with pytest.raises(InvalidStateError, match="org-2"):
            manager.resolve_season_for_tournament(tournament)


class TestInitializeSeasonRatings:

    def test_seeds_every_lifetime_rating(self, manager, make_players, active_season, db_session):
        make_players("alice", "bob")
        store = RatingStore(db_session)
        alice = store.load_or_init_lifetime("alice", ORG, CATEGORY)
        alice.rating, alice.rating_deviation, alice.volatility = 1700.0, 90.0, 0.05
        store.load_or_init_lifetime("bob", ORG, "RIFTBOUND")

        result = manager.initialize_season_ratings_for_all_players(active_season.id)

        assert result["players_initialized"] == 2
        seasonal = store.get_seasonal("alice", ORG, active_season.id, CATEGORY)
        assert (seasonal.rating, seasonal.rating_deviation, seasonal.volatility) == (1700.0, 90.0, 0.05)
        assert store.get_seasonal("bob", ORG, active_season.id, "RIFTBOUND") is not None

    def test_rerun_reseeds(self, manager, make_players, active_season, db_session):
        make_players("alice")
        store = RatingStore(db_session)
        store.load_or_init_lifetime("alice", ORG, CATEGORY)
        manager.initialize_season_ratings_for_all_players(active_season.id)

        seasonal = store.get_seasonal("alice", ORG, active_season.id, CATEGORY)
        seasonal.rating = 1300.0
        seasonal.total_rated_matches = 9

        manager.initialize_season_ratings_for_all_players(active_season.id)

        rows = db_session.execute(select(SeasonalRating)).scalars().all()
        assert len(rows) == 1
        assert rows[0].rating == 1500.0
        assert rows[0].total_rated_matches == 0

    def test_other_orgs_are_ignored(self, manager, make_players, active_season, db_session):
        make_players("alice")
        RatingStore(db_session).load_or_init_lifetime("alice", "org-2", CATEGORY)
        result = manager.initialize_season_ratings_for_all_players(active_season.id)
        assert result["players_initialized"] == 0


class TestListAndAssign:

    def test_assign_tournaments_by_start_date(self, manager, make_tournament):
        season = manager.create_season(ORG, "S1", datetime(2026, 1, 1), datetime(2026, 3, 31), now=NOW)
        inside = make_tournament([], start_at=datetime(2026, 2, 1))
        outside = make_tournament([], start_at=datetime(2026, 5, 1))
        other_org = make_tournament([], start_at=datetime(2026, 2, 1), org_id="org-2")

        result = manager.assign_tournaments_to_seasons(ORG)

        assert result == {"tournaments_assigned": 1}
        assert inside.season_id == season.id
        assert outside.season_id is None
        assert other_org.season_id is None

    def test_list_seasons_with_counts(self, manager, make_tournament, make_players, db_session):
        old = manager.create_season(ORG, "Old", datetime(2025, 1, 1), datetime(2025, 6, 1), now=NOW)
        new = manager.create_season(ORG, "New", datetime(2026, 1, 1), datetime(2026, 6, 1), now=NOW)
        make_tournament([], season_id=new.id)
        make_tournament([], season_id=new.id)
        make_players("alice")
        RatingStore(db_session).load_or_init_seasonal("alice", ORG, new.id, CATEGORY)

        rows = manager.list_seasons(ORG)

        assert [r["season"].id for r in rows] == [new.id, old.id]
        assert rows[0]["tournament_count"] == 2
        assert rows[0]["seasonal_rating_count"] == 1
        assert rows[1]["tournament_count"] == 0

        completed = manager.list_seasons(ORG, status="COMPLETED")
        assert {r["season"].id for r in completed} == {new.id, old.id}


class TestDateNormalization:
    """Season dates arriving with a UTC offset are stored as naive UTC."""

    def test_offset_is_converted(self):
        value = datetime.fromisoformat("2026-01-01T02:00:00+02:00")
        assert to_naive_utc(value) == datetime(2026, 1, 1, 0, 0)

    def test_naive_passes_through(self):
        assert to_naive_utc(NOW) is NOW

    def test_offset_dates_create_a_season(self, manager):
        cet = timezone(timedelta(hours=1))
        start = to_naive_utc(datetime(2026, 7, 1, 1, 0, tzinfo=cet))
        end = to_naive_utc(datetime(2026, 9, 1, tzinfo=cet))

        season = manager.create_season(ORG, "Offsets", start, end)

        assert season.start_date == datetime(2026, 7, 1, 0, 0)
        assert season.status == "COMPLETED"
