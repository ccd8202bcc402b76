"""Create ratings schema: platform tables, seasons, rating tracks, history, audit

Revision ID: 5e1d0c7b3a92
Revises:
Create Date: 2026-10-19 09:00:00.000000+00:00
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# Revision identifiers, used by Alembic.
revision: str = "5e1d0c7b3a92"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _rating_track_columns() -> list[sa.Column]:
    return [
        sa.Column("rating", sa.Float(), nullable=False),
        sa.Column("rating_deviation", sa.Float(), nullable=False),
        sa.Column("volatility", sa.Float(), nullable=False),
        sa.Column("total_rated_matches", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("match_wins", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("match_losses", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("match_draws", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_match_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("updated_at", sa.DateTime(), nullable=True, server_default=sa.text("CURRENT_TIMESTAMP")),
    ]


def upgrade() -> None:
    op.create_table(
        "players",
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column("display_name", sa.String(length=200), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=True, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "seasons",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("org_id", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("start_date", sa.DateTime(), nullable=False),
        sa.Column("end_date", sa.DateTime(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="UPCOMING"),
        sa.Column("created_at", sa.DateTime(), nullable=True, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("updated_at", sa.DateTime(), nullable=True, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.CheckConstraint("end_date > start_date", name="ck_season_dates"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_seasons_org_start", "seasons", ["org_id", "start_date"])
    op.create_index(
        "uq_seasons_one_active_per_org",
        "seasons",
        ["org_id"],
        unique=True,
        postgresql_where=sa.text("status = 'ACTIVE'"),
        sqlite_where=sa.text("status = 'ACTIVE'"),
    )

    op.create_table(
        "tournaments",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("org_id", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("category", sa.String(length=30), nullable=False),
        sa.Column("status", sa.String(length=30), nullable=False, server_default="DRAFT"),
        sa.Column("start_at", sa.DateTime(), nullable=True),
        sa.Column("season_id", sa.Integer(), nullable=True),
        sa.Column("ratings_processed", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("ratings_processed_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.ForeignKeyConstraint(["season_id"], ["seasons.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_tournaments_org_status", "tournaments", ["org_id", "status"])
    op.create_index(
        "idx_tournaments_pending_ratings", "tournaments", ["status", "ratings_processed", "start_at"]
    )

    op.create_table(
        "tournament_rounds",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("tournament_id", sa.Integer(), nullable=False),
        sa.Column("round_number", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["tournament_id"], ["tournaments.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("tournament_id", "round_number", name="uq_round_number"),
    )

    op.create_table(
        "matches",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("round_id", sa.Integer(), nullable=False),
        sa.Column("table_number", sa.Integer(), nullable=True),
        sa.Column("player_a_id", sa.String(length=64), nullable=False),
        sa.Column("player_b_id", sa.String(length=64), nullable=True),
        sa.Column("result", sa.String(length=30), nullable=True),
        sa.ForeignKeyConstraint(["round_id"], ["tournament_rounds.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["player_a_id"], ["players.id"]),
        sa.ForeignKeyConstraint(["player_b_id"], ["players.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_matches_round", "matches", ["round_id"])

    op.create_table(
        "lifetime_ratings",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("org_id", sa.String(length=64), nullable=False),
        sa.Column("category", sa.String(length=30), nullable=False),
        *_rating_track_columns(),
        sa.ForeignKeyConstraint(["user_id"], ["players.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id", "org_id", "category", name="uq_lifetime_rating"),
    )
    op.create_index("idx_lifetime_leaderboard", "lifetime_ratings", ["org_id", "category", "rating"])

    op.create_table(
        "seasonal_ratings",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("org_id", sa.String(length=64), nullable=False),
        sa.Column("season_id", sa.Integer(), nullable=False),
        sa.Column("category", sa.String(length=30), nullable=False),
        *_rating_track_columns(),
        sa.ForeignKeyConstraint(["user_id"], ["players.id"]),
        sa.ForeignKeyConstraint(["season_id"], ["seasons.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id", "org_id", "season_id", "category", name="uq_seasonal_rating"),
    )
    op.create_index("idx_seasonal_leaderboard", "seasonal_ratings", ["season_id", "category", "rating"])

    op.create_table(
        "rating_history",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("lifetime_rating_id", sa.Integer(), nullable=False),
        sa.Column("tournament_id", sa.Integer(), nullable=True),
        sa.Column("match_id", sa.Integer(), nullable=True),
        sa.Column("rating_before", sa.Float(), nullable=False),
        sa.Column("rating_after", sa.Float(), nullable=False),
        sa.Column("rating_change", sa.Float(), nullable=False),
        sa.Column("rd_before", sa.Float(), nullable=False),
        sa.Column("rd_after", sa.Float(), nullable=False),
        sa.Column("volatility_before", sa.Float(), nullable=False),
        sa.Column("volatility_after", sa.Float(), nullable=False),
        sa.Column("opponent_id", sa.String(length=64), nullable=False),
        sa.Column("opponent_rating_before", sa.Float(), nullable=False),
        sa.Column("match_result", sa.String(length=30), nullable=False),
        sa.Column("calculated_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.ForeignKeyConstraint(["lifetime_rating_id"], ["lifetime_ratings.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["tournament_id"], ["tournaments.id"]),
        sa.ForeignKeyConstraint(["match_id"], ["matches.id"]),
        sa.ForeignKeyConstraint(["opponent_id"], ["players.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "idx_rating_history_rating_date", "rating_history", ["lifetime_rating_id", "calculated_at"]
    )

    op.create_table(
        "tournament_rating_updates",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("tournament_id", sa.Integer(), nullable=False),
        sa.Column("season_id", sa.Integer(), nullable=True),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("org_id", sa.String(length=64), nullable=False),
        sa.Column("category", sa.String(length=30), nullable=False),
        sa.Column("lifetime_rating_before", sa.Float(), nullable=False),
        sa.Column("lifetime_rating_after", sa.Float(), nullable=False),
        sa.Column("lifetime_rating_change", sa.Float(), nullable=False),
        sa.Column("seasonal_rating_before", sa.Float(), nullable=True),
        sa.Column("seasonal_rating_after", sa.Float(), nullable=True),
        sa.Column("seasonal_rating_change", sa.Float(), nullable=True),
        sa.Column("loss_cap_applied", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("tier_before", sa.String(length=20), nullable=False),
        sa.Column("tier_after", sa.String(length=20), nullable=False),
        sa.Column("tier_change", sa.String(length=10), nullable=False),
        sa.Column("matches_played", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.ForeignKeyConstraint(["tournament_id"], ["tournaments.id"]),
        sa.ForeignKeyConstraint(["season_id"], ["seasons.id"]),
        sa.ForeignKeyConstraint(["user_id"], ["players.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("tournament_id", "user_id", name="uq_tournament_rating_update"),
    )
    op.create_index(
        "idx_rating_updates_user", "tournament_rating_updates", ["user_id", "org_id", "category"]
    )


def downgrade() -> None:
    op.drop_index("idx_rating_updates_user", table_name="tournament_rating_updates")
    op.drop_table("tournament_rating_updates")
    op.drop_index("idx_rating_history_rating_date", table_name="rating_history")
    op.drop_table("rating_history")
    op.drop_index("idx_seasonal_leaderboard", table_name="seasonal_ratings")
    op.drop_table("seasonal_ratings")
    op.drop_index("idx_lifetime_leaderboard", table_name="lifetime_ratings")
    op.drop_table("lifetime_ratings")
    op.drop_index("idx_matches_round", table_name="matches")
    op.drop_table("matches")
    op.drop_table("tournament_rounds")
    op.drop_index("idx_tournaments_pending_ratings", table_name="tournaments")
    op.drop_index("idx_tournaments_org_status", table_name="tournaments")
    op.drop_table("tournaments")
    op.drop_index("uq_seasons_one_active_per_org", table_name="seasons")
    op.drop_index("idx_seasons_org_start", table_name="seasons")
    op.drop_table("seasons")
    op.drop_table("players")
