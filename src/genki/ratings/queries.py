"""
Read-side rating queries: leaderboards, rating history and player ranks.

Only the admin category reset writes. Missing rating data is never an
error: an unrated player is simply absent from a leaderboard, and a
never-rated player's history is an empty page.

Numeric ratings are included in every payload for admin tooling; the
tier is what player-facing views should show.
"""

from __future__ import annotations

import math
from typing import Optional

from sqlalchemy import and_, func, select
from sqlalchemy.orm import Session

from genki.config import settings
from genki.db.models import LifetimeRating, Player, RatingHistoryEntry, SeasonalRating
from genki.ratings.constants import PROVISIONAL_MATCH_THRESHOLD, PROVISIONAL_RD_THRESHOLD
from genki.ratings.seasons import SeasonManager
from genki.ratings.store import RatingStore
from genki.ratings.tiers import is_provisional, map_rating_to_tier


def _clamp_limit(limit: Optional[int]) -> int:
    if limit is None:
        return settings.leaderboard_default_limit
    return max(1, min(limit, settings.leaderboard_max_limit))


def _page_info(total: int, limit: int, offset: int) -> dict:
    return {
        "total": total,
        "page": offset // limit + 1,
        "page_size": limit,
        "total_pages": math.ceil(total / limit) if total else 0,
    }


def serialize_rating(record, display_name: Optional[str] = None) -> dict:
    """Public shape of one lifetime or seasonal rating row."""
    tier = map_rating_to_tier(record.rating)
    return {
        "user_id": record.user_id,
        "display_name": display_name,
        "category": record.category,
        "tier": tier.value,
        "is_provisional": is_provisional(record.rating_deviation, record.total_rated_matches),
        "rating": round(record.rating, 1),
        "rating_deviation": round(record.rating_deviation, 1),
        "volatility": record.volatility,
        "total_rated_matches": record.total_rated_matches,
        "match_wins": record.match_wins,
        "match_losses": record.match_losses,
        "match_draws": record.match_draws,
        "win_rate": record.win_rate,
        "last_match_at": record.last_match_at.isoformat() if record.last_match_at else None,
    }


def _established(model):
    """SQL condition for a rating that is no longer provisional."""
    return and_(
        model.rating_deviation <= PROVISIONAL_RD_THRESHOLD,
        model.total_rated_matches >= PROVISIONAL_MATCH_THRESHOLD,
    )


def _leaderboard_page(session: Session, query, model, limit: int, offset: int) -> dict:
    total = session.execute(
        select(func.count()).select_from(query.order_by(None).subquery())
    ).scalar_one()

    rows = session.execute(
        query.order_by(model.rating.desc(), model.user_id.asc()).limit(limit).offset(offset)
    ).all()

    entries = []
    for i, (record, display_name) in enumerate(rows):
        entry = serialize_rating(record, display_name)
        entry["rank"] = offset + i + 1
        entries.append(entry)

    return {"entries": entries, **_page_info(total, limit, offset)}


def get_lifetime_leaderboard(
    session: Session,
    org_id: str,
    category: str,
    limit: Optional[int] = None,
    offset: int = 0,
    search: Optional[str] = None,
    include_provisional: bool = True,
) -> dict:
    """
    Lifetime ratings of one org/category ranked by rating, highest first.

    Args:
        search: Case-insensitive substring filter on display name
        include_provisional: If False, only established ratings are listed
    """
    limit = _clamp_limit(limit)
    offset = max(0, offset)

    query = (
        select(LifetimeRating, Player.display_name)
        .join(Player, Player.id == LifetimeRating.user_id)
        .where(LifetimeRating.org_id == org_id, LifetimeRating.category == category)
    )
    if search:
        query = query.where(Player.display_name.ilike(f"%{search.strip()}%"))
    if not include_provisional:
        query = query.where(_established(LifetimeRating))

    page = _leaderboard_page(session, query, LifetimeRating, limit, offset)
    page.update({"org_id": org_id, "category": category})
    return page


def get_season_leaderboard(
    session: Session,
    season_id: int,
    category: str,
    limit: Optional[int] = None,
    offset: int = 0,
) -> dict:
    """
    Seasonal ratings of one season/category ranked by rating, highest first.

    Raises:
        NotFoundError: unknown season
    """
    season = SeasonManager(session).get_season(season_id)
    limit = _clamp_limit(limit)
    offset = max(0, offset)

    query = (
        select(SeasonalRating, Player.display_name)
        .join(Player, Player.id == SeasonalRating.user_id)
        .where(SeasonalRating.season_id == season.id, SeasonalRating.category == category)
    )

    page = _leaderboard_page(session, query, SeasonalRating, limit, offset)
    page.update({
        "season_id": season.id,
        "season_name": season.name,
        "season_status": season.status,
        "category": category,
    })
    return page


def get_player_rating_history(
    session: Session,
    user_id: str,
    org_id: str,
    category: str,
    limit: Optional[int] = None,
    offset: int = 0,
) -> dict:
    """Lifetime rating history of one player, newest first."""
    limit = _clamp_limit(limit)
    offset = max(0, offset)

    base = (
        select(RatingHistoryEntry)
        .join(LifetimeRating, LifetimeRating.id == RatingHistoryEntry.lifetime_rating_id)
        .where(
            LifetimeRating.user_id == user_id,
            LifetimeRating.org_id == org_id,
            LifetimeRating.category == category,
        )
    )
    total = session.execute(select(func.count()).select_from(base.subquery())).scalar_one()
    rows = session.execute(
        base.order_by(RatingHistoryEntry.calculated_at.desc(), RatingHistoryEntry.id.desc())
        .limit(limit)
        .offset(offset)
    ).scalars()

    entries = [
        {
            "id": entry.id,
            "tournament_id": entry.tournament_id,
            "match_id": entry.match_id,
            "opponent_id": entry.opponent_id,
            "opponent_rating_before": round(entry.opponent_rating_before, 1),
            "match_result": entry.match_result,
            "rating_before": round(entry.rating_before, 1),
            "rating_after": round(entry.rating_after, 1),
            "rating_change": round(entry.rating_change, 1),
            "rd_before": round(entry.rd_before, 1),
            "rd_after": round(entry.rd_after, 1),
            "volatility_before": entry.volatility_before,
            "volatility_after": entry.volatility_after,
            "calculated_at": entry.calculated_at.isoformat(),
        }
        for entry in rows
    ]
    return {
        "user_id": user_id,
        "org_id": org_id,
        "category": category,
        "entries": entries,
        **_page_info(total, limit, offset),
    }


def get_player_ranks(session: Session, user_id: str, org_id: str) -> dict:
    """
    A player's tier in every category they are rated in within one org.

    Each category carries the lifetime rating and, when the org has an
    ACTIVE season and the player has a row in it, the seasonal rating.
    """
    lifetimes = session.execute(
        select(LifetimeRating)
        .where(LifetimeRating.user_id == user_id, LifetimeRating.org_id == org_id)
        .order_by(LifetimeRating.category.asc())
    ).scalars().all()

    active = SeasonManager(session).get_active_season(org_id)
    seasonal_by_category = {}
    if active is not None:
        seasonal_by_category = {
            row.category: row
            for row in session.execute(
                select(SeasonalRating).where(
                    SeasonalRating.user_id == user_id,
                    SeasonalRating.season_id == active.id,
                )
            ).scalars()
        }

    categories = []
    for lifetime in lifetimes:
        seasonal = seasonal_by_category.get(lifetime.category)
        categories.append({
            "category": lifetime.category,
            "lifetime": serialize_rating(lifetime),
            "seasonal": serialize_rating(seasonal) if seasonal is not None else None,
        })

    return {
        "user_id": user_id,
        "org_id": org_id,
        "active_season": (
            {"id": active.id, "name": active.name} if active is not None else None
        ),
        "categories": categories,
    }


def reset_category_ratings(session: Session, org_id: str, category: str) -> dict:
    """Admin reset of every rating in one org/category (see RatingStore.reset_category)."""
    counts = RatingStore(session).reset_category(org_id, category)
    return {"org_id": org_id, "category": category, "deleted": counts}
