from dataclasses import asdict
from datetime import datetime
from typing import Optional

from fastapi import Depends, FastAPI, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, field_validator
from sqlalchemy.orm import Session

from genki.config import settings
from genki.db.models import Season, to_naive_utc
from genki.db.session import get_db
from genki.match_results import Category
from genki.ratings import queries
from genki.ratings.exceptions import (
    InvalidSeasonRangeError,
    InvalidStateError,
    NotFoundError,
    RatingError,
)
from genki.ratings.processor import TournamentRatingProcessor
from genki.ratings.seasons import SeasonManager, SeasonStatus

app = FastAPI(title="Genki Ratings")

processor = TournamentRatingProcessor.from_settings()


# =============================================================================
# Error mapping
# =============================================================================

@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse({"error": str(exc)}, status_code=404)


@app.exception_handler(InvalidStateError)
async def invalid_state_handler(request: Request, exc: InvalidStateError):
    return JSONResponse({"error": str(exc)}, status_code=409)


@app.exception_handler(InvalidSeasonRangeError)
async def invalid_range_handler(request: Request, exc: InvalidSeasonRangeError):
    return JSONResponse({"error": str(exc)}, status_code=400)


@app.exception_handler(RatingError)
async def rating_error_handler(request: Request, exc: RatingError):
    """Computation and per-player update failures; nothing was committed."""
    return JSONResponse({"error": str(exc)}, status_code=500)


# =============================================================================
# Request bodies
# =============================================================================

class SeasonCreate(BaseModel):
    org_id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=200)
    start_date: datetime
    end_date: datetime
    auto_activate: bool = False

    @field_validator("start_date", "end_date")
    @classmethod
    def normalize_dates(cls, v: datetime) -> datetime:
        return to_naive_utc(v)


class SeasonStatusUpdate(BaseModel):
    status: SeasonStatus


def _season_to_dict(season: Season) -> dict:
    return {
        "id": season.id,
        "org_id": season.org_id,
        "name": season.name,
        "start_date": season.start_date.isoformat(),
        "end_date": season.end_date.isoformat(),
        "status": season.status,
    }


# =============================================================================
# Processing
# =============================================================================

@app.post("/api/ratings/tournaments/{tournament_id}/process")
async def api_process_tournament(tournament_id: int, db: Session = Depends(get_db)):
    """
    Apply a completed tournament to lifetime and seasonal ratings.

    409 if the tournament is not COMPLETED or was already processed.
    """
    result = processor.process_tournament_ratings(db, tournament_id)
    db.commit()
    return JSONResponse({
        **result.to_dict(),
        "players": [asdict(p) for p in result.players],
    })


# =============================================================================
# Leaderboards, history, ranks
# =============================================================================

@app.get("/api/ratings/leaderboard/lifetime")
async def api_lifetime_leaderboard(
    db: Session = Depends(get_db),
    org_id: str = Query(..., description="Organization id"),
    category: Category = Query(..., description="Game category"),
    limit: int = Query(
        settings.leaderboard_default_limit, ge=1, le=settings.leaderboard_max_limit,
        description="Page size",
    ),
    offset: int = Query(0, ge=0, description="Rows to skip"),
    search: Optional[str] = Query(None, description="Display name search (partial match)"),
    include_provisional: bool = Query(True, description="Include provisional ratings"),
):
    """Lifetime leaderboard, highest rating first."""
    return JSONResponse(
        queries.get_lifetime_leaderboard(
            db, org_id, category.value,
            limit=limit, offset=offset, search=search, include_provisional=include_provisional,
        )
    )


@app.get("/api/ratings/seasons/{season_id}/leaderboard")
async def api_season_leaderboard(
    season_id: int,
    db: Session = Depends(get_db),
    category: Category = Query(..., description="Game category"),
    limit: int = Query(
        settings.leaderboard_default_limit, ge=1, le=settings.leaderboard_max_limit,
        description="Page size",
    ),
    offset: int = Query(0, ge=0, description="Rows to skip"),
):
    """Season leaderboard, highest rating first."""
    return JSONResponse(
        queries.get_season_leaderboard(db, season_id, category.value, limit=limit, offset=offset)
    )


@app.get("/api/ratings/players/{user_id}/history")
async def api_player_history(
    user_id: str,
    db: Session = Depends(get_db),
    org_id: str = Query(..., description="Organization id"),
    category: Category = Query(..., description="Game category"),
    limit: int = Query(
        settings.leaderboard_default_limit, ge=1, le=settings.leaderboard_max_limit,
        description="Page size",
    ),
    offset: int = Query(0, ge=0, description="Rows to skip"),
):
    """Lifetime rating history, newest first. Empty for never-rated players."""
    return JSONResponse(
        queries.get_player_rating_history(db, user_id, org_id, category.value, limit=limit, offset=offset)
    )


@app.get("/api/ratings/players/{user_id}/ranks")
async def api_player_ranks(
    user_id: str,
    db: Session = Depends(get_db),
    org_id: str = Query(..., description="Organization id"),
):
    return JSONResponse(queries.get_player_ranks(db, user_id, org_id))


@app.post("/api/ratings/categories/{category}/reset")
async def api_reset_category(
    category: Category,
    db: Session = Depends(get_db),
    org_id: str = Query(..., description="Organization id"),
):
    """Delete every rating row of one category. Processed flags are kept."""
    result = queries.reset_category_ratings(db, org_id, category.value)
    db.commit()
    return JSONResponse(result)


# =============================================================================
# Seasons
# =============================================================================

@app.get("/api/ratings/seasons")
async def api_list_seasons(
    db: Session = Depends(get_db),
    org_id: str = Query(..., description="Organization id"),
    status: Optional[SeasonStatus] = Query(None, description="Filter by status"),
):
    rows = SeasonManager(db).list_seasons(org_id, status.value if status else None)
    return JSONResponse({
        "seasons": [
            {
                **_season_to_dict(row["season"]),
                "tournament_count": row["tournament_count"],
                "seasonal_rating_count": row["seasonal_rating_count"],
            }
            for row in rows
        ]
    })


@app.post("/api/ratings/seasons", status_code=201)
async def api_create_season(body: SeasonCreate, db: Session = Depends(get_db)):
    season = SeasonManager(db).create_season(
        body.org_id,
        body.name,
        body.start_date,
        body.end_date,
        auto_activate=body.auto_activate,
    )
    db.commit()
    return JSONResponse(_season_to_dict(season), status_code=201)


@app.get("/api/ratings/seasons/active")
async def api_active_season(
    db: Session = Depends(get_db),
    org_id: str = Query(..., description="Organization id"),
):
    season = SeasonManager(db).get_active_season(org_id)
    return JSONResponse({"season": _season_to_dict(season) if season else None})


@app.post("/api/ratings/seasons/assign-tournaments")
async def api_assign_tournaments(
    db: Session = Depends(get_db),
    org_id: str = Query(..., description="Organization id"),
):
    result = SeasonManager(db).assign_tournaments_to_seasons(org_id)
    db.commit()
    return JSONResponse(result)


@app.get("/api/ratings/seasons/{season_id}")
async def api_get_season(season_id: int, db: Session = Depends(get_db)):
    return JSONResponse(_season_to_dict(SeasonManager(db).get_season(season_id)))


@app.patch("/api/ratings/seasons/{season_id}/status")
async def api_update_season_status(
    season_id: int,
    body: SeasonStatusUpdate,
    db: Session = Depends(get_db),
):
    season = SeasonManager(db).update_season_status(season_id, body.status.value)
    db.commit()
    return JSONResponse(_season_to_dict(season))


@app.post("/api/ratings/seasons/{season_id}/initialize")
async def api_initialize_season(season_id: int, db: Session = Depends(get_db)):
    """Seed (or re-seed) seasonal ratings for every lifetime-rated player."""
    result = SeasonManager(db).initialize_season_ratings_for_all_players(season_id)
    db.commit()
    return JSONResponse(result)


# Only for debugging
if __name__ == "__main__":
    import uvicorn
    uvicorn.run("genki.web.main:app", host=settings.api_host, port=settings.api_port, reload=settings.api_reload)
