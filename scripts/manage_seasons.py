#!/usr/bin/env python3
"""
Season and category administration.

Create a season (optionally activating it if today falls inside it):
    python scripts/manage_seasons.py create --org-id org-1 --name "Season 3" \
        --start 2026-01-01 --end 2026-03-31 --activate

List seasons:
    python scripts/manage_seasons.py list --org-id org-1

Change a season's status:
    python scripts/manage_seasons.py status --season-id 3 --status COMPLETED

Seed seasonal ratings from lifetime ratings:
    python scripts/manage_seasons.py initialize --season-id 3

Backfill season_id on tournaments by start date:
    python scripts/manage_seasons.py assign --org-id org-1

Wipe every rating of one category (asks for confirmation):
    python scripts/manage_seasons.py reset-category --org-id org-1 --category RIFTBOUND
"""
from __future__ import annotations

import argparse
import logging
import sys
from datetime import datetime
from pathlib import Path

# Add src to path so this script can be run directly
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from genki.config import settings
from genki.db import get_session
from genki.db.models import to_naive_utc
from genki.match_results import Category
from genki.ratings.exceptions import RatingError
from genki.ratings.queries import reset_category_ratings
from genki.ratings.seasons import SeasonManager, SeasonStatus

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger(__name__)


def _parse_date(value: str) -> datetime:
    try:
        return to_naive_utc(datetime.fromisoformat(value))
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"not an ISO date: {value!r}") from exc


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Season and category administration.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    sub = parser.add_subparsers(dest="command", required=True)

    create = sub.add_parser("create", help="Create a season")
    create.add_argument("--org-id", required=True)
    create.add_argument("--name", required=True)
    create.add_argument("--start", required=True, type=_parse_date, help="Start date (ISO)")
    create.add_argument("--end", required=True, type=_parse_date, help="End date (ISO)")
    create.add_argument(
        "--activate",
        action="store_true",
        help="Make the season ACTIVE if today is within its range",
    )

    listing = sub.add_parser("list", help="List seasons")
    listing.add_argument("--org-id", required=True)
    listing.add_argument("--status", choices=[s.value for s in SeasonStatus], default=None)

    status = sub.add_parser("status", help="Change a season's status")
    status.add_argument("--season-id", required=True, type=int)
    status.add_argument("--status", required=True, choices=[s.value for s in SeasonStatus])

    init = sub.add_parser("initialize", help="Seed seasonal ratings from lifetime ratings")
    init.add_argument("--season-id", required=True, type=int)

    assign = sub.add_parser("assign", help="Backfill tournament season assignments")
    assign.add_argument("--org-id", required=True)

    reset = sub.add_parser("reset-category", help="Delete every rating of one category")
    reset.add_argument("--org-id", required=True)
    reset.add_argument("--category", required=True, choices=[c.value for c in Category])
    reset.add_argument("--yes", action="store_true", help="Skip the confirmation prompt")

    return parser


def main() -> int:
    args = _build_parser().parse_args()

    if args.command == "reset-category" and not args.yes:
        answer = input(
            f"Delete ALL {args.category} ratings for org {args.org_id}? Type the category to confirm: "
        )
        if answer.strip() != args.category:
            print("Aborted.")
            return 1

    try:
        with get_session() as session:
            manager = SeasonManager(session)

            if args.command == "create":
                season = manager.create_season(
                    args.org_id, args.name, args.start, args.end, auto_activate=args.activate
                )
                print(f"Created season id={season.id} name={season.name!r} status={season.status}")

            elif args.command == "list":
                for row in manager.list_seasons(args.org_id, args.status):
                    season = row["season"]
                    print(
                        f"  #{season.id:<4} {season.name:<24} {season.status:<10} "
                        f"{season.start_date:%Y-%m-%d} -> {season.end_date:%Y-%m-%d}  "
                        f"tournaments={row['tournament_count']} ratings={row['seasonal_rating_count']}"
                    )

            elif args.command == "status":
                season = manager.update_season_status(args.season_id, args.status)
                print(f"Season id={season.id} is now {season.status}")

            elif args.command == "initialize":
                result = manager.initialize_season_ratings_for_all_players(args.season_id)
                print(
                    f"Initialized {result['players_initialized']} seasonal ratings "
                    f"for {result['season_name']}"
                )

            elif args.command == "assign":
                result = manager.assign_tournaments_to_seasons(args.org_id)
                print(f"Assigned {result['tournaments_assigned']} tournaments to seasons")

            elif args.command == "reset-category":
                result = reset_category_ratings(session, args.org_id, args.category)
                for table, count in result["deleted"].items():
                    print(f"  {table:<22} {count}")

    except RatingError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
