#!/usr/bin/env python3
"""
Apply completed tournaments to player ratings.

Single tournament (normally triggered when a tournament completes):
    python scripts/process_ratings.py --tournament-id 42

Catch up on every COMPLETED tournament that has not been rated yet:
    python scripts/process_ratings.py --pending
    python scripts/process_ratings.py --pending --org-id org-1

Dry run (compute and print, then roll back):
    python scripts/process_ratings.py --tournament-id 42 --dry-run
"""
from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from time import perf_counter

# Add src to path so this script can be run directly
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from genki.config import settings
from genki.db import get_session
from genki.ratings.exceptions import RatingError
from genki.ratings.processor import TournamentRatingProcessor

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Apply completed tournaments to player ratings.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    target = parser.add_mutually_exclusive_group(required=True)
    target.add_argument(
        "--tournament-id",
        type=int,
        default=None,
        help="Process one tournament.",
    )
    target.add_argument(
        "--pending",
        action="store_true",
        help="Process every COMPLETED tournament not yet rated, oldest first.",
    )
    parser.add_argument(
        "--org-id",
        default=None,
        help="With --pending: only process this organization's tournaments.",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="With --tournament-id: compute updates but do not write to the database.",
    )
    parser.add_argument(
        "--metrics-json",
        default=None,
        help="Write a JSON summary to this path on completion.",
    )
    return parser


def _process_one(processor: TournamentRatingProcessor, tournament_id: int, dry_run: bool) -> dict:
    with get_session() as session:
        result = processor.process_tournament_ratings(session, tournament_id)
        if dry_run:
            session.rollback()
            print("(dry run - changes rolled back)")

    print(f"Players updated:  {result.players_updated}")
    print(f"Matches rated:    {result.matches_rated}")
    print(f"Season:           {result.season_id}")
    for player in result.players:
        seasonal = (
            f"  seasonal {player.seasonal_before:.1f} -> {player.seasonal_after:.1f}"
            if player.seasonal_before is not None
            else ""
        )
        cap = "  (loss cap)" if player.loss_cap_applied else ""
        print(
            f"  {player.user_id:<24} lifetime {player.lifetime_before:.1f} -> "
            f"{player.lifetime_after:.1f}{seasonal}  {player.tier_before} -> {player.tier_after}{cap}"
        )
    return {"outcomes": [{"success": True, **result.to_dict()}]}


def _process_pending(processor: TournamentRatingProcessor, org_id: str | None) -> dict:
    outcomes = processor.process_pending_tournaments(get_session, org_id=org_id)
    for outcome in outcomes:
        status = "OK  " if outcome["success"] else "FAIL"
        detail = (
            f"{outcome['players_updated']} players"
            if outcome["success"]
            else outcome["error"]
        )
        print(f"  [{status}] #{outcome['tournament_id']:<6} {outcome['name']}: {detail}")
    return {"outcomes": outcomes}


def main() -> int:
    args = _build_parser().parse_args()
    if args.dry_run and args.pending:
        print("ERROR: --dry-run is only supported with --tournament-id", file=sys.stderr)
        return 1

    mode = "pending" if args.pending else f"tournament={args.tournament_id}"
    print(f"RATINGS UPDATE  mode={mode}  dry_run={args.dry_run}")
    print("-" * 60)

    processor = TournamentRatingProcessor.from_settings()
    t_start = perf_counter()

    try:
        if args.pending:
            summary = _process_pending(processor, args.org_id)
        else:
            summary = _process_one(processor, args.tournament_id, args.dry_run)
    except RatingError as exc:
        logger.error("Rating processing failed: %s", exc)
        return 1

    elapsed = perf_counter() - t_start
    failed = sum(1 for o in summary["outcomes"] if not o["success"])

    print("-" * 60)
    print(f"Tournaments:  {len(summary['outcomes'])}  failed={failed}")
    print(f"Elapsed:      {elapsed:.2f}s")

    if args.metrics_json:
        payload = {
            "status": "success" if not failed else "partial_failure",
            "mode": mode,
            "dry_run": args.dry_run,
            "elapsed_s": round(elapsed, 3),
            **summary,
        }
        metrics_path = Path(args.metrics_json)
        metrics_path.parent.mkdir(parents=True, exist_ok=True)
        metrics_path.write_text(json.dumps(payload, indent=2) + "\n", encoding="utf-8")

    return 1 if failed else 0


if __name__ == "__main__":
    raise SystemExit(main())
