#!/usr/bin/env python3
"""
Find and optionally merge likely duplicate players.

Usage:
  python scripts/find_duplicate_players.py
  python scripts/find_duplicate_players.py --threshold 0.85
  python scripts/find_duplicate_players.py --execute
"""

import argparse
import logging
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from soylenti.config import settings
from soylenti.db.session import get_session
from soylenti.players.duplicates import find_duplicate_candidates, pick_primary, resolve_merge_map
from soylenti.players.merge import merge_players

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s [%(levelname)s] %(message)s",
    datefmt="%H:%M:%S",
)


def main() -> int:
    parser = argparse.ArgumentParser(description="Find and merge duplicate players")
    parser.add_argument(
        "--threshold",
        type=float,
        default=settings.duplicate_report_threshold,
        help="Minimum name similarity (0-1) to report a pair",
    )
    parser.add_argument(
        "--execute",
        action="store_true",
        help="Merge every reported pair (the player with more rumours is kept)",
    )
    args = parser.parse_args()

    with get_session() as session:
        candidates = find_duplicate_candidates(session, threshold=args.threshold)
        if not candidates:
            print(f"No duplicate candidates found (score >= {args.threshold:.2f}).")
            return 0

        print(f"Found {len(candidates)} duplicate candidate pairs (score >= {args.threshold:.2f}):")
        for candidate in candidates:
            print(
                f"- {candidate.player_a_id}:{candidate.player_a_name} <-> "
                f"{candidate.player_b_id}:{candidate.player_b_name} "
                f"[score={candidate.score:.3f}] "
                f"aliases=('{candidate.match_alias_a}' vs '{candidate.match_alias_b}') "
                f"rumours=({candidate.rumors_a},{candidate.rumors_b})"
            )

        if not args.execute:
            print("\nDry run complete. Re-run with --execute to merge these pairs.")
            return 0

        merge_map = resolve_merge_map([pick_primary(c) for c in candidates])

        merged = 0
        failed = 0
        for duplicate_id, primary_id in merge_map.items():
            result = merge_players(session, primary_id, duplicate_id)
            if result.success:
                merged += 1
                print(f"Merged {duplicate_id} into {primary_id} ({result.news_transferred} rumours)")
            else:
                failed += 1
                print(f"Skipped {duplicate_id} -> {primary_id}: {result.error}")

        print(f"\nCompleted {merged} merges, {failed} skipped.")
        return 1 if failed else 0


if __name__ == "__main__":
    raise SystemExit(main())
