#!/usr/bin/env python3
"""
Check that every player's rumor_count equals its distinct linked rumours.

Older data may count one rumour several times for the same player. Run
without flags to report, with --fix to correct the stored counts.

Usage:
  python scripts/check_rumor_counts.py
  python scripts/check_rumor_counts.py --fix
"""

import argparse
import logging
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from soylenti.config import settings
from soylenti.db.session import get_session
from soylenti.players.merge import audit_rumor_counts

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s [%(levelname)s] %(message)s",
    datefmt="%H:%M:%S",
)


def main() -> int:
    parser = argparse.ArgumentParser(description="Audit player rumour counts")
    parser.add_argument("--fix", action="store_true", help="Correct mismatching counts")
    args = parser.parse_args()

    with get_session() as session:
        mismatches = audit_rumor_counts(session, fix=args.fix)

    if not mismatches:
        print("All rumour counts match their linked rumours.")
        return 0

    print(f"{len(mismatches)} players with mismatching rumour counts:")
    for m in mismatches:
        print(f"- {m.player_id}:{m.name} stored={m.stored} actual={m.actual}")

    if args.fix:
        print("\nCounts corrected.")
        return 0

    print("\nRe-run with --fix to correct them.")
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
