#!/usr/bin/env python3
"""
Merge a duplicate player record into the record to keep.

Usage:
  python scripts/merge_players.py --primary 12 --duplicate 57
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from soylenti.config import settings
from soylenti.db.session import get_session
from soylenti.players.merge import merge_players

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s [%(levelname)s] %(message)s",
    datefmt="%H:%M:%S",
)


def main() -> int:
    parser = argparse.ArgumentParser(description="Merge two player records")
    parser.add_argument("--primary", type=int, required=True, help="Player id to keep")
    parser.add_argument("--duplicate", type=int, required=True, help="Player id to retire")
    args = parser.parse_args()

    with get_session() as session:
        result = merge_players(session, args.primary, args.duplicate)

    if not result.success:
        print(f"Merge failed ({result.error_kind}): {result.error}", file=sys.stderr)
        return 1

    print(
        f"Merged {args.duplicate} into {args.primary}: "
        f"{result.news_transferred} rumours transferred, "
        f"aliases added: {', '.join(result.aliases_added) or 'none'}"
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
