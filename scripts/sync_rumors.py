#!/usr/bin/env python3
"""
Run one rumour sync cycle: fetch feeds, store new rumours, record mentions.

Only one cycle runs at a time: a PostgreSQL advisory lock is held for the
duration of the run.

Usage:
  python scripts/sync_rumors.py
  python scripts/sync_rumors.py --all-ages
  python scripts/sync_rumors.py --dry-run
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from functools import partial
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from soylenti.config import settings
from soylenti.db import get_engine, get_session
from soylenti.feeds import fetch_all_rumors
from soylenti.services.rumor_sync import RumorSyncService
from soylenti.tasks import advisory_lock_key, postgres_advisory_lock

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger(__name__)


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Fetch feeds and record player mentions.")
    parser.add_argument(
        "--all-ages",
        action="store_true",
        help="Keep feed items regardless of age (disables NEWS_MAX_AGE_HOURS).",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Only fetch and print the rumours; nothing is stored.",
    )
    parser.add_argument(
        "--lock-name",
        default="soylenti_rumor_sync",
        help="Advisory lock namespace.",
    )
    parser.add_argument(
        "--lock-timeout-seconds",
        type=float,
        default=5.0,
        help="Advisory lock acquisition timeout.",
    )
    return parser.parse_args()


async def main() -> int:
    args = parse_args()
    fetcher = partial(fetch_all_rumors, max_age_hours=None) if args.all_ages else fetch_all_rumors

    if args.dry_run:
        items = await fetcher()
        for item in items:
            print(f"{item.pub_date:%Y-%m-%d %H:%M} [{item.source.value}] {item.title}")
        print(f"\n{len(items)} rumours fetched (dry run, nothing stored).")
        return 0

    try:
        with postgres_advisory_lock(
            get_engine(),
            key=advisory_lock_key(args.lock_name),
            timeout_seconds=args.lock_timeout_seconds,
        ):
            with get_session() as session:
                result = await RumorSyncService(session, fetcher=fetcher).sync()
    except TimeoutError as exc:
        print(f"Another sync is running, could not acquire lock: {exc}")
        return 2

    print(result.summary())
    return 0 if result.success else 1


if __name__ == "__main__":
    raise SystemExit(asyncio.run(main()))
