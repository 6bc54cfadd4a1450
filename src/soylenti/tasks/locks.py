"""Locking helpers for scheduled runs and per-player mutations."""

from __future__ import annotations

import hashlib
import time
from contextlib import contextmanager
from typing import Generator, Iterable

from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from soylenti.db.models import Player


def advisory_lock_key(name: str) -> int:
    """Return a deterministic signed 64-bit lock key from a job name."""
    digest = hashlib.sha256(name.encode("utf-8")).digest()
    return int.from_bytes(digest[:8], byteorder="big", signed=True)


@contextmanager
def postgres_advisory_lock(
    engine: Engine,
    *,
    key: int,
    timeout_seconds: float = 0.0,
    poll_interval_seconds: float = 1.0,
) -> Generator[bool, None, None]:
    """
    Acquire a PostgreSQL advisory lock for the life of this context.

    Used to keep two rumour sync cycles from running at the same time.

    Yields:
        True if lock acquired.

    Raises:
        TimeoutError: if lock cannot be acquired before timeout.
    """
    connection = engine.connect()
    acquired = False
    try:
        deadline = time.monotonic() + max(timeout_seconds, 0.0)
        while True:
            acquired = bool(
                connection.execute(
                    text("SELECT pg_try_advisory_lock(:key)"),
                    {"key": key},
                ).scalar()
            )
            if acquired:
                break
            if timeout_seconds <= 0:
                break
            if time.monotonic() >= deadline:
                break
            time.sleep(max(poll_interval_seconds, 0.05))

        if not acquired:
            raise TimeoutError(f"Could not acquire advisory lock key={key}")

        yield True
    finally:
        if acquired:
            connection.execute(
                text("SELECT pg_advisory_unlock(:key)"),
                {"key": key},
            )
        connection.close()


def lock_players(session: Session, player_ids: Iterable[int]) -> dict[int, Player]:
    """
    Lock player rows for the rest of the current transaction.

    Rows are locked with SELECT ... FOR UPDATE in ascending id order, so a
    merge and a concurrent mention recording touching the same players
    always queue behind each other instead of deadlocking. On SQLite the
    FOR UPDATE clause is a no-op (the database serializes writers itself).

    Locked rows are re-read, so objects already in the session reflect
    what other transactions committed (a merge, typically).

    Returns:
        Mapping of id -> Player for the ids that exist.
    """
    ids = sorted(set(player_ids))
    if not ids:
        return {}

    rows = (
        session.query(Player)
        .filter(Player.id.in_(ids))
        .order_by(Player.id)
        .with_for_update()
        .populate_existing()
        .all()
    )
    return {player.id: player for player in rows}
