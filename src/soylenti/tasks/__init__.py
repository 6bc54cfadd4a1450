"""Locking utilities for scheduled jobs and player mutations."""

from soylenti.tasks.locks import advisory_lock_key, lock_players, postgres_advisory_lock

__all__ = [
    "advisory_lock_key",
    "lock_players",
    "postgres_advisory_lock",
]
