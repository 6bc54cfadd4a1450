"""Exception types shared across the rumour pipeline and the web layer."""

from __future__ import annotations

from typing import Optional


class SoylentiError(Exception):
    """Base class for all errors raised by Soylenti."""


class ValidationError(SoylentiError):
    """Malformed or self-referential input; nothing was mutated."""


class NotFoundError(ValidationError):
    """A referenced player or rumour does not exist."""


class AliasConflictError(SoylentiError):
    """A normalized name is already claimed by a different player."""

    def __init__(self, alias: str, existing_player_id: int, requested_player_id: int):
        self.alias = alias
        self.existing_player_id = existing_player_id
        self.requested_player_id = requested_player_id
        super().__init__(
            f"Alias '{alias}' already belongs to player {existing_player_id} "
            f"(requested for player {requested_player_id})"
        )


class FeedFetchError(SoylentiError):
    """A feed endpoint could not be retrieved."""

    def __init__(self, source: str, message: str, status_code: Optional[int] = None):
        self.source = source
        self.status_code = status_code
        super().__init__(f"{source}: {message}")


class FeedParseError(SoylentiError):
    """A feed body was not valid RSS or Atom."""


class PersistenceError(SoylentiError):
    """The backing store rejected a read or write."""
