"""
Alias index: the mapping from normalized names to canonical players.

Backed by the player_aliases table. Every key (a player's canonical
normalized_name as well as its aliases) can belong to exactly one player.
register() refuses to move a key that already belongs to someone else;
conflicting records have to be consolidated through the merge engine
instead of being silently overwritten.

Usage:
    index = AliasIndex(session)
    index.register("isco", player.id, source="manual")
    index.resolve("isco")  # -> player.id
"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from soylenti.db.models import (
    ALIAS_SOURCE_AUTO,
    ALIAS_SOURCE_CANONICAL,
    ALIAS_SOURCE_MERGE,
    Player,
    PlayerAlias,
)
from soylenti.errors import AliasConflictError, ValidationError
from soylenti.players.aliases import normalize_name

logger = logging.getLogger(__name__)

# Longest merged_into_id chain followed before giving up
MAX_MERGE_HOPS = 32


class AliasIndex:
    """
    Lookup and registration of normalized name keys.

    The index never commits; callers own the transaction. Writes are
    flushed immediately so later lookups in the same transaction see them.
    """

    def __init__(self, db: Session):
        self.db = db

    # =========================================================================
    # Lookups
    # =========================================================================

    def resolve(self, normalized_name: str) -> Optional[int]:
        """
        Return the id of the active player owning this key, or None.

        The input is normalized again so raw names resolve too
        (normalization is idempotent).
        """
        key = normalize_name(normalized_name)
        if not key:
            return None

        row = (
            self.db.query(PlayerAlias.player_id)
            .join(Player, Player.id == PlayerAlias.player_id)
            .filter(PlayerAlias.alias == key, Player.merged_into_id.is_(None))
            .first()
        )
        return row[0] if row else None

    def aliases_for(self, player_id: int) -> set[str]:
        """All keys owned by a player, canonical name included."""
        rows = (
            self.db.query(PlayerAlias.alias)
            .filter(PlayerAlias.player_id == player_id)
            .all()
        )
        return {alias for (alias,) in rows}

    def snapshot(self) -> dict[str, int]:
        """Every key of every active player, for bulk text scanning."""
        rows = (
            self.db.query(PlayerAlias.alias, PlayerAlias.player_id)
            .join(Player, Player.id == PlayerAlias.player_id)
            .filter(Player.merged_into_id.is_(None))
            .all()
        )
        return {alias: player_id for alias, player_id in rows}

    def follow_merges(self, player_id: int) -> Optional[int]:
        """
        Return the id of the active player a (possibly retired) player ended up in.

        Follows merged_into_id links, reading the current rows. Returns None
        for an unknown id or a chain that never reaches an active player.
        """
        current = player_id
        for _ in range(MAX_MERGE_HOPS):
            row = self.db.query(Player.merged_into_id).filter(Player.id == current).first()
            if row is None:
                return None
            if row[0] is None:
                return current
            current = row[0]
        logger.warning("Merge chain from player %s exceeds %d hops", player_id, MAX_MERGE_HOPS)
        return None

    # =========================================================================
    # Mutations
    # =========================================================================

    def register(
        self,
        normalized_name: str,
        player_id: int,
        source: str = ALIAS_SOURCE_AUTO,
    ) -> bool:
        """
        Map a key to a player.

        Returns:
            True if a new row was created, False if the mapping already
            existed (registering the same mapping twice is a no-op).

        Raises:
            ValidationError: if the key normalizes to an empty string
            AliasConflictError: if the key belongs to a different player
        """
        key = normalize_name(normalized_name)
        if not key:
            raise ValidationError("Cannot register an empty alias")

        existing = self._find(key)
        if existing is not None:
            if existing.player_id == player_id:
                return False
            raise AliasConflictError(key, existing.player_id, player_id)

        self.db.add(PlayerAlias(player_id=player_id, alias=key, source=source))
        self.db.flush()
        logger.debug("Registered alias '%s' for player %s (%s)", key, player_id, source)
        return True

    def unregister(self, normalized_name: str, player_id: int) -> bool:
        """
        Remove a non-canonical alias from a player.

        Returns:
            True if an alias row was removed, False if the player did not
            own that alias.

        Raises:
            ValidationError: when trying to remove the player's canonical key
        """
        key = normalize_name(normalized_name)
        existing = self._find(key)
        if existing is None or existing.player_id != player_id:
            return False

        player = self.db.get(Player, player_id)
        if existing.source == ALIAS_SOURCE_CANONICAL or (player and player.normalized_name == key):
            raise ValidationError(f"'{key}' is the canonical name of player {player_id}")

        self.db.delete(existing)
        self.db.flush()
        return True

    def transfer_keys(self, from_player: Player, to_player_id: int) -> list[str]:
        """
        Move every key of from_player (canonical name and aliases) to another player.

        Keys already owned by the target are left alone. Used by the merge
        engine; the caller rolls back on conflict.

        Returns:
            The keys that changed owner, sorted.

        Raises:
            AliasConflictError: if any key belongs to a third player
        """
        keys = self.aliases_for(from_player.id)
        keys.add(from_player.normalized_name)

        moved: list[str] = []
        for key in sorted(keys):
            existing = self._find(key)
            if existing is None:
                # Legacy rows may lack the canonical alias row
                self.db.add(PlayerAlias(player_id=to_player_id, alias=key, source=ALIAS_SOURCE_MERGE))
                moved.append(key)
            elif existing.player_id == from_player.id:
                existing.player_id = to_player_id
                existing.source = ALIAS_SOURCE_MERGE
                moved.append(key)
            elif existing.player_id != to_player_id:
                raise AliasConflictError(key, existing.player_id, to_player_id)

        self.db.flush()
        return moved

    def _find(self, key: str) -> Optional[PlayerAlias]:
        return self.db.query(PlayerAlias).filter(PlayerAlias.alias == key).first()
