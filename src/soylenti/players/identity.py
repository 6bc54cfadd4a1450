"""
Player identity helpers: resolving names to players and curating aliases.

Used wherever a raw name has to become a player record (operators linking
a player to a rumour by hand) and by the admin alias endpoints.

The lookup strategy for a raw name:
1. Exact key match (canonical name or alias) through the alias index
2. The name of a retired (merged) player leads to the player it was
   merged into
3. Word-aligned suffix match against recently seen players
   ("lo celso" <-> "giovani lo celso"); the new variant is registered as an
   'auto' alias so the next lookup is exact
4. Otherwise create a new player with its canonical alias row

Unlike the matcher, nothing here bumps rumor_count; counts only change
when a rumour association is created or removed.
"""

import logging
from datetime import datetime
from typing import Iterable, Optional

from sqlalchemy import nulls_last
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from soylenti.config import settings
from soylenti.db.models import (
    ALIAS_SOURCE_AUTO,
    ALIAS_SOURCE_CANONICAL,
    ALIAS_SOURCE_MANUAL,
    Player,
    PlayerAlias,
    Rumor,
)
from soylenti.errors import NotFoundError, PersistenceError, ValidationError
from soylenti.players.aliases import is_suffix_match, normalize_name
from soylenti.players.index import AliasIndex
from soylenti.players.matcher import record_mention
from soylenti.tasks.locks import lock_players

logger = logging.getLogger(__name__)

MAX_DISPLAY_NAME_LENGTH = 255


# =============================================================================
# Name resolution
# =============================================================================

def find_or_create_player(
    session: Session,
    name: str,
    seen_at: Optional[datetime] = None,
) -> tuple[Player, bool]:
    """
    Resolve a raw player name to a player, creating one if needed.

    Flushes but does not commit; the caller owns the transaction.

    Args:
        session: Database session
        name: Player name as written in the source ("Giovani Lo Celso")
        seen_at: Initial first/last seen date for a newly created player

    Returns:
        Tuple of (player, created)

    Raises:
        ValidationError: if the name normalizes to an empty string
    """
    key = normalize_name(name)
    if not key:
        raise ValidationError("Player name is empty")

    index = AliasIndex(session)

    player_id = index.resolve(key)
    if player_id is not None:
        return session.get(Player, player_id), False

    absorbing_player = _find_merged_owner(session, index, key)
    if absorbing_player is not None:
        logger.info(
            "'%s' names a merged player, using player %s (%s)",
            key, absorbing_player.id, absorbing_player.name,
        )
        return absorbing_player, False

    suffix_player = _find_by_suffix(session, key)
    if suffix_player is not None:
        index.register(key, suffix_player.id, source=ALIAS_SOURCE_AUTO)
        logger.info(
            "Auto-added alias '%s' to player %s (%s)",
            key, suffix_player.id, suffix_player.name,
        )
        return suffix_player, False

    player = Player(
        name=" ".join(name.split()),
        normalized_name=key,
        rumor_count=0,
        first_seen_at=seen_at,
        last_seen_at=seen_at,
    )
    session.add(player)
    session.flush()
    index.register(key, player.id, source=ALIAS_SOURCE_CANONICAL)
    logger.info("Created player %s (%s)", player.id, player.name)
    return player, True


def _find_merged_owner(session: Session, index: AliasIndex, key: str) -> Optional[Player]:
    """
    The active player that absorbed a retired player named key, if any.

    Retired players keep their normalized_name, so the key can't be used
    for a new player even after the alias was removed from the primary.
    """
    retired = (
        session.query(Player.id)
        .filter(Player.normalized_name == key, Player.merged_into_id.isnot(None))
        .first()
    )
    if retired is None:
        return None

    target_id = index.follow_merges(retired[0])
    if target_id is None:
        raise ValidationError(f"'{key}' belongs to a merged player with no active record")
    return session.get(Player, target_id)


def _find_by_suffix(session: Session, key: str) -> Optional[Player]:
    """Look for a recently seen player whose name and key are suffixes of each other."""
    candidates = (
        session.query(Player)
        .filter(Player.merged_into_id.is_(None))
        .order_by(nulls_last(Player.last_seen_at.desc()), Player.id)
        .limit(settings.suffix_match_scan_limit)
        .all()
    )
    for player in candidates:
        if is_suffix_match(key, player.normalized_name) or is_suffix_match(player.normalized_name, key):
            logger.debug("Suffix match: '%s' -> %s", key, player.normalized_name)
            return player
    return None


def link_player_to_rumor(
    session: Session,
    news_id: int,
    player_name: str,
    role: str = "mentioned",
) -> Player:
    """
    Attach a player (found or created by name) to a stored rumour.

    Commits on success.

    Raises:
        NotFoundError: if the rumour does not exist
        ValidationError: if the player is already linked to the rumour
        PersistenceError: if the database rejects the write
    """
    try:
        rumor = session.get(Rumor, news_id)
        if rumor is None:
            raise NotFoundError(f"Rumour {news_id} not found")

        player, _ = find_or_create_player(session, player_name, seen_at=rumor.pub_date)
        locked = lock_players(session, [player.id])[player.id]
        if not record_mention(session, locked, rumor, role=role):
            raise ValidationError(f"Player {locked.name} is already linked to rumour {news_id}")
        session.commit()
    except ValidationError:
        session.rollback()
        raise
    except SQLAlchemyError as exc:
        session.rollback()
        raise PersistenceError(f"Could not link player to rumour {news_id}") from exc

    logger.info("Linked player %s (%s) to rumour %s", locked.id, locked.name, news_id)
    return locked


# =============================================================================
# Alias curation
# =============================================================================

def get_active_player(session: Session, player_id: int) -> Player:
    """
    Return an active (not merged) player.

    Raises:
        NotFoundError: if the player does not exist or was merged away
    """
    player = session.get(Player, player_id)
    if player is None or player.is_retired:
        raise NotFoundError(f"Player {player_id} not found")
    return player


def _clean_alias(alias: str) -> str:
    key = normalize_name(alias)
    if len(key) < settings.min_alias_length:
        raise ValidationError(
            f"Alias must be at least {settings.min_alias_length} characters"
        )
    return key


def _lock_active(session: Session, player_id: int) -> Player:
    player = lock_players(session, [player_id]).get(player_id)
    if player is None or player.is_retired:
        raise NotFoundError(f"Player {player_id} not found")
    return player


def add_alias(session: Session, player_id: int, alias: str) -> str:
    """
    Add a manual alias to a player. Commits on success.

    Returns:
        The normalized alias that was stored.

    Raises:
        ValidationError: alias too short or already present on this player
        NotFoundError: unknown or merged player
        AliasConflictError: alias belongs to another player
    """
    key = _clean_alias(alias)
    try:
        _lock_active(session, player_id)
        if not AliasIndex(session).register(key, player_id, source=ALIAS_SOURCE_MANUAL):
            raise ValidationError(f"Alias '{key}' already exists for this player")
        session.commit()
    except Exception:
        session.rollback()
        raise

    logger.info("Added alias '%s' to player %s", key, player_id)
    return key


def remove_alias(session: Session, player_id: int, alias: str) -> str:
    """
    Remove an alias from a player. Commits on success.

    Raises:
        NotFoundError: unknown player, or the player has no such alias
        ValidationError: the alias is the player's canonical name
    """
    key = normalize_name(alias)
    try:
        _lock_active(session, player_id)
        if not AliasIndex(session).unregister(key, player_id):
            raise NotFoundError(f"Alias '{key}' does not exist for this player")
        session.commit()
    except Exception:
        session.rollback()
        raise

    logger.info("Removed alias '%s' from player %s", key, player_id)
    return key


def set_aliases(session: Session, player_id: int, aliases: Iterable[str]) -> list[str]:
    """
    Replace a player's alias set (the canonical name is always kept).

    Aliases are normalized and de-duplicated. Either the whole new set is
    stored or nothing changes.

    Returns:
        The player's aliases after the update, sorted.
    """
    wanted = {_clean_alias(alias) for alias in aliases}
    try:
        player = _lock_active(session, player_id)
        wanted.discard(player.normalized_name)

        index = AliasIndex(session)
        current = index.aliases_for(player_id) - {player.normalized_name}

        for key in sorted(current - wanted):
            index.unregister(key, player_id)
        for key in sorted(wanted - current):
            index.register(key, player_id, source=ALIAS_SOURCE_MANUAL)
        session.commit()
    except Exception:
        session.rollback()
        raise

    logger.info("Updated aliases of player %s: %d aliases", player_id, len(wanted))
    return sorted(wanted)


def set_display_name(session: Session, player_id: int, display_name: Optional[str]) -> Player:
    """Set (or clear, with None or blank) the name shown for a player. Commits."""
    cleaned = " ".join(display_name.split()) if display_name else None
    if cleaned and len(cleaned) > MAX_DISPLAY_NAME_LENGTH:
        raise ValidationError("Display name is too long")

    try:
        player = _lock_active(session, player_id)
        player.display_name = cleaned or None
        session.commit()
    except Exception:
        session.rollback()
        raise

    logger.info("Display name of player %s set to %r", player_id, player.display_name)
    return player


def list_aliases(session: Session, player_id: int) -> list[PlayerAlias]:
    """Alias rows of an active player, canonical row included."""
    get_active_player(session, player_id)
    return (
        session.query(PlayerAlias)
        .filter(PlayerAlias.player_id == player_id)
        .order_by(PlayerAlias.alias)
        .all()
    )
