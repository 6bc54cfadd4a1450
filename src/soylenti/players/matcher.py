"""
Player matcher: detect player mentions in rumour text and record them.

Rumour text is normalized with the same normalize_name() used for player
names, then scanned with a single alternation of every known alias key.
Matches must sit on word boundaries, so the alias "isco" never fires inside
"francisco".

A mention is recorded as one news_players row per (rumour, player). The
player's rumor_count is only incremented when that row is newly created,
which makes re-processing a rumour a no-op.

Usage:
    matcher = PlayerMatcher(session)
    summary = matcher.match_and_record(items)
    print(summary.summary())
"""

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, Optional, Sequence

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from soylenti.db.models import NewsPlayer, Player, Rumor
from soylenti.errors import NotFoundError, PersistenceError
from soylenti.feeds.base import RumorItem
from soylenti.players.aliases import normalize_name
from soylenti.players.index import MAX_MERGE_HOPS, AliasIndex
from soylenti.services.dedup import generate_content_hash
from soylenti.tasks.locks import lock_players

logger = logging.getLogger(__name__)


@dataclass
class MatchSummary:
    """Counters for one match_and_record() call."""

    rumors_scanned: int = 0
    rumors_matched: int = 0
    mentions_recorded: int = 0
    mentions_already_known: int = 0
    players_updated: set[int] = field(default_factory=set)

    def summary(self) -> str:
        return (
            f"scanned={self.rumors_scanned}, "
            f"matched={self.rumors_matched}, "
            f"new_mentions={self.mentions_recorded}, "
            f"known_mentions={self.mentions_already_known}, "
            f"players={len(self.players_updated)}"
        )


# =============================================================================
# Text scanning
# =============================================================================

def build_alias_pattern(aliases: Iterable[str]) -> Optional[re.Pattern]:
    """
    Compile one whole-word pattern matching any of the given keys.

    Longer keys come first so "giovani lo celso" wins over "lo celso" at
    the same position. Returns None when there is nothing to match.
    """
    keys = sorted({alias for alias in aliases if alias}, key=lambda a: (-len(a), a))
    if not keys:
        return None
    alternation = "|".join(re.escape(key) for key in keys)
    return re.compile(rf"(?<!\w)(?:{alternation})(?!\w)")


def find_mentioned_players(
    text: str,
    alias_map: dict[str, int],
    pattern: Optional[re.Pattern] = None,
) -> list[int]:
    """
    Return the distinct player ids mentioned in text, in order of appearance.

    Args:
        text: Raw rumour text (normalized here)
        alias_map: Normalized key -> player id, as from AliasIndex.snapshot()
        pattern: Precompiled pattern for alias_map, built if omitted
    """
    if pattern is None:
        pattern = build_alias_pattern(alias_map)
    if pattern is None:
        return []

    found: list[int] = []
    for match in pattern.finditer(normalize_name(text)):
        player_id = alias_map.get(match.group(0))
        if player_id is not None and player_id not in found:
            found.append(player_id)
    return found


# =============================================================================
# Mention recording
# =============================================================================

def record_mention(session: Session, player: Player, rumor: Rumor, role: str = "mentioned") -> bool:
    """
    Attach a rumour to a player, counting it at most once.

    The caller must hold the player's row lock (see lock_players) and owns
    the transaction.

    Returns:
        True if a new association was created, False if it already existed.
    """
    existing = (
        session.query(NewsPlayer.id)
        .filter(NewsPlayer.news_id == rumor.id, NewsPlayer.player_id == player.id)
        .first()
    )
    if existing is not None:
        return False

    session.add(NewsPlayer(news_id=rumor.id, player_id=player.id, role=role))
    player.rumor_count = (player.rumor_count or 0) + 1
    _widen_seen_window(player, rumor.pub_date)
    session.flush()
    return True


def remove_mention(session: Session, player_id: int, news_id: int) -> bool:
    """
    Detach a rumour from a player and recount the player's mentions.

    Commits on success. Returns False when no such association existed.
    """
    try:
        players = lock_players(session, [player_id])
        player = players.get(player_id)
        if player is None:
            session.rollback()
            raise NotFoundError(f"Player {player_id} not found")

        link = (
            session.query(NewsPlayer)
            .filter(NewsPlayer.news_id == news_id, NewsPlayer.player_id == player_id)
            .first()
        )
        if link is None:
            session.rollback()
            return False

        session.delete(link)
        session.flush()
        player.rumor_count = count_associations(session, player_id)
        session.commit()
    except SQLAlchemyError as exc:
        session.rollback()
        raise PersistenceError(f"Could not unlink rumour {news_id} from player {player_id}") from exc

    logger.info("Unlinked rumour %s from player %s", news_id, player_id)
    return True


def count_associations(session: Session, player_id: int) -> int:
    """Number of distinct rumours linked to a player."""
    return (
        session.query(func.count(func.distinct(NewsPlayer.news_id)))
        .filter(NewsPlayer.player_id == player_id)
        .scalar()
    ) or 0


def _widen_seen_window(player: Player, seen_at: Optional[datetime]) -> None:
    if seen_at is None:
        return
    if player.first_seen_at is None or seen_at < player.first_seen_at:
        player.first_seen_at = seen_at
    if player.last_seen_at is None or seen_at > player.last_seen_at:
        player.last_seen_at = seen_at


# =============================================================================
# Matcher
# =============================================================================

class PlayerMatcher:
    """
    Scans rumours for known players and records the mentions.

    Each rumour is handled in its own short transaction: its matched
    players are locked in ascending id order, the associations written,
    and the transaction committed before moving on.
    """

    def __init__(self, db: Session):
        self.db = db
        self.index = AliasIndex(db)

    def match_and_record(self, rumors: Sequence[RumorItem]) -> MatchSummary:
        """
        Record every player mention found in the given rumours.

        Rumours with no known player are ignored. A rumour that was already
        processed adds nothing.

        Raises:
            PersistenceError: if the database rejects a write; the current
                rumour's changes are rolled back, earlier rumours stay
                committed.
        """
        summary = MatchSummary()
        alias_map = self.index.snapshot()
        pattern = build_alias_pattern(alias_map)

        for item in rumors:
            summary.rumors_scanned += 1
            player_ids = find_mentioned_players(item.text, alias_map, pattern)
            if not player_ids:
                continue

            summary.rumors_matched += 1
            try:
                self._record_item(item, player_ids, summary)
                self.db.commit()
            except SQLAlchemyError as exc:
                self.db.rollback()
                logger.error("Failed to record mentions for %s: %s", item.link, exc)
                raise PersistenceError(f"Could not record mentions for {item.link}") from exc

        if summary.mentions_recorded:
            logger.info("Recorded player mentions: %s", summary.summary())
        return summary

    def _record_item(self, item: RumorItem, player_ids: list[int], summary: MatchSummary) -> None:
        rumor = self._get_or_create_rumor(item)
        players = self._lock_active_targets(player_ids)

        for player_id in sorted(players):
            player = players[player_id]
            if record_mention(self.db, player, rumor):
                summary.mentions_recorded += 1
                summary.players_updated.add(player_id)
                logger.debug("Player %s mentioned in '%s'", player.name, item.title)
            else:
                summary.mentions_already_known += 1

    def _lock_active_targets(self, player_ids: list[int]) -> dict[int, Player]:
        """
        Lock the players a rumour should be credited to.

        A merge may have committed after the alias snapshot was taken. Its
        retired player is replaced by the player it was merged into, so the
        mention lands on the surviving record.
        """
        ids = list(player_ids)
        players: dict[int, Player] = {}
        for _ in range(MAX_MERGE_HOPS):
            targets = {self.index.follow_merges(player_id) for player_id in ids}
            targets.discard(None)
            players = lock_players(self.db, targets)
            # A merge can still commit between follow_merges() and the lock
            if all(player.merged_into_id is None for player in players.values()):
                break
            ids = list(players)

        redirected = set(player_ids) - set(players)
        if redirected:
            logger.info(
                "Players %s were merged after the alias snapshot, crediting %s",
                sorted(redirected), sorted(players),
            )
        return {pid: p for pid, p in players.items() if p.merged_into_id is None}

    def _get_or_create_rumor(self, item: RumorItem) -> Rumor:
        rumor = self.db.query(Rumor).filter(Rumor.link == item.link).first()
        if rumor is not None:
            return rumor

        rumor = Rumor(
            title=item.title,
            link=item.link,
            pub_date=item.pub_date,
            source=_source_label(item.source),
            description=item.description,
            content_hash=generate_content_hash(item.title, item.description),
        )
        self.db.add(rumor)
        self.db.flush()
        return rumor


def _source_label(source) -> str:
    return getattr(source, "value", source)
