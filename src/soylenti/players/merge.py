"""
Merge engine: consolidate two records that refer to the same player.

Rumour feeds spell players in many ways, so the registry sometimes ends up
with "Lo Celso" and "Giovani Lo Celso" as separate players. An operator
picks the record to keep (primary) and the one to retire (duplicate).

The merge runs in a single transaction with both player rows locked in
ascending id order:
1. Every key of the duplicate (canonical name and aliases) moves to the primary
2. Every rumour association moves to the primary; rumours both players
   were linked to are folded into one association
3. The duplicate is retired (merged_into_id set, count cleared)
4. The primary's rumor_count is recomputed from its associations

Either all of it happens or none of it does. Failures are reported in the
returned MergeResult rather than raised, so callers can show the reason.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Literal, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from soylenti.db.models import NewsPlayer, Player, UpdateLog
from soylenti.errors import AliasConflictError
from soylenti.players.index import AliasIndex
from soylenti.players.matcher import count_associations
from soylenti.tasks.locks import lock_players

logger = logging.getLogger(__name__)

MergeErrorKind = Literal["validation", "conflict", "persistence"]


@dataclass
class MergeResult:
    """Outcome of merge_players()."""

    success: bool
    news_transferred: int
    error: Optional[str] = None
    error_kind: Optional[MergeErrorKind] = None
    aliases_added: list[str] = field(default_factory=list)

    @classmethod
    def failed(cls, kind: MergeErrorKind, error: str) -> "MergeResult":
        return cls(success=False, news_transferred=0, error=error, error_kind=kind)


def merge_players(session: Session, primary_id: int, duplicate_id: int) -> MergeResult:
    """
    Merge duplicate_id into primary_id.

    Args:
        session: Database session; the merge commits or rolls back on it
        primary_id: Player to keep
        duplicate_id: Player to retire

    Returns:
        MergeResult. On failure nothing has changed and error_kind is:
        - 'validation': same id twice, unknown player or already retired player
        - 'conflict': a key of the duplicate belongs to a third player
        - 'persistence': the database rejected the transaction
    """
    if primary_id == duplicate_id:
        return MergeResult.failed("validation", "Cannot merge a player with itself")

    try:
        players = lock_players(session, [primary_id, duplicate_id])
        primary = players.get(primary_id)
        duplicate = players.get(duplicate_id)

        problem = _validate(primary_id, primary, duplicate_id, duplicate)
        if problem:
            session.rollback()
            return MergeResult.failed("validation", problem)

        try:
            moved = AliasIndex(session).transfer_keys(duplicate, primary.id)
        except AliasConflictError as exc:
            session.rollback()
            logger.warning(
                "Merge %s -> %s aborted: %s", duplicate_id, primary_id, exc
            )
            return MergeResult.failed("conflict", str(exc))

        transferred = _transfer_associations(session, primary.id, duplicate.id)

        now = datetime.utcnow()
        duplicate.merged_into_id = primary.id
        duplicate.retired_at = now
        duplicate.rumor_count = 0

        primary.rumor_count = count_associations(session, primary.id)
        primary.first_seen_at = _earliest(primary.first_seen_at, duplicate.first_seen_at)
        primary.last_seen_at = _latest(primary.last_seen_at, duplicate.last_seen_at)

        session.add(UpdateLog(
            update_type="player_merge",
            details={
                "primary_id": primary.id,
                "duplicate_id": duplicate.id,
                "news_transferred": transferred,
                "aliases_added": moved,
                "rumor_count": primary.rumor_count,
            },
            success=True,
        ))
        session.commit()

    except SQLAlchemyError as exc:
        session.rollback()
        logger.error("Merge %s -> %s failed: %s", duplicate_id, primary_id, exc)
        return MergeResult.failed("persistence", "Database error while merging players")

    logger.info(
        "Merged player %s into %s: %d rumours transferred, aliases added: %s",
        duplicate_id, primary_id, transferred, ", ".join(moved) or "none",
    )
    return MergeResult(success=True, news_transferred=transferred, aliases_added=moved)


def _validate(
    primary_id: int,
    primary: Optional[Player],
    duplicate_id: int,
    duplicate: Optional[Player],
) -> Optional[str]:
    if primary is None:
        return f"Player {primary_id} not found"
    if duplicate is None:
        return f"Player {duplicate_id} not found"
    if primary.is_retired:
        return f"Player {primary_id} was already merged into {primary.merged_into_id}"
    if duplicate.is_retired:
        return f"Player {duplicate_id} was already merged into {duplicate.merged_into_id}"
    return None


def _transfer_associations(session: Session, primary_id: int, duplicate_id: int) -> int:
    """Move the duplicate's rumour links to the primary. Returns how many it held."""
    primary_news = {
        news_id
        for (news_id,) in session.query(NewsPlayer.news_id)
        .filter(NewsPlayer.player_id == primary_id)
        .all()
    }
    links = session.query(NewsPlayer).filter(NewsPlayer.player_id == duplicate_id).all()

    for link in links:
        if link.news_id in primary_news:
            session.delete(link)
        else:
            link.player_id = primary_id
    session.flush()
    return len(links)


def _earliest(a: Optional[datetime], b: Optional[datetime]) -> Optional[datetime]:
    if a is None:
        return b
    if b is None:
        return a
    return min(a, b)


def _latest(a: Optional[datetime], b: Optional[datetime]) -> Optional[datetime]:
    if a is None:
        return b
    if b is None:
        return a
    return max(a, b)


# =============================================================================
# Count audit
# =============================================================================

@dataclass
class RumorCountMismatch:
    player_id: int
    name: str
    stored: int
    actual: int


def audit_rumor_counts(session: Session, fix: bool = False) -> list[RumorCountMismatch]:
    """
    Compare each active player's rumor_count with its distinct associations.

    Older data may count the same rumour twice for a player. With fix=True
    the stored counts are corrected and an update_log row is written.
    """
    mismatches: list[RumorCountMismatch] = []
    players = (
        session.query(Player)
        .filter(Player.merged_into_id.is_(None))
        .order_by(Player.id)
        .all()
    )
    for player in players:
        actual = count_associations(session, player.id)
        if actual != player.rumor_count:
            mismatches.append(RumorCountMismatch(player.id, player.name, player.rumor_count, actual))

    if fix and mismatches:
        try:
            locked = lock_players(session, [m.player_id for m in mismatches])
            for mismatch in mismatches:
                player = locked.get(mismatch.player_id)
                if player is not None:
                    player.rumor_count = count_associations(session, player.id)
            session.add(UpdateLog(
                update_type="rumor_count_repair",
                details={"player_ids": [m.player_id for m in mismatches]},
                success=True,
            ))
            session.commit()
        except SQLAlchemyError:
            session.rollback()
            raise
        logger.info("Repaired rumor_count for %d players", len(mismatches))

    return mismatches
