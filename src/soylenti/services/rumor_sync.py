"""
Rumour sync service: one full ingestion cycle.

The cycle:
1. Fetch every feed (feeds/fetcher.py)
2. Load the rumours stored in the last settings.dedup_lookback_days days
3. Skip items whose link is already stored or whose content repeats a
   recent rumour (services/dedup.py)
4. Insert the rest, one short transaction per rumour
5. Run the player matcher over the inserted rumours
6. Write an update_log row with the counters

Usage:
    from soylenti.services.rumor_sync import RumorSyncService

    with get_session() as session:
        result = asyncio.run(RumorSyncService(session).sync())
        print(result.summary())
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from soylenti.config import settings
from soylenti.db.models import Rumor, UpdateLog
from soylenti.errors import PersistenceError
from soylenti.feeds.base import RumorItem
from soylenti.feeds.fetcher import fetch_all_rumors
from soylenti.players.matcher import PlayerMatcher
from soylenti.services.dedup import ExistingRumor, check_duplicate

logger = logging.getLogger(__name__)

RumorFetcher = Callable[[], Awaitable[list[RumorItem]]]


@dataclass
class SyncResult:
    """Statistics from a rumour sync run."""
    fetched: int = 0
    duplicates: int = 0
    inserted: int = 0
    matched: int = 0
    mentions: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors

    def summary(self) -> str:
        """Return a human-readable summary of the sync run."""
        lines = [
            "Rumour sync complete:",
            f"  Fetched:            {self.fetched}",
            f"  Duplicates skipped: {self.duplicates}",
            f"  Inserted:           {self.inserted}",
            f"  Rumours with players: {self.matched}",
            f"  New mentions:       {self.mentions}",
            f"  Errors:             {len(self.errors)}",
        ]
        for error in self.errors[:10]:
            lines.append(f"    - {error}")
        return "\n".join(lines)


class RumorSyncService:
    """
    Runs ingestion cycles against one database session.

    The fetcher is injectable so tests (and the admin endpoint) can supply
    items without network access.
    """

    def __init__(self, db: Session, fetcher: Optional[RumorFetcher] = None):
        self.db = db
        self.fetcher = fetcher or fetch_all_rumors

    async def sync(self, now: Optional[datetime] = None) -> SyncResult:
        """
        Fetch, de-duplicate, store and match one batch of rumours.

        Feed failures are isolated by the fetcher; a rumour that cannot be
        stored is counted in errors and skipped.
        """
        if now is None:
            now = datetime.now(timezone.utc).replace(tzinfo=None)

        result = SyncResult()
        items = await self.fetcher()
        result.fetched = len(items)

        recent = self._load_recent(now)
        known_links = self._known_links([item.link for item in items])

        inserted: list[RumorItem] = []
        for item in items:
            if item.link in known_links:
                result.duplicates += 1
                continue

            check = check_duplicate(item.title, item.description, recent)
            if check.is_duplicate:
                result.duplicates += 1
                logger.debug(
                    "Duplicate rumour '%s' (of %s, score %.0f)",
                    item.title, check.duplicate_of_id, check.similarity_score,
                )
                continue

            rumor = self._insert(item, check.content_hash, result)
            if rumor is None:
                continue

            known_links.add(item.link)
            recent.append(ExistingRumor(rumor.id, rumor.title, rumor.description, rumor.content_hash))
            inserted.append(item)

        result.inserted = len(inserted)

        if inserted:
            try:
                summary = PlayerMatcher(self.db).match_and_record(inserted)
                result.matched = summary.rumors_matched
                result.mentions = summary.mentions_recorded
            except PersistenceError as exc:
                result.errors.append(str(exc))

        self._write_log(result)
        logger.info(
            "Rumour sync: fetched=%d duplicates=%d inserted=%d matched=%d mentions=%d errors=%d",
            result.fetched, result.duplicates, result.inserted,
            result.matched, result.mentions, len(result.errors),
        )
        return result

    def _load_recent(self, now: datetime) -> list[ExistingRumor]:
        cutoff = now - timedelta(days=settings.dedup_lookback_days)
        rows = (
            self.db.query(Rumor.id, Rumor.title, Rumor.description, Rumor.content_hash)
            .filter(Rumor.pub_date >= cutoff)
            .all()
        )
        return [ExistingRumor(*row) for row in rows]

    def _known_links(self, links: list[str]) -> set[str]:
        if not links:
            return set()
        rows = self.db.query(Rumor.link).filter(Rumor.link.in_(links)).all()
        return {link for (link,) in rows}

    def _insert(self, item: RumorItem, content_hash: str, result: SyncResult) -> Optional[Rumor]:
        rumor = Rumor(
            title=item.title,
            link=item.link,
            pub_date=item.pub_date,
            source=item.source.value,
            description=item.description,
            content_hash=content_hash,
        )
        try:
            self.db.add(rumor)
            self.db.commit()
        except IntegrityError:
            # Stored by a concurrent run since we checked
            self.db.rollback()
            result.duplicates += 1
            return None
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.error("Failed to store rumour %s: %s", item.link, exc)
            result.errors.append(f"{item.link}: {exc.__class__.__name__}")
            return None
        return rumor

    def _write_log(self, result: SyncResult) -> None:
        try:
            self.db.add(UpdateLog(
                update_type="rumor_sync",
                details={
                    "fetched": result.fetched,
                    "duplicates": result.duplicates,
                    "inserted": result.inserted,
                    "matched": result.matched,
                    "mentions": result.mentions,
                },
                success=result.success,
                error_message="; ".join(result.errors[:10]) or None,
            ))
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.error("Failed to write sync log: %s", exc)
