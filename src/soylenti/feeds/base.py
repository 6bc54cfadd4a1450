"""
Feed configuration and the standardized rumour item.

Every feed (Google News searches, club blogs, Telegram channels bridged to
RSS) is described by a FeedConfig. Items parsed from any of them become
RumorItem instances, the common format the matcher and the sync service
work with.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Literal, Optional

FeedType = Literal["rss", "telegram"]


class RumorSource(str, Enum):
    """Known feed sources. The value is the label shown next to each rumour."""

    GOOGLE_NEWS_FICHAJES = "Google News (Fichajes)"
    GOOGLE_NEWS_GENERAL = "Google News (General)"
    BETISWEB = "BetisWeb"
    TG_FABRIZIO_ROMANO = "Telegram: @FabrizioRomanoTG"
    TG_FICHERIO_REAL_BETIS = "Telegram: @ficherioRealBetis"
    TG_TODO_BETIS = "Telegram: @Todo_betis"
    TG_DMQ_REAL_BETIS = "Telegram: @DMQRealBetis"
    TG_TRANSFER_NEWS_FOOTBALL = "Telegram: @transfer_news_football"
    TG_REAL_BETIS_BALOMPIE = "Telegram: @real_betis_balompi"


@dataclass(frozen=True)
class FeedConfig:
    """Where to fetch a feed from and how to label its items."""

    url: str
    source: RumorSource
    type: FeedType = "rss"


@dataclass
class RumorItem:
    """
    One rumour as parsed from a feed.

    Ephemeral: built per ingestion cycle. The sync service persists it as a
    Rumor row so mentions have something to point at.

    pub_date is a naive UTC datetime.
    """

    title: str
    link: str
    pub_date: datetime
    source: RumorSource
    description: Optional[str] = None

    @property
    def text(self) -> str:
        """Title and description joined, the text scanned for player names."""
        if self.description:
            return f"{self.title} {self.description}"
        return self.title


# Telegram channels go through tg.i-c-a.su, a free RSS bridge that needs no auth
FEED_CONFIGS: list[FeedConfig] = [
    FeedConfig(
        url="https://news.google.com/rss/search?q=Real+Betis+fichajes+rumores&hl=es&gl=ES&ceid=ES:es",
        source=RumorSource.GOOGLE_NEWS_FICHAJES,
    ),
    FeedConfig(
        url="https://news.google.com/rss/search?q=Real+Betis&hl=es&gl=ES&ceid=ES:es",
        source=RumorSource.GOOGLE_NEWS_GENERAL,
    ),
    FeedConfig(
        url="https://betisweb.com/feed/",
        source=RumorSource.BETISWEB,
    ),
    FeedConfig(
        url="https://tg.i-c-a.su/rss/FabrizioRomanoTG",
        source=RumorSource.TG_FABRIZIO_ROMANO,
        type="telegram",
    ),
    FeedConfig(
        url="https://tg.i-c-a.su/rss/ficherioRealBetis",
        source=RumorSource.TG_FICHERIO_REAL_BETIS,
        type="telegram",
    ),
    FeedConfig(
        url="https://tg.i-c-a.su/rss/Todo_betis",
        source=RumorSource.TG_TODO_BETIS,
        type="telegram",
    ),
    FeedConfig(
        url="https://tg.i-c-a.su/rss/DMQRealBetis",
        source=RumorSource.TG_DMQ_REAL_BETIS,
        type="telegram",
    ),
    FeedConfig(
        url="https://tg.i-c-a.su/rss/transfer_news_football",
        source=RumorSource.TG_TRANSFER_NEWS_FOOTBALL,
        type="telegram",
    ),
    FeedConfig(
        url="https://tg.i-c-a.su/rss/real_betis_balompi",
        source=RumorSource.TG_REAL_BETIS_BALOMPIE,
        type="telegram",
    ),
]
