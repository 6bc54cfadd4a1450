"""
Rumour feeds: configuration, parsing and concurrent fetching.

Usage:
    from soylenti.feeds import fetch_all_rumors

    items = await fetch_all_rumors()
"""

from soylenti.feeds.base import FEED_CONFIGS, FeedConfig, RumorItem, RumorSource
from soylenti.feeds.fetcher import fetch_all_rumors, fetch_feed, merge_feed_items
from soylenti.feeds.parser import parse_date, parse_feed

__all__ = [
    "FEED_CONFIGS",
    "FeedConfig",
    "RumorItem",
    "RumorSource",
    "fetch_all_rumors",
    "fetch_feed",
    "merge_feed_items",
    "parse_feed",
    "parse_date",
]
