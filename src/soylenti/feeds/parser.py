"""
RSS 2.0 / Atom parsing into RumorItem objects.

Google News, WordPress blogs and the Telegram RSS bridge all produce
slightly different documents. Only the fields we need are read:

| Field       | RSS              | Atom                    |
|-------------|------------------|-------------------------|
| title       | <title>          | <title>                 |
| link        | <link>text</link>| <link href="...">       |
| pub_date    | <pubDate>        | <published>/<updated>   |
| description | <description>    | <summary>/<content>     |

Items without a link are dropped, since the link is what identifies a
rumour downstream.
"""

import logging
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Optional

from bs4 import BeautifulSoup
from bs4.element import Tag

from soylenti.errors import FeedParseError
from soylenti.feeds.base import RumorItem, RumorSource

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "Sin título"

DATE_TAGS = ["pubDate", "published", "updated", "date"]
DESCRIPTION_TAGS = ["description", "summary", "content"]


def parse_feed(
    xml: str,
    source: RumorSource,
    fetched_at: Optional[datetime] = None,
) -> list[RumorItem]:
    """
    Parse a feed document into rumour items.

    Args:
        xml: Raw RSS or Atom document
        source: Feed the document came from, stamped on every item
        fetched_at: Fallback pub_date for items with a missing or
            unparseable date (defaults to now, naive UTC)

    Returns:
        Items in document order.

    Raises:
        FeedParseError: if the document is not an RSS or Atom feed
    """
    if fetched_at is None:
        fetched_at = datetime.now(timezone.utc).replace(tzinfo=None)

    if not xml or not xml.strip():
        raise FeedParseError(f"{source.value}: empty feed document")

    soup = BeautifulSoup(xml, "xml")
    if soup.find(["rss", "feed", "RDF"]) is None:
        raise FeedParseError(f"{source.value}: not an RSS or Atom document")

    entries = soup.find_all("item") or soup.find_all("entry")

    items: list[RumorItem] = []
    for entry in entries:
        link = _extract_link(entry)
        if not link:
            logger.debug("Skipping %s item without link", source.value)
            continue

        title = _text(entry.find("title")) or DEFAULT_TITLE
        pub_date = parse_date(_text(entry.find(DATE_TAGS))) or fetched_at
        description = strip_html(_text(entry.find(DESCRIPTION_TAGS)))

        items.append(
            RumorItem(
                title=title,
                link=link,
                pub_date=pub_date,
                source=source,
                description=description,
            )
        )

    return items


def _text(tag: Optional[Tag]) -> str:
    if tag is None:
        return ""
    return tag.get_text().strip()


def _extract_link(entry: Tag) -> str:
    """RSS keeps the URL as element text, Atom in the href attribute."""
    links = entry.find_all("link")
    for link in links:
        text = link.get_text().strip()
        if text:
            return text

    # Atom: prefer rel="alternate" (or no rel) over enclosures and self links
    for link in links:
        href = (link.get("href") or "").strip()
        if href and link.get("rel", "alternate") == "alternate":
            return href
    for link in links:
        href = (link.get("href") or "").strip()
        if href:
            return href

    return ""


def parse_date(value: str) -> Optional[datetime]:
    """
    Parse an RFC 822 (RSS) or ISO 8601 (Atom) date into naive UTC.

    Dates without a timezone are taken as UTC. Returns None when the value
    is empty or cannot be parsed.

    Examples:
        >>> parse_date("Mon, 06 Jan 2025 10:30:00 +0100")
        datetime.datetime(2025, 1, 6, 9, 30)
        >>> parse_date("2025-01-06T09:30:00Z")
        datetime.datetime(2025, 1, 6, 9, 30)
    """
    if not value:
        return None

    parsed: Optional[datetime] = None
    try:
        parsed = parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError):
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def strip_html(value: str) -> Optional[str]:
    """Reduce an HTML fragment to plain text with collapsed whitespace."""
    if not value:
        return None
    if "<" in value:
        value = BeautifulSoup(value, "lxml").get_text(" ")
    text = " ".join(value.split())
    return text or None
