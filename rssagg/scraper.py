"""Background collection of posts from the stored feeds."""

from __future__ import annotations

import logging
import re
import threading
import uuid
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone

from rssagg.database import Database, DatabaseError, DuplicateKeyError, Feed
from rssagg.rss import RSSFeed, url_to_feed

__all__ = ["parse_pub_date", "scrape_feed", "scrape_once", "start_scraping"]

_log = logging.getLogger(__name__)

_RFC1123Z = re.compile(
    r"[A-Za-z]{3}, \d{2} [A-Za-z]{3} \d{4} \d{2}:\d{2}:\d{2} [+-]\d{4}"
)
_RFC1123Z_LAYOUT = "%a, %d %b %Y %H:%M:%S %z"

Fetcher = Callable[[str], RSSFeed]


def parse_pub_date(value: str) -> datetime:
    """Parse an RFC 1123 date with a numeric zone, e.g. ``Mon, 02 Jan 2006 15:04:05 -0700``."""
    if not _RFC1123Z.fullmatch(value):
        raise ValueError(f"cannot parse {value!r} as an RFC 1123 date with numeric zone")
    return datetime.strptime(value, _RFC1123Z_LAYOUT)


def scrape_feed(db: Database, feed: Feed, fetch: Fetcher = url_to_feed) -> int:
    """Mark the feed fetched, download it and store its new posts.

    Failures are logged, not raised. Returns the number of posts stored.
    """
    try:
        db.mark_feed_as_fetched(feed.id)
    except DatabaseError as exc:
        _log.error("error marking feed as fetched: %s", exc)
        return 0

    try:
        rss_feed = fetch(feed.url)
    except (OSError, ValueError) as exc:
        _log.error("Error fetching feed: %s", exc)
        return 0

    items = rss_feed.channel.items
    stored = 0
    for item in items:
        try:
            published = parse_pub_date(item.pub_date)
        except ValueError as exc:
            _log.warning("couldn't parse date %s with err %s", item.pub_date, exc)
            continue

        now = datetime.now(timezone.utc)
        try:
            db.create_post(
                uuid.uuid4(),
                now,
                now,
                item.title,
                item.description or None,
                published,
                item.link,
                feed.id,
            )
        except DuplicateKeyError:
            continue
        except DatabaseError as exc:
            _log.error("failed to create post with err %s", exc)
            continue
        stored += 1

    _log.info("Feed %s collected, %d posts found", feed.name, len(items))
    return stored


def scrape_once(db: Database, concurrency: int, fetch: Fetcher = url_to_feed) -> int:
    """Scrape up to ``concurrency`` feeds in parallel; return posts stored."""
    try:
        feeds = db.get_next_feeds_to_fetch(concurrency)
    except DatabaseError as exc:
        _log.error("error fetching feeds: %s", exc)
        return 0
    if not feeds:
        return 0

    with ThreadPoolExecutor(max_workers=len(feeds)) as pool:
        return sum(pool.map(lambda feed: scrape_feed(db, feed, fetch), feeds))


def start_scraping(
    db: Database,
    concurrency: int,
    interval: float | timedelta,
    stop_event: threading.Event | None = None,
    fetch: Fetcher = url_to_feed,
) -> None:
    """Scrape at once and then every ``interval`` until ``stop_event`` is set."""
    seconds = interval.total_seconds() if isinstance(interval, timedelta) else float(interval)
    stop = threading.Event() if stop_event is None else stop_event
    _log.info("Scraping on %d threads every %s seconds", concurrency, seconds)
    while True:
        scrape_once(db, concurrency, fetch)
        if stop.wait(seconds):
            return