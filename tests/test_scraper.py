import threading
import uuid
from datetime import datetime, timedelta, timezone

import pytest

from rssagg import database
from rssagg.database import Database
from rssagg.rss import RSSChannel, RSSFeed, RSSItem
from rssagg.scraper import parse_pub_date, scrape_feed, scrape_once, start_scraping

DATE_A = "Mon, 02 Jan 2006 15:04:05 -0700"
DATE_B = "Tue, 03 Jan 2006 15:04:05 -0700"


def _now():
    return datetime.now(timezone.utc)


@pytest.fixture
def db():
    with Database(":memory:") as store:
        yield store


@pytest.fixture
def user(db):
    now = _now()
    return db.create_user(uuid.uuid4(), now, now, "alice")


def _add_feed(db, user, url, follow=True):
    now = _now()
    feed = db.create_feed(uuid.uuid4(), now, now, "Blog", url, user.id)
    if follow:
        db.create_feed_follow(uuid.uuid4(), now, now, user.id, feed.id)
    return feed


def _fetcher(*items, calls=None):
    def fetch(url):
        if calls is not None:
            calls.append(url)
        return RSSFeed(channel=RSSChannel(items=list(items)))

    return fetch


def test_parse_pub_date_layout_example():
    assert parse_pub_date(DATE_A) == datetime(
        2006, 1, 2, 15, 4, 5, tzinfo=timezone(timedelta(hours=-7))
    )


@pytest.mark.parametrize(
    "value",
    ["2006-01-02T15:04:05Z", "Mon, 02 Jan 2006 15:04:05 MST", "", "Mon, 2 Jan 2006 15:04:05 -0700"],
)
def test_parse_pub_date_rejects_other_layouts(value):
    with pytest.raises(ValueError):
        parse_pub_date(value)


def test_scrape_feed_stores_posts(db, user):
    feed = _add_feed(db, user, "https://example.com/feed.xml")
    fetch = _fetcher(
        RSSItem("Old", "https://example.com/old", "body", DATE_A),
        RSSItem("New", "https://example.com/new", "", DATE_B),
    )
    assert scrape_feed(db, feed, fetch) == 2
    posts = db.get_posts_for_user(user.id, 10)
    assert [post.title for post in posts] == ["New", "Old"]
    assert posts[0].description is None
    assert posts[1].description == "body"
    assert posts[1].published_at == parse_pub_date(DATE_A)
    assert all(post.feed_id == feed.id for post in posts)


def test_scrape_feed_marks_feed_fetched(db, user):
    feed = _add_feed(db, user, "https://example.com/feed.xml")
    before = _now()
    scrape_feed(db, feed, _fetcher())
    (refreshed,) = db.get_feeds()
    assert refreshed.last_fetched_at >= before


def test_duplicate_posts_are_skipped(db, user):
    feed = _add_feed(db, user, "https://example.com/feed.xml")
    fetch = _fetcher(RSSItem("Only", "https://example.com/only", "", DATE_A))
    assert scrape_feed(db, feed, fetch) == 1
    assert scrape_feed(db, feed, fetch) == 0
    assert len(db.get_posts_for_user(user.id, 10)) == 1


def test_items_with_bad_dates_are_skipped(db, user):
    feed = _add_feed(db, user, "https://example.com/feed.xml")
    fetch = _fetcher(
        RSSItem("Bad", "https://example.com/bad", "", "yesterday"),
        RSSItem("Good", "https://example.com/good", "", DATE_A),
    )
    assert scrape_feed(db, feed, fetch) == 1
    assert [post.title for post in db.get_posts_for_user(user.id, 10)] == ["Good"]


def test_fetch_failure_is_contained(db, user):
    feed = _add_feed(db, user, "https://example.com/feed.xml")

    def failing(url):
        raise OSError("connection refused")

    before = _now()
    assert scrape_feed(db, feed, failing) == 0
    assert db.get_posts_for_user(user.id, 10) == []
    assert db.get_feeds()[0].last_fetched_at >= before


def test_unknown_feed_is_not_fetched(db):
    now = _now()
    ghost = database.Feed(uuid.uuid4(), now, now, "Ghost", "https://example.com/x", uuid.uuid4(), None)
    calls = []
    assert scrape_feed(db, ghost, _fetcher(calls=calls)) == 0
    assert calls == []


def test_scrape_once_respects_concurrency(db, user):
    urls = [f"https://example.com/{name}.xml" for name in ("a", "b", "c")]
    for url in urls:
        _add_feed(db, user, url, follow=False)
    calls = []
    fetch = _fetcher(calls=calls)
    scrape_once(db, 2, fetch)
    assert len(calls) == 2
    assert len(set(calls)) == 2
    scrape_once(db, 1, fetch)
    assert set(calls) == set(urls)


def test_scrape_once_sums_stored_posts(db, user):
    _add_feed(db, user, "https://example.com/a.xml")
    fetch = _fetcher(RSSItem("Post", "https://example.com/post", "", DATE_A))
    assert scrape_once(db, 10, fetch) == 1


def test_scrape_once_with_no_feeds(db):
    calls = []
    assert scrape_once(db, 5, _fetcher(calls=calls)) == 0
    assert calls == []


def test_start_scraping_stops_when_event_set(db, user):
    _add_feed(db, user, "https://example.com/feed.xml")
    stop = threading.Event()
    stop.set()
    calls = []
    start_scraping(db, 10, timedelta(minutes=1), stop, _fetcher(calls=calls))
    assert calls == ["https://example.com/feed.xml"]


def test_start_scraping_in_background_thread(db, user):
    _add_feed(db, user, "https://example.com/feed.xml")
    stop = threading.Event()
    fetched = threading.Event()

    def fetch(url):
        fetched.set()
        return RSSFeed()

    worker = threading.Thread(target=start_scraping, args=(db, 1, 0.01, stop, fetch))
    worker.start()
    assert fetched.wait(5)
    stop.set()
    worker.join(5)
    assert not worker.is_alive()