"""SQLite storage for users, feeds, feed follows and posts."""

from __future__ import annotations

import hashlib
import secrets
import sqlite3
import threading
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone

__all__ = [
    "DatabaseError",
    "DuplicateKeyError",
    "NotFoundError",
    "User",
    "Feed",
    "FeedFollow",
    "Post",
    "Database",
]

_SCHEMA = """
CREATE TABLE IF NOT EXISTS users (
    id TEXT PRIMARY KEY,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    name TEXT NOT NULL,
    api_key TEXT NOT NULL UNIQUE
);
CREATE TABLE IF NOT EXISTS feeds (
    id TEXT PRIMARY KEY,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    name TEXT NOT NULL,
    url TEXT NOT NULL UNIQUE,
    user_id TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    last_fetched_at TEXT
);
CREATE TABLE IF NOT EXISTS feed_follows (
    id TEXT PRIMARY KEY,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    user_id TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    feed_id TEXT NOT NULL REFERENCES feeds(id) ON DELETE CASCADE,
    UNIQUE (user_id, feed_id)
);
CREATE TABLE IF NOT EXISTS posts (
    id TEXT PRIMARY KEY,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    title TEXT NOT NULL,
    description TEXT,
    published_at TEXT NOT NULL,
    url TEXT NOT NULL UNIQUE,
    feed_id TEXT NOT NULL REFERENCES feeds(id) ON DELETE CASCADE
);
"""


class DatabaseError(Exception):
    """A query failed."""


class DuplicateKeyError(DatabaseError):
    """A row would break a uniqueness constraint."""


class NotFoundError(DatabaseError):
    """A query that must return one row returned none."""


@dataclass(frozen=True)
class User:
    id: uuid.UUID
    created_at: datetime
    updated_at: datetime
    name: str
    api_key: str


@dataclass(frozen=True)
class Feed:
    id: uuid.UUID
    created_at: datetime
    updated_at: datetime
    name: str
    url: str
    user_id: uuid.UUID
    last_fetched_at: datetime | None


@dataclass(frozen=True)
class FeedFollow:
    id: uuid.UUID
    created_at: datetime
    updated_at: datetime
    user_id: uuid.UUID
    feed_id: uuid.UUID


@dataclass(frozen=True)
class Post:
    id: uuid.UUID
    created_at: datetime
    updated_at: datetime
    title: str
    description: str | None
    published_at: datetime
    url: str
    feed_id: uuid.UUID


def _to_text(moment: datetime) -> str:
    """Store times in UTC with a fixed layout so text order is time order."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _from_text(text: str | None) -> datetime | None:
    return None if text is None else datetime.fromisoformat(text)


def _new_api_key() -> str:
    return hashlib.sha256(secrets.token_bytes(32)).hexdigest()


def _user(row: sqlite3.Row) -> User:
    return User(
        id=uuid.UUID(row["id"]),
        created_at=_from_text(row["created_at"]),
        updated_at=_from_text(row["updated_at"]),
        name=row["name"],
        api_key=row["api_key"],
    )


def _feed(row: sqlite3.Row) -> Feed:
    return Feed(
        id=uuid.UUID(row["id"]),
        created_at=_from_text(row["created_at"]),
        updated_at=_from_text(row["updated_at"]),
        name=row["name"],
        url=row["url"],
        user_id=uuid.UUID(row["user_id"]),
        last_fetched_at=_from_text(row["last_fetched_at"]),
    )


def _feed_follow(row: sqlite3.Row) -> FeedFollow:
    return FeedFollow(
        id=uuid.UUID(row["id"]),
        created_at=_from_text(row["created_at"]),
        updated_at=_from_text(row["updated_at"]),
        user_id=uuid.UUID(row["user_id"]),
        feed_id=uuid.UUID(row["feed_id"]),
    )


def _post(row: sqlite3.Row) -> Post:
    return Post(
        id=uuid.UUID(row["id"]),
        created_at=_from_text(row["created_at"]),
        updated_at=_from_text(row["updated_at"]),
        title=row["title"],
        description=row["description"],
        published_at=_from_text(row["published_at"]),
        url=row["url"],
        feed_id=uuid.UUID(row["feed_id"]),
    )


def _check_limit(limit: int) -> None:
    if limit < 0:
        raise DatabaseError("LIMIT must not be negative")


_FEED_COLUMNS = "id, created_at, updated_at, name, url, user_id, last_fetched_at"
_POST_COLUMNS = (
    "posts.id, posts.created_at, posts.updated_at, posts.title, "
    "posts.description, posts.published_at, posts.url, posts.feed_id"
)


class Database:
    """A thread-safe store backed by one SQLite connection.

    Naive datetimes are taken to be UTC; all returned times are UTC-aware.
    """

    def __init__(self, path: str) -> None:
        self._lock = threading.Lock()
        try:
            self._conn = sqlite3.connect(path, check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA foreign_keys = ON")
            self._conn.executescript(_SCHEMA)
        except sqlite3.Error as exc:
            raise DatabaseError(str(exc)) from exc

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    def __enter__(self) -> Database:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        with self._lock:
            try:
                with self._conn:
                    yield self._conn
            except sqlite3.IntegrityError as exc:
                if "UNIQUE" in str(exc):
                    raise DuplicateKeyError(
                        f"duplicate key value violates unique constraint: {exc}"
                    ) from exc
                raise DatabaseError(str(exc)) from exc
            except sqlite3.Error as exc:
                raise DatabaseError(str(exc)) from exc

    # users

    def create_user(
        self, user_id: uuid.UUID, created_at: datetime, updated_at: datetime, name: str
    ) -> User:
        api_key = _new_api_key()
        with self._transaction() as conn:
            conn.execute(
                "INSERT INTO users (id, created_at, updated_at, name, api_key) "
                "VALUES (?, ?, ?, ?, ?)",
                (str(user_id), _to_text(created_at), _to_text(updated_at), name, api_key),
            )
            row = conn.execute("SELECT * FROM users WHERE id = ?", (str(user_id),)).fetchone()
        return _user(row)

    def get_user_by_api_key(self, api_key: str) -> User:
        with self._transaction() as conn:
            row = conn.execute("SELECT * FROM users WHERE api_key = ?", (api_key,)).fetchone()
        if row is None:
            raise NotFoundError("no user with that API key")
        return _user(row)

    # feeds

    def create_feed(
        self,
        feed_id: uuid.UUID,
        created_at: datetime,
        updated_at: datetime,
        name: str,
        url: str,
        user_id: uuid.UUID,
    ) -> Feed:
        with self._transaction() as conn:
            conn.execute(
                "INSERT INTO feeds (id, created_at, updated_at, name, url, user_id) "
                "VALUES (?, ?, ?, ?, ?, ?)",
                (
                    str(feed_id),
                    _to_text(created_at),
                    _to_text(updated_at),
                    name,
                    url,
                    str(user_id),
                ),
            )
            row = conn.execute(
                f"SELECT {_FEED_COLUMNS} FROM feeds WHERE id = ?", (str(feed_id),)
            ).fetchone()
        return _feed(row)

    def get_feeds(self) -> list[Feed]:
        with self._transaction() as conn:
            rows = conn.execute(f"SELECT {_FEED_COLUMNS} FROM feeds").fetchall()
        return [_feed(row) for row in rows]

    def get_next_feeds_to_fetch(self, limit: int) -> list[Feed]:
        """Return up to ``limit`` feeds, never-fetched first, then oldest fetch."""
        _check_limit(limit)
        with self._transaction() as conn:
            rows = conn.execute(
                f"SELECT {_FEED_COLUMNS} FROM feeds "
                "ORDER BY last_fetched_at IS NOT NULL, last_fetched_at ASC "
                "LIMIT ?",
                (limit,),
            ).fetchall()
        return [_feed(row) for row in rows]

    def mark_feed_as_fetched(self, feed_id: uuid.UUID) -> Feed:
        now = _to_text(datetime.now(timezone.utc))
        with self._transaction() as conn:
            cursor = conn.execute(
                "UPDATE feeds SET last_fetched_at = ?, updated_at = ? WHERE id = ?",
                (now, now, str(feed_id)),
            )
            if cursor.rowcount == 0:
                raise NotFoundError(f"no feed with id {feed_id}")
            row = conn.execute(
                f"SELECT {_FEED_COLUMNS} FROM feeds WHERE id = ?", (str(feed_id),)
            ).fetchone()
        return _feed(row)

    # feed follows

    def create_feed_follow(
        self,
        follow_id: uuid.UUID,
        created_at: datetime,
        updated_at: datetime,
        user_id: uuid.UUID,
        feed_id: uuid.UUID,
    ) -> FeedFollow:
        with self._transaction() as conn:
            conn.execute(
                "INSERT INTO feed_follows (id, created_at, updated_at, user_id, feed_id) "
                "VALUES (?, ?, ?, ?, ?)",
                (
                    str(follow_id),
                    _to_text(created_at),
                    _to_text(updated_at),
                    str(user_id),
                    str(feed_id),
                ),
            )
            row = conn.execute(
                "SELECT * FROM feed_follows WHERE id = ?", (str(follow_id),)
            ).fetchone()
        return _feed_follow(row)

    def get_feed_follows(self, user_id: uuid.UUID) -> list[FeedFollow]:
        with self._transaction() as conn:
            rows = conn.execute(
                "SELECT * FROM feed_follows WHERE user_id = ?", (str(user_id),)
            ).fetchall()
        return [_feed_follow(row) for row in rows]

    def delete_feed_follows(self, follow_id: uuid.UUID, user_id: uuid.UUID) -> None:
        """Delete the follow if it belongs to the user; otherwise do nothing."""
        with self._transaction() as conn:
            conn.execute(
                "DELETE FROM feed_follows WHERE id = ? AND user_id = ?",
                (str(follow_id), str(user_id)),
            )

    # posts

    def create_post(
        self,
        post_id: uuid.UUID,
        created_at: datetime,
        updated_at: datetime,
        title: str,
        description: str | None,
        published_at: datetime,
        url: str,
        feed_id: uuid.UUID,
    ) -> Post:
        with self._transaction() as conn:
            conn.execute(
                "INSERT INTO posts (id, created_at, updated_at, title, description, "
                "published_at, url, feed_id) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    str(post_id),
                    _to_text(created_at),
                    _to_text(updated_at),
                    title,
                    description,
                    _to_text(published_at),
                    url,
                    str(feed_id),
                ),
            )
            row = conn.execute("SELECT * FROM posts WHERE id = ?", (str(post_id),)).fetchone()
        return _post(row)

    def get_posts_for_user(self, user_id: uuid.UUID, limit: int) -> list[Post]:
        """Return the newest posts from the feeds the user follows."""
        _check_limit(limit)
        with self._transaction() as conn:
            rows = conn.execute(
                f"SELECT {_POST_COLUMNS} FROM posts "
                "JOIN feed_follows ON posts.feed_id = feed_follows.feed_id "
                "WHERE feed_follows.user_id = ? "
                "ORDER BY posts.published_at DESC "
                "LIMIT ?",
                (str(user_id), limit),
            ).fetchall()
        return [_post(row) for row in rows]