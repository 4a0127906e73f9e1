"""Public JSON shapes of the stored records."""

from __future__ import annotations

import uuid
from collections.abc import Iterable
from dataclasses import dataclass, fields
from datetime import datetime
from typing import Any

from rssagg import database

__all__ = [
    "User",
    "Feed",
    "FeedFollow",
    "Post",
    "user_from_db",
    "feed_from_db",
    "feeds_from_db",
    "feed_follow_from_db",
    "feed_follows_from_db",
    "post_from_db",
    "posts_from_db",
]


def _as_dict(record: Any) -> dict[str, Any]:
    return {field.name: getattr(record, field.name) for field in fields(record)}


@dataclass(frozen=True)
class User:
    id: uuid.UUID
    created_at: datetime
    updated_at: datetime
    name: str
    api_key: str

    def to_dict(self) -> dict[str, Any]:
        return _as_dict(self)


@dataclass(frozen=True)
class Feed:
    id: uuid.UUID
    created_at: datetime
    updated_at: datetime
    name: str
    url: str
    user_id: uuid.UUID

    def to_dict(self) -> dict[str, Any]:
        return _as_dict(self)


@dataclass(frozen=True)
class FeedFollow:
    id: uuid.UUID
    created_at: datetime
    updated_at: datetime
    user_id: uuid.UUID
    feed_id: uuid.UUID

    def to_dict(self) -> dict[str, Any]:
        return _as_dict(self)


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

    def to_dict(self) -> dict[str, Any]:
        return _as_dict(self)


def user_from_db(db_user: database.User) -> User:
    return User(
        id=db_user.id,
        created_at=db_user.created_at,
        updated_at=db_user.updated_at,
        name=db_user.name,
        api_key=db_user.api_key,
    )


def feed_from_db(db_feed: database.Feed) -> Feed:
    return Feed(
        id=db_feed.id,
        created_at=db_feed.created_at,
        updated_at=db_feed.updated_at,
        name=db_feed.name,
        url=db_feed.url,
        user_id=db_feed.user_id,
    )


def feeds_from_db(db_feeds: Iterable[database.Feed]) -> list[Feed]:
    return [feed_from_db(db_feed) for db_feed in db_feeds]


def feed_follow_from_db(db_follow: database.FeedFollow) -> FeedFollow:
    return FeedFollow(
        id=db_follow.id,
        created_at=db_follow.created_at,
        updated_at=db_follow.updated_at,
        user_id=db_follow.user_id,
        feed_id=db_follow.feed_id,
    )


def feed_follows_from_db(db_follows: Iterable[database.FeedFollow]) -> list[FeedFollow]:
    return [feed_follow_from_db(db_follow) for db_follow in db_follows]


def post_from_db(db_post: database.Post) -> Post:
    return Post(
        id=db_post.id,
        created_at=db_post.created_at,
        updated_at=db_post.updated_at,
        title=db_post.title,
        description=db_post.description,
        published_at=db_post.published_at,
        url=db_post.url,
        feed_id=db_post.feed_id,
    )


def posts_from_db(db_posts: Iterable[database.Post]) -> list[Post]:
    return [post_from_db(db_post) for db_post in db_posts]