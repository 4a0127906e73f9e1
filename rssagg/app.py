"""HTTP API of the aggregator and the command that serves it."""

from __future__ import annotations

import argparse
import functools
import json
import logging
import threading
import uuid
from collections.abc import Callable, Mapping
from datetime import datetime, timezone
from typing import Any

from flask import Blueprint, Flask, Response, current_app, request

from rssagg.auth import AuthError, get_api_key
from rssagg.config import ConfigError, load_config
from rssagg.database import Database, DatabaseError, User
from rssagg.models import (
    feed_follow_from_db,
    feed_follows_from_db,
    feed_from_db,
    feeds_from_db,
    posts_from_db,
    user_from_db,
)
from rssagg.responses import error_response, json_response
from rssagg.scraper import start_scraping

__all__ = ["create_app", "main"]

_log = logging.getLogger(__name__)

_DB_KEY = "rssagg.db"
_POSTS_LIMIT = 10
_SCRAPE_CONCURRENCY = 10
_SCRAPE_INTERVAL = 60.0

_ALLOWED_METHODS = frozenset({"GET", "POST", "PUT", "DELETE", "OPTIONS"})
_EXPOSED_HEADERS = "Link"
_MAX_AGE = "300"

_v1 = Blueprint("v1", __name__, url_prefix="/v1")


# request helpers


def _db() -> Database:
    return current_app.extensions[_DB_KEY]


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _json_kind(value: Any) -> str:
    if isinstance(value, bool):
        return "bool"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, list):
        return "array"
    if isinstance(value, dict):
        return "object"
    return "string"


def _string(value: Any) -> str:
    if not isinstance(value, str):
        raise ValueError(f"cannot unmarshal {_json_kind(value)} into a string field")
    return value


def _uuid(value: Any) -> uuid.UUID:
    if not isinstance(value, str):
        raise ValueError(f"cannot unmarshal {_json_kind(value)} into a UUID field")
    return uuid.UUID(value)


def _reject_constant(name: str) -> Any:
    raise ValueError(f"invalid character in literal {name}")


def _lookup(body: Mapping[str, Any], name: str) -> Any:
    if name in body:
        return body[name]
    return next((value for key, value in body.items() if key.lower() == name), None)


_Spec = Mapping[str, "tuple[Any, Callable[[Any], Any]]"]


def _read_params(spec: _Spec) -> dict[str, Any]:
    """Decode the first JSON value of the body into the named fields.

    Missing or null fields take their default; unknown fields are ignored;
    names match without regard to case when no exact match exists.
    """
    text = request.get_data().decode("utf-8", errors="replace").lstrip(" \t\r\n")
    if not text:
        raise ValueError("EOF")
    decoder = json.JSONDecoder(parse_constant=_reject_constant)
    try:
        body, _ = decoder.raw_decode(text)
    except json.JSONDecodeError as exc:
        raise ValueError(str(exc)) from exc
    if body is None:
        body = {}
    if not isinstance(body, dict):
        raise ValueError(f"cannot unmarshal {_json_kind(body)} into an object")

    params = {}
    for name, (default, convert) in spec.items():
        value = _lookup(body, name)
        params[name] = default if value is None else convert(value)
    return params


def _authenticated(handler: Callable[..., Response]) -> Callable[..., Response]:
    """Resolve the caller from its API key and pass the user to ``handler``."""

    @functools.wraps(handler)
    def wrapper(*args: Any, **kwargs: Any) -> Response:
        try:
            api_key = get_api_key(request.headers)
        except AuthError as exc:
            return error_response(403, f"Auth error : {exc}")
        try:
            user = _db().get_user_by_api_key(api_key)
        except DatabaseError as exc:
            return error_response(400, f"Coudnt get user : {exc}")
        return handler(user, *args, **kwargs)

    return wrapper


# handlers


@_v1.get("/healthz")
def readiness() -> Response:
    return json_response(200, {})


@_v1.get("/err")
def failure() -> Response:
    return error_response(400, "something went wrong")


@_v1.post("/users")
def create_user() -> Response:
    try:
        params = _read_params({"name": ("", _string)})
    except ValueError as exc:
        return error_response(400, f"Error parsing json: {exc}")

    now = _now()
    try:
        user = _db().create_user(uuid.uuid4(), now, now, params["name"])
    except DatabaseError as exc:
        return error_response(400, f"Coundt create User : {exc}")
    return json_response(201, user_from_db(user))


@_v1.get("/users")
@_authenticated
def get_user_by_api_key(user: User) -> Response:
    return json_response(200, user_from_db(user))


@_v1.post("/feeds")
@_authenticated
def create_feed(user: User) -> Response:
    try:
        params = _read_params({"name": ("", _string), "url": ("", _string)})
    except ValueError as exc:
        return error_response(400, f"Error parsing json: {exc}")

    now = _now()
    try:
        feed = _db().create_feed(
            uuid.uuid4(), now, now, params["name"], params["url"], user.id
        )
    except DatabaseError as exc:
        return error_response(400, f"coudnt create feed: {exc}")
    return json_response(201, feed_from_db(feed))


@_v1.get("/feeds")
def get_feeds() -> Response:
    try:
        feeds = _db().get_feeds()
    except DatabaseError as exc:
        return error_response(400, f"Coudnt find feeds: {exc}")
    return json_response(200, feeds_from_db(feeds))


@_v1.post("/feed_follows")
@_authenticated
def create_feed_follow(user: User) -> Response:
    try:
        params = _read_params({"feed_id": (uuid.UUID(int=0), _uuid)})
    except ValueError as exc:
        return error_response(400, f"Error parsing json: {exc}")

    now = _now()
    try:
        follow = _db().create_feed_follow(
            uuid.uuid4(), now, now, user.id, params["feed_id"]
        )
    except DatabaseError as exc:
        return error_response(400, f"Error parsing json: {exc}")
    return json_response(200, feed_follow_from_db(follow))


@_v1.get("/feed_follows")
@_authenticated
def get_feed_follows(user: User) -> Response:
    try:
        follows = _db().get_feed_follows(user.id)
    except DatabaseError as exc:
        return error_response(400, f"coudnt find feed follows : {exc}")
    return json_response(200, feed_follows_from_db(follows))


@_v1.delete("/feed_follows/<feed_follow_id>")
@_authenticated
def delete_feed_follow(user: User, feed_follow_id: str) -> Response:
    try:
        follow_id = uuid.UUID(feed_follow_id)
    except ValueError as exc:
        return error_response(400, f"coudnt parse feed follows id: {exc}")

    try:
        _db().delete_feed_follows(follow_id, user.id)
    except DatabaseError as exc:
        return error_response(400, f"coudnt delete feed follows : {exc}")
    return json_response(200, {})


@_v1.get("/posts")
@_authenticated
def get_posts_for_user(user: User) -> Response:
    try:
        posts = _db().get_posts_for_user(user.id, _POSTS_LIMIT)
    except DatabaseError as exc:
        return error_response(400, f"Coundt get posts :{exc}")
    return json_response(200, posts_from_db(posts))


# cross-origin requests


def _origin_allowed(origin: str) -> bool:
    origin = origin.lower()
    return origin.startswith("https://") or origin == "http://"


def _canonical_header(name: str) -> str:
    return "-".join(part.capitalize() for part in name.split("-"))


def _is_preflight() -> bool:
    return request.method == "OPTIONS" and bool(
        request.headers.get("Access-Control-Request-Method")
    )


def _preflight() -> Response | None:
    if not _is_preflight():
        return None

    response = Response(status=200)
    del response.headers["Content-Type"]
    for varied in ("Origin", "Access-Control-Request-Method", "Access-Control-Request-Headers"):
        response.headers.add("Vary", varied)

    origin = request.headers.get("Origin", "")
    method = request.headers.get("Access-Control-Request-Method", "").upper()
    if not origin or not _origin_allowed(origin) or method not in _ALLOWED_METHODS:
        return response

    response.headers["Access-Control-Allow-Origin"] = origin
    response.headers["Access-Control-Allow-Methods"] = method
    requested = [
        _canonical_header(name.strip())
        for name in request.headers.get("Access-Control-Request-Headers", "").split(",")
        if name.strip()
    ]
    if requested:
        response.headers["Access-Control-Allow-Headers"] = ", ".join(requested)
    response.headers["Access-Control-Max-Age"] = _MAX_AGE
    return response


def _add_cors_headers(response: Response) -> Response:
    if _is_preflight():
        return response
    response.headers.add("Vary", "Origin")
    origin = request.headers.get("Origin", "")
    if not origin or not _origin_allowed(origin) or request.method not in _ALLOWED_METHODS:
        return response
    response.headers["Access-Control-Allow-Origin"] = origin
    response.headers["Access-Control-Expose-Headers"] = _EXPOSED_HEADERS
    return response


# application


def create_app(db: Database) -> Flask:
    """Build the web application serving the API under ``/v1``."""
    app = Flask(__name__)
    app.extensions[_DB_KEY] = db
    app.before_request(_preflight)
    app.after_request(_add_cors_headers)
    app.register_blueprint(_v1)
    return app


def main(argv: list[str] | None = None) -> int:
    """Load the configuration, start the scraper and serve the API."""
    parser = argparse.ArgumentParser(
        prog="rssagg", description="Serve the RSS aggregator API."
    )
    parser.parse_args(argv)
    logging.basicConfig(level=logging.INFO)

    try:
        env = load_config()
    except ConfigError as exc:
        _log.error("%s", exc)
        return 1

    try:
        port = int(env.port)
    except ValueError:
        _log.error("invalid PORT value: %r", env.port)
        return 1

    try:
        db = Database(env.db_url)
    except DatabaseError:
        _log.error("can't connect to database")
        return 1

    stop = threading.Event()
    scraper = threading.Thread(
        target=start_scraping,
        args=(db, _SCRAPE_CONCURRENCY, _SCRAPE_INTERVAL, stop),
        name="scraper",
        daemon=True,
    )
    scraper.start()

    app = create_app(db)
    print("Starting Server at PORT:", env.port)
    try:
        app.run(host="0.0.0.0", port=port, threaded=True)
    except OSError as exc:
        _log.error("server issue: %s", exc)
        return 1
    finally:
        stop.set()
        db.close()
    return 0