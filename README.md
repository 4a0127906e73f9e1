# rssagg

`rssagg` is an RSS aggregator served as a JSON HTTP API. Users register,
add feeds, follow the feeds they care about, and read the newest posts from
everything they follow. A background scraper fetches the feeds that have
waited longest (never-fetched feeds first), up to ten at a time in parallel,
once every 60 seconds, and stores the new posts it finds.

## Installation

```
pip install .
```

## Configuration

Two settings are required:

```
PORT=8080
DB_URL=rssagg.db
```

A `.env` file must exist in the working directory; the command stops with
an error if it is missing. Its values are added to the environment, but a
variable that is already set in the environment wins over the file.

- `PORT` is the port the server listens on, on all interfaces.
- `DB_URL` is the path of the SQLite database file in which users, feeds,
  follows and posts are kept. The tables are created when missing.

## Running

```
rssagg
```

The command takes no options besides `--help`. It prints
`Starting Server at PORT: <port>`, starts the scraper in a background
thread and serves the API with Flask's built-in server. It exits with
status 1 if the configuration cannot be loaded, `PORT` is not a number, or
the database cannot be opened.

## API

All routes live under `/v1` and answer with JSON. Times are given in
RFC 3339 form in UTC, for example `2024-01-02T03:04:05.5Z`. When a request
fails, the body is `{"error": "<message>"}`.

Routes marked *auth* need a header of exactly this form, carrying the
`api_key` returned when the user was created:

```
Authorization: ApiKey <api_key>
```

A missing or malformed header gives 403; an unknown key gives 400.

| Method | Path                    | Auth | Status | Description                                    |
|--------|-------------------------|------|--------|------------------------------------------------|
| GET    | `/v1/healthz`           |      | 200    | Readiness check; returns `{}`                  |
| GET    | `/v1/err`               |      | 400    | Always answers with an error body              |
| POST   | `/v1/users`             |      | 201    | Create a user from `{"name": ...}`             |
| GET    | `/v1/users`             | yes  | 200    | The authenticated user, with its `api_key`     |
| POST   | `/v1/feeds`             | yes  | 201    | Create a feed from `{"name": ..., "url": ...}` |
| GET    | `/v1/feeds`             |      | 200    | List all feeds                                 |
| POST   | `/v1/feed_follows`      | yes  | 200    | Follow a feed from `{"feed_id": ...}`          |
| GET    | `/v1/feed_follows`      | yes  | 200    | List the user's feed follows                   |
| DELETE | `/v1/feed_follows/<id>` | yes  | 200    | Unfollow; returns `{}`                         |
| GET    | `/v1/posts`             | yes  | 200    | The 10 newest posts from followed feeds        |

Feed URLs and post URLs are unique, and a user can follow a feed only once;
breaking either rule gives 400. Deleting a follow that does not exist or
belongs to another user does nothing and still answers `{}`. A post whose
feed item has no description has `"description": null`.

Cross-origin requests are allowed from `https://` origins with the methods
GET, POST, PUT, DELETE and OPTIONS; preflight answers may be cached for
300 seconds and the `Link` header is exposed.

## Example

```
curl -X POST localhost:8080/v1/users -d '{"name": "alice"}'
curl -H "Authorization: ApiKey placeholder" localhost:8080/v1/posts
```

## Using it as a library

```python
from rssagg.database import Database
from rssagg.app import create_app

db = Database("rssagg.db")
app = create_app(db)
```

- `rssagg.database.Database` is the store. It can be used as a context
  manager and raises `DatabaseError`, `DuplicateKeyError` or
  `NotFoundError` when a query fails.
- `rssagg.rss.parse_feed(data)` parses an RSS document into an `RSSFeed`
  and raises `ValueError` on malformed XML; `rssagg.rss.url_to_feed(url)`
  downloads and parses one, with a 10 second timeout by default.
- `rssagg.scraper.scrape_once(db, concurrency)` runs one round of
  scraping and returns the number of posts stored;
  `rssagg.scraper.start_scraping(db, concurrency, interval, stop_event)`
  repeats it until the event is set. Both accept a `fetch` function in
  place of `url_to_feed`. Item dates must be in the form
  `Mon, 02 Jan 2006 15:04:05 -0700`; items with other dates are skipped.
- `rssagg.config.load_config(environ, dotenv_path)` reads the settings
  into an `Env` with `port` and `db_url`, raising `ConfigError`.
- `rssagg.auth.get_api_key(headers)` extracts the key from an
  `Authorization` header, raising `AuthError`.

## Limitations

Storage is a single local SQLite file; there is no support for a separate
database server, and `DB_URL` is a file path rather than a connection URL.
The API is served by Flask's built-in server, not a production WSGI server.

## Tests

```
pip install .[test]
pytest
```