"""An RSS feed aggregator served as a JSON HTTP API, with SQLite storage and a background scraper."""

__version__ = "0.1.0"