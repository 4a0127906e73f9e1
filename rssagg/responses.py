"""JSON HTTP responses shared by the request handlers."""

from __future__ import annotations

import json
import logging
import uuid
from datetime import datetime, timedelta
from typing import Any

from flask import Response

__all__ = ["json_response", "error_response"]

_log = logging.getLogger(__name__)

_HTML_SAFE = str.maketrans(
    {
        "<": "\\u003c",
        ">": "\\u003e",
        "&": "\\u0026",
        "\u2028": "\\u2028",
        "\u2029": "\\u2029",
    }
)


def _rfc3339(moment: datetime) -> str:
    """Format a time as RFC 3339 with trailing zeros of the fraction dropped."""
    text = moment.strftime("%Y-%m-%dT%H:%M:%S")
    if moment.microsecond:
        text += "." + f"{moment.microsecond:06d}".rstrip("0")
    offset = moment.utcoffset()
    if not offset:
        return text + "Z"
    sign = "+" if offset >= timedelta(0) else "-"
    total_minutes = abs(offset) // timedelta(minutes=1)
    hours, minutes = divmod(total_minutes, 60)
    return f"{text}{sign}{hours:02d}:{minutes:02d}"


class _PayloadEncoder(json.JSONEncoder):
    def default(self, o: Any) -> Any:
        to_dict = getattr(o, "to_dict", None)
        if callable(to_dict):
            return to_dict()
        if isinstance(o, uuid.UUID):
            return str(o)
        if isinstance(o, datetime):
            return _rfc3339(o)
        return super().default(o)


def json_response(code: int, payload: Any) -> Response:
    """Serialise ``payload`` as compact JSON with the given status.

    A payload that cannot be serialised gives an empty 500 response.
    """
    try:
        data = json.dumps(
            payload,
            cls=_PayloadEncoder,
            separators=(",", ":"),
            allow_nan=False,
            ensure_ascii=False,
        )
    except (TypeError, ValueError):
        _log.error("Failed to marshal JSON response: %r", payload)
        response = Response(status=500)
        del response.headers["Content-Type"]
        return response

    return Response(
        data.translate(_HTML_SAFE), status=code, content_type="application/json"
    )


def error_response(code: int, msg: str) -> Response:
    """Return ``{"error": msg}`` with the given status, logging server errors."""
    if code > 499:
        _log.warning("Responding with 5XX error: %s", msg)
    return json_response(code, {"error": msg})