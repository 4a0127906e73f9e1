"""Extraction of the API key from request headers."""

from __future__ import annotations

from collections.abc import Mapping

__all__ = ["AuthError", "get_api_key"]

_SCHEME = "ApiKey"


class AuthError(Exception):
    """Raised when a request carries no usable API key."""


def _header_value(headers: Mapping[str, str], name: str) -> str:
    wanted = name.lower()
    for key, value in headers.items():
        if key.lower() == wanted:
            return value
    return ""


def get_api_key(headers: Mapping[str, str]) -> str:
    """Return the key from an ``Authorization: ApiKey <key>`` header.

    Header names are matched without regard to case.
    """
    value = _header_value(headers, "Authorization")
    if not value:
        raise AuthError("no authentication header found")

    parts = value.split(" ")
    if len(parts) != 2:
        raise AuthError("malformed Auth header")

    scheme, key = parts
    if scheme != _SCHEME:
        raise AuthError("malformed first part of auth header")

    return key