"""Server configuration read from a dotenv file and the environment."""

from __future__ import annotations

import os
from collections.abc import Mapping, MutableMapping
from dataclasses import dataclass
from pathlib import Path

from dotenv import dotenv_values

__all__ = ["ConfigError", "Env", "load_config"]


class ConfigError(Exception):
    """The configuration could not be loaded."""


@dataclass(frozen=True)
class Env:
    port: str
    db_url: str


_REQUIRED = {"port": "PORT", "db_url": "DB_URL"}


def load_config(
    environ: Mapping[str, str] | None = None,
    dotenv_path: str | os.PathLike | None = None,
) -> Env:
    """Load the dotenv file, then read the required variables.

    The dotenv file (``.env`` by default) must exist. Its values never
    override variables that are already set. Without ``environ`` the process
    environment is used and updated.
    """
    path = Path(dotenv_path) if dotenv_path is not None else Path(".env")
    if not path.is_file():
        raise ConfigError(f"Error loading .env file: open {path}: no such file")

    file_values = {key: value for key, value in dotenv_values(path).items() if value is not None}

    if environ is None:
        target: MutableMapping[str, str] = os.environ
        for key, value in file_values.items():
            target.setdefault(key, value)
        merged: Mapping[str, str] = target
    else:
        merged = {**file_values, **environ}

    values = {}
    for field, variable in _REQUIRED.items():
        if variable not in merged:
            raise ConfigError(
                "Error parsing environment variables: "
                f'required environment variable "{variable}" is not set'
            )
        values[field] = merged[variable]
    return Env(**values)