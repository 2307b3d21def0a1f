"""TOML configuration and environment lookups."""

from __future__ import annotations

import os
import tomllib
from collections.abc import Mapping
from pathlib import Path
from typing import Any, cast

from releaseprep.core.models import Config


TOKEN_ENV_VARS = ("GITHUB_TOKEN", "GH_TOKEN")
REPOSITORY_ENV_VAR = "GITHUB_REPOSITORY"


def load_config(
    *,
    path: Path | str | None = None,
    data: str | bytes | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> Config:
    """Parse TOML from ``path`` or ``data`` into a validated :class:`Config`.

    Exactly one source must be given. ``overrides`` are merged table by table
    on top of the document before validation.
    """
    document = _parse(_read_source(path, data))
    if overrides:
        document = _deep_merge(document, overrides)
    return Config.model_validate(document)


def _read_source(path: Path | str | None, data: str | bytes | None) -> str:
    if (path is None) == (data is None):
        msg = "Provide exactly one of 'path' or 'data' when loading configuration."
        raise ValueError(msg)
    if path is None:
        text = cast("str | bytes", data)
        return text.decode("utf-8") if isinstance(text, bytes) else text

    source = Path(path)
    if not source.exists():
        raise FileNotFoundError(source)
    if not source.is_file():
        msg = f"Configuration path {source} is not a file."
        raise ValueError(msg)
    try:
        return source.read_text(encoding="utf-8")
    except OSError as exc:
        msg = f"Unable to read configuration {source}: {exc}"
        raise ValueError(msg) from exc


def _parse(text: str) -> dict[str, Any]:
    try:
        return tomllib.loads(text)
    except tomllib.TOMLDecodeError as exc:
        msg = f"Invalid TOML configuration: {exc}"
        raise ValueError(msg) from exc


def _deep_merge(base: Mapping[str, Any], updates: Mapping[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in updates.items():
        current = merged.get(key)
        if isinstance(current, Mapping) and isinstance(value, Mapping):
            merged[key] = _deep_merge(current, value)
        else:
            merged[key] = value
    return merged


def token_from_env(environ: Mapping[str, str] | None = None) -> str | None:
    """Return the first non-empty API token found in the environment."""
    env = os.environ if environ is None else environ
    for name in TOKEN_ENV_VARS:
        value = env.get(name, "").strip()
        if value:
            return value
    return None


def split_repository(value: str | None) -> tuple[str, str]:
    """Split ``owner/name`` into its two parts."""
    owner, _, name = (value or "").strip().partition("/")
    if not owner or not name or "/" in name:
        msg = f"Repository must be given as 'owner/name', got {value!r}."
        raise ValueError(msg)
    return owner, name


__all__ = ["REPOSITORY_ENV_VAR", "TOKEN_ENV_VARS", "load_config", "split_repository", "token_from_env"]
