"""Line-oriented structured logging with credential redaction.

Every record is one line on the stream: a JSON object in JSON mode, otherwise
``[timestamp] LEVEL name: message | key=value ...``. Messages and field values
pass through a pydantic ``SecretStr`` model that redacts API tokens and URL
credentials before anything is written.
"""

from __future__ import annotations

import json
import re
import sys
from collections.abc import Mapping, Set
from datetime import datetime, UTC
from typing import Any, TextIO

from pydantic import BaseModel, SecretStr, field_validator


LEVELS: dict[str, int] = {"DEBUG": 10, "INFO": 20, "WARNING": 30, "ERROR": 40}

_REDACTIONS: tuple[tuple[re.Pattern[str], str], ...] = tuple(
    (re.compile(pattern, re.IGNORECASE), replacement)
    for pattern, replacement in (
        (r"https://[^:/\s]+:[^@\s]+@", "https://***:***@"),
        (r"(authorization:\s*(?:bearer|token))\s+\S+", r"\1 ***"),
        (r"token[=:]\s*\S+", "token=***"),
        (r"\b(ghp|gho|ghu|ghs|ghr)_[A-Za-z0-9]{20,}", r"\1_***"),
        (r"\bgithub_pat_[A-Za-z0-9_]{20,}", "github_pat_***"),
    )
)


class _RedactedText(BaseModel):
    value: SecretStr

    @field_validator("value", mode="before")
    @classmethod
    def _redact(cls, raw: Any) -> str:
        text = str(raw)
        for pattern, replacement in _REDACTIONS:
            text = pattern.sub(replacement, text)
        return text


def sanitize(text: str) -> str:
    """Return ``text`` with tokens and URL credentials masked."""
    return _RedactedText(value=text).value.get_secret_value()


def _scrub(value: Any) -> Any:
    """Redact strings nested anywhere in ``value``; sets become sorted lists."""
    if isinstance(value, str):
        return sanitize(value)
    if isinstance(value, Mapping):
        return {key: _scrub(item) for key, item in value.items()}
    if isinstance(value, Set):
        return sorted(_scrub(item) for item in value)
    if isinstance(value, (list, tuple)):
        return [_scrub(item) for item in value]
    return value


class StructuredLogger:
    """Logger writing either JSON lines or ``key=value`` text lines.

    Records below ``level`` are dropped. ``context`` fields are attached to
    every record; fields passed to a single call take precedence.
    """

    def __init__(
        self,
        *,
        name: str,
        json_mode: bool = False,
        stream: TextIO | None = None,
        level: str = "DEBUG",
        context: Mapping[str, Any] | None = None,
    ) -> None:
        """Create a logger named ``name`` writing to ``stream`` (stderr by default)."""
        if level not in LEVELS:
            msg = f"unknown log level {level!r}"
            raise ValueError(msg)
        self._name = name
        self._json_mode = json_mode
        self._stream: TextIO = stream or sys.stderr
        self._level = level
        self._context: dict[str, Any] = dict(context or {})

    @property
    def name(self) -> str:
        """Return the dotted logger name."""
        return self._name

    @property
    def json_mode(self) -> bool:
        """Return whether records are written as JSON lines."""
        return self._json_mode

    @property
    def level(self) -> str:
        """Return the lowest level that is written."""
        return self._level

    def child(self, suffix: str) -> StructuredLogger:
        """Return a logger named ``<name>.<suffix>`` sharing stream, level and context."""
        return self._derive(name=f"{self._name}.{suffix}", context=self._context)

    def bind(self, **fields: Any) -> StructuredLogger:
        """Return a logger that adds ``fields`` to every record."""
        return self._derive(name=self._name, context={**self._context, **fields})

    def debug(self, message: str, **fields: Any) -> None:
        self.log("DEBUG", message, **fields)

    def info(self, message: str, **fields: Any) -> None:
        self.log("INFO", message, **fields)

    def warning(self, message: str, **fields: Any) -> None:
        self.log("WARNING", message, **fields)

    def error(self, message: str, **fields: Any) -> None:
        self.log("ERROR", message, **fields)

    def log(self, level: str, message: str, **fields: Any) -> None:
        """Write one record at ``level`` unless it is below the threshold."""
        if LEVELS[level] < LEVELS[self._level]:
            return
        record = {key: _scrub(value) for key, value in {**self._context, **fields}.items()}
        stamp = datetime.now(UTC).isoformat()
        if self._json_mode:
            line = self._json_line(stamp, level, sanitize(message), record)
        else:
            line = self._text_line(stamp, level, sanitize(message), record)
        self._stream.write(line + "\n")
        self._stream.flush()

    def _derive(self, *, name: str, context: Mapping[str, Any]) -> StructuredLogger:
        return StructuredLogger(
            name=name,
            json_mode=self._json_mode,
            stream=self._stream,
            level=self._level,
            context=context,
        )

    def _json_line(self, stamp: str, level: str, message: str, record: dict[str, Any]) -> str:
        payload: dict[str, Any] = {"timestamp": stamp, "level": level, "logger": self._name, "message": message}
        payload.update(record)
        return json.dumps(payload, ensure_ascii=False, default=str)

    def _text_line(self, stamp: str, level: str, message: str, record: dict[str, Any]) -> str:
        head = f"[{stamp}] {level:<7} {self._name}: {message}"
        if not record:
            return head
        tail = " ".join(f"{key}={json.dumps(value, ensure_ascii=False, default=str)}" for key, value in record.items())
        return f"{head} | {tail}"


__all__ = ["LEVELS", "StructuredLogger", "sanitize"]
