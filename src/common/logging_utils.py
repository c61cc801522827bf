"""Centralized logging helpers.

Configures the root logger once (human or JSON output), and provides the
small utilities the rest of the code base uses for structured events:
``extra_context`` for the ``extra=`` payload, ``is_debug_enabled`` to guard
expensive debug traces, ``safe_url``/``redact`` to keep credentials out of
logs, and ``Timer`` for durations.
"""
from __future__ import annotations

import json
import logging
import os
import re
import time
import urllib.parse
from typing import Any, Dict, Optional

from constants import Constants

# Attributes present on every LogRecord; anything else came from ``extra=``.
_RESERVED_ATTRS = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None)).keys()
) | {"message", "asctime"}

_SENSITIVE_QUERY_KEYS = {"token", "access_token", "api_key", "apikey", "key", "password", "secret"}
_BEARER_RE = re.compile(r"(?i)(bearer\s+)[A-Za-z0-9\-\._~\+/]+=*")


class JsonFormatter(logging.Formatter):
    """Render records as one JSON object per line, including extra fields."""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "ts": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS and not key.startswith("_"):
                payload[key] = value
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def configure_logging(
    level: Optional[str] = None, fmt: Optional[str] = None, logfile: Optional[str] = None
) -> None:
    """Configure the root logger.

    Args:
        level: Level name; falls back to FETCHUI_LOG_LEVEL, then INFO.
        fmt: "human" or "json"; falls back to FETCHUI_LOG_FORMAT, then human.
        logfile: Optional file receiving the same records as stderr.
    """
    level_name = (level or os.environ.get(Constants.ENV_LOG_LEVEL) or "INFO").upper()
    fmt_name = (fmt or os.environ.get(Constants.ENV_LOG_FORMAT) or "human").lower()

    handlers: list = [logging.StreamHandler()]
    if logfile:
        handlers.append(logging.FileHandler(logfile, encoding="utf-8"))
    for handler in handlers:
        if fmt_name == "json":
            handler.setFormatter(JsonFormatter())
        else:
            handler.setFormatter(logging.Formatter(Constants.LOG_FORMAT))

    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(getattr(logging, level_name, logging.INFO))


def extra_context(**kwargs: Any) -> Dict[str, Any]:
    """Build the ``extra`` mapping for a structured log call, dropping None values."""
    return {k: v for k, v in kwargs.items() if v is not None}


def is_debug_enabled(logger: logging.Logger) -> bool:
    """Return True when DEBUG records would be emitted for this logger."""
    return logger.isEnabledFor(logging.DEBUG)


def redact(text: str) -> str:
    """Mask bearer tokens inside free text."""
    if not text:
        return text
    return _BEARER_RE.sub(r"\1[REDACTED]", text)


def safe_url(url: str) -> str:
    """Strip userinfo and sensitive query values from a URL for logging."""
    try:
        parts = urllib.parse.urlsplit(url)
    except ValueError:
        return "[REDACTED]"
    netloc = parts.hostname or ""
    if parts.port:
        netloc = f"{netloc}:{parts.port}"
    if parts.username or parts.password:
        netloc = f"[REDACTED]@{netloc}"
    query = []
    for key, value in urllib.parse.parse_qsl(parts.query, keep_blank_values=True):
        query.append((key, "[REDACTED]" if key.lower() in _SENSITIVE_QUERY_KEYS else value))
    return urllib.parse.urlunsplit(
        (parts.scheme, netloc, parts.path, urllib.parse.urlencode(query), "")
    )


class Timer:
    """Context manager measuring wall-clock duration in milliseconds."""

    def __init__(self) -> None:
        self._start = 0.0
        self._end: Optional[float] = None

    def __enter__(self) -> "Timer":
        self._start = time.perf_counter()
        self._end = None
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self._end = time.perf_counter()

    def duration_ms(self) -> float:
        """Elapsed milliseconds; live value while the block is still running."""
        end = self._end if self._end is not None else time.perf_counter()
        return round((end - self._start) * 1000, 2)
