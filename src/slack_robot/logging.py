"""Structured logging for slack-robot.

Logging is configured explicitly by the application through ``setup_logging``;
library modules only ever call ``get_logger``. Slack tokens are redacted from
every event before rendering.
"""

from __future__ import annotations

import logging
import os
import re
import sys
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from typing import Any, TextIO

import structlog

LOG_LEVEL_ENV = "SLACK_ROBOT_LOG_LEVEL"
LOG_FORMAT_ENV = "SLACK_ROBOT_LOG_FORMAT"

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "critical": logging.CRITICAL,
}

# xoxb-/xoxp-/xoxa-... bot and user tokens, xapp- app-level tokens
_TOKEN_RE = re.compile(r"\b(xox[abposr]|xapp)-[A-Za-z0-9-]+")


def _level_value(value: str | None, *, default: str = "info") -> int:
    if not value:
        return _LEVELS[default]
    return _LEVELS.get(value.strip().lower(), _LEVELS[default])


def _redact_text(text: str) -> str:
    return _TOKEN_RE.sub(lambda m: f"{m.group(1)}-[REDACTED]", text)


def _redact_value(value: Any, memo: dict[int, Any]) -> Any:
    if isinstance(value, str):
        return _redact_text(value)
    if isinstance(value, bytes):
        return _redact_text(value.decode("utf-8", errors="replace"))
    if isinstance(value, (dict, list, tuple, set)):
        key = id(value)
        if key in memo:
            return memo[key]
        if isinstance(value, dict):
            result: Any = {}
            memo[key] = result
            for k, v in value.items():
                result[k] = _redact_value(v, memo)
            return result
        items = [_redact_value(v, memo) for v in value]
        result = type(value)(items)
        memo[key] = result
        return result
    return value


def _redact_processor(
    _logger: Any, _method: str, event_dict: Mapping[str, Any]
) -> Mapping[str, Any]:
    return _redact_value(dict(event_dict), {})


class SafeWriter:
    """Stream wrapper that stops writing once the underlying stream is gone.

    Interpreter shutdown can close stderr while background tasks still log.
    """

    def __init__(self, stream: TextIO) -> None:
        self._stream = stream
        self._closed = False

    def write(self, data: str) -> int:
        if self._closed:
            return 0
        try:
            return self._stream.write(data)
        except (ValueError, OSError):
            self._closed = True
            return 0

    def flush(self) -> None:
        if self._closed:
            return
        try:
            self._stream.flush()
        except (ValueError, OSError):
            self._closed = True

    def isatty(self) -> bool:
        try:
            return self._stream.isatty()
        except (ValueError, OSError):
            return False


def setup_logging(
    *,
    debug: bool = False,
    level: str | None = None,
    stream: TextIO | None = None,
) -> None:
    """Configure structlog for the process.

    ``level`` falls back to ``SLACK_ROBOT_LOG_LEVEL`` and then to ``info``
    (``debug`` when ``debug=True``). ``SLACK_ROBOT_LOG_FORMAT=json`` switches
    to JSON lines.
    """
    default = "debug" if debug else "info"
    min_level = _level_value(level or os.environ.get(LOG_LEVEL_ENV), default=default)
    writer = SafeWriter(stream or sys.stderr)

    json_output = os.environ.get(LOG_FORMAT_ENV, "").strip().lower() == "json"
    renderer: Any
    if json_output:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=writer.isatty())

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            _redact_processor,
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(min_level),
        logger_factory=structlog.PrintLoggerFactory(file=writer),  # type: ignore[arg-type]
        cache_logger_on_first_use=False,
    )


def get_logger(name: str | None = None) -> Any:
    if name is None:
        return structlog.get_logger()
    return structlog.get_logger(name)


@contextmanager
def suppress_logs(level: str = "critical") -> Iterator[None]:
    """Temporarily raise the minimum level, e.g. while running CLI prompts."""
    previous = structlog.get_config()
    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(_level_value(level))
    )
    try:
        yield
    finally:
        structlog.configure(**previous)
