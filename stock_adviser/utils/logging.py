"""
Logging setup for the stock adviser.

Call ``configure_logging(config)`` once at CLI entry, before any generation
work, to set up the root logger with the configured level and optional file
handler. Library code never calls ``configure_logging`` or ``basicConfig``.

Modules log ``"<Event> | key=value | key=value"`` messages, e.g.::

    Executed recommendation | id=9f2c... | user=user-1 | symbol=AAPL

JSON format (set ``json_format = true`` in config/default.toml [logging])
splits those messages so log tooling can filter by user, symbol or
recommendation without parsing text::

    {"ts": "2026-02-24T15:00:00Z", "level": "INFO", "logger": "...",
     "msg": "Executed recommendation | id=9f2c... | user=user-1 | symbol=AAPL",
     "event": "Executed recommendation",
     "recommendation_id": "9f2c...", "user_id": "user-1", "symbol": "AAPL"}

``extra={"user_id": ..., "symbol": ...}`` on a log call lands in the same
fields and wins over values parsed from the message.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from stock_adviser.config import LoggingConfig

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%dT%H:%M:%SZ"

# Short keys used in message text -> JSON field names.
_CONTEXT_ALIASES = {
    "user": "user_id",
    "user_id": "user_id",
    "symbol": "symbol",
    "id": "recommendation_id",
    "recommendation_id": "recommendation_id",
}

# Attributes every LogRecord carries; anything else came in through ``extra=``.
_STANDARD_RECORD_ATTRS = frozenset(
    logging.LogRecord("", 0, "", 0, "", None, None).__dict__
) | {"message", "asctime"}


def split_event(message: str) -> tuple[str, dict[str, str]]:
    """Split ``"Event | k=v | k=v"`` into the event name and its context keys.

    Only keys in ``_CONTEXT_ALIASES`` are returned, renamed to their JSON
    field names. Segments without ``=`` are ignored.
    """
    event, *segments = message.split(" | ")
    context: dict[str, str] = {}
    for segment in segments:
        key, sep, value = segment.partition("=")
        field = _CONTEXT_ALIASES.get(key.strip())
        if sep and field:
            context[field] = value.strip()
    return event.strip(), context


class _JsonFormatter(logging.Formatter):
    """Emit one JSON object per log line.

    Fields: ``ts``, ``level``, ``logger``, ``msg``, ``event``, the
    user/symbol/recommendation context found in the message, plus any
    ``extra=`` keys.
    """

    def format(self, record: logging.LogRecord) -> str:
        msg = record.getMessage()
        event, context = split_event(msg)
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).strftime(
                LOG_DATE_FORMAT
            ),
            "level": record.levelname,
            "logger": record.name,
            "msg": msg,
            "event": event,
            **context,
        }
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        for key, val in record.__dict__.items():
            if key not in _STANDARD_RECORD_ATTRS and not key.startswith("_"):
                payload[_CONTEXT_ALIASES.get(key, key)] = val
        return json.dumps(payload, default=str)


def configure_logging(config: "LoggingConfig") -> None:
    """Configure the root logger from a ``LoggingConfig`` instance.

    Sets up a stdout handler, an optional file handler when
    ``config.log_file`` is set, and JSON line output when
    ``config.json_format`` is ``True``. Per-request httpx chatter from the
    market-data client is kept at WARNING so batch fetches stay readable.
    """
    level = getattr(logging, config.level.upper(), logging.INFO)

    formatter: logging.Formatter
    if config.json_format:
        formatter = _JsonFormatter()
    else:
        formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if config.log_file:
        log_path = Path(config.log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path, encoding="utf-8"))

    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)

    logging.basicConfig(level=level, handlers=handlers, force=True)

    for name in ("httpx", "httpcore"):
        logging.getLogger(name).setLevel(logging.WARNING)
