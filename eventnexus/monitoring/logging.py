"""Structured logging with context injection.

Features:
- console handler
- JSON logs optional (easy ingestion by log shippers)
- context injection (run_id/source_key/stage) without needing a big framework
"""

from __future__ import annotations

import json
import logging
import sys
import time
from dataclasses import dataclass
from typing import Any

CONTEXT_FIELDS = ("run_id", "source_key", "stage", "attempt")
_TEXT_LABELS = {"run_id": "run", "source_key": "source", "stage": "stage", "attempt": "try"}

# ---------------------------------------------------------------------
# Formatters
# ---------------------------------------------------------------------


class JsonFormatter(logging.Formatter):
    """Format log records as JSON."""

    def format(self, record: logging.LogRecord) -> str:
        base = {
            "ts": time.time(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        for k in CONTEXT_FIELDS:
            if hasattr(record, k):
                base[k] = getattr(record, k)

        if record.exc_info:
            base["exc_info"] = self.formatException(record.exc_info)

        # allow structured payload
        payload = getattr(record, "payload", None)
        if isinstance(payload, dict):
            base["payload"] = payload

        return json.dumps(base, ensure_ascii=False, default=str)


class TextFormatter(logging.Formatter):
    """Format log records as human-readable text."""

    def format(self, record: logging.LogRecord) -> str:
        parts = [
            time.strftime("%H:%M:%S", time.localtime(record.created)),
            record.levelname,
            record.name,
        ]

        ctx = [
            f"{label}={getattr(record, field)}"
            for field, label in _TEXT_LABELS.items()
            if getattr(record, field, None) not in (None, "")
        ]
        if ctx:
            parts.append("[" + " ".join(ctx) + "]")

        parts.append(record.getMessage())
        s = " ".join(parts)

        if record.exc_info:
            s += "\n" + self.formatException(record.exc_info)

        return s


# ---------------------------------------------------------------------
# Setup
# ---------------------------------------------------------------------


@dataclass(frozen=True)
class LoggingOptions:
    """Configure logging behavior for ingestion runs."""

    level: str = "INFO"
    json_logs: bool = False
    stream: Any = None


def setup_logging(options: LoggingOptions | None = None) -> logging.Logger:
    """Configure the package root logger. Safe to call repeatedly."""
    options = options or LoggingOptions()
    logger = logging.getLogger("eventnexus")
    logger.setLevel(getattr(logging, options.level.upper(), logging.INFO))
    logger.propagate = False

    # Clear old handlers if re-configuring
    for h in list(logger.handlers):
        logger.removeHandler(h)

    handler = logging.StreamHandler(options.stream or sys.stderr)
    handler.setLevel(logger.level)
    handler.setFormatter(JsonFormatter() if options.json_logs else TextFormatter())
    logger.addHandler(handler)
    return logger


# ---------------------------------------------------------------------
# Context injection
# ---------------------------------------------------------------------


class ContextAdapter(logging.LoggerAdapter):
    """Inject context fields into log records."""

    def process(self, msg: str, kwargs: dict[str, Any]) -> tuple[str, dict[str, Any]]:
        extra = kwargs.get("extra", {})
        merged = dict(self.extra)
        merged.update(extra)
        kwargs["extra"] = merged
        return msg, kwargs

    def bind(self, **fields: Any) -> "ContextAdapter":
        """New adapter with extra context fields layered on top."""
        merged = dict(self.extra)
        merged.update({k: v for k, v in fields.items() if v is not None})
        return ContextAdapter(self.logger, merged)


def with_context(
    logger: logging.Logger,
    *,
    run_id: str | None = None,
    source_key: str | None = None,
    stage: str | None = None,
) -> ContextAdapter:
    """Create a context adapter with run, source, and stage info."""
    extra: dict[str, Any] = {}
    if run_id:
        extra["run_id"] = run_id
    if source_key:
        extra["source_key"] = source_key
    if stage:
        extra["stage"] = stage
    return ContextAdapter(logger, extra)
