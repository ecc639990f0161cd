"""Logging setup for the claims decisioning pipeline.

Two output modes share one set of record fields:

* text: ``2024-06-15 12:00:00 [INFO] claims_decisioning.pipeline.orchestrator [CLM-1001]: ...``
* json: one object per line with timestamp, level, logger, message,
  correlation ids, pipeline extras and exception text.

Correlation ids (claim_id, run_id, ...) live in a context variable and are
stamped onto every record by ``CorrelationFilter``, so both formats see them.

Usage:
    from claims_decisioning.logging_config import configure_logging, correlation_scope

    configure_logging(level="INFO", json_output=True)
    with correlation_scope(claim_id="CLM-1001"):
        logger.info("Processing claim")
"""

from __future__ import annotations

import contextvars
import json
import logging
import sys
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from datetime import datetime, timezone
from types import MappingProxyType

_NO_IDS: Mapping[str, str] = MappingProxyType({})
_correlation: contextvars.ContextVar[Mapping[str, str]] = contextvars.ContextVar(
    "claims_correlation", default=_NO_IDS
)

# Attributes passed through ``extra=`` that are copied into JSON output
EXTRA_FIELDS = ("claim_id", "stage", "phase", "decision", "duration_sec")

TEXT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s%(correlation_tag)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


# ---------------------------------------------------------------------------
# Correlation ids
# ---------------------------------------------------------------------------


def set_correlation_id(**ids: str) -> contextvars.Token:
    """Merge ``ids`` into the correlation ids of the current context."""
    merged = {**_correlation.get(), **{key: str(value) for key, value in ids.items()}}
    return _correlation.set(MappingProxyType(merged))


def get_correlation_ids() -> dict[str, str]:
    return dict(_correlation.get())


def clear_correlation_id() -> None:
    """Drop every correlation id in the current context."""
    _correlation.set(_NO_IDS)


@contextmanager
def correlation_scope(**ids: str) -> Iterator[dict[str, str]]:
    """Bind ``ids`` for the ``with`` block; the previous ids come back afterwards."""
    token = set_correlation_id(**ids)
    try:
        yield get_correlation_ids()
    finally:
        _correlation.reset(token)


def _claim_tag(record: logging.LogRecord, ids: Mapping[str, str]) -> str:
    claim_id = getattr(record, "claim_id", None) or ids.get("claim_id")
    return f" [{claim_id}]" if claim_id else ""


class CorrelationFilter(logging.Filter):
    """Stamp the current correlation ids onto each record."""

    def filter(self, record: logging.LogRecord) -> bool:
        ids = _correlation.get()
        record.correlation = dict(ids)
        record.correlation_tag = _claim_tag(record, ids)
        return True


# ---------------------------------------------------------------------------
# Formatters
# ---------------------------------------------------------------------------


class JSONFormatter(logging.Formatter):
    """Emit log records as single-line JSON objects.

    Fields: timestamp, level, logger, message, correlation ids, pipeline
    extras (claim_id, stage, phase, decision, duration_sec), exception and
    stack when present.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        # Records that bypassed CorrelationFilter read the context directly
        correlation = getattr(record, "correlation", None)
        if correlation is None:
            correlation = get_correlation_ids()
        if correlation:
            entry["correlation"] = correlation

        entry.update(
            {key: getattr(record, key) for key in EXTRA_FIELDS if getattr(record, key, None) is not None}
        )

        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        if record.stack_info:
            entry["stack"] = self.formatStack(record.stack_info)

        return json.dumps(entry, ensure_ascii=False, default=str)


class TextFormatter(logging.Formatter):
    """Human-readable lines tagged with the claim being processed."""

    def __init__(self) -> None:
        super().__init__(TEXT_FORMAT, datefmt=DATE_FORMAT)

    def format(self, record: logging.LogRecord) -> str:
        if not hasattr(record, "correlation_tag"):
            record.correlation_tag = _claim_tag(record, _correlation.get())
        return super().format(record)


# ---------------------------------------------------------------------------
# Root logger
# ---------------------------------------------------------------------------


def configure_logging(
    level: str = "INFO",
    json_output: bool = False,
    log_file: str | None = None,
) -> None:
    """Configure the root logger. Calling it again replaces earlier handlers.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR).
        json_output: If True, emit JSON; otherwise tagged text lines.
        log_file: Optional file path for log output (in addition to stderr).
    """
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    for existing in root.handlers[:]:
        root.removeHandler(existing)

    formatter: logging.Formatter = JSONFormatter() if json_output else TextFormatter()
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file:
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))

    for handler in handlers:
        handler.setFormatter(formatter)
        handler.addFilter(CorrelationFilter())
        root.addHandler(handler)
