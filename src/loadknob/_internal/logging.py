"""Logging setup for loadknob.

Everything logs under the ``loadknob`` namespace. The harness's ``report``
command attaches a state snapshot to its record via ``extra={"state": ...}``;
the JSON formatter serializes it as a nested object and the text formatter
appends it as ``key=value`` pairs.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import UTC, datetime
from typing import Any

_ROOT = "loadknob"
_STATE_ATTR = "state"


def _state_of(record: logging.LogRecord) -> dict[str, Any] | None:
    state = getattr(record, _STATE_ATTR, None)
    return state if isinstance(state, dict) else None


class _JsonFormatter(logging.Formatter):
    """One JSON object per line: timestamp, level, logger, message[, state]."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        state = _state_of(record)
        if state is not None:
            entry[_STATE_ATTR] = state
        if record.exc_info and record.exc_info[1] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class _TextFormatter(logging.Formatter):
    """Human-readable lines with the attached state flattened to key=value."""

    def __init__(self) -> None:
        super().__init__(
            "%(asctime)s [%(levelname)-8s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        state = _state_of(record)
        if state:
            pairs = " ".join(f"{k}={v!r}" for k, v in state.items())
            line = f"{line} {pairs}"
        return line


def setup_logging(
    level: int = logging.INFO,
    *,
    json_format: bool = False,
) -> logging.Logger:
    """Configure and return the root ``loadknob`` logger.

    Repeated calls only adjust the level of the existing handler, so the
    CLI and embedding code can both call this without doubling output.

    Args:
        level: Logging level (e.g. ``logging.DEBUG``). Defaults to INFO.
        json_format: Emit one JSON object per record instead of text.

    Returns:
        The configured ``loadknob`` logger.
    """
    logger = logging.getLogger(_ROOT)
    logger.setLevel(level)

    if logger.handlers:
        for handler in logger.handlers:
            handler.setLevel(level)
        return logger

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(_JsonFormatter() if json_format else _TextFormatter())
    logger.addHandler(handler)
    logger.propagate = False

    return logger


def get_logger(name: str) -> logging.Logger:
    """Return ``logging.getLogger("loadknob.<name>")``."""
    return logging.getLogger(f"{_ROOT}.{name}")
