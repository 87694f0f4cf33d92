"""Structured logging helpers shared by every layer."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

__all__ = ["KeyValueFormatter", "configure_logging", "get_logger"]

_RESERVED_ATTRS = frozenset(
    logging.LogRecord(
        name="", level=0, pathname="", lineno=0, msg="", args=None, exc_info=None
    ).__dict__
) | {"message", "asctime"}

DEFAULT_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


class KeyValueFormatter(logging.Formatter):
    """Append ``extra=`` fields to the rendered message as ``key=value`` pairs."""

    def format(self, record: logging.LogRecord) -> str:
        rendered = super().format(record)
        extras = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _RESERVED_ATTRS and not key.startswith("_")
        }
        if not extras:
            return rendered
        pairs = " ".join(f"{key}={value!r}" for key, value in sorted(extras.items()))
        return f"{rendered} {pairs}"


def get_logger(name: str) -> logging.Logger:
    """Return a module logger; handlers are installed by ``configure_logging``."""

    return logging.getLogger(name)


def configure_logging(config: Optional[Dict[str, Any]] = None) -> None:
    """Install the key=value formatter on the ``wgw`` logger tree."""

    config = config or {}
    level_name = str(config.get("level", "INFO")).upper()
    level = logging.getLevelName(level_name)
    if not isinstance(level, int):
        level = logging.INFO

    root = logging.getLogger("wgw")
    root.setLevel(level)
    if any(getattr(handler, "_wgw_handler", False) for handler in root.handlers):
        return

    handler = logging.StreamHandler()
    handler.setFormatter(KeyValueFormatter(str(config.get("format", DEFAULT_FORMAT))))
    handler._wgw_handler = True  # type: ignore[attr-defined]
    root.addHandler(handler)
