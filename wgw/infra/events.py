"""Entry lifecycle events consumed by whatever renders the entry list."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Protocol

from .logging import get_logger

logger = get_logger(__name__)

ENTRY_QUEUED = "entry_queued"
ENTRY_RECONCILED = "entry_reconciled"
ENTRY_SYNC_FAILED = "entry_sync_failed"


class EventEmitter(Protocol):  # pragma: no cover - interface only
    def emit(self, topic: str, payload: Dict[str, Any]) -> None:
        """Publish ``payload`` under ``topic``."""


@dataclass
class LoggingEventEmitter(EventEmitter):
    """Writes each event to the log; dead-lettered syncs are warnings."""

    namespace: str = "wgw.entries"

    def emit(self, topic: str, payload: Dict[str, Any]) -> None:
        log = logger.warning if topic == ENTRY_SYNC_FAILED else logger.info
        log(
            topic,
            extra={
                "event_topic": f"{self.namespace}.{topic}",
                "local_id": payload.get("local_id"),
                "payload": payload,
            },
        )


_emitter: LoggingEventEmitter | None = None


def get_event_emitter() -> EventEmitter:
    global _emitter
    if _emitter is None:
        _emitter = LoggingEventEmitter()
    return _emitter
