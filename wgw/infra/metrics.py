"""Counters and gauges for coaching tiers, AI stage failures and the sync queue."""

from __future__ import annotations

import threading
from collections import Counter
from typing import Dict

from .logging import get_logger

logger = get_logger(__name__)


class MetricsClient:  # pragma: no cover - interface only
    def increment(self, metric: str, value: int = 1) -> None:
        raise NotImplementedError

    def gauge(self, metric: str, value: int) -> None:
        raise NotImplementedError

    def snapshot(self) -> Dict[str, Dict[str, int]]:
        return {"counters": {}, "gauges": {}}


class InMemoryMetricsClient(MetricsClient):
    """Process-local sink; shared by API handlers and the sync worker thread."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.counters: Counter[str] = Counter()
        self.gauges: Dict[str, int] = {}

    def increment(self, metric: str, value: int = 1) -> None:
        with self._lock:
            self.counters[metric] += value
        logger.debug("metric_incremented", extra={"metric": metric, "value": value})

    def gauge(self, metric: str, value: int) -> None:
        with self._lock:
            self.gauges[metric] = value
        logger.debug("metric_gauged", extra={"metric": metric, "value": value})

    def snapshot(self) -> Dict[str, Dict[str, int]]:
        with self._lock:
            return {"counters": dict(self.counters), "gauges": dict(self.gauges)}


_shared: InMemoryMetricsClient | None = None


def get_metrics_client() -> MetricsClient:
    global _shared
    if _shared is None:
        _shared = InMemoryMetricsClient()
    return _shared
