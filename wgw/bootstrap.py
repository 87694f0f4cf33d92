"""Builds the configured object graph once per process."""

from __future__ import annotations

from typing import Optional

from .config import Settings
from .domain.analysis import EntryOrchestrator
from .domain.entrystore import (
    PendingActionQueue,
    PersistenceGateway,
    SqlPendingActionStore,
)
from .infra.backend_client import BackendWriteClient, build_backend_client
from .infra.connectivity import ConnectivityOracle, build_connectivity_oracle
from .infra.db import get_engine
from .infra.llm_gateway import (
    build_coaching_client,
    build_transcription_client,
    build_vision_client,
)

__all__ = [
    "build_entry_orchestrator",
    "build_pending_queue",
    "build_persistence_gateway",
]


def build_pending_queue(settings: Settings) -> PendingActionQueue:
    store = SqlPendingActionStore(get_engine(settings.database_url))
    return PendingActionQueue(
        store, max_replay_attempts=settings.sync.max_replay_attempts
    )


def build_persistence_gateway(
    settings: Settings,
    *,
    backend: Optional[BackendWriteClient] = None,
    oracle: Optional[ConnectivityOracle] = None,
    queue: Optional[PendingActionQueue] = None,
) -> PersistenceGateway:
    return PersistenceGateway(
        backend or build_backend_client(
            settings.backend, timeout=settings.timeouts.backend_write
        ),
        oracle or build_connectivity_oracle(
            settings.connectivity, timeout=settings.timeouts.connectivity
        ),
        queue or build_pending_queue(settings),
        timeouts=settings.timeouts,
    )


def build_entry_orchestrator(
    settings: Settings, gateway: PersistenceGateway
) -> EntryOrchestrator:
    return EntryOrchestrator(
        build_transcription_client(settings),
        build_vision_client(settings),
        build_coaching_client(settings),
        gateway,
        timeouts=settings.timeouts,
    )
