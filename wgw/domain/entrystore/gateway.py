"""Connectivity-aware persistence gateway for entry drafts."""

from __future__ import annotations

from typing import TYPE_CHECKING, Callable, List, Optional

from ...config import StageTimeouts
from ...infra.events import (
    ENTRY_QUEUED,
    ENTRY_RECONCILED,
    ENTRY_SYNC_FAILED,
    EventEmitter,
    get_event_emitter,
)
from ...infra.logging import get_logger
from ...infra.media import is_remote_url
from ...infra.metrics import MetricsClient, get_metrics_client
from ..errors import (
    ErrorKind,
    PipelineError,
    bounded,
    classify_error,
    error_details,
)
from .models import (
    Entry,
    EntryDraft,
    PendingAction,
    SyncState,
    new_local_id,
)
from .pending_queue import FlushReport, PendingActionQueue

if TYPE_CHECKING:  # pragma: no cover
    from ...infra.backend_client import BackendWriteClient
    from ...infra.connectivity import ConnectivityOracle

__all__ = ["PersistenceGateway", "ReconcileListener", "build_local_entry"]

logger = get_logger(__name__)

ReconcileListener = Callable[[str, Entry], None]


def build_local_entry(
    draft: EntryDraft, local_id: str, sync_state: SyncState = SyncState.QUEUED
) -> Entry:
    """Optimistic entry shown to the user before the backend confirms it."""

    return Entry(
        id=local_id,
        user_id=draft.user_id,
        category=draft.category,
        transcription=draft.transcript,
        ai_response=draft.ai_response,
        image_url=draft.image_url,
        audio_url=draft.audio_uri,
        is_private=draft.is_private,
        created_at=draft.created_at,
        sync_state=sync_state,
    )


def _needs_upload(ref: Optional[str]) -> bool:
    return bool(ref) and not is_remote_url(ref)


class PersistenceGateway:
    """Chooses between the online write and the offline queue for each draft.

    Only this class assigns ``sync_state``. Online failures other than
    validation and auth converge on the same offline path as a save made
    while disconnected.
    """

    def __init__(
        self,
        backend: "BackendWriteClient",
        oracle: "ConnectivityOracle",
        queue: PendingActionQueue,
        *,
        timeouts: Optional[StageTimeouts] = None,
        events: Optional[EventEmitter] = None,
        metrics: Optional[MetricsClient] = None,
    ) -> None:
        self._backend = backend
        self._oracle = oracle
        self._queue = queue
        self._timeouts = timeouts or StageTimeouts()
        self._events = events or get_event_emitter()
        self._metrics = metrics or get_metrics_client()
        self._listeners: List[ReconcileListener] = []

    @property
    def queue(self) -> PendingActionQueue:
        return self._queue

    def add_reconcile_listener(self, listener: ReconcileListener) -> None:
        self._listeners.append(listener)

    async def save(self, draft: EntryDraft) -> Entry:
        _validate_draft(draft)
        if not await self.is_online():
            return self._queue_locally(draft, reason="offline")

        local_id = new_local_id(draft.created_at)
        try:
            entry = await self.write(draft, local_id)
        except Exception as exc:
            kind = classify_error(exc)
            if kind.is_fatal:
                logger.error(
                    "entry_save_rejected",
                    extra={"user_id": draft.user_id, "error": error_details(exc)},
                )
                if isinstance(exc, PipelineError):
                    raise
                raise PipelineError(
                    str(exc), kind=kind, code="persistence_rejected"
                ) from exc
            logger.warning(
                "entry_online_write_failed",
                extra={
                    "local_id": local_id,
                    "user_id": draft.user_id,
                    "error": error_details(exc),
                },
            )
            return self._queue_locally(
                draft, local_id=local_id, reason=kind.value, error=exc
            )

        self._metrics.increment("persistence.synced")
        return entry

    async def is_online(self) -> bool:
        """Oracle failures and timeouts count as offline."""

        try:
            return bool(
                await bounded(
                    self._oracle.is_online(),
                    timeout=self._timeouts.connectivity,
                    stage="connectivity",
                )
            )
        except Exception as exc:
            logger.warning(
                "connectivity_check_failed", extra={"error": error_details(exc)}
            )
            return False

    async def write(self, draft: EntryDraft, local_id: str) -> Entry:
        """Online write path shared by ``save`` and queue replay.

        Local binaries are uploaded first; the insert carries ``local_id``
        as ``client_local_id`` so a replayed write is idempotent.
        """

        audio_url = draft.audio_uri
        image_url = draft.image_url
        if _needs_upload(audio_url):
            audio_url = await bounded(
                self._backend.upload_binary(audio_url, user_id=draft.user_id, kind="audio"),
                timeout=self._timeouts.upload,
                stage="upload",
            )
        if _needs_upload(image_url):
            image_url = await bounded(
                self._backend.upload_binary(image_url, user_id=draft.user_id, kind="image"),
                timeout=self._timeouts.upload,
                stage="upload",
            )

        uploaded = draft.with_uploads(audio_url=audio_url, image_url=image_url)
        fields = build_local_entry(uploaded, local_id, SyncState.LOCAL).to_row(
            client_local_id=local_id
        )
        entry = await bounded(
            self._backend.insert_entry(fields),
            timeout=self._timeouts.backend_write,
            stage="backend_write",
        )
        return entry.with_sync_state(SyncState.SYNCED)

    def _queue_locally(
        self,
        draft: EntryDraft,
        *,
        reason: str,
        local_id: Optional[str] = None,
        error: Optional[BaseException] = None,
    ) -> Entry:
        local_id = local_id or new_local_id(draft.created_at)
        entry = build_local_entry(draft, local_id)
        action = PendingAction.create_entry(local_id, draft)
        if error is not None:
            action.last_error = error_details(error)
        self._queue.enqueue(action)
        self._metrics.increment("persistence.queued")
        self._events.emit(
            ENTRY_QUEUED,
            {"local_id": local_id, "user_id": draft.user_id, "reason": reason},
        )
        return entry

    async def flush(self, user_id: Optional[str] = None) -> FlushReport:
        """Replay queued creations through ``write``; no-op while offline."""

        if not await self.is_online():
            pending = self._queue.list(user_id=user_id, include_failed=False)
            logger.info(
                "pending_flush_skipped_offline", extra={"pending_count": len(pending)}
            )
            return FlushReport(skipped=[action.local_id for action in pending])

        async def replay(action: PendingAction) -> Entry:
            return await self.write(EntryDraft.from_payload(action.payload), action.local_id)

        report = await self._queue.flush(
            replay, user_id=user_id, on_synced=self._reconciled
        )
        for local_id in report.dead_lettered:
            action = self._queue.get(local_id)
            self._events.emit(
                ENTRY_SYNC_FAILED,
                {
                    "local_id": local_id,
                    "user_id": action.user_id if action else None,
                    "error": action.last_error if action else None,
                },
            )
        self._metrics.gauge(
            "persistence.pending", len(self._queue.list(include_failed=False))
        )
        return report

    def _reconciled(self, local_id: str, entry: Entry) -> None:
        self._metrics.increment("persistence.reconciled")
        self._events.emit(
            ENTRY_RECONCILED,
            {"local_id": local_id, "entry_id": entry.id, "user_id": entry.user_id},
        )
        for listener in list(self._listeners):
            try:
                listener(local_id, entry)
            except Exception:
                logger.exception(
                    "reconcile_listener_failed",
                    extra={"local_id": local_id, "entry_id": entry.id},
                )

    def discard_local(self, local_id: str) -> bool:
        return self._queue.discard(local_id)

    def pending(self, user_id: Optional[str] = None) -> List[PendingAction]:
        return self._queue.list(user_id=user_id)


def _validate_draft(draft: EntryDraft) -> None:
    problems = []
    if not (draft.user_id or "").strip():
        problems.append("user_id is required")
    if not (draft.category or "").strip():
        problems.append("category is required")
    if not (draft.transcript or "").strip() and not draft.image_url:
        problems.append("an entry needs text or an image")
    if problems:
        raise PipelineError(
            "; ".join(problems),
            kind=ErrorKind.VALIDATION,
            code="entry_invalid",
            context={"problems": problems},
        )
