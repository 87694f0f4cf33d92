"""Durable, ordered queue of entry creations waiting for connectivity."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import (
    Any,
    Awaitable,
    Callable,
    Dict,
    List,
    Mapping,
    Optional,
    Protocol,
    Set,
    Tuple,
)

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    Integer,
    MetaData,
    String,
    Table,
    delete,
    insert,
    select,
    update,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from ...infra.logging import get_logger
from ..errors import ErrorKind, classify_error, error_details
from .models import (
    Entry,
    PendingAction,
    PendingActionStatus,
    PendingActionType,
    parse_timestamp,
)

__all__ = [
    "FlushReport",
    "InMemoryPendingActionStore",
    "PendingActionQueue",
    "PendingActionStore",
    "SqlPendingActionStore",
    "build_pending_actions_table",
]

logger = get_logger(__name__)

ReplayFn = Callable[[PendingAction], Awaitable[Entry]]
SyncedFn = Callable[[str, Entry], None]


class PendingActionStore(Protocol):  # pragma: no cover
    """Storage backend behind ``PendingActionQueue``."""

    def add(self, action: PendingAction) -> bool: ...

    def get(self, local_id: str) -> Optional[PendingAction]: ...

    def list(
        self, *, user_id: Optional[str] = None, include_failed: bool = True
    ) -> List[PendingAction]: ...

    def save(self, action: PendingAction) -> bool: ...

    def remove(self, local_id: str) -> bool: ...


class InMemoryPendingActionStore(PendingActionStore):
    """Process-local store used for tests and ephemeral sessions."""

    def __init__(self) -> None:
        self._actions: Dict[str, Tuple[int, PendingAction]] = {}
        self._sequence = 0

    def add(self, action: PendingAction) -> bool:
        if action.local_id in self._actions:
            return False
        self._sequence += 1
        self._actions[action.local_id] = (self._sequence, action)
        return True

    def get(self, local_id: str) -> Optional[PendingAction]:
        item = self._actions.get(local_id)
        return item[1] if item else None

    def list(
        self, *, user_id: Optional[str] = None, include_failed: bool = True
    ) -> List[PendingAction]:
        ordered = sorted(
            self._actions.values(), key=lambda item: (item[1].created_at, item[0])
        )
        return [
            action
            for _, action in ordered
            if (user_id is None or action.user_id == user_id)
            and (include_failed or not action.is_failed)
        ]

    def save(self, action: PendingAction) -> bool:
        item = self._actions.get(action.local_id)
        if item is None:
            return False
        self._actions[action.local_id] = (item[0], action)
        return True

    def remove(self, local_id: str) -> bool:
        return self._actions.pop(local_id, None) is not None


def build_pending_actions_table(metadata: Optional[MetaData] = None) -> Table:
    """Return the ``pending_actions`` table definition."""

    return Table(
        "pending_actions",
        metadata or MetaData(),
        Column("seq", Integer, primary_key=True, autoincrement=True),
        Column("local_id", String(64), nullable=False, unique=True),
        Column("user_id", String(128), nullable=False, index=True),
        Column("action_type", String(32), nullable=False),
        Column("payload", JSON, nullable=False),
        Column("attempts", Integer, nullable=False, default=0),
        Column("status", String(16), nullable=False, default="pending"),
        Column("last_error", JSON, nullable=True),
        Column("created_at", DateTime(timezone=True), nullable=False),
    )


class SqlPendingActionStore(PendingActionStore):
    """SQLAlchemy-backed store; the default SQLite file survives restarts."""

    def __init__(
        self,
        engine: Engine,
        *,
        table: Optional[Table] = None,
        create_schema: bool = True,
    ) -> None:
        self._engine = engine
        self._table = table if table is not None else build_pending_actions_table()
        if create_schema:
            self._table.metadata.create_all(self._engine, tables=[self._table])

    def add(self, action: PendingAction) -> bool:
        stmt = insert(self._table).values(
            local_id=action.local_id,
            user_id=action.user_id,
            action_type=action.type.value,
            payload=action.payload,
            attempts=action.attempts,
            status=action.status.value,
            last_error=action.last_error,
            created_at=action.created_at,
        )
        try:
            with self._engine.begin() as conn:
                exists = conn.execute(
                    select(self._table.c.seq).where(
                        self._table.c.local_id == action.local_id
                    )
                ).first()
                if exists is not None:
                    return False
                conn.execute(stmt)
        except IntegrityError:
            return False
        return True

    def get(self, local_id: str) -> Optional[PendingAction]:
        stmt = select(self._table).where(self._table.c.local_id == local_id)
        with self._engine.begin() as conn:
            row = conn.execute(stmt).mappings().first()
        return _row_to_action(row) if row is not None else None

    def list(
        self, *, user_id: Optional[str] = None, include_failed: bool = True
    ) -> List[PendingAction]:
        c = self._table.c
        stmt = select(self._table).order_by(c.created_at.asc(), c.seq.asc())
        if user_id is not None:
            stmt = stmt.where(c.user_id == user_id)
        if not include_failed:
            stmt = stmt.where(c.status != PendingActionStatus.FAILED.value)
        with self._engine.begin() as conn:
            rows = conn.execute(stmt).mappings().all()
        return [_row_to_action(row) for row in rows]

    def save(self, action: PendingAction) -> bool:
        """Update ``action`` in place; False when another writer already removed it."""

        stmt = (
            update(self._table)
            .where(self._table.c.local_id == action.local_id)
            .values(
                attempts=action.attempts,
                status=action.status.value,
                last_error=action.last_error,
                payload=action.payload,
            )
        )
        with self._engine.begin() as conn:
            result = conn.execute(stmt)
        return result.rowcount > 0

    def remove(self, local_id: str) -> bool:
        stmt = delete(self._table).where(self._table.c.local_id == local_id)
        with self._engine.begin() as conn:
            result = conn.execute(stmt)
        return result.rowcount > 0


def _row_to_action(row: Mapping[str, Any]) -> PendingAction:
    return PendingAction(
        type=PendingActionType(row["action_type"]),
        payload=dict(row["payload"] or {}),
        local_id=row["local_id"],
        user_id=row["user_id"],
        created_at=parse_timestamp(row["created_at"]),
        attempts=int(row["attempts"] or 0),
        status=PendingActionStatus(row["status"]),
        last_error=row.get("last_error"),
    )


@dataclass
class FlushReport:
    """Outcome of one ``flush`` pass."""

    synced: List[Tuple[str, Entry]] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)
    dead_lettered: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    halted: bool = False

    def as_dict(self) -> Dict[str, Any]:
        return {
            "synced": [
                {"local_id": local_id, "entry_id": entry.id}
                for local_id, entry in self.synced
            ],
            "failed": list(self.failed),
            "dead_lettered": list(self.dead_lettered),
            "skipped": list(self.skipped),
            "halted": self.halted,
        }


class PendingActionQueue:
    """FIFO queue of pending actions with a single flush in flight."""

    def __init__(
        self,
        store: Optional[PendingActionStore] = None,
        *,
        max_replay_attempts: int = 3,
    ) -> None:
        self._store = store or InMemoryPendingActionStore()
        self._max_replay_attempts = max(1, max_replay_attempts)
        self._flush_lock = asyncio.Lock()

    def enqueue(self, action: PendingAction) -> bool:
        """Insert ``action``; returns False when its ``local_id`` is already queued."""

        added = self._store.add(action)
        logger.info(
            "pending_action_enqueued" if added else "pending_action_duplicate_ignored",
            extra={
                "local_id": action.local_id,
                "user_id": action.user_id,
                "action_type": action.type.value,
            },
        )
        return added

    def get(self, local_id: str) -> Optional[PendingAction]:
        return self._store.get(local_id)

    def list(
        self, *, user_id: Optional[str] = None, include_failed: bool = True
    ) -> List[PendingAction]:
        return self._store.list(user_id=user_id, include_failed=include_failed)

    def discard(self, local_id: str) -> bool:
        removed = self._store.remove(local_id)
        if removed:
            logger.info("pending_action_discarded", extra={"local_id": local_id})
        return removed

    @property
    def is_flushing(self) -> bool:
        return self._flush_lock.locked()

    async def flush(
        self,
        replay: ReplayFn,
        *,
        user_id: Optional[str] = None,
        on_synced: Optional[SyncedFn] = None,
    ) -> FlushReport:
        """Replay queued actions in order through ``replay``.

        A failed replay blocks the rest of that user's actions for this pass.
        An auth failure halts the pass for every user.
        """

        async with self._flush_lock:
            report = FlushReport()
            blocked_users: Set[str] = set()
            actions = self._store.list(user_id=user_id, include_failed=False)
            logger.info(
                "pending_flush_started",
                extra={"pending_count": len(actions), "user_id": user_id},
            )
            for queued in actions:
                if report.halted or queued.user_id in blocked_users:
                    report.skipped.append(queued.local_id)
                    continue
                action = self._store.get(queued.local_id)
                if action is None or action.is_failed:
                    continue
                try:
                    entry = await replay(action)
                except Exception as exc:
                    kind = self._record_failure(action, exc, report)
                    if kind is None:
                        continue
                    if kind is ErrorKind.AUTH:
                        report.halted = True
                    elif action.local_id not in report.dead_lettered:
                        blocked_users.add(action.user_id)
                    continue

                self._store.remove(action.local_id)
                report.synced.append((action.local_id, entry))
                logger.info(
                    "pending_action_synced",
                    extra={
                        "local_id": action.local_id,
                        "entry_id": entry.id,
                        "user_id": action.user_id,
                        "attempts": action.attempts + 1,
                    },
                )
                if on_synced is not None:
                    on_synced(action.local_id, entry)

            logger.info(
                "pending_flush_finished",
                extra={
                    "synced": len(report.synced),
                    "failed": len(report.failed),
                    "dead_lettered": len(report.dead_lettered),
                    "skipped": len(report.skipped),
                    "halted": report.halted,
                },
            )
            return report

    def _record_failure(
        self, action: PendingAction, exc: Exception, report: FlushReport
    ) -> Optional[ErrorKind]:
        """Persist the failed attempt; ``None`` when the row is already gone."""

        kind = classify_error(exc)
        action.attempts += 1
        action.last_error = error_details(exc)
        dead_letter = kind is ErrorKind.VALIDATION or (
            kind in (ErrorKind.UPSTREAM_BAD_REQUEST, ErrorKind.UNKNOWN)
            and action.attempts >= self._max_replay_attempts
        )
        if dead_letter:
            action.status = PendingActionStatus.FAILED
        if not self._store.save(action):
            # Synced or discarded by another process sharing the store.
            logger.info(
                "pending_action_vanished",
                extra={
                    "local_id": action.local_id,
                    "user_id": action.user_id,
                    "error_kind": kind.value,
                },
            )
            return None
        if dead_letter:
            report.dead_lettered.append(action.local_id)
        else:
            report.failed.append(action.local_id)
        logger.warning(
            "pending_action_dead_lettered" if dead_letter else "pending_action_replay_failed",
            extra={
                "local_id": action.local_id,
                "user_id": action.user_id,
                "error_kind": kind.value,
                "attempts": action.attempts,
                "error": action.last_error,
            },
        )
        return kind
