"""Entry store data models shared by the orchestrator, gateway and queue."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Set
from uuid import uuid4

__all__ = [
    "AnalysisDraft",
    "Entry",
    "EntryDraft",
    "LOCAL_ID_PREFIX",
    "PendingAction",
    "PendingActionStatus",
    "PendingActionType",
    "SyncState",
    "is_local_id",
    "new_local_id",
    "parse_timestamp",
    "utcnow",
]

LOCAL_ID_PREFIX = "temp_"


def utcnow() -> datetime:
    """Return timezone-aware UTC timestamp."""

    return datetime.now(timezone.utc)


def new_local_id(timestamp: Optional[datetime] = None) -> str:
    """Return a ``temp_<epoch-ms>_<suffix>`` placeholder id.

    The random suffix keeps two captures within the same millisecond from
    collapsing into one queued action.
    """

    ts = timestamp or utcnow()
    return f"{LOCAL_ID_PREFIX}{int(ts.timestamp() * 1000)}_{uuid4().hex[:8]}"


def is_local_id(value: Optional[str]) -> bool:
    return bool(value) and str(value).startswith(LOCAL_ID_PREFIX)


def parse_timestamp(value: Any) -> datetime:
    """Coerce ISO strings and naive datetimes into aware UTC datetimes."""

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    else:
        raise ValueError(f"invalid timestamp: {value!r}")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class SyncState(str, Enum):
    LOCAL = "local"
    QUEUED = "queued"
    SYNCED = "synced"


class PendingActionType(str, Enum):
    CREATE_ENTRY = "create_entry"


class PendingActionStatus(str, Enum):
    PENDING = "pending"
    FAILED = "failed"


@dataclass(frozen=True)
class Entry:
    """Durable record of one reflection, possibly still local-only."""

    id: str
    user_id: str
    category: str
    transcription: str
    created_at: datetime
    sync_state: SyncState
    ai_response: Optional[str] = None
    image_url: Optional[str] = None
    audio_url: Optional[str] = None
    is_private: bool = False
    favorite: bool = False

    def __post_init__(self) -> None:
        if not self.id:
            raise ValueError("entry id is required")
        if is_local_id(self.id) and self.sync_state is SyncState.SYNCED:
            raise ValueError(f"entry {self.id} has a local id but is marked synced")
        if not is_local_id(self.id) and self.sync_state is not SyncState.SYNCED:
            raise ValueError(
                f"entry {self.id} has a server id but sync_state={self.sync_state.value}"
            )

    @property
    def is_local(self) -> bool:
        return is_local_id(self.id)

    def with_sync_state(self, sync_state: SyncState) -> "Entry":
        return replace(self, sync_state=sync_state)

    def to_row(self, *, client_local_id: Optional[str] = None) -> Dict[str, Any]:
        """Return backend column values (server id omitted)."""

        row: Dict[str, Any] = {
            "user_id": self.user_id,
            "category": self.category,
            "transcription": self.transcription,
            "ai_response": self.ai_response,
            "image_url": self.image_url,
            "audio_url": self.audio_url,
            "is_private": self.is_private,
            "favorite": self.favorite,
            "created_at": self.created_at.isoformat(),
        }
        if client_local_id:
            row["client_local_id"] = client_local_id
        return row

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Entry":
        """Build a synced entry from a backend row."""

        return cls(
            id=str(row["id"]),
            user_id=str(row["user_id"]),
            category=row.get("category") or "",
            transcription=row.get("transcription") or "",
            ai_response=row.get("ai_response"),
            image_url=row.get("image_url"),
            audio_url=row.get("audio_url"),
            is_private=bool(row.get("is_private")),
            favorite=bool(row.get("favorite")),
            created_at=parse_timestamp(row["created_at"]),
            sync_state=SyncState.SYNCED,
        )


@dataclass(frozen=True)
class EntryDraft:
    """Persistence input assembled by the orchestrator."""

    user_id: str
    transcript: str
    category: str
    ai_response: Optional[str] = None
    image_url: Optional[str] = None
    audio_uri: Optional[str] = None
    is_private: bool = False
    created_at: datetime = field(default_factory=utcnow)

    def with_uploads(
        self, *, audio_url: Optional[str], image_url: Optional[str]
    ) -> "EntryDraft":
        return replace(self, audio_uri=audio_url, image_url=image_url)

    def to_payload(self) -> Dict[str, Any]:
        """Return the JSON-safe replay payload stored on a pending action."""

        return {
            "user_id": self.user_id,
            "transcript": self.transcript,
            "category": self.category,
            "ai_response": self.ai_response,
            "image_url": self.image_url,
            "audio_uri": self.audio_uri,
            "is_private": self.is_private,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "EntryDraft":
        return cls(
            user_id=str(payload["user_id"]),
            transcript=payload.get("transcript") or "",
            category=payload.get("category") or "",
            ai_response=payload.get("ai_response"),
            image_url=payload.get("image_url"),
            audio_uri=payload.get("audio_uri"),
            is_private=bool(payload.get("is_private")),
            created_at=parse_timestamp(payload["created_at"]),
        )


@dataclass
class PendingAction:
    """Durable intent to create an entry once connectivity allows."""

    type: PendingActionType
    payload: Dict[str, Any]
    local_id: str
    user_id: str
    created_at: datetime = field(default_factory=utcnow)
    attempts: int = 0
    status: PendingActionStatus = PendingActionStatus.PENDING
    last_error: Optional[Dict[str, Any]] = None

    @classmethod
    def create_entry(cls, local_id: str, draft: EntryDraft) -> "PendingAction":
        return cls(
            type=PendingActionType.CREATE_ENTRY,
            payload=draft.to_payload(),
            local_id=local_id,
            user_id=draft.user_id,
            created_at=draft.created_at,
        )

    @property
    def is_failed(self) -> bool:
        return self.status is PendingActionStatus.FAILED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "local_id": self.local_id,
            "user_id": self.user_id,
            "payload": dict(self.payload),
            "attempts": self.attempts,
            "status": self.status.value,
            "last_error": self.last_error,
            "created_at": self.created_at.isoformat(),
        }


@dataclass
class AnalysisDraft:
    """In-memory assembly of analysis results for one creation call."""

    category: str
    transcript: str = ""
    vision_description: Optional[str] = None
    streak: Optional[int] = None
    attempted_stages: Set[str] = field(default_factory=set)
