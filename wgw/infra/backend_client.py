"""Backend write clients: Supabase (PostgREST + Storage) and an in-memory twin."""

from __future__ import annotations

import mimetypes
from typing import Any, Dict, List, Mapping, Optional, Protocol
from uuid import uuid4

import httpx

from ..config import BackendConfig
from ..domain.entrystore.models import Entry, parse_timestamp, utcnow
from ..domain.errors import ErrorKind, PipelineError
from .llm_gateway.transport import decode_json, request, require_api_key
from .logging import get_logger
from .media import local_path

__all__ = [
    "BackendWriteClient",
    "InMemoryBackendClient",
    "SupabaseBackendClient",
    "build_backend_client",
]

logger = get_logger(__name__)

BINARY_KINDS = ("audio", "image")
DEFAULT_EXTENSIONS = {"audio": "m4a", "image": "jpg"}


class BackendWriteClient(Protocol):  # pragma: no cover - interface only
    async def insert_entry(self, fields: Mapping[str, Any]) -> Entry:
        """Insert one entry row and return the server record."""

    async def upload_binary(self, ref: str, *, user_id: str, kind: str) -> str:
        """Upload a local file and return its public URL."""


def object_name(user_id: str, ref: str, kind: str, *, now_ms: Optional[int] = None) -> str:
    """Return ``<user_id>/<epoch-ms>.<ext>`` for a storage upload."""

    path = local_path(ref)
    suffix = path.suffix.lstrip(".").lower() if path is not None else ""
    ext = suffix or DEFAULT_EXTENSIONS.get(kind, "bin")
    stamp = now_ms if now_ms is not None else int(utcnow().timestamp() * 1000)
    return f"{user_id}/{stamp}.{ext}"


def _read_local_binary(ref: str) -> bytes:
    path = local_path(ref)
    if path is None or not path.is_file():
        raise PipelineError(
            f"local media not found: {ref}",
            kind=ErrorKind.VALIDATION,
            code="media_unreadable",
        )
    return path.read_bytes()


def _check_kind(kind: str) -> None:
    if kind not in BINARY_KINDS:
        raise PipelineError(
            f"unsupported binary kind '{kind}'",
            kind=ErrorKind.VALIDATION,
            code="binary_kind_invalid",
        )


class SupabaseBackendClient(BackendWriteClient):
    """Writes entries through PostgREST and uploads binaries to Storage."""

    provider = "supabase"

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str],
        *,
        entries_table: str = "daily_entries",
        audio_bucket: str = "audio-recordings",
        image_bucket: str = "entry-images",
        access_token: Optional[str] = None,
        timeout: float = 20.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._entries_table = entries_table
        self._buckets = {"audio": audio_bucket, "image": image_bucket}
        self._access_token = access_token
        self._timeout = timeout
        self._transport = transport

    @classmethod
    def from_config(
        cls,
        config: BackendConfig,
        *,
        timeout: float = 20.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "SupabaseBackendClient":
        if not config.url:
            raise RuntimeError("backend.url (or SUPABASE_URL) is required for supabase")
        return cls(
            config.url,
            config.api_key,
            entries_table=config.entries_table,
            audio_bucket=config.audio_bucket,
            image_bucket=config.image_bucket,
            timeout=timeout,
            transport=transport,
        )

    def _client(self) -> httpx.AsyncClient:
        api_key = require_api_key(self._api_key, provider=self.provider)
        return httpx.AsyncClient(
            base_url=self._base_url,
            timeout=self._timeout,
            headers={
                "apikey": api_key,
                "Authorization": f"Bearer {self._access_token or api_key}",
            },
            transport=self._transport,
        )

    async def insert_entry(self, fields: Mapping[str, Any]) -> Entry:
        """Upsert on ``client_local_id`` so a replayed insert returns the same row."""

        context = {
            "table": self._entries_table,
            "client_local_id": fields.get("client_local_id"),
        }
        async with self._client() as client:
            response = await request(
                client,
                "POST",
                f"/rest/v1/{self._entries_table}",
                provider=self.provider,
                context=context,
                params={"on_conflict": "client_local_id"},
                headers={
                    "Prefer": "return=representation,resolution=merge-duplicates",
                    "Content-Type": "application/json",
                },
                json=dict(fields),
            )
        rows = decode_json(response, provider=self.provider, context=context)
        if isinstance(rows, dict):
            rows = [rows]
        if not rows or not isinstance(rows[0], dict) or "id" not in rows[0]:
            raise PipelineError(
                "backend insert returned no row",
                kind=ErrorKind.UPSTREAM_BAD_REQUEST,
                code="supabase_empty_insert",
                context=context,
            )
        entry = Entry.from_row(rows[0])
        logger.info(
            "backend_entry_inserted",
            extra={"entry_id": entry.id, "user_id": entry.user_id},
        )
        return entry

    async def upload_binary(self, ref: str, *, user_id: str, kind: str) -> str:
        _check_kind(kind)
        data = _read_local_binary(ref)
        bucket = self._buckets[kind]
        name = object_name(user_id, ref, kind)
        path = local_path(ref)
        content_type = (
            mimetypes.guess_type(path.name)[0] if path is not None else None
        ) or ("audio/m4a" if kind == "audio" else "image/jpeg")
        context = {"bucket": bucket, "object": name, "bytes": len(data)}
        async with self._client() as client:
            await request(
                client,
                "POST",
                f"/storage/v1/object/{bucket}/{name}",
                provider=self.provider,
                context=context,
                headers={"Content-Type": content_type, "x-upsert": "false"},
                content=data,
            )
        logger.info("backend_binary_uploaded", extra=context)
        return f"{self._base_url}/storage/v1/object/public/{bucket}/{name}"


class InMemoryBackendClient(BackendWriteClient):
    """Backend twin used for local development and tests."""

    def __init__(self) -> None:
        self.rows: Dict[str, Dict[str, Any]] = {}
        self.uploads: Dict[str, bytes] = {}
        self._by_local_id: Dict[str, str] = {}
        self.insert_calls = 0

    async def insert_entry(self, fields: Mapping[str, Any]) -> Entry:
        self.insert_calls += 1
        local_id = fields.get("client_local_id")
        if local_id and local_id in self._by_local_id:
            return Entry.from_row(self.rows[self._by_local_id[local_id]])

        row = dict(fields)
        row["id"] = str(uuid4())
        row["created_at"] = parse_timestamp(
            fields.get("created_at") or utcnow()
        ).isoformat()
        self.rows[row["id"]] = row
        if local_id:
            self._by_local_id[str(local_id)] = row["id"]
        return Entry.from_row(row)

    async def upload_binary(self, ref: str, *, user_id: str, kind: str) -> str:
        _check_kind(kind)
        data = _read_local_binary(ref)
        name = f"{kind}/{object_name(user_id, ref, kind)}"
        self.uploads[name] = data
        return f"https://storage.memory.local/{name}"

    def entries(self) -> List[Entry]:
        return [Entry.from_row(row) for row in self.rows.values()]


def build_backend_client(
    config: BackendConfig, *, timeout: float = 20.0
) -> BackendWriteClient:
    if config.provider == "supabase":
        return SupabaseBackendClient.from_config(config, timeout=timeout)
    if config.provider == "memory":
        return InMemoryBackendClient()
    raise RuntimeError(f"unsupported backend provider '{config.provider}'")
