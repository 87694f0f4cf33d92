"""Async OpenAI REST client covering chat, vision and Whisper transcription."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import httpx

from ...domain.errors import ErrorKind, PipelineError
from .transport import require_api_key, resolve_api_key, send

DEFAULT_BASE_URL = "https://api.openai.com/v1"
DEFAULT_TIMEOUT = 60.0

_AUDIO_MEDIA_TYPES = {
    ".m4a": "audio/m4a",
    ".mp3": "audio/mpeg",
    ".wav": "audio/wav",
    ".aac": "audio/aac",
    ".webm": "audio/webm",
    ".ogg": "audio/ogg",
}


class OpenAIClient:
    """Minimal wrapper around the chat-completions and transcription endpoints."""

    def __init__(
        self,
        api_key: Optional[str],
        *,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport

    @classmethod
    def from_config(
        cls,
        config: Dict[str, Any],
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "OpenAIClient":
        return cls(
            resolve_api_key(config, "OPENAI_API_KEY"),
            base_url=str(config.get("base_url") or DEFAULT_BASE_URL),
            timeout=float(config.get("timeout_seconds") or DEFAULT_TIMEOUT),
            transport=transport,
        )

    @property
    def is_configured(self) -> bool:
        return bool(self._api_key)

    def _client(self) -> httpx.AsyncClient:
        api_key = require_api_key(self._api_key, provider="openai")
        return httpx.AsyncClient(
            base_url=self._base_url,
            timeout=self._timeout,
            headers={"Authorization": f"Bearer {api_key}"},
            transport=self._transport,
        )

    async def chat(
        self,
        *,
        model: str,
        messages: Sequence[Dict[str, Any]],
        max_tokens: int = 200,
        temperature: float = 0.7,
    ) -> str:
        """Return the first choice's text content."""

        payload = {
            "model": model,
            "messages": list(messages),
            "max_tokens": max_tokens,
            "temperature": temperature,
        }
        context = {"model": model, "message_count": len(payload["messages"])}
        async with self._client() as client:
            body = await send(
                client,
                "POST",
                "/chat/completions",
                provider="openai",
                context=context,
                json=payload,
            )
        choices = body.get("choices") or []
        if not choices:
            raise PipelineError(
                "openai response missing choices",
                kind=ErrorKind.UPSTREAM_BAD_REQUEST,
                code="openai_missing_choices",
                context=context,
            )
        message = (choices[0] or {}).get("message") or {}
        return _coerce_content(message.get("content"))

    async def transcribe(
        self,
        audio_path: Path,
        *,
        model: str = "whisper-1",
        language: Optional[str] = "en",
    ) -> str:
        audio_bytes = audio_path.read_bytes()
        media_type = _AUDIO_MEDIA_TYPES.get(audio_path.suffix.lower(), "audio/m4a")
        data: Dict[str, str] = {"model": model, "response_format": "json"}
        if language:
            data["language"] = language
        async with self._client() as client:
            body = await send(
                client,
                "POST",
                "/audio/transcriptions",
                provider="openai",
                context={"model": model, "bytes": len(audio_bytes)},
                data=data,
                files={"file": (audio_path.name, audio_bytes, media_type)},
            )
        text = body.get("text")
        if not isinstance(text, str):
            raise PipelineError(
                "openai transcription response missing text",
                kind=ErrorKind.UPSTREAM_BAD_REQUEST,
                code="openai_missing_text",
            )
        return text.strip()


def _coerce_content(content: Any) -> str:
    if isinstance(content, str):
        return content.strip()
    if isinstance(content, list):
        parts: List[str] = []
        for part in content:
            if isinstance(part, dict) and isinstance(part.get("text"), str):
                parts.append(part["text"])
        return "".join(parts).strip()
    return ""
