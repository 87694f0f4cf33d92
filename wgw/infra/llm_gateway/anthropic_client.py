"""Async Anthropic Messages API client used for the methodology coaching tier."""

from __future__ import annotations

from typing import Any, Dict, Optional

import httpx

from ...domain.errors import ErrorKind, PipelineError
from .transport import require_api_key, resolve_api_key, send

DEFAULT_BASE_URL = "https://api.anthropic.com/v1"
DEFAULT_VERSION = "2023-06-01"
DEFAULT_TIMEOUT = 60.0


class AnthropicClient:
    def __init__(
        self,
        api_key: Optional[str],
        *,
        base_url: str = DEFAULT_BASE_URL,
        version: str = DEFAULT_VERSION,
        timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._version = version
        self._timeout = timeout
        self._transport = transport

    @classmethod
    def from_config(
        cls,
        config: Dict[str, Any],
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "AnthropicClient":
        return cls(
            resolve_api_key(config, "ANTHROPIC_API_KEY"),
            base_url=str(config.get("base_url") or DEFAULT_BASE_URL),
            version=str(config.get("version") or DEFAULT_VERSION),
            timeout=float(config.get("timeout_seconds") or DEFAULT_TIMEOUT),
            transport=transport,
        )

    @property
    def is_configured(self) -> bool:
        return bool(self._api_key)

    async def message(
        self,
        *,
        model: str,
        system: str,
        user: str,
        max_tokens: int = 200,
        temperature: float = 0.7,
    ) -> str:
        api_key = require_api_key(self._api_key, provider="anthropic")
        payload = {
            "model": model,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "system": system,
            "messages": [{"role": "user", "content": user}],
        }
        context = {"model": model, "system_chars": len(system), "user_chars": len(user)}
        async with httpx.AsyncClient(
            base_url=self._base_url,
            timeout=self._timeout,
            headers={
                "x-api-key": api_key,
                "anthropic-version": self._version,
                "content-type": "application/json",
            },
            transport=self._transport,
        ) as client:
            body = await send(
                client,
                "POST",
                "/messages",
                provider="anthropic",
                context=context,
                json=payload,
            )
        blocks = body.get("content")
        if not isinstance(blocks, list):
            raise PipelineError(
                "anthropic response missing content blocks",
                kind=ErrorKind.UPSTREAM_BAD_REQUEST,
                code="anthropic_missing_content",
                context=context,
            )
        texts = [
            block.get("text", "")
            for block in blocks
            if isinstance(block, dict) and block.get("type") == "text"
        ]
        return "".join(texts).strip()
