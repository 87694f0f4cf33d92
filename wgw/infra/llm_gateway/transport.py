"""Shared httpx plumbing for provider adapters."""

from __future__ import annotations

import os
from typing import Any, Dict, Optional

import httpx

from ...domain.errors import ErrorKind, PipelineError, kind_for_status
from ..logging import get_logger

logger = get_logger(__name__)

_ERROR_BODY_LIMIT = 500


def resolve_api_key(config: Dict[str, Any], default_env: str) -> Optional[str]:
    """Return the API key named by ``api_key_env`` (or an inline ``api_key``)."""

    inline = config.get("api_key")
    if inline:
        return str(inline)
    return os.getenv(str(config.get("api_key_env") or default_env)) or None


def require_api_key(api_key: Optional[str], *, provider: str) -> str:
    if not api_key:
        raise PipelineError(
            f"{provider} API key is not configured",
            kind=ErrorKind.AUTH,
            code=f"{provider}_api_key_missing",
        )
    return api_key


async def request(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    *,
    provider: str,
    context: Optional[Dict[str, Any]] = None,
    **kwargs: Any,
) -> httpx.Response:
    """Issue a request; transport failures and non-2xx statuses become ``PipelineError``."""

    try:
        response = await client.request(method, url, **kwargs)
    except httpx.TimeoutException as exc:
        raise PipelineError(
            f"{provider} request timed out",
            kind=ErrorKind.NETWORK,
            code=f"{provider}_timeout",
            context=context,
        ) from exc
    except httpx.TransportError as exc:
        raise PipelineError(
            f"{provider} transport failure: {exc}",
            kind=ErrorKind.NETWORK,
            code=f"{provider}_unreachable",
            context=context,
        ) from exc

    if response.status_code >= 400:
        kind = kind_for_status(response.status_code)
        body = response.text[:_ERROR_BODY_LIMIT]
        if kind is ErrorKind.UPSTREAM_BAD_REQUEST:
            logger.warning(
                "provider_bad_request",
                extra={
                    "provider": provider,
                    "status_code": response.status_code,
                    "body": body,
                    **(context or {}),
                },
            )
        raise PipelineError(
            f"{provider} returned {response.status_code}: {body}",
            kind=kind,
            code=f"{provider}_http_{response.status_code}",
            context={"status_code": response.status_code, **(context or {})},
        )
    return response


def decode_json(
    response: httpx.Response, *, provider: str, context: Optional[Dict[str, Any]] = None
) -> Any:
    try:
        return response.json()
    except ValueError as exc:
        raise PipelineError(
            f"{provider} response is not valid JSON",
            kind=ErrorKind.UPSTREAM_BAD_REQUEST,
            code=f"{provider}_invalid_json",
            context=context,
        ) from exc


async def send(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    *,
    provider: str,
    context: Optional[Dict[str, Any]] = None,
    **kwargs: Any,
) -> Dict[str, Any]:
    """Issue a request and return the decoded JSON object body."""

    response = await request(
        client, method, url, provider=provider, context=context, **kwargs
    )
    payload = decode_json(response, provider=provider, context=context)
    if not isinstance(payload, dict):
        raise PipelineError(
            f"{provider} response payload must be a JSON object",
            kind=ErrorKind.UPSTREAM_BAD_REQUEST,
            code=f"{provider}_invalid_payload",
            context=context,
        )
    return payload
