"""Error taxonomy deciding whether a failure is retried, queued, degraded or surfaced."""

from __future__ import annotations

import asyncio
from enum import Enum
from typing import Any, Awaitable, Dict, Optional, TypeVar

import httpx

__all__ = [
    "ErrorKind",
    "PipelineError",
    "bounded",
    "classify_error",
    "error_details",
    "kind_for_status",
]

T = TypeVar("T")


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    NETWORK = "network"
    AUTH = "auth"
    UPSTREAM_BAD_REQUEST = "upstream_bad_request"
    UNKNOWN = "unknown"

    @property
    def is_fatal(self) -> bool:
        """Fatal kinds are surfaced to the caller and never queued."""

        return self in (ErrorKind.VALIDATION, ErrorKind.AUTH)

    @property
    def degrades(self) -> bool:
        """Every non-fatal kind falls back to the queue or a lower AI tier."""

        return not self.is_fatal


class PipelineError(RuntimeError):
    """Raised at adapter boundaries with a structured ``ErrorKind``."""

    def __init__(
        self,
        message: str,
        *,
        kind: ErrorKind,
        code: str = "internal_error",
        retryable: Optional[bool] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.code = code
        self.retryable = kind.degrades if retryable is None else retryable
        self.context = dict(context or {})

    def as_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "code": self.code,
            "message": str(self),
            "retryable": self.retryable,
        }


def kind_for_status(status_code: int) -> ErrorKind:
    """Map an upstream HTTP status to an ``ErrorKind``."""

    if status_code in (401, 403):
        return ErrorKind.AUTH
    if status_code in (408, 425, 429) or status_code >= 500:
        return ErrorKind.NETWORK
    if status_code in (400, 404, 409, 413, 415, 422):
        return ErrorKind.UPSTREAM_BAD_REQUEST
    return ErrorKind.UNKNOWN


def classify_error(exc: BaseException) -> ErrorKind:
    """Return the ``ErrorKind`` for any caught failure. Pure, never raises."""

    if isinstance(exc, PipelineError):
        return exc.kind
    if isinstance(exc, (asyncio.TimeoutError, TimeoutError, ConnectionError)):
        return ErrorKind.NETWORK
    if isinstance(exc, httpx.HTTPStatusError):
        return kind_for_status(exc.response.status_code)
    if isinstance(exc, httpx.TransportError):
        return ErrorKind.NETWORK
    if isinstance(exc, (FileNotFoundError, PermissionError, IsADirectoryError)):
        return ErrorKind.VALIDATION
    return ErrorKind.UNKNOWN


def error_details(exc: BaseException) -> Dict[str, Any]:
    """Return a JSON-safe description of ``exc`` for logs and queue records."""

    if isinstance(exc, PipelineError):
        return exc.as_dict()
    kind = classify_error(exc)
    return {
        "kind": kind.value,
        "code": type(exc).__name__,
        "message": str(exc),
        "retryable": kind.degrades,
    }


async def bounded(awaitable: Awaitable[T], *, timeout: Optional[float], stage: str) -> T:
    """Await ``awaitable`` within ``timeout`` seconds; expiry is a network failure."""

    if timeout is None or timeout <= 0:
        return await awaitable
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout)
    except asyncio.TimeoutError as exc:
        raise PipelineError(
            f"{stage} exceeded {timeout:g}s",
            kind=ErrorKind.NETWORK,
            code=f"{stage}_timeout",
            retryable=True,
        ) from exc
