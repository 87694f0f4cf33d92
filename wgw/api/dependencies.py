"""Shared API dependencies."""

from __future__ import annotations

from functools import lru_cache
from typing import Any, Dict, Optional

from fastapi import HTTPException, Request, status

from ..bootstrap import build_entry_orchestrator, build_persistence_gateway
from ..config import Settings, load_settings
from ..domain.analysis import EntryOrchestrator
from ..domain.entrystore import PersistenceGateway
from ..domain.errors import ErrorKind, PipelineError

__all__ = [
    "USER_ID_HEADER",
    "get_entry_orchestrator",
    "get_persistence_gateway",
    "get_settings",
    "get_user_id",
    "http_error",
    "pipeline_http_error",
]

USER_ID_HEADER = "x-user-id"

_STATUS_BY_KIND = {
    ErrorKind.VALIDATION: (status.HTTP_400_BAD_REQUEST, "WGW-INVALID-REQUEST"),
    ErrorKind.AUTH: (status.HTTP_401_UNAUTHORIZED, "WGW-AUTH-FAILED"),
}


@lru_cache()
def get_settings() -> Settings:
    return load_settings()


@lru_cache()
def _gateway_singleton() -> PersistenceGateway:
    return build_persistence_gateway(get_settings())


def get_persistence_gateway() -> PersistenceGateway:
    """Return the process-wide persistence gateway."""

    return _gateway_singleton()


@lru_cache()
def _orchestrator_singleton() -> EntryOrchestrator:
    return build_entry_orchestrator(get_settings(), get_persistence_gateway())


def get_entry_orchestrator() -> EntryOrchestrator:
    """Return the process-wide entry orchestrator."""

    return _orchestrator_singleton()


def get_user_id(request: Request) -> str:
    """Read the acting user from the ``x-user-id`` header."""

    user_id = (request.headers.get(USER_ID_HEADER) or "").strip()
    if not user_id:
        raise http_error(
            status.HTTP_401_UNAUTHORIZED,
            "WGW-AUTH-REQUIRED",
            f"{USER_ID_HEADER} header is required",
        )
    return user_id


def http_error(
    status_code: int,
    error_code: str,
    message: str,
    details: Optional[Dict[str, Any]] = None,
) -> HTTPException:
    return HTTPException(
        status_code=status_code,
        detail={"error_code": error_code, "message": message, "details": details or {}},
    )


def pipeline_http_error(exc: PipelineError) -> HTTPException:
    status_code, error_code = _STATUS_BY_KIND.get(
        exc.kind, (status.HTTP_502_BAD_GATEWAY, "WGW-UPSTREAM-FAILED")
    )
    return http_error(
        status_code,
        error_code,
        str(exc),
        {"kind": exc.kind.value, "code": exc.code, **exc.context},
    )
