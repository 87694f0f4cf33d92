"""Readiness endpoint polled by the client shell."""

from typing import Any

from fastapi import APIRouter, Depends

from ...config import Settings
from ...domain.entrystore import PersistenceGateway
from ...infra.metrics import get_metrics_client
from ..dependencies import get_persistence_gateway, get_settings

router = APIRouter(prefix="/api", tags=["health"])


@router.get("/healthz")
async def healthcheck(
    settings: Settings = Depends(get_settings),
    gateway: PersistenceGateway = Depends(get_persistence_gateway),
) -> dict[str, Any]:
    pending = gateway.pending()
    failed = sum(1 for action in pending if action.is_failed)
    return {
        "status": "ok",
        "environment": settings.environment,
        "backend": settings.backend.provider,
        "online": await gateway.is_online(),
        "pendingCount": len(pending) - failed,
        "failedCount": failed,
        "metrics": get_metrics_client().snapshot(),
    }
