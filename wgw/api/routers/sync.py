"""Pending-action queue endpoints: flush, list and discard."""

from __future__ import annotations

from typing import Any, Dict, List

from fastapi import APIRouter, Depends, Path, Response, status

from ...domain.entrystore import PersistenceGateway
from ...infra.logging import get_logger
from ..dependencies import get_persistence_gateway, get_user_id, http_error

router = APIRouter(prefix="/api/sync", tags=["sync"])
logger = get_logger(__name__)


@router.post("/flush")
async def flush_pending(
    user_id: str = Depends(get_user_id),
    gateway: PersistenceGateway = Depends(get_persistence_gateway),
) -> Dict[str, Any]:
    """Replay the caller's queued entries now."""

    report = await gateway.flush(user_id)
    return report.as_dict()


@router.get("/pending")
def list_pending(
    user_id: str = Depends(get_user_id),
    gateway: PersistenceGateway = Depends(get_persistence_gateway),
) -> Dict[str, List[Dict[str, Any]]]:
    return {"items": [action.to_dict() for action in gateway.pending(user_id)]}


@router.delete("/pending/{local_id}", status_code=status.HTTP_204_NO_CONTENT)
def discard_pending(
    local_id: str = Path(..., min_length=6, max_length=64),
    user_id: str = Depends(get_user_id),
    gateway: PersistenceGateway = Depends(get_persistence_gateway),
) -> Response:
    action = gateway.queue.get(local_id)
    if action is None or action.user_id != user_id:
        raise http_error(
            status.HTTP_404_NOT_FOUND,
            "WGW-NOT-FOUND",
            f"No queued entry {local_id}",
        )
    gateway.discard_local(local_id)
    logger.info("pending_entry_discarded", extra={"local_id": local_id, "user_id": user_id})
    return Response(status_code=status.HTTP_204_NO_CONTENT)
