"""Entry creation endpoints for voice and photo captures."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Response, status
from pydantic import BaseModel, Field

from ...domain.analysis import EntryOrchestrator
from ...domain.entrystore import Entry, SyncState
from ...domain.errors import PipelineError
from ...infra.logging import get_logger
from ...infra.metrics import get_metrics_client
from ..dependencies import get_entry_orchestrator, get_user_id, pipeline_http_error

router = APIRouter(prefix="/api/entries", tags=["entries"])
logger = get_logger(__name__)
metrics = get_metrics_client()


class RecordingRequest(BaseModel):
    audio_ref: str = Field(..., description="On-device recording path or file:// URL.")
    category: str = Field(..., min_length=1)
    is_private: bool = False
    streak: Optional[int] = Field(None, ge=0, description="Consecutive days with an entry.")


class ImageRequest(BaseModel):
    image_ref: str = Field(..., description="http(s) or file:// image URL.")
    caption: Optional[str] = None
    category: str = Field(..., min_length=1)
    is_private: bool = False
    streak: Optional[int] = Field(None, ge=0, description="Consecutive days with an entry.")


class EntryResponse(BaseModel):
    id: str
    user_id: str
    category: str
    transcription: str
    ai_response: Optional[str] = None
    image_url: Optional[str] = None
    audio_url: Optional[str] = None
    is_private: bool
    favorite: bool
    created_at: datetime
    sync_state: str

    @classmethod
    def from_entry(cls, entry: Entry) -> "EntryResponse":
        return cls(
            id=entry.id,
            user_id=entry.user_id,
            category=entry.category,
            transcription=entry.transcription,
            ai_response=entry.ai_response,
            image_url=entry.image_url,
            audio_url=entry.audio_url,
            is_private=entry.is_private,
            favorite=entry.favorite,
            created_at=entry.created_at,
            sync_state=entry.sync_state.value,
        )


def _respond(entry: Entry, response: Response, source: str) -> EntryResponse:
    synced = entry.sync_state is SyncState.SYNCED
    response.status_code = (
        status.HTTP_201_CREATED if synced else status.HTTP_202_ACCEPTED
    )
    metrics.increment(f"entries.created.{source}.{entry.sync_state.value}")
    logger.info(
        "entry_created",
        extra={
            "entry_id": entry.id,
            "user_id": entry.user_id,
            "source": source,
            "sync_state": entry.sync_state.value,
        },
    )
    return EntryResponse.from_entry(entry)


@router.post(
    "/recording",
    response_model=EntryResponse,
    status_code=status.HTTP_201_CREATED,
    responses={202: {"model": EntryResponse, "description": "Saved locally, will sync."}},
)
async def create_from_recording(
    payload: RecordingRequest,
    response: Response,
    user_id: str = Depends(get_user_id),
    orchestrator: EntryOrchestrator = Depends(get_entry_orchestrator),
) -> EntryResponse:
    try:
        entry = await orchestrator.create_from_recording(
            payload.audio_ref,
            payload.category,
            user_id=user_id,
            is_private=payload.is_private,
            streak=payload.streak,
        )
    except PipelineError as exc:
        logger.warning(
            "entry_create_rejected",
            extra={"user_id": user_id, "source": "recording", "error": exc.as_dict()},
        )
        raise pipeline_http_error(exc) from exc
    return _respond(entry, response, "recording")


@router.post(
    "/image",
    response_model=EntryResponse,
    status_code=status.HTTP_201_CREATED,
    responses={202: {"model": EntryResponse, "description": "Saved locally, will sync."}},
)
async def create_from_image(
    payload: ImageRequest,
    response: Response,
    user_id: str = Depends(get_user_id),
    orchestrator: EntryOrchestrator = Depends(get_entry_orchestrator),
) -> EntryResponse:
    try:
        entry = await orchestrator.create_from_image(
            payload.image_ref,
            payload.caption,
            payload.category,
            user_id=user_id,
            is_private=payload.is_private,
            streak=payload.streak,
        )
    except PipelineError as exc:
        logger.warning(
            "entry_create_rejected",
            extra={"user_id": user_id, "source": "image", "error": exc.as_dict()},
        )
        raise pipeline_http_error(exc) from exc
    return _respond(entry, response, "image")
