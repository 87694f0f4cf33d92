"""On-device transcription through faster-whisper (the ``local`` provider)."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, Optional, Tuple

from ...config import DEFAULT_WHISPER_CONFIG
from ..logging import get_logger

if TYPE_CHECKING:  # pragma: no cover - optional dependency
    from faster_whisper import WhisperModel

logger = get_logger(__name__)

ModelKey = Tuple[str, str, str]


@dataclass
class WhisperResult:
    text: str
    language: Optional[str]
    duration: Optional[float]
    model_id: str


class ModelCache:
    """Holds one loaded model; a different (model, device, compute) key reloads it."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.key: Optional[ModelKey] = None
        self.model: Optional["WhisperModel"] = None

    def get(self, settings: Dict[str, Any]) -> "WhisperModel":
        key: ModelKey = (
            str(settings["model_id"]),
            str(settings["device"]),
            str(settings["compute_type"]),
        )
        with self._lock:
            if self.model is None or self.key != key:
                self.model = _load_model(*key)
                self.key = key
            return self.model


_cache = ModelCache()


def merge_settings(configured: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Overlay profile values onto the defaults; ``None`` keeps the default."""

    merged = dict(DEFAULT_WHISPER_CONFIG)
    merged.update({k: v for k, v in (configured or {}).items() if v is not None})
    return merged


def transcribe_file(
    audio_path: str, settings: Optional[Dict[str, Any]] = None
) -> WhisperResult:
    """Blocking; callers run it in a worker thread."""

    path = Path(audio_path)
    if not path.exists():
        raise FileNotFoundError(audio_path)
    if not path.is_file():
        raise ValueError(f"not a recording file: {audio_path}")

    resolved = merge_settings(settings)
    segments, info = _cache.get(resolved).transcribe(
        str(path), **_decode_options(resolved)
    )
    text = " ".join(s.text.strip() for s in segments if s.text.strip())
    result = WhisperResult(
        text=text,
        language=getattr(info, "language", None),
        duration=getattr(info, "duration", None),
        model_id=str(resolved["model_id"]),
    )
    logger.debug(
        "local_transcription_finished",
        extra={"model": result.model_id, "duration": result.duration, "chars": len(text)},
    )
    return result


def _load_model(model_id: str, device: str, compute_type: str) -> "WhisperModel":
    try:
        from faster_whisper import WhisperModel
    except ImportError as exc:
        raise RuntimeError(
            "faster-whisper is not installed; install the local-whisper extra"
        ) from exc
    logger.info(
        "whisper_model_loading",
        extra={"model": model_id, "device": device, "compute_type": compute_type},
    )
    return WhisperModel(model_id, device=device, compute_type=compute_type)


def _decode_options(settings: Dict[str, Any]) -> Dict[str, Any]:
    options: Dict[str, Any] = {
        "language": settings.get("language"),
        "beam_size": settings.get("beam_size"),
        "initial_prompt": settings.get("initial_prompt"),
        "vad_filter": True if settings.get("vad_enabled") else None,
    }
    return {key: value for key, value in options.items() if value is not None}
