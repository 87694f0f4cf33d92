"""Speech, vision and coaching adapters consumed by the entry orchestrator."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from ...domain.errors import ErrorKind, PipelineError
from ..logging import get_logger
from ..media import is_remote_url, local_path, to_data_url
from . import whisper_client
from .anthropic_client import AnthropicClient
from .openai_client import OpenAIClient
from .types import ModelTier, PromptSpec

__all__ = [
    "CoachingGenerationClient",
    "SpeechTranscriptionClient",
    "TierConfig",
    "VisionAnalysisClient",
]

logger = get_logger(__name__)


class SpeechTranscriptionClient:
    """Turns an on-device recording into text.

    Providers: ``openai`` (Whisper API), ``local`` (faster-whisper) and
    ``stub`` (derives text from the file name, for offline development).
    """

    def __init__(
        self,
        *,
        provider: str = "openai",
        openai: Optional[OpenAIClient] = None,
        model: str = "whisper-1",
        language: Optional[str] = "en",
        whisper_settings: Optional[Dict[str, Any]] = None,
    ) -> None:
        self._provider = provider
        self._openai = openai
        self._model = model
        self._language = language
        self._whisper_settings = whisper_settings or {}

    @property
    def provider(self) -> str:
        return self._provider

    async def transcribe(self, audio_ref: str) -> str:
        path = self._resolve_audio(audio_ref)
        if self._provider == "stub":
            return path.stem.replace("_", " ").strip() or "sample audio"
        if self._provider == "local":
            return await self._transcribe_locally(path)
        if self._provider == "openai":
            if self._openai is None:
                raise PipelineError(
                    "openai transcription client is not configured",
                    kind=ErrorKind.AUTH,
                    code="transcription_client_missing",
                )
            return await self._openai.transcribe(
                path, model=self._model, language=self._language
            )
        raise PipelineError(
            f"unsupported transcription provider '{self._provider}'",
            kind=ErrorKind.UNKNOWN,
            code="transcription_provider_unsupported",
        )

    def _resolve_audio(self, audio_ref: str) -> Path:
        path = local_path(audio_ref)
        if path is None:
            raise PipelineError(
                f"audio reference must be an on-device file: {audio_ref!r}",
                kind=ErrorKind.VALIDATION,
                code="audio_ref_invalid",
            )
        if not path.is_file():
            raise PipelineError(
                f"recording not found: {path}",
                kind=ErrorKind.VALIDATION,
                code="media_unreadable",
            )
        return path

    async def _transcribe_locally(self, path: Path) -> str:
        try:
            result = await asyncio.to_thread(
                whisper_client.transcribe_file, str(path), self._whisper_settings
            )
        except (FileNotFoundError, PermissionError) as exc:
            raise PipelineError(
                str(exc), kind=ErrorKind.VALIDATION, code="media_unreadable"
            ) from exc
        except ValueError as exc:
            raise PipelineError(
                str(exc), kind=ErrorKind.VALIDATION, code="unsupported_format"
            ) from exc
        except RuntimeError as exc:
            logger.warning("local_whisper_unavailable", extra={"error": str(exc)})
            raise PipelineError(
                str(exc), kind=ErrorKind.UNKNOWN, code="local_whisper_unavailable"
            ) from exc
        return result.text


class VisionAnalysisClient:
    """Describes an image through a vision-capable chat model."""

    def __init__(
        self,
        openai: Optional[OpenAIClient],
        *,
        model: str = "gpt-4o",
        max_tokens: int = 200,
        temperature: float = 0.5,
    ) -> None:
        self._openai = openai
        self._model = model
        self._max_tokens = max_tokens
        self._temperature = temperature

    async def describe(self, image_ref: str, prompt_context: PromptSpec) -> str:
        image_url = self._resolve_image(image_ref)
        if self._openai is None:
            raise PipelineError(
                "vision client is not configured",
                kind=ErrorKind.AUTH,
                code="vision_client_missing",
            )
        messages = [
            {"role": "system", "content": prompt_context.system},
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": prompt_context.user},
                    {"type": "image_url", "image_url": {"url": image_url}},
                ],
            },
        ]
        return await self._openai.chat(
            model=self._model,
            messages=messages,
            max_tokens=self._max_tokens,
            temperature=self._temperature,
        )

    def _resolve_image(self, image_ref: str) -> str:
        """Validate before any network call; local files are inlined."""

        if is_remote_url(image_ref):
            return image_ref.strip()
        path = local_path(image_ref) if image_ref and "://" in image_ref else None
        if path is not None and path.is_file():
            return to_data_url(path)
        raise PipelineError(
            f"image reference is not a resolvable URL: {image_ref!r}",
            kind=ErrorKind.VALIDATION,
            code="image_ref_invalid",
        )


@dataclass(frozen=True)
class TierConfig:
    provider: str
    model: str
    max_tokens: int = 200
    temperature: float = 0.7

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "TierConfig":
        return cls(
            provider=str(data.get("provider") or "openai"),
            model=str(data["model"]),
            max_tokens=int(data.get("max_tokens") or 200),
            temperature=float(data.get("temperature", 0.7)),
        )


class CoachingGenerationClient:
    """Routes a coaching prompt to the provider configured for a tier."""

    def __init__(
        self,
        tiers: Mapping[ModelTier, TierConfig],
        *,
        openai: Optional[OpenAIClient] = None,
        anthropic: Optional[AnthropicClient] = None,
    ) -> None:
        self._tiers = dict(tiers)
        self._openai = openai
        self._anthropic = anthropic

    def is_configured(self, tier: ModelTier) -> bool:
        config = self._tiers.get(tier)
        if config is None:
            return False
        if config.provider == "anthropic":
            return self._anthropic is not None and self._anthropic.is_configured
        if config.provider == "openai":
            return self._openai is not None and self._openai.is_configured
        return False

    def primary_tier(self) -> ModelTier:
        """Methodology model when configured, otherwise the general model."""

        if self.is_configured(ModelTier.METHODOLOGY):
            return ModelTier.METHODOLOGY
        return ModelTier.GENERAL

    def model_for(self, tier: ModelTier) -> Optional[str]:
        config = self._tiers.get(tier)
        return config.model if config else None

    async def generate(self, prompt: PromptSpec, tier: ModelTier) -> str:
        config = self._tiers.get(tier)
        if config is None:
            raise PipelineError(
                f"coaching tier '{tier.value}' is not configured",
                kind=ErrorKind.UNKNOWN,
                code="coaching_tier_missing",
            )

        if config.provider == "anthropic":
            if self._anthropic is None:
                raise PipelineError(
                    "anthropic client is not configured",
                    kind=ErrorKind.AUTH,
                    code="anthropic_client_missing",
                )
            text = await self._anthropic.message(
                model=config.model,
                system=prompt.system,
                user=prompt.user,
                max_tokens=config.max_tokens,
                temperature=config.temperature,
            )
        elif config.provider == "openai":
            if self._openai is None:
                raise PipelineError(
                    "openai client is not configured",
                    kind=ErrorKind.AUTH,
                    code="openai_client_missing",
                )
            text = await self._openai.chat(
                model=config.model,
                messages=[
                    {"role": "system", "content": prompt.system},
                    {"role": "user", "content": prompt.user},
                ],
                max_tokens=config.max_tokens,
                temperature=config.temperature,
            )
        else:
            raise PipelineError(
                f"unsupported coaching provider '{config.provider}'",
                kind=ErrorKind.UNKNOWN,
                code="coaching_provider_unsupported",
            )

        if not text or not text.strip():
            raise PipelineError(
                "coaching model returned an empty response",
                kind=ErrorKind.UPSTREAM_BAD_REQUEST,
                code="coaching_empty_response",
                context={"tier": tier.value, "model": config.model},
            )
        return text.strip()
