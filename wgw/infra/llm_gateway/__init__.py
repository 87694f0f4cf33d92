"""AI provider gateway: transcription, vision and tiered coaching."""

from __future__ import annotations

from typing import Dict, Optional

import httpx

from ...config import Settings
from .anthropic_client import AnthropicClient
from .clients import (
    CoachingGenerationClient,
    SpeechTranscriptionClient,
    TierConfig,
    VisionAnalysisClient,
)
from .openai_client import OpenAIClient
from .types import ModelTier, PromptSpec

__all__ = [
    "AnthropicClient",
    "CoachingGenerationClient",
    "ModelTier",
    "OpenAIClient",
    "PromptSpec",
    "SpeechTranscriptionClient",
    "TierConfig",
    "VisionAnalysisClient",
    "build_coaching_client",
    "build_transcription_client",
    "build_vision_client",
]


def build_transcription_client(
    settings: Settings, *, transport: Optional[httpx.AsyncBaseTransport] = None
) -> SpeechTranscriptionClient:
    section = settings.llm_section("transcription")
    return SpeechTranscriptionClient(
        provider=str(section.get("provider") or "openai"),
        openai=OpenAIClient.from_config(
            settings.llm_section("openai"), transport=transport
        ),
        model=str(section.get("model") or "whisper-1"),
        language=section.get("language"),
        whisper_settings=settings.llm_section("whisper"),
    )


def build_vision_client(
    settings: Settings, *, transport: Optional[httpx.AsyncBaseTransport] = None
) -> VisionAnalysisClient:
    section = settings.llm_section("vision")
    return VisionAnalysisClient(
        OpenAIClient.from_config(settings.llm_section("openai"), transport=transport),
        model=str(section.get("model") or "gpt-4o"),
        max_tokens=int(section.get("max_tokens") or 200),
    )


def build_coaching_client(
    settings: Settings, *, transport: Optional[httpx.AsyncBaseTransport] = None
) -> CoachingGenerationClient:
    """Build the tiered coaching client; tiers without a model are skipped."""

    coaching = settings.llm_section("coaching")
    tiers: Dict[ModelTier, TierConfig] = {}
    for tier in ModelTier:
        tier_cfg = coaching.get(tier.value)
        if isinstance(tier_cfg, dict) and tier_cfg.get("model"):
            tiers[tier] = TierConfig.from_mapping(tier_cfg)
    return CoachingGenerationClient(
        tiers,
        openai=OpenAIClient.from_config(
            settings.llm_section("openai"), transport=transport
        ),
        anthropic=AnthropicClient.from_config(
            settings.llm_section("anthropic"), transport=transport
        ),
    )
