"""Entry orchestrator: transcription, vision and coaching, then persistence."""

from __future__ import annotations

from typing import Optional

from ...config import StageTimeouts
from ...infra.llm_gateway import (
    CoachingGenerationClient,
    ModelTier,
    PromptSpec,
    SpeechTranscriptionClient,
    VisionAnalysisClient,
)
from ...infra.logging import get_logger
from ...infra.media import is_url_shaped
from ...infra.metrics import MetricsClient, get_metrics_client
from ..entrystore.gateway import PersistenceGateway
from ..entrystore.models import AnalysisDraft, Entry, EntryDraft, utcnow
from ..errors import ErrorKind, PipelineError, bounded, classify_error, error_details
from .prompts import (
    DEGRADED_TRANSCRIPT,
    build_coaching_prompt,
    build_simplified_prompt,
    build_vision_prompt,
    fallback_coaching,
)

__all__ = ["EntryOrchestrator"]

logger = get_logger(__name__)

STAGE_TRANSCRIPTION = "transcription"
STAGE_VISION = "vision"
STAGE_COACHING_PRIMARY = "coaching_primary"
STAGE_COACHING_SECONDARY = "coaching_secondary"
STAGE_TEMPLATE = "template"


class EntryOrchestrator:
    """Produces one ``Entry`` per capture.

    Stages run strictly in sequence. AI failures of any kind are absorbed;
    only validation and auth failures from persistence reach the caller.
    """

    def __init__(
        self,
        transcriber: SpeechTranscriptionClient,
        vision: VisionAnalysisClient,
        coach: CoachingGenerationClient,
        gateway: PersistenceGateway,
        *,
        timeouts: Optional[StageTimeouts] = None,
        metrics: Optional[MetricsClient] = None,
    ) -> None:
        self._transcriber = transcriber
        self._vision = vision
        self._coach = coach
        self._gateway = gateway
        self._timeouts = timeouts or StageTimeouts()
        self._metrics = metrics or get_metrics_client()

    async def create_from_recording(
        self,
        audio_ref: str,
        category: str,
        *,
        user_id: str,
        is_private: bool = False,
        streak: Optional[int] = None,
    ) -> Entry:
        if not audio_ref or not str(audio_ref).strip():
            raise PipelineError(
                "a recording is required",
                kind=ErrorKind.VALIDATION,
                code="audio_ref_missing",
            )
        _require_actor(user_id, category)

        analysis = AnalysisDraft(category=category, streak=streak)
        analysis.transcript = await self._transcribe(audio_ref, analysis)
        ai_response = await self._generate(analysis, None)
        return await self._gateway.save(
            EntryDraft(
                user_id=user_id,
                transcript=analysis.transcript,
                category=category,
                ai_response=ai_response,
                audio_uri=audio_ref,
                is_private=is_private,
            )
        )

    async def create_from_image(
        self,
        image_ref: str,
        caption: Optional[str],
        category: str,
        *,
        user_id: str,
        is_private: bool = False,
        streak: Optional[int] = None,
    ) -> Entry:
        if not is_url_shaped(image_ref):
            raise PipelineError(
                f"image reference is not a URL: {image_ref!r}",
                kind=ErrorKind.VALIDATION,
                code="image_ref_invalid",
            )
        _require_actor(user_id, category)

        text = (caption or "").strip()
        ai_response = await self.generate_coaching(
            text, image_ref, category, streak=streak
        )
        return await self._gateway.save(
            EntryDraft(
                user_id=user_id,
                transcript=text,
                category=category,
                ai_response=ai_response,
                image_url=image_ref.strip(),
                is_private=is_private,
            )
        )

    async def generate_coaching(
        self,
        text: str,
        image_ref: Optional[str],
        category: str,
        *,
        streak: Optional[int] = None,
    ) -> str:
        """Tiered coaching chain. Always returns a non-empty string.

        ``streak`` is the caller's consecutive-day count; above one it is
        celebrated in the primary prompt.
        """

        analysis = AnalysisDraft(
            category=category, transcript=text or "", streak=streak
        )
        return await self._generate(analysis, image_ref)

    async def _transcribe(self, audio_ref: str, analysis: AnalysisDraft) -> str:
        analysis.attempted_stages.add(STAGE_TRANSCRIPTION)
        try:
            transcript = await bounded(
                self._transcriber.transcribe(audio_ref),
                timeout=self._timeouts.transcription,
                stage=STAGE_TRANSCRIPTION,
            )
        except Exception as exc:
            self._absorb(STAGE_TRANSCRIPTION, exc)
            return DEGRADED_TRANSCRIPT
        if not transcript or not transcript.strip():
            logger.warning("transcription_blank", extra={"audio_ref": audio_ref})
            self._metrics.increment("analysis.transcription.blank")
            return DEGRADED_TRANSCRIPT
        return transcript.strip()

    async def _generate(
        self, analysis: AnalysisDraft, image_ref: Optional[str]
    ) -> str:
        try:
            return await self._run_chain(analysis, image_ref)
        except Exception:
            logger.exception(
                "coaching_chain_crashed", extra={"category": analysis.category}
            )
            return self._template(analysis)

    async def _run_chain(
        self, analysis: AnalysisDraft, image_ref: Optional[str]
    ) -> str:
        if image_ref:
            analysis.attempted_stages.add(STAGE_VISION)
            description: Optional[str] = None
            try:
                description = await bounded(
                    self._vision.describe(
                        image_ref,
                        build_vision_prompt(analysis.category, analysis.transcript),
                    ),
                    timeout=self._timeouts.vision,
                    stage=STAGE_VISION,
                )
            except Exception as exc:
                self._absorb(STAGE_VISION, exc)
            if not description or not description.strip():
                # Fail closed: no coaching from a missing description.
                logger.info(
                    "vision_failed_closed", extra={"category": analysis.category}
                )
                return self._template(analysis)
            analysis.vision_description = description.strip()

        primary = self._coach.primary_tier()
        text = await self._attempt(
            STAGE_COACHING_PRIMARY,
            primary,
            build_coaching_prompt(
                analysis.transcript,
                analysis.category,
                analysis.vision_description,
                seed=utcnow().timetuple().tm_yday,
                streak=analysis.streak,
            ),
            analysis,
        )
        if text:
            return text

        text = await self._attempt(
            STAGE_COACHING_SECONDARY,
            ModelTier.SECONDARY,
            build_simplified_prompt(
                analysis.transcript, analysis.category, analysis.vision_description
            ),
            analysis,
        )
        if text:
            return text
        return self._template(analysis)

    async def _attempt(
        self,
        stage: str,
        tier: ModelTier,
        prompt: PromptSpec,
        analysis: AnalysisDraft,
    ) -> Optional[str]:
        analysis.attempted_stages.add(stage)
        try:
            text = await bounded(
                self._coach.generate(prompt, tier),
                timeout=self._timeouts.coaching,
                stage=stage,
            )
            if not text or not text.strip():
                raise PipelineError(
                    f"{tier.value} model returned no text",
                    kind=ErrorKind.UPSTREAM_BAD_REQUEST,
                    code="coaching_empty_response",
                )
        except Exception as exc:
            self._absorb(stage, exc, tier=tier)
            return None
        self._metrics.increment(f"coaching.tier.{tier.value}")
        logger.info(
            "coaching_generated",
            extra={"tier": tier.value, "stages": sorted(analysis.attempted_stages)},
        )
        return text.strip()

    def _template(self, analysis: AnalysisDraft) -> str:
        analysis.attempted_stages.add(STAGE_TEMPLATE)
        self._metrics.increment(f"coaching.tier.{STAGE_TEMPLATE}")
        return fallback_coaching(analysis.category)

    def _absorb(
        self, stage: str, exc: BaseException, *, tier: Optional[ModelTier] = None
    ) -> None:
        kind = classify_error(exc)
        self._metrics.increment(f"analysis.{stage}.{kind.value}")
        extra = {
            "stage": stage,
            "tier": tier.value if tier else None,
            "error_kind": kind.value,
            "error": error_details(exc),
        }
        if kind is ErrorKind.AUTH:
            logger.error("ai_stage_auth_failed", extra=extra)
        else:
            logger.warning("ai_stage_failed", extra=extra)


def _require_actor(user_id: str, category: str) -> None:
    if not (user_id or "").strip():
        raise PipelineError(
            "user_id is required", kind=ErrorKind.VALIDATION, code="user_missing"
        )
    if not (category or "").strip():
        raise PipelineError(
            "category is required", kind=ErrorKind.VALIDATION, code="category_missing"
        )
