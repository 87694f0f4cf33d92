"""Tests for the entry orchestrator and its tiered coaching chain."""

from __future__ import annotations

import asyncio

import pytest

from tests.helpers.fakes import FakeCoach, FakeTranscriber, FakeVision, build_gateway
from tests.helpers.logging import RecordingLogger, assert_extra_contains, find_log
from wgw.config import StageTimeouts
from wgw.domain.analysis import EntryOrchestrator
from wgw.domain.analysis import orchestrator as orchestrator_module
from wgw.domain.analysis.prompts import DEGRADED_TRANSCRIPT, fallback_coaching
from wgw.domain.entrystore import SyncState, is_local_id
from wgw.domain.errors import ErrorKind, PipelineError
from wgw.infra.llm_gateway import ModelTier
from wgw.infra.metrics import InMemoryMetricsClient

pytestmark = [pytest.mark.analysis]


def _orchestrator(
    *,
    transcriber=None,
    vision=None,
    coach=None,
    online: bool = True,
    timeouts=None,
):
    gateway, oracle, backend, _ = build_gateway(online=online)
    metrics = InMemoryMetricsClient()
    orchestrator = EntryOrchestrator(
        transcriber or FakeTranscriber(),
        vision or FakeVision(),
        coach or FakeCoach(),
        gateway,
        timeouts=timeouts,
        metrics=metrics,
    )
    return orchestrator, gateway, oracle, backend, metrics


def _all_failing_coach() -> FakeCoach:
    return FakeCoach(
        {
            ModelTier.METHODOLOGY: PipelineError("down", kind=ErrorKind.NETWORK),
            ModelTier.GENERAL: PipelineError("bad", kind=ErrorKind.UPSTREAM_BAD_REQUEST),
            ModelTier.SECONDARY: RuntimeError("boom"),
        },
        primary=ModelTier.METHODOLOGY,
    )


@pytest.mark.asyncio
async def test_primary_tier_response_is_used():
    coach = FakeCoach({ModelTier.METHODOLOGY: "Methodology reply."}, primary=ModelTier.METHODOLOGY)
    orchestrator, *_, metrics = _orchestrator(coach=coach)

    text = await orchestrator.generate_coaching("sunny walk", None, "Health & Wellness")

    assert text == "Methodology reply."
    assert [tier for tier, _ in coach.calls] == [ModelTier.METHODOLOGY]
    assert "sunny walk" in coach.calls[0][1].user
    assert metrics.counters["coaching.tier.methodology"] == 1


@pytest.mark.asyncio
async def test_secondary_tier_called_exactly_once_after_primary_failure():
    coach = FakeCoach(
        {
            ModelTier.GENERAL: PipelineError("slow", kind=ErrorKind.NETWORK),
            ModelTier.SECONDARY: "Secondary reply.",
        }
    )
    orchestrator, *_ = _orchestrator(coach=coach)

    text = await orchestrator.generate_coaching("sunny walk", None, "Family")

    assert text == "Secondary reply."
    assert [tier for tier, _ in coach.calls] == [ModelTier.GENERAL, ModelTier.SECONDARY]


@pytest.mark.asyncio
async def test_coaching_always_returns_text_when_every_model_fails():
    coach = _all_failing_coach()
    orchestrator, *_, metrics = _orchestrator(coach=coach)

    for text, category in [("quiet morning coffee", "Gratitude"), ("", ""), ("x", "Career")]:
        result = await orchestrator.generate_coaching(text, None, category)
        assert result.strip()
        assert result == fallback_coaching(category)

    assert metrics.counters["coaching.tier.template"] == 3


@pytest.mark.asyncio
async def test_empty_model_output_falls_through():
    coach = FakeCoach({ModelTier.GENERAL: "   ", ModelTier.SECONDARY: ""})
    orchestrator, *_ = _orchestrator(coach=coach)

    result = await orchestrator.generate_coaching("walk", None, "Learning")

    assert result == fallback_coaching("Learning")


@pytest.mark.asyncio
async def test_auth_failure_in_chain_is_absorbed_but_logged_as_error(monkeypatch):
    log = RecordingLogger()
    monkeypatch.setattr(orchestrator_module, "logger", log)
    coach = FakeCoach(
        {
            ModelTier.GENERAL: PipelineError("bad key", kind=ErrorKind.AUTH),
            ModelTier.SECONDARY: "Secondary reply.",
        }
    )
    orchestrator, *_, metrics = _orchestrator(coach=coach)

    result = await orchestrator.generate_coaching("walk", None, "Career")

    assert result == "Secondary reply."
    record = find_log(log.records, level="error", message="ai_stage_auth_failed")
    assert_extra_contains(record, tier="general", stage="coaching_primary", error_kind="auth")
    assert metrics.counters["analysis.coaching_primary.auth"] == 1


@pytest.mark.asyncio
async def test_coaching_timeout_degrades_to_next_tier():
    class SlowCoach(FakeCoach):
        async def generate(self, prompt, tier):
            if tier is ModelTier.GENERAL:
                await asyncio.sleep(1)
            return await super().generate(prompt, tier)

    coach = SlowCoach()
    orchestrator, *_ = _orchestrator(coach=coach, timeouts=StageTimeouts(coaching=0.01))

    result = await orchestrator.generate_coaching("walk", None, "Learning")

    assert result == "Short and kind reply."


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "vision",
    [
        FakeVision(PipelineError("vision down", kind=ErrorKind.NETWORK)),
        FakeVision(""),
        FakeVision("   "),
    ],
)
async def test_vision_failure_fails_closed_to_template(vision):
    coach = FakeCoach()
    orchestrator, *_ = _orchestrator(vision=vision, coach=coach)

    result = await orchestrator.generate_coaching(
        "our garden", "https://cdn.example.test/garden.jpg", "Simple Pleasures"
    )

    assert result == fallback_coaching("Simple Pleasures")
    assert coach.calls == []


@pytest.mark.asyncio
async def test_vision_description_feeds_coaching_prompt():
    vision = FakeVision("Tomatoes ripening on the vine.")
    coach = FakeCoach()
    orchestrator, *_ = _orchestrator(vision=vision, coach=coach)

    await orchestrator.generate_coaching(
        "our garden", "https://cdn.example.test/garden.jpg", "Simple Pleasures"
    )

    assert len(vision.calls) == 1
    assert "Simple Pleasures" in vision.calls[0][1].user
    assert "Tomatoes ripening on the vine." in coach.calls[0][1].user


@pytest.mark.asyncio
async def test_transcription_failure_never_blocks_creation():
    transcriber = FakeTranscriber(PipelineError("timeout", kind=ErrorKind.NETWORK))
    orchestrator, gateway, *_ = _orchestrator(transcriber=transcriber)

    entry = await orchestrator.create_from_recording(
        "https://cdn.example.test/rec.m4a", "Gratitude", user_id="user-1"
    )

    assert entry.transcription == DEGRADED_TRANSCRIPT
    assert entry.ai_response
    assert entry.sync_state is SyncState.SYNCED


@pytest.mark.asyncio
async def test_blank_transcript_is_replaced():
    orchestrator, *_ = _orchestrator(transcriber=FakeTranscriber("  "))

    entry = await orchestrator.create_from_recording(
        "https://cdn.example.test/rec.m4a", "Gratitude", user_id="user-1"
    )

    assert entry.transcription == DEGRADED_TRANSCRIPT


@pytest.mark.asyncio
async def test_recording_requires_audio_reference():
    transcriber = FakeTranscriber()
    orchestrator, gateway, *_ = _orchestrator(transcriber=transcriber)

    with pytest.raises(PipelineError) as excinfo:
        await orchestrator.create_from_recording("", "Gratitude", user_id="user-1")

    assert excinfo.value.kind is ErrorKind.VALIDATION
    assert transcriber.calls == []
    assert gateway.pending() == []


@pytest.mark.asyncio
async def test_unresolvable_image_ref_fails_before_vision_or_persistence():
    vision = FakeVision()
    coach = FakeCoach()
    orchestrator, gateway, _, backend, _ = _orchestrator(vision=vision, coach=coach)

    with pytest.raises(PipelineError) as excinfo:
        await orchestrator.create_from_image(
            "not-a-url", "sunset", "Simple Pleasures", user_id="user-1"
        )

    assert excinfo.value.kind is ErrorKind.VALIDATION
    assert vision.calls == []
    assert coach.calls == []
    assert gateway.pending() == []
    assert backend.rows == {}


@pytest.mark.asyncio
async def test_image_entry_persists_caption_and_url():
    orchestrator, *_ = _orchestrator()

    entry = await orchestrator.create_from_image(
        "https://cdn.example.test/dog.jpg", " my dog ", "Family", user_id="user-1"
    )

    assert entry.sync_state is SyncState.SYNCED
    assert entry.transcription == "my dog"
    assert entry.image_url == "https://cdn.example.test/dog.jpg"
    assert entry.ai_response == "What a lovely moment to notice."


@pytest.mark.asyncio
async def test_offline_text_entry_syncs_after_reconnect():
    transcriber = FakeTranscriber("quiet morning coffee")
    orchestrator, gateway, oracle, _, _ = _orchestrator(
        transcriber=transcriber, coach=_all_failing_coach(), online=False
    )

    local = await orchestrator.create_from_recording(
        "https://cdn.example.test/rec.m4a", "Gratitude", user_id="user-1"
    )

    assert is_local_id(local.id)
    assert local.sync_state is SyncState.QUEUED
    assert local.transcription == "quiet morning coffee"
    assert local.category == "Gratitude"
    assert local.ai_response
    assert [a.local_id for a in gateway.pending()] == [local.id]

    reconciled = {}
    gateway.add_reconcile_listener(lambda lid, entry: reconciled.update({lid: entry}))
    oracle.set_online(True)
    await gateway.flush()

    synced = reconciled[local.id]
    assert synced.sync_state is SyncState.SYNCED
    assert not is_local_id(synced.id)
    assert synced.transcription == "quiet morning coffee"
    assert synced.ai_response == local.ai_response


@pytest.mark.asyncio
async def test_streak_reaches_primary_prompt_from_recording():
    coach = FakeCoach()
    orchestrator, *_ = _orchestrator(coach=coach)

    await orchestrator.create_from_recording(
        "https://cdn.example.test/rec.m4a", "Gratitude", user_id="user-1", streak=5
    )

    assert "5-day gratitude streak" in coach.calls[0][1].system


@pytest.mark.asyncio
async def test_streak_reaches_primary_prompt_from_image():
    coach = FakeCoach()
    orchestrator, *_ = _orchestrator(coach=coach)

    await orchestrator.create_from_image(
        "https://cdn.example.test/dog.jpg", "my dog", "Family", user_id="user-1", streak=3
    )

    assert "3-day gratitude streak" in coach.calls[0][1].system


@pytest.mark.asyncio
async def test_no_streak_note_without_streak():
    coach = FakeCoach()
    orchestrator, *_ = _orchestrator(coach=coach)

    await orchestrator.generate_coaching("sunny walk", None, "Health & Wellness")

    assert "streak" not in coach.calls[0][1].system
