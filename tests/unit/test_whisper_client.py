"""Unit tests for the faster-whisper client plumbing."""

from __future__ import annotations

import sys
import types

import pytest

from wgw.infra.llm_gateway import whisper_client

pytestmark = [pytest.mark.llm_gateway]


class DummySegment:
    def __init__(self, text: str) -> None:
        self.text = text


class DummyModel:
    instances = 0

    def __init__(self, model_id: str, device: str, compute_type: str) -> None:
        DummyModel.instances += 1
        self.model_id = model_id
        self.device = device
        self.compute_type = compute_type
        self.calls = []

    def transcribe(self, path: str, **options):
        self.calls.append((path, options))
        info = types.SimpleNamespace(language="en", duration=2.5)
        return iter([DummySegment(" quiet morning "), DummySegment(""), DummySegment("coffee ")]), info


@pytest.fixture(autouse=True)
def fake_faster_whisper(monkeypatch: pytest.MonkeyPatch):
    """Swap in a dummy model module and start from an empty cache."""

    DummyModel.instances = 0
    monkeypatch.setattr(whisper_client, "_cache", whisper_client.ModelCache())
    monkeypatch.setitem(
        sys.modules, "faster_whisper", types.SimpleNamespace(WhisperModel=DummyModel)
    )


def test_merge_settings_ignores_none_overrides():
    merged = whisper_client.merge_settings({"model_id": "tiny", "language": None})

    assert merged["model_id"] == "tiny"
    assert merged["language"] == "en"


def test_decode_options_drop_unset_values():
    options = whisper_client._decode_options(
        {"language": None, "beam_size": 3, "vad_enabled": True}
    )

    assert options == {"beam_size": 3, "vad_filter": True}


def test_model_cache_reuses_model_when_config_unchanged():
    cache = whisper_client.ModelCache()
    settings = whisper_client.merge_settings({"model_id": "tiny", "device": "cpu"})

    first = cache.get(settings)
    second = cache.get(settings)

    assert first is second
    assert DummyModel.instances == 1
    assert cache.key == ("tiny", "cpu", "int8")


def test_model_cache_reloads_when_config_changes():
    cache = whisper_client.ModelCache()
    cache.get(whisper_client.merge_settings({"model_id": "tiny"}))
    cache.get(whisper_client.merge_settings({"model_id": "base.en"}))

    assert DummyModel.instances == 2


def test_transcribe_file_joins_non_empty_segments(tmp_path):
    recording = tmp_path / "morning.m4a"
    recording.write_bytes(b"audio")

    result = whisper_client.transcribe_file(str(recording), {"model_id": "tiny"})

    assert result.text == "quiet morning coffee"
    assert result.language == "en"
    assert result.duration == 2.5
    assert result.model_id == "tiny"


def test_transcribe_file_rejects_missing_and_directories(tmp_path):
    with pytest.raises(FileNotFoundError):
        whisper_client.transcribe_file(str(tmp_path / "gone.m4a"))
    with pytest.raises(ValueError):
        whisper_client.transcribe_file(str(tmp_path))
