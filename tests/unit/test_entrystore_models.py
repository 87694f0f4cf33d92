"""Tests for entry store models."""

from __future__ import annotations

import re
from datetime import datetime, timezone

import pytest

from wgw.domain.entrystore.models import (
    Entry,
    EntryDraft,
    PendingAction,
    PendingActionType,
    SyncState,
    is_local_id,
    new_local_id,
)

pytestmark = [pytest.mark.entrystore]

CREATED = datetime(2025, 3, 1, 7, 30, tzinfo=timezone.utc)


def _entry(entry_id: str, sync_state: SyncState) -> Entry:
    return Entry(
        id=entry_id,
        user_id="user-1",
        category="Gratitude",
        transcription="quiet morning coffee",
        created_at=CREATED,
        sync_state=sync_state,
    )


def test_new_local_id_shape_and_uniqueness():
    first = new_local_id(CREATED)
    second = new_local_id(CREATED)

    assert re.fullmatch(r"temp_\d{13}_[0-9a-f]{8}", first)
    assert first.startswith(f"temp_{int(CREATED.timestamp() * 1000)}_")
    assert first != second
    assert is_local_id(first)
    assert not is_local_id("8d3c0b7e")
    assert not is_local_id(None)


def test_local_id_cannot_be_synced():
    with pytest.raises(ValueError):
        _entry("temp_1_abcdef12", SyncState.SYNCED)


def test_server_id_must_be_synced():
    with pytest.raises(ValueError):
        _entry("server-42", SyncState.QUEUED)


def test_entry_row_roundtrip_keeps_created_at():
    row = _entry("server-42", SyncState.SYNCED).to_row(client_local_id="temp_1_x")
    row["id"] = "server-42"

    restored = Entry.from_row(row)

    assert row["client_local_id"] == "temp_1_x"
    assert restored.created_at == CREATED
    assert restored.sync_state is SyncState.SYNCED


def test_draft_payload_survives_replay_serialization():
    draft = EntryDraft(
        user_id="user-1",
        transcript="quiet morning coffee",
        category="Gratitude",
        ai_response="Lovely.",
        audio_uri="file:///tmp/rec.m4a",
        created_at=CREATED,
    )

    restored = EntryDraft.from_payload(draft.to_payload())

    assert restored == draft


def test_pending_action_from_draft():
    draft = EntryDraft(
        user_id="user-1", transcript="hi", category="Family", created_at=CREATED
    )
    action = PendingAction.create_entry("temp_1_abcdef12", draft)

    assert action.type is PendingActionType.CREATE_ENTRY
    assert action.user_id == "user-1"
    assert action.created_at == CREATED
    assert action.attempts == 0
    assert action.to_dict()["status"] == "pending"
