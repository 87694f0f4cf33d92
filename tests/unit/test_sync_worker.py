"""Tests for the connectivity monitor that drives queue replay."""

from __future__ import annotations

import asyncio
from typing import List

import pytest

from tests.helpers.fakes import FlakyBackend, build_gateway
from tests.helpers.logging import RecordingLogger, find_log
from wgw.domain.entrystore.models import EntryDraft, SyncState
from wgw.domain.errors import ErrorKind, PipelineError
from wgw.jobs import sync_worker
from wgw.jobs.sync_worker import ConnectivityMonitor

pytestmark = [pytest.mark.jobs]


class FakeSleep:
    def __init__(self) -> None:
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def _draft(text: str = "quiet morning coffee") -> EntryDraft:
    return EntryDraft(user_id="user-1", transcript=text, category="Gratitude")


@pytest.mark.asyncio
async def test_reconnect_waits_then_flushes():
    gateway, oracle, backend, _ = build_gateway(online=False)
    sleep = FakeSleep()
    monitor = ConnectivityMonitor(gateway, reconnect_delay=2.0, sleep=sleep)
    await gateway.save(_draft())

    assert await monitor.tick() is None
    oracle.set_online(True)
    report = await monitor.tick()

    assert sleep.delays == [2.0]
    assert len(report.synced) == 1
    assert len(backend.rows) == 1
    assert await monitor.tick() is None


@pytest.mark.asyncio
async def test_first_online_tick_drains_leftovers_without_delay():
    gateway, oracle, backend, _ = build_gateway(online=False)
    await gateway.save(_draft())
    oracle.set_online(True)
    sleep = FakeSleep()
    monitor = ConnectivityMonitor(gateway, sleep=sleep)

    report = await monitor.tick()

    assert sleep.delays == []
    assert len(report.synced) == 1
    assert monitor.was_online is True


@pytest.mark.asyncio
async def test_connectivity_lost_logged_once(monkeypatch):
    log = RecordingLogger()
    monkeypatch.setattr(sync_worker, "logger", log)
    gateway, _, _, _ = build_gateway(online=False)
    monitor = ConnectivityMonitor(gateway, sleep=FakeSleep())

    await monitor.tick()
    await monitor.tick()

    assert log.messages("info").count("connectivity_lost") == 1


@pytest.mark.asyncio
async def test_run_survives_tick_failures(monkeypatch):
    log = RecordingLogger()
    monkeypatch.setattr(sync_worker, "logger", log)
    gateway, _, _, _ = build_gateway()
    monitor = ConnectivityMonitor(gateway, poll_interval=0.0, sleep=FakeSleep())

    async def explode():
        raise RuntimeError("queue store locked")

    monkeypatch.setattr(monitor, "tick", explode)
    await asyncio.wait_for(monitor.run(max_ticks=2), timeout=1.0)

    find_log(log.records, level="exception", message="sync_tick_failed")
    assert log.messages("exception").count("sync_tick_failed") == 2


@pytest.mark.asyncio
async def test_run_stops_when_event_set():
    gateway, _, _, _ = build_gateway()
    monitor = ConnectivityMonitor(gateway, poll_interval=30.0, sleep=FakeSleep())
    stop = asyncio.Event()

    task = asyncio.create_task(monitor.run(stop=stop))
    await asyncio.sleep(0)
    stop.set()

    await asyncio.wait_for(task, timeout=1.0)


@pytest.mark.asyncio
async def test_steady_online_tick_replays_write_that_fell_back_to_queue():
    backend = FlakyBackend([PipelineError("connection reset", kind=ErrorKind.NETWORK)])
    gateway, _, backend, _ = build_gateway(online=True, backend=backend)
    sleep = FakeSleep()
    monitor = ConnectivityMonitor(gateway, sleep=sleep)
    await monitor.tick()

    entry = await gateway.save(_draft())
    assert entry.sync_state is SyncState.QUEUED

    report = await monitor.tick()

    assert sleep.delays == []
    assert [local_id for local_id, _ in report.synced] == [entry.id]
    assert gateway.pending() == []
    assert len(backend.rows) == 1


@pytest.mark.asyncio
async def test_steady_online_tick_ignores_dead_lettered_actions():
    backend = FlakyBackend(
        [
            PipelineError("connection reset", kind=ErrorKind.NETWORK),
            PipelineError("bad payload", kind=ErrorKind.VALIDATION),
        ]
    )
    gateway, _, backend, _ = build_gateway(online=True, backend=backend)
    monitor = ConnectivityMonitor(gateway, sleep=FakeSleep())
    await monitor.tick()
    await gateway.save(_draft())

    first = await monitor.tick()
    second = await monitor.tick()

    assert len(first.dead_lettered) == 1
    assert second is None
    assert len(backend.attempted) == 2
