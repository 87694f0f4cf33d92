"""Connectivity monitor that drains the pending-action queue on reconnect."""

from __future__ import annotations

import argparse
import asyncio
from typing import Awaitable, Callable, Optional

from ..bootstrap import build_persistence_gateway
from ..config import load_settings
from ..domain.entrystore import FlushReport, PersistenceGateway
from ..infra.logging import configure_logging, get_logger

logger = get_logger(__name__)

SleepFn = Callable[[float], Awaitable[None]]


class ConnectivityMonitor:
    """Polls connectivity and flushes the queue after each reconnect.

    The first tick that observes the device online also flushes, so actions
    left over from a previous process are replayed at startup. While the
    device stays online, any tick that finds replayable actions flushes them.
    """

    def __init__(
        self,
        gateway: PersistenceGateway,
        *,
        poll_interval: float = 10.0,
        reconnect_delay: float = 2.0,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        self._gateway = gateway
        self._poll_interval = poll_interval
        self._reconnect_delay = reconnect_delay
        self._sleep = sleep
        self._was_online: Optional[bool] = None

    @property
    def was_online(self) -> Optional[bool]:
        return self._was_online

    async def tick(self) -> Optional[FlushReport]:
        online = await self._gateway.is_online()
        previous, self._was_online = self._was_online, online

        if not online:
            if previous is not False:
                logger.info("connectivity_lost")
            return None
        if previous is True and not any(
            not action.is_failed for action in self._gateway.pending()
        ):
            return None

        if previous is False:
            logger.info(
                "connectivity_restored",
                extra={"reconnect_delay": self._reconnect_delay},
            )
            await self._sleep(self._reconnect_delay)
        return await self._gateway.flush()

    async def run(
        self,
        *,
        stop: Optional[asyncio.Event] = None,
        max_ticks: Optional[int] = None,
    ) -> None:
        stop = stop or asyncio.Event()
        ticks = 0
        logger.info("sync_worker_started", extra={"poll_interval": self._poll_interval})
        while not stop.is_set():
            try:
                await self.tick()
            except Exception:
                logger.exception("sync_tick_failed")
            ticks += 1
            if max_ticks is not None and ticks >= max_ticks:
                break
            try:
                await asyncio.wait_for(stop.wait(), timeout=self._poll_interval)
            except asyncio.TimeoutError:
                continue
        logger.info("sync_worker_stopped", extra={"ticks": ticks})


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--profile", default=None, help="Config profile name.")
    parser.add_argument(
        "--once",
        action="store_true",
        help="Flush once if online, then exit.",
    )
    parser.add_argument(
        "--interval",
        type=float,
        default=None,
        help="Override connectivity.poll_interval_seconds.",
    )
    args = parser.parse_args(argv)

    settings = load_settings(args.profile)
    configure_logging(settings.logging)
    monitor = ConnectivityMonitor(
        build_persistence_gateway(settings),
        poll_interval=args.interval or settings.connectivity.poll_interval_seconds,
        reconnect_delay=settings.connectivity.reconnect_delay_seconds,
    )
    if args.once:
        report = asyncio.run(monitor.tick())
        logger.info(
            "sync_worker_once_finished",
            extra={"report": report.as_dict() if report else None},
        )
        return
    asyncio.run(monitor.run())


if __name__ == "__main__":
    main()
