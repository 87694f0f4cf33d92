"""Connectivity oracles consulted before every backend write."""

from __future__ import annotations

from typing import Optional, Protocol

import httpx

from ..config import ConnectivityConfig
from .logging import get_logger

__all__ = [
    "ConnectivityOracle",
    "HttpConnectivityOracle",
    "StaticConnectivityOracle",
    "build_connectivity_oracle",
]

logger = get_logger(__name__)


class ConnectivityOracle(Protocol):  # pragma: no cover - interface only
    async def is_online(self) -> bool:
        """Return the current online/offline state."""


class StaticConnectivityOracle(ConnectivityOracle):
    """Settable oracle for development and tests."""

    def __init__(self, online: bool = True) -> None:
        self.online = online

    def set_online(self, online: bool) -> None:
        self.online = online

    async def is_online(self) -> bool:
        return self.online


class HttpConnectivityOracle(ConnectivityOracle):
    """Probes a URL; any response below 500 counts as online."""

    def __init__(
        self,
        probe_url: str,
        *,
        timeout: float = 3.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._probe_url = probe_url
        self._timeout = timeout
        self._transport = transport

    async def is_online(self) -> bool:
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            ) as client:
                response = await client.head(self._probe_url)
        except httpx.HTTPError as exc:
            logger.info(
                "connectivity_probe_failed",
                extra={"probe_url": self._probe_url, "error": str(exc)},
            )
            return False
        return response.status_code < 500


def build_connectivity_oracle(
    config: ConnectivityConfig, *, timeout: float = 3.0
) -> ConnectivityOracle:
    if config.provider == "http":
        if not config.probe_url:
            raise RuntimeError("connectivity.probe_url is required for the http oracle")
        return HttpConnectivityOracle(config.probe_url, timeout=timeout)
    if config.provider == "static":
        return StaticConnectivityOracle(online=config.initially_online)
    raise RuntimeError(f"unsupported connectivity provider '{config.provider}'")
