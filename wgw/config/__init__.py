"""Config package exporting loader helpers."""

from .loader import (
    DEFAULT_WHISPER_CONFIG,
    BackendConfig,
    ConnectivityConfig,
    Settings,
    StageTimeouts,
    SyncConfig,
    load_settings,
)

__all__ = [
    "BackendConfig",
    "ConnectivityConfig",
    "DEFAULT_WHISPER_CONFIG",
    "Settings",
    "StageTimeouts",
    "SyncConfig",
    "load_settings",
]
