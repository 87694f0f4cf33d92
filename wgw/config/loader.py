"""Configuration loader with YAML profile support."""

from __future__ import annotations

import copy
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

DEFAULT_ENVIRONMENT = "dev"
DEFAULT_DATABASE_URL = "sqlite+pysqlite:///wgw_pending_actions.db"
DEFAULT_MAX_REPLAY_ATTEMPTS = 3
DEFAULT_STAGE_TIMEOUTS: dict[str, float] = {
    "transcription": 60.0,
    "vision": 30.0,
    "coaching": 30.0,
    "backend_write": 20.0,
    "upload": 60.0,
    "connectivity": 3.0,
}
DEFAULT_WHISPER_CONFIG: dict[str, Any] = {
    "model_id": "base.en",
    "device": "auto",
    "compute_type": "int8",
    "language": "en",
    "beam_size": 5,
    "vad_enabled": False,
}
DEFAULT_LLM_CONFIG: dict[str, Any] = {
    "openai": {
        "api_key_env": "OPENAI_API_KEY",
        "base_url": "https://api.openai.com/v1",
    },
    "anthropic": {
        "api_key_env": "ANTHROPIC_API_KEY",
        "base_url": "https://api.anthropic.com/v1",
        "version": "2023-06-01",
    },
    "transcription": {"provider": "openai", "model": "whisper-1", "language": "en"},
    "vision": {"provider": "openai", "model": "gpt-4o", "max_tokens": 200},
    "coaching": {
        "general": {
            "provider": "openai",
            "model": "gpt-4o",
            "max_tokens": 200,
            "temperature": 0.7,
        },
        "secondary": {
            "provider": "openai",
            "model": "gpt-4o-mini",
            "max_tokens": 200,
            "temperature": 0.7,
        },
    },
    "whisper": DEFAULT_WHISPER_CONFIG,
}
DEFAULT_PROFILE_DICT: dict[str, Any] = {
    "environment": DEFAULT_ENVIRONMENT,
    "database": {"url": DEFAULT_DATABASE_URL},
    "backend": {"provider": "memory"},
    "connectivity": {"provider": "static"},
    "llm": DEFAULT_LLM_CONFIG,
}
CONFIG_PROFILE_ENV = "WGW_CONFIG_PROFILE"
CONFIG_DIR_ENV = "WGW_CONFIG_DIR"
DEFAULT_PROFILE = "dev"
DEFAULT_CONFIG_ROOT = Path(__file__).resolve().parents[2] / "config" / "profiles"
CONFIG_EXTENSIONS = (".yaml", ".yml")


@dataclass
class BackendConfig:
    provider: str = "memory"
    url: Optional[str] = None
    api_key_env: str = "SUPABASE_ANON_KEY"
    entries_table: str = "daily_entries"
    audio_bucket: str = "audio-recordings"
    image_bucket: str = "entry-images"

    @property
    def api_key(self) -> Optional[str]:
        return os.getenv(self.api_key_env) or None


@dataclass
class ConnectivityConfig:
    provider: str = "static"
    probe_url: Optional[str] = None
    initially_online: bool = True
    poll_interval_seconds: float = 10.0
    reconnect_delay_seconds: float = 2.0


@dataclass
class SyncConfig:
    max_replay_attempts: int = DEFAULT_MAX_REPLAY_ATTEMPTS


@dataclass
class StageTimeouts:
    """Per-stage bounds (seconds) applied to every external call."""

    transcription: float = DEFAULT_STAGE_TIMEOUTS["transcription"]
    vision: float = DEFAULT_STAGE_TIMEOUTS["vision"]
    coaching: float = DEFAULT_STAGE_TIMEOUTS["coaching"]
    backend_write: float = DEFAULT_STAGE_TIMEOUTS["backend_write"]
    upload: float = DEFAULT_STAGE_TIMEOUTS["upload"]
    connectivity: float = DEFAULT_STAGE_TIMEOUTS["connectivity"]


@dataclass
class Settings:
    environment: str = DEFAULT_ENVIRONMENT
    database_url: str = DEFAULT_DATABASE_URL
    backend: BackendConfig = field(default_factory=BackendConfig)
    connectivity: ConnectivityConfig = field(default_factory=ConnectivityConfig)
    sync: SyncConfig = field(default_factory=SyncConfig)
    timeouts: StageTimeouts = field(default_factory=StageTimeouts)
    llm: dict[str, Any] = field(default_factory=dict)
    logging: dict[str, Any] = field(default_factory=dict)
    raw: dict[str, Any] = field(default_factory=dict)

    def llm_section(self, name: str) -> Dict[str, Any]:
        """Return a copy of an ``llm`` sub-section, or an empty dict."""

        return dict(self.llm.get(name) or {})


def load_settings(
    profile: str | None = None, config_dir: str | Path | None = None
) -> Settings:
    """Load settings from the requested profile or fall back to defaults."""

    profile_name = profile or os.getenv(CONFIG_PROFILE_ENV, DEFAULT_PROFILE)
    config_root = Path(
        config_dir or os.getenv(CONFIG_DIR_ENV, DEFAULT_CONFIG_ROOT)
    ).expanduser()
    config_data = _load_profile_dict(profile_name, config_root)
    if not config_data:
        config_data = copy.deepcopy(DEFAULT_PROFILE_DICT)

    database_cfg = config_data.get("database") or {}
    database_url = os.getenv(
        "DATABASE_URL", database_cfg.get("url", DEFAULT_DATABASE_URL)
    )

    return Settings(
        environment=config_data.get("environment", DEFAULT_ENVIRONMENT),
        database_url=database_url,
        backend=_build_backend_config(config_data.get("backend")),
        connectivity=_build_connectivity_config(config_data.get("connectivity")),
        sync=_build_sync_config(config_data.get("sync")),
        timeouts=_build_stage_timeouts((config_data.get("llm") or {}).get("timeouts")),
        llm=_merge_llm_config(config_data.get("llm")),
        logging=dict(config_data.get("logging") or {}),
        raw=config_data,
    )


def _load_profile_dict(profile_name: str, config_root: Path) -> dict[str, Any]:
    """Load the YAML profile if available, otherwise return an empty dict."""

    if not config_root.exists():
        return {}

    for extension in CONFIG_EXTENSIONS:
        candidate = config_root / f"{profile_name}{extension}"
        if not candidate.exists():
            continue
        try:
            with candidate.open("r", encoding="utf-8") as handle:
                loaded = yaml.safe_load(handle) or {}
        except yaml.YAMLError as exc:
            raise RuntimeError(
                f"Failed to parse config profile {candidate}: {exc}"
            ) from exc
        if not isinstance(loaded, dict):
            raise RuntimeError(
                f"Config profile {candidate} must be a mapping at the root"
            )
        return loaded

    return {}


def _merge_llm_config(llm_cfg: dict[str, Any] | None) -> dict[str, Any]:
    merged = copy.deepcopy(DEFAULT_LLM_CONFIG)
    for key, value in (llm_cfg or {}).items():
        if key == "timeouts" or value is None:
            continue
        existing = merged.get(key)
        if isinstance(value, dict) and isinstance(existing, dict):
            merged[key] = _deep_merge(existing, value)
        else:
            merged[key] = value
    return merged


def _deep_merge(original: dict[str, Any], patch: dict[str, Any]) -> dict[str, Any]:
    result = dict(original)
    for key, value in patch.items():
        current = result.get(key)
        if isinstance(value, dict) and isinstance(current, dict):
            result[key] = _deep_merge(current, value)
        else:
            result[key] = value
    return result


def _build_backend_config(backend_cfg: dict[str, Any] | None) -> BackendConfig:
    backend_cfg = backend_cfg or {}
    defaults = BackendConfig()
    return BackendConfig(
        provider=str(backend_cfg.get("provider", defaults.provider)),
        url=backend_cfg.get("url") or os.getenv("SUPABASE_URL") or None,
        api_key_env=str(backend_cfg.get("api_key_env", defaults.api_key_env)),
        entries_table=str(backend_cfg.get("entries_table", defaults.entries_table)),
        audio_bucket=str(backend_cfg.get("audio_bucket", defaults.audio_bucket)),
        image_bucket=str(backend_cfg.get("image_bucket", defaults.image_bucket)),
    )


def _build_connectivity_config(
    connectivity_cfg: dict[str, Any] | None,
) -> ConnectivityConfig:
    connectivity_cfg = connectivity_cfg or {}
    defaults = ConnectivityConfig()
    return ConnectivityConfig(
        provider=str(connectivity_cfg.get("provider", defaults.provider)),
        probe_url=connectivity_cfg.get("probe_url"),
        initially_online=bool(
            connectivity_cfg.get("initially_online", defaults.initially_online)
        ),
        poll_interval_seconds=float(
            connectivity_cfg.get(
                "poll_interval_seconds", defaults.poll_interval_seconds
            )
        ),
        reconnect_delay_seconds=float(
            connectivity_cfg.get(
                "reconnect_delay_seconds", defaults.reconnect_delay_seconds
            )
        ),
    )


def _build_sync_config(sync_cfg: dict[str, Any] | None) -> SyncConfig:
    sync_cfg = sync_cfg or {}
    return SyncConfig(
        max_replay_attempts=int(
            sync_cfg.get("max_replay_attempts", DEFAULT_MAX_REPLAY_ATTEMPTS)
        )
    )


def _build_stage_timeouts(timeouts_cfg: dict[str, Any] | None) -> StageTimeouts:
    merged = dict(DEFAULT_STAGE_TIMEOUTS)
    for key, value in (timeouts_cfg or {}).items():
        if key in merged and value is not None:
            merged[key] = float(value)
    return StageTimeouts(**merged)
