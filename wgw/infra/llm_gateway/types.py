"""Shared request types for the AI provider adapters."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ModelTier(str, Enum):
    """Coaching model tiers, ordered from preferred to last resort."""

    METHODOLOGY = "methodology"
    GENERAL = "general"
    SECONDARY = "secondary"


@dataclass(frozen=True)
class PromptSpec:
    """Structured prompt used for coaching and vision requests."""

    system: str
    user: str
