"""Router exports for FastAPI composition."""

from . import entries, health, sync

__all__ = ["entries", "health", "sync"]
