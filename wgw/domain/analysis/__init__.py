"""AI analysis chain for new entries."""

from .orchestrator import EntryOrchestrator

__all__ = ["EntryOrchestrator"]
