"""Domain layer: error taxonomy, entry store and analysis orchestration."""
