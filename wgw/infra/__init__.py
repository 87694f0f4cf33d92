"""Infrastructure adapters (logging, metrics, events, providers, storage)."""
