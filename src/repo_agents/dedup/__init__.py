"""Event and action deduplication."""
