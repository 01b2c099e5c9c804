"""Domain models shared across the worker."""
