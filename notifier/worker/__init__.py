"""Worker runtime that drives job handlers from the queue."""

from .runtime import WorkerRuntime, create_scheduler

__all__ = ["WorkerRuntime", "create_scheduler"]
