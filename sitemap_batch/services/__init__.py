"""Batch services: the snapshot store and the scheduler that owns it."""

from sitemap_batch.services.batch_store import BatchStore
from sitemap_batch.services.scheduler import BatchScheduler

__all__ = ["BatchScheduler", "BatchStore"]
