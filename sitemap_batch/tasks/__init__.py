"""Scheduled work: the TaskWork protocol and the file conversion task."""

from sitemap_batch.tasks.base import TaskOutcome, TaskWork
from sitemap_batch.tasks.conversion_task import FileConversionWork

__all__ = ["FileConversionWork", "TaskOutcome", "TaskWork"]
