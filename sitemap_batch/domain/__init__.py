"""Batch/task state model: frozen DTOs and pure status rules."""

from sitemap_batch.domain.errors import classify_exception, is_retryable
from sitemap_batch.domain.progress import (
    compute_progress,
    derive_batch_status,
    next_dispatchable,
    summarize_batch,
)
from sitemap_batch.domain.types import (
    Batch,
    BatchProgress,
    BatchStatus,
    BatchStatusReport,
    BatchSummary,
    FileDescriptor,
    OperationResult,
    Task,
    TaskFailure,
    TaskStatus,
    TaskSummary,
)

__all__ = [
    "Batch",
    "BatchProgress",
    "BatchStatus",
    "BatchStatusReport",
    "BatchSummary",
    "FileDescriptor",
    "OperationResult",
    "Task",
    "TaskFailure",
    "TaskStatus",
    "TaskSummary",
    "classify_exception",
    "compute_progress",
    "derive_batch_status",
    "is_retryable",
    "next_dispatchable",
    "summarize_batch",
]
