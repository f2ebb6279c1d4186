"""
sitemap_batch.domain.types -- Pure frozen dataclasses for the batch system.

ZERO I/O.  Frozen dataclasses with enum status fields and tuples for
immutable collections.  The scheduler replaces snapshots wholesale; readers
only ever see complete, consistent snapshots.

Invariants enforced:
    - A Task belongs to exactly one Batch (``Task.batch_id``).
    - Batch status is derived from task states (see domain/progress.py).
    - ``Task.attempts`` counts dispatches, so a retryable failure with a
      budget of N yields at most N + 1 attempts.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID

from sitemap_config.schema import BatchConfiguration
from sitemap_ingestion.domain.types import ConversionStatistics


# =============================================================================
# Status enums
# =============================================================================


class TaskStatus(str, Enum):
    """Per-file lifecycle status."""

    PENDING = "pending"  # Waiting for a free slot
    PROCESSING = "processing"  # Running, or holding its slot during retry backoff
    COMPLETED = "completed"  # Record set produced
    ERROR = "error"  # Failed with no retries left
    SKIPPED = "skipped"  # Never started; batch was cancelled


class BatchStatus(str, Enum):
    """Batch-level status, derived from task states."""

    QUEUED = "queued"  # Submitted, no task started yet
    PROCESSING = "processing"  # Some task pending or processing
    COMPLETED = "completed"  # Every task completed or skipped
    PARTIALLY_COMPLETED = "partially_completed"  # Mix of completed and error
    FAILED = "failed"  # Every task ended in error
    CANCELLED = "cancelled"  # Explicitly cancelled


TERMINAL_TASK_STATUSES = frozenset(
    {TaskStatus.COMPLETED, TaskStatus.ERROR, TaskStatus.SKIPPED}
)
TERMINAL_BATCH_STATUSES = frozenset(
    {
        BatchStatus.COMPLETED,
        BatchStatus.PARTIALLY_COMPLETED,
        BatchStatus.FAILED,
        BatchStatus.CANCELLED,
    }
)


# =============================================================================
# Task DTOs
# =============================================================================


@dataclass(frozen=True)
class TaskFailure:
    """Classified error recorded on a task."""

    category: str  # validation | processing | storage | timeout
    message: str
    retryable: bool
    code: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "category": self.category,
            "message": self.message,
            "retryable": self.retryable,
            "code": self.code,
        }


@dataclass(frozen=True)
class FileDescriptor:
    """One uploaded file handed to the scheduler."""

    file_name: str
    file_type: str
    size: int
    content_key: str  # Blob store key of the uploaded bytes


@dataclass(frozen=True)
class Task:
    """Immutable snapshot of one file conversion task."""

    task_id: UUID
    batch_id: UUID
    position: int  # 0-based submission order
    file_name: str
    file_type: str
    file_size: int
    content_key: str
    status: TaskStatus = TaskStatus.PENDING
    attempts: int = 0
    last_error: TaskFailure | None = None
    result_ref: str | None = None  # URL record set id
    statistics: ConversionStatistics | None = None
    started_at: datetime | None = None  # first dispatch
    attempt_started_at: datetime | None = None  # current attempt
    completed_at: datetime | None = None
    retry_at: datetime | None = None  # set while waiting out a backoff

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_TASK_STATUSES

    @property
    def awaiting_retry(self) -> bool:
        return self.status is TaskStatus.PROCESSING and self.retry_at is not None

    @property
    def duration_seconds(self) -> float | None:
        if self.started_at is None or self.completed_at is None:
            return None
        return (self.completed_at - self.started_at).total_seconds()


# =============================================================================
# Batch DTOs
# =============================================================================


@dataclass(frozen=True)
class BatchProgress:
    """Aggregate counters and ETA; a pure function of task states."""

    total: int
    pending: int = 0
    processing: int = 0
    completed: int = 0
    failed: int = 0
    skipped: int = 0
    current_file: str | None = None
    started_at: datetime | None = None
    estimated_completion: datetime | None = None

    @property
    def finished(self) -> int:
        return self.completed + self.failed + self.skipped

    @property
    def percent_complete(self) -> float:
        if self.total == 0:
            return 100.0
        return round(self.finished / self.total * 100, 1)

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "pending": self.pending,
            "processing": self.processing,
            "completed": self.completed,
            "failed": self.failed,
            "skipped": self.skipped,
            "percent_complete": self.percent_complete,
            "current_file": self.current_file,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "estimated_completion": (
                self.estimated_completion.isoformat()
                if self.estimated_completion
                else None
            ),
        }


@dataclass(frozen=True)
class Batch:
    """Immutable snapshot of a batch and all of its tasks."""

    batch_id: UUID
    tasks: tuple[Task, ...]
    config: BatchConfiguration
    status: BatchStatus
    progress: BatchProgress
    created_at: datetime
    updated_at: datetime
    started_at: datetime | None = None
    completed_at: datetime | None = None
    cancelled: bool = False
    paused: bool = False

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_BATCH_STATUSES

    def task(self, task_id: UUID) -> Task:
        for task in self.tasks:
            if task.task_id == task_id:
                return task
        raise KeyError(f"Task {task_id} not in batch {self.batch_id}")


@dataclass(frozen=True)
class TaskSummary:
    """Per-task view returned by status queries."""

    task_id: UUID
    file_name: str
    status: TaskStatus
    attempts: int
    error: TaskFailure | None = None
    result_ref: str | None = None
    statistics: ConversionStatistics | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "task_id": str(self.task_id),
            "file_name": self.file_name,
            "status": self.status.value,
            "attempts": self.attempts,
            "error": self.error.to_dict() if self.error else None,
            "result_ref": self.result_ref,
            "statistics": self.statistics.to_dict() if self.statistics else None,
        }


@dataclass(frozen=True)
class BatchStatusReport:
    """Answer to ``get_status``: status, progress, per-task summaries, ETA."""

    batch_id: UUID
    status: BatchStatus
    progress: BatchProgress
    tasks: tuple[TaskSummary, ...]
    paused: bool = False
    estimated_completion: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "batch_id": str(self.batch_id),
            "status": self.status.value,
            "paused": self.paused,
            "progress": self.progress.to_dict(),
            "tasks": [t.to_dict() for t in self.tasks],
            "estimated_completion": (
                self.estimated_completion.isoformat()
                if self.estimated_completion
                else None
            ),
        }


@dataclass(frozen=True)
class BatchSummary:
    """Closing numbers of a batch."""

    batch_id: UUID
    status: BatchStatus
    total_files: int
    completed_files: int
    failed_files: int
    skipped_files: int
    success_rate: float  # percent of files completed
    total_processing_seconds: float
    average_processing_seconds: float
    statistics: ConversionStatistics

    def to_dict(self) -> dict[str, Any]:
        return {
            "batch_id": str(self.batch_id),
            "status": self.status.value,
            "total_files": self.total_files,
            "completed_files": self.completed_files,
            "failed_files": self.failed_files,
            "skipped_files": self.skipped_files,
            "success_rate": self.success_rate,
            "total_processing_seconds": self.total_processing_seconds,
            "average_processing_seconds": self.average_processing_seconds,
            "statistics": self.statistics.to_dict(),
        }


@dataclass(frozen=True)
class OperationResult:
    """Outcome of pause/resume/cancel."""

    success: bool
    error: str | None = None

    def __bool__(self) -> bool:
        return self.success
