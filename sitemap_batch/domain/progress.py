"""
Batch status and progress derivation.

Pure functions of the current task states, so concurrent readers always get
a consistent snapshot and nothing here is ever stored independently.

Status rules:
    cancelled flag                      -> cancelled
    no task ever dispatched             -> queued
    any task pending or processing      -> processing
    every task completed or skipped     -> completed
    no task completed                   -> failed
    otherwise                           -> partially_completed

ETA:
    average duration of completed tasks x (pending + processing), added to
    ``now``; None until at least one task has completed.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Sequence

from sitemap_batch.domain.types import (
    Batch,
    BatchProgress,
    BatchStatus,
    BatchSummary,
    Task,
    TaskStatus,
)
from sitemap_ingestion.domain.types import ConversionStatistics


def derive_batch_status(tasks: Sequence[Task], cancelled: bool = False) -> BatchStatus:
    if cancelled:
        return BatchStatus.CANCELLED
    if all(t.status is TaskStatus.PENDING and t.attempts == 0 for t in tasks):
        return BatchStatus.QUEUED
    if any(t.status in (TaskStatus.PENDING, TaskStatus.PROCESSING) for t in tasks):
        return BatchStatus.PROCESSING
    if all(t.status in (TaskStatus.COMPLETED, TaskStatus.SKIPPED) for t in tasks):
        return BatchStatus.COMPLETED
    if not any(t.status is TaskStatus.COMPLETED for t in tasks):
        return BatchStatus.FAILED
    return BatchStatus.PARTIALLY_COMPLETED


def available_slots(tasks: Sequence[Task], max_concurrent: int) -> int:
    processing = sum(1 for t in tasks if t.status is TaskStatus.PROCESSING)
    return max(0, max_concurrent - processing)


def next_dispatchable(tasks: Sequence[Task], max_concurrent: int) -> tuple[Task, ...]:
    """Pending tasks to admit now, in submission order."""
    slots = available_slots(tasks, max_concurrent)
    if slots == 0:
        return ()
    pending = sorted(
        (t for t in tasks if t.status is TaskStatus.PENDING), key=lambda t: t.position
    )
    return tuple(pending[:slots])


def average_duration_seconds(tasks: Sequence[Task]) -> float | None:
    durations = [
        t.duration_seconds
        for t in tasks
        if t.status is TaskStatus.COMPLETED and t.duration_seconds is not None
    ]
    if not durations:
        return None
    return sum(durations) / len(durations)


def compute_progress(tasks: Sequence[Task], now: datetime) -> BatchProgress:
    counts = {status: 0 for status in TaskStatus}
    for task in tasks:
        counts[task.status] += 1

    current = next(
        (
            t.file_name
            for t in sorted(tasks, key=lambda t: t.position)
            if t.status is TaskStatus.PROCESSING
        ),
        None,
    )
    starts = [t.started_at for t in tasks if t.started_at is not None]

    remaining = counts[TaskStatus.PENDING] + counts[TaskStatus.PROCESSING]
    average = average_duration_seconds(tasks)
    eta = None
    if average is not None and remaining > 0:
        eta = now + timedelta(seconds=average * remaining)

    return BatchProgress(
        total=len(tasks),
        pending=counts[TaskStatus.PENDING],
        processing=counts[TaskStatus.PROCESSING],
        completed=counts[TaskStatus.COMPLETED],
        failed=counts[TaskStatus.ERROR],
        skipped=counts[TaskStatus.SKIPPED],
        current_file=current,
        started_at=min(starts) if starts else None,
        estimated_completion=eta,
    )


def summarize_batch(batch: Batch) -> BatchSummary:
    progress = batch.progress
    durations = [
        t.duration_seconds
        for t in batch.tasks
        if t.status is TaskStatus.COMPLETED and t.duration_seconds is not None
    ]
    total_seconds = round(sum(durations), 3)
    statistics = ConversionStatistics()
    for task in batch.tasks:
        if task.statistics is not None:
            statistics = statistics + task.statistics

    return BatchSummary(
        batch_id=batch.batch_id,
        status=batch.status,
        total_files=progress.total,
        completed_files=progress.completed,
        failed_files=progress.failed,
        skipped_files=progress.skipped,
        success_rate=(
            round(progress.completed / progress.total * 100, 2) if progress.total else 0.0
        ),
        total_processing_seconds=total_seconds,
        average_processing_seconds=(
            round(total_seconds / len(durations), 3) if durations else 0.0
        ),
        statistics=statistics,
    )
