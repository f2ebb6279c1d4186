"""
Task state transitions.

Pure functions from one Task snapshot to the next; the scheduler is their
only caller.  Allowed moves::

    pending    -> processing | skipped
    processing -> processing (attempt started / retry scheduled / retry dispatched)
               -> completed | error
               -> skipped (queued attempt dropped at shutdown)
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime

from sitemap_batch.domain.types import Task, TaskFailure, TaskStatus
from sitemap_ingestion.domain.types import ConversionStatistics

_ALLOWED: dict[TaskStatus, frozenset[TaskStatus]] = {
    TaskStatus.PENDING: frozenset({TaskStatus.PROCESSING, TaskStatus.SKIPPED}),
    TaskStatus.PROCESSING: frozenset(
        {TaskStatus.PROCESSING, TaskStatus.COMPLETED, TaskStatus.ERROR, TaskStatus.SKIPPED}
    ),
    TaskStatus.COMPLETED: frozenset(),
    TaskStatus.ERROR: frozenset(),
    TaskStatus.SKIPPED: frozenset(),
}


class InvalidTransitionError(ValueError):
    def __init__(self, task: Task, target: TaskStatus):
        self.task_id = task.task_id
        self.from_status = task.status
        self.to_status = target
        super().__init__(
            f"Task {task.task_id}: {task.status.value} -> {target.value} not allowed"
        )


def _check(task: Task, target: TaskStatus) -> None:
    if target not in _ALLOWED[task.status]:
        raise InvalidTransitionError(task, target)


def mark_dispatched(task: Task, now: datetime) -> Task:
    """
    Hand an attempt to the worker pool: first dispatch from pending, or a
    due retry.  The attempt's timeout clock starts only when a worker picks
    it up (``mark_attempt_started``).
    """
    _check(task, TaskStatus.PROCESSING)
    return replace(
        task,
        status=TaskStatus.PROCESSING,
        attempts=task.attempts + 1,
        started_at=task.started_at or now,
        attempt_started_at=None,
        retry_at=None,
    )


def mark_attempt_started(task: Task, now: datetime) -> Task:
    _check(task, TaskStatus.PROCESSING)
    return replace(task, attempt_started_at=now)


def mark_completed(
    task: Task,
    result_ref: str,
    statistics: ConversionStatistics,
    now: datetime,
) -> Task:
    _check(task, TaskStatus.COMPLETED)
    return replace(
        task,
        status=TaskStatus.COMPLETED,
        result_ref=result_ref,
        statistics=statistics,
        completed_at=now,
        attempt_started_at=None,
        retry_at=None,
    )


def mark_retry_scheduled(task: Task, failure: TaskFailure, retry_at: datetime) -> Task:
    """Failed attempt with budget left: keep the slot, wait for ``retry_at``."""
    _check(task, TaskStatus.PROCESSING)
    return replace(
        task,
        last_error=failure,
        attempt_started_at=None,
        retry_at=retry_at,
    )


def mark_failed(task: Task, failure: TaskFailure | None, now: datetime) -> Task:
    _check(task, TaskStatus.ERROR)
    return replace(
        task,
        status=TaskStatus.ERROR,
        last_error=failure if failure is not None else task.last_error,
        completed_at=now,
        attempt_started_at=None,
        retry_at=None,
    )


def mark_skipped(task: Task, now: datetime) -> Task:
    _check(task, TaskStatus.SKIPPED)
    return replace(
        task,
        status=TaskStatus.SKIPPED,
        completed_at=now,
        attempt_started_at=None,
        retry_at=None,
    )
