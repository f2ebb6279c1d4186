"""
BatchScheduler -- In-process, event-driven task scheduler.

Contract:
    ``submit()`` validates the configuration, creates one pending task per
    file, and returns at once; a background dispatcher thread admits tasks
    to a worker pool.  The dispatcher re-evaluates whenever an attempt
    finishes (condition-variable wake-up) and otherwise every
    ``poll_interval_seconds``.

Architecture: sitemap_batch/services.  Uses sitemap_batch.domain for the
    pure status/progress rules and sitemap_batch.tasks for the work itself.

Invariants enforced:
    - count(tasks in processing) <= max_concurrent_files, per batch, always.
      A task waiting out a retry backoff stays ``processing`` and keeps its slot.
    - Pending tasks are admitted in submission order.
    - Single writer: every Batch mutation happens in this class, under
      ``self._cond``; readers receive immutable snapshots from the store.
    - A retryable failure with retry budget N gives at most N + 1 attempts;
      the k-th retry waits ``retry_delay_ms * k``.
    - All timestamps, backoff deadlines and timeouts come from the Clock.

Cancellation and timeout are cooperative:
    cancel/pause only affect future dispatch.  An attempt whose worker has
    been running it for ``timeout_ms`` is failed with TaskTimeoutError and
    its eventual result is ignored, but the worker thread itself is not
    interrupted.  Time spent queued for a free worker does not count.
"""

from __future__ import annotations

import functools
import json
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Sequence
from uuid import UUID, uuid4

from sitemap_batch.domain.errors import classify_exception
from sitemap_batch.domain.progress import (
    compute_progress,
    derive_batch_status,
    next_dispatchable,
    summarize_batch,
)
from sitemap_batch.domain.transitions import (
    mark_attempt_started,
    mark_completed,
    mark_dispatched,
    mark_failed,
    mark_retry_scheduled,
    mark_skipped,
)
from sitemap_batch.domain.types import (
    Batch,
    BatchStatusReport,
    BatchSummary,
    FileDescriptor,
    OperationResult,
    Task,
    TaskFailure,
    TaskStatus,
    TaskSummary,
)
from sitemap_batch.services.batch_store import BatchStore, as_batch_id
from sitemap_batch.tasks.base import TaskOutcome, TaskWork
from sitemap_config.schema import BatchConfiguration
from sitemap_config.validator import require_valid
from sitemap_kernel.domain.clock import Clock, SystemClock
from sitemap_kernel.exceptions import (
    BatchStateError,
    ConfigurationError,
    StorageError,
    TaskTimeoutError,
)
from sitemap_kernel.logging_config import LogContext, get_logger
from sitemap_kernel.services.blob_keys import batch_metadata_key
from sitemap_kernel.services.blob_store import BlobStore

logger = get_logger("batch.scheduler")

DEFAULT_POLL_INTERVAL_SECONDS = 1.0
DEFAULT_CLEANUP_GRACE_SECONDS = 60.0
DEFAULT_MAX_WORKERS = 10


class BatchScheduler:
    """Owns the lifecycle of batches and their file tasks.

    Contract:
        - ``submit()`` / ``pause()`` / ``resume()`` / ``cancel()`` mutate.
        - ``get()`` / ``get_status()`` / ``summary()`` / ``active_batches()``
          only read snapshots.
        - ``tick()`` runs one dispatch pass (public for testing).
        - ``start()`` / ``stop()`` / ``shutdown()`` manage the threads.

    Non-goals:
        - NOT distributed; one process, one store.
        - Does NOT forcibly terminate running work.
    """

    def __init__(
        self,
        work: TaskWork,
        store: BatchStore | None = None,
        clock: Clock | None = None,
        blob_store: BlobStore | None = None,
        poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS,
        cleanup_grace_seconds: float = DEFAULT_CLEANUP_GRACE_SECONDS,
        max_workers: int = DEFAULT_MAX_WORKERS,
        autostart: bool = True,
    ):
        self._work = work
        self._store = store if store is not None else BatchStore()
        self._clock = clock or SystemClock()
        self._blob_store = blob_store
        self._poll_interval = poll_interval_seconds
        self._cleanup_grace = timedelta(seconds=cleanup_grace_seconds)
        self._max_workers = max_workers
        self._autostart = autostart

        self._cond = threading.Condition()
        self._wakeup = False
        # task_id -> (batch_id, attempt number) of the attempt whose result counts
        self._in_flight: dict[UUID, tuple[UUID, int]] = {}

        self._lifecycle_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._executor: ThreadPoolExecutor | None = None

    # -------------------------------------------------------------------------
    # Submission and control
    # -------------------------------------------------------------------------

    def submit(
        self,
        files: Sequence[FileDescriptor],
        config: BatchConfiguration,
        batch_id: UUID | None = None,
    ) -> UUID:
        """Create a batch with one pending task per file and return its id."""
        require_valid(config)
        if not files:
            raise ConfigurationError("a batch needs at least one file")

        batch_id = batch_id or uuid4()
        now = self._clock.now()
        tasks = tuple(
            Task(
                task_id=uuid4(),
                batch_id=batch_id,
                position=position,
                file_name=f.file_name,
                file_type=f.file_type,
                file_size=f.size,
                content_key=f.content_key,
            )
            for position, f in enumerate(files)
        )
        batch = Batch(
            batch_id=batch_id,
            tasks=tasks,
            config=config,
            status=derive_batch_status(tasks),
            progress=compute_progress(tasks, now),
            created_at=now,
            updated_at=now,
        )

        with self._cond:
            existing = self._store.find(batch_id)
            if existing is not None:
                raise BatchStateError(str(batch_id), existing.status.value, "submit")
            self._store.put(batch)
            self._wake()

        logger.info(
            "batch_submitted",
            extra={
                "batch_id": str(batch_id),
                "file_count": len(tasks),
                "max_concurrent_files": config.max_concurrent_files,
                "retry_attempts": config.retry_attempts,
            },
        )
        if self._autostart:
            self.start()
        return batch_id

    def pause(self, batch_id: UUID | str) -> OperationResult:
        """Stop admitting new tasks; running ones finish."""
        with self._cond:
            batch = self._store.find(batch_id)
            if batch is None:
                return OperationResult(False, "Batch not found")
            if batch.is_terminal:
                return OperationResult(False, f"Batch is already {batch.status.value}")
            if batch.paused:
                return OperationResult(False, "Batch is already paused")
            self._store.put(replace(batch, paused=True, updated_at=self._clock.now()))
        logger.info("batch_paused", extra={"batch_id": str(batch.batch_id)})
        return OperationResult(True)

    def resume(self, batch_id: UUID | str) -> OperationResult:
        with self._cond:
            batch = self._store.find(batch_id)
            if batch is None:
                return OperationResult(False, "Batch not found")
            if batch.is_terminal:
                return OperationResult(False, f"Batch is already {batch.status.value}")
            if not batch.paused:
                return OperationResult(False, "Batch is not paused")
            self._store.put(replace(batch, paused=False, updated_at=self._clock.now()))
            self._wake()
        logger.info("batch_resumed", extra={"batch_id": str(batch.batch_id)})
        return OperationResult(True)

    def cancel(self, batch_id: UUID | str) -> OperationResult:
        """
        Cancel a batch.

        Pending tasks become skipped; tasks waiting out a retry backoff become
        error with their last failure.  Attempts already running finish and
        their outcome is recorded on the task, but the batch stays cancelled.
        """
        with self._cond:
            batch = self._store.find(batch_id)
            if batch is None:
                return OperationResult(False, "Batch not found")
            if batch.is_terminal:
                return OperationResult(False, f"Batch is already {batch.status.value}")

            now = self._clock.now()
            tasks = []
            for task in batch.tasks:
                if task.status is TaskStatus.PENDING:
                    task = mark_skipped(task, now)
                elif task.awaiting_retry and task.task_id not in self._in_flight:
                    task = mark_failed(task, None, now)
                tasks.append(task)
            self._commit(replace(batch, cancelled=True, paused=False), tasks, now)
            self._wake()

        logger.info("batch_cancelled", extra={"batch_id": str(batch.batch_id)})
        return OperationResult(True)

    # -------------------------------------------------------------------------
    # Queries (read-only)
    # -------------------------------------------------------------------------

    def get(self, batch_id: UUID | str) -> Batch:
        return self._store.get(batch_id)

    def get_status(self, batch_id: UUID | str) -> BatchStatusReport:
        batch = self._store.get(batch_id)
        return BatchStatusReport(
            batch_id=batch.batch_id,
            status=batch.status,
            progress=batch.progress,
            tasks=tuple(
                TaskSummary(
                    task_id=t.task_id,
                    file_name=t.file_name,
                    status=t.status,
                    attempts=t.attempts,
                    error=t.last_error,
                    result_ref=t.result_ref,
                    statistics=t.statistics,
                )
                for t in batch.tasks
            ),
            paused=batch.paused,
            estimated_completion=batch.progress.estimated_completion,
            created_at=batch.created_at,
            updated_at=batch.updated_at,
        )

    def summary(self, batch_id: UUID | str) -> BatchSummary:
        return summarize_batch(self._store.get(batch_id))

    def active_batches(self) -> tuple[Batch, ...]:
        return tuple(b for b in self._store.list() if not b.is_terminal)

    def wait(self, batch_id: UUID | str, timeout: float | None = None) -> Batch:
        """
        Block until the batch is terminal and none of its attempts is running.

        Returns the latest snapshot, which is still non-terminal if
        ``timeout`` expired first.
        """
        key = as_batch_id(batch_id)

        def settled() -> bool:
            batch = self._store.find(key)
            if batch is None:
                return True
            return batch.is_terminal and not self._has_in_flight(key)

        with self._cond:
            self._cond.wait_for(settled, timeout=timeout)
        return self._store.get(key)

    # -------------------------------------------------------------------------
    # Dispatch
    # -------------------------------------------------------------------------

    def tick(self) -> int:
        """One dispatch pass over every live batch. Returns attempts launched."""
        with self._cond:
            now = self._clock.now()
            launched = 0
            for batch in self._store.list():
                if not batch.is_terminal:
                    launched += self._dispatch_batch(batch, now)
            self._purge_expired_locked(now)
            return launched

    def purge_expired(self) -> int:
        """Drop terminal batches whose grace period has elapsed."""
        with self._cond:
            return self._purge_expired_locked(self._clock.now())

    # -------------------------------------------------------------------------
    # Thread lifecycle
    # -------------------------------------------------------------------------

    def start(self) -> None:
        """Start the dispatcher thread and worker pool (idempotent)."""
        with self._lifecycle_lock:
            if self._thread is not None and self._thread.is_alive():
                return
            self._ensure_executor()
            self._stop_event.clear()
            self._thread = threading.Thread(
                target=self._run_loop,
                name="sitemap-dispatcher",
                daemon=True,
            )
            self._thread.start()
        logger.info(
            "scheduler_started",
            extra={"poll_interval": self._poll_interval, "max_workers": self._max_workers},
        )

    def stop(self, timeout: float = 30.0) -> None:
        """Stop the dispatcher thread; running attempts are left to finish."""
        self._stop_event.set()
        with self._cond:
            self._cond.notify_all()
        thread = self._thread
        if thread is not None and thread.is_alive():
            thread.join(timeout=timeout)
        logger.info("scheduler_stopped")

    def shutdown(self, wait: bool = True) -> None:
        """
        Cancel every active batch, stop dispatching, and close the pool.

        Attempts still queued in the pool are dropped; their tasks become
        skipped (or error, when an earlier attempt already failed).
        """
        for batch in self.active_batches():
            self.cancel(batch.batch_id)
        self.stop()
        with self._lifecycle_lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=wait, cancel_futures=True)

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    # -------------------------------------------------------------------------
    # Internal -- dispatcher
    # -------------------------------------------------------------------------

    def _run_loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                self.tick()
            except Exception:
                logger.exception("dispatch_tick_exception")
            with self._cond:
                self._cond.wait_for(
                    lambda: self._wakeup or self._stop_event.is_set(),
                    timeout=self._poll_interval,
                )
                self._wakeup = False

    def _wake(self) -> None:
        # Caller holds self._cond.
        self._wakeup = True
        self._cond.notify_all()

    def _ensure_executor(self) -> ThreadPoolExecutor:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=self._max_workers,
                thread_name_prefix="sitemap-task",
            )
        return self._executor

    def _has_in_flight(self, batch_id: UUID) -> bool:
        return any(owner == batch_id for owner, _ in self._in_flight.values())

    def _dispatch_batch(self, batch: Batch, now: datetime) -> int:
        config = batch.config
        tasks = list(batch.tasks)
        launches: list[int] = []
        changed = False
        timeout = timedelta(seconds=config.timeout_seconds)

        # Started attempts past their deadline fail with a timeout; attempts
        # still queued in the pool have no start time yet.
        for i, task in enumerate(tasks):
            if (
                task.status is TaskStatus.PROCESSING
                and task.task_id in self._in_flight
                and task.attempt_started_at is not None
                and now - task.attempt_started_at >= timeout
            ):
                del self._in_flight[task.task_id]
                failure = classify_exception(
                    TaskTimeoutError(str(task.task_id), config.timeout_ms)
                )
                logger.warning(
                    "task_timed_out",
                    extra={
                        "batch_id": str(batch.batch_id),
                        "task_id": str(task.task_id),
                        "attempt": task.attempts,
                        "timeout_ms": config.timeout_ms,
                    },
                )
                tasks[i] = self._after_failure(batch, task, failure, now)
                changed = True

        # Retries whose backoff has elapsed, even while paused.
        for i, task in enumerate(tasks):
            if (
                task.awaiting_retry
                and task.task_id not in self._in_flight
                and task.retry_at <= now
            ):
                tasks[i] = mark_dispatched(task, now)
                launches.append(i)
                changed = True

        if not batch.paused:
            for task in next_dispatchable(tasks, config.max_concurrent_files):
                tasks[task.position] = mark_dispatched(task, now)
                launches.append(task.position)
                changed = True

        if not changed:
            return 0

        batch = self._commit(batch, tasks, now)
        for i in launches:
            self._launch(batch, batch.tasks[i])
        return len(launches)

    def _launch(self, batch: Batch, task: Task) -> None:
        self._in_flight[task.task_id] = (batch.batch_id, task.attempts)
        logger.info(
            "task_dispatched",
            extra={
                "batch_id": str(batch.batch_id),
                "task_id": str(task.task_id),
                "file_name": task.file_name,
                "attempt": task.attempts,
            },
        )
        future = self._ensure_executor().submit(self._run_attempt, task, batch.config)
        future.add_done_callback(functools.partial(self._release_cancelled, task))

    # -------------------------------------------------------------------------
    # Internal -- attempt outcomes (worker threads)
    # -------------------------------------------------------------------------

    def _run_attempt(self, task: Task, config: BatchConfiguration) -> None:
        with LogContext.bind(batch_id=str(task.batch_id), task_id=str(task.task_id)):
            if not self._record_start(task):
                return
            try:
                outcome = self._work.execute(task, config)
            except Exception as exc:
                failure = classify_exception(exc)
                logger.warning(
                    "task_attempt_failed",
                    extra={
                        "attempt": task.attempts,
                        "category": failure.category,
                        "retryable": failure.retryable,
                    },
                    exc_info=True,
                )
                self._record_failure(task, failure)
            else:
                self._record_success(task, outcome)

    def _record_start(self, task: Task) -> bool:
        """Start the attempt's timeout clock. False if the attempt no longer counts."""
        with self._cond:
            if self._in_flight.get(task.task_id) != (task.batch_id, task.attempts):
                logger.info(
                    "stale_attempt_ignored",
                    extra={"task_id": str(task.task_id), "attempt": task.attempts},
                )
                return False
            batch = self._store.find(task.batch_id)
            if batch is not None:
                now = self._clock.now()
                tasks = list(batch.tasks)
                tasks[task.position] = mark_attempt_started(tasks[task.position], now)
                self._commit(batch, tasks, now)
            return True

    def _release_cancelled(self, task: Task, future: Future) -> None:
        """Done-callback: an attempt dropped from the pool queue never ran."""
        if not future.cancelled():
            return
        with self._cond:
            if not self._claim(task):
                return
            batch = self._store.find(task.batch_id)
            if batch is not None:
                now = self._clock.now()
                tasks = list(batch.tasks)
                current = tasks[task.position]
                if current.last_error is not None:
                    tasks[task.position] = mark_failed(current, None, now)
                else:
                    tasks[task.position] = mark_skipped(current, now)
                self._commit(batch, tasks, now)
                logger.info(
                    "task_attempt_dropped",
                    extra={
                        "batch_id": str(task.batch_id),
                        "task_id": str(task.task_id),
                        "attempt": task.attempts,
                        "status": tasks[task.position].status.value,
                    },
                )
            self._wake()

    def _claim(self, task: Task) -> bool:
        """True if this attempt is still the one that counts; releases its slot."""
        if self._in_flight.get(task.task_id) != (task.batch_id, task.attempts):
            logger.info(
                "stale_attempt_ignored",
                extra={"task_id": str(task.task_id), "attempt": task.attempts},
            )
            return False
        del self._in_flight[task.task_id]
        return True

    def _record_success(self, task: Task, outcome: TaskOutcome) -> None:
        with self._cond:
            if not self._claim(task):
                return
            batch = self._store.find(task.batch_id)
            if batch is not None:
                now = self._clock.now()
                tasks = list(batch.tasks)
                tasks[task.position] = mark_completed(
                    tasks[task.position], outcome.result_ref, outcome.statistics, now
                )
                self._commit(batch, tasks, now)
                logger.info(
                    "task_completed",
                    extra={
                        "attempt": task.attempts,
                        "result_ref": outcome.result_ref,
                        "valid_urls": outcome.statistics.valid_urls,
                    },
                )
            self._wake()

    def _record_failure(self, task: Task, failure: TaskFailure) -> None:
        with self._cond:
            if not self._claim(task):
                return
            batch = self._store.find(task.batch_id)
            if batch is not None:
                now = self._clock.now()
                tasks = list(batch.tasks)
                tasks[task.position] = self._after_failure(
                    batch, tasks[task.position], failure, now
                )
                self._commit(batch, tasks, now)
            self._wake()

    def _after_failure(
        self,
        batch: Batch,
        task: Task,
        failure: TaskFailure,
        now: datetime,
    ) -> Task:
        config = batch.config
        if (
            failure.retryable
            and not batch.cancelled
            and task.attempts <= config.retry_attempts
        ):
            delay = config.retry_delay_seconds(task.attempts)
            logger.info(
                "task_retry_scheduled",
                extra={
                    "batch_id": str(batch.batch_id),
                    "task_id": str(task.task_id),
                    "attempt": task.attempts,
                    "delay_seconds": delay,
                    "category": failure.category,
                },
            )
            return mark_retry_scheduled(task, failure, now + timedelta(seconds=delay))

        logger.warning(
            "task_failed",
            extra={
                "batch_id": str(batch.batch_id),
                "task_id": str(task.task_id),
                "attempts": task.attempts,
                "category": failure.category,
                "error_message": failure.message,
            },
        )
        return mark_failed(task, failure, now)

    # -------------------------------------------------------------------------
    # Internal -- commits
    # -------------------------------------------------------------------------

    def _commit(self, batch: Batch, tasks: Sequence[Task], now: datetime) -> Batch:
        """Recompute derived state from ``tasks`` and publish the new snapshot."""
        tasks = tuple(tasks)
        status = derive_batch_status(tasks, batch.cancelled)
        progress = compute_progress(tasks, now)
        updated = replace(
            batch,
            tasks=tasks,
            status=status,
            progress=progress,
            updated_at=now,
            started_at=batch.started_at or progress.started_at,
        )
        if updated.is_terminal and updated.completed_at is None:
            updated = replace(updated, completed_at=now)
        self._store.put(updated)

        if updated.is_terminal:
            if not batch.is_terminal:
                logger.info(
                    "batch_terminal",
                    extra={
                        "batch_id": str(batch.batch_id),
                        "status": status.value,
                        "completed": progress.completed,
                        "failed": progress.failed,
                        "skipped": progress.skipped,
                    },
                )
            self._persist(updated)
        return updated

    def _persist(self, batch: Batch) -> None:
        if self._blob_store is None:
            return
        payload = {
            "summary": summarize_batch(batch).to_dict(),
            "status": self.get_status(batch.batch_id).to_dict(),
            "config": batch.config.to_dict(),
            "created_at": batch.created_at.isoformat(),
            "completed_at": batch.completed_at.isoformat() if batch.completed_at else None,
        }
        try:
            self._blob_store.save(
                batch_metadata_key(batch.batch_id),
                json.dumps(payload, sort_keys=True, default=str).encode("utf-8"),
            )
        except StorageError:
            logger.warning(
                "batch_metadata_save_failed",
                extra={"batch_id": str(batch.batch_id)},
                exc_info=True,
            )

    def _purge_expired_locked(self, now: datetime) -> int:
        removed = 0
        for batch in self._store.list():
            if (
                batch.is_terminal
                and batch.completed_at is not None
                and now - batch.completed_at >= self._cleanup_grace
                and not self._has_in_flight(batch.batch_id)
            ):
                self._store.remove(batch.batch_id)
                removed += 1
                logger.info("batch_purged", extra={"batch_id": str(batch.batch_id)})
        return removed


__all__ = ["BatchScheduler"]
