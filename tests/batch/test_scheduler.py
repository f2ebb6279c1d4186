"""
Tests for sitemap_batch.services.scheduler.

Validates BatchScheduler against scripted, Event-gated work: bounded
concurrency with FIFO admission, retry with backoff, per-attempt timeouts,
pause/resume/cancel, terminal statuses, metadata persistence and
housekeeping.  The clock is deterministic; only the worker threads are real.
"""

import json
import threading
import time
from datetime import timedelta
from uuid import uuid4

import pytest

from sitemap_batch.domain.types import BatchStatus, FileDescriptor, TaskStatus
from sitemap_batch.services.batch_store import BatchStore
from sitemap_batch.services.scheduler import BatchScheduler
from sitemap_batch.tasks.base import TaskOutcome
from sitemap_ingestion.domain.types import ConversionStatistics
from sitemap_kernel.exceptions import (
    BatchNotFoundError,
    BatchStateError,
    ConfigurationError,
    ConversionError,
)
from sitemap_kernel.services.blob_keys import batch_metadata_key


# =============================================================================
# Scripted work
# =============================================================================


class ScriptedWork:
    """
    TaskWork double.

    ``script`` maps a file name to per-attempt outcomes: an exception to
    raise, or None to succeed.  Attempts past the end of the list succeed.
    When ``gate`` is set every attempt blocks until it is opened.
    """

    def __init__(self):
        self.script: dict[str, list[BaseException | None]] = {}
        self.gate: threading.Event | None = None
        self.calls: list[tuple[str, int]] = []
        self.active = 0
        self.max_active = 0
        self._cond = threading.Condition()

    def hold(self) -> threading.Event:
        self.gate = threading.Event()
        return self.gate

    def release(self) -> None:
        if self.gate is not None:
            self.gate.set()

    def wait_started(self, count: int, timeout: float = 5.0) -> None:
        with self._cond:
            if not self._cond.wait_for(lambda: len(self.calls) >= count, timeout=timeout):
                raise AssertionError(f"expected {count} attempts, saw {len(self.calls)}")

    def execute(self, task, config):
        with self._cond:
            self.calls.append((task.file_name, task.attempts))
            self.active += 1
            self.max_active = max(self.max_active, self.active)
            self._cond.notify_all()
        try:
            if self.gate is not None:
                self.gate.wait(timeout=10)
            outcomes = self.script.get(task.file_name, [])
            if task.attempts <= len(outcomes) and outcomes[task.attempts - 1] is not None:
                raise outcomes[task.attempts - 1]
            return TaskOutcome(
                result_ref=f"{task.batch_id}/{task.task_id}",
                statistics=ConversionStatistics(total_rows=2, valid_urls=2),
            )
        finally:
            with self._cond:
                self.active -= 1


def wait_until(predicate, timeout: float = 5.0) -> None:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return
        time.sleep(0.005)
    raise AssertionError("condition not met in time")


def _files(count: int, prefix: str = "file") -> list[FileDescriptor]:
    return [
        FileDescriptor(
            file_name=f"{prefix}{i}.csv",
            file_type="csv",
            size=10,
            content_key=f"uploads/{i}",
        )
        for i in range(count)
    ]


@pytest.fixture
def work():
    return ScriptedWork()


@pytest.fixture
def make_scheduler(work, clock, blob_store):
    created: list[BatchScheduler] = []

    def _make(**kwargs) -> BatchScheduler:
        kwargs.setdefault("work", work)
        kwargs.setdefault("clock", clock)
        kwargs.setdefault("blob_store", blob_store)
        kwargs.setdefault("poll_interval_seconds", 0.01)
        scheduler = BatchScheduler(**kwargs)
        created.append(scheduler)
        return scheduler

    yield _make

    work.release()
    for scheduler in created:
        scheduler.shutdown()


@pytest.fixture
def scheduler(make_scheduler):
    return make_scheduler()


# =============================================================================
# Submission
# =============================================================================


class TestSubmit:
    def test_returns_queued_batch(self, make_scheduler, make_config):
        scheduler = make_scheduler(autostart=False)
        batch_id = scheduler.submit(_files(2), make_config())

        report = scheduler.get_status(batch_id)
        assert report.status is BatchStatus.QUEUED
        assert report.progress.total == 2
        assert [t.status for t in report.tasks] == [TaskStatus.PENDING, TaskStatus.PENDING]
        assert not scheduler.is_running

    def test_invalid_configuration_rejected(self, scheduler, make_config):
        with pytest.raises(ConfigurationError):
            scheduler.submit(_files(1), make_config(max_concurrent_files=0))
        assert scheduler.active_batches() == ()

    def test_empty_file_list_rejected(self, scheduler, make_config):
        with pytest.raises(ConfigurationError):
            scheduler.submit([], make_config())

    def test_duplicate_batch_id_rejected(self, make_scheduler, make_config):
        scheduler = make_scheduler(autostart=False)
        batch_id = uuid4()
        scheduler.submit(_files(1), make_config(), batch_id=batch_id)
        with pytest.raises(BatchStateError):
            scheduler.submit(_files(1), make_config(), batch_id=batch_id)

    def test_unknown_batch(self, scheduler):
        with pytest.raises(BatchNotFoundError):
            scheduler.get_status(uuid4())
        with pytest.raises(BatchNotFoundError):
            scheduler.get_status("not-a-uuid")

    def test_independent_instances(self, make_scheduler, make_config):
        first = make_scheduler(autostart=False)
        second = make_scheduler(autostart=False)
        batch_id = first.submit(_files(1), make_config())
        with pytest.raises(BatchNotFoundError):
            second.get_status(batch_id)

    def test_shared_store(self, make_scheduler, make_config):
        store = BatchStore()
        scheduler = make_scheduler(store=store, autostart=False)
        batch_id = scheduler.submit(_files(1), make_config())
        assert batch_id in store


# =============================================================================
# Dispatch and concurrency
# =============================================================================


class TestDispatch:
    def test_tick_admits_up_to_limit_in_order(self, make_scheduler, make_config, work):
        work.hold()
        scheduler = make_scheduler(autostart=False)
        batch_id = scheduler.submit(_files(3), make_config(max_concurrent_files=2))

        assert scheduler.tick() == 2
        assert scheduler.tick() == 0
        statuses = [t.status for t in scheduler.get_status(batch_id).tasks]
        assert statuses == [TaskStatus.PROCESSING, TaskStatus.PROCESSING, TaskStatus.PENDING]

        work.release()
        wait_until(lambda: scheduler.get_status(batch_id).progress.completed == 2)
        assert scheduler.tick() == 1
        wait_until(lambda: scheduler.get_status(batch_id).progress.completed == 3)
        assert scheduler.get_status(batch_id).status is BatchStatus.COMPLETED

    def test_never_more_than_max_concurrent_processing(self, scheduler, make_config, work):
        gate = work.hold()
        batch_id = scheduler.submit(_files(3), make_config(max_concurrent_files=2))

        samples: list[int] = []
        stop = threading.Event()

        def sample():
            while not stop.is_set():
                samples.append(scheduler.get_status(batch_id).progress.processing)
                time.sleep(0.001)

        sampler = threading.Thread(target=sample)
        sampler.start()
        try:
            work.wait_started(2)
            time.sleep(0.05)
            assert len(work.calls) == 2
            assert [name for name, _ in work.calls] == ["file0.csv", "file1.csv"]

            gate.set()
            batch = scheduler.wait(batch_id, timeout=5)
        finally:
            stop.set()
            sampler.join()

        assert batch.status is BatchStatus.COMPLETED
        assert len(work.calls) == 3
        assert work.max_active <= 2
        assert max(samples) <= 2

    def test_multiple_batches_run_independently(self, scheduler, make_config):
        first = scheduler.submit(_files(2), make_config(max_concurrent_files=1))
        second = scheduler.submit(_files(2), make_config(max_concurrent_files=1))
        assert scheduler.wait(first, timeout=5).status is BatchStatus.COMPLETED
        assert scheduler.wait(second, timeout=5).status is BatchStatus.COMPLETED

    def test_completed_tasks_carry_results(self, scheduler, make_config):
        batch_id = scheduler.submit(_files(2), make_config())
        scheduler.wait(batch_id, timeout=5)

        report = scheduler.get_status(batch_id)
        assert all(t.result_ref.startswith(str(batch_id)) for t in report.tasks)
        assert all(t.statistics.valid_urls == 2 for t in report.tasks)
        assert report.progress.percent_complete == 100.0
        assert report.progress.estimated_completion is None


# =============================================================================
# Failures and retries
# =============================================================================


class TestRetries:
    def test_timeouts_retried_until_success(self, scheduler, make_config, work):
        work.script["file0.csv"] = [TimeoutError("upstream timeout"), TimeoutError("upstream timeout")]
        batch_id = scheduler.submit(_files(1), make_config(retry_attempts=2))

        batch = scheduler.wait(batch_id, timeout=5)
        assert batch.status is BatchStatus.COMPLETED
        assert batch.tasks[0].attempts == 3
        assert work.calls == [("file0.csv", 1), ("file0.csv", 2), ("file0.csv", 3)]

    def test_budget_gives_n_plus_one_attempts(self, scheduler, make_config, work):
        work.script["file0.csv"] = [OSError("disk unavailable")] * 5
        batch_id = scheduler.submit(_files(1), make_config(retry_attempts=2))

        batch = scheduler.wait(batch_id, timeout=5)
        task = batch.tasks[0]
        assert batch.status is BatchStatus.FAILED
        assert task.status is TaskStatus.ERROR
        assert task.attempts == 3
        assert task.last_error.category == "storage"
        assert task.last_error.message == "disk unavailable"

    def test_non_retryable_fails_once(self, scheduler, make_config, work):
        work.script["file0.csv"] = [ConversionError("file0.csv", "Cannot resolve placeholders: {link}")]
        batch_id = scheduler.submit(_files(1), make_config(retry_attempts=5))

        task = scheduler.wait(batch_id, timeout=5).tasks[0]
        assert task.attempts == 1
        assert task.last_error.category == "processing"
        assert task.last_error.code == "CONVERSION_FAILED"
        assert task.last_error.retryable is False

    def test_transient_message_is_retried(self, scheduler, make_config, work):
        work.script["file0.csv"] = [RuntimeError("Network error while reading")]
        batch_id = scheduler.submit(_files(1), make_config(retry_attempts=1))
        assert scheduler.wait(batch_id, timeout=5).tasks[0].attempts == 2

    def test_backoff_waits_for_clock(self, scheduler, make_config, work, clock):
        work.script["file0.csv"] = [OSError("busy")]
        batch_id = scheduler.submit(_files(1), make_config(retry_attempts=1, retry_delay_ms=1000))

        wait_until(lambda: scheduler.get(batch_id).tasks[0].awaiting_retry)
        time.sleep(0.05)
        task = scheduler.get(batch_id).tasks[0]
        assert task.status is TaskStatus.PROCESSING
        assert task.attempts == 1
        assert task.retry_at == clock.now() + timedelta(seconds=1)

        clock.advance(1)
        batch = scheduler.wait(batch_id, timeout=5)
        assert batch.status is BatchStatus.COMPLETED
        assert batch.tasks[0].attempts == 2

    def test_partial_success(self, scheduler, make_config, work):
        work.script["file1.csv"] = [ValueError("bad row data")]
        batch_id = scheduler.submit(_files(3), make_config())

        batch = scheduler.wait(batch_id, timeout=5)
        assert batch.status is BatchStatus.PARTIALLY_COMPLETED
        assert [t.status for t in batch.tasks] == [
            TaskStatus.COMPLETED,
            TaskStatus.ERROR,
            TaskStatus.COMPLETED,
        ]
        summary = scheduler.summary(batch_id)
        assert summary.completed_files == 2
        assert summary.failed_files == 1


class TestTimeouts:
    def test_overdue_attempt_fails_and_is_retried(self, scheduler, make_config, work, clock, captured_logs):
        gate = work.hold()
        batch_id = scheduler.submit(_files(1), make_config(timeout_ms=30000, retry_attempts=1))
        work.wait_started(1)

        clock.advance(31)
        work.wait_started(2)
        task = scheduler.get(batch_id).tasks[0]
        assert task.attempts == 2
        assert task.last_error.category == "timeout"

        gate.set()
        batch = scheduler.wait(batch_id, timeout=5)
        assert batch.status is BatchStatus.COMPLETED
        wait_until(lambda: work.active == 0)
        messages = [r["message"] for r in captured_logs()]
        assert "task_timed_out" in messages
        wait_until(lambda: "stale_attempt_ignored" in [r["message"] for r in captured_logs()])

    def test_timeout_without_budget_fails_task(self, scheduler, make_config, work, clock):
        work.hold()
        batch_id = scheduler.submit(_files(1), make_config(timeout_ms=30000, retry_attempts=0))
        work.wait_started(1)

        clock.advance(30)
        batch = scheduler.wait(batch_id, timeout=5)
        assert batch.status is BatchStatus.FAILED
        assert batch.tasks[0].last_error.code == "TASK_TIMEOUT"

        work.release()
        wait_until(lambda: work.active == 0)
        assert scheduler.get(batch_id).tasks[0].status is TaskStatus.ERROR

    def test_attempt_queued_for_a_worker_does_not_time_out(self, make_scheduler, make_config, work, clock):
        scheduler = make_scheduler(max_workers=1, autostart=False)
        gate = work.hold()
        first = scheduler.submit(_files(1, "a"), make_config())
        scheduler.tick()
        work.wait_started(1)

        second = scheduler.submit(_files(1, "b"), make_config(timeout_ms=30000, retry_attempts=0))
        assert scheduler.tick() == 1
        clock.advance(31)
        scheduler.tick()

        queued = scheduler.get(second).tasks[0]
        assert queued.status is TaskStatus.PROCESSING
        assert queued.attempt_started_at is None
        assert queued.last_error is None
        assert work.calls == [("a0.csv", 1)]

        gate.set()
        assert scheduler.wait(first, timeout=5).status is BatchStatus.COMPLETED
        batch = scheduler.wait(second, timeout=5)
        assert batch.status is BatchStatus.COMPLETED
        assert batch.tasks[0].attempts == 1
        assert work.calls == [("a0.csv", 1), ("b0.csv", 1)]


# =============================================================================
# Pause / resume / cancel
# =============================================================================


class TestPauseResume:
    def test_pause_stops_new_dispatch(self, scheduler, make_config, work):
        gate = work.hold()
        batch_id = scheduler.submit(_files(3), make_config(max_concurrent_files=1))
        work.wait_started(1)

        assert scheduler.pause(batch_id)
        assert scheduler.pause(batch_id).error == "Batch is already paused"

        gate.set()
        wait_until(lambda: scheduler.get_status(batch_id).progress.completed == 1)
        time.sleep(0.05)
        report = scheduler.get_status(batch_id)
        assert report.paused
        assert report.status is BatchStatus.PROCESSING
        assert report.progress.pending == 2
        assert len(work.calls) == 1

        assert scheduler.resume(batch_id)
        assert scheduler.wait(batch_id, timeout=5).status is BatchStatus.COMPLETED
        assert len(work.calls) == 3

    def test_resume_when_not_paused(self, scheduler, make_config, work):
        work.hold()
        batch_id = scheduler.submit(_files(1), make_config())
        result = scheduler.resume(batch_id)
        assert not result.success
        assert result.error == "Batch is not paused"

    def test_due_retry_runs_while_paused(self, scheduler, make_config, work, clock):
        work.script["file0.csv"] = [OSError("busy")]
        batch_id = scheduler.submit(_files(2), make_config(max_concurrent_files=1, retry_delay_ms=1000))
        wait_until(lambda: scheduler.get(batch_id).tasks[0].awaiting_retry)

        scheduler.pause(batch_id)
        clock.advance(1)
        wait_until(lambda: scheduler.get(batch_id).tasks[0].status is TaskStatus.COMPLETED)
        time.sleep(0.05)
        assert scheduler.get(batch_id).tasks[1].status is TaskStatus.PENDING

    def test_unknown_batch(self, scheduler):
        assert scheduler.pause(uuid4()).error == "Batch not found"
        assert scheduler.resume(uuid4()).error == "Batch not found"


class TestCancel:
    def test_pending_skipped_running_finishes(self, scheduler, make_config, work):
        gate = work.hold()
        batch_id = scheduler.submit(_files(3), make_config(max_concurrent_files=1))
        work.wait_started(1)

        assert scheduler.cancel(batch_id)
        report = scheduler.get_status(batch_id)
        assert report.status is BatchStatus.CANCELLED
        assert [t.status for t in report.tasks] == [
            TaskStatus.PROCESSING,
            TaskStatus.SKIPPED,
            TaskStatus.SKIPPED,
        ]

        gate.set()
        batch = scheduler.wait(batch_id, timeout=5)
        assert batch.status is BatchStatus.CANCELLED
        assert batch.tasks[0].status is TaskStatus.COMPLETED
        assert len(work.calls) == 1

    def test_waiting_retry_becomes_error(self, scheduler, make_config, work):
        work.script["file0.csv"] = [OSError("busy")]
        batch_id = scheduler.submit(_files(1), make_config(retry_delay_ms=60000))
        wait_until(lambda: scheduler.get(batch_id).tasks[0].awaiting_retry)

        assert scheduler.cancel(batch_id)
        task = scheduler.get(batch_id).tasks[0]
        assert task.status is TaskStatus.ERROR
        assert task.last_error.message == "busy"

    def test_cancel_terminal_batch(self, scheduler, make_config):
        batch_id = scheduler.submit(_files(1), make_config())
        scheduler.wait(batch_id, timeout=5)
        result = scheduler.cancel(batch_id)
        assert not result.success
        assert result.error == "Batch is already completed"

    def test_failed_attempt_after_cancel_is_not_retried(self, scheduler, make_config, work):
        gate = work.hold()
        work.script["file0.csv"] = [OSError("busy")]
        batch_id = scheduler.submit(_files(1), make_config(retry_attempts=3))
        work.wait_started(1)

        scheduler.cancel(batch_id)
        gate.set()
        batch = scheduler.wait(batch_id, timeout=5)
        assert batch.tasks[0].status is TaskStatus.ERROR
        assert len(work.calls) == 1


# =============================================================================
# Terminal bookkeeping
# =============================================================================


class TestTerminal:
    def test_metadata_written(self, scheduler, make_config, blob_store):
        batch_id = scheduler.submit(_files(2), make_config())
        scheduler.wait(batch_id, timeout=5)

        metadata = json.loads(blob_store.load(batch_metadata_key(batch_id)))
        assert metadata["summary"]["status"] == "completed"
        assert metadata["summary"]["completed_files"] == 2
        assert len(metadata["status"]["tasks"]) == 2
        assert metadata["config"]["maxConcurrentFiles"] == 3

    def test_log_context_bound_in_tasks(self, scheduler, make_config, captured_logs):
        batch_id = scheduler.submit(_files(1), make_config())
        scheduler.wait(batch_id, timeout=5)

        completed = [r for r in captured_logs() if r["message"] == "task_completed"]
        assert completed[0]["batch_id"] == str(batch_id)
        assert "task_id" in completed[0]
        messages = [r["message"] for r in captured_logs()]
        assert "batch_submitted" in messages
        assert "batch_terminal" in messages

    def test_purge_after_grace(self, make_scheduler, make_config, clock):
        scheduler = make_scheduler(autostart=False)
        batch_id = scheduler.submit(_files(1), make_config())
        scheduler.tick()
        scheduler.wait(batch_id, timeout=5)

        assert scheduler.purge_expired() == 0
        clock.advance(61)
        assert scheduler.purge_expired() == 1
        with pytest.raises(BatchNotFoundError):
            scheduler.get_status(batch_id)

    def test_active_batches(self, scheduler, make_config, work):
        work.hold()
        batch_id = scheduler.submit(_files(1), make_config())
        assert [b.batch_id for b in scheduler.active_batches()] == [batch_id]

    def test_shutdown_cancels_active(self, make_scheduler, make_config, work):
        work.hold()
        scheduler = make_scheduler()
        batch_id = scheduler.submit(_files(2), make_config(max_concurrent_files=1))
        work.wait_started(1)

        scheduler.shutdown(wait=False)
        assert not scheduler.is_running
        batch = scheduler.get(batch_id)
        assert batch.status is BatchStatus.CANCELLED
        assert batch.tasks[1].status is TaskStatus.SKIPPED
        work.release()

    def test_shutdown_drops_attempts_queued_in_pool(self, make_scheduler, make_config, work, clock):
        gate = work.hold()
        scheduler = make_scheduler(max_workers=1)
        batch_id = scheduler.submit(_files(2), make_config(max_concurrent_files=2))
        work.wait_started(1)

        scheduler.shutdown(wait=False)
        assert scheduler.get(batch_id).tasks[1].status is TaskStatus.SKIPPED

        gate.set()
        batch = scheduler.wait(batch_id, timeout=5)
        assert batch.status is BatchStatus.CANCELLED
        assert batch.tasks[0].status is TaskStatus.COMPLETED
        assert batch.tasks[1].status is TaskStatus.SKIPPED
        assert work.calls == [("file0.csv", 1)]

        clock.advance(61)
        assert scheduler.purge_expired() == 1
