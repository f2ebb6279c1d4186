"""
sitemap_batch -- Batch conversion of uploaded files with bounded concurrency.

Provides an in-process, event-driven scheduler that converts every file of
a batch into a URL record set, with per-batch concurrency limits, retry with
linear backoff, per-attempt timeouts, pause/resume/cancel, and live
progress with an ETA.

Architecture:
    sitemap_batch/ is a top-level package.  Nothing in kernel/, config/,
    ingestion/, engines/ or services/ imports from sitemap_batch.

Invariants:
    - At most ``max_concurrent_files`` tasks of one batch are processing.
    - A retryable failure with budget N gives at most N + 1 attempts.
    - Batch status and progress are derived from task states only.
    - One writer (the scheduler); readers get immutable snapshots.
    - Clock injection (no datetime.now() calls).
"""
