"""
SitemapOrchestrator -- DI container and facade for the sitemap pipeline.

Contract:
    Wires the clock, blob store, conversion service, batch scheduler and
    generation service.  Single place where pipeline dependencies are
    composed; callers (CLI, tests, an HTTP layer) only talk to this class.

Architecture: sitemap_batch (top-level).

Invariants enforced:
    - Clock injection: every service receives the same Clock.
    - Uploads are validated and stored before the batch is submitted, so a
      rejected upload never creates a batch.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence
from uuid import UUID, uuid4

from sitemap_batch.domain.types import (
    Batch,
    BatchStatusReport,
    FileDescriptor,
    OperationResult,
    Task,
    TaskStatus,
)
from sitemap_batch.services.scheduler import BatchScheduler
from sitemap_batch.tasks.conversion_task import FileConversionWork
from sitemap_config.schema import BatchConfiguration
from sitemap_config.validator import require_valid
from sitemap_ingestion.domain.serialization import merge_record_sets
from sitemap_ingestion.domain.types import ConversionPreview
from sitemap_ingestion.domain.uploads import sanitize_file_name, validate_upload
from sitemap_ingestion.services.conversion_service import ConversionService
from sitemap_kernel.domain.clock import Clock, SystemClock
from sitemap_kernel.exceptions import BatchStateError
from sitemap_kernel.logging_config import get_logger
from sitemap_kernel.services.blob_keys import (
    hierarchy_record_set_id,
    merged_record_set_id,
    upload_key,
)
from sitemap_kernel.services.blob_store import BlobStore, InMemoryBlobStore
from sitemap_services.generation_service import (
    GenerationResult,
    SitemapDocument,
    SitemapGenerationService,
)

logger = get_logger("batch.orchestrator")


@dataclass(frozen=True)
class UploadedFile:
    """A file as received from the caller: original name plus raw bytes."""

    name: str
    content: bytes


class SitemapOrchestrator:
    """DI container for batch conversion and sitemap generation.

    Contract:
        - ``create()`` factory builds a fully wired orchestrator.
        - ``submit_batch()`` stores uploads and schedules their conversion.
        - ``get_status()`` / ``pause()`` / ``resume()`` / ``cancel()``
          delegate to the scheduler.
        - ``generate_*`` / ``preview_*`` delegate to the generation service.

    Non-goals:
        - Does NOT package documents into archives -- ``sitemap_documents()``
          hands them to whatever does.
    """

    def __init__(
        self,
        blob_store: BlobStore,
        conversion_service: ConversionService,
        scheduler: BatchScheduler,
        generation_service: SitemapGenerationService,
        clock: Clock | None = None,
    ) -> None:
        self._blob_store = blob_store
        self._conversion = conversion_service
        self._scheduler = scheduler
        self._generation = generation_service
        self._clock = clock or SystemClock()

    # -------------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------------

    @classmethod
    def create(
        cls,
        blob_store: BlobStore | None = None,
        clock: Clock | None = None,
        poll_interval_seconds: float = 1.0,
        cleanup_grace_seconds: float = 60.0,
        max_workers: int = 10,
        autostart: bool = True,
    ) -> SitemapOrchestrator:
        """Create a fully wired SitemapOrchestrator.

        Args:
            blob_store: Storage for uploads, record sets and documents.
                Defaults to an InMemoryBlobStore.
            clock: Optional clock for deterministic testing.
            poll_interval_seconds: Dispatcher fallback polling interval.
            cleanup_grace_seconds: How long terminal batches stay queryable.
            max_workers: Size of the shared worker pool.
            autostart: Start the dispatcher on first submission.
        """
        effective_clock = clock or SystemClock()
        store = blob_store if blob_store is not None else InMemoryBlobStore()
        conversion = ConversionService(clock=effective_clock)
        scheduler = BatchScheduler(
            work=FileConversionWork(store, conversion),
            clock=effective_clock,
            blob_store=store,
            poll_interval_seconds=poll_interval_seconds,
            cleanup_grace_seconds=cleanup_grace_seconds,
            max_workers=max_workers,
            autostart=autostart,
        )
        return cls(
            blob_store=store,
            conversion_service=conversion,
            scheduler=scheduler,
            generation_service=SitemapGenerationService(store, effective_clock),
            clock=effective_clock,
        )

    # -------------------------------------------------------------------------
    # Batches
    # -------------------------------------------------------------------------

    def submit_batch(
        self,
        files: Sequence[UploadedFile],
        config: BatchConfiguration,
    ) -> UUID:
        """Validate and store the uploads, then submit one task per file."""
        require_valid(config)
        file_types = [validate_upload(f.name, len(f.content)) for f in files]

        batch_id = uuid4()
        descriptors = []
        for position, (upload, file_type) in enumerate(zip(files, file_types)):
            key = upload_key(batch_id, position, sanitize_file_name(upload.name))
            self._blob_store.save(key, upload.content)
            descriptors.append(
                FileDescriptor(
                    file_name=upload.name,
                    file_type=file_type,
                    size=len(upload.content),
                    content_key=key,
                )
            )

        self._scheduler.submit(descriptors, config, batch_id=batch_id)
        return batch_id

    def get_status(self, batch_id: UUID | str) -> BatchStatusReport:
        return self._scheduler.get_status(batch_id)

    def pause(self, batch_id: UUID | str) -> OperationResult:
        return self._scheduler.pause(batch_id)

    def resume(self, batch_id: UUID | str) -> OperationResult:
        return self._scheduler.resume(batch_id)

    def cancel(self, batch_id: UUID | str) -> OperationResult:
        return self._scheduler.cancel(batch_id)

    def wait(self, batch_id: UUID | str, timeout: float | None = None) -> BatchStatusReport:
        self._scheduler.wait(batch_id, timeout=timeout)
        return self._scheduler.get_status(batch_id)

    # -------------------------------------------------------------------------
    # Sitemaps
    # -------------------------------------------------------------------------

    def generate_sitemaps(
        self, record_set_id: str, config: BatchConfiguration
    ) -> GenerationResult:
        return self._generation.generate(record_set_id, config)

    def preview_sitemaps(
        self, record_set_id: str, config: BatchConfiguration
    ) -> GenerationResult:
        return self._generation.preview(record_set_id, config)

    def generate_batch_sitemaps(
        self, batch_id: UUID | str, config: BatchConfiguration
    ) -> GenerationResult:
        """Merge every completed task's record set and generate from the merge.

        Raises:
            BatchStateError: If no task of the batch has completed.
        """
        batch = self._scheduler.get(batch_id)
        refs = [t.result_ref for t in self._completed_tasks(batch, "generate_batch_sitemaps")]

        merged = merge_record_sets(self._generation.load(ref) for ref in refs)
        record_set_id = merged_record_set_id(batch.batch_id)
        self._generation.store(record_set_id, merged)
        logger.info(
            "record_sets_merged",
            extra={
                "batch_id": str(batch.batch_id),
                "source_count": len(refs),
                "url_count": len(merged),
                "duplicate_urls": merged.statistics.duplicate_urls,
            },
        )
        return self._generation.generate(record_set_id, config)

    def generate_hierarchical_sitemaps(
        self, batch_id: UUID | str, config: BatchConfiguration
    ) -> GenerationResult:
        """One sitemap per completed source file under a single index.

        Each sitemap is named after its sanitized source file name.  The
        documents are stored under ``hierarchy_record_set_id(batch_id)``.

        Raises:
            BatchStateError: If no task of the batch has completed.
        """
        batch = self._scheduler.get(batch_id)
        completed = self._completed_tasks(batch, "generate_hierarchical_sitemaps")
        sources = [
            (sanitize_file_name(t.file_name), self._generation.load(t.result_ref))
            for t in completed
        ]
        logger.info(
            "hierarchy_sources_loaded",
            extra={"batch_id": str(batch.batch_id), "source_count": len(sources)},
        )
        return self._generation.generate_hierarchy(
            hierarchy_record_set_id(batch.batch_id), sources, config
        )

    def sitemap_documents(self, record_set_id: str) -> tuple[SitemapDocument, ...]:
        return self._generation.documents(record_set_id)

    @staticmethod
    def _completed_tasks(batch: Batch, operation: str) -> list[Task]:
        completed = [
            t
            for t in batch.tasks
            if t.status is TaskStatus.COMPLETED and t.result_ref is not None
        ]
        if not completed:
            raise BatchStateError(str(batch.batch_id), batch.status.value, operation)
        return completed

    # -------------------------------------------------------------------------
    # Single files
    # -------------------------------------------------------------------------

    def preview_file(
        self, upload: UploadedFile, config: BatchConfiguration
    ) -> ConversionPreview:
        """Preview the first rows of one upload without scheduling anything."""
        file_type = validate_upload(upload.name, len(upload.content))
        source = self._conversion.row_source(upload.content, file_type, upload.name)
        return self._conversion.preview(source, config)

    # -------------------------------------------------------------------------
    # Lifecycle and properties
    # -------------------------------------------------------------------------

    def shutdown(self, wait: bool = True) -> None:
        self._scheduler.shutdown(wait=wait)

    @property
    def scheduler(self) -> BatchScheduler:
        return self._scheduler

    @property
    def blob_store(self) -> BlobStore:
        return self._blob_store

    @property
    def clock(self) -> Clock:
        return self._clock
