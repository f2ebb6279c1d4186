"""
FileConversionWork -- the production ``TaskWork``.

Loads the uploaded bytes from the blob store, converts them with the
ConversionService, and stores the resulting URL record set under
``{batch}/records/{task}.json``.

Failure modes (classified by the scheduler):
    BlobNotFoundError / StorageError  -> storage (retryable)
    RowSourceError / ConversionError  -> processing (terminal)
    UnsupportedFileTypeError          -> validation (terminal)
"""

from __future__ import annotations

from sitemap_batch.domain.types import Task
from sitemap_batch.tasks.base import TaskOutcome
from sitemap_config.schema import BatchConfiguration
from sitemap_ingestion.domain.serialization import dump_record_set
from sitemap_ingestion.services.conversion_service import ConversionService
from sitemap_kernel.logging_config import get_logger
from sitemap_kernel.services.blob_keys import record_set_id_for, record_set_key
from sitemap_kernel.services.blob_store import BlobStore

logger = get_logger("batch.tasks.conversion")


class FileConversionWork:
    """Convert one uploaded file into a stored URL record set."""

    def __init__(self, blob_store: BlobStore, conversion_service: ConversionService):
        self._blob_store = blob_store
        self._conversion = conversion_service

    def execute(self, task: Task, config: BatchConfiguration) -> TaskOutcome:
        content = self._blob_store.load(task.content_key)
        result = self._conversion.convert_bytes(
            content, task.file_type, config, task.file_name
        )

        record_set_id = record_set_id_for(task.batch_id, task.task_id)
        self._blob_store.save(record_set_key(record_set_id), dump_record_set(result))

        logger.info(
            "record_set_stored",
            extra={
                "record_set_id": record_set_id,
                "url_count": len(result.records),
                "attempt": task.attempts,
            },
        )
        return TaskOutcome(result_ref=record_set_id, statistics=result.statistics)
