"""
Typed Exception Hierarchy for the sitemap pipeline.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from SitemapKernelError:

    SitemapKernelError (base)
    |
    +-- ConfigurationError
    |
    +-- UploadError
    |   +-- InvalidUploadError
    |   +-- UnsupportedFileTypeError
    |
    +-- ProcessingError
    |   +-- RowSourceError
    |   +-- ConversionError
    |   +-- AssemblyError
    |
    +-- StorageError
    |   +-- BlobNotFoundError
    |   +-- RecordSetNotFoundError
    |
    +-- TaskTimeoutError
    |
    +-- BatchError
        +-- BatchNotFoundError
        +-- BatchStateError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category    | Code                   | When Raised
------------|------------------------|------------------------------------------
validation  | INVALID_CONFIGURATION  | Configuration out of bounds or incomplete
            | INVALID_UPLOAD         | Bad file name, size, or extension
            | UNSUPPORTED_FILE_TYPE  | No row source for the file type
            | BATCH_NOT_FOUND        | Unknown batch identifier
            | INVALID_BATCH_STATE    | Operation illegal in the current state
------------|------------------------|------------------------------------------
processing  | ROW_SOURCE_ERROR       | Input bytes cannot be read as rows
            | CONVERSION_FAILED      | Template cannot be resolved at all
            | ASSEMBLY_FAILED        | Sitemap planning or rendering failed
------------|------------------------|------------------------------------------
storage     | STORAGE_ERROR          | Blob store save/delete failed
            | BLOB_NOT_FOUND         | Blob key does not exist
            | RECORD_SET_NOT_FOUND   | URL record set does not exist
------------|------------------------|------------------------------------------
timeout     | TASK_TIMEOUT           | Task attempt exceeded its configured bound

The ``category`` class attribute feeds task-boundary classification: storage
and timeout failures are retryable, validation failures never are.
===============================================================================
"""

from __future__ import annotations

from typing import Sequence

# Error taxonomy
CATEGORY_VALIDATION = "validation"
CATEGORY_PROCESSING = "processing"
CATEGORY_STORAGE = "storage"
CATEGORY_TIMEOUT = "timeout"


class SitemapKernelError(Exception):
    """
    Base exception for all sitemap pipeline errors.

    All subclasses carry a ``code`` class attribute for machine-readable
    identification and a ``category`` from the error taxonomy.
    """

    code: str = "SITEMAP_KERNEL_ERROR"
    category: str = CATEGORY_PROCESSING


# Configuration


class ConfigurationError(SitemapKernelError):
    """Batch configuration failed validation."""

    code: str = "INVALID_CONFIGURATION"
    category: str = CATEGORY_VALIDATION

    def __init__(self, errors: Sequence[str] | str):
        if isinstance(errors, str):
            errors = (errors,)
        self.errors = tuple(errors)
        super().__init__("Invalid configuration: " + "; ".join(self.errors))


# Uploads


class UploadError(SitemapKernelError):
    """Base exception for upload problems."""

    code: str = "UPLOAD_ERROR"
    category: str = CATEGORY_VALIDATION


class InvalidUploadError(UploadError):
    """Uploaded file is rejected before processing."""

    code: str = "INVALID_UPLOAD"

    def __init__(self, file_name: str, reason: str):
        self.file_name = file_name
        self.reason = reason
        super().__init__(f"Invalid upload {file_name!r}: {reason}")


class UnsupportedFileTypeError(UploadError):
    """No row source exists for the file type."""

    code: str = "UNSUPPORTED_FILE_TYPE"

    def __init__(self, file_type: str):
        self.file_type = file_type
        super().__init__(f"Unsupported file type: {file_type}")


# Processing


class ProcessingError(SitemapKernelError):
    """Base exception for transform and assembly failures."""

    code: str = "PROCESSING_ERROR"
    category: str = CATEGORY_PROCESSING


class RowSourceError(ProcessingError):
    """Input bytes could not be read as rows."""

    code: str = "ROW_SOURCE_ERROR"

    def __init__(self, source_name: str, detail: str):
        self.source_name = source_name
        self.detail = detail
        super().__init__(f"Cannot read rows from {source_name}: {detail}")


class ConversionError(ProcessingError):
    """A file could not be converted to URL records."""

    code: str = "CONVERSION_FAILED"

    def __init__(self, source_name: str, detail: str):
        self.source_name = source_name
        self.detail = detail
        super().__init__(f"Conversion failed for {source_name}: {detail}")


class AssemblyError(ProcessingError):
    """Sitemap planning or rendering failed."""

    code: str = "ASSEMBLY_FAILED"

    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(f"Sitemap assembly failed: {detail}")


# Storage


class StorageError(SitemapKernelError):
    """Blob store operation failed."""

    code: str = "STORAGE_ERROR"
    category: str = CATEGORY_STORAGE

    def __init__(self, key: str, detail: str):
        self.key = key
        self.detail = detail
        super().__init__(f"Storage failure for {key}: {detail}")


class BlobNotFoundError(StorageError):
    """Blob key does not exist."""

    code: str = "BLOB_NOT_FOUND"

    def __init__(self, key: str):
        super().__init__(key, "not found")


class RecordSetNotFoundError(StorageError):
    """URL record set does not exist."""

    code: str = "RECORD_SET_NOT_FOUND"

    def __init__(self, record_set_id: str):
        self.record_set_id = record_set_id
        super().__init__(record_set_id, "URL record set not found")


# Timeout


class TaskTimeoutError(SitemapKernelError):
    """A task attempt exceeded its configured bound."""

    code: str = "TASK_TIMEOUT"
    category: str = CATEGORY_TIMEOUT

    def __init__(self, task_id: str, timeout_ms: int):
        self.task_id = task_id
        self.timeout_ms = timeout_ms
        super().__init__(f"Task {task_id} timeout after {timeout_ms} ms")


# Batches


class BatchError(SitemapKernelError):
    """Base exception for batch lookups and state changes."""

    code: str = "BATCH_ERROR"
    category: str = CATEGORY_VALIDATION


class BatchNotFoundError(BatchError):
    """Batch identifier is unknown to the scheduler."""

    code: str = "BATCH_NOT_FOUND"

    def __init__(self, batch_id: str):
        self.batch_id = batch_id
        super().__init__(f"Batch not found: {batch_id}")


class BatchStateError(BatchError):
    """Operation is not allowed in the batch's current state."""

    code: str = "INVALID_BATCH_STATE"

    def __init__(self, batch_id: str, status: str, operation: str):
        self.batch_id = batch_id
        self.status = status
        self.operation = operation
        super().__init__(f"Cannot {operation} batch {batch_id} in status {status}")
