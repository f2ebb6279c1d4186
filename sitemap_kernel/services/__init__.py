"""Kernel services: blob store collaborators and key layout."""

from sitemap_kernel.services.blob_keys import (
    batch_metadata_key,
    hierarchy_record_set_id,
    merged_record_set_id,
    record_set_id_for,
    record_set_key,
    sitemap_key,
    sitemap_prefix,
    split_record_set_id,
    upload_key,
)
from sitemap_kernel.services.blob_store import (
    BlobStore,
    FileSystemBlobStore,
    InMemoryBlobStore,
    SqlBlobStore,
)

__all__ = [
    "BlobStore",
    "FileSystemBlobStore",
    "InMemoryBlobStore",
    "SqlBlobStore",
    "batch_metadata_key",
    "hierarchy_record_set_id",
    "merged_record_set_id",
    "record_set_id_for",
    "record_set_key",
    "sitemap_key",
    "sitemap_prefix",
    "split_record_set_id",
    "upload_key",
]
