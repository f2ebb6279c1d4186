"""
Blob key layout.

Every blob belonging to a batch lives under the batch identifier so that
``BlobStore.list(batch_id)`` enumerates everything the batch produced::

    {batch}/uploads/{position}_{file}
    {batch}/records/{task}.json
    {batch}/sitemaps/{task}/{name}
    {batch}/batch.json

A URL record set id is ``{batch}/{task}``; the batch-wide merge uses the
reserved task segment ``merged`` and the per-file hierarchy ``hierarchy``.
"""

from __future__ import annotations

from uuid import UUID

from sitemap_kernel.exceptions import RecordSetNotFoundError

MERGED_SEGMENT = "merged"
HIERARCHY_SEGMENT = "hierarchy"


def upload_key(batch_id: UUID | str, position: int, file_name: str) -> str:
    return f"{batch_id}/uploads/{position:04d}_{file_name}"


def record_set_id_for(batch_id: UUID | str, task_id: UUID | str) -> str:
    return f"{batch_id}/{task_id}"


def merged_record_set_id(batch_id: UUID | str) -> str:
    return f"{batch_id}/{MERGED_SEGMENT}"


def hierarchy_record_set_id(batch_id: UUID | str) -> str:
    return f"{batch_id}/{HIERARCHY_SEGMENT}"


def split_record_set_id(record_set_id: str) -> tuple[str, str]:
    """Split ``{batch}/{task}`` into its two segments."""
    parts = record_set_id.split("/")
    if len(parts) != 2 or not all(parts):
        raise RecordSetNotFoundError(record_set_id)
    return parts[0], parts[1]


def record_set_key(record_set_id: str) -> str:
    batch, task = split_record_set_id(record_set_id)
    return f"{batch}/records/{task}.json"


def sitemap_prefix(record_set_id: str) -> str:
    batch, task = split_record_set_id(record_set_id)
    return f"{batch}/sitemaps/{task}/"


def sitemap_key(record_set_id: str, name: str) -> str:
    return sitemap_prefix(record_set_id) + name


def batch_metadata_key(batch_id: UUID | str) -> str:
    return f"{batch_id}/batch.json"
