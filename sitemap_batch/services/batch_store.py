"""
BatchStore -- the scheduler-owned collection of Batch snapshots.

Contract:
    Holds one immutable ``Batch`` per batch id.  Writers (the scheduler's
    transition functions) replace snapshots wholesale with ``put``; readers
    receive whole snapshots and can never observe a half-applied change.
    Each scheduler instance owns its own store.
"""

from __future__ import annotations

import threading
from uuid import UUID

from sitemap_batch.domain.types import Batch
from sitemap_kernel.exceptions import BatchNotFoundError


def as_batch_id(batch_id: UUID | str) -> UUID:
    """Accept a UUID or its string form; anything else is an unknown batch."""
    if isinstance(batch_id, UUID):
        return batch_id
    try:
        return UUID(str(batch_id))
    except ValueError:
        raise BatchNotFoundError(str(batch_id)) from None


class BatchStore:
    """Thread-safe map of batch id -> latest Batch snapshot."""

    def __init__(self) -> None:
        self._batches: dict[UUID, Batch] = {}
        self._lock = threading.Lock()

    def get(self, batch_id: UUID | str) -> Batch:
        batch = self.find(batch_id)
        if batch is None:
            raise BatchNotFoundError(str(batch_id))
        return batch

    def find(self, batch_id: UUID | str) -> Batch | None:
        try:
            key = as_batch_id(batch_id)
        except BatchNotFoundError:
            return None
        with self._lock:
            return self._batches.get(key)

    def put(self, batch: Batch) -> None:
        with self._lock:
            self._batches[batch.batch_id] = batch

    def remove(self, batch_id: UUID) -> Batch | None:
        with self._lock:
            return self._batches.pop(batch_id, None)

    def list(self) -> tuple[Batch, ...]:
        """All batches in submission order."""
        with self._lock:
            return tuple(self._batches.values())

    def __contains__(self, batch_id: object) -> bool:
        with self._lock:
            return batch_id in self._batches

    def __len__(self) -> int:
        with self._lock:
            return len(self._batches)
