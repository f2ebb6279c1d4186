"""
sitemap_services.generation_service -- Record set -> stored sitemap documents.

Responsibility:
    Load a URL record set from the blob store, plan it with the chunking
    engine, render every file plus the optional index, and store the
    documents under the record set's sitemap prefix.  ``preview`` runs the
    same plan without writing anything.  ``generate_hierarchy`` writes one
    sitemap per source record set under a single index.

Architecture position:
    Services -- stateful orchestration over engines + kernel.  Supplies the
    clock date that the pure engines take as a parameter.

Failure modes:
    - RecordSetNotFoundError if the record set was never stored.
    - StorageError propagated from the blob store on save/delete.
    - AssemblyError from the engine on an impossible plan.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from sitemap_config.schema import BatchConfiguration
from sitemap_engines.chunking import SitemapPlan, plan_hierarchy, plan_sitemaps
from sitemap_engines.rendering import render_index, render_urlset
from sitemap_ingestion.domain.serialization import dump_record_set, load_record_set
from sitemap_ingestion.domain.types import RecordSet
from sitemap_kernel.domain.clock import Clock, SystemClock
from sitemap_kernel.exceptions import BlobNotFoundError, RecordSetNotFoundError
from sitemap_kernel.logging_config import LogContext, get_logger
from sitemap_kernel.services.blob_keys import (
    record_set_key,
    sitemap_key,
    sitemap_prefix,
)
from sitemap_kernel.services.blob_store import BlobStore

logger = get_logger("services.generation")


@dataclass(frozen=True)
class GeneratedFile:
    name: str
    url_count: int
    group_key: str
    chunk_index: int


@dataclass(frozen=True)
class GenerationResult:
    """Outcome of generating (or previewing) one record set's sitemaps."""

    record_set_id: str
    files: tuple[GeneratedFile, ...]
    has_index: bool
    index_name: str | None = None
    total_urls: int = 0
    written: bool = False

    @property
    def groups(self) -> tuple[str, ...]:
        return tuple(dict.fromkeys(f.group_key for f in self.files))

    def to_dict(self) -> dict[str, object]:
        return {
            "record_set_id": self.record_set_id,
            "files": [{"name": f.name, "url_count": f.url_count} for f in self.files],
            "has_index": self.has_index,
            "index_name": self.index_name,
            "total_urls": self.total_urls,
        }


@dataclass(frozen=True)
class SitemapDocument:
    """A stored document, for packaging by an archive collaborator."""

    name: str
    content: bytes


class SitemapGenerationService:
    """Plans, renders and stores sitemap documents for URL record sets."""

    def __init__(self, blob_store: BlobStore, clock: Clock | None = None):
        self._blob_store = blob_store
        self._clock = clock or SystemClock()

    # ------------------------------------------------------------------
    # Record sets
    # ------------------------------------------------------------------

    def load(self, record_set_id: str) -> RecordSet:
        try:
            data = self._blob_store.load(record_set_key(record_set_id))
        except BlobNotFoundError:
            raise RecordSetNotFoundError(record_set_id) from None
        return load_record_set(data, record_set_id)

    def store(self, record_set_id: str, record_set: RecordSet) -> None:
        self._blob_store.save(record_set_key(record_set_id), dump_record_set(record_set))

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    def plan(self, record_set: RecordSet, config: BatchConfiguration) -> SitemapPlan:
        return plan_sitemaps(
            records=record_set.records,
            grouping=config.grouping,
            max_per_file=config.max_per_file,
            generated_on=self._clock.today(),
        )

    def preview(self, record_set_id: str, config: BatchConfiguration) -> GenerationResult:
        plan = self.plan(self.load(record_set_id), config)
        return self._result(record_set_id, plan, written=False)

    def generate(self, record_set_id: str, config: BatchConfiguration) -> GenerationResult:
        """Replace any earlier output of this record set with a fresh one."""
        with LogContext.bind(record_set_id=record_set_id):
            plan = self.plan(self.load(record_set_id), config)
            return self._write(record_set_id, plan, config)

    def generate_hierarchy(
        self,
        record_set_id: str,
        sources: Sequence[tuple[str, RecordSet]],
        config: BatchConfiguration,
    ) -> GenerationResult:
        """
        One sitemap per named source record set plus an index over all of
        them, stored under ``record_set_id``.  Grouping is ignored; index
        locations use ``config.base_url``.
        """
        with LogContext.bind(record_set_id=record_set_id):
            plan = plan_hierarchy(
                sources=[(name, record_set.records) for name, record_set in sources],
                max_per_file=config.max_per_file,
                generated_on=self._clock.today(),
            )
            return self._write(record_set_id, plan, config)

    def documents(self, record_set_id: str) -> tuple[SitemapDocument, ...]:
        """Every stored document of a record set, sorted by name."""
        prefix = sitemap_prefix(record_set_id)
        return tuple(
            SitemapDocument(name=key[len(prefix):], content=self._blob_store.load(key))
            for key in self._blob_store.list(prefix)
        )

    def clear(self, record_set_id: str) -> int:
        """Delete previously generated documents; returns how many went."""
        removed = 0
        for key in self._blob_store.list(sitemap_prefix(record_set_id)):
            if self._blob_store.delete(key):
                removed += 1
        return removed

    def _write(
        self, record_set_id: str, plan: SitemapPlan, config: BatchConfiguration
    ) -> GenerationResult:
        removed = self.clear(record_set_id)

        for sitemap_file in plan.files:
            self._blob_store.save(
                sitemap_key(record_set_id, sitemap_file.name),
                render_urlset(sitemap_file.records),
            )
        if plan.index is not None:
            self._blob_store.save(
                sitemap_key(record_set_id, plan.index.name),
                render_index(plan.index, config.base_url),
            )

        result = self._result(record_set_id, plan, written=True)
        logger.info(
            "sitemaps_generated",
            extra={
                "file_count": len(result.files),
                "has_index": result.has_index,
                "total_urls": result.total_urls,
                "stale_removed": removed,
            },
        )
        return result

    @staticmethod
    def _result(record_set_id: str, plan: SitemapPlan, written: bool) -> GenerationResult:
        return GenerationResult(
            record_set_id=record_set_id,
            files=tuple(
                GeneratedFile(
                    name=f.name,
                    url_count=f.count,
                    group_key=f.group_key,
                    chunk_index=f.chunk_index,
                )
                for f in plan.files
            ),
            has_index=plan.has_index,
            index_name=plan.index.name if plan.index else None,
            total_urls=plan.total_urls,
            written=written,
        )
