"""
Grouping & chunking engine.

Contract:
    plan_sitemaps() partitions a URL record set into groups, splits every
    group into consecutive chunks of at most ``max_per_file`` records, names
    each chunk, and adds an index exactly when more than one file results.

Grouping modes:
    none      -- one group holding every record.
    auto      -- record group keys are ignored; once the total exceeds
                 ``max_per_file`` the records are split by position into
                 synthetic groups ``part-1``, ``part-2`` ...
    preserve  -- records keep the group key assigned at conversion time.
    <field>   -- same partitioning as preserve; the key was derived from the
                 named column at conversion time.

Naming:
    one group with one chunk      -> sitemap.xml
    default group, chunk n        -> sitemap_{n}.xml
    any other group g, chunk n    -> sitemap_{g}_{n}.xml

Invariants enforced:
    - Every input record lands in exactly one file, in original relative order.
    - No file holds more than ``max_per_file`` records.
    - Keys that sanitize to the same value share one group.
    - Pure: the index date is a parameter, never read from a clock.

Hierarchy:
    plan_hierarchy() ignores grouping.  Each source file becomes its own
    sitemap named after the file (``{stem}.xml``, or ``{stem}_{n}.xml`` when
    it needs more than one chunk) and the index is always present.  Clashing
    stems get ``_2``, ``_3`` suffixes.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from pathlib import PurePath
from typing import Sequence

from sitemap_config.schema import GROUPING_AUTO, GROUPING_NONE
from sitemap_engines.tracer import traced_engine
from sitemap_ingestion.domain.types import UrlRecord
from sitemap_ingestion.mapping.engine import DEFAULT_GROUP_KEY, sanitize_group_name
from sitemap_kernel.exceptions import AssemblyError

DEFAULT_SITEMAP_NAME = "sitemap.xml"
INDEX_FILE_NAME = "sitemap_index.xml"
AUTO_GROUP_PREFIX = "part"


# =============================================================================
# Plan types
# =============================================================================


@dataclass(frozen=True)
class SitemapFile:
    """One output document: a size-bounded chunk of one group."""

    name: str
    group_key: str
    chunk_index: int  # 1-based within its group
    records: tuple[UrlRecord, ...]

    @property
    def count(self) -> int:
        return len(self.records)


@dataclass(frozen=True)
class SitemapIndex:
    """Index document listing every sitemap file of a run."""

    entries: tuple[str, ...]
    lastmod: date
    name: str = INDEX_FILE_NAME


@dataclass(frozen=True)
class SitemapPlan:
    files: tuple[SitemapFile, ...]
    index: SitemapIndex | None = None

    @property
    def has_index(self) -> bool:
        return self.index is not None

    @property
    def total_urls(self) -> int:
        return sum(f.count for f in self.files)

    @property
    def groups(self) -> tuple[str, ...]:
        return tuple(dict.fromkeys(f.group_key for f in self.files))


# =============================================================================
# Pure steps
# =============================================================================


def chunk_records(
    records: Sequence[UrlRecord], max_per_file: int
) -> list[tuple[UrlRecord, ...]]:
    """Consecutive slices of at most ``max_per_file`` records."""
    if max_per_file < 1:
        raise AssemblyError(f"max_per_file must be positive, got {max_per_file}")
    return [
        tuple(records[start : start + max_per_file])
        for start in range(0, len(records), max_per_file)
    ]


def partition_records(
    records: Sequence[UrlRecord],
    grouping: str,
    max_per_file: int,
) -> list[tuple[str, list[UrlRecord]]]:
    """Groups in order of first appearance; empty groups never appear."""
    if not records:
        return []
    if grouping == GROUPING_NONE:
        return [(DEFAULT_GROUP_KEY, list(records))]
    if grouping == GROUPING_AUTO:
        if len(records) <= max_per_file:
            return [(DEFAULT_GROUP_KEY, list(records))]
        return [
            (f"{AUTO_GROUP_PREFIX}-{i}", list(chunk))
            for i, chunk in enumerate(chunk_records(records, max_per_file), start=1)
        ]

    groups: dict[str, list[UrlRecord]] = {}
    for record in records:
        key = sanitize_group_name(record.group_key) or "default"
        groups.setdefault(key, []).append(record)
    return list(groups.items())


def sitemap_file_name(group_key: str, chunk_index: int, single: bool = False) -> str:
    if single:
        return DEFAULT_SITEMAP_NAME
    if group_key == DEFAULT_GROUP_KEY:
        return f"sitemap_{chunk_index}.xml"
    return f"sitemap_{group_key}_{chunk_index}.xml"


def _describe_plan(plan: SitemapPlan) -> dict[str, object]:
    return {
        "file_count": len(plan.files),
        "url_count": plan.total_urls,
        "has_index": plan.has_index,
    }


@traced_engine(
    "sitemap_chunking",
    "1.0",
    fingerprint_fields=("records", "grouping", "max_per_file"),
    describe_result=_describe_plan,
)
def plan_sitemaps(
    *,
    records: Sequence[UrlRecord],
    grouping: str,
    max_per_file: int,
    generated_on: date,
) -> SitemapPlan:
    """Partition, chunk, name, and decide on the index."""
    if max_per_file < 1:
        raise AssemblyError(f"max_per_file must be positive, got {max_per_file}")

    chunked = [
        (key, chunk_records(group, max_per_file))
        for key, group in partition_records(records, grouping, max_per_file)
    ]
    single = len(chunked) == 1 and len(chunked[0][1]) == 1

    files = tuple(
        SitemapFile(
            name=sitemap_file_name(key, index, single),
            group_key=key,
            chunk_index=index,
            records=chunk,
        )
        for key, chunks in chunked
        for index, chunk in enumerate(chunks, start=1)
    )

    index = None
    if len(files) > 1:
        index = SitemapIndex(entries=tuple(f.name for f in files), lastmod=generated_on)
    return SitemapPlan(files=files, index=index)


# =============================================================================
# Hierarchy: one sitemap per source file
# =============================================================================


def hierarchy_stem(source_name: str) -> str:
    """Source file name without its extension."""
    return PurePath(source_name).stem or "sitemap"


def _stem_file_names(stem: str, chunk_count: int) -> list[str]:
    if chunk_count == 1:
        return [f"{stem}.xml"]
    return [f"{stem}_{n}.xml" for n in range(1, chunk_count + 1)]


def _describe_hierarchy(plan: SitemapPlan) -> dict[str, object]:
    return {**_describe_plan(plan), "source_count": len(plan.groups)}


@traced_engine(
    "sitemap_hierarchy",
    "1.0",
    fingerprint_fields=("sources", "max_per_file"),
    describe_result=_describe_hierarchy,
)
def plan_hierarchy(
    *,
    sources: Sequence[tuple[str, Sequence[UrlRecord]]],
    max_per_file: int,
    generated_on: date,
) -> SitemapPlan:
    """
    One sitemap per ``(source_name, records)`` pair, in input order, under
    one index.  Sources without records produce no file.
    """
    if max_per_file < 1:
        raise AssemblyError(f"max_per_file must be positive, got {max_per_file}")

    used = {INDEX_FILE_NAME}
    files: list[SitemapFile] = []
    for source_name, records in sources:
        if not records:
            continue
        chunks = chunk_records(records, max_per_file)
        base = hierarchy_stem(source_name)
        stem, suffix = base, 1
        names = _stem_file_names(stem, len(chunks))
        while any(name in used for name in names):
            suffix += 1
            stem = f"{base}_{suffix}"
            names = _stem_file_names(stem, len(chunks))
        used.update(names)
        files.extend(
            SitemapFile(name=name, group_key=stem, chunk_index=index, records=chunk)
            for index, (name, chunk) in enumerate(zip(names, chunks), start=1)
        )

    index = SitemapIndex(entries=tuple(f.name for f in files), lastmod=generated_on)
    return SitemapPlan(files=tuple(files), index=index)
