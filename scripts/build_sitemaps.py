#!/usr/bin/env python3
"""
Convert product files into sitemaps: submit one batch, wait, generate.

Every file becomes one task of a single batch.  Uploads, URL record sets
and generated documents all land below --output, laid out per batch:

    <output>/<batch>/uploads/...
    <output>/<batch>/records/<task>.json
    <output>/<batch>/sitemaps/<record set>/sitemap*.xml
    <output>/<batch>/batch.json

Usage:
    python3 scripts/build_sitemaps.py --config <yaml> --file <path> [--file <path> ...] [options]

Examples:
    # One sitemap set per file
    python3 scripts/build_sitemaps.py --config sitemap.yaml --file a.csv --file b.xlsx

    # One merged sitemap set for the whole batch
    python3 scripts/build_sitemaps.py --config sitemap.yaml --file a.csv --file b.csv --merge

    # One sitemap per file (a.xml, b.xml) under sitemap_index.xml
    python3 scripts/build_sitemaps.py --config sitemap.yaml --file a.csv --file b.csv --hierarchical

    # Show the first rows and URLs of each file without writing anything
    python3 scripts/build_sitemaps.py --config sitemap.yaml --file a.csv --preview
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

# Project root on sys.path
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Convert CSV/XLSX/JSON product files into XML sitemaps.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--config",
        required=True,
        type=Path,
        help="Batch configuration YAML (column mapping, URL template, options).",
    )
    parser.add_argument(
        "--file",
        dest="files",
        required=True,
        action="append",
        type=Path,
        help="Source file (CSV, XLSX, XLS or JSON). Repeat for several files.",
    )
    parser.add_argument(
        "--output",
        type=Path,
        default=Path("sitemap_output"),
        help="Output directory (default: ./sitemap_output).",
    )
    layout = parser.add_mutually_exclusive_group()
    layout.add_argument(
        "--merge",
        action="store_true",
        help="Generate one sitemap set from all completed files instead of one per file.",
    )
    layout.add_argument(
        "--hierarchical",
        action="store_true",
        help="Generate one sitemap per completed file, named after it, under one index.",
    )
    parser.add_argument(
        "--preview",
        action="store_true",
        help="Preview the first rows and URLs of each file. No writes.",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Give up waiting for the batch after this many seconds (default: wait).",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        help="Log level for the JSON log stream on stderr (default: WARNING).",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)

    paths = [p.resolve() for p in args.files]
    for path in paths:
        if not path.is_file():
            print(f"ERROR: File not found: {path}", file=sys.stderr)
            return 1

    # Lazy imports so we fail fast on args first
    from sitemap_batch.domain.types import BatchStatus, TaskStatus
    from sitemap_batch.orchestrator import SitemapOrchestrator, UploadedFile
    from sitemap_config.loader import load_configuration
    from sitemap_kernel.exceptions import ConfigurationError, SitemapKernelError
    from sitemap_kernel.logging_config import configure_logging
    from sitemap_kernel.services.blob_store import FileSystemBlobStore

    configure_logging(level=args.log_level.upper(), stream=sys.stderr)

    try:
        config = load_configuration(args.config)
    except ConfigurationError as e:
        print(f"ERROR: Invalid configuration: {e}", file=sys.stderr)
        for error in e.errors:
            print(f"  - {error}", file=sys.stderr)
        return 1

    uploads = [UploadedFile(name=p.name, content=p.read_bytes()) for p in paths]

    if args.preview:
        orchestrator = SitemapOrchestrator.create(autostart=False)
        previews = []
        try:
            for upload in uploads:
                previews.append(orchestrator.preview_file(upload, config))
        except SitemapKernelError as e:
            print(f"ERROR: {e}", file=sys.stderr)
            return 1
        finally:
            orchestrator.shutdown()
        for preview in previews:
            print(f"{preview.source_name}: {preview.total_rows} rows")
            print(f"  Columns: {list(preview.headers)}")
            for url in preview.sample_urls:
                print(f"  {url}")
            for exclusion in preview.sample_exclusions:
                print(f"  Row {exclusion.row_number}: {exclusion.reason}")
            for message in preview.placeholder_errors:
                print(f"  ERROR: {message}")
        return 0 if all(p.is_valid for p in previews) else 1

    orchestrator = SitemapOrchestrator.create(
        blob_store=FileSystemBlobStore(args.output),
        poll_interval_seconds=0.2,
    )
    try:
        try:
            batch_id = orchestrator.submit_batch(uploads, config)
        except SitemapKernelError as e:
            print(f"ERROR: {e}", file=sys.stderr)
            return 1

        print(f"Submitted batch {batch_id} with {len(uploads)} file(s)...", file=sys.stderr)
        report = orchestrator.wait(batch_id, timeout=args.timeout)

        generated = []
        completed = [
            t for t in report.tasks
            if t.status is TaskStatus.COMPLETED and t.result_ref is not None
        ]
        if completed and args.merge:
            generated.append(orchestrator.generate_batch_sitemaps(batch_id, config))
        elif completed and args.hierarchical:
            generated.append(orchestrator.generate_hierarchical_sitemaps(batch_id, config))
        else:
            for task in completed:
                generated.append(orchestrator.generate_sitemaps(task.result_ref, config))

        print(
            json.dumps(
                {
                    "batch": report.to_dict(),
                    "sitemaps": [g.to_dict() for g in generated],
                    "output": str(args.output.resolve()),
                },
                indent=2,
            )
        )
        return 0 if report.status is BatchStatus.COMPLETED else 1
    finally:
        orchestrator.shutdown()


if __name__ == "__main__":
    sys.exit(main())
