"""
Build entry points shared by the CLI and any build hook.

There is one authoritative full build (`run_full_build`); the gated variant
(`run_if_needed`) and the incremental path are thin wrappers around the
same GridBuilder / GridStore / CacheInvalidator instances.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence

from common.config import GridSettings
from common.types import BuildResult
from grid_builder.builder import GridBuilder
from grid_builder.cache import CacheInvalidator
from grid_builder.sources import MarkdownPointSource
from grid_builder.store import GridStore
from grid_builder.updater import IncrementalUpdater, UpdateReport

log = logging.getLogger(__name__)


@dataclass
class Components:
    source: MarkdownPointSource
    store: GridStore
    cache: CacheInvalidator
    builder: GridBuilder


def components(settings: GridSettings) -> Components:
    src = settings.source
    b = settings.build
    source = MarkdownPointSource(src.content_root, pattern=src.pattern, path_prefix=src.path_prefix)
    return Components(
        source=source,
        store=GridStore(b.grid_root, b.minimal_index_path),
        cache=CacheInvalidator(source, b.cache_path),
        builder=GridBuilder(b.zoom_levels, detailed_zoom=b.detailed_zoom, max_amenities=b.max_amenities),
    )


def run_full_build(settings: GridSettings, generated: Optional[str] = None) -> BuildResult:
    """
    Fingerprint → load → build → persist → save cache.

    The fingerprint is taken before reading so an edit made mid-build is
    picked up by the next run. A PersistError propagates before the cache
    is saved, so the next invocation retries the full build.
    """
    c = components(settings)
    t0 = time.perf_counter()
    files = c.source.list_files()
    content_hash = c.cache.fingerprint(files)

    points, report = c.source.load_points(files, max_workers=settings.build.max_concurrent_files)
    result = c.builder.build(points, generated=generated)
    c.store.write_build(result, bounds_index=settings.build.generate_bounds_index)

    c.cache.save(
        content_hash,
        {
            "filesProcessed": report.files,
            "totalPoints": result.metadata.stats.total_points,
            "gridCellsGenerated": result.cell_count(),
        },
    )
    log.info(
        "Grid generation complete",
        extra={
            "extra": {
                "points": result.metadata.stats.total_points,
                "skipped": report.skipped,
                "cells": result.metadata.stats.grid_cell_counts,
                "elapsed_s": round(time.perf_counter() - t0, 2),
            }
        },
    )
    return result


def run_if_needed(settings: GridSettings, force: bool = False) -> bool:
    """Run a full build only when the source fingerprint changed. Returns True if built."""
    c = components(settings)
    if not force and not c.cache.needs_rebuild():
        log.info("Skipping generation", extra={"extra": {"grid_root": settings.build.grid_root}})
        return False
    run_full_build(settings)
    return True


def resolve_changed_files(
    source: MarkdownPointSource, files: Optional[Sequence[str]] = None, region: Optional[str] = None
) -> List[Path]:
    """Explicit list, a region filter, or every known source file."""
    if region:
        return source.files_for_region(region)
    if files:
        return [Path(f) for f in files if str(f).endswith(".md")]
    return source.list_files()


def run_incremental(
    settings: GridSettings, files: Optional[Sequence[str]] = None, region: Optional[str] = None
) -> UpdateReport:
    """
    Patch the cells touched by a change set. The cache sidecar is left
    alone, so a later gated build still sees changed content and rebuilds.
    """
    c = components(settings)
    b = settings.build
    paths = resolve_changed_files(c.source, files, region)
    missing = [p for p in paths if not p.exists()]
    for p in missing:
        # a vanished source is a deletion, which this path cannot apply
        log.warning(
            "Source file removed; its point stays indexed until a full rebuild",
            extra={"extra": {"path": str(p)}},
        )
    paths = [p for p in paths if p.exists()]
    log.info("Incremental update", extra={"extra": {"files": len(paths), "region": region}})

    points, load_report = c.source.load_points(paths, max_workers=b.max_concurrent_files)
    updater = IncrementalUpdater(
        c.store,
        b.zoom_levels,
        detailed_zoom=b.detailed_zoom,
        max_amenities=b.max_amenities,
        patch_bounds_index=b.generate_bounds_index,
    )
    report = UpdateReport(skipped=load_report.skipped + len(missing))
    updater.apply(points, report)
    meta = updater.finalize()
    log.info(
        "Incremental update complete",
        extra={"extra": {**report.to_dict(), "total_points": meta.stats.total_points}},
    )
    return report


def status(settings: GridSettings) -> dict:
    c = components(settings)
    record = c.cache.load()
    current = c.cache.fingerprint()
    meta = c.store.read_metadata()
    return {
        "contentHash": current,
        "cachedHash": record.content_hash if record else None,
        "lastGenerated": record.last_generated if record else None,
        "needsRebuild": record is None or record.content_hash != current,
        "totalPoints": meta.stats.total_points if meta else 0,
        "gridCellCounts": meta.stats.grid_cell_counts if meta else {},
    }
