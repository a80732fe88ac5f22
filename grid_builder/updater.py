"""
Incremental grid updates.

Patches the cells that a small change set touches instead of rebuilding
the whole index. Known limitations, reconciled only by a full rebuild:

- a point that moves or changes country/region keeps its old cell entry
  and its old classification counts (there is no previous-state signal);
- points cannot be removed (see `IncrementalUpdater.delete`);
- country centroids need the full point set, so the regenerated summary
  carries previous centroids forward and is flagged `centroidsExact: false`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from common.geo import cell_key, cell_size, lat_lng_to_grid, zoom_key
from common.types import (
    CountrySummary,
    GridCell,
    GridMetadata,
    GridStats,
    MinimalSummary,
    PointRecord,
    project,
)
from common.utils import iso_now_ms
from grid_builder.errors import DeletionUnsupportedError, PersistError
from grid_builder.store import GridStore

log = logging.getLogger(__name__)


@dataclass
class UpdateReport:
    processed: int = 0
    added: int = 0
    replaced: int = 0
    skipped: int = 0
    failed: int = 0
    failures: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.failed == 0

    def to_dict(self) -> Dict[str, int]:
        return {
            "processed": self.processed,
            "added": self.added,
            "replaced": self.replaced,
            "skipped": self.skipped,
            "failed": self.failed,
        }


class IncrementalUpdater:
    def __init__(
        self,
        store: GridStore,
        zoom_levels: Sequence[int] = (2, 4, 6, 8),
        detailed_zoom: int = 6,
        max_amenities: int = 3,
        patch_bounds_index: bool = True,
    ):
        self.store = store
        self.zoom_levels = tuple(sorted(int(z) for z in zoom_levels))
        self.detailed_zoom = int(detailed_zoom)
        self.max_amenities = int(max_amenities)
        self.patch_bounds_index = patch_bounds_index
        self.metadata: Optional[GridMetadata] = None
        # cells read or written during this change set, by (zoom, key)
        self._cells: Dict[Tuple[int, str], GridCell] = {}

    # -------- state --------

    def load_metadata(self) -> GridMetadata:
        if self.metadata is None:
            existing = self.store.read_metadata()
            if existing is None:
                log.info("No existing metadata found; starting a new index")
                existing = GridMetadata(generated=iso_now_ms(), zoom_levels=self.zoom_levels, stats=GridStats())
            self.metadata = existing
        return self.metadata

    def _cell(self, zoom: int, x: int, y: int) -> GridCell:
        key = cell_key(x, y)
        cell = self._cells.get((zoom, key))
        if cell is None:
            cell = self.store.read_cell(zoom, key) or GridCell.empty(zoom, x, y)
            self._cells[(zoom, key)] = cell
        return cell

    # -------- operations --------

    def upsert(self, point: PointRecord) -> bool:
        """
        Insert or replace `point` in its cell at every zoom level and persist
        each touched cell. Returns True when the id was absent from every
        target cell, which is the only case that bumps the global counters.

        Counters are bumped before the first write, so a point left in some
        cells by a failed write is still counted exactly once on retry.
        """
        meta = self.load_metadata()
        targets: List[GridCell] = []
        for zoom in self.zoom_levels:
            x, y = lat_lng_to_grid(point.latitude, point.longitude, cell_size(zoom))
            targets.append(self._cell(zoom, x, y))

        is_new = all(cell.index_of(point.id) < 0 for cell in targets)
        if is_new:
            meta.stats.add_point(point)

        written = 0
        for cell in targets:
            cell.upsert(project(point, cell.zoom, self.detailed_zoom, self.max_amenities))
            try:
                # countries/regions are re-derived from the whole point list here
                self.store.write_cell(cell)
            except PersistError:
                # memory is now ahead of disk; re-read on next touch
                self._cells.pop((cell.zoom, cell.key), None)
                if is_new and not written:
                    meta.stats.discard_point(point)
                raise
            written += 1
        return is_new

    def delete(self, point_id: str) -> None:
        """Removal needs cell-membership tracking the index does not keep."""
        log.error("Incremental deletion is unsupported; run a full rebuild", extra={"extra": {"id": point_id}})
        raise DeletionUnsupportedError(f"Cannot remove {point_id!r} incrementally; run a full rebuild")

    def apply(self, points: Iterable[PointRecord], report: Optional[UpdateReport] = None) -> UpdateReport:
        """Upsert each point; persist failures are logged and not retried."""
        report = report or UpdateReport()
        for point in points:
            report.processed += 1
            try:
                if self.upsert(point):
                    report.added += 1
                else:
                    report.replaced += 1
            except PersistError as e:
                report.failed += 1
                report.failures.append(point.id)
                log.error("Failed to persist point", extra={"extra": {"id": point.id, "error": str(e)}})
                continue
            log.debug("Updated grid cells", extra={"extra": {"id": point.id, "name": point.name}})
        return report

    def finalize(self) -> GridMetadata:
        """Recount persisted cells, rewrite metadata, bounds index and summary."""
        meta = self.load_metadata()
        meta.generated = iso_now_ms()
        meta.zoom_levels = tuple(sorted(set(meta.zoom_levels) | set(self.zoom_levels)))
        for zoom in meta.zoom_levels:
            meta.stats.grid_cell_counts[zoom_key(zoom)] = self.store.count_cells(zoom)
        self.store.write_metadata(meta)

        if self.patch_bounds_index and self._cells:
            index = self.store.read_bounds_index()
            for (zoom, key), cell in sorted(self._cells.items()):
                if cell.count:
                    index.setdefault(zoom_key(zoom), {})[key] = cell.bounds_entry()
            self.store.write_bounds_index({z: dict(sorted(v.items())) for z, v in sorted(index.items())})

        self.store.write_summary(self.summarize(meta))
        return meta

    def summarize(self, meta: GridMetadata) -> MinimalSummary:
        previous = self.store.read_summary()
        known = {s.country: s.centroid for s in previous.summary} if previous else {}
        rows = [
            CountrySummary(country=country, count=count, centroid=known.get(country))
            for country, count in sorted(meta.stats.country_counts.items())
        ]
        return MinimalSummary(
            generated=meta.generated,
            total=meta.stats.total_points,
            summary=rows,
            centroids_exact=False,
        )
