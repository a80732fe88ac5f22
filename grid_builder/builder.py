from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np

from common.geo import cell_key, cell_size, lat_lng_to_grid, zoom_key
from common.types import (
    BuildResult,
    CountrySummary,
    GridCell,
    GridMetadata,
    GridStats,
    MinimalSummary,
    PointRecord,
    project,
)
from common.utils import iso_now_ms

log = logging.getLogger(__name__)


def dedupe_points(points: Iterable[PointRecord]) -> List[PointRecord]:
    """
    Upsert by id: a later record replaces an earlier one at the earlier's
    position, so every id is indexed once.
    """
    by_id: Dict[str, PointRecord] = {}
    for p in points:
        if p.id in by_id:
            log.warning("Duplicate point id; later record wins", extra={"extra": {"id": p.id, "path": p.path}})
        by_id[p.id] = p
    return list(by_id.values())


def country_centroids(points: Sequence[PointRecord]) -> Dict[str, Tuple[float, float]]:
    """Arithmetic mean (lat, lng) per country."""
    groups: Dict[str, List[Tuple[float, float]]] = {}
    for p in points:
        groups.setdefault(p.country, []).append((p.latitude, p.longitude))
    out: Dict[str, Tuple[float, float]] = {}
    for country, coords in groups.items():
        arr = np.asarray(coords, dtype=float)
        mean = arr.mean(axis=0)
        out[country] = (float(mean[0]), float(mean[1]))
    return out


class GridBuilder:
    """
    Partitions points into cells at every grid zoom level.

    `build` is a pure function of its input (plus the `generated` stamp):
    the same point sequence always yields the same cells, in the same
    order, with the same payloads. Persisting is GridStore's job.
    """

    def __init__(self, zoom_levels: Sequence[int] = (2, 4, 6, 8), detailed_zoom: int = 6, max_amenities: int = 3):
        if not zoom_levels:
            raise ValueError("zoom_levels must not be empty")
        self.zoom_levels = tuple(sorted(int(z) for z in zoom_levels))
        self.detailed_zoom = int(detailed_zoom)
        self.max_amenities = int(max_amenities)

    def cells_for_zoom(self, points: Sequence[PointRecord], zoom: int) -> Dict[str, GridCell]:
        """Accumulate one zoom level; `points` must already be unique by id."""
        size = cell_size(zoom)
        cells: Dict[str, GridCell] = {}
        for p in points:
            x, y = lat_lng_to_grid(p.latitude, p.longitude, size)
            key = cell_key(x, y)
            cell = cells.get(key)
            if cell is None:
                cell = GridCell.empty(zoom, x, y)
                cells[key] = cell
            # ids are unique here, so append directly instead of an O(n) upsert
            cell.points.append(project(p, zoom, self.detailed_zoom, self.max_amenities))
        return dict(sorted(cells.items()))

    def build(self, points: Iterable[PointRecord], generated: Optional[str] = None) -> BuildResult:
        generated = generated or iso_now_ms()
        unique = dedupe_points(points)

        stats = GridStats()
        for p in unique:
            stats.add_point(p)

        cells: Dict[int, Dict[str, GridCell]] = {}
        for zoom in self.zoom_levels:
            cells[zoom] = self.cells_for_zoom(unique, zoom)
            stats.grid_cell_counts[zoom_key(zoom)] = len(cells[zoom])
            log.info(
                "Indexed zoom level",
                extra={"extra": {"zoom": zoom, "size_deg": cell_size(zoom), "cells": len(cells[zoom])}},
            )

        metadata = GridMetadata(generated=generated, zoom_levels=self.zoom_levels, stats=stats)
        summary = self.summarize(unique, stats, generated)
        return BuildResult(cells=cells, metadata=metadata, summary=summary)

    def summarize(self, points: Sequence[PointRecord], stats: GridStats, generated: str) -> MinimalSummary:
        centroids = country_centroids(points)
        rows = [
            CountrySummary(country=country, count=count, centroid=centroids.get(country))
            for country, count in sorted(stats.country_counts.items())
        ]
        return MinimalSummary(generated=generated, total=stats.total_points, summary=rows, centroids_exact=True)
