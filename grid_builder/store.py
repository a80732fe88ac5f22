"""
On-disk layout of the grid index.

    {grid_root}/
      ├─ z{zoom}/
      │   └─ {x}-{y}.json     (one per non-empty cell)
      └─ meta/
          ├─ stats.json       (generated, gridConfig, stats, worldBounds)
          └─ bounds.json      (per-zoom cell bounds/count/countries, no points)
    {minimal_index_path}      (per-country count + centroid)

Cell files are compact JSON, metadata is indented; keys are always sorted
so identical content serialises to identical bytes.
"""

from __future__ import annotations

import json
import logging
import os
import shutil
from pathlib import Path
from typing import Any, Dict, List, Optional

from common.geo import parse_cell_key, zoom_key
from common.types import BuildResult, GridCell, GridMetadata, MinimalSummary
from common.utils import read_json, write_json
from grid_builder.errors import PersistError

log = logging.getLogger(__name__)


class GridStore:
    """Reads and writes the persisted grid. The builder is its only writer."""

    def __init__(self, grid_root: str | Path, minimal_index_path: str | Path):
        self.root = Path(grid_root)
        self.minimal_index_path = Path(minimal_index_path)

    # -------- paths --------

    def zoom_dir(self, zoom: int, root: Optional[Path] = None) -> Path:
        return (root or self.root) / zoom_key(zoom)

    def cell_path(self, zoom: int, key: str, root: Optional[Path] = None) -> Path:
        return self.zoom_dir(zoom, root) / f"{key}.json"

    def stats_path(self, root: Optional[Path] = None) -> Path:
        return (root or self.root) / "meta" / "stats.json"

    def bounds_path(self, root: Optional[Path] = None) -> Path:
        return (root or self.root) / "meta" / "bounds.json"

    # -------- reads --------

    def read_raw(self, path: Path) -> Optional[Any]:
        if not path.exists():
            return None
        try:
            return read_json(path)
        except (OSError, json.JSONDecodeError) as e:
            raise PersistError(f"Cannot read {path}: {e}") from e

    def read_cell(self, zoom: int, key: str) -> Optional[GridCell]:
        raw = self.read_raw(self.cell_path(zoom, key))
        if raw is None:
            return None
        x, y = parse_cell_key(key)
        return GridCell.from_dict(zoom, x, y, raw)

    def read_cell_raw(self, zoom: int, key: str) -> Optional[Dict[str, Any]]:
        return self.read_raw(self.cell_path(zoom, key))

    def read_metadata(self) -> Optional[GridMetadata]:
        raw = self.read_raw(self.stats_path())
        return None if raw is None else GridMetadata.from_dict(raw)

    def read_bounds_index(self) -> Dict[str, Dict[str, Any]]:
        return self.read_raw(self.bounds_path()) or {}

    def read_summary(self) -> Optional[MinimalSummary]:
        raw = self.read_raw(self.minimal_index_path)
        return None if raw is None else MinimalSummary.from_dict(raw)

    def cell_keys(self, zoom: int) -> List[str]:
        d = self.zoom_dir(zoom)
        if not d.is_dir():
            return []
        return sorted(p.stem for p in d.glob("*.json"))

    def count_cells(self, zoom: int) -> int:
        return len(self.cell_keys(zoom))

    # -------- writes --------

    def _write(self, path: Path, obj: Any, *, indent: Optional[int] = None) -> None:
        try:
            write_json(path, obj, indent=indent)
        except OSError as e:
            raise PersistError(f"Cannot write {path}: {e}") from e

    def write_cell(self, cell: GridCell, root: Optional[Path] = None) -> None:
        self._write(self.cell_path(cell.zoom, cell.key, root), cell.to_dict())

    def write_metadata(self, metadata: GridMetadata, root: Optional[Path] = None) -> None:
        self._write(self.stats_path(root), metadata.to_dict(), indent=2)

    def write_bounds_index(self, index: Dict[str, Dict[str, Any]], root: Optional[Path] = None) -> None:
        self._write(self.bounds_path(root), index)

    def write_summary(self, summary: MinimalSummary) -> None:
        self._write(self.minimal_index_path, summary.to_dict())

    def write_build(self, result: BuildResult, *, bounds_index: bool = True) -> None:
        """
        Persist a full build. Everything is written to a staging directory
        first and swapped in at the end; a failure leaves the previous grid
        untouched and raises PersistError.
        """
        staging = self.root.with_name(f".{self.root.name}.staging")
        previous = self.root.with_name(f".{self.root.name}.previous")
        try:
            for d in (staging, previous):
                if d.exists():
                    shutil.rmtree(d)
            staging.mkdir(parents=True)

            written = 0
            for cells in result.cells.values():
                for cell in cells.values():
                    self.write_cell(cell, staging)
                    written += 1
            self.write_metadata(result.metadata, staging)
            if bounds_index:
                self.write_bounds_index(result.bounds_index(), staging)

            if self.root.exists():
                os.replace(self.root, previous)
            os.replace(staging, self.root)
            if previous.exists():
                shutil.rmtree(previous)
        except (OSError, PersistError) as e:
            if not self.root.exists() and previous.exists():
                os.replace(previous, self.root)
            shutil.rmtree(staging, ignore_errors=True)
            if isinstance(e, PersistError):
                raise
            raise PersistError(f"Cannot persist grid to {self.root}: {e}") from e

        self.write_summary(result.summary)
        log.info("Persisted grid", extra={"extra": {"root": str(self.root), "cells": written}})
