"""
Client-side grid loader.

Maps a map viewport + display zoom to the grid cells it needs, fetches the
missing ones over HTTP with bounded concurrency, caches them (including
"known empty" cells) and returns only the points inside the viewport.

Usage:
    with GridLoader("http://localhost:8000/api/grid") as loader:
        loader.init()
        view = Viewport(south=48.0, west=-125.0, north=50.0, east=-120.0, zoom=8)
        result = loader.load_for_view(view)
        # result.points -> List[FullProjection | MinimalProjection]

One loader per consumer; its cache is instance state, never module state.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence, Tuple, Union

import requests

from common.config import GridSettings
from common.geo import cell_size, cells_in_span, cell_key, parse_cell_key
from common.types import GridCell, PointProjection
from common.utils import batched, dump_json

log = logging.getLogger(__name__)


class _EmptyCell:
    """Marker for a cell that was fetched and has no data (404 or failed fetch)."""

    __slots__ = ()

    def __repr__(self) -> str:
        return "EMPTY"


EMPTY = _EmptyCell()

CacheEntry = Union[GridCell, _EmptyCell]


@dataclass(frozen=True)
class Viewport:
    """
    Visible map rectangle in degrees plus the continuous display zoom.
    west > east means the view crosses the antimeridian.
    """
    south: float
    west: float
    north: float
    east: float
    zoom: float

    def __post_init__(self) -> None:
        if self.south > self.north:
            raise ValueError("south must be <= north")
        if not (-90.0 <= self.south <= 90.0 and -90.0 <= self.north <= 90.0):
            raise ValueError("latitude out of range")
        if not (-180.0 <= self.west <= 180.0 and -180.0 <= self.east <= 180.0):
            raise ValueError("longitude out of range")

    @property
    def crosses_antimeridian(self) -> bool:
        return self.west > self.east

    def lng_spans(self) -> List[Tuple[float, float]]:
        if self.crosses_antimeridian:
            return [(self.west, 180.0), (-180.0, self.east)]
        return [(self.west, self.east)]

    def contains(self, lat: float, lng: float) -> bool:
        if not (self.south <= lat <= self.north):
            return False
        return any(w <= lng <= e for w, e in self.lng_spans())

    @property
    def bounds(self) -> Tuple[float, float, float, float]:
        return (self.south, self.west, self.north, self.east)


@dataclass
class ViewResult:
    points: List[PointProjection] = field(default_factory=list)
    grid_zoom: int = 0
    cells_visible: int = 0
    cells_fetched: int = 0

    @property
    def total_in_view(self) -> int:
        return len(self.points)


class GridLoader:
    def __init__(
        self,
        base_url: str,
        session: Optional[requests.Session] = None,
        zoom_levels: Sequence[int] = (2, 4, 6, 8),
        thresholds: Optional[Mapping[int, float]] = None,
        max_concurrency: int = 10,
        timeout: float = 5.0,
        summary_url: Optional[str] = None,
    ):
        """
        Params:
            base_url: grid root URL, e.g. "http://host/api/grid"
            session: optional requests.Session (or anything with .get) for connection reuse
            zoom_levels: grid zooms available on the server (refreshed by init())
            thresholds: {grid_zoom: highest display zoom it serves}; above the
                last threshold the finest grid zoom is used
            max_concurrency: fetches in flight per batch
            timeout: per-request timeout in seconds
        """
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be >= 1")
        self.base_url = base_url.rstrip("/")
        self.summary_url = summary_url or f"{self.base_url.rsplit('/', 1)[0]}/points-minimal.json"
        self._owns_session = session is None
        self.session = session or requests.Session()
        self.zoom_levels = tuple(sorted(int(z) for z in zoom_levels))
        self.thresholds = dict(sorted((thresholds or {2: 4.0, 4: 7.0, 6: 10.0}).items()))
        self._check_thresholds()
        self.max_concurrency = int(max_concurrency)
        self.timeout = float(timeout)
        self.metadata: Optional[Dict] = None

        self._lock = threading.Lock()
        self._cache: Dict[Tuple[int, str], CacheEntry] = {}
        self._attempted: set[Tuple[int, str]] = set()
        self._generation = 0
        self._last_view: Optional[Tuple[int, Tuple[float, float, float, float]]] = None
        self._pool: Optional[ThreadPoolExecutor] = None

    @classmethod
    def from_settings(cls, settings: GridSettings, session: Optional[requests.Session] = None) -> "GridLoader":
        s = settings.loader
        return cls(
            s.base_url,
            session=session,
            zoom_levels=settings.build.zoom_levels,
            thresholds=s.display_thresholds,
            max_concurrency=s.max_concurrency,
            timeout=s.timeout_s,
        )

    def _check_thresholds(self) -> None:
        limits = list(self.thresholds.values())
        if any(b < a for a, b in zip(limits, limits[1:])):
            raise ValueError("display thresholds must not decrease as grid zoom increases")

    # ----------------------------
    # Public API
    # ----------------------------
    def init(self) -> None:
        """Load grid metadata; keep the configured zoom levels if unavailable."""
        try:
            r = self.session.get(f"{self.base_url}/meta/stats.json", timeout=self.timeout)
            if r.status_code != 200:
                log.warning("Grid metadata unavailable: %s", r.status_code)
                return
            self.metadata = r.json()
            zooms = tuple(sorted(int(z) for z in self.metadata.get("gridConfig", {})))
            if zooms:
                self.zoom_levels = zooms
        except (requests.RequestException, ValueError) as e:
            log.warning("Failed to load grid metadata: %s", e)

    def map_zoom_to_grid_zoom(self, display_zoom: float) -> int:
        """Monotonic step function from display zoom to a grid zoom level."""
        for grid_zoom, limit in self.thresholds.items():
            if grid_zoom in self.zoom_levels and display_zoom <= limit:
                return grid_zoom
        return self.zoom_levels[-1]

    def visible_cells(self, viewport: Viewport, grid_zoom: int) -> List[str]:
        """Keys ("x-y") of every cell intersecting the viewport, edges inclusive."""
        size = cell_size(grid_zoom)
        keys: Dict[str, None] = {}
        for west, east in viewport.lng_spans():
            for x, y in cells_in_span(viewport.south, west, viewport.north, east, size):
                keys[cell_key(x, y)] = None
        return list(keys)

    def cell_url(self, grid_zoom: int, key: str) -> str:
        return f"{self.base_url}/z{grid_zoom}/{key}.json"

    def fetch_cell(self, grid_zoom: int, key: str) -> CacheEntry:
        """GET one cell. Never raises: missing cells and transport errors are EMPTY."""
        url = self.cell_url(grid_zoom, key)
        try:
            r = self.session.get(url, timeout=self.timeout)
            if r.status_code == 404:
                return EMPTY
            if r.status_code != 200:
                log.warning("Grid cell request failed: %s %s", r.status_code, url)
                return EMPTY
            x, y = parse_cell_key(key)
            return GridCell.from_dict(grid_zoom, x, y, r.json())
        except requests.RequestException as e:
            log.warning("Grid cell request error: %s (%s)", url, e)
            return EMPTY
        except (ValueError, KeyError, TypeError) as e:
            log.warning("Undecodable grid cell: %s (%s)", url, e)
            return EMPTY

    def load_for_view(self, viewport: Viewport) -> ViewResult:
        grid_zoom = self.map_zoom_to_grid_zoom(viewport.zoom)
        view = (grid_zoom, viewport.bounds)

        with self._lock:
            unchanged = view == self._last_view
            self._last_view = view
        if unchanged:
            # rebuilt from the cache; fetches claimed by overlapping calls may have landed since
            return self.cached_points(grid_zoom, viewport)

        with self._lock:
            visible = self.visible_cells(viewport, grid_zoom)
            # claim under the lock so overlapping calls never fetch the same cell twice
            claimed = [k for k in visible if (grid_zoom, k) not in self._attempted]
            self._attempted.update((grid_zoom, k) for k in claimed)
            generation = self._generation

        log.debug(
            "Loading %d new grid cells out of %d visible for zoom %d", len(claimed), len(visible), grid_zoom
        )
        fetched = 0
        for batch in batched(claimed, self.max_concurrency):
            results = list(self._executor().map(lambda k: self.fetch_cell(grid_zoom, k), batch))
            with self._lock:
                if generation != self._generation:
                    # cache was cleared mid-flight; drop results for the old index
                    break
                for key, entry in zip(batch, results):
                    self._cache[(grid_zoom, key)] = entry
                    fetched += entry is not EMPTY

        result = self.cached_points(grid_zoom, viewport, visible)
        result.cells_fetched = fetched
        return result

    def cached_points(
        self, grid_zoom: int, viewport: Viewport, visible: Optional[List[str]] = None
    ) -> ViewResult:
        """Points from cached cells that fall inside the viewport itself."""
        visible = visible if visible is not None else self.visible_cells(viewport, grid_zoom)
        points: List[PointProjection] = []
        with self._lock:
            entries = [self._cache.get((grid_zoom, k)) for k in visible]
        for entry in entries:
            if not isinstance(entry, GridCell):
                continue
            points.extend(p for p in entry.points if viewport.contains(p.latitude, p.longitude))
        return ViewResult(points=points, grid_zoom=grid_zoom, cells_visible=len(visible))

    def is_known_empty(self, grid_zoom: int, key: str) -> bool:
        with self._lock:
            return self._cache.get((grid_zoom, key)) is EMPTY

    def was_attempted(self, grid_zoom: int, key: str) -> bool:
        with self._lock:
            return (grid_zoom, key) in self._attempted

    def country_summary(self) -> Optional[Dict]:
        try:
            r = self.session.get(self.summary_url, timeout=self.timeout)
            if r.status_code != 200:
                log.warning("Country summary unavailable: %s", r.status_code)
                return None
            return r.json()
        except (requests.RequestException, ValueError) as e:
            log.warning("Failed to load country summary: %s", e)
            return None

    def clear_cache(self) -> None:
        """Forget every cached cell and attempt; call whenever the index changes."""
        with self._lock:
            self._cache.clear()
            self._attempted.clear()
            self._generation += 1
            self._last_view = None

    def cache_stats(self) -> Dict[str, int]:
        with self._lock:
            cells = [e for e in self._cache.values() if isinstance(e, GridCell)]
            return {
                "cached_cells": len(cells),
                "empty_cells": len(self._cache) - len(cells),
                "attempted_cells": len(self._attempted),
                "approx_bytes": sum(len(dump_json(c.to_dict())) for c in cells),
            }

    # ----------------------------
    # Lifecycle
    # ----------------------------
    def _executor(self) -> ThreadPoolExecutor:
        with self._lock:
            if self._pool is None:
                self._pool = ThreadPoolExecutor(max_workers=self.max_concurrency, thread_name_prefix="grid-fetch")
            return self._pool

    def close(self) -> None:
        with self._lock:
            pool, self._pool = self._pool, None
        if pool is not None:
            pool.shutdown(wait=True)
        if self._owns_session:
            self.session.close()

    def __enter__(self) -> "GridLoader":
        return self

    def __exit__(self, *exc) -> None:
        self.close()
