"""
Record, projection, cell and metadata types shared by the builder, server and loader.

Both cell projections carry `country` and `region`, the minimal one included,
so a cell's country/region sets can always be re-derived from its point list
without going back to the source files.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple, Union

from common.geo import Bounds, WORLD_BOUNDS, cell_key, cell_size, grid_to_bounds, zoom_key


IsoTime = str


# -------------------------
# Source records
# -------------------------
@dataclass(slots=True)
class PointRecord:
    """
    A single geotagged record from the content store.

    Attributes:
        id: globally unique identifier.
        name: display name.
        latitude, longitude: WGS84 degrees.
        continent, country, region: classification triple.
        path: public path reference, e.g. "/campsites/north-america/canada/alberta/foo".
        amenities: ordered tags.
        images: image references (only their presence is indexed).
    """
    id: str
    name: str
    latitude: float
    longitude: float
    continent: str = ""
    country: str = ""
    region: str = ""
    path: str = ""
    amenities: List[str] = field(default_factory=list)
    images: List[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not self.id:
            raise ValueError("id is required")
        try:
            self.latitude = float(self.latitude)
            self.longitude = float(self.longitude)
        except (TypeError, ValueError):
            raise ValueError("lat/lon must be numeric") from None
        # NaN fails both comparisons
        if not (-90.0 <= self.latitude <= 90.0) or not (-180.0 <= self.longitude <= 180.0):
            raise ValueError("lat/lon out of range")
        self.amenities = [str(a) for a in self.amenities]
        self.images = [str(i) for i in self.images]

    @property
    def region_key(self) -> str:
        return f"{self.country}/{self.region}"


# -------------------------
# Projections persisted inside cells
# -------------------------
@dataclass(slots=True)
class MinimalProjection:
    """Coarse-zoom payload: identity, position, path and classification."""
    id: str
    name: str
    latitude: float
    longitude: float
    path: str
    country: str = ""
    region: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "path": self.path,
            "country": self.country,
            "region": self.region,
        }


@dataclass(slots=True)
class FullProjection:
    """Detailed-zoom payload: adds the leading amenities and an image flag."""
    id: str
    name: str
    latitude: float
    longitude: float
    path: str
    country: str = ""
    region: str = ""
    amenities: List[str] = field(default_factory=list)
    has_images: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "path": self.path,
            "country": self.country,
            "region": self.region,
            "amenities": list(self.amenities),
            "hasImages": self.has_images,
        }


PointProjection = Union[FullProjection, MinimalProjection]


def project(point: PointRecord, zoom: int, detailed_zoom: int, max_amenities: int = 3) -> PointProjection:
    """Pick the projection variant for a grid zoom level."""
    if zoom >= detailed_zoom:
        return FullProjection(
            id=point.id,
            name=point.name,
            latitude=point.latitude,
            longitude=point.longitude,
            path=point.path,
            country=point.country,
            region=point.region,
            amenities=list(point.amenities[:max_amenities]),
            has_images=len(point.images) > 0,
        )
    return MinimalProjection(
        id=point.id,
        name=point.name,
        latitude=point.latitude,
        longitude=point.longitude,
        path=point.path,
        country=point.country,
        region=point.region,
    )


def projection_from_dict(d: Dict[str, Any]) -> PointProjection:
    """Full variant is recognised by the presence of the image flag."""
    common = dict(
        id=str(d["id"]),
        name=str(d.get("name", "")),
        latitude=float(d["latitude"]),
        longitude=float(d["longitude"]),
        path=str(d.get("path", "")),
        country=str(d.get("country", "")),
        region=str(d.get("region", "")),
    )
    if "hasImages" in d:
        return FullProjection(
            amenities=[str(a) for a in d.get("amenities", [])],
            has_images=bool(d["hasImages"]),
            **common,
        )
    return MinimalProjection(**common)


# -------------------------
# Cells
# -------------------------
@dataclass(slots=True)
class GridCell:
    """
    Aggregate for one (zoom, x, y) cell.

    count/countries/regions are derived from `points`, so they can never
    disagree with the point list.
    """
    zoom: int
    x: int
    y: int
    bounds: Bounds
    points: List[PointProjection] = field(default_factory=list)

    @classmethod
    def empty(cls, zoom: int, x: int, y: int) -> "GridCell":
        return cls(zoom=zoom, x=x, y=y, bounds=grid_to_bounds(x, y, cell_size(zoom)))

    @property
    def key(self) -> str:
        return cell_key(self.x, self.y)

    @property
    def count(self) -> int:
        return len(self.points)

    @property
    def countries(self) -> List[str]:
        return sorted({p.country for p in self.points if p.country})

    @property
    def regions(self) -> List[str]:
        return sorted({p.region for p in self.points if p.region})

    def index_of(self, point_id: str) -> int:
        for i, p in enumerate(self.points):
            if p.id == point_id:
                return i
        return -1

    def upsert(self, projection: PointProjection) -> bool:
        """Replace the entry with the same id, else append. True if the id is new."""
        i = self.index_of(projection.id)
        if i >= 0:
            self.points[i] = projection
            return False
        self.points.append(projection)
        return True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "bounds": self.bounds.to_dict(),
            "count": self.count,
            "countries": self.countries,
            "regions": self.regions,
            "points": [p.to_dict() for p in self.points],
        }

    def bounds_entry(self) -> Dict[str, Any]:
        """Bounds-index entry: existence, extent and size without the payload."""
        return {"bounds": self.bounds.to_dict(), "count": self.count, "countries": self.countries}

    @classmethod
    def from_dict(cls, zoom: int, x: int, y: int, d: Dict[str, Any]) -> "GridCell":
        bounds = Bounds.from_dict(d["bounds"]) if "bounds" in d else grid_to_bounds(x, y, cell_size(zoom))
        pts: List[PointProjection] = []
        pos: Dict[str, int] = {}
        for raw in d.get("points", []):
            p = projection_from_dict(raw)
            # collapse duplicate ids written by older tooling; last one wins
            if p.id in pos:
                pts[pos[p.id]] = p
                continue
            pos[p.id] = len(pts)
            pts.append(p)
        return cls(zoom=zoom, x=x, y=y, bounds=bounds, points=pts)


# -------------------------
# Metadata / summaries
# -------------------------
@dataclass(slots=True)
class GridStats:
    total_points: int = 0
    country_counts: Dict[str, int] = field(default_factory=dict)
    region_counts: Dict[str, int] = field(default_factory=dict)
    grid_cell_counts: Dict[str, int] = field(default_factory=dict)

    def add_point(self, point: PointRecord) -> None:
        self.total_points += 1
        self.country_counts[point.country] = self.country_counts.get(point.country, 0) + 1
        self.region_counts[point.region_key] = self.region_counts.get(point.region_key, 0) + 1

    def discard_point(self, point: PointRecord) -> None:
        """Undo a previous add_point for `point`."""
        self.total_points = max(0, self.total_points - 1)
        for counts, key in ((self.country_counts, point.country), (self.region_counts, point.region_key)):
            left = counts.get(key, 0) - 1
            if left > 0:
                counts[key] = left
            else:
                counts.pop(key, None)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalPoints": self.total_points,
            "countryCounts": dict(sorted(self.country_counts.items())),
            "regionCounts": dict(sorted(self.region_counts.items())),
            "gridCellCounts": dict(sorted(self.grid_cell_counts.items())),
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "GridStats":
        return cls(
            total_points=int(d.get("totalPoints", 0)),
            country_counts={str(k): int(v) for k, v in d.get("countryCounts", {}).items()},
            region_counts={str(k): int(v) for k, v in d.get("regionCounts", {}).items()},
            grid_cell_counts={str(k): int(v) for k, v in d.get("gridCellCounts", {}).items()},
        )


@dataclass(slots=True)
class GridMetadata:
    generated: IsoTime
    zoom_levels: Tuple[int, ...]
    stats: GridStats
    world_bounds: Bounds = WORLD_BOUNDS

    @property
    def grid_config(self) -> Dict[str, float]:
        return {str(z): cell_size(z) for z in self.zoom_levels}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "generated": self.generated,
            "gridConfig": self.grid_config,
            "stats": self.stats.to_dict(),
            "worldBounds": self.world_bounds.to_dict(),
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "GridMetadata":
        zooms = tuple(sorted(int(z) for z in d.get("gridConfig", {})))
        wb = d.get("worldBounds")
        return cls(
            generated=str(d.get("generated", "")),
            zoom_levels=zooms,
            stats=GridStats.from_dict(d.get("stats", {})),
            world_bounds=Bounds.from_dict(wb) if wb else WORLD_BOUNDS,
        )


@dataclass(slots=True)
class CountrySummary:
    country: str
    count: int
    centroid: Optional[Tuple[float, float]]  # (lat, lng); None when unknown

    def to_dict(self) -> Dict[str, Any]:
        c = None if self.centroid is None else {"lat": self.centroid[0], "lng": self.centroid[1]}
        return {"country": self.country, "count": self.count, "centroid": c}

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "CountrySummary":
        c = d.get("centroid")
        centroid = None if not c else (float(c["lat"]), float(c["lng"]))
        return cls(country=str(d["country"]), count=int(d.get("count", 0)), centroid=centroid)


@dataclass(slots=True)
class MinimalSummary:
    """Per-country overview used when the map is zoomed all the way out."""
    generated: IsoTime
    total: int
    summary: List[CountrySummary]
    centroids_exact: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "meta": {
                "total": self.total,
                "countryCount": len(self.summary),
                "generated": self.generated,
                "centroidsExact": self.centroids_exact,
            },
            "summary": [s.to_dict() for s in self.summary],
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "MinimalSummary":
        meta = d.get("meta", {})
        return cls(
            generated=str(meta.get("generated", "")),
            total=int(meta.get("total", 0)),
            summary=[CountrySummary.from_dict(s) for s in d.get("summary", [])],
            centroids_exact=bool(meta.get("centroidsExact", True)),
        )


@dataclass(slots=True)
class CacheRecord:
    """Sidecar deciding whether a full rebuild is needed."""
    content_hash: str
    last_generated: IsoTime
    stats: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "contentHash": self.content_hash,
            "lastGenerated": self.last_generated,
            "stats": dict(sorted(self.stats.items())),
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "CacheRecord":
        if not d.get("contentHash"):
            raise ValueError("cache record has no contentHash")
        return cls(
            content_hash=str(d["contentHash"]),
            last_generated=str(d.get("lastGenerated", "")),
            stats={str(k): int(v) for k, v in d.get("stats", {}).items()},
        )


@dataclass(slots=True)
class BuildResult:
    """Everything a full build produces, before it is persisted."""
    cells: Dict[int, Dict[str, GridCell]]
    metadata: GridMetadata
    summary: MinimalSummary

    def cell_count(self, zoom: Optional[int] = None) -> int:
        if zoom is not None:
            return len(self.cells.get(zoom, {}))
        return sum(len(v) for v in self.cells.values())

    def bounds_index(self) -> Dict[str, Dict[str, Any]]:
        return {
            zoom_key(z): {k: c.bounds_entry() for k, c in sorted(cells.items())}
            for z, cells in sorted(self.cells.items())
        }
