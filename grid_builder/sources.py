"""
Markdown point source.

Each record is a markdown file whose YAML front matter carries the point:

    ---
    id: 4f1c...
    name: Lost Lake
    latitude: 49.0
    longitude: -123.0
    continent: north-america
    country: canada
    region: british-columbia
    amenities: [water, fire-pit]
    images: [lost-lake-1.jpg]
    ---
    Free text...

Traversal order is lexicographic by relative path so that a build over an
unchanged tree is reproducible.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

import yaml

from common.types import PointRecord
from grid_builder.errors import MalformedRecordError, SourceReadError

log = logging.getLogger(__name__)

FRONT_MATTER_DELIM = "---"


@dataclass
class LoadReport:
    files: int = 0
    loaded: int = 0
    malformed: int = 0
    unreadable: int = 0

    @property
    def skipped(self) -> int:
        return self.malformed + self.unreadable


def parse_front_matter(text: str) -> Dict[str, Any]:
    """Return the YAML mapping between the leading pair of '---' lines."""
    lines = text.lstrip("\ufeff").splitlines()
    if not lines or lines[0].strip() != FRONT_MATTER_DELIM:
        raise ValueError("missing front matter")
    for i in range(1, len(lines)):
        if lines[i].strip() == FRONT_MATTER_DELIM:
            data = yaml.safe_load("\n".join(lines[1:i])) or {}
            if not isinstance(data, dict):
                raise ValueError("front matter is not a mapping")
            return data
    raise ValueError("unterminated front matter")


def point_from_attributes(attrs: Dict[str, Any], path: str) -> PointRecord:
    """Build a validated PointRecord or raise MalformedRecordError."""
    if not attrs.get("id") or not attrs.get("name"):
        raise MalformedRecordError("id and name are required")
    try:
        return PointRecord(
            id=str(attrs["id"]),
            name=str(attrs["name"]),
            latitude=attrs.get("latitude"),
            longitude=attrs.get("longitude"),
            continent=str(attrs.get("continent") or ""),
            country=str(attrs.get("country") or ""),
            region=str(attrs.get("region") or ""),
            path=path,
            amenities=list(attrs.get("amenities") or []),
            images=list(attrs.get("images") or []),
        )
    except (TypeError, ValueError) as e:
        raise MalformedRecordError(str(e)) from e


class MarkdownPointSource:
    """Point Source Adapter over a directory tree of front-matter markdown files."""

    def __init__(self, content_root: str | Path, pattern: str = "**/*.md", path_prefix: str = "/campsites"):
        self.root = Path(content_root)
        self.pattern = pattern
        self.path_prefix = path_prefix.rstrip("/")

    # -------- discovery --------

    def list_files(self) -> List[Path]:
        if not self.root.exists():
            return []
        files = [p for p in self.root.glob(self.pattern) if p.is_file()]
        return sorted(files, key=self.relative_key)

    def files_for_region(self, region: str) -> List[Path]:
        """Files that live directly inside a directory named `region`."""
        return [p for p in self.list_files() if p.parent.name == region]

    def relative_key(self, path: Path) -> str:
        """Posix path relative to the content root (absolute if outside it)."""
        try:
            return Path(path).resolve().relative_to(self.root.resolve()).as_posix()
        except ValueError:
            return Path(path).resolve().as_posix()

    def public_path(self, path: Path) -> str:
        rel = self.relative_key(path)
        if rel.endswith(".md"):
            rel = rel[: -len(".md")]
        return f"{self.path_prefix}/{rel}"

    # -------- reading --------

    def read_point(self, path: str | Path) -> PointRecord:
        """Parse one source file; raises SourceReadError or MalformedRecordError."""
        path = Path(path)
        try:
            text = path.read_text(encoding="utf-8")
            attrs = parse_front_matter(text)
        except (OSError, UnicodeDecodeError, yaml.YAMLError, ValueError) as e:
            raise SourceReadError(f"{path}: {e}") from e
        try:
            return point_from_attributes(attrs, self.public_path(path))
        except MalformedRecordError as e:
            raise MalformedRecordError(f"{path}: {e}") from e

    def _try_read(self, path: Path) -> Tuple[Optional[PointRecord], Optional[Exception]]:
        try:
            return self.read_point(path), None
        except (SourceReadError, MalformedRecordError) as e:
            return None, e

    def load_points(
        self, paths: Optional[Sequence[Path]] = None, max_workers: int = 10
    ) -> Tuple[List[PointRecord], LoadReport]:
        """
        Read many files with a bounded thread pool. Results keep the order of
        `paths` regardless of completion order; bad records are skipped.
        """
        paths = list(self.list_files() if paths is None else paths)
        report = LoadReport(files=len(paths))
        points: List[PointRecord] = []
        with ThreadPoolExecutor(max_workers=max(1, max_workers)) as pool:
            for path, (point, err) in zip(paths, pool.map(self._try_read, paths)):
                if isinstance(err, MalformedRecordError):
                    report.malformed += 1
                    log.warning("Skipping malformed record", extra={"extra": {"path": str(path), "error": str(err)}})
                    continue
                if err is not None:
                    report.unreadable += 1
                    log.warning("Skipping unreadable record", extra={"extra": {"path": str(path), "error": str(err)}})
                    continue
                points.append(point)
        report.loaded = len(points)
        log.info(
            "Loaded point records",
            extra={"extra": {"files": report.files, "loaded": report.loaded, "skipped": report.skipped}},
        )
        return points, report
