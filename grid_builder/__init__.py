"""
Grid Builder — hierarchical grid index over geotagged point records

- Reads `{content_root}/**/*.md` (YAML front matter) into PointRecords
- Partitions points into fixed-size cells at every configured grid zoom
- Persists `{grid_root}/z{zoom}/{x}-{y}.json`, `meta/stats.json`,
  `meta/bounds.json` and a per-country minimal summary
- Skips full rebuilds when the source fingerprint is unchanged
- Patches individual cells incrementally for small change sets

Entry point:
    python -m grid_builder.cli build|rebuild|update|status --config config/grid.yaml
"""
from .builder import GridBuilder
from .errors import (
    DeletionUnsupportedError,
    GridIndexError,
    MalformedRecordError,
    PersistError,
    SourceReadError,
)

__all__ = [
    "GridBuilder",
    "GridIndexError",
    "MalformedRecordError",
    "SourceReadError",
    "PersistError",
    "DeletionUnsupportedError",
]
