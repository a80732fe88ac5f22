from __future__ import annotations

import hashlib
import logging
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from common.types import CacheRecord
from common.utils import iso_now_ms, read_json, write_json
from grid_builder.errors import PersistError
from grid_builder.sources import MarkdownPointSource

log = logging.getLogger(__name__)


def fingerprint_entries(entries: Sequence[str]) -> str:
    """SHA-256 over the sorted entries joined with '|', plus the entry count."""
    rows = sorted(entries)
    rows.append(f"count:{len(entries)}")
    return hashlib.sha256("|".join(rows).encode("utf-8")).hexdigest()


class CacheInvalidator:
    """
    Decides whether a full rebuild is needed without parsing any content.

    The fingerprint covers "{relative path}:{mtime ms}:{size}" for every
    source file and the file count, so additions, removals and edits all
    change it.
    """

    def __init__(self, source: MarkdownPointSource, cache_path: str | Path):
        self.source = source
        self.cache_path = Path(cache_path)

    def file_entries(self, files: Optional[Sequence[Path]] = None) -> List[str]:
        files = self.source.list_files() if files is None else files
        rows = []
        for f in files:
            st = Path(f).stat()
            rows.append(f"{self.source.relative_key(f)}:{st.st_mtime_ns // 1_000_000}:{st.st_size}")
        return rows

    def fingerprint(self, files: Optional[Sequence[Path]] = None) -> str:
        return fingerprint_entries(self.file_entries(files))

    def load(self) -> Optional[CacheRecord]:
        """The last persisted record, or None if absent or unreadable."""
        if not self.cache_path.exists():
            return None
        try:
            return CacheRecord.from_dict(read_json(self.cache_path))
        except (OSError, ValueError, KeyError, TypeError) as e:
            # json.JSONDecodeError is a ValueError
            log.warning("Ignoring unreadable cache record", extra={"extra": {"path": str(self.cache_path), "error": str(e)}})
            return None

    def needs_rebuild(self, current: Optional[str] = None) -> bool:
        current = current or self.fingerprint()
        previous = self.load()
        if previous is None:
            log.info("No previous build cache found; rebuild needed")
            return True
        if previous.content_hash != current:
            log.info(
                "Content has changed; rebuild needed",
                extra={"extra": {"previous": previous.content_hash, "current": current}},
            )
            return True
        log.info("Content unchanged; using existing grid data", extra={"extra": {"hash": current}})
        return False

    def save(self, content_hash: str, stats: Dict[str, int]) -> CacheRecord:
        record = CacheRecord(content_hash=content_hash, last_generated=iso_now_ms(), stats=stats)
        try:
            write_json(self.cache_path, record.to_dict(), indent=2)
        except OSError as e:
            raise PersistError(f"Cannot write cache record {self.cache_path}: {e}") from e
        return record
