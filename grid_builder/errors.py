from __future__ import annotations


class GridIndexError(Exception):
    """Base class for failures the CLIs turn into a non-zero exit."""


class MalformedRecordError(GridIndexError, ValueError):
    """Record has missing required fields or unusable coordinates; skipped."""


class SourceReadError(GridIndexError):
    """A single source record could not be read or parsed; skipped."""


class PersistError(GridIndexError):
    """A cell, metadata or sidecar file could not be written."""


class DeletionUnsupportedError(GridIndexError):
    """Points can only be removed from the index by a full rebuild."""
