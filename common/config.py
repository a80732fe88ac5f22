"""Deployment settings for the grid index, loaded from YAML."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml

DEFAULT_CONFIG_PATH = "config/grid.yaml"


@dataclass(frozen=True)
class SourceSettings:
    """Where point records live and how their public paths are formed."""

    content_root: str = "static/content/campsites"
    pattern: str = "**/*.md"
    path_prefix: str = "/campsites"


@dataclass(frozen=True)
class BuildSettings:
    """Grid resolution and persisted layout."""

    grid_root: str = "static/api/grid"
    minimal_index_path: str = "static/api/campsites-minimal.json"
    cache_path: str = "static/.grid-cache.json"
    zoom_levels: Tuple[int, ...] = (2, 4, 6, 8)
    detailed_zoom: int = 6
    max_amenities: int = 3
    max_concurrent_files: int = 10
    generate_bounds_index: bool = True


@dataclass(frozen=True)
class LoaderSettings:
    """Client loader defaults."""

    base_url: str = "http://localhost:8000/api/grid"
    max_concurrency: int = 10
    timeout_s: float = 5.0
    # highest display zoom served by each grid zoom; finer zooms use the last level
    display_thresholds: Dict[int, float] = field(default_factory=lambda: {2: 4.0, 4: 7.0, 6: 10.0})


@dataclass(frozen=True)
class ServerSettings:
    host: str = "0.0.0.0"
    port: int = 8000
    cell_max_age_s: int = 300


@dataclass(frozen=True)
class LoggingSettings:
    level: str = "INFO"
    format: str = "json"  # json | text


@dataclass(frozen=True)
class GridSettings:
    """Aggregated configuration model."""

    source: SourceSettings = field(default_factory=SourceSettings)
    build: BuildSettings = field(default_factory=BuildSettings)
    loader: LoaderSettings = field(default_factory=LoaderSettings)
    server: ServerSettings = field(default_factory=ServerSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)


def default_config_path() -> str:
    return os.environ.get("GRID_CONFIG", DEFAULT_CONFIG_PATH)


def load_settings(path: Optional[str | Path] = None) -> GridSettings:
    """
    Parse a YAML config file into GridSettings.

    A missing file yields the built-in defaults so that the CLIs and the
    server start without any configuration.
    """
    path = Path(path or default_config_path())
    raw = _load_yaml(path) if path.exists() else {}
    return settings_from_dict(raw)


def settings_from_dict(raw: Dict[str, Any]) -> GridSettings:
    source_cfg = raw.get("source", {}) or {}
    build_cfg = raw.get("build", {}) or {}
    loader_cfg = raw.get("loader", {}) or {}
    server_cfg = raw.get("server", {}) or {}
    logging_cfg = raw.get("logging", {}) or {}

    defaults_b = BuildSettings()
    defaults_l = LoaderSettings()

    source = SourceSettings(
        content_root=str(source_cfg.get("content_root", SourceSettings.content_root)),
        pattern=str(source_cfg.get("pattern", SourceSettings.pattern)),
        path_prefix=str(source_cfg.get("path_prefix", SourceSettings.path_prefix)).rstrip("/"),
    )
    build = BuildSettings(
        grid_root=str(build_cfg.get("grid_root", defaults_b.grid_root)),
        minimal_index_path=str(build_cfg.get("minimal_index_path", defaults_b.minimal_index_path)),
        cache_path=str(build_cfg.get("cache_path", defaults_b.cache_path)),
        zoom_levels=tuple(sorted(int(z) for z in build_cfg.get("zoom_levels", defaults_b.zoom_levels))),
        detailed_zoom=int(build_cfg.get("detailed_zoom", defaults_b.detailed_zoom)),
        max_amenities=int(build_cfg.get("max_amenities", defaults_b.max_amenities)),
        max_concurrent_files=int(build_cfg.get("max_concurrent_files", defaults_b.max_concurrent_files)),
        generate_bounds_index=bool(build_cfg.get("generate_bounds_index", defaults_b.generate_bounds_index)),
    )
    thresholds = loader_cfg.get("display_thresholds", defaults_l.display_thresholds)
    loader = LoaderSettings(
        base_url=str(loader_cfg.get("base_url", defaults_l.base_url)).rstrip("/"),
        max_concurrency=int(loader_cfg.get("max_concurrency", defaults_l.max_concurrency)),
        timeout_s=float(loader_cfg.get("timeout_s", defaults_l.timeout_s)),
        display_thresholds={int(k): float(v) for k, v in thresholds.items()},
    )
    server = ServerSettings(
        host=str(server_cfg.get("host", ServerSettings.host)),
        port=int(server_cfg.get("port", ServerSettings.port)),
        cell_max_age_s=int(server_cfg.get("cell_max_age_s", ServerSettings.cell_max_age_s)),
    )
    logging_ = LoggingSettings(
        level=str(logging_cfg.get("level", LoggingSettings.level)).upper(),
        format=str(logging_cfg.get("format", LoggingSettings.format)),
    )
    settings = GridSettings(source=source, build=build, loader=loader, server=server, logging=logging_)
    _validate(settings)
    return settings


def _validate(s: GridSettings) -> None:
    zooms = s.build.zoom_levels
    if not zooms:
        raise ValueError("build.zoom_levels must not be empty")
    if len(set(zooms)) != len(zooms):
        raise ValueError("build.zoom_levels must be unique")
    if any(z < 0 for z in zooms):
        raise ValueError("build.zoom_levels must be >= 0")
    if s.build.max_concurrent_files < 1 or s.loader.max_concurrency < 1:
        raise ValueError("concurrency caps must be >= 1")
    if s.logging.format not in ("json", "text"):
        raise ValueError("logging.format must be 'json' or 'text'")


def _load_yaml(path: str | Path) -> Dict[str, Any]:
    with open(path, "r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Config file {path} must contain a top-level mapping.")
    return data
