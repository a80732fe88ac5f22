from __future__ import annotations

import os

import uvicorn
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from common.config import GridSettings, default_config_path, load_settings
from common.geo import cell_size, parse_cell_key, zoom_key
from common.logging_setup import get_logger
from grid_builder.errors import PersistError
from grid_builder.store import GridStore

log = get_logger("grid_server")

VERSION = "1.0.0"


def create_app(settings: GridSettings) -> FastAPI:
    """Read-only HTTP view of a persisted grid (whatever the builder last wrote)."""
    store = GridStore(settings.build.grid_root, settings.build.minimal_index_path)
    zooms = settings.build.zoom_levels
    max_age = settings.server.cell_max_age_s

    app = FastAPI(title="Grid Index API", version=VERSION)
    app.state.store = store

    # (Optional) CORS for map clients served from another origin
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET"],
        allow_headers=["*"],
    )

    def _json(payload, *, cache: bool = True) -> JSONResponse:
        headers = {"Cache-Control": f"public, max-age={max_age}" if cache else "no-store"}
        return JSONResponse(payload, headers=headers)

    def _read_or_503(fn, *args):
        try:
            return fn(*args)
        except PersistError as e:
            log.error("Unreadable grid file", extra={"extra": {"error": str(e)}})
            raise HTTPException(status_code=503, detail="grid_unreadable")

    @app.get("/health")
    def health():
        return {
            "status": "ok",
            "grid_root": str(store.root),
            "cells": {zoom_key(z): store.count_cells(z) for z in zooms},
        }

    @app.get("/api/system-info")
    def system_info():
        return {
            "system": "hierarchical-grid-indexing",
            "version": VERSION,
            "endpoints": {
                "grid": "/api/grid/",
                "metadata": "/api/grid/meta/stats.json",
                "bounds": "/api/grid/meta/bounds.json",
                "minimal": "/api/points-minimal.json",
            },
            "gridLevels": {zoom_key(z): {"size": cell_size(z)} for z in zooms},
        }

    @app.get("/api/grid/meta/stats.json")
    def grid_stats():
        raw = _read_or_503(store.read_raw, store.stats_path())
        if raw is None:
            raise HTTPException(status_code=404, detail="grid_not_built")
        return _json(raw, cache=False)

    @app.get("/api/grid/meta/bounds.json")
    def grid_bounds():
        raw = _read_or_503(store.read_raw, store.bounds_path())
        if raw is None:
            raise HTTPException(status_code=404, detail="bounds_index_missing")
        return _json(raw, cache=False)

    @app.get("/api/grid/z{zoom}/{key}.json")
    def grid_cell(zoom: int, key: str):
        """404 means "no points here", which clients cache as an empty cell."""
        try:
            parse_cell_key(key)
        except ValueError:
            raise HTTPException(status_code=400, detail="malformed_cell_key")
        if zoom not in zooms:
            raise HTTPException(status_code=404, detail="unknown_zoom")
        raw = _read_or_503(store.read_cell_raw, zoom, key)
        if raw is None:
            raise HTTPException(status_code=404, detail="cell_not_found")
        return _json(raw)

    @app.get("/api/points-minimal.json")
    def minimal_index():
        raw = _read_or_503(store.read_raw, store.minimal_index_path)
        if raw is None:
            raise HTTPException(status_code=404, detail="summary_missing")
        return _json(raw, cache=False)

    return app


app = create_app(load_settings(default_config_path()))


def main() -> None:
    s = load_settings(default_config_path())
    uvicorn.run(create_app(s), host=s.server.host, port=int(os.environ.get("PORT", s.server.port)))


# -------- local dev entrypoint --------
if __name__ == "__main__":
    main()
