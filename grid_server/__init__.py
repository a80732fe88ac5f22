"""
Grid Server — read-only HTTP view of the persisted grid

- GET /api/grid/z{zoom}/{x}-{y}.json  (404 = no points in that cell)
- GET /api/grid/meta/stats.json, /api/grid/meta/bounds.json
- GET /api/points-minimal.json, /api/system-info, /health

Run:
    uvicorn grid_server.server:app --port 8000
"""
