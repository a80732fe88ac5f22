"""
Grid Client — viewport-driven loader for the persisted grid

- Maps display zoom to a grid zoom (monotonic thresholds)
- Computes the visible cells for a viewport (antimeridian aware)
- Fetches missing cells over HTTP with bounded concurrency, caching
  both data and "known empty" (404) cells
- Returns only the points inside the viewport
"""
from .loader import EMPTY, GridLoader, Viewport, ViewResult

__all__ = ["EMPTY", "GridLoader", "Viewport", "ViewResult"]
