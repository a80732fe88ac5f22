"""
Shared building blocks for the grid index.

- geo: cell size, coordinate <-> cell mapping, cell keys, bounds
- types: point records, projections, cells, metadata and cache records
- config: YAML settings (config/grid.yaml)
- logging_setup: JSON logging on stdout
- utils: timestamps, batching, stable JSON I/O
"""
