"""Tile store package: a SQLite-backed blob store for cached map tiles.

This package persists rendered map tiles, keyed by layer, grid set, format
and z/x/y coordinate, together with small per-layer metadata. Each layer
is kept in its own SQLite database file under a configured storage
directory.

- Lazily creates a layer's store file and schema on first access
- Reuses one connection per layer and replaces closed or broken ones
- Serializes statements per layer while unrelated layers run in parallel
- Notifies registered listeners of stored and deleted tiles
- Exposes tile, metadata and layer operations over a small FastAPI surface

See module sub-docstrings for details on architecture and usage.
"""
