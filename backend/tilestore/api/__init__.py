"""API router subpackage for the tile store service.

This package organizes REST endpoints exposing the blob store. Each module
exposes its own APIRouter for composition in the application's main
FastAPI instance.

Submodules:
    - tiles: Endpoints for reading, writing and deleting cached tiles and
      for truncating a grid set.
    - layers: Endpoints for layer existence, deletion, renaming and layer
      metadata.
"""
