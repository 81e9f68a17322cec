"""XYZ tile endpoints backed by the SQLite blob store.

This module exposes the tile operations of the blob store over HTTP. A tile
is addressed by layer, grid set, zoom and column/row, with the blob format
given as the file extension of the last path segment. Tile bytes are stored
and served verbatim; rendering them is the job of the tile service that
talks to these endpoints.

Example:
    Seed and read back a tile:
        >>> client.put("/tiles/roads/EPSG:900913/3/1/2.png", content=png)
        >>> response = client.get("/tiles/roads/EPSG:900913/3/1/2.png")
        >>> response.headers["content-type"]
        'image/png'

    Truncate a grid set:
        >>> client.delete("/tiles/roads/EPSG:900913").json()
        {'layer': 'roads', 'grid_set_id': 'EPSG:900913', 'deleted': 1}
"""

from __future__ import annotations

import email.utils
from typing import Annotated, Any

import fastapi
from fastapi import responses
from starlette import concurrency

from tilestore.db import models as db_models
from tilestore.services import blobstore

router = fastapi.APIRouter(prefix="/tiles", tags=["tiles"])

# Tile indices are stored as SQLite INTEGER, a signed 64-bit value.
TileIndex = Annotated[int, fastapi.Path(ge=-(2**63), le=2**63 - 1)]

_MEDIA_TYPES = {
    "png": "image/png",
    "png8": "image/png",
    "jpeg": "image/jpeg",
    "jpg": "image/jpeg",
    "gif": "image/gif",
    "webp": "image/webp",
    "tiff": "image/tiff",
    "pbf": "application/x-protobuf",
    "mvt": "application/vnd.mapbox-vector-tile",
    "json": "application/json",
    "geojson": "application/geo+json",
}


def _media_type(fmt: str) -> str:
    return _MEDIA_TYPES.get(fmt.lower(), "application/octet-stream")


def _get_store(request: fastapi.Request) -> blobstore.SQLiteBlobStore:
    """Resolve the blob store owned by the running application."""
    return request.app.state.blob_store


def _tile_key(
    layer: str,
    grid_set_id: str,
    fmt: str,
    z: int,
    x: int,
    y: int,
) -> db_models.TileKey:
    return db_models.TileKey(
        layer_name=layer,
        grid_set_id=grid_set_id,
        format=fmt,
        coordinate=db_models.TileCoordinate(x=x, y=y, z=z),
    )


@router.get("/{layer}/{grid_set_id}/{z}/{x}/{y}.{fmt}")
def get_tile(
    layer: str,
    grid_set_id: str,
    z: TileIndex,
    x: TileIndex,
    y: TileIndex,
    fmt: str,
    store: blobstore.SQLiteBlobStore = fastapi.Depends(_get_store),  # noqa: B008
) -> responses.Response:
    """Serve a cached tile.

    Args:
        layer: Cached layer name.
        grid_set_id: Grid set the coordinate refers to.
        z: Zoom level.
        x: Tile column.
        y: Tile row.
        fmt: Blob format, also used to pick the Content-Type.
        store: Blob store (injected via FastAPI Depends).

    Returns:
        The stored bytes with a Last-Modified header.

    Raises:
        HTTPException: 404 if the tile is not cached.
    """
    record = store.get(_tile_key(layer, grid_set_id, fmt, z, x, y))
    if record is None:
        raise fastapi.HTTPException(status_code=404, detail="Tile not found")
    return responses.Response(
        content=record.blob,
        media_type=_media_type(fmt),
        headers={
            "Last-Modified": email.utils.format_datetime(
                record.last_modified, usegmt=True
            ),
        },
    )


@router.put("/{layer}/{grid_set_id}/{z}/{x}/{y}.{fmt}")
async def put_tile(
    layer: str,
    grid_set_id: str,
    z: TileIndex,
    x: TileIndex,
    y: TileIndex,
    fmt: str,
    request: fastapi.Request,
    store: blobstore.SQLiteBlobStore = fastapi.Depends(_get_store),  # noqa: B008
) -> dict[str, Any]:
    """Store the request body as a tile, replacing any cached blob.

    Returns:
        The tile address and the number of bytes stored.
    """
    body = await request.body()
    key = _tile_key(layer, grid_set_id, fmt, z, x, y)
    await concurrency.run_in_threadpool(store.put, key, body)
    return {"layer": layer, "grid_set_id": grid_set_id, "size": len(body)}


@router.delete("/{layer}/{grid_set_id}/{z}/{x}/{y}.{fmt}")
def delete_tile(
    layer: str,
    grid_set_id: str,
    z: TileIndex,
    x: TileIndex,
    y: TileIndex,
    fmt: str,
    store: blobstore.SQLiteBlobStore = fastapi.Depends(_get_store),  # noqa: B008
) -> dict[str, bool]:
    """Remove a cached tile.

    Raises:
        HTTPException: 404 if the tile was not cached.
    """
    if not store.delete(_tile_key(layer, grid_set_id, fmt, z, x, y)):
        raise fastapi.HTTPException(status_code=404, detail="Tile not found")
    return {"deleted": True}


@router.delete("/{layer}/{grid_set_id}")
def delete_gridset(
    layer: str,
    grid_set_id: str,
    store: blobstore.SQLiteBlobStore = fastapi.Depends(_get_store),  # noqa: B008
) -> dict[str, Any]:
    """Remove every cached tile of a grid set from a layer."""
    count = store.delete_by_gridset_id(layer, grid_set_id)
    return {"layer": layer, "grid_set_id": grid_set_id, "deleted": count}
