"""Layer lifecycle and metadata API endpoints.

This module provides REST API endpoints for whole-layer operations on the
blob store (existence check, delete, rename) and for the small key/value
metadata stored with each layer, such as its bounding box.

Example:
    Record and read a layer's bounding box:
        >>> client.put(
        ...     "/api/layers/roads/metadata/bbox",
        ...     json={"value": "-10,-10,10,10"},
        ... )
        >>> client.get("/api/layers/roads/metadata").json()
        {'bbox': '-10,-10,10,10'}

    Rename a layer's cache:
        >>> client.post("/api/layers/roads/rename", json={"new_name": "streets"})
"""

from __future__ import annotations

from typing import Any

import fastapi
import pydantic

from tilestore.services import blobstore

router = fastapi.APIRouter(prefix="/api/layers", tags=["layers"])


class RenameRequest(pydantic.BaseModel):
    """Body of a layer rename request."""

    new_name: str = pydantic.Field(min_length=1)


class MetadataValue(pydantic.BaseModel):
    """Body of a metadata write."""

    value: str


def _get_store(request: fastapi.Request) -> blobstore.SQLiteBlobStore:
    """Resolve the blob store owned by the running application."""
    return request.app.state.blob_store


@router.get("/{layer}")
def describe_layer(
    layer: str,
    store: blobstore.SQLiteBlobStore = fastapi.Depends(_get_store),  # noqa: B008
) -> dict[str, Any]:
    """Report whether a layer currently has a store file.

    Does not create the store.
    """
    return {"layer": layer, "exists": store.layer_exists(layer)}


@router.delete("/{layer}")
def delete_layer(
    layer: str,
    store: blobstore.SQLiteBlobStore = fastapi.Depends(_get_store),  # noqa: B008
) -> dict[str, Any]:
    """Remove a layer's whole cache.

    Raises:
        HTTPException: 404 if the layer had no store.
    """
    if not store.delete_layer(layer):
        raise fastapi.HTTPException(status_code=404, detail="Layer not found")
    return {"layer": layer, "deleted": True}


@router.post("/{layer}/rename")
def rename_layer(
    layer: str,
    body: RenameRequest,
    store: blobstore.SQLiteBlobStore = fastapi.Depends(_get_store),  # noqa: B008
) -> dict[str, Any]:
    """Move a layer's cache to a new layer name.

    A store already existing under the new name is answered with 409 by the
    application's error handlers.
    """
    renamed = store.rename(layer, body.new_name)
    return {"layer": body.new_name, "renamed": renamed}


@router.get("/{layer}/metadata")
def get_all_metadata(
    layer: str,
    store: blobstore.SQLiteBlobStore = fastapi.Depends(_get_store),  # noqa: B008
) -> dict[str, str]:
    """Return every metadata pair of a layer."""
    return store.get_all_layer_metadata(layer)


@router.get("/{layer}/metadata/{key}")
def get_metadata(
    layer: str,
    key: str,
    store: blobstore.SQLiteBlobStore = fastapi.Depends(_get_store),  # noqa: B008
) -> dict[str, str]:
    """Return one metadata value.

    Raises:
        HTTPException: 404 if the key has no value.
    """
    value = store.get_layer_metadata(layer, key)
    if value is None:
        raise fastapi.HTTPException(status_code=404, detail="Metadata key not found")
    return {"key": key, "value": value}


@router.put("/{layer}/metadata/{key}")
def put_metadata(
    layer: str,
    key: str,
    body: MetadataValue,
    store: blobstore.SQLiteBlobStore = fastapi.Depends(_get_store),  # noqa: B008
) -> dict[str, str]:
    """Insert or replace one metadata value."""
    store.put_layer_metadata(layer, key, body.value)
    return {"key": key, "value": body.value}
