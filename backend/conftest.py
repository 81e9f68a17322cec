"""Pytest configuration exposing the backend package and shared fixtures."""

from __future__ import annotations

import pathlib
import sys
from typing import TYPE_CHECKING

import pytest

BACKEND_ROOT = pathlib.Path(__file__).resolve().parent

if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

from tilestore.core import config  # noqa: E402
from tilestore.db import models as db_models  # noqa: E402
from tilestore.services import blobstore  # noqa: E402

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator


@pytest.fixture
def settings(tmp_path: pathlib.Path) -> config.Settings:
    """Settings rooted in a per-test storage directory."""
    return config.Settings(storage_dir=tmp_path / "layers")


@pytest.fixture
def store(settings: config.Settings) -> Iterator[blobstore.SQLiteBlobStore]:
    """A blob store whose connections are closed after the test."""
    blob_store = blobstore.SQLiteBlobStore(settings)
    try:
        yield blob_store
    finally:
        blob_store.destroy()


def _tile_key(
    layer: str = "roads",
    grid_set_id: str = "EPSG:4326",
    fmt: str = "png",
    x: int = 1,
    y: int = 2,
    z: int = 3,
) -> db_models.TileKey:
    return db_models.TileKey(
        layer_name=layer,
        grid_set_id=grid_set_id,
        format=fmt,
        coordinate=db_models.TileCoordinate(x=x, y=y, z=z),
    )


@pytest.fixture
def make_key() -> Callable[..., db_models.TileKey]:
    """Factory for tile keys with test defaults (layer "roads", 1/2/3 png)."""
    return _tile_key
