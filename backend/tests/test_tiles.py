"""Tests for storing, reading and deleting tiles through the blob store.

These tests exercise TileRepository via SQLiteBlobStore against real SQLite
files in a temporary directory:
    - Blobs round-trip byte for byte and report their size.
    - Missing tiles are absent, not errors.
    - Upserts replace the stored blob without duplicating rows.
    - Deletes, grid-set truncation and layer isolation.
    - Concurrent writers to one layer lose no tiles.
    - Store and delete events reach listeners.
"""

from __future__ import annotations

import concurrent.futures
import datetime
import logging
import sqlite3
from typing import TYPE_CHECKING

import pytest

from tilestore.core import errors
from tilestore.db import models as db_models
from tilestore.db import tiles as db_tiles
from tilestore.services import notifier as tile_notifier

if TYPE_CHECKING:
    import pathlib
    from collections.abc import Callable

    from tilestore.services import blobstore

    KeyFactory = Callable[..., db_models.TileKey]


class RecordingListener(tile_notifier.BlobStoreListener):
    """Listener keeping every event it receives."""

    def __init__(self) -> None:
        self.events: list[tuple[object, ...]] = []

    def tile_stored(self, key: db_models.TileKey, size: int) -> None:
        self.events.append(("stored", key, size))

    def tile_deleted(self, key: db_models.TileKey) -> None:
        self.events.append(("deleted", key))

    def gridset_deleted(self, layer_name: str, grid_set_id: str) -> None:
        self.events.append(("gridset_deleted", layer_name, grid_set_id))


def _row_count(store: blobstore.SQLiteBlobStore, layer: str) -> int:
    with sqlite3.connect(store.schema.path_for(layer)) as conn:
        return conn.execute("SELECT COUNT(*) FROM tiles").fetchone()[0]


def test_put_then_get_round_trips(
    store: blobstore.SQLiteBlobStore,
    make_key: KeyFactory,
) -> None:
    """Test that stored bytes come back unchanged with their size."""
    key = make_key()
    blob = bytes(range(256)) * 4
    store.put(key, blob)
    record = store.get(key)
    assert record is not None
    assert record.blob == blob
    assert record.size == len(blob)
    assert record.key == key
    assert record.last_modified.tzinfo is datetime.UTC


def test_get_missing_tile_is_absent(
    store: blobstore.SQLiteBlobStore,
    make_key: KeyFactory,
) -> None:
    """Test that a never-written key on a fresh layer returns None."""
    assert store.get(make_key(layer="fresh")) is None
    assert store.layer_exists("fresh")


def test_put_replaces_existing_blob(
    store: blobstore.SQLiteBlobStore,
    make_key: KeyFactory,
) -> None:
    """Test that a second put upserts instead of adding a row."""
    key = make_key()
    store.put(key, b"first")
    store.put(key, b"second")
    record = store.get(key)
    assert record is not None
    assert record.blob == b"second"
    assert _row_count(store, "roads") == 1


def test_put_accepts_bytes_like(
    store: blobstore.SQLiteBlobStore,
    make_key: KeyFactory,
) -> None:
    """Test that bytearray and memoryview blobs are stored as bytes."""
    store.put(make_key(x=1), bytearray(b"abc"))
    store.put(make_key(x=2), memoryview(b"def"))
    assert store.get(make_key(x=1)).blob == b"abc"  # type: ignore[union-attr]
    assert store.get(make_key(x=2)).blob == b"def"  # type: ignore[union-attr]


def test_empty_blob_round_trips(
    store: blobstore.SQLiteBlobStore,
    make_key: KeyFactory,
) -> None:
    """Test that an empty blob is stored, not mistaken for absence."""
    store.put(make_key(), b"")
    record = store.get(make_key())
    assert record is not None
    assert record.size == 0


def test_key_columns_distinguish_tiles(
    store: blobstore.SQLiteBlobStore,
    make_key: KeyFactory,
) -> None:
    """Test that every key column takes part in addressing a tile."""
    base = make_key()
    variants = [
        make_key(grid_set_id="EPSG:900913"),
        make_key(fmt="jpeg"),
        make_key(x=9),
        make_key(y=9),
        make_key(z=9),
    ]
    store.put(base, b"base")
    for variant in variants:
        assert store.get(variant) is None


def test_large_coordinates(
    store: blobstore.SQLiteBlobStore,
    make_key: KeyFactory,
) -> None:
    """Test that 64-bit coordinates are stored without truncation."""
    key = make_key(x=2**62, y=2**40 + 7, z=30)
    store.put(key, b"far")
    assert store.get(key).blob == b"far"  # type: ignore[union-attr]
    assert store.get(make_key(x=2**62, y=2**40 + 8, z=30)) is None


def test_out_of_range_coordinate_raises_query_error(
    store: blobstore.SQLiteBlobStore,
    make_key: KeyFactory,
) -> None:
    """Test that coordinates beyond 64 bits fail as typed query errors."""
    store.put(make_key(), b"kept")

    with pytest.raises(errors.QueryError) as exc_info:
        store.put(make_key(x=2**63), b"X")
    assert exc_info.value.operation == "put"
    assert isinstance(exc_info.value.__cause__, OverflowError)

    with pytest.raises(errors.QueryError):
        store.get(make_key(y=-(2**63) - 1))
    assert store.get(make_key()).blob == b"kept"  # type: ignore[union-attr]


def test_delete_removes_tile(
    store: blobstore.SQLiteBlobStore,
    make_key: KeyFactory,
) -> None:
    """Test that delete reports removal and the tile is gone afterwards."""
    key = make_key()
    store.put(key, b"X")
    assert store.delete(key) is True
    assert store.get(key) is None


def test_delete_missing_tile_returns_false(
    store: blobstore.SQLiteBlobStore,
    make_key: KeyFactory,
) -> None:
    """Test deleting a tile that was never stored."""
    assert store.delete(make_key()) is False


def test_delete_by_gridset_only_removes_that_gridset(
    store: blobstore.SQLiteBlobStore,
    make_key: KeyFactory,
) -> None:
    """Test that truncating g1 leaves g2 tiles retrievable."""
    g1 = [make_key(grid_set_id="g1", x=i) for i in range(3)]
    g2 = [make_key(grid_set_id="g2", x=i) for i in range(2)]
    for key in g1 + g2:
        store.put(key, f"{key.grid_set_id}-{key.coordinate.x}".encode())

    assert store.delete_by_gridset_id("roads", "g1") == 3

    assert all(store.get(key) is None for key in g1)
    for key in g2:
        record = store.get(key)
        assert record is not None
        assert record.blob == f"g2-{key.coordinate.x}".encode()


def test_delete_by_unknown_gridset_removes_nothing(
    store: blobstore.SQLiteBlobStore,
    make_key: KeyFactory,
) -> None:
    """Test that an unknown grid set deletes zero rows."""
    store.put(make_key(), b"X")
    assert store.delete_by_gridset_id("roads", "nope") == 0
    assert store.get(make_key()) is not None


def test_layers_are_isolated(
    store: blobstore.SQLiteBlobStore,
    make_key: KeyFactory,
) -> None:
    """Test that identical addresses in two layers are independent."""
    store.put(make_key(layer="A"), b"from A")
    assert store.get(make_key(layer="B")) is None

    store.put(make_key(layer="B"), b"from B")
    assert store.get(make_key(layer="A")).blob == b"from A"  # type: ignore[union-attr]
    assert store.schema.path_for("A") != store.schema.path_for("B")


def test_delete_range_is_not_implemented(
    store: blobstore.SQLiteBlobStore,
) -> None:
    """Test that range deletes fail with a distinct error."""
    tile_range = db_models.TileRange("roads", "g1", "png", zoom_start=0, zoom_stop=5)
    with pytest.raises(errors.NotImplementedOperationError) as exc_info:
        store.delete_range(tile_range)
    assert isinstance(exc_info.value, NotImplementedError)
    assert exc_info.value.operation == "delete_range"


def test_concurrent_puts_lose_nothing(
    store: blobstore.SQLiteBlobStore,
    make_key: KeyFactory,
) -> None:
    """Test that parallel writers to one layer all persist their tiles."""
    keys = [make_key(x=i, y=i * 2) for i in range(64)]

    def put(key: db_models.TileKey) -> None:
        store.put(key, f"tile-{key.coordinate.x}".encode())

    with concurrent.futures.ThreadPoolExecutor(max_workers=8) as pool:
        list(pool.map(put, keys))

    for key in keys:
        record = store.get(key)
        assert record is not None
        assert record.blob == f"tile-{key.coordinate.x}".encode()
    assert _row_count(store, "roads") == len(keys)


def test_concurrent_puts_to_same_key_keep_one_row(
    store: blobstore.SQLiteBlobStore,
    make_key: KeyFactory,
) -> None:
    """Test that racing upserts of one key never duplicate the row."""
    key = make_key()
    with concurrent.futures.ThreadPoolExecutor(max_workers=8) as pool:
        list(pool.map(lambda i: store.put(key, bytes([i])), range(32)))
    assert _row_count(store, "roads") == 1


def test_put_and_delete_notify_listeners(
    store: blobstore.SQLiteBlobStore,
    make_key: KeyFactory,
) -> None:
    """Test that stores and actual deletes are reported."""
    listener = RecordingListener()
    store.add_listener(listener)
    key = make_key()

    store.put(key, b"12345")
    store.delete(key)
    store.delete(key)

    assert listener.events == [("stored", key, 5), ("deleted", key)]


def test_gridset_delete_notifies_when_rows_removed(
    store: blobstore.SQLiteBlobStore,
    make_key: KeyFactory,
) -> None:
    """Test that grid set truncation is reported once rows went away."""
    store.put(make_key(grid_set_id="g1"), b"X")
    listener = RecordingListener()
    store.add_listener(listener)

    store.delete_by_gridset_id("roads", "g1")
    store.delete_by_gridset_id("roads", "g1")

    assert listener.events == [("gridset_deleted", "roads", "g1")]


def test_failed_put_raises_query_error_without_event(
    store: blobstore.SQLiteBlobStore,
    make_key: KeyFactory,
) -> None:
    """Test that a failing write is reported and nothing is notified."""
    listener = RecordingListener()
    store.add_listener(listener)
    with store.registry.session("roads") as conn:
        conn.execute("DROP TABLE tiles")

    with pytest.raises(errors.QueryError) as exc_info:
        store.put(make_key(), b"X")
    assert exc_info.value.layer_name == "roads"
    assert exc_info.value.operation == "put"
    assert isinstance(exc_info.value.__cause__, sqlite3.Error)
    assert listener.events == []


def test_listener_failure_does_not_undo_put(
    store: blobstore.SQLiteBlobStore,
    make_key: KeyFactory,
) -> None:
    """Test that a raising listener leaves the stored tile in place."""

    class Exploding(tile_notifier.BlobStoreListener):
        def tile_stored(self, key: db_models.TileKey, size: int) -> None:
            raise RuntimeError("boom")

    store.add_listener(Exploding())
    store.put(make_key(), b"kept")
    assert store.get(make_key()).blob == b"kept"  # type: ignore[union-attr]


def test_modified_at_of_missing_file_is_logged(
    tmp_path: pathlib.Path,
    caplog: pytest.LogCaptureFixture,
) -> None:
    """Test the current-time fallback when a store file vanished."""
    with caplog.at_level(logging.DEBUG, logger="tilestore.db.tiles"):
        stamp = db_tiles._modified_at(tmp_path / "gone.sqlite")
    assert stamp.tzinfo is datetime.UTC
    assert "Could not stat" in caplog.text
