"""SQLite-backed tile blob store.

SQLiteBlobStore keeps one SQLite database file per cached layer under the
configured storage directory. It composes the connection registry, the tile
and metadata repositories, the whole-layer lifecycle operations and the
event notifier behind the operations a tile cache expects from a blob
store.

Example:
    Store and fetch a tile:
        >>> from tilestore.core.config import Settings
        >>> from tilestore.db.models import TileCoordinate, TileKey
        >>> from tilestore.services.blobstore import SQLiteBlobStore

        >>> store = SQLiteBlobStore(Settings(storage_dir=Path("/tmp/tiles")))
        >>> key = TileKey("roads", "EPSG:4326", "png", TileCoordinate(0, 0, 0))
        >>> store.put(key, png_bytes)
        >>> store.get(key).blob == png_bytes
        True
        >>> store.destroy()
"""

from __future__ import annotations

import importlib
import logging
import os
from typing import TYPE_CHECKING

from tilestore.core import errors
from tilestore.db import lifecycle as db_lifecycle
from tilestore.db import metadata as db_metadata
from tilestore.db import registry as db_registry
from tilestore.db import schema as db_schema
from tilestore.db import tiles as db_tiles
from tilestore.services import notifier as tile_notifier

if TYPE_CHECKING:
    import pathlib
    import types

    from tilestore.core import config
    from tilestore.db import models as db_models

log = logging.getLogger(__name__)

ENGINE_MODULE = "sqlite3"


def load_engine(module_name: str | None = None) -> types.ModuleType:
    """Import the SQLite driver module (``ENGINE_MODULE`` by default).

    Raises:
        EngineUnavailableError: if the module cannot be imported.
    """
    module_name = module_name or ENGINE_MODULE
    try:
        engine = importlib.import_module(module_name)
    except ImportError as exc:
        raise errors.EngineUnavailableError(
            f"Couldn't load SQLite driver module {module_name!r}: {exc}",
            operation="configure",
        ) from exc
    log.debug(
        "Using SQLite driver %s (library %s)",
        module_name,
        getattr(engine, "sqlite_version", "unknown"),
    )
    return engine


def prepare_root(root: pathlib.Path) -> pathlib.Path:
    """Make sure the storage root is an existing, writable directory.

    Raises:
        StorageIOError: if the directory cannot be created or written.
    """
    try:
        root.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise errors.StorageIOError(
            f"Could not create storage directory {root}: {exc}",
            operation="configure",
        ) from exc
    if not os.access(root, os.W_OK | os.X_OK):
        raise errors.StorageIOError(
            f"Storage directory {root} is not writable",
            operation="configure",
        )
    return root


class SQLiteBlobStore:
    """Tile blob store keeping one SQLite file per layer.

    Construction fails fast: a missing SQLite driver raises
    EngineUnavailableError and an unusable storage directory raises
    StorageIOError. Call destroy() (or use the store as a context manager)
    to close the cached connections on shutdown.

    Args:
        settings: Application settings; ``storage_dir``, ``file_extension``,
            ``connect_timeout`` and ``metadata_read_errors_as_absent`` are
            used.
    """

    def __init__(self, settings: config.Settings) -> None:
        load_engine()
        self.settings = settings
        self.path = prepare_root(settings.storage_dir)
        self.schema = db_schema.SchemaManager(
            self.path,
            extension=settings.file_extension,
            timeout=settings.connect_timeout,
        )
        self.registry = db_registry.ConnectionRegistry(self.schema)
        self.notifier = tile_notifier.Notifier()
        self.tiles = db_tiles.TileRepository(self.registry, self.notifier)
        self.metadata = db_metadata.LayerMetadataStore(
            self.registry,
            read_errors_as_absent=settings.metadata_read_errors_as_absent,
        )
        self.lifecycle = db_lifecycle.LayerLifecycle(self.registry, self.notifier)
        log.info("Configured SQLiteBlobStore with path %s", self.path)

    def __enter__(self) -> SQLiteBlobStore:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.destroy()

    def destroy(self) -> None:
        """Close all cached layer connections."""
        log.info("Closing SQLiteBlobStore connections")
        self.registry.release_all()

    # -------- tiles --------

    def get(self, key: db_models.TileKey) -> db_models.TileRecord | None:
        return self.tiles.get(key)

    def put(self, key: db_models.TileKey, blob: bytes) -> None:
        self.tiles.put(key, blob)

    def delete(self, key: db_models.TileKey) -> bool:
        return self.tiles.delete(key)

    def delete_by_gridset_id(self, layer_name: str, grid_set_id: str) -> int:
        return self.tiles.delete_by_gridset(layer_name, grid_set_id)

    def delete_range(self, tile_range: db_models.TileRange) -> int:
        return self.tiles.delete_range(tile_range)

    def clear(self) -> None:
        """Clearing the whole cache is not supported.

        Raises:
            NotImplementedOperationError: always.
        """
        raise errors.NotImplementedOperationError(
            "Clearing the SQLite blob store is not supported",
            operation="clear",
        )

    # -------- layers --------

    def layer_exists(self, layer_name: str) -> bool:
        return self.lifecycle.exists(layer_name)

    def delete_layer(self, layer_name: str) -> bool:
        return self.lifecycle.delete_layer(layer_name)

    def rename(self, old_name: str, new_name: str) -> bool:
        return self.lifecycle.rename_layer(old_name, new_name)

    # -------- metadata --------

    def get_layer_metadata(self, layer_name: str, key: str) -> str | None:
        return self.metadata.get(layer_name, key)

    def put_layer_metadata(self, layer_name: str, key: str, value: str) -> None:
        self.metadata.put(layer_name, key, value)

    def get_all_layer_metadata(self, layer_name: str) -> dict[str, str]:
        return self.metadata.get_all(layer_name)

    # -------- listeners --------

    def add_listener(self, listener: tile_notifier.BlobStoreListener) -> None:
        self.notifier.add_listener(listener)

    def remove_listener(self, listener: tile_notifier.BlobStoreListener) -> bool:
        return self.notifier.remove_listener(listener)


def get_blob_store(settings: config.Settings) -> SQLiteBlobStore:
    """Factory function to create a blob store.

    Args:
        settings: Application settings for the storage location.

    Returns:
        SQLiteBlobStore rooted at ``settings.storage_dir``.
    """
    return SQLiteBlobStore(settings)
