"""Repository for tile rows of the per-layer stores.

Tiles are addressed by (grid_set_id, x, y, z, type) inside the store of
their layer. The ``tiles`` table carries no unique index, so writes are
upserts performed in a single transaction while the layer's handle lock is
held: the row is updated in place when it exists and inserted otherwise.
"""

from __future__ import annotations

import datetime
import logging
from typing import TYPE_CHECKING

from tilestore.core import errors
from tilestore.db import connection as db_connection
from tilestore.db import models as db_models

if TYPE_CHECKING:
    import pathlib

    from tilestore.db import registry as db_registry
    from tilestore.services import notifier as tile_notifier

log = logging.getLogger(__name__)

_KEY_CLAUSE = "grid_set_id = ? AND x = ? AND y = ? AND z = ? AND type = ?"


class TileRepository:
    """Get, put and delete tile blobs.

    Args:
        registry: Source of the per-layer connections.
        notifier: Receives store and delete events after successful writes.
    """

    SELECT_SQL = f"SELECT data FROM tiles WHERE {_KEY_CLAUSE}"
    UPDATE_SQL = f"UPDATE tiles SET data = ? WHERE {_KEY_CLAUSE}"
    INSERT_SQL = (
        "INSERT INTO tiles (grid_set_id, x, y, z, type, data) "
        "VALUES (?, ?, ?, ?, ?, ?)"
    )
    DELETE_SQL = f"DELETE FROM tiles WHERE {_KEY_CLAUSE}"
    DELETE_GRIDSET_SQL = "DELETE FROM tiles WHERE grid_set_id = ?"

    def __init__(
        self,
        registry: db_registry.ConnectionRegistry,
        notifier: tile_notifier.Notifier,
    ) -> None:
        self.registry = registry
        self.notifier = notifier

    def get(self, key: db_models.TileKey) -> db_models.TileRecord | None:
        """Look up a tile.

        Args:
            key: Tile to fetch. Its layer's store is created if missing.

        Returns:
            The stored record, or None if no blob is stored for the key.

        Raises:
            QueryError: if the select fails.
        """
        layer = key.layer_name
        with (
            db_connection.translate_errors(layer, "get"),
            self.registry.session(layer) as conn,
        ):
            row = conn.execute(self.SELECT_SQL, key.row_key).fetchone()
            path = self.registry.schema.path_for(layer)
            if row is None or row[0] is None:
                return None
            last_modified = _modified_at(path)
        return db_models.TileRecord(
            key=key,
            blob=bytes(row[0]),
            last_modified=last_modified,
        )

    def put(self, key: db_models.TileKey, blob: bytes) -> None:
        """Store a tile blob, replacing any blob stored under the same key.

        Raises:
            QueryError: if the write fails; nothing is stored in that case.
        """
        layer = key.layer_name
        data = bytes(blob)
        with (
            db_connection.translate_errors(layer, "put"),
            self.registry.session(layer) as conn,
            conn,
        ):
            cursor = conn.execute(self.UPDATE_SQL, (data, *key.row_key))
            if cursor.rowcount == 0:
                conn.execute(self.INSERT_SQL, (*key.row_key, data))
        self.notifier.tile_stored(key, len(data))

    def delete(self, key: db_models.TileKey) -> bool:
        """Remove a tile. Returns whether a stored tile was removed."""
        layer = key.layer_name
        log.debug("Deleting tile %s from layer %s", key.row_key, layer)
        with (
            db_connection.translate_errors(layer, "delete"),
            self.registry.session(layer) as conn,
            conn,
        ):
            removed = conn.execute(self.DELETE_SQL, key.row_key).rowcount
        if removed:
            self.notifier.tile_deleted(key)
        return removed > 0

    def delete_by_gridset(self, layer_name: str, grid_set_id: str) -> int:
        """Remove every tile of a grid set from a layer.

        Returns:
            Number of rows removed.
        """
        log.info(
            "Deleting SQLite cached layer %s; grid set %s",
            layer_name,
            grid_set_id,
        )
        with (
            db_connection.translate_errors(layer_name, "delete_by_gridset"),
            self.registry.session(layer_name) as conn,
            conn,
        ):
            count = conn.execute(self.DELETE_GRIDSET_SQL, (grid_set_id,)).rowcount
        if count:
            self.notifier.gridset_deleted(layer_name, grid_set_id)
        return count

    def delete_range(self, tile_range: db_models.TileRange) -> int:
        """Range deletes are not supported by the SQLite store.

        Raises:
            NotImplementedOperationError: always.
        """
        raise errors.NotImplementedOperationError(
            "Deleting tile ranges is not supported by the SQLite blob store",
            layer_name=tile_range.layer_name,
            operation="delete_range",
        )


def _modified_at(path: pathlib.Path) -> datetime.datetime:
    """Last modification time of a store file, in UTC."""
    try:
        mtime = path.stat().st_mtime
    except OSError as exc:
        log.debug("Could not stat %s, using current time: %s", path, exc)
        return datetime.datetime.now(datetime.UTC)
    return datetime.datetime.fromtimestamp(mtime, tz=datetime.UTC)
