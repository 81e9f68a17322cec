"""Creation and verification of the per-layer store schema.

Every layer store holds exactly two tables:

- ``tiles(grid_set_id, x, y, z, type, data)`` with one row per cached tile
- ``meta(key, value)`` with the layer's metadata pairs

The schema is fixed. Existing files are never migrated; a file missing
either table is treated as corrupt.
"""

from __future__ import annotations

import logging
import sqlite3
from typing import TYPE_CHECKING

from tilestore.core import errors
from tilestore.db import connection as db_connection
from tilestore.db import layout

if TYPE_CHECKING:
    import pathlib

log = logging.getLogger(__name__)

REQUIRED_TABLES = frozenset({"tiles", "meta"})


class SchemaManager:
    """Creates new layer stores and opens existing ones.

    Args:
        root: Directory holding the store files.
        extension: Store file suffix, including the dot.
        timeout: SQLite busy timeout for the opened connections.
    """

    CREATE_TILES_SQL = (
        "CREATE TABLE tiles (grid_set_id TEXT, x INTEGER, y INTEGER, "
        "z INTEGER, type TEXT, data BLOB)"
    )
    CREATE_META_SQL = "CREATE TABLE meta (key TEXT, value TEXT)"

    def __init__(
        self,
        root: pathlib.Path,
        extension: str = ".sqlite",
        timeout: float = 5.0,
    ) -> None:
        self.root = root
        self.extension = extension
        self.timeout = timeout

    def path_for(self, layer_name: str) -> pathlib.Path:
        return layout.layer_path(self.root, layer_name, self.extension)

    def create(self, layer_name: str) -> db_connection.LayerConnection:
        """Create the store file for a layer and its two tables.

        Both tables are created in one transaction. On failure the
        connection is closed and nothing is returned, so no caller can
        cache a handle to a half-initialized store.

        Args:
            layer_name: Layer whose store does not exist yet.

        Returns:
            Open handle on the new store.

        Raises:
            StorageIOError: if the file already exists or cannot be created.
            SchemaError: if the DDL fails.
        """
        path = self.path_for(layer_name)
        if path.exists():
            raise errors.StorageIOError(
                f"Store file {path} already exists",
                layer_name=layer_name,
                operation="create",
            )
        log.info("Creating SQLite tile database %s", path.name)
        conn = db_connection.connect(path, create=True, timeout=self.timeout)
        try:
            with conn:
                conn.execute("BEGIN")
                conn.execute(self.CREATE_TILES_SQL)
                conn.execute(self.CREATE_META_SQL)
        except sqlite3.Error as exc:
            conn.close()
            log.error("Schema creation failed for %s: %s", path.name, exc)
            raise errors.SchemaError(
                f"Could not create schema in {path.name}: {exc}",
                layer_name=layer_name,
                operation="create",
            ) from exc
        return db_connection.LayerConnection(layer_name, path, conn)

    def open(self, layer_name: str) -> db_connection.LayerConnection:
        """Open an existing layer store and verify its schema.

        Raises:
            StorageIOError: if the engine cannot open the file.
            SchemaError: if the file is not a database or lacks a table.
        """
        path = self.path_for(layer_name)
        log.debug("Opening SQLite tile database %s", path.name)
        conn = db_connection.connect(path, create=False, timeout=self.timeout)
        try:
            self._verify(conn, layer_name, path)
        except errors.SchemaError:
            conn.close()
            raise
        return db_connection.LayerConnection(layer_name, path, conn)

    @staticmethod
    def _verify(
        conn: sqlite3.Connection,
        layer_name: str,
        path: pathlib.Path,
    ) -> None:
        try:
            rows = conn.execute(
                "SELECT name FROM sqlite_master WHERE type = 'table'"
            ).fetchall()
        except sqlite3.DatabaseError as exc:
            raise errors.SchemaError(
                f"{path.name} is not a readable tile store: {exc}",
                layer_name=layer_name,
                operation="open",
            ) from exc
        missing = REQUIRED_TABLES - {row[0] for row in rows}
        if missing:
            raise errors.SchemaError(
                f"{path.name} is missing table(s) {', '.join(sorted(missing))}",
                layer_name=layer_name,
                operation="open",
            )
