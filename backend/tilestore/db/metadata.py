"""Key/value metadata stored alongside the tiles of a layer."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from tilestore.core import errors
from tilestore.db import connection as db_connection
from tilestore.db import models as db_models

if TYPE_CHECKING:
    from tilestore.db import registry as db_registry

log = logging.getLogger(__name__)


class LayerMetadataStore:
    """Reads and writes the ``meta`` table of layer stores.

    Writes always report failures. Reads follow ``read_errors_as_absent``:
    when true, a read that fails on the storage side (the store cannot be
    opened, a statement fails) is logged and answered as "no value", which
    is how metadata consumers treat a layer they cannot inspect. Callers
    that need to tell the two apart check the store's existence first or
    disable the option.

    Args:
        registry: Source of the per-layer connections.
        read_errors_as_absent: Degrade failed reads to absent values.
    """

    SELECT_SQL = "SELECT value FROM meta WHERE key = ?"
    SELECT_ALL_SQL = "SELECT key, value FROM meta"
    UPDATE_SQL = "UPDATE meta SET value = ? WHERE key = ?"
    INSERT_SQL = "INSERT INTO meta (key, value) VALUES (?, ?)"

    def __init__(
        self,
        registry: db_registry.ConnectionRegistry,
        *,
        read_errors_as_absent: bool = True,
    ) -> None:
        self.registry = registry
        self.read_errors_as_absent = read_errors_as_absent

    def get(self, layer_name: str, key: str) -> str | None:
        """Return the value stored under ``key``, or None."""
        try:
            with (
                db_connection.translate_errors(layer_name, "get_metadata"),
                self.registry.session(layer_name) as conn,
            ):
                row = conn.execute(self.SELECT_SQL, (key,)).fetchone()
        except errors.TileStoreError as exc:
            self._absorb_read_error(exc)
            return None
        return None if row is None else row[0]

    def entries(self, layer_name: str) -> list[db_models.MetadataEntry]:
        """Return every metadata row of a layer."""
        try:
            with (
                db_connection.translate_errors(layer_name, "get_metadata"),
                self.registry.session(layer_name) as conn,
            ):
                rows = conn.execute(self.SELECT_ALL_SQL).fetchall()
        except errors.TileStoreError as exc:
            self._absorb_read_error(exc)
            return []
        return [
            db_models.MetadataEntry(layer_name=layer_name, key=k, value=v)
            for k, v in rows
        ]

    def get_all(self, layer_name: str) -> dict[str, str]:
        """Return a layer's metadata as a key to value mapping."""
        return {entry.key: entry.value for entry in self.entries(layer_name)}

    def put(self, layer_name: str, key: str, value: str) -> None:
        """Insert or replace the value stored under ``key``.

        Raises:
            StorageIOError: if the layer store cannot be opened.
            SchemaError: if the layer store has to be created and that fails.
            QueryError: if the write fails.
        """
        with (
            db_connection.translate_errors(layer_name, "put_metadata"),
            self.registry.session(layer_name) as conn,
            conn,
        ):
            cursor = conn.execute(self.UPDATE_SQL, (value, key))
            if cursor.rowcount == 0:
                conn.execute(self.INSERT_SQL, (key, value))
        log.debug("Stored metadata %r for layer %s", key, layer_name)

    def _absorb_read_error(self, exc: errors.TileStoreError) -> None:
        if not self.read_errors_as_absent:
            raise exc
        log.warning("Metadata read failed, reporting no value: %s", exc)
