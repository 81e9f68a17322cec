"""Registry of open layer connections.

The registry hands out one LayerConnection per layer name, creating the
store file on first access and reopening it when a cached handle turns out
to be closed or broken. Creating or opening a store runs under a lock keyed
by the store file, so two callers never race to create the same file while
unrelated layers proceed in parallel.

Example:
    Run a statement against a layer, creating its store if needed:
        >>> registry = ConnectionRegistry(SchemaManager(root))
        >>> with registry.session("roads") as conn:
        ...     conn.execute("SELECT COUNT(*) FROM tiles").fetchone()
        (0,)
        >>> registry.release_all()
"""

from __future__ import annotations

import contextlib
import logging
import sqlite3
import threading
import weakref
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import pathlib
    from collections.abc import Iterator

    from tilestore.db import connection as db_connection
    from tilestore.db import schema as db_schema

log = logging.getLogger(__name__)


class ConnectionRegistry:
    """Maps layer names to open connection handles.

    Args:
        schema: Schema manager used to create or open store files.
    """

    def __init__(self, schema: db_schema.SchemaManager) -> None:
        self.schema = schema
        self._handles: dict[str, db_connection.LayerConnection] = {}
        self._handles_guard = threading.Lock()
        # A stripe lives only while a caller holds or waits on it.
        self._stripes: weakref.WeakValueDictionary[pathlib.Path, threading.RLock] = (
            weakref.WeakValueDictionary()
        )
        self._stripes_guard = threading.Lock()

    def _stripe(self, layer_name: str) -> threading.RLock:
        path = self.schema.path_for(layer_name)
        with self._stripes_guard:
            lock = self._stripes.get(path)
            if lock is None:
                lock = threading.RLock()
                self._stripes[path] = lock
            return lock

    def _cached(self, layer_name: str) -> db_connection.LayerConnection | None:
        with self._handles_guard:
            return self._handles.get(layer_name)

    def cached_layers(self) -> list[str]:
        """Names of the layers that currently have a cached handle."""
        with self._handles_guard:
            return list(self._handles)

    def acquire(self, layer_name: str) -> db_connection.LayerConnection:
        """Return an open handle for a layer, creating its store if needed.

        Raises:
            StorageIOError: if the store cannot be created or opened.
            SchemaError: if creating or verifying the schema fails.
        """
        handle = self._cached(layer_name)
        if handle is not None and handle.is_open():
            return handle

        with self._stripe(layer_name):
            handle = self._cached(layer_name)
            if handle is not None:
                if handle.is_open():
                    return handle
                log.debug("Replacing stale connection %r", handle)
                self._drop(layer_name, handle)

            if self.schema.path_for(layer_name).exists():
                handle = self.schema.open(layer_name)
            else:
                handle = self.schema.create(layer_name)
            with self._handles_guard:
                self._handles[layer_name] = handle
            return handle

    @contextlib.contextmanager
    def session(self, layer_name: str) -> Iterator[sqlite3.Connection]:
        """Yield the layer's connection while holding its handle lock.

        If the handle is invalidated between acquiring it and taking its
        lock, a fresh handle is acquired.
        """
        while True:
            handle = self.acquire(layer_name)
            with handle.lock:
                if handle.closed:
                    continue
                yield handle.connection
                return

    @contextlib.contextmanager
    def exclusive(self, *layer_names: str) -> Iterator[None]:
        """Hold the create-or-open locks of the given layers.

        Locks are taken in file path order so that two callers locking the
        same pair of layers cannot deadlock.
        """
        paths = sorted({self.schema.path_for(name): name for name in layer_names}.items())
        with contextlib.ExitStack() as stack:
            for _path, name in paths:
                stack.enter_context(self._stripe(name))
            yield

    def invalidate(self, layer_name: str) -> None:
        """Close and forget every cached handle on the layer's store file."""
        path = self.schema.path_for(layer_name)
        with self._stripe(layer_name):
            with self._handles_guard:
                stale = [
                    (name, handle)
                    for name, handle in self._handles.items()
                    if name == layer_name or handle.path == path
                ]
            for name, handle in stale:
                self._drop(name, handle)

    def _drop(
        self,
        layer_name: str,
        handle: db_connection.LayerConnection,
    ) -> None:
        with self._handles_guard:
            if self._handles.get(layer_name) is handle:
                del self._handles[layer_name]
        self._close_quietly(handle)

    @staticmethod
    def _close_quietly(handle: db_connection.LayerConnection) -> None:
        try:
            handle.close()
        except sqlite3.Error as exc:
            log.warning("Failed to close %r: %s", handle, exc)

    def release_all(self) -> None:
        """Close every cached handle and empty the registry."""
        with self._handles_guard:
            handles = list(self._handles.values())
            self._handles.clear()
        log.info("Closing %d SQLite tile store connection(s)", len(handles))
        for handle in handles:
            self._close_quietly(handle)
