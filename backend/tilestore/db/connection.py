"""SQLite connection handles shared by all operations on one layer.

A LayerConnection wraps the ``sqlite3.Connection`` of a single layer store
together with the re-entrant lock that serializes statements on it. Handles
are created by the SchemaManager and owned by the ConnectionRegistry;
repositories only borrow the raw connection for the duration of one
operation.
"""

from __future__ import annotations

import contextlib
import logging
import sqlite3
import threading
from typing import TYPE_CHECKING

from tilestore.core import errors

if TYPE_CHECKING:
    import pathlib
    from collections.abc import Iterator

log = logging.getLogger(__name__)


def connect(
    path: pathlib.Path,
    *,
    create: bool,
    timeout: float,
) -> sqlite3.Connection:
    """Open a SQLite connection usable from any thread.

    Args:
        path: Store file to open.
        create: Whether a missing file may be created. When false, a
            missing file is an error instead of silently becoming a new,
            empty database.
        timeout: Seconds to wait on a locked database.

    Raises:
        StorageIOError: if the engine cannot open or create the file.
    """
    mode = "rwc" if create else "rw"
    uri = f"{path.resolve().as_uri()}?mode={mode}"
    try:
        return sqlite3.connect(
            uri,
            uri=True,
            timeout=timeout,
            check_same_thread=False,
        )
    except sqlite3.Error as exc:
        raise errors.StorageIOError(
            f"Could not open store file {path}: {exc}",
            operation="connect",
        ) from exc


@contextlib.contextmanager
def translate_errors(layer_name: str, operation: str) -> Iterator[None]:
    """Re-raise engine errors inside the block as QueryError.

    Integers outside the 64-bit range SQLite stores are rejected by the
    driver with OverflowError when bound; they are reported the same way.
    """
    try:
        yield
    except (sqlite3.Error, OverflowError) as exc:
        raise errors.QueryError(
            str(exc),
            layer_name=layer_name,
            operation=operation,
        ) from exc


class LayerConnection:
    """An open connection to one layer's store file.

    Attributes:
        layer_name: Layer the handle was opened for.
        path: Backing store file.
        lock: Re-entrant lock held while a statement runs on the handle.
    """

    def __init__(
        self,
        layer_name: str,
        path: pathlib.Path,
        connection: sqlite3.Connection,
    ) -> None:
        self.layer_name = layer_name
        self.path = path
        self.lock = threading.RLock()
        self._connection = connection
        self._closed = False

    def __repr__(self) -> str:
        state = "closed" if self._closed else "open"
        return f"<LayerConnection {self.layer_name!r} {self.path.name} {state}>"

    @property
    def connection(self) -> sqlite3.Connection:
        return self._connection

    @property
    def closed(self) -> bool:
        return self._closed

    def is_open(self) -> bool:
        """Check that the handle is usable.

        A handle is broken when it was closed, when its file disappeared
        from under it, or when a trivial query fails.
        """
        if self._closed or not self.path.is_file():
            return False
        with self.lock:
            if self._closed:
                return False
            try:
                self._connection.execute("SELECT 1").fetchone()
            except sqlite3.Error as exc:
                log.debug("Connection probe failed for %s: %s", self.path, exc)
                return False
        return True

    def close(self) -> None:
        """Close the handle, waiting for a running statement to finish."""
        with self.lock:
            if self._closed:
                return
            self._closed = True
            self._connection.close()
