"""Store event listeners and their dispatcher.

Listeners subclass BlobStoreListener and override the events they consume.
Events are delivered synchronously on the thread that performed the storage
operation, in registration order, and only after the operation succeeded.
A failing listener is logged and skipped; it never undoes the storage
operation or starves the listeners registered after it.

Example:
    Count stored bytes per layer:
        >>> class ByteCounter(BlobStoreListener):
        ...     def __init__(self) -> None:
        ...         self.totals: dict[str, int] = {}
        ...
        ...     def tile_stored(self, key, size):
        ...         self.totals[key.layer_name] = (
        ...             self.totals.get(key.layer_name, 0) + size
        ...         )
        >>> store.add_listener(ByteCounter())
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from tilestore.db import models as db_models

log = logging.getLogger(__name__)


class BlobStoreListener:
    """Receiver of blob store events. All hooks default to no-ops."""

    def tile_stored(self, key: db_models.TileKey, size: int) -> None:
        """A tile was written (inserted or replaced)."""

    def tile_deleted(self, key: db_models.TileKey) -> None:
        """A stored tile was removed."""

    def gridset_deleted(self, layer_name: str, grid_set_id: str) -> None:
        """All tiles of a grid set were removed from a layer."""

    def layer_deleted(self, layer_name: str) -> None:
        """A layer's whole store was removed."""

    def layer_renamed(self, old_name: str, new_name: str) -> None:
        """A layer's store was moved to a new name."""


class Notifier:
    """Ordered list of listeners with best-effort synchronous delivery."""

    def __init__(self) -> None:
        self._listeners: list[BlobStoreListener] = []
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._listeners)

    def add_listener(self, listener: BlobStoreListener) -> None:
        with self._lock:
            self._listeners.append(listener)

    def remove_listener(self, listener: BlobStoreListener) -> bool:
        """Unregister a listener. Returns whether it was registered."""
        with self._lock:
            try:
                self._listeners.remove(listener)
            except ValueError:
                return False
            return True

    def _dispatch(self, event: str, *args: object) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            hook = getattr(listener, event, None)
            if hook is None:
                continue
            try:
                hook(*args)
            except Exception:
                log.exception("Listener %r failed handling %s", listener, event)

    def tile_stored(self, key: db_models.TileKey, size: int) -> None:
        self._dispatch("tile_stored", key, size)

    def tile_deleted(self, key: db_models.TileKey) -> None:
        self._dispatch("tile_deleted", key)

    def gridset_deleted(self, layer_name: str, grid_set_id: str) -> None:
        self._dispatch("gridset_deleted", layer_name, grid_set_id)

    def layer_deleted(self, layer_name: str) -> None:
        self._dispatch("layer_deleted", layer_name)

    def layer_renamed(self, old_name: str, new_name: str) -> None:
        self._dispatch("layer_renamed", old_name, new_name)
