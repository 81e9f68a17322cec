"""Whole-layer operations: existence checks, deletion and renaming.

Both delete and rename run while holding the registry's create-or-open
lock for the layers involved, so no other caller can recreate or reopen a
store file while it is being removed or moved.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from tilestore.core import errors

if TYPE_CHECKING:
    import pathlib

    from tilestore.db import registry as db_registry
    from tilestore.services import notifier as tile_notifier

log = logging.getLogger(__name__)

# Files SQLite may leave next to a store while it has open transactions.
_SIDECAR_SUFFIXES = ("-journal", "-wal", "-shm")


class LayerLifecycle:
    """Deletes and renames layer store files.

    Args:
        registry: Registry whose cached handles are invalidated.
        notifier: Receives layer deleted/renamed events.
    """

    def __init__(
        self,
        registry: db_registry.ConnectionRegistry,
        notifier: tile_notifier.Notifier,
    ) -> None:
        self.registry = registry
        self.notifier = notifier

    def exists(self, layer_name: str) -> bool:
        """Whether a store file exists for the layer. Never creates one."""
        return self.registry.schema.path_for(layer_name).is_file()

    def delete_layer(self, layer_name: str) -> bool:
        """Remove a layer's store file.

        Any cached handle on the file is closed first; the next access to
        the layer starts from a new, empty store.

        Returns:
            True if a store file was removed, False if none existed.

        Raises:
            StorageIOError: if the file exists but cannot be removed.
        """
        log.info("Deleting SQLite cached layer %s", layer_name)
        path = self.registry.schema.path_for(layer_name)
        with self.registry.exclusive(layer_name):
            self.registry.invalidate(layer_name)
            try:
                path.unlink()
            except FileNotFoundError:
                return False
            except OSError as exc:
                raise errors.StorageIOError(
                    f"Could not remove {path}: {exc}",
                    layer_name=layer_name,
                    operation="delete_layer",
                ) from exc
            _remove_sidecars(path)
        self.notifier.layer_deleted(layer_name)
        return True

    def rename_layer(self, old_name: str, new_name: str) -> bool:
        """Move a layer's store file to the name of another layer.

        Returns:
            True if the store was renamed, or if ``old_name`` had no store
            to begin with.

        Raises:
            TargetExistsError: if ``new_name`` already has a store.
            StorageIOError: if the file cannot be moved.
        """
        log.info("Renaming SQLite cached layer %s to %s", old_name, new_name)
        old_path = self.registry.schema.path_for(old_name)
        new_path = self.registry.schema.path_for(new_name)
        if old_path == new_path:
            self.registry.invalidate(old_name)
            return True

        with self.registry.exclusive(old_name, new_name):
            if new_path.exists():
                raise errors.TargetExistsError(
                    f"Cannot rename {old_name!r}: a store already exists "
                    f"for {new_name!r}",
                    layer_name=new_name,
                    operation="rename",
                )
            self.registry.invalidate(old_name)
            self.registry.invalidate(new_name)
            if not old_path.exists():
                log.debug("No store for layer %s, nothing to rename", old_name)
                return True
            try:
                old_path.rename(new_path)
            except OSError as exc:
                raise errors.StorageIOError(
                    f"Could not rename {old_path} to {new_path}: {exc}",
                    layer_name=old_name,
                    operation="rename",
                ) from exc
            _remove_sidecars(old_path)
        self.notifier.layer_renamed(old_name, new_name)
        return True


def _remove_sidecars(path: pathlib.Path) -> None:
    for suffix in _SIDECAR_SUFFIXES:
        path.with_name(path.name + suffix).unlink(missing_ok=True)
