"""Exception taxonomy for the tile blob store.

Every failure the store reports derives from TileStoreError. Absence of a
tile, a metadata key or a layer store is never an error: lookups return
``None``, ``False`` or an empty mapping instead.

Example:
    Distinguish a rename conflict from other storage failures:
        >>> from tilestore.core import errors
        >>> try:
        ...     store.rename("roads", "streets")
        ... except errors.TargetExistsError:
        ...     print("streets is already cached")
        ... except errors.TileStoreError as e:
        ...     print(f"rename failed: {e}")
"""

from __future__ import annotations


class TileStoreError(RuntimeError):
    """Base class for all blob store failures.

    Carries the layer the failure relates to and the operation that was
    running, both of which are folded into the message.

    Attributes:
        layer_name: Layer the failing operation targeted, if any.
        operation: Short name of the failing operation (e.g. "put").
    """

    def __init__(
        self,
        message: str,
        *,
        layer_name: str | None = None,
        operation: str | None = None,
    ) -> None:
        self.layer_name = layer_name
        self.operation = operation
        context = []
        if operation:
            context.append(operation)
        if layer_name is not None:
            context.append(f"layer={layer_name!r}")
        if context:
            message = f"{message} [{' '.join(context)}]"
        super().__init__(message)


class EngineUnavailableError(TileStoreError):
    """The SQLite engine could not be loaded. Fatal at construction."""


class StorageIOError(TileStoreError):
    """A store file could not be created, opened, renamed or removed."""


class SchemaError(TileStoreError):
    """Creating or verifying the two-table layer schema failed."""


class QueryError(TileStoreError):
    """A statement failed to prepare or execute against a layer store."""


class NotImplementedOperationError(TileStoreError, NotImplementedError):
    """The operation is part of the blob store contract but unsupported."""


class TargetExistsError(TileStoreError):
    """A rename would overwrite an existing layer store."""
